"""Zaif ticker client"""
from .base import BaseExchange
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class ZaifExchange(BaseExchange):
    """Zaif public ticker"""

    def __init__(self):
        super().__init__(name="Zaif", url=EXCHANGE_TICKER_URLS["Zaif"])

    def _parse_ticker(self, data: dict) -> Quote:
        return self._quote(data["last"], data.get("bid"), data.get("ask"))
