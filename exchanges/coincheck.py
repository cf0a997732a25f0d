"""Coincheck ticker client"""
from .base import BaseExchange
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class CoincheckExchange(BaseExchange):
    """Coincheck public ticker"""

    def __init__(self):
        super().__init__(name="Coincheck", url=EXCHANGE_TICKER_URLS["Coincheck"])

    def _parse_ticker(self, data: dict) -> Quote:
        # {"last":5000500.0,"bid":5000000.0,"ask":5001000.0,"high":...,"timestamp":...}
        return self._quote(data["last"], data.get("bid"), data.get("ask"))
