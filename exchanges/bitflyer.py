"""bitFlyer ticker client"""
from .base import BaseExchange
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class BitFlyerExchange(BaseExchange):
    """bitFlyer Lightning public ticker"""

    def __init__(self):
        super().__init__(name="bitFlyer", url=EXCHANGE_TICKER_URLS["bitFlyer"])

    def _parse_ticker(self, data: dict) -> Quote:
        # {"product_code":"BTC_JPY","best_bid":5000000.0,"best_ask":5001000.0,"ltp":5000500.0,...}
        return self._quote(data["ltp"], data.get("best_bid"), data.get("best_ask"))
