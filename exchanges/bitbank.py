"""bitbank ticker client"""
from .base import BaseExchange, ExchangeDataError
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class BitbankExchange(BaseExchange):
    """bitbank public ticker"""

    def __init__(self):
        super().__init__(name="bitbank", url=EXCHANGE_TICKER_URLS["bitbank"])

    def _parse_ticker(self, data: dict) -> Quote:
        # {"success":1,"data":{"sell":"5001000","buy":"5000000","last":"5000500",...}}
        # "sell" is the best ask and "buy" the best bid
        if data.get("success") != 1:
            raise ExchangeDataError(f"request unsuccessful: {data.get('data')}")
        ticker = data["data"]
        return self._quote(ticker["last"], ticker.get("buy"), ticker.get("sell"))
