"""GMO Coin ticker client"""
from .base import BaseExchange, ExchangeDataError
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class GMOCoinExchange(BaseExchange):
    """GMO Coin public ticker"""

    def __init__(self):
        super().__init__(name="GMO Coin", url=EXCHANGE_TICKER_URLS["GMO Coin"])

    def _parse_ticker(self, data: dict) -> Quote:
        # {"status":0,"data":[{"symbol":"BTC_JPY","ask":"5001000","bid":"5000000","last":"5000500",...}]}
        if data.get("status", 0) != 0:
            raise ExchangeDataError(f"status {data.get('status')}: {data.get('messages')}")
        ticker = data["data"][0]
        return self._quote(ticker["last"], ticker.get("bid"), ticker.get("ask"))
