"""BITPoint price via CoinGecko"""
from .base import BaseExchange
from config import EXCHANGE_TICKER_URLS
from src.core.opportunity import Quote


class BitPointExchange(BaseExchange):
    """
    BITPoint has no public ticker, so the CoinGecko BTC/JPY price is used.

    CoinGecko reports only a last price. Bid and ask stay empty, which keeps
    this venue out of pair evaluation instead of inventing a zero-width book.
    Earlier releases copied the CoinGecko price into both bid and ask, so
    BITPoint used to form pairs; it now appears in price history only and
    never produces an opportunity.
    """

    def __init__(self):
        super().__init__(name="BITPoint", url=EXCHANGE_TICKER_URLS["BITPoint"])

    def _parse_ticker(self, data: dict) -> Quote:
        # {"bitcoin":{"jpy":5000500}}
        return self._quote(data["bitcoin"]["jpy"], None, None)
