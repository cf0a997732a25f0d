"""Exchange ticker clients"""
from .base import BaseExchange, ExchangeDataError, parse_price
from .bitflyer import BitFlyerExchange
from .coincheck import CoincheckExchange
from .zaif import ZaifExchange
from .gmo import GMOCoinExchange
from .bitbank import BitbankExchange
from .bitpoint import BitPointExchange
from .simulator import SimulatedExchange, create_simulated_exchanges
from .source import QuoteSource


def create_live_exchanges() -> list[BaseExchange]:
    """All supported BTC/JPY venues"""
    return [
        BitFlyerExchange(),
        CoincheckExchange(),
        ZaifExchange(),
        GMOCoinExchange(),
        BitbankExchange(),
        BitPointExchange(),
    ]


__all__ = [
    "BaseExchange",
    "ExchangeDataError",
    "parse_price",
    "BitFlyerExchange",
    "CoincheckExchange",
    "ZaifExchange",
    "GMOCoinExchange",
    "BitbankExchange",
    "BitPointExchange",
    "SimulatedExchange",
    "create_simulated_exchanges",
    "create_live_exchanges",
    "QuoteSource",
]
