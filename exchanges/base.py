"""Base exchange REST ticker client"""
import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from config import REQUEST_TIMEOUT
from src.core.opportunity import Quote
from src.core.utils import japan_now

logger = logging.getLogger(__name__)


class ExchangeDataError(ValueError):
    """Ticker payload could not be interpreted"""


def parse_price(value: Any) -> Optional[float]:
    """
    Convert a ticker field to float.

    Missing, empty or non-finite values become None; they are never
    coerced to zero.
    """
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ExchangeDataError(f"Invalid price value: {value!r}")
    if not math.isfinite(price) or price < 0:
        return None
    return price


class BaseExchange(ABC):
    """Base class for polling an exchange's public BTC/JPY ticker"""

    def __init__(self, name: str, url: str, timeout: float = REQUEST_TIMEOUT):
        self.name = name
        self.url = url
        self.timeout = timeout
        self.failures = 0
        self.last_error: Optional[str] = None

    @abstractmethod
    def _parse_ticker(self, data: Any) -> Quote:
        """Parse exchange-specific payload to Quote"""
        pass

    async def fetch(self, session: aiohttp.ClientSession) -> Optional[Quote]:
        """Fetch one quote; returns None when the exchange is unavailable"""
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.get(self.url, timeout=timeout) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
            quote = self._parse_ticker(data)
        except asyncio.TimeoutError:
            self._record_failure(f"timeout after {self.timeout}s")
            return None
        except aiohttp.ClientError as e:
            self._record_failure(f"request failed: {e}")
            return None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._record_failure(f"unexpected payload: {e}")
            return None

        self.last_error = None
        return quote

    def _record_failure(self, message: str):
        self.failures += 1
        self.last_error = message
        logger.error(f"[{self.name}] API error: {message}")

    def _quote(self, last: Any, bid: Any, ask: Any) -> Quote:
        return Quote(
            exchange=self.name,
            last=parse_price(last),
            bid=parse_price(bid),
            ask=parse_price(ask),
            observed_at=japan_now(),
        )
