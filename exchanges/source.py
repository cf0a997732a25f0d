"""Concurrent quote polling across exchanges"""
import asyncio
import logging
from typing import List, Optional, Sequence

import aiohttp

from src.core.opportunity import Quote

logger = logging.getLogger(__name__)


class QuoteSource:
    """
    Polls every exchange concurrently and returns the quotes that arrived.

    A failing exchange is logged and left out; the cycle continues with a
    shorter quote list.
    """

    def __init__(self, exchanges: Sequence, metrics=None):
        self.exchanges = list(exchanges)
        self.metrics = metrics
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"Accept": "application/json"})
        return self._session

    async def fetch_all(self) -> List[Quote]:
        session = await self._get_session()
        results = await asyncio.gather(
            *(exchange.fetch(session) for exchange in self.exchanges),
            return_exceptions=True,
        )

        quotes = []
        for exchange, result in zip(self.exchanges, results):
            if isinstance(result, BaseException):
                logger.error(f"[{exchange.name}] Unexpected fetch error: {result!r}")
                result = None
            if result is None:
                if self.metrics:
                    self.metrics.record_fetch_failure(exchange.name)
                continue
            quotes.append(result)

        if len(quotes) < len(self.exchanges):
            logger.warning(f"Received {len(quotes)}/{len(self.exchanges)} quotes this cycle")
        return quotes

    def get_state(self) -> dict:
        return {
            exchange.name: {
                "failures": exchange.failures,
                "last_error": exchange.last_error,
            }
            for exchange in self.exchanges
        }

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
