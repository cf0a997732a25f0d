"""
BTC/JPY Arbitrage Monitor - Main Entry Point

Polls the public tickers of the Japanese exchanges every few seconds,
detects cross-exchange arbitrage opportunities and serves them over a
REST API and a WebSocket feed.

Features:
- Fee-aware opportunity ranking
- Price and opportunity history (PostgreSQL or in-memory)
- CSV export
- Prometheus metrics export
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from config import MODE, POLL_INTERVAL, WEB_HOST, WEB_PORT
from dashboard import DashboardManager, create_app
from engine import ArbitrageEngine, ConfigurationError
from engine_metrics import MetricsEngine
from engine_storage import PersistenceWorker, create_history_storage
from exchanges import QuoteSource, create_live_exchanges, create_simulated_exchanges
from src.core.snapshot import MarketSnapshot, SnapshotStore

logger = logging.getLogger(__name__)

MODES = ("live", "simulation")


class ArbitrageBot:
    """Main orchestrator: fetch, detect, publish, persist"""

    def __init__(
        self,
        mode: str = MODE,
        quote_source: Optional[QuoteSource] = None,
        storage=None,
        engine: Optional[ArbitrageEngine] = None,
        metrics: Optional[MetricsEngine] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        if mode not in MODES:
            raise ConfigurationError(f"MODE must be one of {MODES}, got {mode!r}")
        if poll_interval <= 0:
            raise ConfigurationError(f"poll_interval must be positive, got {poll_interval}")

        self.mode = mode
        self.poll_interval = poll_interval
        self.metrics = metrics or MetricsEngine(mode=mode)
        self.engine = engine or ArbitrageEngine()
        self.storage = storage if storage is not None else create_history_storage()

        if quote_source is None:
            if mode == "simulation":
                # Use simulated exchanges when network is restricted
                exchanges = create_simulated_exchanges()
                logger.info("🎮 Running in SIMULATION MODE with mock data")
            else:
                exchanges = create_live_exchanges()
                logger.info(f"Polling {len(exchanges)} exchange tickers")
            quote_source = QuoteSource(exchanges, metrics=self.metrics)
        self.quote_source = quote_source

        self.snapshots = SnapshotStore()
        self.persistence = PersistenceWorker(self.storage, metrics=self.metrics)
        self.manager = DashboardManager(self.snapshots, self.storage, metrics=self.metrics)

        self._poll_task: Optional[asyncio.Task] = None
        self.running = False

    async def run_cycle(self) -> Optional[MarketSnapshot]:
        """
        One polling cycle. Returns the published snapshot, or None when no
        exchange answered (the previous snapshot stays current).
        """
        started = time.perf_counter()
        quotes = await self.quote_source.fetch_all()

        if not quotes:
            logger.warning("No quotes received this cycle")
            self.metrics.record_cycle(time.perf_counter() - started, 0)
            return None

        opportunities = self.engine.detect(quotes)
        snapshot = self.snapshots.publish(quotes, opportunities)

        await self.manager.broadcast_snapshot(snapshot)
        self.persistence.submit(quotes, opportunities)

        if opportunities:
            logger.info(f"Found {len(opportunities)} arbitrage opportunities:")
            for opportunity in opportunities:
                logger.info(self.engine.format_opportunity_message(opportunity))

        self.metrics.record_opportunities(opportunities)
        self.metrics.record_cycle(time.perf_counter() - started, len(quotes))
        return snapshot

    async def _poll_loop(self):
        """Run cycles at a fixed cadence until stopped"""
        while self.running:
            started = time.monotonic()
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Error in price fetching cycle")

            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.poll_interval - elapsed))

    async def start(self):
        """Start persistence and the polling loop"""
        if self.running:
            return
        self.running = True
        self.persistence.start()
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Price monitoring started - fetching every {self.poll_interval:g} seconds")

    async def stop(self):
        """Stop polling, flush history and release connections"""
        logger.info("Shutting down gracefully...")
        self.running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        await self.persistence.stop()
        await self.quote_source.close()
        self.storage.close()
        logger.info("Bot stopped")

    def get_state(self) -> dict:
        return {
            "mode": self.mode,
            "running": self.running,
            "engine": self.engine.get_config(),
            "exchanges": self.quote_source.get_state(),
            "persistence": self.persistence.get_state(),
            "storage": self.storage.get_state(),
        }


def create_bot_app(bot: ArbitrageBot) -> FastAPI:
    """FastAPI app whose lifespan starts and stops ``bot``"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await bot.start()
        yield
        await bot.stop()

    return create_app(bot.manager, lifespan=lifespan)


def configure_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%H:%M:%S'
    )

    # Reduce noise from libraries
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def main():
    """Main entry point"""
    configure_logging()

    bot = ArbitrageBot(mode=MODE)
    app = create_bot_app(bot)

    logger.info(f"Server running on http://{WEB_HOST}:{WEB_PORT} (mode: {MODE})")
    logger.info(f"WebSocket feed at ws://{WEB_HOST}:{WEB_PORT}/ws")
    logger.info(f"Prometheus metrics at http://{WEB_HOST}:{WEB_PORT}/metrics")

    # Run FastAPI server (which starts bot via lifespan)
    uvicorn.run(
        app,
        host=WEB_HOST,
        port=WEB_PORT,
        log_level="warning"
    )


if __name__ == "__main__":
    main()
