"""
Price & Opportunity History Storage

Stores every polled quote and every detected opportunity for:
- The history API
- CSV export
- Offline analysis

PostgreSQL (via psycopg2) is used when a DSN is configured, otherwise an
in-memory store keeps a bounded window of recent rows.

Writes happen off the polling loop: ``PersistenceWorker`` consumes completed
cycles from a queue and runs the blocking database calls in a thread.
"""

import asyncio
import logging
import threading
from collections import deque
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor, execute_values
from psycopg2.pool import ThreadedConnectionPool

from config import DATABASE_URL, PERSISTENCE_QUEUE_SIZE
from src.core.opportunity import ArbitrageOpportunity, Quote
from src.core.utils import japan_now

logger = logging.getLogger(__name__)


class PostgresHistoryStorage:
    """
    PostgreSQL storage for price and opportunity history.

    Schema:
    - price_history: one row per exchange quote
    - arbitrage_opportunities: one row per detected opportunity
    """

    CREATE_PRICE_TABLE = """
    CREATE TABLE IF NOT EXISTS price_history (
        id          BIGSERIAL PRIMARY KEY,
        exchange    TEXT NOT NULL,
        price       DOUBLE PRECISION,
        bid         DOUBLE PRECISION,
        ask         DOUBLE PRECISION,
        timestamp   TEXT NOT NULL,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """

    CREATE_OPPORTUNITY_TABLE = """
    CREATE TABLE IF NOT EXISTS arbitrage_opportunities (
        id                      BIGSERIAL PRIMARY KEY,
        exchange_from           TEXT NOT NULL,
        exchange_to             TEXT NOT NULL,
        price_from              DOUBLE PRECISION NOT NULL,
        price_to                DOUBLE PRECISION NOT NULL,
        price_difference        DOUBLE PRECISION NOT NULL,
        percentage_difference   DOUBLE PRECISION NOT NULL,
        net_profit              DOUBLE PRECISION,
        net_profit_percentage   DOUBLE PRECISION,
        total_fees              DOUBLE PRECISION,
        is_profitable           BOOLEAN,
        timestamp               TEXT NOT NULL,
        created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """

    CREATE_INDEXES = """
    CREATE INDEX IF NOT EXISTS idx_price_history_created_at ON price_history (created_at DESC);
    CREATE INDEX IF NOT EXISTS idx_opportunities_created_at ON arbitrage_opportunities (created_at DESC);
    """

    # Columns added after the first release
    MIGRATIONS = """
    ALTER TABLE price_history ADD COLUMN IF NOT EXISTS bid DOUBLE PRECISION;
    ALTER TABLE price_history ADD COLUMN IF NOT EXISTS ask DOUBLE PRECISION;
    ALTER TABLE arbitrage_opportunities ADD COLUMN IF NOT EXISTS net_profit DOUBLE PRECISION;
    ALTER TABLE arbitrage_opportunities ADD COLUMN IF NOT EXISTS net_profit_percentage DOUBLE PRECISION;
    ALTER TABLE arbitrage_opportunities ADD COLUMN IF NOT EXISTS total_fees DOUBLE PRECISION;
    ALTER TABLE arbitrage_opportunities ADD COLUMN IF NOT EXISTS is_profitable BOOLEAN;
    """

    OPPORTUNITY_COLUMNS = (
        "exchange_from", "exchange_to", "price_from", "price_to",
        "price_difference", "percentage_difference", "net_profit",
        "net_profit_percentage", "total_fees", "is_profitable", "timestamp",
    )

    storage_type = "postgresql"

    def __init__(self, dsn: str, min_connections: int = 1, max_connections: int = 5):
        self.dsn = dsn
        self.pool = ThreadedConnectionPool(minconn=min_connections, maxconn=max_connections, dsn=dsn)
        self.rows_written = 0
        logger.info("Connected to PostgreSQL history database")
        self._initialize_schema()

    def _initialize_schema(self):
        """Create tables if they don't exist and apply column migrations"""
        conn = self.pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(self.CREATE_PRICE_TABLE)
                cur.execute(self.CREATE_OPPORTUNITY_TABLE)
                cur.execute(self.MIGRATIONS)
                cur.execute(self.CREATE_INDEXES)
            conn.commit()
            logger.info("History schema initialized")
        except psycopg2.Error:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def _execute(self, query: str, params: Sequence = (), fetch: bool = False) -> List[Dict]:
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(r) for r in cur.fetchall()] if fetch else []
            conn.commit()
            return rows
        except psycopg2.Error:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def save_prices(self, quotes: Sequence[Quote]):
        if not quotes:
            return
        values = [
            (r["exchange"], r["price"], r["bid"], r["ask"], r["timestamp"])
            for r in (q.to_record() for q in quotes)
        ]
        conn = self.pool.getconn()
        try:
            with conn.cursor() as cur:
                execute_values(
                    cur,
                    "INSERT INTO price_history (exchange, price, bid, ask, timestamp) VALUES %s",
                    values,
                )
            conn.commit()
            self.rows_written += len(values)
        except psycopg2.Error:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def save_opportunity(self, opportunity: ArbitrageOpportunity):
        record = opportunity.to_record()
        columns = ", ".join(self.OPPORTUNITY_COLUMNS)
        placeholders = ", ".join(["%s"] * len(self.OPPORTUNITY_COLUMNS))
        self._execute(
            f"INSERT INTO arbitrage_opportunities ({columns}) VALUES ({placeholders})",
            [record[c] for c in self.OPPORTUNITY_COLUMNS],
        )
        self.rows_written += 1

    def get_recent_prices(self, limit: int = 100) -> List[Dict]:
        return self._execute(
            "SELECT * FROM price_history ORDER BY created_at DESC, id DESC LIMIT %s",
            (limit,),
            fetch=True,
        )

    def get_arbitrage_history(self, limit: int = 50) -> List[Dict]:
        return self._execute(
            "SELECT * FROM arbitrage_opportunities ORDER BY created_at DESC, id DESC LIMIT %s",
            (limit,),
            fetch=True,
        )

    def get_price_history(self, hours: int = 24) -> List[Dict]:
        return self._execute(
            """
            SELECT exchange, price, bid, ask, timestamp, created_at
            FROM price_history
            WHERE created_at >= NOW() - make_interval(hours => %s)
            ORDER BY created_at ASC, id ASC
            """,
            (hours,),
            fetch=True,
        )

    def get_opportunity_history(self, hours: int = 24) -> List[Dict]:
        return self._execute(
            """
            SELECT * FROM arbitrage_opportunities
            WHERE created_at >= NOW() - make_interval(hours => %s)
            ORDER BY created_at ASC, id ASC
            """,
            (hours,),
            fetch=True,
        )

    def clear_all_data(self):
        self._execute("DELETE FROM price_history")
        self._execute("DELETE FROM arbitrage_opportunities")
        logger.info("Cleared all price and arbitrage history")

    def get_state(self) -> dict:
        return {"storage_type": self.storage_type, "rows_written": self.rows_written}

    def close(self):
        """Close database connections"""
        self.pool.closeall()


class InMemoryHistoryStorage:
    """
    In-memory history used when no database is configured.
    Bounded deques keep the most recent rows only.

    The persistence worker writes from a worker thread while API handlers
    read from the threadpool, so every deque access holds ``_lock``.
    """

    storage_type = "memory"

    def __init__(self, max_prices: int = 100_000, max_opportunities: int = 10_000):
        self.prices: deque = deque(maxlen=max_prices)
        self.opportunities: deque = deque(maxlen=max_opportunities)
        self.rows_written = 0
        self._next_id = 1
        self._lock = threading.Lock()

    def _row(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = {"id": self._next_id, **record, "created_at": japan_now()}
        self._next_id += 1
        return row

    def save_prices(self, quotes: Sequence[Quote]):
        records = [quote.to_record() for quote in quotes]
        with self._lock:
            for record in records:
                self.prices.append(self._row(record))
                self.rows_written += 1

    def save_opportunity(self, opportunity: ArbitrageOpportunity):
        record = opportunity.to_record()
        with self._lock:
            self.opportunities.append(self._row(record))
            self.rows_written += 1

    def _snapshot(self, rows: deque) -> List[Dict]:
        with self._lock:
            return list(rows)

    def get_recent_prices(self, limit: int = 100) -> List[Dict]:
        return list(reversed(self._snapshot(self.prices)))[:limit]

    def get_arbitrage_history(self, limit: int = 50) -> List[Dict]:
        return list(reversed(self._snapshot(self.opportunities)))[:limit]

    @staticmethod
    def _since(rows: List[Dict], hours: int) -> List[Dict]:
        cutoff = japan_now() - timedelta(hours=hours)
        return [r for r in rows if r["created_at"] >= cutoff]

    def get_price_history(self, hours: int = 24) -> List[Dict]:
        return [
            {k: r[k] for k in ("exchange", "price", "bid", "ask", "timestamp", "created_at")}
            for r in self._since(self._snapshot(self.prices), hours)
        ]

    def get_opportunity_history(self, hours: int = 24) -> List[Dict]:
        return self._since(self._snapshot(self.opportunities), hours)

    def clear_all_data(self):
        with self._lock:
            self.prices.clear()
            self.opportunities.clear()
        logger.info("Cleared all price and arbitrage history")

    def get_state(self) -> dict:
        with self._lock:
            return {
                "storage_type": self.storage_type,
                "rows_written": self.rows_written,
                "prices_stored": len(self.prices),
                "opportunities_stored": len(self.opportunities),
            }

    def close(self):
        pass


def create_history_storage(dsn: str = DATABASE_URL):
    """
    Factory function to create the history storage.

    Returns PostgresHistoryStorage when a DSN is configured and reachable,
    otherwise InMemoryHistoryStorage.
    """
    if dsn:
        try:
            return PostgresHistoryStorage(dsn)
        except psycopg2.Error as e:
            logger.warning(f"Failed to connect to PostgreSQL, history will not survive restarts: {e}")

    logger.info("Using in-memory history storage")
    return InMemoryHistoryStorage()


class PersistenceWorker:
    """
    Supervised consumer that writes completed cycles to storage.

    ``submit`` never blocks the polling loop. Failed writes are logged and
    counted; they never reach the detector.
    """

    def __init__(self, storage, max_queue: int = PERSISTENCE_QUEUE_SIZE, metrics=None):
        self.storage = storage
        self.metrics = metrics
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._task: Optional[asyncio.Task] = None
        self.batches_written = 0
        self.batches_dropped = 0
        self.write_errors = 0

    def submit(self, quotes: Sequence[Quote], opportunities: Sequence[ArbitrageOpportunity]) -> bool:
        """Queue one cycle for writing; returns False when the batch was dropped"""
        try:
            self.queue.put_nowait((tuple(quotes), tuple(opportunities)))
            return True
        except asyncio.QueueFull:
            self.batches_dropped += 1
            logger.warning(f"Persistence queue full ({self.queue.maxsize}), dropping cycle")
            return False

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
            self._task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Persistence worker stopped unexpectedly: {error!r}")

    async def run(self):
        while True:
            quotes, opportunities = await self.queue.get()
            try:
                await asyncio.to_thread(self._write, quotes, opportunities)
                self.batches_written += 1
            finally:
                self.queue.task_done()

    def _write(self, quotes, opportunities):
        try:
            self.storage.save_prices(quotes)
        except Exception as e:
            self._record_error(f"Failed to save {len(quotes)} prices: {e}")

        for opportunity in opportunities:
            try:
                self.storage.save_opportunity(opportunity)
            except Exception as e:
                self._record_error(
                    f"Failed to save opportunity "
                    f"{opportunity.buy_exchange}->{opportunity.sell_exchange}: {e}"
                )

    def _record_error(self, message: str):
        self.write_errors += 1
        logger.error(message)
        if self.metrics:
            self.metrics.record_persistence_failure()

    async def stop(self, timeout: float = 5.0):
        """Flush pending cycles (bounded by ``timeout``) then stop"""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self.queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {self.queue.qsize()} unsaved cycles on shutdown")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def get_state(self) -> dict:
        return {
            "pending": self.queue.qsize(),
            "batches_written": self.batches_written,
            "batches_dropped": self.batches_dropped,
            "write_errors": self.write_errors,
        }
