"""
Tests for history storage and the persistence worker.
"""

import asyncio
import threading
from datetime import timedelta

import pytest

from engine_metrics import MetricsEngine
from engine_storage import InMemoryHistoryStorage, PersistenceWorker, create_history_storage


class FlakyStorage(InMemoryHistoryStorage):
    """Fails on the first opportunity write"""

    def __init__(self):
        super().__init__()
        self.failed = False

    def save_opportunity(self, opportunity):
        if not self.failed:
            self.failed = True
            raise RuntimeError("connection reset")
        super().save_opportunity(opportunity)


class TestInMemoryHistoryStorage:
    """Tests for InMemoryHistoryStorage"""

    def test_save_and_read_prices(self, memory_storage, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)

        recent = memory_storage.get_recent_prices()

        assert [row["exchange"] for row in recent] == ["Y", "X"]  # newest first
        assert recent[0]["bid"] == 5_099_000
        assert "created_at" in recent[0]
        assert recent[0]["id"] > recent[1]["id"]

    def test_recent_limit(self, memory_storage, make_quote):
        memory_storage.save_prices([make_quote(f"E{i}", bid=1, ask=2) for i in range(10)])

        assert len(memory_storage.get_recent_prices(limit=3)) == 3

    def test_save_opportunity_record(self, memory_storage, engine, scenario_quotes):
        opp = engine.detect(scenario_quotes)[0]

        memory_storage.save_opportunity(opp)
        row = memory_storage.get_arbitrage_history()[0]

        assert row["exchange_from"] == "X"
        assert row["exchange_to"] == "Y"
        assert row["price_difference"] == 98_000
        assert row["is_profitable"] is True
        assert row["total_fees"] == pytest.approx(18_699.6)

    def test_price_history_window(self, memory_storage, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)
        memory_storage.prices[0]["created_at"] -= timedelta(hours=30)

        rows = memory_storage.get_price_history(hours=24)

        assert [row["exchange"] for row in rows] == ["Y"]
        assert set(rows[0]) == {"exchange", "price", "bid", "ask", "timestamp", "created_at"}

    def test_clear_all_data(self, memory_storage, engine, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)
        memory_storage.save_opportunity(engine.detect(scenario_quotes)[0])

        memory_storage.clear_all_data()

        assert memory_storage.get_recent_prices() == []
        assert memory_storage.get_arbitrage_history() == []
        assert memory_storage.get_state()["rows_written"] == 3

    def test_reads_while_another_thread_writes(self, memory_storage, make_quote, engine):
        quotes = [
            make_quote("X", bid=5_100_000, ask=5_000_000),
            make_quote("Y", bid=5_100_000, ask=5_000_000),
        ]
        opportunity = engine.detect(quotes)[0]
        for _ in range(5_000):
            memory_storage.save_prices(quotes)
        stop = threading.Event()

        def writer():
            while not stop.is_set():
                memory_storage.save_prices(quotes)
                memory_storage.save_opportunity(opportunity)

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(50):
                assert memory_storage.get_price_history(24)
                memory_storage.get_opportunity_history(24)
                memory_storage.get_recent_prices()
            memory_storage.clear_all_data()
            memory_storage.get_price_history(24)
        finally:
            stop.set()
            thread.join()

    def test_factory_without_dsn_uses_memory(self):
        assert isinstance(create_history_storage(""), InMemoryHistoryStorage)


class TestPersistenceWorker:
    """Tests for PersistenceWorker"""

    @pytest.mark.asyncio
    async def test_writes_submitted_cycles(self, memory_storage, engine, scenario_quotes):
        worker = PersistenceWorker(memory_storage)
        worker.start()

        assert worker.submit(scenario_quotes, engine.detect(scenario_quotes))
        await asyncio.wait_for(worker.queue.join(), 5)
        await worker.stop()

        assert len(memory_storage.get_recent_prices()) == 2
        assert len(memory_storage.get_arbitrage_history()) == 1
        assert worker.get_state()["batches_written"] == 1

    @pytest.mark.asyncio
    async def test_failing_record_does_not_stop_the_rest(self, engine, make_quote):
        storage = FlakyStorage()
        metrics = MetricsEngine()
        quotes = [
            make_quote("X", bid=5_100_000, ask=5_000_000),
            make_quote("Y", bid=5_100_000, ask=5_000_000),
        ]
        opportunities = engine.detect(quotes)
        worker = PersistenceWorker(storage, metrics=metrics)
        worker.start()

        worker.submit(quotes, opportunities)
        worker.submit(quotes, opportunities)
        await asyncio.wait_for(worker.queue.join(), 5)
        await worker.stop()

        assert len(storage.get_arbitrage_history()) == 3
        assert len(storage.get_recent_prices()) == 4
        assert worker.write_errors == 1
        assert metrics.get_metrics_summary()["persistence_failures"] == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops_cycle(self, memory_storage, scenario_quotes):
        worker = PersistenceWorker(memory_storage, max_queue=1)

        assert worker.submit(scenario_quotes, [])
        assert not worker.submit(scenario_quotes, [])
        assert worker.batches_dropped == 1

    @pytest.mark.asyncio
    async def test_stop_flushes_pending_cycles(self, memory_storage, scenario_quotes):
        worker = PersistenceWorker(memory_storage)
        worker.start()
        worker.submit(scenario_quotes, [])

        await worker.stop()

        assert len(memory_storage.get_recent_prices()) == 2
        assert worker.get_state()["pending"] == 0

    @pytest.mark.asyncio
    async def test_stop_without_start(self, memory_storage):
        await PersistenceWorker(memory_storage).stop()
