"""
Pytest configuration and fixtures for the arbitrage monitor tests.
"""

from datetime import datetime
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient

from dashboard import DashboardManager, create_app
from engine import ArbitrageEngine
from engine_fees import FeeCalculator, FeeSchedule
from engine_metrics import MetricsEngine
from engine_storage import InMemoryHistoryStorage
from src.core.opportunity import Quote
from src.core.snapshot import SnapshotStore
from src.core.utils import JST


FIXED_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=JST)


@pytest.fixture
def fee_schedules() -> dict:
    """Synthetic fee table for two venues"""
    return {
        "X": FeeSchedule(taker_fee_rate=0.001, maker_fee_rate=0.0005, jpy_withdrawal_fee=0, btc_withdrawal_fee=0.0005),
        "Y": FeeSchedule(taker_fee_rate=0.002, maker_fee_rate=-0.0002, jpy_withdrawal_fee=500, btc_withdrawal_fee=0.0),
    }


@pytest.fixture
def fee_calculator(fee_schedules) -> FeeCalculator:
    return FeeCalculator(schedules=fee_schedules, network_fee_btc=0.0001)


@pytest.fixture
def engine(fee_calculator) -> ArbitrageEngine:
    """Engine with a 0.1% gross threshold and 1 BTC reference quantity"""
    return ArbitrageEngine(fee_calculator=fee_calculator, threshold=0.1, reference_quantity=1)


@pytest.fixture
def make_quote():
    """Factory for quotes stamped with a fixed time"""
    def _make(exchange: str, bid: Optional[float], ask: Optional[float], last: Optional[float] = None) -> Quote:
        if last is None and bid is not None and ask is not None:
            last = (bid + ask) / 2
        return Quote(exchange=exchange, last=last, bid=bid, ask=ask, observed_at=FIXED_TIME)
    return _make


@pytest.fixture
def scenario_quotes(make_quote) -> list:
    """X is cheap, Y is expensive: one X->Y opportunity"""
    return [
        make_quote("X", bid=4_999_000, ask=5_001_000),
        make_quote("Y", bid=5_099_000, ask=5_101_000),
    ]


@pytest.fixture
def memory_storage() -> InMemoryHistoryStorage:
    return InMemoryHistoryStorage()


@pytest.fixture
def snapshot_store() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def metrics() -> MetricsEngine:
    """Metrics on a private registry"""
    return MetricsEngine(mode="simulation")


@pytest.fixture
def manager(snapshot_store, memory_storage, metrics) -> DashboardManager:
    return DashboardManager(snapshot_store, memory_storage, metrics=metrics)


@pytest.fixture
def client(manager) -> Generator[TestClient, None, None]:
    """Create synchronous test client"""
    with TestClient(create_app(manager)) as c:
        yield c
