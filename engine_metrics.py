"""
Prometheus Metrics

Tracks:
- Polling cycles and their duration
- Quote fetch failures per exchange
- Detected opportunities (gross and fee-adjusted)
- Persistence failures
- Dashboard WebSocket clients

Each MetricsEngine owns its CollectorRegistry, so several instances (tests,
embedded use) never collide on metric names.
"""

import logging
from collections import defaultdict
from typing import Dict, Optional, Sequence

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    CONTENT_TYPE_LATEST,
    generate_latest,
)

from src.core.opportunity import ArbitrageOpportunity

logger = logging.getLogger(__name__)


class MetricsEngine:
    """Central metrics collection and Prometheus export"""

    def __init__(self, registry: Optional[CollectorRegistry] = None, mode: str = "live"):
        self.registry = registry or CollectorRegistry()

        # ===== POLLING METRICS =====
        self.cycles_total = Counter(
            'arb_cycles_total',
            'Completed polling cycles',
            registry=self.registry,
        )

        self.cycle_duration = Histogram(
            'arb_cycle_duration_seconds',
            'Duration of a fetch-detect-publish cycle',
            buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
            registry=self.registry,
        )

        self.quotes_received = Gauge(
            'arb_quotes_received',
            'Quotes received in the last cycle',
            registry=self.registry,
        )

        self.fetch_failures_total = Counter(
            'arb_fetch_failures_total',
            'Failed quote fetches',
            ['exchange'],
            registry=self.registry,
        )

        # ===== ARBITRAGE METRICS =====
        self.opportunities_detected_total = Counter(
            'arb_opportunities_detected_total',
            'Opportunities passing the gross spread threshold',
            ['profitable'],  # "true" / "false" after fees
            registry=self.registry,
        )

        self.opportunity_spread_percent = Histogram(
            'arb_opportunity_gross_spread_percent',
            'Gross spread percentage of detected opportunities',
            buckets=[0.1, 0.2, 0.5, 1.0, 2.0, 5.0],
            registry=self.registry,
        )

        self.best_net_profit = Gauge(
            'arb_best_net_profit_jpy',
            'Net profit of the top-ranked opportunity in the last cycle',
            registry=self.registry,
        )

        # ===== SYSTEM METRICS =====
        self.persistence_failures_total = Counter(
            'arb_persistence_failures_total',
            'Failed history writes',
            registry=self.registry,
        )

        self.websocket_connections = Gauge(
            'arb_websocket_connections',
            'Active dashboard WebSocket connections',
            registry=self.registry,
        )

        self.bot_info = Info('arb_bot', 'Arbitrage monitor information', registry=self.registry)
        self.bot_info.info({'version': '1.0.0', 'mode': mode, 'pair': 'BTC/JPY'})

        # Plain counters for the JSON summary
        self._cycles = 0
        self._fetch_failures: Dict[str, int] = defaultdict(int)
        self._opportunities = 0
        self._profitable_opportunities = 0
        self._persistence_failures = 0
        self._last_cycle_seconds: Optional[float] = None

    def record_cycle(self, duration_seconds: float, quote_count: int):
        self.cycles_total.inc()
        self.cycle_duration.observe(duration_seconds)
        self.quotes_received.set(quote_count)
        self._cycles += 1
        self._last_cycle_seconds = duration_seconds

    def record_fetch_failure(self, exchange: str):
        self.fetch_failures_total.labels(exchange=exchange).inc()
        self._fetch_failures[exchange] += 1

    def record_opportunities(self, opportunities: Sequence[ArbitrageOpportunity]):
        for opp in opportunities:
            profitable = "true" if opp.is_profitable_after_fees else "false"
            self.opportunities_detected_total.labels(profitable=profitable).inc()
            self.opportunity_spread_percent.observe(opp.gross_spread_percent)
            self._opportunities += 1
            if opp.is_profitable_after_fees:
                self._profitable_opportunities += 1

        self.best_net_profit.set(opportunities[0].net_profit if opportunities else 0)

    def record_persistence_failure(self):
        self.persistence_failures_total.inc()
        self._persistence_failures += 1

    def record_websocket_connections(self, count: int):
        self.websocket_connections.set(count)

    def get_prometheus_metrics(self) -> bytes:
        return generate_latest(self.registry)

    def get_prometheus_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def get_metrics_summary(self) -> dict:
        return {
            "cycles": self._cycles,
            "last_cycle_seconds": self._last_cycle_seconds,
            "fetch_failures": dict(self._fetch_failures),
            "opportunities_detected": self._opportunities,
            "profitable_after_fees": self._profitable_opportunities,
            "persistence_failures": self._persistence_failures,
        }
