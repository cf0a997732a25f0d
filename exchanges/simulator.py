"""Simulated exchange for testing when real connections are blocked"""
import logging
import random
from typing import Optional

from src.core.opportunity import Quote
from src.core.utils import japan_now

logger = logging.getLogger(__name__)


# Realistic base price for simulation
BASE_PRICE = 15_000_000.0  # JPY per BTC


class SimulatedExchange:
    """
    Simulates an exchange with realistic price movements.
    Useful when network restrictions block real exchange connections.
    """

    def __init__(self, name: str, price_offset_percent: float = 0.0, seed: Optional[int] = None):
        """
        Args:
            name: Exchange name for display
            price_offset_percent: Base price offset to simulate different exchange prices
                                  e.g., 0.05 means prices are 0.05% higher than base
            seed: Optional seed for reproducible price paths
        """
        self.name = name
        self.price_offset = price_offset_percent / 100
        self.current_price = BASE_PRICE
        self.failures = 0
        self.last_error: Optional[str] = None
        self._random = random.Random(seed)

    async def fetch(self, session=None) -> Quote:
        """Generate the next simulated quote"""
        # Small random movement (-0.1% to +0.1%)
        movement = self._random.uniform(-0.001, 0.001)
        self.current_price *= 1 + movement

        # Apply exchange-specific offset
        adjusted_price = self.current_price * (1 + self.price_offset)

        # Create realistic spread (0.01% to 0.05%)
        spread_percent = self._random.uniform(0.0001, 0.0005)
        half_spread = adjusted_price * spread_percent / 2

        return Quote(
            exchange=self.name,
            last=adjusted_price,
            bid=adjusted_price - half_spread,
            ask=adjusted_price + half_spread,
            observed_at=japan_now(),
        )


def create_simulated_exchanges() -> list[SimulatedExchange]:
    """
    Create a set of simulated exchanges with slight price differences.
    The offsets create opportunities for the arbitrage engine to detect.
    """
    return [
        SimulatedExchange("bitFlyer-SIM", price_offset_percent=0.0),
        SimulatedExchange("Coincheck-SIM", price_offset_percent=0.15),  # Slightly higher
        SimulatedExchange("bitbank-SIM", price_offset_percent=-0.12),  # Slightly lower
    ]
