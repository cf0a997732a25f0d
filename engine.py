"""Arbitrage detection engine"""
import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from config import MIN_PROFIT_THRESHOLD, REFERENCE_QUANTITY
from engine_fees import FeeCalculator
from src.core.opportunity import ArbitrageOpportunity, Quote
from src.core.utils import format_jpy, japan_now

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when the engine is configured with invalid parameters"""


class EngineSettings(BaseModel):
    """Validated detection parameters"""
    threshold: float = Field(default=MIN_PROFIT_THRESHOLD, ge=0)  # percent
    reference_quantity: float = Field(default=REFERENCE_QUANTITY, gt=0)  # BTC

    @field_validator("threshold", "reference_quantity")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value


def rank_opportunities(opportunities: Iterable[ArbitrageOpportunity]) -> List[ArbitrageOpportunity]:
    """
    Order opportunities for presentation.

    Profitable-after-fees first, then by net profit descending. ``sorted`` is
    stable, so ties keep detection order.
    """
    return sorted(
        opportunities,
        key=lambda o: (not o.is_profitable_after_fees, -o.net_profit),
    )


class ArbitrageEngine:
    """
    Core engine for detecting arbitrage opportunities.

    Arbitrage opportunity exists when:
    - Exchange A's ask (buy) price < Exchange B's bid (sell) price
    - The gross spread percentage reaches the threshold

    Simple arbitrage formula:
    gross% = ((sell_bid - buy_ask) / buy_ask) * 100

    Every opportunity that passes the gate is priced by the fee model, and
    the returned list is ranked by net profit. The threshold gates on the
    gross spread; fees only affect the ranking and the profitability flag.
    """

    def __init__(
        self,
        fee_calculator: Optional[FeeCalculator] = None,
        threshold: float = MIN_PROFIT_THRESHOLD,
        reference_quantity: float = REFERENCE_QUANTITY,
    ):
        try:
            self.settings = EngineSettings(threshold=threshold, reference_quantity=reference_quantity)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e

        self.fee_calculator = fee_calculator or FeeCalculator()

    @property
    def threshold(self) -> float:
        return self.settings.threshold

    @property
    def reference_quantity(self) -> float:
        return self.settings.reference_quantity

    def detect(
        self,
        quotes: Sequence[Quote],
        observed_at: Optional[datetime] = None,
    ) -> List[ArbitrageOpportunity]:
        """Find and rank opportunities across all exchange pairs of one cycle"""
        usable = [q for q in quotes if q.has_book]
        if len(usable) < 2:
            return []

        observed_at = observed_at or japan_now()
        opportunities = []

        # Compare all exchange pairs, both directions
        for i, first in enumerate(usable):
            for second in usable[i + 1:]:
                if first.exchange == second.exchange:
                    logger.warning(f"Duplicate quote for {first.exchange} in one cycle, skipping pair")
                    continue

                opp1 = self._calculate_opportunity(first, second, observed_at)
                if opp1:
                    opportunities.append(opp1)

                opp2 = self._calculate_opportunity(second, first, observed_at)
                if opp2:
                    opportunities.append(opp2)

        return rank_opportunities(opportunities)

    def _calculate_opportunity(
        self,
        buy_quote: Quote,
        sell_quote: Quote,
        observed_at: datetime,
    ) -> Optional[ArbitrageOpportunity]:
        """
        Evaluate buying on one exchange and selling on another.

        Buy at ask price (what sellers want)
        Sell at bid price (what buyers offer)
        """
        buy_price = buy_quote.ask
        sell_price = sell_quote.bid

        if buy_price is None or sell_price is None:
            return None

        if buy_price <= 0:
            logger.warning(
                f"Ignoring non-positive ask {buy_price} from {buy_quote.exchange}"
            )
            return None

        if not buy_price < sell_price:
            return None

        gross_spread = sell_price - buy_price
        gross_spread_percent = gross_spread / buy_price * 100

        if gross_spread_percent < self.threshold:
            return None

        quantity = self.reference_quantity
        costs = self.fee_calculator.arbitrage_cost(
            buy_quote.exchange,
            sell_quote.exchange,
            quantity,
            buy_price,
            sell_price,
        )

        return ArbitrageOpportunity(
            buy_exchange=buy_quote.exchange,
            sell_exchange=sell_quote.exchange,
            buy_price=buy_price,
            sell_price=sell_price,
            gross_spread=gross_spread,
            gross_spread_percent=gross_spread_percent,
            reference_quantity=quantity,
            gross_profit=costs.gross_profit,
            fee_breakdown=costs.total_costs,
            net_profit=costs.net_profit,
            net_profit_percent=costs.net_profit / buy_price * 100,
            observed_at=observed_at,
            buy_exchange_bid=buy_quote.bid,
            sell_exchange_ask=sell_quote.ask,
            cost_breakdown=costs.cost_breakdown,
        )

    @staticmethod
    def format_opportunity_message(opportunity: ArbitrageOpportunity) -> str:
        """One-line log/notification summary"""
        return (
            f"Arbitrage Opportunity: Buy at {opportunity.buy_exchange} "
            f"(Ask: {format_jpy(opportunity.buy_price)}) "
            f"and sell at {opportunity.sell_exchange} "
            f"(Bid: {format_jpy(opportunity.sell_price)}) "
            f"for {opportunity.gross_spread_percent:.2f}% gross, "
            f"net {format_jpy(opportunity.net_profit)} after fees"
        )

    @staticmethod
    def calculate_potential_profit(opportunity: ArbitrageOpportunity, amount: float = 1) -> float:
        """Gross JPY profit of trading ``amount`` BTC at the quoted prices"""
        return amount * opportunity.sell_price - amount * opportunity.buy_price

    def get_config(self) -> dict:
        return {
            "threshold": self.threshold,
            "reference_quantity": self.reference_quantity,
            "fee_schedules": sorted(self.fee_calculator.schedules),
        }
