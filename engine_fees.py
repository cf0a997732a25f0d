"""
Fee Model

Prices the round trip behind a cross-exchange arbitrage:
- Taker fee on the buy leg and on the sell leg
- JPY bank withdrawal fee on the sell exchange
- BTC withdrawal fee on the buy exchange plus the network fee, valued in JPY

Fee tables are plain configuration handed to the calculator, so tests and
alternative deployments can use synthetic schedules.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from src.core.opportunity import FeeBreakdown
from config import BTC_NETWORK_FEE, DEFAULT_FEE_SCHEDULE, FEE_SCHEDULES

logger = logging.getLogger(__name__)

SIDES = ("buy", "sell")
ORDER_TYPES = ("maker", "taker")


@dataclass(frozen=True)
class FeeSchedule:
    """Fee schedule for an exchange"""
    taker_fee_rate: float  # Fee for orders that remove liquidity
    maker_fee_rate: float  # Fee for orders that add liquidity, negative = rebate
    jpy_withdrawal_fee: float  # JPY per bank withdrawal
    btc_withdrawal_fee: float  # BTC per coin withdrawal

    def get_fee(self, is_maker: bool) -> float:
        return self.maker_fee_rate if is_maker else self.taker_fee_rate

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "FeeSchedule":
        return cls(
            taker_fee_rate=float(data["taker"]),
            maker_fee_rate=float(data["maker"]),
            jpy_withdrawal_fee=float(data.get("jpy_withdrawal", 0)),
            btc_withdrawal_fee=float(data.get("btc_withdrawal", 0)),
        )


DEFAULT_SCHEDULE = FeeSchedule.from_dict(DEFAULT_FEE_SCHEDULE)


def load_fee_schedules(raw: Mapping[str, Mapping[str, float]] = FEE_SCHEDULES) -> Dict[str, FeeSchedule]:
    """Build FeeSchedule objects from the config table"""
    return {exchange: FeeSchedule.from_dict(values) for exchange, values in raw.items()}


@dataclass(frozen=True)
class TradingCost:
    """Cost of a single buy or sell leg"""
    trade_value: float
    fee_rate: float
    fee_amount: float
    net_value: float  # cash paid (buy) or received (sell) including the fee


@dataclass(frozen=True)
class ArbitrageCost:
    """Fee-adjusted result of a buy/sell/withdraw round trip"""
    gross_profit: float
    total_costs: FeeBreakdown
    net_profit: float
    cost_breakdown: Dict = field(default_factory=dict)

    @property
    def profit_reduction(self) -> float:
        return self.gross_profit - self.net_profit


class FeeCalculator:
    """
    Computes trading and transfer costs from per-exchange fee schedules.

    Unknown exchanges resolve to ``default_schedule`` rather than zero fees.
    All methods are pure: no I/O and no mutation.
    """

    def __init__(
        self,
        schedules: Optional[Mapping[str, FeeSchedule]] = None,
        default_schedule: FeeSchedule = DEFAULT_SCHEDULE,
        network_fee_btc: float = BTC_NETWORK_FEE,
    ):
        self.schedules: Dict[str, FeeSchedule] = dict(
            load_fee_schedules() if schedules is None else schedules
        )
        self.default_schedule = default_schedule
        self.network_fee_btc = network_fee_btc

    def schedule_for(self, exchange: str) -> FeeSchedule:
        schedule = self.schedules.get(exchange)
        if schedule is None:
            logger.debug(f"No fee schedule for {exchange}, using default")
            return self.default_schedule
        return schedule

    def get_trading_fee(self, exchange: str) -> Dict[str, float]:
        schedule = self.schedule_for(exchange)
        return {"maker": schedule.maker_fee_rate, "taker": schedule.taker_fee_rate}

    def get_withdrawal_fee(self, exchange: str, currency: str = "jpy") -> float:
        schedule = self.schedule_for(exchange)
        currency = currency.lower()
        if currency == "jpy":
            return schedule.jpy_withdrawal_fee
        if currency == "btc":
            return schedule.btc_withdrawal_fee
        raise ValueError(f"Unsupported withdrawal currency: {currency}")

    def trading_cost(
        self,
        exchange: str,
        quantity: float,
        price: float,
        side: str = "buy",
        order_type: str = "taker",
    ) -> TradingCost:
        """Trading fee and net cash value of one leg"""
        if side not in SIDES:
            raise ValueError(f"side must be one of {SIDES}, got {side!r}")
        if order_type not in ORDER_TYPES:
            raise ValueError(f"order_type must be one of {ORDER_TYPES}, got {order_type!r}")

        fee_rate = self.schedule_for(exchange).get_fee(is_maker=(order_type == "maker"))
        trade_value = quantity * price
        fee_amount = abs(trade_value * fee_rate)
        net_value = trade_value + fee_amount if side == "buy" else trade_value - fee_amount

        return TradingCost(
            trade_value=trade_value,
            fee_rate=fee_rate,
            fee_amount=fee_amount,
            net_value=net_value,
        )

    def arbitrage_cost(
        self,
        buy_exchange: str,
        sell_exchange: str,
        quantity: float,
        buy_price: float,
        sell_price: float,
    ) -> ArbitrageCost:
        """
        Price a full round trip: buy on ``buy_exchange``, sell on
        ``sell_exchange``, withdraw JPY from the seller and move BTC from
        the buyer.
        """
        buy_leg = self.trading_cost(buy_exchange, quantity, buy_price, "buy", "taker")
        sell_leg = self.trading_cost(sell_exchange, quantity, sell_price, "sell", "taker")

        jpy_withdrawal_fee = self.get_withdrawal_fee(sell_exchange, "jpy")
        btc_withdrawal_fee = self.get_withdrawal_fee(buy_exchange, "btc")
        btc_transfer_cost = (btc_withdrawal_fee + self.network_fee_btc) * buy_price

        costs = FeeBreakdown(
            buy_trading_fee=buy_leg.fee_amount,
            sell_trading_fee=sell_leg.fee_amount,
            jpy_withdrawal_fee=jpy_withdrawal_fee,
            btc_transfer_cost=btc_transfer_cost,
        )

        gross_profit = (sell_price - buy_price) * quantity
        net_profit = gross_profit - costs.total

        return ArbitrageCost(
            gross_profit=gross_profit,
            total_costs=costs,
            net_profit=net_profit,
            cost_breakdown={
                "buy_exchange": {
                    "exchange": buy_exchange,
                    "trading_fee": buy_leg.fee_amount,
                    "fee_rate": buy_leg.fee_rate,
                    "btc_withdrawal_fee": btc_withdrawal_fee * buy_price,
                },
                "sell_exchange": {
                    "exchange": sell_exchange,
                    "trading_fee": sell_leg.fee_amount,
                    "fee_rate": sell_leg.fee_rate,
                    "jpy_withdrawal_fee": jpy_withdrawal_fee,
                },
                "network_fee": self.network_fee_btc * buy_price,
            },
        )

    def minimum_profitable_spread(
        self,
        buy_exchange: str,
        sell_exchange: str,
        quantity: float = 1.0,
        sample_price: float = 10_000_000,
    ) -> Dict[str, float]:
        """Spread needed to cover all round-trip costs at ``sample_price``"""
        if quantity <= 0 or sample_price <= 0:
            raise ValueError("quantity and sample_price must be positive")

        costs = self.arbitrage_cost(buy_exchange, sell_exchange, quantity, sample_price, sample_price)
        min_spread = costs.total_costs.total / quantity

        return {
            "min_spread": min_spread,
            "min_spread_percentage": (min_spread / sample_price) * 100,
            "break_even_spread": min_spread * 1.1,  # 10% safety margin
        }
