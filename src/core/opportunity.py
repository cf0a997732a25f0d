"""
Data classes for quotes and arbitrage opportunities.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from .utils import japan_now


@dataclass(frozen=True)
class Quote:
    """One exchange's BTC/JPY ticker for a single polling cycle"""
    exchange: str
    last: Optional[float]
    bid: Optional[float]  # None when the exchange did not report it
    ask: Optional[float]
    observed_at: datetime = field(default_factory=japan_now)

    @property
    def has_book(self) -> bool:
        """True when at least one side of the book is usable"""
        return self.bid is not None or self.ask is not None

    @property
    def mid(self) -> Optional[float]:
        if self.bid is None or self.ask is None:
            return None
        return (self.bid + self.ask) / 2

    @property
    def spread_percent(self) -> Optional[float]:
        """Bid-ask spread as percentage of mid"""
        mid = self.mid
        if not mid:
            return None
        return ((self.ask - self.bid) / mid) * 100

    def to_dict(self) -> dict:
        spread = self.spread_percent
        return {
            "exchange": self.exchange,
            "price": self.last,
            "bid": self.bid,
            "ask": self.ask,
            "mid": self.mid,
            "spread_percent": round(spread, 4) if spread is not None else None,
            "timestamp": self.observed_at.isoformat(),
        }

    def to_record(self) -> Dict[str, Any]:
        """Row for the price history table"""
        return {
            "exchange": self.exchange,
            "price": self.last,
            "bid": self.bid,
            "ask": self.ask,
            "timestamp": self.observed_at.isoformat(),
        }


@dataclass(frozen=True)
class FeeBreakdown:
    """Round-trip costs of one arbitrage cycle, all in JPY"""
    buy_trading_fee: float
    sell_trading_fee: float
    jpy_withdrawal_fee: float
    btc_transfer_cost: float  # withdrawal + network fee valued at the buy price

    @property
    def total(self) -> float:
        return (
            self.buy_trading_fee
            + self.sell_trading_fee
            + self.jpy_withdrawal_fee
            + self.btc_transfer_cost
        )

    def to_dict(self) -> dict:
        return {
            "buy_trading_fee": round(self.buy_trading_fee, 2),
            "sell_trading_fee": round(self.sell_trading_fee, 2),
            "jpy_withdrawal_fee": round(self.jpy_withdrawal_fee, 2),
            "btc_transfer_cost": round(self.btc_transfer_cost, 2),
            "total": round(self.total, 2),
        }


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """A cross-exchange opportunity: buy at one exchange's ask, sell at another's bid"""
    buy_exchange: str
    sell_exchange: str
    buy_price: float  # Ask price on buy exchange
    sell_price: float  # Bid price on sell exchange
    gross_spread: float
    gross_spread_percent: float
    reference_quantity: float
    gross_profit: float
    fee_breakdown: FeeBreakdown
    net_profit: float
    net_profit_percent: float
    observed_at: datetime

    # Other side of each book, for display
    buy_exchange_bid: Optional[float] = None
    sell_exchange_ask: Optional[float] = None
    cost_breakdown: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def total_fees(self) -> float:
        return self.fee_breakdown.total

    @property
    def is_profitable_after_fees(self) -> bool:
        return self.net_profit > 0

    def to_dict(self) -> dict:
        return {
            "buy_exchange": self.buy_exchange,
            "sell_exchange": self.sell_exchange,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "buy_exchange_bid": self.buy_exchange_bid,
            "sell_exchange_ask": self.sell_exchange_ask,
            "gross_spread": self.gross_spread,
            "gross_spread_percent": round(self.gross_spread_percent, 4),
            "reference_quantity": self.reference_quantity,
            "gross_profit": round(self.gross_profit, 2),
            "net_profit": round(self.net_profit, 2),
            "net_profit_percent": round(self.net_profit_percent, 4),
            "total_fees": round(self.total_fees, 2),
            "fee_breakdown": self.fee_breakdown.to_dict(),
            "cost_breakdown": self.cost_breakdown,
            "is_profitable_after_fees": self.is_profitable_after_fees,
            "timestamp": self.observed_at.isoformat(),
        }

    def to_record(self) -> Dict[str, Any]:
        """Row for the arbitrage_opportunities table"""
        return {
            "exchange_from": self.buy_exchange,
            "exchange_to": self.sell_exchange,
            "price_from": self.buy_price,
            "price_to": self.sell_price,
            "price_difference": self.gross_spread,
            "percentage_difference": self.gross_spread_percent,
            "net_profit": self.net_profit,
            "net_profit_percentage": self.net_profit_percent,
            "total_fees": self.total_fees,
            "is_profitable": self.is_profitable_after_fees,
            "timestamp": self.observed_at.isoformat(),
        }

    @staticmethod
    def csv_headers() -> List[str]:
        """CSV headers for export"""
        return [
            "exchange_from",
            "exchange_to",
            "price_from",
            "price_to",
            "price_difference",
            "percentage_difference",
            "net_profit",
            "net_profit_percentage",
            "total_fees",
            "is_profitable",
            "timestamp",
            "created_at",
        ]
