"""
Order Book Snapshot Model
========================

Immutable per-tick view of the book handed to the engine by the
simulation / market-data collaborator.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from ..utils.exceptions import DegenerateMarketCondition


@dataclass(frozen=True)
class OrderBookLevel:
    """Individual price level in order book"""
    price: float
    quantity: float


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Complete order book snapshot at a point in time"""
    bids: Tuple[OrderBookLevel, ...]
    asks: Tuple[OrderBookLevel, ...]
    timestamp: float = field(default_factory=time.time)
    symbol: str = ""

    @classmethod
    def from_levels(cls,
                    bids: Iterable[Sequence[float]],
                    asks: Iterable[Sequence[float]],
                    timestamp: Optional[float] = None,
                    symbol: str = "") -> "OrderBookSnapshot":
        """
        Build a snapshot from [[price, qty], ...] arrays.

        Zero-quantity levels are skipped. Levels are taken in the order given;
        ordering is checked by validate(), not repaired.
        """
        bid_levels = tuple(OrderBookLevel(float(p), float(q)) for p, q in bids if float(q) > 0)
        ask_levels = tuple(OrderBookLevel(float(p), float(q)) for p, q in asks if float(q) > 0)
        return cls(
            bids=bid_levels,
            asks=ask_levels,
            timestamp=time.time() if timestamp is None else float(timestamp),
            symbol=symbol
        )

    @classmethod
    def from_depth(cls, depth: dict, symbol: str = "") -> "OrderBookSnapshot":
        """Build from a depth message: {'bids': [[p, q]], 'asks': [[p, q]], 'timestamp': t}"""
        return cls.from_levels(
            depth.get('bids', []),
            depth.get('asks', []),
            timestamp=depth.get('timestamp'),
            symbol=depth.get('symbol', symbol)
        )

    @property
    def best_bid(self) -> Optional[OrderBookLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[OrderBookLevel]:
        return self.asks[0] if self.asks else None

    def midprice(self) -> Optional[float]:
        """Calculate midprice from best bid/ask"""
        if not self.bids or not self.asks:
            return None
        return (self.bids[0].price + self.asks[0].price) / 2.0

    def spread(self) -> Optional[float]:
        """Calculate bid-ask spread"""
        if not self.bids or not self.asks:
            return None
        return self.asks[0].price - self.bids[0].price

    def spread_bps(self) -> Optional[float]:
        """Calculate spread in basis points"""
        mid = self.midprice()
        spread = self.spread()
        if mid is None or spread is None or mid == 0:
            return None
        return (spread / mid) * 10000

    def top_levels(self, levels: int) -> Tuple[List[OrderBookLevel], List[OrderBookLevel]]:
        return list(self.bids[:levels]), list(self.asks[:levels])

    def validate(self) -> None:
        """
        Check the book invariants.

        Raises:
            DegenerateMarketCondition: empty side, non-finite level,
                unsorted levels, or crossed/locked top of book
        """
        if not self.bids or not self.asks:
            raise DegenerateMarketCondition(
                f"Empty book side: {len(self.bids)} bids, {len(self.asks)} asks",
                details={'symbol': self.symbol, 'timestamp': self.timestamp}
            )

        for level in self.bids + self.asks:
            if not (math.isfinite(level.price) and math.isfinite(level.quantity)):
                raise DegenerateMarketCondition(f"Non-finite book level: {level}")
            if level.price <= 0 or level.quantity < 0:
                raise DegenerateMarketCondition(f"Invalid book level: {level}")

        for upper, lower in zip(self.bids, self.bids[1:]):
            if lower.price >= upper.price:
                raise DegenerateMarketCondition(
                    f"Bid levels not strictly decreasing: {upper.price} then {lower.price}")

        for lower, upper in zip(self.asks, self.asks[1:]):
            if upper.price <= lower.price:
                raise DegenerateMarketCondition(
                    f"Ask levels not strictly increasing: {lower.price} then {upper.price}")

        best_bid = self.bids[0].price
        best_ask = self.asks[0].price
        if best_bid >= best_ask:
            raise DegenerateMarketCondition(
                f"Crossed book: bid={best_bid}, ask={best_ask}",
                details={'best_bid': best_bid, 'best_ask': best_ask}
            )

    def is_healthy(self) -> bool:
        try:
            self.validate()
        except DegenerateMarketCondition:
            return False
        return True
