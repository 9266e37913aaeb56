"""
Strategy Interface
=================

Common contract for tick-driven strategies. The market making engine is
the implementation in this package; alternative strategies plug into the
same runner through this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ..data_ingestion.order_book import OrderBookSnapshot
from .order_tracker import TrackedOrder


@dataclass
class TickResult:
    """Order intents and diagnostics produced by one tick"""
    timestamp: float
    cancels: List[int] = field(default_factory=list)
    submits: List[TrackedOrder] = field(default_factory=list)
    degraded: bool = False
    reason: str = ""

    @property
    def is_noop(self) -> bool:
        return not self.cancels and not self.submits


class Strategy(ABC):
    """Tick-driven strategy contract"""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def on_tick(self, snapshot: OrderBookSnapshot) -> TickResult:
        """Process one snapshot and return the order intents for it"""

    def on_fill(self, order_id: int, filled_qty: float, fill_price: float) -> Optional[float]:
        return None

    def on_cancel_confirmed(self, order_id: int) -> bool:
        return False

    def shutdown(self) -> List[int]:
        return []
