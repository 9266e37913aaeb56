"""
Order Tracking and Reconciliation
================================

Owns the authoritative set of resting orders, diffs desired quote layers
against it, and routes fills into inventory and PnL.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .inventory import InventoryState
from .order_manager import OrderSide, QuoteLayer
from ..utils.exceptions import ReconciliationMismatch

Slot = Tuple[OrderSide, int]


class OrderStatus(Enum):
    """Order status enumeration"""
    PENDING = "pending"
    LIVE = "live"
    CANCELLING = "cancelling"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


WORKING_STATUSES = (OrderStatus.PENDING, OrderStatus.LIVE)


@dataclass
class TrackedOrder:
    """Individual order representation"""
    order_id: int
    side: OrderSide
    price: float
    quantity: float
    layer_index: int
    status: OrderStatus = OrderStatus.PENDING
    filled_quantity: float = 0.0
    avg_fill_price: float = 0.0
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    # Status to restore if a cancel request is rejected
    status_before_cancel: Optional[OrderStatus] = None

    @property
    def remaining_quantity(self) -> float:
        return max(self.quantity - self.filled_quantity, 0.0)

    @property
    def is_working(self) -> bool:
        return self.status in WORKING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED)

    @property
    def slot(self) -> Slot:
        return self.side, self.layer_index

    def to_layer(self) -> QuoteLayer:
        return QuoteLayer(side=self.side, layer_index=self.layer_index,
                          price=self.price, quantity=self.quantity)


@dataclass
class ReconcileResult:
    """Cancel and submit intents for the execution collaborator"""
    cancels: List[int] = field(default_factory=list)
    submits: List[TrackedOrder] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.cancels and not self.submits

    @property
    def submit_layers(self) -> List[QuoteLayer]:
        return [order.to_layer() for order in self.submits]


class OrderTracker:
    """
    Order lifecycle manager:

    - Slot-wise (side, layer_index) diff of desired layers against working
      orders, cancel-replace when price or size drifts past tolerance
    - Engine-assigned, monotonic, never reused order ids
    - Fill handling into InventoryState (VWAP entry, realized PnL)
    - Cancel confirmation / rejection bookkeeping
    """

    def __init__(self,
                 tolerance: float = 0.0,
                 inventory: Optional[InventoryState] = None,
                 archive_size: int = 1000):
        self.tolerance = tolerance
        self.inventory = inventory if inventory is not None else InventoryState()

        self.orders: Dict[int, TrackedOrder] = {}
        self.archive: Deque[TrackedOrder] = deque(maxlen=archive_size)
        self._next_order_id = 1

        self.stats = {
            'orders_submitted': 0,
            'orders_cancelled': 0,
            'orders_filled': 0,
            'orders_rejected': 0,
            'cancel_requests': 0,
            'cancel_rejections': 0,
            'duplicate_slot_cancels': 0,
            'fills_processed': 0,
            'unknown_order_events': 0,
            'total_fill_volume': 0.0
        }

        logger.info(f"OrderTracker initialized: tolerance={tolerance}")

    def _allocate_order_id(self) -> int:
        order_id = self._next_order_id
        self._next_order_id += 1
        return order_id

    def working_orders(self) -> Dict[Slot, TrackedOrder]:
        """Pending/live orders keyed by slot, newest order per slot"""
        return {slot: orders[-1] for slot, orders in self._working_by_slot().items()}

    def _working_by_slot(self) -> Dict[Slot, List[TrackedOrder]]:
        """
        Pending/live orders grouped by slot, oldest first.

        A slot holds more than one working order after a cancel-replace whose
        cancel the venue rejected.
        """
        by_slot: Dict[Slot, List[TrackedOrder]] = {}
        for order in sorted(self.orders.values(), key=lambda o: o.order_id):
            if order.is_working:
                by_slot.setdefault(order.slot, []).append(order)
        return by_slot

    @property
    def active_order_count(self) -> int:
        return sum(1 for order in self.orders.values() if order.is_working)

    def get_order(self, order_id: int) -> Optional[TrackedOrder]:
        return self.orders.get(order_id)

    def _needs_replace(self, order: TrackedOrder, layer: QuoteLayer) -> bool:
        return (abs(order.price - layer.price) > self.tolerance or
                abs(order.remaining_quantity - layer.quantity) > self.tolerance)

    def _request_cancel(self, order: TrackedOrder) -> None:
        order.status_before_cancel = order.status
        order.status = OrderStatus.CANCELLING
        order.updated_at = time.time()
        self.stats['cancel_requests'] += 1

    def _create_order(self, layer: QuoteLayer) -> TrackedOrder:
        order = TrackedOrder(
            order_id=self._allocate_order_id(),
            side=layer.side,
            price=layer.price,
            quantity=layer.quantity,
            layer_index=layer.layer_index
        )
        self.orders[order.order_id] = order
        self.stats['orders_submitted'] += 1
        return order

    def reconcile(self, desired_layers: Iterable[QuoteLayer]) -> ReconcileResult:
        """
        Diff desired layers against working orders.

        Returns cancel ids for stale, orphaned or doubly occupied slots and freshly tracked
        PENDING orders for new or replaced slots.
        """
        desired: Dict[Slot, QuoteLayer] = {}
        for layer in desired_layers:
            if layer.slot in desired:
                logger.warning(f"Duplicate desired layer for slot {layer.slot}, keeping the last one")
            desired[layer.slot] = layer

        result = ReconcileResult()
        kept: Dict[Slot, TrackedOrder] = {}

        for slot, orders in self._working_by_slot().items():
            current = orders[-1]
            for stale in orders[:-1]:
                self._request_cancel(stale)
                result.cancels.append(stale.order_id)
                self.stats['duplicate_slot_cancels'] += 1

            layer = desired.get(slot)
            if layer is None or self._needs_replace(current, layer):
                self._request_cancel(current)
                result.cancels.append(current.order_id)
            else:
                kept[slot] = current

        for slot, layer in desired.items():
            if slot not in kept:
                result.submits.append(self._create_order(layer))

        result.cancels.sort()

        if not result.is_empty:
            logger.debug(f"Reconcile: {len(result.cancels)} cancels, {len(result.submits)} submits")

        return result

    def clear_all(self) -> List[int]:
        """Request cancellation of every pending/live order"""
        cancels = []
        for order in self.orders.values():
            if order.is_working:
                self._request_cancel(order)
                cancels.append(order.order_id)

        if cancels:
            logger.info(f"Cancelling all {len(cancels)} working orders")
        return sorted(cancels)

    def acknowledge(self, order_id: int) -> bool:
        """Mark a submitted order as resting on the venue"""
        order = self.orders.get(order_id)
        if order is None:
            self._report_unknown(order_id, "acknowledge")
            return False
        if order.status == OrderStatus.PENDING:
            order.status = OrderStatus.LIVE
            order.updated_at = time.time()
        return True

    def on_fill(self, order_id: int, filled_qty: float, fill_price: float) -> Optional[float]:
        """
        Handle a fill report.

        Returns the PnL realized by the fill, or None when the order id is
        unknown (ignored, inventory untouched).
        """
        order = self.orders.get(order_id)
        if order is None:
            self._report_unknown(order_id, "fill", filled_qty=filled_qty, fill_price=fill_price)
            return None

        if filled_qty <= 0:
            logger.warning(f"Ignoring non-positive fill {filled_qty} for order {order_id}")
            return 0.0

        if filled_qty > order.remaining_quantity + 1e-12:
            logger.warning(f"Overfill on order {order_id}: {filled_qty} > remaining "
                           f"{order.remaining_quantity}")

        previous_filled = order.filled_quantity
        order.filled_quantity += filled_qty
        order.avg_fill_price = (
            order.avg_fill_price * previous_filled + fill_price * filled_qty
        ) / order.filled_quantity
        order.updated_at = time.time()

        realized = self.inventory.apply_fill(order.side, filled_qty, fill_price)

        self.stats['fills_processed'] += 1
        self.stats['total_fill_volume'] += filled_qty

        if order.remaining_quantity <= 1e-12:
            order.status = OrderStatus.FILLED
            self._retire(order)
            self.stats['orders_filled'] += 1

        logger.info(f"Fill processed: {order.side.value} {filled_qty:.4f} @ {fill_price:.2f} "
                    f"(order {order_id}, layer {order.layer_index}) -> position "
                    f"{self.inventory.position:.4f}, realized {self.inventory.realized_pnl:.4f}")

        return realized

    def on_cancel_confirmed(self, order_id: int) -> bool:
        order = self.orders.get(order_id)
        if order is None:
            self._report_unknown(order_id, "cancel confirmation")
            return False

        order.status = OrderStatus.CANCELLED
        self._retire(order)
        self.stats['orders_cancelled'] += 1
        return True

    def on_submit_rejected(self, order_id: int, reason: str = "") -> bool:
        """Venue refused a submit: free the slot for the next tick"""
        order = self.orders.get(order_id)
        if order is None:
            self._report_unknown(order_id, "submit rejection")
            return False

        order.status = OrderStatus.REJECTED
        self._retire(order)
        self.stats['orders_rejected'] += 1
        logger.warning(f"Order {order_id} rejected: {reason}")
        return True

    def on_cancel_rejected(self, order_id: int, reason: str = "") -> bool:
        """Venue refused a cancel: restore the order's prior status"""
        order = self.orders.get(order_id)
        if order is None:
            self._report_unknown(order_id, "cancel rejection")
            return False

        if order.status == OrderStatus.CANCELLING:
            order.status = order.status_before_cancel or OrderStatus.LIVE
            order.status_before_cancel = None
            order.updated_at = time.time()
        self.stats['cancel_rejections'] += 1
        logger.warning(f"Cancel of order {order_id} rejected: {reason}")
        return True

    def _retire(self, order: TrackedOrder) -> None:
        self.orders.pop(order.order_id, None)
        self.archive.append(order)

    def _report_unknown(self, order_id: int, event: str, **details) -> None:
        self.stats['unknown_order_events'] += 1
        mismatch = ReconciliationMismatch(
            f"{event} for unknown order {order_id}",
            order_id=order_id,
            details=details
        )
        logger.warning(f"Ignoring venue event: {mismatch}")

    def get_statistics(self) -> Dict:
        return {
            **self.stats,
            'active_order_count': self.active_order_count,
            'tracked_order_count': len(self.orders),
            'filled_count': self.inventory.fill_count,
            'buy_volume': self.inventory.buy_volume,
            'sell_volume': self.inventory.sell_volume,
            'next_order_id': self._next_order_id
        }

    def reset(self) -> None:
        """Drop all tracked state. Order ids keep increasing."""
        self.orders.clear()
        self.archive.clear()
        self.inventory.reset()
        for key in self.stats:
            self.stats[key] = 0.0 if isinstance(self.stats[key], float) else 0
        logger.info("OrderTracker reset")
