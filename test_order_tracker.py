"""
Tests for order reconciliation, fills and inventory accounting.
"""

import pytest

from mm_engine.strategy.inventory import InventoryState
from mm_engine.strategy.order_manager import OrderSide, QuoteLayer
from mm_engine.strategy.order_tracker import OrderStatus, OrderTracker


def ladder(bid_price=99.0, ask_price=101.0, quantity=1.0):
    return [
        QuoteLayer(OrderSide.BID, 0, bid_price, quantity),
        QuoteLayer(OrderSide.BID, 1, bid_price - 0.5, quantity),
        QuoteLayer(OrderSide.ASK, 0, ask_price, quantity),
        QuoteLayer(OrderSide.ASK, 1, ask_price + 0.5, quantity),
    ]


@pytest.fixture
def tracker():
    return OrderTracker()


def order_for(tracker, side, layer_index):
    return tracker.working_orders()[(side, layer_index)]


class TestReconcile:
    """Desired layers against resting orders"""

    def test_initial_submit(self, tracker):
        result = tracker.reconcile(ladder())

        assert result.cancels == []
        assert [o.order_id for o in result.submits] == [1, 2, 3, 4]
        assert all(o.status == OrderStatus.PENDING for o in result.submits)
        assert result.submit_layers == ladder()
        assert tracker.active_order_count == 4

    def test_identical_desired_is_noop(self, tracker):
        tracker.reconcile(ladder())
        assert tracker.reconcile(ladder()).is_empty

    def test_price_change_cancel_replaces_slot(self, tracker):
        tracker.reconcile(ladder())
        old = order_for(tracker, OrderSide.BID, 0)

        desired = ladder()
        desired[0] = QuoteLayer(OrderSide.BID, 0, 98.9, 1.0)
        result = tracker.reconcile(desired)

        assert result.cancels == [old.order_id]
        assert len(result.submits) == 1
        assert result.submits[0].slot == (OrderSide.BID, 0)
        assert result.submits[0].price == 98.9
        assert tracker.get_order(old.order_id).status == OrderStatus.CANCELLING

    def test_tolerance_suppresses_small_moves(self):
        tracker = OrderTracker(tolerance=0.01)
        tracker.reconcile(ladder())
        assert tracker.reconcile(ladder(bid_price=99.005, ask_price=101.005)).is_empty
        assert not tracker.reconcile(ladder(bid_price=99.05)).is_empty

    def test_orphan_slot_cancelled(self, tracker):
        tracker.reconcile(ladder())
        desired = [layer for layer in ladder() if layer.side == OrderSide.BID]

        result = tracker.reconcile(desired)
        assert result.cancels == [3, 4]
        assert result.submits == []

    def test_at_most_one_working_order_per_slot(self, tracker):
        tracker.reconcile(ladder())
        tracker.reconcile(ladder(bid_price=98.0, ask_price=102.0))

        working = [o for o in tracker.orders.values() if o.is_working]
        slots = [o.slot for o in working]
        assert len(slots) == len(set(slots)) == 4

    def test_ids_monotonic_never_reused(self, tracker):
        seen = []
        for i in range(5):
            result = tracker.reconcile(ladder(bid_price=99.0 - i, ask_price=101.0 + i))
            for order_id in result.cancels:
                tracker.on_cancel_confirmed(order_id)
            seen.extend(o.order_id for o in result.submits)

        assert seen == sorted(seen)
        assert len(seen) == len(set(seen)) == 20

    def test_rejected_cancel_during_replace_is_cancelled_next_pass(self, tracker):
        tracker.reconcile(ladder())
        for order_id in (1, 2, 3, 4):
            tracker.acknowledge(order_id)

        replaced = tracker.reconcile(ladder(bid_price=98.0, ask_price=102.0))
        assert replaced.cancels == [1, 2, 3, 4]
        for order_id in replaced.cancels:
            tracker.on_cancel_rejected(order_id, "venue busy")
        assert tracker.active_order_count == 8

        # Same desired ladder: only the orders left behind are cancelled
        result = tracker.reconcile(ladder(bid_price=98.0, ask_price=102.0))
        assert result.cancels == [1, 2, 3, 4]
        assert result.submits == []
        assert tracker.stats['duplicate_slot_cancels'] == 4
        assert sorted(o.order_id for o in tracker.working_orders().values()) == [5, 6, 7, 8]

    def test_clear_all(self, tracker):
        tracker.reconcile(ladder())
        assert tracker.clear_all() == [1, 2, 3, 4]
        assert tracker.active_order_count == 0
        assert tracker.clear_all() == []

    def test_reset_keeps_id_sequence(self, tracker):
        tracker.reconcile(ladder())
        tracker.reset()
        assert tracker.reconcile(ladder()).submits[0].order_id == 5


class TestOrderLifecycle:
    """Acknowledgements, cancels and rejections"""

    def test_acknowledge(self, tracker):
        tracker.reconcile(ladder())
        assert tracker.acknowledge(1)
        assert tracker.get_order(1).status == OrderStatus.LIVE
        assert not tracker.acknowledge(99)

    def test_cancel_confirmed_removes_order(self, tracker):
        tracker.reconcile(ladder())
        tracker.clear_all()
        assert tracker.on_cancel_confirmed(1)
        assert tracker.get_order(1) is None
        assert tracker.archive[-1].status == OrderStatus.CANCELLED

    def test_cancel_rejected_restores_status(self, tracker):
        tracker.reconcile(ladder())
        tracker.acknowledge(1)
        tracker.clear_all()

        assert tracker.on_cancel_rejected(1, "too late")
        assert tracker.get_order(1).status == OrderStatus.LIVE
        assert tracker.get_order(2).status == OrderStatus.CANCELLING

    def test_submit_rejected_frees_slot(self, tracker):
        tracker.reconcile(ladder())
        assert tracker.on_submit_rejected(1, "post-only would cross")
        assert tracker.get_order(1) is None

        result = tracker.reconcile(ladder())
        assert [o.order_id for o in result.submits] == [5]
        assert result.submits[0].slot == (OrderSide.BID, 0)


class TestFills:
    """Fill handling and PnL"""

    def test_round_trip_realizes_pnl(self, tracker):
        tracker.reconcile(ladder(bid_price=49999.95, ask_price=50000.15, quantity=0.01))
        bid = order_for(tracker, OrderSide.BID, 0)
        ask = order_for(tracker, OrderSide.ASK, 0)

        assert tracker.on_fill(bid.order_id, 0.01, 49999.95) == 0.0
        assert tracker.inventory.position == pytest.approx(0.01)
        assert tracker.inventory.avg_entry_price == pytest.approx(49999.95)

        realized = tracker.on_fill(ask.order_id, 0.01, 50000.15)
        assert realized == pytest.approx(0.002)
        assert tracker.inventory.position == pytest.approx(0.0)
        assert tracker.inventory.realized_pnl == pytest.approx(0.002)

        stats = tracker.get_statistics()
        assert stats['filled_count'] == 2
        assert stats['buy_volume'] == pytest.approx(0.01)
        assert stats['sell_volume'] == pytest.approx(0.01)
        assert stats['active_order_count'] == 2

    def test_partial_fill_keeps_order_working(self, tracker):
        tracker.reconcile(ladder())
        tracker.acknowledge(1)

        tracker.on_fill(1, 0.4, 99.0)
        order = tracker.get_order(1)
        assert order.status == OrderStatus.LIVE
        assert order.remaining_quantity == pytest.approx(0.6)

        tracker.on_fill(1, 0.6, 99.0)
        assert tracker.get_order(1) is None
        assert tracker.archive[-1].status == OrderStatus.FILLED
        assert tracker.inventory.position == pytest.approx(1.0)

    def test_partially_filled_slot_is_topped_up(self, tracker):
        tracker.reconcile(ladder())
        tracker.on_fill(1, 0.4, 99.0)

        result = tracker.reconcile(ladder())
        assert result.cancels == [1]
        assert result.submits[0].quantity == 1.0

    def test_unknown_order_ignored(self, tracker):
        assert tracker.on_fill(42, 1.0, 100.0) is None
        assert tracker.inventory.position == 0.0
        assert tracker.stats['unknown_order_events'] == 1

    def test_fill_while_cancelling_counts(self, tracker):
        tracker.reconcile(ladder())
        tracker.clear_all()
        tracker.on_fill(3, 1.0, 101.0)
        assert tracker.inventory.position == pytest.approx(-1.0)


class TestInventoryState:

    def test_vwap_entry(self):
        inv = InventoryState()
        inv.apply_fill(OrderSide.BID, 1.0, 100.0)
        inv.apply_fill(OrderSide.BID, 3.0, 104.0)
        assert inv.position == pytest.approx(4.0)
        assert inv.avg_entry_price == pytest.approx(103.0)
        assert inv.unrealized_pnl(105.0) == pytest.approx(8.0)

    def test_short_round_trip(self):
        inv = InventoryState()
        inv.apply_fill(OrderSide.ASK, 2.0, 100.0)
        assert inv.apply_fill(OrderSide.BID, 1.0, 98.0) == pytest.approx(2.0)
        assert inv.position == pytest.approx(-1.0)
        assert inv.avg_entry_price == pytest.approx(100.0)

    def test_flip_through_flat(self):
        inv = InventoryState()
        inv.apply_fill(OrderSide.BID, 1.0, 100.0)
        realized = inv.apply_fill(OrderSide.ASK, 3.0, 110.0)

        assert realized == pytest.approx(10.0)
        assert inv.position == pytest.approx(-2.0)
        assert inv.avg_entry_price == pytest.approx(110.0)
        assert inv.total_pnl(110.0) == pytest.approx(10.0)

    def test_flat_after_close(self):
        inv = InventoryState()
        inv.apply_fill(OrderSide.BID, 0.3, 100.0)
        inv.apply_fill(OrderSide.ASK, 0.1, 101.0)
        inv.apply_fill(OrderSide.ASK, 0.2, 101.0)
        assert inv.is_flat
        assert inv.avg_entry_price == 0.0
        assert inv.unrealized_pnl(200.0) == 0.0
