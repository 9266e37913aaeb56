"""
Market Making Engine Example
===========================

Drives the decision engine over a synthetic random-walk order book.
This example shows how to:
1. Build a validated configuration
2. Wire a (paper) execution client and the monitoring channel
3. Feed snapshots, route fills back, and read the results
"""

import random
import time
from typing import Dict, List

from mm_engine.data_ingestion import OrderBookSnapshot
from mm_engine.engine import ExecutionClient, MarketMakingEngine, MonitorChannel
from mm_engine.strategy import OrderSide
from mm_engine.utils.config import load_config
from mm_engine.utils.exceptions import ConfigurationError, ExecutionError
from mm_engine.utils.logger import configure_logging, setup_replay_logging


class PaperExecutionClient(ExecutionClient):
    """Accepts every order and fills resting quotes the market trades through"""

    def __init__(self, reject_rate: float = 0.0):
        self.resting: Dict[int, tuple] = {}
        self.cancelled: List[int] = []
        self.reject_rate = reject_rate

    def submit_order(self, side: OrderSide, price: float, quantity: float, order_id: int) -> None:
        if random.random() < self.reject_rate:
            raise ExecutionError("paper venue rejected order", order_id=order_id)
        self.resting[order_id] = (side, price, quantity)

    def cancel_order(self, order_id: int) -> None:
        if self.resting.pop(order_id, None) is not None:
            self.cancelled.append(order_id)

    def match(self, snapshot: OrderBookSnapshot):
        """Yield (order_id, qty, price) for quotes crossed by the new book"""
        best_bid = snapshot.bids[0].price
        best_ask = snapshot.asks[0].price
        for order_id, (side, price, quantity) in list(self.resting.items()):
            if (side == OrderSide.BID and best_ask <= price) or (side == OrderSide.ASK and best_bid >= price):
                del self.resting[order_id]
                yield order_id, quantity, price


def synthetic_book(mid: float, timestamp: float, levels: int = 5, tick: float = 0.1) -> OrderBookSnapshot:
    half = tick / 2
    bids = [[round(mid - half - i * tick, 2), round(random.uniform(0.5, 5.0), 3)] for i in range(levels)]
    asks = [[round(mid + half + i * tick, 2), round(random.uniform(0.5, 5.0), 3)] for i in range(levels)]
    return OrderBookSnapshot.from_levels(bids, asks, timestamp=timestamp, symbol="BTCUSDT")


def run_paper_session(ticks: int = 2000):
    """Run the engine against the paper venue"""
    print("🔬 Running Paper Session...")

    try:
        cfg = load_config(
            use_env=True,
            trading={'gamma': 0.1, 'initial_kappa': 1.5, 'base_order_size': 0.01,
                     'num_layers': 3, 'layer_step': 0.1, 'kappa_method': 'depth'},
            risk={'max_inventory': 0.05, 'volatility_threshold': 5.0},
            execution={'tick_size': 0.01, 'lot_size': 0.001, 'reconcile_tolerance': 0.005},
            logging={'log_level': 'QUIET', 'mute_hot_paths': True}
        )
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        raise SystemExit(1)

    configure_logging(cfg.logging)

    venue = PaperExecutionClient(reject_rate=0.01)
    monitor = MonitorChannel(maxsize=64)
    engine = MarketMakingEngine(cfg, execution_client=venue, monitor=monitor)

    mid = 50000.0
    start = time.time()
    for i in range(ticks):
        mid += random.gauss(0, 0.5)
        snapshot = synthetic_book(mid, timestamp=start + i * 0.1)

        for order_id, qty, price in venue.match(snapshot):
            engine.on_fill(order_id, qty, price)

        engine.on_tick(snapshot)

        while venue.cancelled:
            engine.on_cancel_confirmed(venue.cancelled.pop())

        # Monitoring consumer reads occasionally; the rest is dropped
        if i % 100 == 0:
            latest = monitor.drain()
            if latest:
                snap = latest[-1]
                print(f"  t={i:5d} fair={snap.fair_price:.2f} r={snap.reservation_price:.2f} "
                      f"h={snap.half_spread:.4f} q={snap.inventory_qty:+.4f} "
                      f"rpnl={snap.realized_pnl:+.4f} eq={snap.equity:,.2f} vol={snap.volatility_estimate:.4f}")

    engine.shutdown()
    stats = engine.get_statistics()

    print("=" * 50)
    print("📊 SESSION SUMMARY")
    print("=" * 50)
    print(f"Ticks:               {stats['ticks']}")
    print(f"Degraded / Vetoed:   {stats['degraded_ticks']} / {stats['vetoed_ticks']}")
    print(f"Submits / Cancels:   {stats['submits_sent']} / {stats['cancels_sent']}")
    print(f"Submit Errors:       {stats['submit_errors']}")
    print(f"Fills:               {stats['orders']['fills_processed']}")
    print(f"Final Position:      {stats['position']:+.4f}")
    print(f"Realized PnL:        ${stats['realized_pnl']:,.4f}")
    print(f"Monitor dropped:     {stats['monitor']['dropped']}")

    return stats


if __name__ == "__main__":
    setup_replay_logging()
    random.seed(7)
    run_paper_session()
