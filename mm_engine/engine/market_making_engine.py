"""
Market Making Engine
===================

Per-tick orchestration of the decision pipeline:

    Idle -> Signal -> Risk -> Spread -> Layering -> Reconcile -> Idle

A degenerate tick (empty/crossed book, non-finite arithmetic) skips straight
to Reconcile with no desired layers, so resting orders are always cancelled
rather than left unmanaged.
"""

import math
import time
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .execution import ExecutionClient
from .monitor import EngineSnapshot, MonitorChannel
from ..data_ingestion.order_book import OrderBookSnapshot
from ..strategy.avellaneda_stoikov import SpreadCalculator
from ..strategy.base import Strategy, TickResult
from ..strategy.inventory import InventoryState
from ..strategy.liquidity import LiquidityModel
from ..strategy.order_manager import OrderManager, QuoteLayer
from ..strategy.order_tracker import OrderTracker, TrackedOrder
from ..strategy.pricing import FairPriceEstimator, MarketSignal
from ..strategy.risk_manager import RiskDecision, RiskManager
from ..utils.config import Config
from ..utils.exceptions import DegenerateMarketCondition, ExecutionError
from ..utils.logger import get_logger


class EngineState(Enum):
    """Pipeline stage currently executing"""
    IDLE = "idle"
    SIGNAL = "signal"
    RISK = "risk"
    SPREAD = "spread"
    LAYERING = "layering"
    RECONCILE = "reconcile"


class MarketMakingEngine(Strategy):
    """
    Avellaneda-Stoikov market maker wired from explicit components:

    - FairPriceEstimator: micro price and imbalance
    - RiskManager: volatility, toxic-flow veto, inventory limits
    - LiquidityModel + SpreadCalculator: reservation price and half-spread
    - OrderManager: layered quote ladder
    - OrderTracker: reconciliation against resting orders, fills -> inventory

    Intents are dispatched to an optional ExecutionClient. Without one the
    engine runs dry: submits are acknowledged and cancels confirmed in place.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 execution_client: Optional[ExecutionClient] = None,
                 monitor: Optional[MonitorChannel] = None,
                 fair_price_estimator: Optional[FairPriceEstimator] = None,
                 liquidity_model: Optional[LiquidityModel] = None,
                 spread_calculator: Optional[SpreadCalculator] = None,
                 risk_manager: Optional[RiskManager] = None,
                 order_manager: Optional[OrderManager] = None,
                 order_tracker: Optional[OrderTracker] = None):

        self.logger = get_logger("engine")
        self.config = config or Config()
        self.config.validate_invariants()

        trading = self.config.trading
        risk = self.config.risk
        execution = self.config.execution

        self.fair_price_estimator = fair_price_estimator or FairPriceEstimator(depth_levels=trading.depth_levels)
        self.liquidity_model = liquidity_model or LiquidityModel(
            initial_kappa=trading.initial_kappa,
            method=trading.kappa_method,
            smoothing=trading.kappa_smoothing,
            min_kappa=trading.min_kappa
        )
        self.spread_calculator = spread_calculator or SpreadCalculator(min_spread=trading.min_spread)
        self.risk_manager = risk_manager or RiskManager(
            max_inventory=risk.max_inventory,
            volatility_threshold=risk.volatility_threshold,
            volatility_window=risk.volatility_window,
            method=risk.volatility_method,
            ewma_alpha=risk.ewma_alpha,
            min_size_multiplier=risk.min_size_multiplier
        )
        self.order_manager = order_manager or OrderManager(
            layer_step=trading.layer_step,
            decay_curve=trading.layer_decay,
            decay_factor=trading.layer_decay_factor,
            imbalance_skew=trading.imbalance_skew,
            tick_size=execution.tick_size,
            lot_size=execution.lot_size
        )
        self.order_tracker = order_tracker or OrderTracker(tolerance=execution.reconcile_tolerance)

        self.execution_client = execution_client
        if monitor is None and self.config.monitor.enabled:
            monitor = MonitorChannel(maxsize=self.config.monitor.queue_size)
        self.monitor = monitor

        self.state = EngineState.IDLE
        self.last_signal: Optional[MarketSignal] = None
        self.last_decision: Optional[RiskDecision] = None
        self.last_reservation_price: Optional[float] = None
        self.last_half_spread: Optional[float] = None
        self.last_kappa: Optional[float] = None
        self.last_layers: List[QuoteLayer] = []

        self.stats = {
            'ticks': 0,
            'degraded_ticks': 0,
            'vetoed_ticks': 0,
            'submits_sent': 0,
            'cancels_sent': 0,
            'submit_errors': 0,
            'cancel_errors': 0
        }

        self.logger.info(f"MarketMakingEngine initialized for {trading.symbol}: gamma={trading.gamma}, "
                         f"kappa={trading.initial_kappa}, layers={trading.num_layers}, "
                         f"max_inventory={risk.max_inventory}")

    @property
    def name(self) -> str:
        return "Market Making"

    @property
    def inventory(self) -> InventoryState:
        return self.order_tracker.inventory

    def on_tick(self, snapshot: OrderBookSnapshot) -> TickResult:
        """Run the full pipeline for one snapshot and dispatch its intents"""
        self.stats['ticks'] += 1
        trading = self.config.trading

        layers: List[QuoteLayer] = []
        decision: Optional[RiskDecision] = None
        degraded = False
        reason = ""

        try:
            self.state = EngineState.SIGNAL
            signal = self.fair_price_estimator.estimate(snapshot)
            self.last_signal = signal

            self.state = EngineState.RISK
            position = self.inventory.position
            volatility = self.risk_manager.update(signal.fair_price)
            decision = self.risk_manager.assess(position, volatility)

            self.state = EngineState.SPREAD
            kappa = self.liquidity_model.estimate_kappa(snapshot)
            reservation, half_spread = self.spread_calculator.compute(
                signal.fair_price, position, volatility, trading.gamma, kappa
            )
            if not (math.isfinite(reservation) and math.isfinite(half_spread)):
                raise DegenerateMarketCondition(
                    f"Non-finite spread output: r={reservation}, h={half_spread}",
                    details={'volatility': volatility, 'kappa': kappa}
                )
            self.last_kappa = kappa
            self.last_reservation_price = reservation
            self.last_half_spread = half_spread

            self.state = EngineState.LAYERING
            if decision.is_full_veto:
                self.stats['vetoed_ticks'] += 1
                reason = decision.reason
            else:
                layers = self.order_manager.generate_layers(
                    reservation,
                    half_spread,
                    decision,
                    trading.base_order_size,
                    trading.num_layers,
                    imbalance=signal.imbalance
                )

        except (DegenerateMarketCondition, ArithmeticError) as e:
            degraded = True
            reason = str(e)
            layers = []
            decision = RiskDecision.veto(reason)
            self.stats['degraded_ticks'] += 1
            if self.stats['degraded_ticks'] % 100 == 1:
                self.logger.warning(f"Degraded tick #{self.stats['ticks']} at stage {self.state.value}: {e}")

        self.last_decision = decision
        self.last_layers = layers

        self.state = EngineState.RECONCILE
        if degraded or decision.is_full_veto:
            cancels = self.order_tracker.clear_all()
            submits: List[TrackedOrder] = []
        else:
            result = self.order_tracker.reconcile(layers)
            cancels, submits = result.cancels, result.submits

        self._dispatch(cancels, submits)
        self._publish(snapshot.timestamp, degraded)

        self.state = EngineState.IDLE

        return TickResult(
            timestamp=snapshot.timestamp,
            cancels=cancels,
            submits=submits,
            degraded=degraded,
            reason=reason
        )

    def run(self, snapshots: Iterable[OrderBookSnapshot]) -> int:
        """Feed a sequence of snapshots; returns the number of ticks processed"""
        count = 0
        for snapshot in snapshots:
            self.on_tick(snapshot)
            count += 1
        return count

    def _dispatch(self, cancels: List[int], submits: List[TrackedOrder]) -> None:
        """Send intents to the execution client; rejections are not retried this tick"""
        tracker = self.order_tracker

        if self.execution_client is None:
            for order_id in cancels:
                tracker.on_cancel_confirmed(order_id)
            for order in submits:
                tracker.acknowledge(order.order_id)
            return

        for order_id in cancels:
            try:
                self.execution_client.cancel_order(order_id)
                self.stats['cancels_sent'] += 1
            except ExecutionError as e:
                self.stats['cancel_errors'] += 1
                self.logger.warning(f"Cancel {order_id} failed: {e}")
                tracker.on_cancel_rejected(order_id, str(e))

        for order in submits:
            try:
                self.execution_client.submit_order(order.side, order.price, order.quantity, order.order_id)
                self.stats['submits_sent'] += 1
            except ExecutionError as e:
                self.stats['submit_errors'] += 1
                self.logger.warning(f"Submit {order.order_id} ({order.side.value} layer {order.layer_index} "
                                    f"{order.quantity:.4f} @ {order.price:.4f}) failed: {e}")
                tracker.on_submit_rejected(order.order_id, str(e))
            else:
                tracker.acknowledge(order.order_id)

    def snapshot(self, timestamp: Optional[float] = None, degraded: bool = False) -> EngineSnapshot:
        """Current engine state as a monitoring record"""
        signal = self.last_signal
        mark = signal.mid_price if signal is not None else None
        inventory = self.inventory
        unrealized = inventory.unrealized_pnl(mark) if mark is not None else 0.0

        return EngineSnapshot(
            timestamp=time.time() if timestamp is None else timestamp,
            fair_price=signal.fair_price if signal is not None else None,
            imbalance=signal.imbalance if signal is not None else 0.0,
            reservation_price=self.last_reservation_price,
            half_spread=self.last_half_spread,
            inventory_qty=inventory.position,
            realized_pnl=inventory.realized_pnl,
            unrealized_pnl=unrealized,
            active_layers=self.order_tracker.active_order_count,
            volatility_estimate=self.risk_manager.volatility,
            toxic_flag=self.risk_manager.toxic,
            mid_price=mark,
            equity=self.config.trading.initial_capital + inventory.realized_pnl + unrealized,
            kappa=self.last_kappa,
            degraded=degraded
        )

    def _publish(self, timestamp: float, degraded: bool) -> None:
        if self.monitor is None:
            return
        self.monitor.publish(self.snapshot(timestamp, degraded))

    def on_fill(self, order_id: int, filled_qty: float, fill_price: float) -> Optional[float]:
        """Venue fill callback; processed before the next tick"""
        return self.order_tracker.on_fill(order_id, filled_qty, fill_price)

    def on_cancel_confirmed(self, order_id: int) -> bool:
        return self.order_tracker.on_cancel_confirmed(order_id)

    def on_cancel_rejected(self, order_id: int, reason: str = "") -> bool:
        return self.order_tracker.on_cancel_rejected(order_id, reason)

    def on_submit_rejected(self, order_id: int, reason: str = "") -> bool:
        return self.order_tracker.on_submit_rejected(order_id, reason)

    def shutdown(self) -> List[int]:
        """Cancel every resting order"""
        cancels = self.order_tracker.clear_all()
        self._dispatch(cancels, [])
        self.logger.info(f"MarketMakingEngine stopped, cancelled {len(cancels)} orders")
        return cancels

    def get_statistics(self) -> Dict:
        return {
            **self.stats,
            'state': self.state.value,
            'position': self.inventory.position,
            'avg_entry_price': self.inventory.avg_entry_price,
            'realized_pnl': self.inventory.realized_pnl,
            'risk': self.risk_manager.get_statistics(),
            'orders': self.order_tracker.get_statistics(),
            'liquidity': dict(self.liquidity_model.stats),
            'monitor': {
                'published': self.monitor.published,
                'dropped': self.monitor.dropped
            } if self.monitor is not None else None
        }

    def reset(self) -> None:
        """Restart: clear volatility, inventory and tracked orders"""
        self.risk_manager.reset()
        self.liquidity_model.reset()
        self.order_tracker.reset()
        self.last_signal = None
        self.last_decision = None
        self.last_reservation_price = None
        self.last_half_spread = None
        self.last_kappa = None
        self.last_layers = []
        for key in self.stats:
            self.stats[key] = 0
        self.state = EngineState.IDLE
        self.logger.info("MarketMakingEngine reset")
