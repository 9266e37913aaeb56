"""
Risk Management for Market Making
================================

Rolling volatility / toxic-flow detection and inventory limits. Produces a
per-tick RiskDecision that vetoes or scales quoting.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

import numpy as np
from loguru import logger


@dataclass(frozen=True)
class RiskDecision:
    """Per-tick quoting permission"""
    allow_bid: bool
    allow_ask: bool
    size_multiplier: float
    toxic: bool = False
    reason: str = ""

    @property
    def is_full_veto(self) -> bool:
        return not self.allow_bid and not self.allow_ask

    @classmethod
    def veto(cls, reason: str, toxic: bool = False) -> "RiskDecision":
        return cls(allow_bid=False, allow_ask=False, size_multiplier=0.0, toxic=toxic, reason=reason)


@dataclass
class VolatilityState:
    """Engine-owned volatility estimate, persists across ticks"""
    window: int
    deltas: Deque[float] = field(init=False)
    last_price: Optional[float] = None
    ewma_var: Optional[float] = None
    volatility: float = 0.0
    toxic: bool = False

    def __post_init__(self):
        self.deltas = deque(maxlen=self.window)

    def clear(self) -> None:
        self.deltas.clear()
        self.last_price = None
        self.ewma_var = None
        self.volatility = 0.0
        self.toxic = False


class RiskManager:
    """
    Market making risk controls:

    - Volatility of fair-price changes, rolling-window standard deviation
      or EWMA, updated once per tick
    - Toxic flow: volatility above threshold withdraws both sides
    - Inventory limit: at +max stop bidding, at -max stop offering
    - Size scaling: multiplier shrinks linearly with |inventory| / max

    Nothing here raises; non-finite inputs produce a full veto.
    """

    def __init__(self,
                 max_inventory: float,
                 volatility_threshold: float,
                 volatility_window: int = 60,
                 method: str = "rolling",
                 ewma_alpha: float = 0.2,
                 min_size_multiplier: float = 0.0):
        if method not in ("rolling", "ewma"):
            raise ValueError(f"Unknown volatility method: {method}")

        self.max_inventory = max_inventory
        self.volatility_threshold = volatility_threshold
        self.method = method
        self.ewma_alpha = ewma_alpha
        self.min_size_multiplier = min_size_multiplier

        self.state = VolatilityState(window=volatility_window)

        self.stats = {
            'volatility_updates': 0,
            'risk_checks': 0,
            'toxic_ticks': 0,
            'inventory_blocks': 0,
            'quotes_blocked': 0,
            'nan_vetoes': 0
        }

        logger.info(f"RiskManager initialized: max_inventory={max_inventory}, "
                    f"volatility_threshold={volatility_threshold}, window={volatility_window}, "
                    f"method={method}")

    @property
    def volatility(self) -> float:
        return self.state.volatility

    @property
    def toxic(self) -> bool:
        return self.state.toxic

    def update(self, fair_price: float) -> float:
        """
        Feed this tick's fair price and return the volatility estimate.

        Volatility is in price units (dispersion of tick-to-tick fair-price
        changes) and is 0 until two changes have been observed.
        """
        if not math.isfinite(fair_price):
            logger.warning(f"Non-finite fair price {fair_price} ignored by volatility estimator")
            return self.state.volatility

        state = self.state
        if state.last_price is not None:
            delta = fair_price - state.last_price
            state.deltas.append(delta)

            if self.method == "ewma":
                squared = delta * delta
                if state.ewma_var is None:
                    state.ewma_var = squared
                else:
                    state.ewma_var = self.ewma_alpha * squared + (1 - self.ewma_alpha) * state.ewma_var

        state.last_price = fair_price

        if len(state.deltas) < 2:
            state.volatility = 0.0
        elif self.method == "ewma":
            state.volatility = math.sqrt(max(state.ewma_var, 0.0))
        else:
            state.volatility = float(np.std(state.deltas))

        self.stats['volatility_updates'] += 1
        return state.volatility

    def detect_toxic_flow(self, volatility: Optional[float] = None,
                          volatility_threshold: Optional[float] = None) -> bool:
        volatility = self.state.volatility if volatility is None else volatility
        threshold = self.volatility_threshold if volatility_threshold is None else volatility_threshold
        return volatility > threshold

    def is_position_safe(self, inventory_qty: float) -> bool:
        return abs(inventory_qty) < self.max_inventory

    def size_multiplier(self, inventory_qty: float, max_inventory: Optional[float] = None) -> float:
        max_inventory = self.max_inventory if max_inventory is None else max_inventory
        scale = max(0.0, 1.0 - abs(inventory_qty) / max_inventory)
        return min(1.0, max(scale, self.min_size_multiplier))

    def assess(self,
               inventory_qty: float,
               volatility: float,
               max_inventory: Optional[float] = None,
               volatility_threshold: Optional[float] = None) -> RiskDecision:
        """
        Decide which sides may quote this tick and at what size.

        Args:
            inventory_qty: Signed position
            volatility: Estimate returned by update()
            max_inventory: Override of the configured limit
            volatility_threshold: Override of the configured threshold
        """
        self.stats['risk_checks'] += 1

        max_inventory = self.max_inventory if max_inventory is None else max_inventory
        threshold = self.volatility_threshold if volatility_threshold is None else volatility_threshold

        inputs = (inventory_qty, volatility, max_inventory, threshold)
        if not all(isinstance(x, (int, float)) and math.isfinite(x) for x in inputs) or max_inventory <= 0:
            self.stats['nan_vetoes'] += 1
            self.stats['quotes_blocked'] += 1
            logger.warning(f"Non-finite risk inputs {inputs}, withdrawing all quotes")
            return RiskDecision.veto("non-finite risk inputs")

        if self.detect_toxic_flow(volatility, threshold):
            self.state.toxic = True
            self.stats['toxic_ticks'] += 1
            self.stats['quotes_blocked'] += 1
            if self.stats['toxic_ticks'] % 50 == 1:
                logger.warning(f"Toxic flow: volatility {volatility:.6f} > threshold {threshold:.6f}, "
                               f"withdrawing all quotes")
            return RiskDecision.veto("toxic flow", toxic=True)

        self.state.toxic = False

        allow_bid = True
        allow_ask = True
        reason = ""

        if inventory_qty >= max_inventory:
            allow_bid = False
            reason = "long inventory limit"
        elif inventory_qty <= -max_inventory:
            allow_ask = False
            reason = "short inventory limit"

        if reason:
            self.stats['inventory_blocks'] += 1
            if self.stats['inventory_blocks'] % 100 == 1:
                logger.warning(f"Inventory limit reached: position={inventory_qty:.4f}, "
                               f"limit={max_inventory:.4f} ({reason})")

        return RiskDecision(
            allow_bid=allow_bid,
            allow_ask=allow_ask,
            size_multiplier=self.size_multiplier(inventory_qty, max_inventory),
            toxic=False,
            reason=reason
        )

    def get_statistics(self) -> Dict:
        return {
            **self.stats,
            'volatility': self.state.volatility,
            'toxic': self.state.toxic,
            'samples': len(self.state.deltas)
        }

    def reset(self) -> None:
        """Reset volatility state (engine restart)"""
        self.state.clear()
        for key in self.stats:
            self.stats[key] = 0
        logger.info("RiskManager reset")
