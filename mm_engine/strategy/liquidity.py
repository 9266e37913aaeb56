"""
Liquidity Model
==============

Estimates kappa, the decay rate in the fill-probability model

    lambda(delta) = A * exp(-kappa * delta)

where delta is the quote's distance from the fair price.
"""

import math
from typing import Optional

import numpy as np
from loguru import logger

from ..data_ingestion.order_book import OrderBookSnapshot


class LiquidityModel:
    """
    Kappa estimator with two policies:

    - fixed: always the configured initial kappa
    - depth: least-squares fit of ln(cumulative depth) against distance from
      the mid across visible levels, kappa = -slope, EWMA-smoothed with the
      previous estimate

    The returned kappa is clamped to a strictly positive floor.
    """

    def __init__(self,
                 initial_kappa: float,
                 method: str = "fixed",
                 smoothing: float = 0.4,
                 min_kappa: float = 1e-6):
        if method not in ("fixed", "depth"):
            raise ValueError(f"Unknown kappa method: {method}")

        self.initial_kappa = float(initial_kappa)
        self.method = method
        self.smoothing = smoothing
        self.min_kappa = min_kappa
        self.last_kappa = max(self.initial_kappa, self.min_kappa)

        self.stats = {
            'estimates': 0,
            'fits': 0,
            'failed_fits': 0
        }

        logger.info(f"LiquidityModel initialized: method={method}, initial_kappa={initial_kappa}")

    def estimate_kappa(self, snapshot: Optional[OrderBookSnapshot] = None) -> float:
        """Return the current kappa, refreshing it from depth when configured"""
        self.stats['estimates'] += 1

        if self.method == "depth" and snapshot is not None:
            raw_kappa = self._fit_depth_decay(snapshot)
            if raw_kappa is not None:
                self.last_kappa = (
                    self.smoothing * raw_kappa +
                    (1 - self.smoothing) * self.last_kappa
                )

        return max(self.last_kappa, self.min_kappa)

    def _fit_depth_decay(self, snapshot: OrderBookSnapshot) -> Optional[float]:
        """
        Fit depth decay on both sides of the book.

        Returns None when fewer than three usable points exist or the fit
        does not describe a decaying profile.
        """
        mid = snapshot.midprice()
        if mid is None:
            return None

        distances = []
        log_depths = []
        for side in (snapshot.bids, snapshot.asks):
            cumulative = 0.0
            for level in side:
                if level.quantity <= 0:
                    continue
                cumulative += level.quantity
                distances.append(abs(level.price - mid))
                # More depth further out means fewer fills per unit distance,
                # so fit the inverse cumulative depth
                log_depths.append(-math.log(cumulative))

        if len(distances) < 3 or np.ptp(distances) <= 0:
            self.stats['failed_fits'] += 1
            return None

        slope, _ = np.polyfit(np.asarray(distances), np.asarray(log_depths), 1)
        kappa = -float(slope)

        if not math.isfinite(kappa) or kappa <= 0:
            self.stats['failed_fits'] += 1
            if self.stats['failed_fits'] % 100 == 1:
                logger.debug(f"Depth fit rejected: kappa={kappa:.6f}")
            return None

        self.stats['fits'] += 1
        return kappa

    def reset(self) -> None:
        self.last_kappa = max(self.initial_kappa, self.min_kappa)
        self.stats = {'estimates': 0, 'fits': 0, 'failed_fits': 0}
