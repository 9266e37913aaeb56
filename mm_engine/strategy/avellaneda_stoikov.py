"""
Avellaneda-Stoikov Spread Calculation
====================================

Reservation price and optimal half-spread from the Avellaneda-Stoikov
market making framework.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from loguru import logger


@dataclass(frozen=True)
class SpreadQuote:
    """Reservation price and half-spread for one tick"""
    reservation_price: float
    half_spread: float

    @property
    def bid(self) -> float:
        return self.reservation_price - self.half_spread

    @property
    def ask(self) -> float:
        return self.reservation_price + self.half_spread


class SpreadCalculator:
    """
    Avellaneda-Stoikov pricer:

        r = s - q * gamma * sigma^2
        spread* = (2 / gamma) * ln(1 + gamma / kappa)
        half_spread = spread* / 2

    Long inventory pushes r below the fair price, biasing quotes toward
    selling. Pure computation; gamma > 0 is checked at configuration time.
    """

    def __init__(self, min_spread: float = 0.0):
        self.min_spread = min_spread
        self.stats = {
            'computations': 0,
            'fallbacks': 0
        }

    @staticmethod
    def reservation_price(fair_price: float,
                          inventory_qty: float,
                          volatility: float,
                          gamma: float) -> float:
        """Inventory-adjusted indifference price"""
        return fair_price - inventory_qty * gamma * (volatility ** 2)

    @staticmethod
    def optimal_spread(gamma: float, kappa: float) -> float:
        """
        Full optimal spread (2/gamma) * ln(1 + gamma/kappa).

        Returns NaN when the log argument is not positive so the caller can
        fall back to the configured minimum.
        """
        ratio = gamma / kappa
        if not math.isfinite(ratio) or ratio <= -1.0:
            return float('nan')
        return (2.0 / gamma) * math.log1p(ratio)

    def compute(self,
                fair_price: float,
                inventory_qty: float,
                volatility: float,
                gamma: float,
                kappa: float) -> Tuple[float, float]:
        """
        Compute (reservation_price, half_spread).

        The half-spread is floored at min_spread / 2 and falls back to that
        floor whenever the formula yields a non-finite or non-positive value.
        """
        self.stats['computations'] += 1

        reservation = self.reservation_price(fair_price, inventory_qty, volatility, gamma)

        try:
            spread = self.optimal_spread(gamma, kappa)
        except ZeroDivisionError:
            spread = float('nan')

        floor = self.min_spread / 2.0
        half_spread = spread / 2.0

        if not math.isfinite(half_spread) or half_spread <= 0:
            self.stats['fallbacks'] += 1
            if self.stats['fallbacks'] % 100 == 1:
                logger.warning(f"Degenerate spread (gamma={gamma}, kappa={kappa}), "
                               f"falling back to minimum half-spread {floor}")
            half_spread = floor
        else:
            half_spread = max(half_spread, floor)

        return reservation, half_spread

    def quote(self,
              fair_price: float,
              inventory_qty: float,
              volatility: float,
              gamma: float,
              kappa: float) -> SpreadQuote:
        reservation, half_spread = self.compute(fair_price, inventory_qty, volatility, gamma, kappa)
        return SpreadQuote(reservation_price=reservation, half_spread=half_spread)
