"""
Layered Order Generation
=======================

Turns a reservation price, half-spread and risk decision into a ladder of
bid/ask quote layers with size decaying by depth.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List

from loguru import logger


class OrderSide(Enum):
    """Order side enumeration"""
    BID = "bid"
    ASK = "ask"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.ASK if self is OrderSide.BID else OrderSide.BID


@dataclass(frozen=True)
class QuoteLayer:
    """One desired resting order"""
    side: OrderSide
    layer_index: int
    price: float
    quantity: float

    @property
    def slot(self):
        return self.side, self.layer_index


def layer_decay(layer_index: int, curve: str = "linear", factor: float = 0.5) -> float:
    """
    Size weight of a layer relative to layer 0.

    harmonic:  1 / (i + 1)
    linear:    1 / (1 + factor * i)
    geometric: factor ** i   (factor must be <= 1 to stay non-increasing)
    """
    if curve == "harmonic":
        return 1.0 / (layer_index + 1)
    if curve == "linear":
        return 1.0 / (1.0 + factor * layer_index)
    if curve == "geometric":
        return min(factor, 1.0) ** layer_index
    raise ValueError(f"Unknown layer decay curve: {curve}")


class OrderManager:
    """
    Layer i is quoted at

        bid_i = r - h - i * layer_step (+ skew)
        ask_i = r + h + i * layer_step (+ skew)

    with quantity base * decay(i) * size_multiplier. Sides the risk decision
    disallows are omitted; layers with non-positive price or quantity are
    dropped silently.
    """

    def __init__(self,
                 layer_step: float,
                 decay_curve: str = "linear",
                 decay_factor: float = 0.5,
                 imbalance_skew: float = 0.0,
                 tick_size: float = 0.0,
                 lot_size: float = 0.0):
        # Fail on a bad curve name at construction rather than mid-tick
        layer_decay(0, decay_curve, decay_factor)

        self.layer_step = layer_step
        self.decay_curve = decay_curve
        self.decay_factor = decay_factor
        self.imbalance_skew = imbalance_skew
        self.tick_size = tick_size
        self.lot_size = lot_size

        self.stats = {
            'ladders_generated': 0,
            'layers_generated': 0,
            'layers_dropped': 0
        }

    def round_price(self, price: float, side: OrderSide) -> float:
        """Round away from the touch: bids down, asks up"""
        if self.tick_size <= 0:
            return price
        ticks = price / self.tick_size
        # Absorb float noise such as 499.99999999 ticks before floor/ceil
        nearest = round(ticks)
        if abs(ticks - nearest) < 1e-9:
            ticks = nearest
        if side == OrderSide.BID:
            return math.floor(ticks) * self.tick_size
        return math.ceil(ticks) * self.tick_size

    def round_quantity(self, quantity: float) -> float:
        if self.lot_size <= 0:
            return quantity
        lots = math.floor(quantity / self.lot_size + 1e-9)
        return lots * self.lot_size

    def generate_layers(self,
                        reservation_price: float,
                        half_spread: float,
                        risk_decision,
                        base_order_size: float,
                        num_layers: int,
                        imbalance: float = 0.0) -> List[QuoteLayer]:
        """
        Build the desired quote ladder for this tick.

        Args:
            reservation_price: Inventory-adjusted center price
            half_spread: Distance of layer 0 from the center
            risk_decision: RiskDecision for this tick
            base_order_size: Layer-0 size before risk scaling
            num_layers: Layers per side
            imbalance: Book imbalance in [-1, 1], used only when skew is enabled

        Returns:
            Bid layers followed by ask layers, each in layer order
        """
        self.stats['ladders_generated'] += 1

        if risk_decision.is_full_veto or risk_decision.size_multiplier <= 0:
            return []

        skew = imbalance * half_spread * self.imbalance_skew
        sides = []
        if risk_decision.allow_bid:
            sides.append(OrderSide.BID)
        if risk_decision.allow_ask:
            sides.append(OrderSide.ASK)

        layers: List[QuoteLayer] = []
        for side in sides:
            direction = -1.0 if side == OrderSide.BID else 1.0
            for i in range(num_layers):
                raw_price = reservation_price + direction * (half_spread + i * self.layer_step) + skew
                price = self.round_price(raw_price, side)
                quantity = self.round_quantity(
                    base_order_size
                    * layer_decay(i, self.decay_curve, self.decay_factor)
                    * risk_decision.size_multiplier
                )

                if not (math.isfinite(price) and math.isfinite(quantity)) or price <= 0 or quantity <= 0:
                    self.stats['layers_dropped'] += 1
                    continue

                layers.append(QuoteLayer(side=side, layer_index=i, price=price, quantity=quantity))

        self.stats['layers_generated'] += len(layers)
        if self.stats['ladders_generated'] % 1000 == 0:
            logger.debug(f"Ladder #{self.stats['ladders_generated']}: {len(layers)} layers "
                         f"around r={reservation_price:.4f}, h={half_spread:.6f}")
        return layers
