"""
Fair Price Estimation
====================

Micro price and top-of-book imbalance from an order book snapshot.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from loguru import logger

from ..data_ingestion.order_book import OrderBookSnapshot
from ..utils.exceptions import DegenerateMarketCondition


@dataclass(frozen=True)
class MarketSignal:
    """Per-tick pricing signal derived from the book"""
    fair_price: float
    imbalance: float
    mid_price: float
    best_bid: float
    best_ask: float
    timestamp: float

    @property
    def micro_edge(self) -> float:
        """Distance of the micro price from the mid"""
        return self.fair_price - self.mid_price


class FairPriceEstimator:
    """
    Liquidity-weighted fair price ("micro price"):

        fair = (V_bid * best_ask + V_ask * best_bid) / (V_bid + V_ask)
        imbalance = (V_bid - V_ask) / (V_bid + V_ask)

    V_bid / V_ask are summed over the top `depth_levels` of each side
    (1 = best level only). Zero combined depth falls back to the mid
    price with a neutral imbalance.
    """

    def __init__(self, depth_levels: int = 1):
        if depth_levels < 1:
            raise ValueError(f"depth_levels must be >= 1, got {depth_levels}")
        self.depth_levels = depth_levels
        self.stats = {
            'estimates': 0,
            'zero_depth_fallbacks': 0
        }

    def _volumes(self, snapshot: OrderBookSnapshot) -> Tuple[float, float]:
        bids, asks = snapshot.top_levels(self.depth_levels)
        bid_volume = sum(level.quantity for level in bids if level.quantity > 0)
        ask_volume = sum(level.quantity for level in asks if level.quantity > 0)
        return bid_volume, ask_volume

    def estimate(self, snapshot: OrderBookSnapshot) -> MarketSignal:
        """
        Compute the market signal for one snapshot.

        Raises:
            DegenerateMarketCondition: if the book is empty, crossed or
                produces a non-finite price
        """
        snapshot.validate()

        best_bid = snapshot.bids[0].price
        best_ask = snapshot.asks[0].price
        mid_price = (best_bid + best_ask) / 2.0

        bid_volume, ask_volume = self._volumes(snapshot)
        total_volume = bid_volume + ask_volume

        if total_volume <= 0:
            self.stats['zero_depth_fallbacks'] += 1
            if self.stats['zero_depth_fallbacks'] % 100 == 1:
                logger.warning(f"Zero top-of-book depth, falling back to mid {mid_price:.4f}")
            fair_price = mid_price
            imbalance = 0.0
        else:
            fair_price = (bid_volume * best_ask + ask_volume * best_bid) / total_volume
            imbalance = (bid_volume - ask_volume) / total_volume
            imbalance = float(np.clip(imbalance, -1.0, 1.0))

        if not (math.isfinite(fair_price) and math.isfinite(imbalance)):
            raise DegenerateMarketCondition(
                f"Non-finite fair price: fair={fair_price}, imbalance={imbalance}",
                details={'best_bid': best_bid, 'best_ask': best_ask}
            )

        self.stats['estimates'] += 1

        return MarketSignal(
            fair_price=fair_price,
            imbalance=imbalance,
            mid_price=mid_price,
            best_bid=best_bid,
            best_ask=best_ask,
            timestamp=snapshot.timestamp
        )
