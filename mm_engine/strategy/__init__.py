"""
Market Making Strategy Module
============================

Fair pricing, Avellaneda-Stoikov spread, risk controls, layered quoting
and order tracking components of the decision engine.
"""

from .pricing import FairPriceEstimator, MarketSignal
from .liquidity import LiquidityModel
from .avellaneda_stoikov import SpreadCalculator, SpreadQuote
from .risk_manager import RiskManager, RiskDecision, VolatilityState
from .order_manager import OrderManager, OrderSide, QuoteLayer, layer_decay
from .inventory import InventoryState
from .order_tracker import (
    OrderTracker,
    OrderStatus,
    TrackedOrder,
    ReconcileResult
)
from .base import Strategy, TickResult

__all__ = [
    'FairPriceEstimator',
    'MarketSignal',
    'LiquidityModel',
    'SpreadCalculator',
    'SpreadQuote',
    'RiskManager',
    'RiskDecision',
    'VolatilityState',
    'OrderManager',
    'OrderSide',
    'QuoteLayer',
    'layer_decay',
    'InventoryState',
    'OrderTracker',
    'OrderStatus',
    'TrackedOrder',
    'ReconcileResult',
    'Strategy',
    'TickResult'
]
