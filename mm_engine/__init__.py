"""
Market Making Decision & Risk Engine
===================================

Turns a stream of order book snapshots into layered limit-order intents using
the Avellaneda-Stoikov framework, while tracking inventory, PnL and toxic flow.

Project Structure:
- mm_engine/data_ingestion: Order book snapshot model
- mm_engine/strategy: Pricing, spread, risk, layering and order tracking
- mm_engine/engine: Per-tick orchestration, execution boundary, monitoring
- mm_engine/utils: Configuration, logging and error taxonomy
"""

__version__ = "1.0.0"

from mm_engine.data_ingestion.order_book import OrderBookSnapshot
from mm_engine.engine.market_making_engine import MarketMakingEngine
from mm_engine.utils.config import Config, load_config

__all__ = [
    "OrderBookSnapshot",
    "MarketMakingEngine",
    "Config",
    "load_config"
]
