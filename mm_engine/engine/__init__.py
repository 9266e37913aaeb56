"""
Engine Module
============

Per-tick orchestration, the execution boundary, and the monitoring channel.
"""

from .market_making_engine import MarketMakingEngine, EngineState
from .execution import ExecutionClient
from .monitor import EngineSnapshot, MonitorChannel

__all__ = [
    'MarketMakingEngine',
    'EngineState',
    'ExecutionClient',
    'EngineSnapshot',
    'MonitorChannel'
]
