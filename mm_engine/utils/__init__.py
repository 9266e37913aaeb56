"""
Utilities Module for the Market Making Engine
============================================

Configuration, logging setup, and the error taxonomy.
"""

from .config import (
    Config,
    TradingConfig,
    RiskConfig,
    ExecutionConfig,
    MonitorConfig,
    LoggingConfig,
    load_config
)
from .exceptions import (
    MarketMakerError,
    ConfigurationError,
    DegenerateMarketCondition,
    ExecutionError,
    ReconciliationMismatch
)

__all__ = [
    'Config',
    'TradingConfig',
    'RiskConfig',
    'ExecutionConfig',
    'MonitorConfig',
    'LoggingConfig',
    'load_config',
    'MarketMakerError',
    'ConfigurationError',
    'DegenerateMarketCondition',
    'ExecutionError',
    'ReconciliationMismatch'
]
