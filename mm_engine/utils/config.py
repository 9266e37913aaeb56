"""
Market Maker Engine Configuration
"""

import math
import os
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError

# Environment overrides use MM_<FIELD>, e.g. MM_GAMMA=0.05
ENV_PREFIX = "MM_"


class TradingConfig(BaseModel):
    """Quoting strategy configuration"""
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(default="BTCUSDT", description="Trading symbol")

    gamma: float = Field(default=0.1, gt=0, description="Risk aversion (HIGHER = tighter spread, stronger skew)")

    # Fill-probability decay rate in lambda(delta) = A * exp(-kappa * delta)
    initial_kappa: float = Field(default=1.5, gt=0, description="Initial order-arrival decay rate")
    kappa_method: Literal["fixed", "depth"] = Field(default="fixed", description="Hold kappa fixed or re-estimate from depth")
    kappa_smoothing: float = Field(default=0.4, gt=0, le=1, description="EWMA weight of a fresh kappa estimate")
    min_kappa: float = Field(default=1e-6, gt=0, description="Positive floor for kappa")

    depth_levels: int = Field(default=1, ge=1, description="Book levels summed for micro price / imbalance")

    base_order_size: float = Field(default=0.01, gt=0, description="Layer-0 quantity before risk scaling")
    num_layers: int = Field(default=2, ge=1, description="Quote layers per side")
    layer_step: float = Field(default=0.01, ge=0, description="Price increment between layers")
    layer_decay: Literal["harmonic", "linear", "geometric"] = Field(default="linear", description="Size decay curve across layers")
    layer_decay_factor: float = Field(default=0.5, ge=0, description="Curve parameter (linear: 1/(1+f*i), geometric: f**i)")

    imbalance_skew: float = Field(default=0.0, ge=0, le=1, description="Fraction of half-spread to lean quotes with book imbalance")
    min_spread: float = Field(default=0.0, ge=0, description="Minimum full spread in price units")

    initial_capital: float = Field(default=10000.0, gt=0, description="Starting capital for equity reporting")


class RiskConfig(BaseModel):
    """Risk management configuration"""
    model_config = ConfigDict(frozen=True)

    max_inventory: float = Field(default=5.0, gt=0, description="Absolute inventory limit")
    volatility_threshold: float = Field(default=5.0, gt=0, description="Toxic-flow volatility threshold (price units)")
    volatility_window: int = Field(default=60, ge=2, description="Rolling window of fair-price deltas")
    volatility_method: Literal["rolling", "ewma"] = Field(default="rolling", description="Volatility estimator")
    ewma_alpha: float = Field(default=0.2, gt=0, le=1, description="EWMA smoothing factor")

    # Keeps the flattening side quoting when inventory sits at the limit
    min_size_multiplier: float = Field(default=0.1, ge=0, le=1, description="Floor for inventory size scaling")


class ExecutionConfig(BaseModel):
    """Order placement configuration"""
    model_config = ConfigDict(frozen=True)

    tick_size: float = Field(default=0.0, ge=0, description="Price rounding increment (0 disables)")
    lot_size: float = Field(default=0.0, ge=0, description="Quantity rounding increment (0 disables)")
    reconcile_tolerance: float = Field(default=0.0, ge=0, description="Price/qty drift tolerated before cancel-replace")


class MonitorConfig(BaseModel):
    """Monitoring hand-off configuration"""
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Publish per-tick snapshots")
    queue_size: int = Field(default=256, ge=1, description="Bounded channel size, overflow is dropped")


class LoggingConfig(BaseModel):
    """Log sink configuration"""
    model_config = ConfigDict(frozen=True)

    log_level: Literal["SILENT", "QUIET", "NORMAL", "VERBOSE", "TRACE"] = Field(default="NORMAL", description="Console verbosity")
    log_file: Optional[str] = Field(default=None, description="Rotating file sink path (None disables)")
    log_rotation: str = Field(default="10 MB", description="File rotation policy")
    log_retention: str = Field(default="7 days", description="File retention policy")
    mute_hot_paths: bool = Field(default=False, description="Silence per-tick modules during long runs")


class Config(BaseModel):
    """Main configuration value, validated once and never mutated"""
    model_config = ConfigDict(frozen=True)

    trading: TradingConfig = Field(default_factory=TradingConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def validate_invariants(self) -> None:
        """
        Re-check startup invariants.

        Field constraints cover normal construction; this also catches values
        smuggled in through model_copy(update=...) or model_construct(),
        which skip pydantic validation.
        """
        positive = {
            'gamma': self.trading.gamma,
            'initial_kappa': self.trading.initial_kappa,
            'min_kappa': self.trading.min_kappa,
            'base_order_size': self.trading.base_order_size,
            'initial_capital': self.trading.initial_capital,
            'max_inventory': self.risk.max_inventory,
            'volatility_threshold': self.risk.volatility_threshold,
        }
        for key, value in positive.items():
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{key} must be a finite number > 0, got {value!r}", config_key=key)

        non_negative = {
            'layer_step': self.trading.layer_step,
            'min_spread': self.trading.min_spread,
            'reconcile_tolerance': self.execution.reconcile_tolerance,
            'tick_size': self.execution.tick_size,
            'lot_size': self.execution.lot_size,
        }
        for key, value in non_negative.items():
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{key} must be a finite number >= 0, got {value!r}", config_key=key)

        if self.trading.num_layers < 1:
            raise ConfigurationError(f"num_layers must be >= 1, got {self.trading.num_layers}",
                                     config_key='num_layers')

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "trading": self.trading.model_dump(),
            "risk": self.risk.model_dump(),
            "execution": self.execution.model_dump(),
            "monitor": self.monitor.model_dump(),
            "logging": self.logging.model_dump()
        }


def load_config(use_env: bool = False, **sections: Dict[str, Any]) -> Config:
    """
    Build and validate the engine configuration.

    Args:
        use_env: Apply MM_<FIELD> environment overrides (after load_dotenv)
        **sections: Per-section overrides, e.g. trading={'gamma': 0.05}

    Raises:
        ConfigurationError: on any invalid value
    """
    merged: Dict[str, Dict[str, Any]] = {name: dict(values) for name, values in sections.items()}

    unknown = set(merged) - set(Config.model_fields)
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

    if use_env:
        load_dotenv()
        for name, env_values in _read_env_overrides().items():
            merged.setdefault(name, {}).update(env_values)

    try:
        cfg = Config(**merged)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get('loc', ()))
        raise ConfigurationError(f"Invalid configuration: {key}: {first.get('msg')}",
                                 config_key=key,
                                 details={'errors': e.errors(include_url=False)}) from e

    cfg.validate_invariants()
    logger.info(f"Configuration loaded: symbol={cfg.trading.symbol}, gamma={cfg.trading.gamma}, "
                f"kappa={cfg.trading.initial_kappa}, max_inventory={cfg.risk.max_inventory}, "
                f"layers={cfg.trading.num_layers}")
    return cfg


def _read_env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Dict[str, str]]:
    """Collect MM_<FIELD> variables into per-section dictionaries"""
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Dict[str, str]] = {}

    for section_name, section_field in Config.model_fields.items():
        section_model = section_field.annotation
        for field_name in section_model.model_fields:
            env_key = f"{ENV_PREFIX}{field_name.upper()}"
            if env_key in environ:
                overrides.setdefault(section_name, {})[field_name] = environ[env_key]

    return overrides
