"""
Tests for configuration loading, validation and the error taxonomy.
"""

import pytest
from pydantic import ValidationError

from mm_engine.engine.market_making_engine import MarketMakingEngine
from mm_engine.utils.config import Config, _read_env_overrides, load_config
from mm_engine.utils.exceptions import (
    ConfigurationError,
    DegenerateMarketCondition,
    ExecutionError,
    MarketMakerError
)


class TestLoadConfig:

    def test_defaults(self):
        cfg = load_config()
        assert cfg.trading.gamma == 0.1
        assert cfg.trading.initial_kappa == 1.5
        assert cfg.trading.num_layers == 2
        assert cfg.trading.initial_capital == 10000.0
        assert cfg.risk.max_inventory == 5.0
        assert cfg.risk.volatility_window == 60

    def test_section_overrides(self):
        cfg = load_config(trading={'gamma': 0.05, 'num_layers': 4}, risk={'max_inventory': 1.0})
        assert cfg.trading.gamma == 0.05
        assert cfg.trading.num_layers == 4
        assert cfg.risk.max_inventory == 1.0
        assert cfg.to_dict()['trading']['gamma'] == 0.05

    @pytest.mark.parametrize("section,values,key", [
        ('trading', {'gamma': 0.0}, 'trading.gamma'),
        ('trading', {'gamma': -1.0}, 'trading.gamma'),
        ('trading', {'initial_kappa': 0.0}, 'trading.initial_kappa'),
        ('trading', {'num_layers': 0}, 'trading.num_layers'),
        ('trading', {'layer_step': -0.1}, 'trading.layer_step'),
        ('trading', {'initial_capital': 0.0}, 'trading.initial_capital'),
        ('risk', {'max_inventory': 0.0}, 'risk.max_inventory'),
        ('risk', {'volatility_threshold': -2.0}, 'risk.volatility_threshold'),
    ])
    def test_invalid_values_rejected(self, section, values, key):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(**{section: values})
        assert exc_info.value.config_key == key
        assert exc_info.value.error_code == 'CONFIG'

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError):
            load_config(strategy={'gamma': 0.1})

    def test_frozen(self):
        cfg = load_config()
        with pytest.raises(ValidationError):
            cfg.trading.gamma = 0.5

    def test_invariants_catch_unvalidated_copies(self):
        cfg = Config()
        bad = cfg.model_copy(update={'trading': cfg.trading.model_copy(update={'gamma': 0.0})})

        with pytest.raises(ConfigurationError) as exc_info:
            bad.validate_invariants()
        assert exc_info.value.config_key == 'gamma'

        with pytest.raises(ConfigurationError):
            MarketMakingEngine(bad)


class TestEnvironmentOverrides:

    def test_read_env_overrides(self):
        overrides = _read_env_overrides({
            'MM_GAMMA': '0.05',
            'MM_MAX_INVENTORY': '2',
            'MM_TICK_SIZE': '0.01',
            'UNRELATED': 'x'
        })
        assert overrides == {
            'trading': {'gamma': '0.05'},
            'risk': {'max_inventory': '2'},
            'execution': {'tick_size': '0.01'}
        }

    def test_env_applied_on_load(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('MM_GAMMA', '0.05')
        monkeypatch.setenv('MM_NUM_LAYERS', '3')

        cfg = load_config(use_env=True, trading={'gamma': 0.2})
        assert cfg.trading.gamma == 0.05
        assert cfg.trading.num_layers == 3

    def test_invalid_env_value(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('MM_GAMMA', 'not-a-number')
        with pytest.raises(ConfigurationError):
            load_config(use_env=True)


class TestExceptions:

    def test_taxonomy(self):
        for exc in (ConfigurationError("x"), DegenerateMarketCondition("x"), ExecutionError("x")):
            assert isinstance(exc, MarketMakerError)

    def test_str_and_dict(self):
        err = ExecutionError("rejected", order_id=7, details={'venue': 'paper'})
        assert str(err) == "[EXECUTION] rejected"
        assert err.order_id == 7
        assert err.to_dict() == {
            'error_type': 'ExecutionError',
            'message': 'rejected',
            'error_code': 'EXECUTION',
            'details': {'venue': 'paper'}
        }
