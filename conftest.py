"""
Pytest configuration and shared fixtures for the market making engine tests.
"""

import pytest
from loguru import logger

from mm_engine.data_ingestion.order_book import OrderBookSnapshot
from mm_engine.utils.config import load_config


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep loguru output out of test reports"""
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def make_book():
    """Factory for snapshots: make_book(bids=[[p, q]], asks=[[p, q]], timestamp=...)"""
    counter = {'ts': 0.0}

    def _make(bids=None, asks=None, timestamp=None):
        counter['ts'] += 1.0
        return OrderBookSnapshot.from_levels(
            bids if bids is not None else [[49999.9, 2.0]],
            asks if asks is not None else [[50000.1, 1.0]],
            timestamp=counter['ts'] if timestamp is None else timestamp,
            symbol="BTCUSDT"
        )

    return _make


@pytest.fixture
def sample_book(make_book):
    """Top of book 49999.9 x 2.0 / 50000.1 x 1.0"""
    return make_book()


@pytest.fixture
def deep_book(make_book):
    """Five levels a side, depth growing away from the touch"""
    bids = [[49999.9 - 0.1 * i, 1.0 + i] for i in range(5)]
    asks = [[50000.1 + 0.1 * i, 1.0 + i] for i in range(5)]
    return make_book(bids=bids, asks=asks)


@pytest.fixture
def engine_config():
    """Small, deterministic engine configuration"""
    return load_config(
        trading={'gamma': 0.1, 'initial_kappa': 1.5, 'base_order_size': 0.01,
                 'num_layers': 2, 'layer_step': 0.01},
        risk={'max_inventory': 5.0, 'volatility_threshold': 5.0, 'min_size_multiplier': 0.1},
        monitor={'queue_size': 16}
    )
