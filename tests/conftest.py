"""Pytest configuration and fixtures."""

import pytest

from pivot_pool.config import PoolConfig, ServerConfig
from pivot_pool.pivot_pool import PivotPool
from pivot_pool.server import create_app
from pivot_pool.service import PoolSession
from pivot_pool.store import JsonFilePoolStore, MemoryPoolStore


@pytest.fixture
def pool() -> PivotPool:
    """Default seed: 100k KHU, TBTC 2.5 @ 50%, TUSDC 50k @ 50%."""
    return PivotPool.default()


@pytest.fixture
def memory_store() -> MemoryPoolStore:
    return MemoryPoolStore()


@pytest.fixture
def json_store(tmp_path) -> JsonFilePoolStore:
    return JsonFilePoolStore(str(tmp_path / "pools.json"))


@pytest.fixture
def session(memory_store) -> PoolSession:
    return PoolSession(memory_store, "test-session")


@pytest.fixture
def app(memory_store):
    config = ServerConfig(secret_key="test-secret", pool=PoolConfig())
    flask_app = create_app(config, store=memory_store)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
