"""Tests for PoolSession (load, compute, write back)."""

from decimal import Decimal

import pytest

from pivot_pool.pivot_pool import PivotPool
from pivot_pool.pool_types import InvalidAmount, WeightMismatch
from pivot_pool.service import PoolSession
from pivot_pool.store import JsonFilePoolStore


class TestPoolSession:

    def test_new_session_reads_seed_without_saving(self, session, memory_store):
        info = session.info()
        assert info == PivotPool.default().pool_info()
        assert session.quote("TBTC", "0.1", "KHU")["route"] == ["TBTC", "KHU"]
        assert memory_store.load("test-session") is None
        assert len(memory_store) == 0

    def test_first_mutation_saves(self, session, memory_store):
        session.add_liquidity("1")
        assert memory_store.load("test-session")["total_pivot"] == "100001"

    def test_quote_does_not_write(self, session, memory_store):
        session.reset()
        before = memory_store.load("test-session")
        quote = session.quote("TBTC", "0.1", "KHU")

        assert quote["route"] == ["TBTC", "KHU"]
        assert memory_store.load("test-session") == before

    def test_quote_no_route(self, session):
        assert session.quote("TBTC", "1", "DOGE") is None

    def test_swap_commits(self, session, memory_store):
        quote = session.quote("TBTC", "0.1", "KHU")
        result = session.swap("TBTC", "0.1", "KHU")

        assert result["success"] is True
        assert result["committed"] is True
        assert result["result"] == quote
        assert result["pool"]["reserves"]["TBTC"]["reserve"] == 2.6
        assert len(result["pool"]["history"]) == 1
        assert memory_store.load("test-session")["reserves"]["TBTC"]["reserve"] == "2.6"

    def test_swap_no_route(self, session, memory_store):
        session.reset()
        before = memory_store.load("test-session")
        result = session.swap("KHU", "1", "KHU")

        assert result["committed"] is False
        assert result["result"] is None
        assert memory_store.load("test-session") == before

    def test_failed_swap_leaves_store_untouched(self, session, memory_store):
        session.reset()
        before = memory_store.load("test-session")
        with pytest.raises(InvalidAmount):
            session.swap("TBTC", "-1", "KHU")
        assert memory_store.load("test-session") == before

    def test_add_liquidity(self, session, memory_store):
        result = session.add_liquidity("10000")
        assert result["pool"]["total_pivot"] == 110000.0
        assert result["pool"]["reserves"]["TBTC"]["price"] == 22000.0
        assert memory_store.load("test-session")["total_pivot"] == "110000"

    def test_reset(self, session):
        session.swap("TBTC", "0.5", "TUSDC")
        session.add_liquidity(5000)
        result = session.reset()
        assert result["pool"] == PivotPool.default().pool_info()

    def test_reset_recovers_invalid_record(self, memory_store):
        record = PivotPool.default().to_record()
        record["reserves"]["TBTC"]["weight_bps"] = 1000
        memory_store.save("broken", record)
        session = PoolSession(memory_store, "broken")

        with pytest.raises(WeightMismatch):
            session.info()
        session.reset()
        assert session.info()["reserves"]["TBTC"]["weight_display"] == "50%"

    def test_sessions_are_isolated(self, memory_store):
        alice = PoolSession(memory_store, "alice")
        bob = PoolSession(memory_store, "bob")

        alice.swap("TBTC", "1", "KHU")
        assert bob.info()["reserves"]["TBTC"]["reserve"] == 2.5
        assert alice.info()["reserves"]["TBTC"]["reserve"] == 3.5

    def test_json_store_round_trip(self, json_store):
        PoolSession(json_store, "k").swap("KHU", "100", "TUSDC")
        pool = PoolSession(json_store, "k").load()
        assert pool.reserves["TUSDC"].reserve < Decimal("50000")
        assert len(pool.history) == 1

    def test_failed_write_does_not_commit(self, json_store, monkeypatch):
        session = PoolSession(json_store, "k")
        session.reset()

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("pivot_pool.store.os.replace", fail_replace)
        with pytest.raises(OSError):
            session.swap("TBTC", "0.1", "KHU")
        monkeypatch.undo()

        pool = session.load()
        assert pool.reserves["TBTC"].reserve == Decimal("2.5")
        assert len(pool.history) == 0
        assert PoolSession(JsonFilePoolStore(json_store.path), "k").load() == pool
