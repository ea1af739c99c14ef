"""
Pivot Pool - Session Operations

PoolSession binds one store key to the engine and implements the five
external operations (info, quote, swap, add_liquidity, reset). Every call
loads the full snapshot and mutating calls write the full replacement back.
A session with no stored record reads as the default seed; nothing is
stored until its first mutating call.

Known limitation: two concurrent mutating calls on the same key are not
serialised, the last write wins.
"""

import logging
from typing import Any, Dict, Optional

from .config import DEFAULT_POOL_CONFIG, PoolConfig
from .pivot_pool import PivotPool
from .store import PoolStore

log = logging.getLogger(__name__)


class PoolSession:

    def __init__(self, store: PoolStore, session_key: str,
                 config: PoolConfig = DEFAULT_POOL_CONFIG):
        self.store = store
        self.session_key = session_key
        self.config = config

    def load(self) -> PivotPool:
        """Current snapshot, or an unsaved default seed for a new session."""
        record = self.store.load(self.session_key)
        if record is None:
            return PivotPool.default(self.config)
        return PivotPool.from_record(record, self.config)

    def save(self, pool: PivotPool):
        self.store.save(self.session_key, pool.to_record())

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def info(self) -> Dict[str, Any]:
        return self.load().pool_info()

    def quote(self, asset_in: str, amount_in: Any, asset_out: str) -> Optional[Dict[str, Any]]:
        """Quote dict, or None when the pair has no route."""
        quote = self.load().quote_swap(asset_in, amount_in, asset_out)
        return quote.to_dict() if quote is not None else None

    def swap(self, asset_in: str, amount_in: Any, asset_out: str) -> Dict[str, Any]:
        pool = self.load()
        new_pool, quote = pool.execute_swap(asset_in, amount_in, asset_out)

        if quote is None:
            log.info(f"No route for swap {asset_in} -> {asset_out}")
            return {"success": True, "committed": False, "result": None, "pool": pool.pool_info()}

        self.save(new_pool)
        last = new_pool.history.records[-1]
        log.info(f"Swap {last.input} -> {last.output} (session {self.session_key[:8]}...)")
        return {
            "success": True,
            "committed": True,
            "result": quote.to_dict(),
            "pool": new_pool.pool_info(),
        }

    def add_liquidity(self, amount: Any) -> Dict[str, Any]:
        pool = self.load().add_liquidity(amount)
        self.save(pool)
        log.info(f"Liquidity added: total {pool.total_pivot} {pool.pivot} "
                 f"(session {self.session_key[:8]}...)")
        return {"success": True, "pool": pool.pool_info()}

    def reset(self) -> Dict[str, Any]:
        # No load: reset must also recover a session whose record no longer validates
        pool = PivotPool.default(self.config)
        self.save(pool)
        log.info(f"Pool reset (session {self.session_key[:8]}...)")
        return {"success": True, "pool": pool.pool_info()}
