"""
BATHRON Pivot Pool AMM

Unified pivot (KHU) liquidity priced against weighted asset reserves.

Architecture:
  - PivotPool is an immutable snapshot (pricing + state transitions)
  - PoolSession loads/saves snapshots through a keyed PoolStore
  - The REST API gives every browser session its own pool

Pricing:
  - virtual_pivot(a) = total_pivot * weight_bps(a) / 10000
  - price(a)         = virtual_pivot(a) / reserve(a)
  - each asset trades on reserve * virtual_pivot = k, fee 0.30% on output
  - asset -> asset swaps route through the pivot

Usage:
    from pivot_pool import PivotPool

    pool = PivotPool.default()
    quote = pool.quote_swap("TBTC", "0.1", "KHU")
    pool, quote = pool.execute_swap("TBTC", "0.1", "KHU")
"""

__version__ = "0.1.0"

from .pool_types import (
    InvalidAmount,
    PoolError,
    Quote,
    ReserveEntry,
    ReserveExhausted,
    SwapHistory,
    SwapKind,
    SwapRecord,
    UnknownAsset,
    WeightMismatch,
)
from .config import PoolConfig, ServerConfig
from .pivot_pool import PivotPool
from .pricing import impermanent_loss
from .store import JsonFilePoolStore, MemoryPoolStore, PoolStore, open_store
from .service import PoolSession

__all__ = [
    # Types
    "Quote", "ReserveEntry", "SwapHistory", "SwapKind", "SwapRecord",
    # Errors
    "PoolError", "InvalidAmount", "ReserveExhausted", "UnknownAsset", "WeightMismatch",
    # Core
    "PivotPool", "PoolSession", "PoolConfig", "ServerConfig", "impermanent_loss",
    # Stores
    "PoolStore", "MemoryPoolStore", "JsonFilePoolStore", "open_store",
]
