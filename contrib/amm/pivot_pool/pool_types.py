"""
Pivot Pool - Data Types

Reserve, swap record and quote structures shared by the engine, the
session store and the HTTP server.

Numbers are carried as Decimal end to end. API dicts (to_dict) expose
floats for JSON consumers, persisted records (to_record) keep exact
decimal strings.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple
import re
import time

# Basis points denominator (weights and fees)
BPS = 10000

# Swap history bound (most recent swaps kept)
HISTORY_LIMIT = 10

TICKER_RE = re.compile(r"^[A-Z0-9]{1,16}$")


# =============================================================================
# ERRORS
# =============================================================================

class PoolError(Exception):
    """Pool invariant violation."""
    kind = "PoolError"


class InvalidAmount(PoolError, ValueError):
    """Amount is not a positive finite number."""
    kind = "InvalidAmount"


class ReserveExhausted(PoolError):
    """A reserve is (or would become) zero or negative."""
    kind = "ReserveExhausted"


class WeightMismatch(PoolError, ValueError):
    """Reserve weights do not add up to 10000 bps."""
    kind = "WeightMismatch"


class UnknownAsset(PoolError, KeyError):
    """Ticker is malformed or not listed in the pool."""
    kind = "UnknownAsset"

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown asset"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def to_decimal(value: Any, name: str = "amount") -> Decimal:
    """
    Convert a user supplied number to Decimal.

    Floats go through repr() so 0.1 stays 0.1 and not its binary expansion.

    Raises:
        InvalidAmount: value is empty, unparseable, NaN or infinite
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"{name} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmount(f"{name} must be a number, got {value!r}")
    else:
        raise InvalidAmount(f"{name} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise InvalidAmount(f"{name} must be finite, got {value!r}")
    return result


def positive_amount(value: Any, name: str = "amount") -> Decimal:
    """Decimal conversion that also rejects zero and negative amounts."""
    result = to_decimal(value, name)
    if result <= 0:
        raise InvalidAmount(f"{name} must be positive, got {value!r}")
    return result


def check_ticker(ticker: Any) -> str:
    """
    Validate a ticker: [A-Z0-9]{1,16}, exact and case-sensitive. "tbtc" is
    not "TBTC"; lower-case or padded tickers are malformed.

    Raises:
        UnknownAsset: ticker is not a string or is malformed
    """
    if not isinstance(ticker, str):
        raise UnknownAsset(f"Ticker must be a string, got {type(ticker).__name__}")
    if not TICKER_RE.match(ticker):
        raise UnknownAsset(f"Malformed ticker {ticker!r}")
    return ticker


def format_plain(amount: Decimal) -> str:
    """Decimal without exponent or trailing zeros (0.10 -> '0.1', 1E+1 -> '10')."""
    return format(amount.normalize(), "f")


def format_weight(weight_bps: int) -> str:
    """Human weight: 5000 -> '50%', 3333 -> '33.33%'."""
    return format_plain(Decimal(weight_bps) / 100) + "%"


# =============================================================================
# RESERVES
# =============================================================================

@dataclass(frozen=True)
class ReserveEntry:
    """
    One listed asset.

    reserve:    physical quantity held (must stay > 0 after a committed swap)
    weight_bps: share of total pivot liquidity backing this asset's pair
    decimals:   display precision only
    """
    reserve: Decimal
    weight_bps: int
    decimals: int = 8

    def __post_init__(self):
        object.__setattr__(self, "reserve", to_decimal(self.reserve, "reserve"))
        if self.reserve < 0:
            raise ReserveExhausted(f"Reserve cannot be negative, got {self.reserve}")
        if isinstance(self.weight_bps, bool) or not isinstance(self.weight_bps, int):
            raise WeightMismatch(f"Weight must be integer bps, got {self.weight_bps!r}")
        if not 0 <= self.weight_bps <= BPS:
            raise WeightMismatch(f"Weight must be within 0..{BPS} bps, got {self.weight_bps}")

    def with_reserve(self, reserve: Decimal) -> "ReserveEntry":
        return ReserveEntry(reserve=reserve, weight_bps=self.weight_bps, decimals=self.decimals)

    def to_record(self) -> dict:
        return {
            "reserve": str(self.reserve),
            "weight_bps": self.weight_bps,
            "decimals": self.decimals,
        }

    @classmethod
    def from_record(cls, data: dict) -> "ReserveEntry":
        # Older snapshots used the short "weight" key
        weight = data.get("weight_bps", data.get("weight"))
        return cls(
            reserve=to_decimal(data["reserve"], "reserve"),
            weight_bps=int(weight),
            decimals=int(data.get("decimals", 8)),
        )


# =============================================================================
# SWAP HISTORY
# =============================================================================

@dataclass(frozen=True)
class SwapRecord:
    """Executed swap log entry. Never mutated."""
    input: str
    output: str
    fee: Decimal
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def create(cls, amount_in: Decimal, asset_in: str, amount_out: Decimal,
               asset_out: str, fee: Decimal, now: Optional[int] = None) -> "SwapRecord":
        return cls(
            input=f"{format_plain(amount_in)} {asset_in}",
            output=f"{amount_out:,.4f} {asset_out}",
            fee=fee,
            timestamp=int(time.time()) if now is None else int(now),
        )

    def to_dict(self) -> dict:
        return {"time": self.timestamp, "in": self.input, "out": self.output, "fee": float(self.fee)}

    def to_record(self) -> dict:
        return {"time": self.timestamp, "in": self.input, "out": self.output, "fee": str(self.fee)}

    @classmethod
    def from_record(cls, data: dict) -> "SwapRecord":
        return cls(
            input=data["in"],
            output=data["out"],
            fee=to_decimal(data["fee"], "fee"),
            timestamp=int(data["time"]),
        )


@dataclass(frozen=True)
class SwapHistory:
    """
    Fixed-capacity swap log, oldest first.

    append() returns a new history; once the capacity is exceeded the
    oldest records are evicted first.
    """
    records: Tuple[SwapRecord, ...] = ()
    capacity: int = HISTORY_LIMIT

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"History capacity must be positive, got {self.capacity}")
        records = tuple(self.records)
        if len(records) > self.capacity:
            records = records[len(records) - self.capacity:]
        object.__setattr__(self, "records", records)

    def append(self, record: SwapRecord) -> "SwapHistory":
        records = self.records + (record,)
        overflow = len(records) - self.capacity
        if overflow > 0:
            records = records[overflow:]
        return SwapHistory(records=records, capacity=self.capacity)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[SwapRecord]:
        return iter(self.records)

    def to_dicts(self) -> list:
        return [r.to_dict() for r in self.records]

    def to_records(self) -> list:
        return [r.to_record() for r in self.records]

    @classmethod
    def from_records(cls, data: list, capacity: int = HISTORY_LIMIT) -> "SwapHistory":
        return cls(records=tuple(SwapRecord.from_record(d) for d in data), capacity=capacity)


# =============================================================================
# QUOTES
# =============================================================================

class SwapKind(Enum):
    """Swap direction relative to the pivot."""
    SELL = "sell"      # listed asset -> pivot
    BUY = "buy"        # pivot -> listed asset
    CROSS = "cross"    # listed asset -> pivot -> listed asset


@dataclass(frozen=True)
class Quote:
    """
    Priced swap.

    slippage is a partial metric: the sell leg reports true price impact,
    the buy leg reports 0 and a cross swap reports its sell leg only.
    fee of a cross swap is the plain sum of both legs (pivot + output asset units).
    """
    kind: SwapKind
    route: Tuple[str, ...]
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    slippage: Decimal
    price_before: Optional[Decimal] = None
    price_after: Optional[Decimal] = None
    intermediate_pivot: Optional[Decimal] = None

    @property
    def asset_in(self) -> str:
        return self.route[0]

    @property
    def asset_out(self) -> str:
        return self.route[-1]

    def to_dict(self) -> Dict[str, Any]:
        """API shape; optional fields only appear for the cases that define them."""
        data: Dict[str, Any] = {
            "amount_out": float(self.amount_out),
            "fee": float(self.fee),
            "slippage": float(self.slippage),
            "route": list(self.route),
        }
        if self.price_before is not None:
            data["price_before"] = float(self.price_before)
        if self.price_after is not None:
            data["price_after"] = float(self.price_after)
        if self.intermediate_pivot is not None:
            data["intermediate_pivot"] = float(self.intermediate_pivot)
        return data
