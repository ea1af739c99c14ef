"""
Pivot Pool AMM engine.

Unified pivot (KHU) liquidity priced against a set of listed assets. Each
asset gets a virtual pivot reserve proportional to its weight and trades
on its own constant-product curve; asset to asset swaps hop through the
pivot.

PivotPool is an immutable snapshot: quoting is pure, and every mutating
operation returns a new PivotPool. Persisting snapshots is the caller's
job (see service.PoolSession).
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, DivisionByZero, InvalidOperation, Overflow
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import DEFAULT_POOL_CONFIG, PoolConfig
from .pool_types import (
    BPS,
    InvalidAmount,
    Quote,
    ReserveEntry,
    ReserveExhausted,
    SwapHistory,
    SwapKind,
    SwapRecord,
    UnknownAsset,
    WeightMismatch,
    check_ticker,
    format_weight,
    positive_amount,
    to_decimal,
)
from .pricing import (
    ONE,
    ZERO,
    apply_fee,
    constant_product,
    sell_slippage,
    spot_price,
    virtual_reserve,
)

log = logging.getLogger(__name__)

# Trapped by the default Decimal context when an amount is too large to price
ARITHMETIC_ERRORS = (DivisionByZero, InvalidOperation, Overflow)


@dataclass(frozen=True)
class PivotPool:
    total_pivot: Decimal
    reserves: Mapping[str, ReserveEntry]
    history: SwapHistory = field(default_factory=SwapHistory)
    fee_bps: int = DEFAULT_POOL_CONFIG.fee_bps
    pivot: str = DEFAULT_POOL_CONFIG.pivot_ticker

    def __post_init__(self):
        total = to_decimal(self.total_pivot, "total_pivot")
        if total < 0:
            raise InvalidAmount(f"total_pivot cannot be negative, got {total}")
        object.__setattr__(self, "total_pivot", total)
        object.__setattr__(self, "pivot", check_ticker(self.pivot))

        reserves: Dict[str, ReserveEntry] = {}
        for ticker, entry in self.reserves.items():
            ticker = check_ticker(ticker)
            if ticker == self.pivot:
                raise UnknownAsset(f"Pivot {ticker} cannot be listed as a reserve")
            if ticker in reserves:
                raise UnknownAsset(f"Duplicate reserve {ticker}")
            reserves[ticker] = entry
        object.__setattr__(self, "reserves", reserves)

        if reserves:
            weight_sum = sum(e.weight_bps for e in reserves.values())
            if weight_sum != BPS:
                raise WeightMismatch(f"Reserve weights sum to {weight_sum} bps, expected {BPS}")

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def default(cls, config: PoolConfig = DEFAULT_POOL_CONFIG) -> "PivotPool":
        """Seeded pool: fixed pivot liquidity, seed reserves, empty history."""
        reserves = {
            ticker: ReserveEntry(reserve=Decimal(reserve), weight_bps=weight, decimals=decimals)
            for ticker, (reserve, weight, decimals) in config.seed_reserves.items()
        }
        return cls(
            total_pivot=config.seed_total_pivot,
            reserves=reserves,
            history=SwapHistory(capacity=config.history_limit),
            fee_bps=config.fee_bps,
            pivot=config.pivot_ticker,
        )

    def reset(self, config: PoolConfig = DEFAULT_POOL_CONFIG) -> "PivotPool":
        """Discard reserves and history, back to the default seed."""
        log.debug("Pool reset to default seed")
        return PivotPool.default(config)

    # =========================================================================
    # PRICING
    # =========================================================================

    def entry(self, ticker: str) -> ReserveEntry:
        """Reserve lookup, raises UnknownAsset for anything not listed."""
        ticker = check_ticker(ticker)
        try:
            return self.reserves[ticker]
        except KeyError:
            raise UnknownAsset(f"Unknown asset {ticker}")

    def virtual_pivot(self, ticker: str) -> Decimal:
        """Pivot liquidity attributed to an asset (0 if unknown)."""
        try:
            res = self.entry(ticker)
        except UnknownAsset:
            return ZERO
        return virtual_reserve(self.total_pivot, res.weight_bps)

    def get_price(self, ticker: str) -> Decimal:
        """Pivot per unit of asset (0 if unknown or empty reserve)."""
        try:
            res = self.entry(ticker)
        except UnknownAsset:
            return ZERO
        return spot_price(virtual_reserve(self.total_pivot, res.weight_bps), res.reserve)

    def route(self, asset_in: str, asset_out: str) -> Optional[Tuple[SwapKind, str, str]]:
        """
        Classify a pair as (kind, asset_in, asset_out).

        None for unknown or malformed tickers, identical assets and
        pivot to pivot.
        """
        try:
            asset_in = check_ticker(asset_in)
            asset_out = check_ticker(asset_out)
        except UnknownAsset:
            return None
        if asset_in == asset_out:
            return None

        in_listed = asset_in in self.reserves
        out_listed = asset_out in self.reserves

        if in_listed and asset_out == self.pivot:
            return SwapKind.SELL, asset_in, asset_out
        if asset_in == self.pivot and out_listed:
            return SwapKind.BUY, asset_in, asset_out
        if in_listed and out_listed:
            return SwapKind.CROSS, asset_in, asset_out
        return None

    def _tradable(self, ticker: str) -> Tuple[ReserveEntry, Decimal]:
        res = self.reserves[ticker]
        khu_virtual = virtual_reserve(self.total_pivot, res.weight_bps)
        if res.reserve <= 0:
            raise ReserveExhausted(f"{ticker} reserve is empty")
        if khu_virtual <= 0:
            raise ReserveExhausted(f"{ticker} has no {self.pivot} liquidity")
        return res, khu_virtual

    def _quote_sell(self, asset_in: str, amount_in: Decimal) -> Quote:
        # X -> pivot: (reserve + dx) * (virtual - dy) = k
        res, khu_virtual = self._tradable(asset_in)
        step = constant_product(res.reserve, khu_virtual, amount_in)
        fee, khu_out = apply_fee(step.amount_out, self.fee_bps)
        price_before = spot_price(khu_virtual, res.reserve)

        return Quote(
            kind=SwapKind.SELL,
            route=(asset_in, self.pivot),
            amount_in=amount_in,
            amount_out=khu_out,
            fee=fee,
            slippage=sell_slippage(khu_out, amount_in, price_before),
            price_before=price_before,
            price_after=step.new_out / step.new_in,
        )

    def _quote_buy(self, asset_out: str, amount_in: Decimal) -> Quote:
        # pivot -> X: (virtual + dx) * (reserve - dy) = k
        res, khu_virtual = self._tradable(asset_out)
        step = constant_product(khu_virtual, res.reserve, amount_in)
        fee, out_after_fee = apply_fee(step.amount_out, self.fee_bps)

        return Quote(
            kind=SwapKind.BUY,
            route=(self.pivot, asset_out),
            amount_in=amount_in,
            amount_out=out_after_fee,
            fee=fee,
            # Buy leg does not report price impact
            slippage=ZERO,
            price_before=ONE / spot_price(khu_virtual, res.reserve),
        )

    def quote_swap(self, asset_in: str, amount_in: Any, asset_out: str) -> Optional[Quote]:
        """
        Price a swap without touching the pool.

        Returns None when there is no route. Raises InvalidAmount for a
        non-positive amount or one too large to price, and ReserveExhausted
        when a traded reserve is empty.
        """
        routed = self.route(asset_in, asset_out)
        if routed is None:
            return None
        kind, asset_in, asset_out = routed
        amount_in = positive_amount(amount_in, "amount_in")

        try:
            return self._quote(kind, asset_in, amount_in, asset_out)
        except ARITHMETIC_ERRORS as e:
            raise InvalidAmount(f"amount_in {amount_in} is out of range") from e

    def _quote(self, kind: SwapKind, asset_in: str, amount_in: Decimal, asset_out: str) -> Quote:
        if kind is SwapKind.SELL:
            return self._quote_sell(asset_in, amount_in)
        if kind is SwapKind.BUY:
            return self._quote_buy(asset_out, amount_in)

        step1 = self._quote_sell(asset_in, amount_in)
        step2 = self._quote_buy(asset_out, step1.amount_out)
        return Quote(
            kind=SwapKind.CROSS,
            route=(asset_in, self.pivot, asset_out),
            amount_in=amount_in,
            amount_out=step2.amount_out,
            fee=step1.fee + step2.fee,
            slippage=step1.slippage,
            intermediate_pivot=step1.amount_out,
        )

    # =========================================================================
    # STATE TRANSITIONS
    # =========================================================================

    def execute_swap(self, asset_in: str, amount_in: Any, asset_out: str,
                     now: Optional[int] = None) -> Tuple["PivotPool", Optional[Quote]]:
        """
        Execute a swap.

        Returns (new_pool, quote), or (self, None) when there is no route.
        Nothing is committed if any touched reserve would drop to zero or
        below.
        """
        quote = self.quote_swap(asset_in, amount_in, asset_out)
        if quote is None:
            log.debug(f"No route {asset_in} -> {asset_out}")
            return self, None

        deltas: Dict[str, Decimal] = {}
        if quote.kind is not SwapKind.BUY:
            deltas[quote.asset_in] = quote.amount_in
        if quote.kind is not SwapKind.SELL:
            deltas[quote.asset_out] = -quote.amount_out

        reserves = dict(self.reserves)
        for ticker, delta in deltas.items():
            new_reserve = reserves[ticker].reserve + delta
            if new_reserve <= 0:
                raise ReserveExhausted(
                    f"Swap would leave {ticker} reserve at {new_reserve}"
                )
            reserves[ticker] = reserves[ticker].with_reserve(new_reserve)

        record = SwapRecord.create(
            quote.amount_in, quote.asset_in, quote.amount_out, quote.asset_out, quote.fee, now=now
        )
        log.debug(f"[SWAP] {record.input} -> {record.output}")

        pool = replace(self, reserves=reserves, history=self.history.append(record))
        return pool, quote

    def add_liquidity(self, amount_pivot: Any) -> "PivotPool":
        """
        Add pivot liquidity. Every asset re-prices in proportion to its
        weight; physical reserves do not change.
        """
        amount = positive_amount(amount_pivot, "amount")
        try:
            total = self.total_pivot + amount
            virtual_reserve(total, BPS)
        except ARITHMETIC_ERRORS as e:
            raise InvalidAmount(f"amount {amount} is out of range") from e
        log.debug(f"[POOL] +{amount} {self.pivot} liquidity")
        return replace(self, total_pivot=total)

    # =========================================================================
    # VIEWS
    # =========================================================================

    def pool_info(self) -> Dict[str, Any]:
        """Read-only projection for display."""
        reserves_info = {}
        for ticker, res in self.reserves.items():
            reserves_info[ticker] = {
                "reserve": float(res.reserve),
                "weight_display": format_weight(res.weight_bps),
                "virtual_pivot": float(self.virtual_pivot(ticker)),
                "price": float(self.get_price(ticker)),
                "decimals": res.decimals,
            }

        return {
            "pivot": self.pivot,
            "fee_bps": self.fee_bps,
            "total_pivot": float(self.total_pivot),
            "reserves": reserves_info,
            "history": self.history.to_dicts(),
        }

    def to_record(self) -> Dict[str, Any]:
        """Serializable snapshot for an external store."""
        return {
            "total_pivot": str(self.total_pivot),
            "reserves": {t: res.to_record() for t, res in self.reserves.items()},
            "history": self.history.to_records(),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any], config: PoolConfig = DEFAULT_POOL_CONFIG) -> "PivotPool":
        return cls(
            total_pivot=to_decimal(data["total_pivot"], "total_pivot"),
            reserves={t: ReserveEntry.from_record(r) for t, r in data["reserves"].items()},
            history=SwapHistory.from_records(data.get("history", []), capacity=config.history_limit),
            fee_bps=config.fee_bps,
            pivot=config.pivot_ticker,
        )
