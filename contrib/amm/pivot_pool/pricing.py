"""
Pivot Pool - Curve Arithmetic

Pure functions used by the engine. Every asset trades against a virtual
pivot reserve on its own x * y = k curve:

    virtual_pivot = total_pivot * weight_bps / 10000
    price         = virtual_pivot / reserve            (pivot per asset)
    dy            = y - k / (x + dx)                   (k = x * y)
"""

from decimal import Decimal
from typing import NamedTuple, Tuple

from .pool_types import BPS

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)


class CurveStep(NamedTuple):
    """One constant-product move, before fees."""
    k: Decimal
    new_in: Decimal     # input side reserve after the trade
    new_out: Decimal    # output side reserve after the trade
    amount_out: Decimal


def virtual_reserve(total_pivot: Decimal, weight_bps: int) -> Decimal:
    """Pivot liquidity notionally backing one asset."""
    return total_pivot * weight_bps / BPS


def spot_price(virtual_pivot: Decimal, reserve: Decimal) -> Decimal:
    """Pivot per unit of asset, 0 for an empty reserve."""
    if reserve == 0:
        return ZERO
    return virtual_pivot / reserve


def constant_product(reserve_in: Decimal, reserve_out: Decimal, amount_in: Decimal) -> CurveStep:
    """
    Standard x * y = k move: add amount_in to the input side and return
    what leaves the output side.
    """
    k = reserve_in * reserve_out
    new_in = reserve_in + amount_in
    new_out = k / new_in
    return CurveStep(k=k, new_in=new_in, new_out=new_out, amount_out=reserve_out - new_out)


def apply_fee(raw_out: Decimal, fee_bps: int) -> Tuple[Decimal, Decimal]:
    """Split a raw output into (fee, net)."""
    fee = raw_out * fee_bps / BPS
    return fee, raw_out - fee


def sell_slippage(net_out: Decimal, amount_in: Decimal, price_before: Decimal) -> Decimal:
    """
    Deviation of the executed price from the spot price, in percent.

    Only meaningful for the asset -> pivot leg, where price_before is
    pivot per unit of input.
    """
    return abs(ONE - net_out / (amount_in * price_before)) * HUNDRED


def impermanent_loss(price_ratio: Decimal) -> Decimal:
    """
    IL = 2 * sqrt(price_ratio) / (1 + price_ratio) - 1

    price_ratio = new_price / initial_price. A non-positive ratio is a
    total loss (-1).
    """
    if price_ratio <= 0:
        return -ONE
    return 2 * price_ratio.sqrt() / (ONE + price_ratio) - ONE
