"""Shared test helpers."""

from decimal import Decimal

EPS = Decimal("0.001")


def close(actual, expected, eps=EPS) -> bool:
    """Decimal comparison within an absolute epsilon."""
    return abs(Decimal(str(actual)) - Decimal(str(expected))) <= Decimal(str(eps))
