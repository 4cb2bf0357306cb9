"""Fixed-point token amount helpers (18-decimal by default)."""

from __future__ import annotations

from decimal import Decimal, localcontext

GWEI = 10**9
ETHER = 10**18


def parse_units(value: str | int | Decimal, decimals: int = 18) -> int:
    """Convert a human amount ("0.1") into integer base units."""
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value} has more than {decimals} decimals")
    return int(scaled)


def format_units(amount: int, decimals: int = 18) -> str:
    """Render integer base units as a plain decimal string."""
    with localcontext() as ctx:
        ctx.prec = 80
        text = format(Decimal(amount) / (Decimal(10) ** decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_gwei(wei: int) -> float:
    return wei / GWEI


def from_gwei(gwei: float | int | str) -> int:
    return parse_units(gwei, 9)


__all__ = ["GWEI", "ETHER", "parse_units", "format_units", "to_gwei", "from_gwei"]
