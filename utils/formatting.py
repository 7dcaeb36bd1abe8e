"""Display helpers for $TARB amounts, addresses and collectible art."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from web3 import Web3

from core.config import settings


def parse_tarb(amount: str | int | float | Decimal) -> int:
    """Whole-token amount ("1000000", "2.5") -> base units. $TARB has 18 decimals."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Not a token amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Not a token amount: {amount!r}")
    return Web3.to_wei(value, "ether")


def to_tarb(base_units: int) -> Decimal:
    return Web3.from_wei(base_units, "ether")


def format_tarb(base_units: int) -> str:
    """Compact display: 1.50M, 2.5K, 42."""
    num = to_tarb(base_units)
    if num >= 1_000_000:
        return f"{num / 1_000_000:.2f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return f"{num:.0f}"


def short_address(address: str) -> str:
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def collectible_image_url(token_id: int) -> str:
    cfg = settings.collectible
    gateway = cfg.ipfs_gateway if cfg.ipfs_gateway.endswith("/") else cfg.ipfs_gateway + "/"
    return f"{gateway}{cfg.image_cid}/{token_id}.png"
