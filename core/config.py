from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(_ENV_PATH)


class ConfigError(Exception):
    """Raised when configuration validation fails."""


def _require(var: str) -> str:
    val = os.getenv(var)
    if not val:
        raise EnvironmentError(f"Missing required env var: {var}")
    return val


def _csv(var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(var, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _optional_int(var: str) -> int | None:
    val = os.getenv(var, "")
    return int(val) if val else None


@dataclass(frozen=True, slots=True)
class WalletConfig:
    private_key: str = field(default_factory=lambda: _require("WALLET_PRIVATE_KEY"))
    address: str = field(default_factory=lambda: os.getenv("WALLET_ADDRESS", ""))
    fid: int | None = field(default_factory=lambda: _optional_int("FARCASTER_FID"))
    username: str = field(default_factory=lambda: os.getenv("FARCASTER_USERNAME", ""))
    display_name: str = field(
        default_factory=lambda: os.getenv("FARCASTER_DISPLAY_NAME", "")
    )
    pfp_url: str = field(default_factory=lambda: os.getenv("FARCASTER_PFP_URL", ""))


@dataclass(frozen=True, slots=True)
class ArenaConfig:
    contract: str = field(
        default_factory=lambda: os.getenv(
            "ARENA_CONTRACT", "0xa223B6b79211167008008a2A3b48b28948C5a088"
        )
    )
    token: str = field(
        default_factory=lambda: os.getenv(
            "TARB_TOKEN", "0xD63231cEBA61780703da36a2F47FfDD08da05B07"
        )
    )
    chain_id: int = field(
        default_factory=lambda: int(os.getenv("ARENA_CHAIN_ID", "42161"))
    )
    rpc_urls: tuple[str, ...] = field(
        default_factory=lambda: _csv("ARENA_RPC_URLS", "https://arb1.arbitrum.io/rpc")
    )
    tx_timeout: float = field(
        default_factory=lambda: float(os.getenv("TX_TIMEOUT", "120.0"))
    )
    poll_interval: float = field(
        default_factory=lambda: float(os.getenv("POLL_INTERVAL", "10.0"))
    )
    default_stake: str = field(
        default_factory=lambda: os.getenv("DEFAULT_STAKE", "1000000")
    )


@dataclass(frozen=True, slots=True)
class CollectibleConfig:
    contract: str = field(
        default_factory=lambda: os.getenv(
            "COLLECTIBLE_CONTRACT", "0x5d38451841Ee7A2E824A88AFE47b00402157b08d"
        )
    )
    chain_id: int = field(
        default_factory=lambda: int(os.getenv("COLLECTIBLE_CHAIN_ID", "8453"))
    )
    rpc_urls: tuple[str, ...] = field(
        default_factory=lambda: _csv("COLLECTIBLE_RPC_URLS", "https://mainnet.base.org")
    )
    origin_block: int = field(
        default_factory=lambda: int(os.getenv("COLLECTIBLE_ORIGIN_BLOCK", "17000000"))
    )
    log_chunk_size: int = field(
        default_factory=lambda: int(os.getenv("LOG_CHUNK_SIZE", "50000"))
    )
    ipfs_gateway: str = field(
        default_factory=lambda: os.getenv("IPFS_GATEWAY", "https://ipfs.io/ipfs/")
    )
    image_cid: str = field(
        default_factory=lambda: os.getenv(
            "COLLECTIBLE_IMAGE_CID",
            "bafybeiefdh5ryzudhw2y2qvhqbigxigmx4kqkrabqqlnsv3twiz6mphida",
        )
    )


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    rpc_rate_limit: float = field(
        default_factory=lambda: float(os.getenv("RPC_RATE_LIMIT", "5.0"))
    )
    rpc_rate_burst: int = field(
        default_factory=lambda: int(os.getenv("RPC_RATE_BURST", "10"))
    )
    dashboard_port: int = field(
        default_factory=lambda: int(os.getenv("DASHBOARD_PORT", "8080"))
    )


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    bot_token: str = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN", ""))
    chat_id: str = field(default_factory=lambda: os.getenv("TELEGRAM_CHAT_ID", ""))

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


@dataclass(frozen=True, slots=True)
class Settings:
    wallet: WalletConfig = field(default_factory=WalletConfig)
    arena: ArenaConfig = field(default_factory=ArenaConfig)
    collectible: CollectibleConfig = field(default_factory=CollectibleConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def _check_address(errors: list[str], name: str, value: str) -> None:
    if not _ADDRESS_RE.match(value):
        errors.append(f"{name} must be a 42-character hex address (0x...): got '{value}'")


def _check_urls(errors: list[str], name: str, urls: tuple[str, ...]) -> None:
    if not urls:
        errors.append(f"{name} must list at least one RPC URL")
    for url in urls:
        if not url.startswith("http"):
            errors.append(f"{name} entries must be HTTP(S) URLs: got '{url}'")


def validate_config(s: Settings) -> list[str]:
    """
    Validate all configuration values at startup.

    Returns a list of error messages. An empty list means config is valid.
    """
    errors: list[str] = []
    w = s.wallet
    a = s.arena
    c = s.collectible
    r = s.runtime

    # -- Wallet --
    if not _KEY_RE.match(w.private_key):
        errors.append("WALLET_PRIVATE_KEY must be a 32-byte hex string")
    if w.address:
        _check_address(errors, "WALLET_ADDRESS", w.address)
    if w.fid is not None and w.fid <= 0:
        errors.append(f"FARCASTER_FID must be > 0: got {w.fid}")

    # -- Arena (wager chain) --
    _check_address(errors, "ARENA_CONTRACT", a.contract)
    _check_address(errors, "TARB_TOKEN", a.token)
    if a.chain_id <= 0:
        errors.append(f"ARENA_CHAIN_ID must be > 0: got {a.chain_id}")
    _check_urls(errors, "ARENA_RPC_URLS", a.rpc_urls)
    if a.tx_timeout <= 0:
        errors.append(f"TX_TIMEOUT must be > 0: got {a.tx_timeout}")
    if a.poll_interval <= 0:
        errors.append(f"POLL_INTERVAL must be > 0: got {a.poll_interval}")

    # -- Collectible (home chain) --
    _check_address(errors, "COLLECTIBLE_CONTRACT", c.contract)
    if c.chain_id <= 0:
        errors.append(f"COLLECTIBLE_CHAIN_ID must be > 0: got {c.chain_id}")
    if c.chain_id == a.chain_id:
        errors.append(
            f"COLLECTIBLE_CHAIN_ID ({c.chain_id}) must differ from "
            f"ARENA_CHAIN_ID ({a.chain_id})"
        )
    _check_urls(errors, "COLLECTIBLE_RPC_URLS", c.rpc_urls)
    if c.origin_block < 0:
        errors.append(f"COLLECTIBLE_ORIGIN_BLOCK must be >= 0: got {c.origin_block}")
    if c.log_chunk_size < 1:
        errors.append(f"LOG_CHUNK_SIZE must be >= 1: got {c.log_chunk_size}")
    if not c.ipfs_gateway.startswith("http"):
        errors.append(f"IPFS_GATEWAY must be an HTTP(S) URL: got '{c.ipfs_gateway}'")

    # -- Runtime --
    if r.rpc_rate_limit <= 0:
        errors.append(f"RPC_RATE_LIMIT must be > 0: got {r.rpc_rate_limit}")
    if r.rpc_rate_burst < 1:
        errors.append(f"RPC_RATE_BURST must be >= 1: got {r.rpc_rate_burst}")
    if not (1 <= r.dashboard_port <= 65535):
        errors.append(f"DASHBOARD_PORT must be in [1, 65535]: got {r.dashboard_port}")

    return errors


settings = Settings()
