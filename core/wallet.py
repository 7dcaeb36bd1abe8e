"""
Wallet / session provider.

Holds the signing key, the Web3 connection for whichever network the
wallet is currently on, and the optional social profile for the session.
Network switching mirrors the browser-wallet flow: switch to a known
chain, and when the chain is unknown register it first, then switch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from eth_account import Account
from web3 import Web3

from core.errors import ChainMismatch, ConnectivityError, PreconditionError, UnknownNetwork

log = logging.getLogger("riparena.wallet")


@dataclass(frozen=True, slots=True)
class NetworkParams:
    chain_id: int
    chain_name: str
    rpc_urls: tuple[str, ...]
    currency_symbol: str = "ETH"
    explorer_urls: tuple[str, ...] = ()


ARBITRUM_ONE = NetworkParams(
    chain_id=42161,
    chain_name="Arbitrum One",
    rpc_urls=("https://arb1.arbitrum.io/rpc",),
    explorer_urls=("https://arbiscan.io",),
)

BASE = NetworkParams(
    chain_id=8453,
    chain_name="Base",
    rpc_urls=("https://mainnet.base.org",),
    explorer_urls=("https://basescan.org",),
)


@dataclass(frozen=True, slots=True)
class SessionProfile:
    fid: int | None = None
    username: str = ""
    display_name: str = ""
    pfp_url: str = ""

    def label(self, address: str) -> str:
        if self.display_name:
            return self.display_name
        if self.username:
            return self.username
        return f"{address[:6]}...{address[-4:]}" if address else ""

    def to_dict(self) -> dict:
        return {
            "fid": self.fid,
            "username": self.username,
            "display_name": self.display_name,
            "pfp_url": self.pfp_url,
        }


def connect_rpc(rpc_urls: tuple[str, ...] | list[str], timeout: float = 15) -> Web3:
    """Return a Web3 bound to the first RPC that answers ``eth_chainId``."""
    for rpc in rpc_urls:
        try:
            w3 = Web3(Web3.HTTPProvider(rpc, request_kwargs={"timeout": timeout}))
            w3.eth.chain_id
            log.info("Connected to %s", rpc)
            return w3
        except Exception as exc:
            log.warning("RPC %s unreachable: %s", rpc, exc)
            continue
    raise ConnectivityError(f"No working RPC found among {list(rpc_urls)}")


@dataclass
class WalletSession:
    private_key: str = field(repr=False)
    profile: SessionProfile = field(default_factory=SessionProfile)
    networks: dict[int, NetworkParams] = field(default_factory=dict)
    _account: Any = field(default=None, init=False, repr=False)
    _w3: Web3 | None = field(default=None, init=False, repr=False)
    _chain_id: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        try:
            self._account = Account.from_key(self.private_key)
        except (ValueError, TypeError) as exc:
            raise PreconditionError(f"Invalid wallet private key: {exc}") from exc

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> Any:
        return self._account

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            raise ConnectivityError("Wallet is not connected to any network")
        return self._w3

    @property
    def chain_id(self) -> int | None:
        return self._chain_id

    def request_accounts(self) -> list[str]:
        return [self.address]

    # ------------------------------------------------------------------
    # Network negotiation
    # ------------------------------------------------------------------
    def switch_network(self, chain_id: int) -> None:
        params = self.networks.get(chain_id)
        if params is None:
            raise UnknownNetwork(chain_id)
        w3 = connect_rpc(params.rpc_urls)
        actual = w3.eth.chain_id
        if actual != chain_id:
            raise ChainMismatch(chain_id, actual)
        self._w3 = w3
        self._chain_id = chain_id
        log.info("WALLET  switched to %s (%d)", params.chain_name, chain_id)

    def add_network(self, params: NetworkParams) -> None:
        self.networks[params.chain_id] = params
        log.info("WALLET  added network %s (%d)", params.chain_name, params.chain_id)
        self.switch_network(params.chain_id)

    async def ensure_network(self, params: NetworkParams) -> None:
        """Make sure the wallet is on ``params.chain_id``.

        Unknown chains fall back to ``add_network``. If neither path lands on
        the right chain the mismatch is escalated as a ConnectivityError.
        """
        if self._chain_id == params.chain_id and self._w3 is not None:
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.switch_network, params.chain_id)
            return
        except (UnknownNetwork, ChainMismatch) as exc:
            log.info("WALLET  switch to %d failed (%s), adding network", params.chain_id, exc)

        try:
            await loop.run_in_executor(None, self.add_network, params)
        except (ChainMismatch, ConnectivityError) as exc:
            mismatch = exc if isinstance(exc, ChainMismatch) else ChainMismatch(
                params.chain_id, self._chain_id
            )
            raise ConnectivityError(f"Network switch failed: {mismatch}") from exc
