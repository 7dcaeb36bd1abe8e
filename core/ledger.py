"""
Read-only queries against the arena contract and the $TARB token.

Every call is a blocking web3 ``call()`` pushed onto the default executor
and throttled through the shared RateLimiter. Any failure surfaces as a
ConnectivityError; nothing here mutates ledger state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from web3 import Web3

from core.errors import ConnectivityError
from utils.tasks import gather_or_cancel

if TYPE_CHECKING:
    from core.rate_limiter import RateLimiter

log = logging.getLogger("riparena.ledger")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Battle:
    battle_id: int
    creator: str
    opponent: str
    stake: int
    creator_collectible_id: int
    opponent_collectible_id: int
    active: bool

    def created_by(self, address: str) -> bool:
        return self.creator.lower() == address.lower()

    def is_joinable_by(self, address: str) -> bool:
        return self.active and not self.created_by(address)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["stake"] = str(self.stake)
        return d


@dataclass(frozen=True, slots=True)
class PlayerStats:
    wins: int
    losses: int
    earnings: int
    balance: int
    total_battles: int

    @classmethod
    def empty(cls) -> PlayerStats:
        return cls(wins=0, losses=0, earnings=0, balance=0, total_battles=0)

    def to_dict(self) -> dict:
        return {
            "wins": self.wins,
            "losses": self.losses,
            "earnings": str(self.earnings),
            "balance": str(self.balance),
            "total_battles": self.total_battles,
        }


class LedgerReader:
    def __init__(
        self,
        arena: Any,
        token: Any,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._arena = arena
        self._token = token
        self._limiter = limiter

    @property
    def arena_address(self) -> str:
        return self._arena.address

    async def _call(self, what: str, fn: Callable[[], T]) -> T:
        if self._limiter:
            await self._limiter.acquire()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except Exception as exc:
            log.warning("READ %s failed: %s", what, exc)
            raise ConnectivityError(f"{what} failed: {exc}") from exc

    # -- arena ---------------------------------------------------------
    async def list_open_ids(self) -> list[int]:
        ids = await self._call(
            "getOpenBattles", lambda: self._arena.functions.getOpenBattles().call()
        )
        return [int(i) for i in ids]

    async def get_battle(self, battle_id: int) -> Battle:
        raw = await self._call(
            f"getBattle({battle_id})",
            lambda: self._arena.functions.getBattle(battle_id).call(),
        )
        player1, player2, stake, p1_token, p2_token, active = raw
        return Battle(
            battle_id=int(battle_id),
            creator=player1,
            opponent=player2,
            stake=int(stake),
            creator_collectible_id=int(p1_token),
            opponent_collectible_id=int(p2_token),
            active=bool(active),
        )

    async def get_stats(self, address: str) -> tuple[int, int, int]:
        addr = Web3.to_checksum_address(address)
        wins, losses, earnings = await self._call(
            "getStats", lambda: self._arena.functions.getStats(addr).call()
        )
        return int(wins), int(losses), int(earnings)

    async def total_battles(self) -> int:
        return int(await self._call(
            "totalBattles", lambda: self._arena.functions.totalBattles().call()
        ))

    async def min_stake(self) -> int:
        return int(await self._call(
            "minStake", lambda: self._arena.functions.minStake().call()
        ))

    # -- token ---------------------------------------------------------
    async def balance_of(self, address: str) -> int:
        addr = Web3.to_checksum_address(address)
        return int(await self._call(
            "balanceOf", lambda: self._token.functions.balanceOf(addr).call()
        ))

    async def allowance(self, owner: str, spender: str) -> int:
        o = Web3.to_checksum_address(owner)
        s = Web3.to_checksum_address(spender)
        return int(await self._call(
            "allowance", lambda: self._token.functions.allowance(o, s).call()
        ))

    async def player_stats(self, address: str) -> PlayerStats:
        """Aggregate stats, arena total and token balance in one batch."""
        total, (wins, losses, earnings), balance = await gather_or_cancel(
            self.total_battles(),
            self.get_stats(address),
            self.balance_of(address),
        )
        return PlayerStats(
            wins=wins,
            losses=losses,
            earnings=earnings,
            balance=balance,
            total_battles=total,
        )
