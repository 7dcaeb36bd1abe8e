"""
Battle Lifecycle

Orchestrates create / join / cancel against the arena contract:

  - local preconditions first (ownership snapshot, stake, single-flight)
  - AllowanceGuard strictly before any staking submission
  - outcome decoding strictly after inclusion, before any refresh
  - stats + open battles refreshed after every state-changing action

Each mutating call either completes with a ledger change and a refreshed
read-side, or raises and leaves the views at their last-known-good value.
Only one mutating action may be pending at a time; the ledger serializes
everything else.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from core.arena import ArenaState, ArenaStateMachine
from core.errors import ArenaError, PreconditionError, SettlementAmbiguous
from core.ledger import Battle, PlayerStats
from utils.alerts import send_alert
from utils.formatting import format_tarb, short_address

if TYPE_CHECKING:
    from core.allowance import AllowanceGuard
    from core.ledger import LedgerReader
    from core.outcome import BattleOutcome, OutcomeExtractor
    from core.ownership import OwnershipResolver, OwnershipSnapshot
    from core.transactions import TransactionSender

log = logging.getLogger("riparena.lifecycle")


class BattleLifecycle:
    def __init__(
        self,
        me: str,
        contract: Any,
        reader: LedgerReader,
        sender: TransactionSender,
        guard: AllowanceGuard,
        ownership: OwnershipResolver,
        outcomes: OutcomeExtractor,
        arena: ArenaStateMachine | None = None,
    ) -> None:
        self._me = me
        self._contract = contract
        self._reader = reader
        self._sender = sender
        self._guard = guard
        self._ownership = ownership
        self._outcomes = outcomes
        self._arena = arena or ArenaStateMachine()
        self._pending: str | None = None
        self._generation = 0
        self._open: list[Battle] = []
        self._stats: PlayerStats = PlayerStats.empty()

    @property
    def me(self) -> str:
        return self._me

    @property
    def arena(self) -> ArenaStateMachine:
        return self._arena

    @property
    def busy(self) -> bool:
        return self._pending is not None

    @property
    def open_battles(self) -> list[Battle]:
        return list(self._open)

    @property
    def player_stats(self) -> PlayerStats:
        return self._stats

    @property
    def collectibles(self) -> tuple[int, ...]:
        snap = self._ownership.snapshot
        return snap.collectible_ids if snap else ()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    async def refresh_ownership(self) -> OwnershipSnapshot:
        return await self._ownership.resolve(self._me)

    async def list_open(self) -> list[Battle]:
        """Open battles, re-checked one by one so a battle settled between
        the id list and its detail read is never offered."""
        generation = self._generation
        ids = await self._reader.list_open_ids()
        battles: list[Battle] = []
        for battle_id in ids:
            battle = await self._reader.get_battle(battle_id)
            if battle.active:
                battles.append(battle)
            else:
                log.debug("Battle #%d listed open but inactive, dropped", battle_id)
        if generation == self._generation:
            self._open = battles
        else:
            log.debug("Open battle read raced a mutating action, result not installed")
        return list(battles)

    async def stats(self, address: str | None = None) -> PlayerStats:
        addr = address or self._me
        result = await self._reader.player_stats(addr)
        if addr.lower() == self._me.lower():
            self._stats = result
        return result

    async def refresh(self, label: str = "REFRESH") -> None:
        try:
            await self.stats()
        except ArenaError as exc:
            log.warning("%s  stats refresh failed: %s", label, exc)
        try:
            await self.list_open()
        except ArenaError as exc:
            log.warning("%s  open battles refresh failed: %s", label, exc)

    # ------------------------------------------------------------------
    # Mutating actions
    # ------------------------------------------------------------------
    async def create(self, collectible_id: int, stake: int) -> dict[str, Any]:
        self._begin("CREATE")
        try:
            if stake <= 0:
                raise PreconditionError(f"Stake must be > 0: got {stake}")
            self._require_owned(collectible_id)
            self._arena.select(collectible_id)

            minimum = await self._reader.min_stake()
            if stake < minimum:
                raise PreconditionError(
                    f"Stake {format_tarb(stake)} below arena minimum {format_tarb(minimum)}"
                )

            self._arena.start_create()
            try:
                await self._guard.ensure(self._me, self._reader.arena_address, stake)
                self._arena.submitted()
                receipt = await self._sender.submit(
                    self._contract.functions.createBattle(collectible_id, stake), "CREATE",
                )
            except ArenaError as exc:
                self._arena.fail(str(exc))
                raise

            await self.refresh("CREATE")
            battle_id = self._find_own_battle(collectible_id)
            self._arena.opened(battle_id)
            log.info(
                "CREATE  battle #%s | collectible #%d | stake %s $TARB",
                battle_id, collectible_id, format_tarb(stake),
            )
            await send_alert(
                f"Battle created\n"
                f"Collectible: #{collectible_id}\n"
                f"Stake: {format_tarb(stake)} $TARB\n"
                f"Waiting for challenger..."
            )
            return receipt
        finally:
            self._end()

    async def join(
        self, battle_id: int, collectible_id: int, stake: int | None = None,
    ) -> BattleOutcome:
        self._begin("JOIN")
        try:
            if stake is not None and stake <= 0:
                raise PreconditionError(f"Stake must be > 0: got {stake}")
            self._require_owned(collectible_id)
            self._arena.select(collectible_id)

            battle = await self._reader.get_battle(battle_id)
            if not battle.active:
                raise PreconditionError(f"Battle #{battle_id} is no longer open")
            if battle.created_by(self._me):
                raise PreconditionError(f"Battle #{battle_id} is your own battle")
            if stake is not None and stake != battle.stake:
                raise PreconditionError(
                    f"Battle #{battle_id} stake is {battle.stake}, not {stake}"
                )

            self._arena.start_join(battle_id)
            try:
                await self._guard.ensure(self._me, self._reader.arena_address, battle.stake)
                self._arena.submitted()
                receipt = await self._sender.submit(
                    self._contract.functions.joinBattle(battle_id, collectible_id), "JOIN",
                )
            except ArenaError as exc:
                self._arena.fail(str(exc))
                raise

            try:
                outcome = self._outcomes.extract(receipt)
            except SettlementAmbiguous:
                self._arena.resolve(None)
                await self.refresh("JOIN")
                await send_alert(f"Battle #{battle_id} joined, outcome unknown")
                raise

            self._arena.resolve(outcome)
            await self.refresh("JOIN")
            await self._alert_outcome(outcome, battle)
            return outcome
        finally:
            self._end()

    async def cancel(self, battle_id: int) -> dict[str, Any]:
        self._begin("CANCEL")
        try:
            battle = await self._reader.get_battle(battle_id)
            if not battle.active:
                raise PreconditionError(f"Battle #{battle_id} is not active")
            if not battle.created_by(self._me):
                raise PreconditionError(f"Battle #{battle_id} was not created by you")

            receipt = await self._sender.submit(
                self._contract.functions.cancelBattle(battle_id), "CANCEL",
            )
            if (
                self._arena.state == ArenaState.AWAITING_OPPONENT
                and self._arena.battle_id in (None, battle_id)
            ):
                self._arena.closed()
            log.info("CANCEL  battle #%d | stake %s $TARB returned", battle_id, format_tarb(battle.stake))
            await self.refresh("CANCEL")
            return receipt
        finally:
            self._end()

    # ------------------------------------------------------------------
    def _begin(self, label: str) -> None:
        if self._pending is not None:
            raise PreconditionError(
                f"{label} rejected: {self._pending} still pending for {short_address(self._me)}"
            )
        self._pending = label
        self._generation += 1

    def _end(self) -> None:
        self._pending = None

    def _require_owned(self, collectible_id: int) -> None:
        snap = self._ownership.snapshot
        if snap is None:
            raise PreconditionError("Collectible ownership has not been resolved yet")
        if collectible_id not in snap:
            raise PreconditionError(
                f"Collectible #{collectible_id} is not held by {short_address(self._me)}"
            )

    def _find_own_battle(self, collectible_id: int) -> int | None:
        mine = [
            b for b in self._open
            if b.created_by(self._me) and b.creator_collectible_id == collectible_id
        ]
        return max(b.battle_id for b in mine) if mine else None

    async def _alert_outcome(self, outcome: BattleOutcome, battle: Battle) -> None:
        tag = "VICTORY" if outcome.won else "DEFEAT"
        if outcome.won:
            log.info("RESOLVED %s  battle #%d | prize %s $TARB", tag, outcome.battle_id, format_tarb(outcome.prize))
        else:
            log.warning("RESOLVED %s  battle #%d | lost %s $TARB", tag, outcome.battle_id, format_tarb(battle.stake))
        await send_alert(
            f"Battle #{outcome.battle_id} {tag}\n"
            f"Winner: {short_address(outcome.winner)}\n"
            f"Prize: {format_tarb(outcome.prize)} $TARB"
        )
