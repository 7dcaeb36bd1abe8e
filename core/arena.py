"""
Arena State Machine

Client-visible state of one session:

  IDLE
    -> AWAITING_SELECTION          collectible chosen
    -> CREATING / JOINING          action submitted
    -> AWAITING_SETTLEMENT         inclusion pending
    -> AWAITING_OPPONENT           create included, battle is open
    -> RESOLVED(result)            join settled, WIN / LOSS / UNKNOWN
    -> IDLE                        result acknowledged

A failure while submitting or waiting falls back to AWAITING_SELECTION
with the selection kept, so the user can retry. RESOLVED only exits via
``acknowledge()``.

Animations are not driven imperatively: listeners receive Transition
records and ``presentation()`` derives the blade visuals from state alone.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from core.errors import InvalidTransition

if TYPE_CHECKING:
    from core.outcome import BattleOutcome

log = logging.getLogger("riparena.arena")


class ArenaState(enum.Enum):
    IDLE = "IDLE"
    AWAITING_SELECTION = "AWAITING_SELECTION"
    CREATING = "CREATING"
    AWAITING_OPPONENT = "AWAITING_OPPONENT"
    JOINING = "JOINING"
    AWAITING_SETTLEMENT = "AWAITING_SETTLEMENT"
    RESOLVED = "RESOLVED"


class ArenaResult(enum.Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    UNKNOWN = "UNKNOWN"


S = ArenaState

_ALLOWED: dict[ArenaState, frozenset[ArenaState]] = {
    S.IDLE: frozenset({S.AWAITING_SELECTION}),
    S.AWAITING_SELECTION: frozenset({S.AWAITING_SELECTION, S.CREATING, S.JOINING, S.IDLE}),
    S.CREATING: frozenset({S.AWAITING_SETTLEMENT, S.AWAITING_SELECTION}),
    S.JOINING: frozenset({S.AWAITING_SETTLEMENT, S.AWAITING_SELECTION}),
    S.AWAITING_SETTLEMENT: frozenset({S.AWAITING_OPPONENT, S.RESOLVED, S.AWAITING_SELECTION}),
    S.AWAITING_OPPONENT: frozenset({S.IDLE, S.AWAITING_SELECTION}),
    S.RESOLVED: frozenset({S.IDLE}),
}


@dataclass(frozen=True, slots=True)
class Transition:
    previous: ArenaState
    current: ArenaState
    selection: int | None
    battle_id: int | None
    result: ArenaResult | None
    timestamp: float = field(default_factory=time.time)


Listener = Callable[[Transition], None]


class ArenaStateMachine:
    def __init__(self) -> None:
        self._state = ArenaState.IDLE
        self._selection: int | None = None
        self._battle_id: int | None = None
        self._result: ArenaResult | None = None
        self._outcome: BattleOutcome | None = None
        self._error: str = ""
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ArenaState:
        return self._state

    @property
    def selection(self) -> int | None:
        return self._selection

    @property
    def battle_id(self) -> int | None:
        return self._battle_id

    @property
    def result(self) -> ArenaResult | None:
        return self._result

    @property
    def outcome(self) -> BattleOutcome | None:
        return self._outcome

    @property
    def last_error(self) -> str:
        return self._error

    @property
    def pending(self) -> bool:
        """True while a submitted action has not reached a stable state."""
        return self._state in (S.CREATING, S.JOINING, S.AWAITING_SETTLEMENT)

    def can_enter(self, target: ArenaState) -> bool:
        return target in _ALLOWED[self._state]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Requested transitions
    # ------------------------------------------------------------------
    def select(self, collectible_id: int) -> None:
        prev = self._move(S.AWAITING_SELECTION)
        self._selection = collectible_id
        self._battle_id = None
        self._error = ""
        self._notify(prev)

    def clear(self) -> None:
        prev = self._move(S.IDLE)
        self._selection = None
        self._notify(prev)

    def start_create(self) -> None:
        self._require_selection()
        prev = self._move(S.CREATING)
        self._notify(prev)

    def start_join(self, battle_id: int) -> None:
        self._require_selection()
        prev = self._move(S.JOINING)
        self._battle_id = battle_id
        self._notify(prev)

    def submitted(self) -> None:
        prev = self._move(S.AWAITING_SETTLEMENT)
        self._notify(prev)

    def opened(self, battle_id: int | None = None) -> None:
        prev = self._move(S.AWAITING_OPPONENT)
        self._battle_id = battle_id
        self._notify(prev)

    def resolve(self, outcome: BattleOutcome | None) -> None:
        prev = self._move(S.RESOLVED)
        self._outcome = outcome
        if outcome is None:
            self._result = ArenaResult.UNKNOWN
        else:
            self._result = ArenaResult.WIN if outcome.won else ArenaResult.LOSS
            self._battle_id = outcome.battle_id
        self._notify(prev)

    def fail(self, error: str) -> None:
        prev = self._move(S.AWAITING_SELECTION)
        self._error = error
        self._notify(prev)

    def closed(self) -> None:
        """The open battle this session was waiting on is gone."""
        prev = self._move(S.IDLE)
        self._battle_id = None
        self._selection = None
        self._notify(prev)

    def acknowledge(self) -> None:
        prev = self._move(S.IDLE)
        self._selection = None
        self._battle_id = None
        self._result = None
        self._outcome = None
        self._notify(prev)

    def snapshot(self) -> dict:
        return {
            "state": self._state.value,
            "selection": self._selection,
            "battle_id": self._battle_id,
            "result": self._result.value if self._result else None,
            "outcome": self._outcome.to_dict() if self._outcome else None,
            "last_error": self._error,
            "presentation": presentation(self._state, self._result),
        }

    # ------------------------------------------------------------------
    def _require_selection(self) -> None:
        if self._selection is None:
            raise InvalidTransition(self._state, "action without selection")

    def _move(self, target: ArenaState) -> ArenaState:
        if not self.can_enter(target):
            raise InvalidTransition(self._state, target)
        log.info("ARENA  %s -> %s", self._state.value, target.value)
        prev, self._state = self._state, target
        return prev

    def _notify(self, previous: ArenaState) -> None:
        tr = Transition(
            previous=previous,
            current=self._state,
            selection=self._selection,
            battle_id=self._battle_id,
            result=self._result,
        )
        for listener in list(self._listeners):
            try:
                listener(tr)
            except Exception as exc:
                log.error("Arena listener failed: %s", exc)


def presentation(state: ArenaState, result: ArenaResult | None = None) -> dict:
    """Blade visuals as a pure function of arena state.

    ``mine`` is the session's blade, ``theirs`` the opponent's.
    """
    if state in (S.JOINING, S.AWAITING_SETTLEMENT):
        return {"mine": "spinning", "theirs": "spinning", "spin": "intense", "sparks": True}
    if state == S.RESOLVED:
        if result == ArenaResult.WIN:
            return {"mine": "winner", "theirs": "loser", "spin": "normal", "sparks": False}
        if result == ArenaResult.LOSS:
            return {"mine": "loser", "theirs": "winner", "spin": "normal", "sparks": False}
        return {"mine": "spinning", "theirs": "spinning", "spin": "normal", "sparks": False}
    return {"mine": "spinning", "theirs": "spinning", "spin": "normal", "sparks": False}
