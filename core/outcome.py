"""
Settlement decoding.

A join receipt can carry unrelated logs ($TARB Transfer/Approval from the
stake pull, collectible transfers, ...). Each log is tried against the
arena's LetItRip ABI; the first that decodes is the settlement. Finding
none means "outcome unknown", never a loss.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import LogTopicError, MismatchedABI

from core.contracts import SETTLEMENT_EVENT
from core.errors import SettlementAmbiguous

log = logging.getLogger("riparena.outcome")


@dataclass(frozen=True, slots=True)
class BattleOutcome:
    battle_id: int
    winner: str
    loser: str
    prize: int
    won: bool

    def to_dict(self) -> dict:
        return {
            "battle_id": self.battle_id,
            "winner": self.winner,
            "loser": self.loser,
            "prize": str(self.prize),
            "won": self.won,
        }


def same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class OutcomeExtractor:
    def __init__(self, arena: Any, me: str) -> None:
        self._event = getattr(arena.events, SETTLEMENT_EVENT)()
        self._arena_address = arena.address
        self._me = me

    def find(self, receipt: dict[str, Any]) -> BattleOutcome | None:
        for entry in receipt.get("logs", []):
            if not same_address(str(entry.get("address", "")), self._arena_address):
                continue
            try:
                decoded = self._event.process_log(entry)
            except (MismatchedABI, LogTopicError, DecodingError, IndexError, KeyError, ValueError):
                continue
            args = decoded["args"]
            winner = Web3.to_checksum_address(args["winner"])
            outcome = BattleOutcome(
                battle_id=int(args["battleId"]),
                winner=winner,
                loser=Web3.to_checksum_address(args["loser"]),
                prize=int(args["prize"]),
                won=same_address(winner, self._me),
            )
            log.info(
                "SETTLED  battle #%d winner=%s prize=%d (%s)",
                outcome.battle_id, winner, outcome.prize, "WIN" if outcome.won else "LOSS",
            )
            return outcome
        return None

    def extract(self, receipt: dict[str, Any]) -> BattleOutcome:
        outcome = self.find(receipt)
        if outcome is None:
            tx = receipt.get("transactionHash", "")
            tx_hex = Web3.to_hex(tx) if isinstance(tx, (bytes, bytearray)) else str(tx)
            log.error("No %s event in tx %s", SETTLEMENT_EVENT, tx_hex)
            raise SettlementAmbiguous(tx_hex)
        return outcome
