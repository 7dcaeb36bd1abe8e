"""Decoding the LetItRip settlement out of a join receipt."""

from __future__ import annotations

import pytest
from hexbytes import HexBytes

from core.errors import SettlementAmbiguous
from core.outcome import BattleOutcome, OutcomeExtractor, same_address
from tests.fakes import (
    ALICE,
    ARENA_ADDR,
    BOB,
    ONE_TARB,
    TOKEN_ADDR,
    erc20_transfer_log,
    settlement_log,
)


def _receipt(*logs) -> dict:
    return {"status": 1, "logs": list(logs), "transactionHash": HexBytes(b"\xab" * 32)}


class TestOutcomeExtractor:
    def test_win_when_winner_is_me(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        outcome = ex.extract(_receipt(settlement_log(3, ALICE, BOB, 2_000_000 * ONE_TARB)))
        assert outcome == BattleOutcome(
            battle_id=3, winner=ALICE, loser=BOB, prize=2_000_000 * ONE_TARB, won=True,
        )

    def test_loss_when_winner_is_other(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        outcome = ex.extract(_receipt(settlement_log(3, BOB, ALICE, 20)))
        assert outcome.won is False
        assert outcome.winner == BOB
        assert outcome.loser == ALICE

    def test_winner_compared_case_insensitively(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE.lower())
        outcome = ex.extract(_receipt(settlement_log(1, ALICE, BOB, 2)))
        assert outcome.won is True

    def test_unrelated_logs_are_skipped(self, real_arena):
        ex = OutcomeExtractor(real_arena, BOB)
        receipt = _receipt(
            erc20_transfer_log(BOB, ARENA_ADDR, 10, log_index=0),
            {"address": ARENA_ADDR, "topics": [], "data": HexBytes(b""), "logIndex": 1},
            settlement_log(9, BOB, ALICE, 20, log_index=2),
        )
        outcome = ex.extract(receipt)
        assert outcome.battle_id == 9
        assert outcome.won is True

    def test_settlement_from_other_contract_ignored(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        forged = dict(settlement_log(6, ALICE, BOB, 8, log_index=0), address=TOKEN_ADDR)
        genuine = settlement_log(7, BOB, ALICE, 8, log_index=1)
        outcome = ex.extract(_receipt(forged, genuine))
        assert outcome.battle_id == 7
        assert outcome.won is False

        with pytest.raises(SettlementAmbiguous):
            ex.extract(_receipt(forged))

    def test_first_settlement_wins(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        receipt = _receipt(
            settlement_log(4, BOB, ALICE, 8, log_index=0),
            settlement_log(5, ALICE, BOB, 8, log_index=1),
        )
        assert ex.extract(receipt).battle_id == 4

    def test_no_settlement_is_ambiguous(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        receipt = _receipt(erc20_transfer_log(ALICE, ARENA_ADDR, 10))
        assert ex.find(receipt) is None
        with pytest.raises(SettlementAmbiguous) as info:
            ex.extract(receipt)
        assert info.value.tx_hash == "0x" + "ab" * 32

    def test_empty_receipt_is_ambiguous(self, real_arena):
        ex = OutcomeExtractor(real_arena, ALICE)
        with pytest.raises(SettlementAmbiguous):
            ex.extract({"status": 1, "logs": [], "transactionHash": "0xfeed"})


class TestBattleOutcome:
    def test_to_dict_stringifies_prize(self):
        outcome = BattleOutcome(battle_id=1, winner=ALICE, loser=BOB, prize=2**70, won=True)
        assert outcome.to_dict()["prize"] == str(2**70)

    def test_same_address(self):
        assert same_address(ALICE, ALICE.lower())
        assert not same_address(ALICE, BOB)
