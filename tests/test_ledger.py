from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from core.errors import ConnectivityError
from core.ledger import Battle, LedgerReader, PlayerStats
from tests.fakes import ALICE, BOB, ONE_TARB


@pytest.fixture
def reader(chain):
    return LedgerReader(chain.arena, chain.token)


def _open(chain, creator, stake=ONE_TARB, token_id=1):
    chain.allowances[(creator.lower(), chain.arena.address.lower())] = stake
    chain.tx_arena_createBattle(creator, token_id, stake)


class TestBattle:
    def test_created_by_ignores_case(self):
        b = Battle(1, ALICE, "0x" + "0" * 40, 10, 3, 0, True)
        assert b.created_by(ALICE.lower())
        assert not b.is_joinable_by(ALICE)
        assert b.is_joinable_by(BOB)

    def test_inactive_not_joinable(self):
        b = Battle(1, ALICE, BOB, 10, 3, 4, False)
        assert not b.is_joinable_by(BOB)

    def test_to_dict_stake_is_string(self):
        d = Battle(1, ALICE, BOB, 2**80, 3, 4, True).to_dict()
        assert d["stake"] == str(2**80)
        assert d["creator_collectible_id"] == 3


class TestLedgerReader:
    @pytest.mark.asyncio
    async def test_open_ids_and_detail(self, chain, reader):
        _open(chain, ALICE, token_id=9)
        ids = await reader.list_open_ids()
        assert ids == [1]
        battle = await reader.get_battle(1)
        assert battle.creator == ALICE
        assert battle.creator_collectible_id == 9
        assert battle.active is True

    @pytest.mark.asyncio
    async def test_player_stats_aggregates(self, chain, reader):
        chain.stats[ALICE.lower()] = [3, 1, 40 * ONE_TARB]
        _open(chain, BOB)
        stats = await reader.player_stats(ALICE)
        assert stats == PlayerStats(
            wins=3,
            losses=1,
            earnings=40 * ONE_TARB,
            balance=10_000_000 * ONE_TARB,
            total_battles=1,
        )

    @pytest.mark.asyncio
    async def test_min_stake_and_allowance(self, chain, reader):
        chain.min_stake = 500
        assert await reader.min_stake() == 500
        assert await reader.allowance(ALICE, chain.arena.address) == 0

    @pytest.mark.asyncio
    async def test_failure_wrapped(self, chain, reader):
        def _down():
            raise TimeoutError("read timed out")

        chain.arena_totalBattles = _down
        with pytest.raises(ConnectivityError, match="totalBattles"):
            await reader.total_battles()

    @pytest.mark.asyncio
    async def test_limiter_is_used(self, chain):
        limiter = AsyncMock()
        reader = LedgerReader(chain.arena, chain.token, limiter=limiter)
        await reader.player_stats(ALICE)
        assert limiter.acquire.await_count == 3


class TestPlayerStats:
    def test_empty(self):
        assert PlayerStats.empty().to_dict() == {
            "wins": 0, "losses": 0, "earnings": "0", "balance": "0", "total_battles": 0,
        }
