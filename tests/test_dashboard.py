"""Tests for the read-only HTTP status surface."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from core.dashboard import _build_status, create_dashboard_app
from core.poller import OpenBattlePoller
from core.rate_limiter import RateLimiter
from core.wallet import SessionProfile
from tests.fakes import ALICE, BOB, build_lifecycle, mint_transfers


@pytest.fixture
async def lifecycle(chain):
    lc = build_lifecycle(chain, ALICE, mint_transfers(ALICE, [3, 7]))
    await lc.refresh_ownership()
    return lc


@pytest.fixture
async def with_battles(chain, lifecycle):
    bob = build_lifecycle(chain, BOB, mint_transfers(BOB, [12]))
    await bob.refresh_ownership()
    with patch("core.lifecycle.send_alert", new_callable=AsyncMock):
        await bob.create(12, 5_000 * 10**18)
        await lifecycle.create(7, 2_500_000 * 10**18)
    return lifecycle


@pytest.fixture
def profile():
    return SessionProfile(fid=99, username="ripper", display_name="Rip Ripper")


@pytest.fixture
async def client(lifecycle, profile):
    app = create_dashboard_app(
        lifecycle,
        profile,
        OpenBattlePoller(lifecycle, interval=5.0),
        limiter=RateLimiter(rate=5.0, burst=10),
    )
    cli = TestClient(TestServer(app))
    await cli.start_server()
    yield cli
    await cli.close()


# ------------------------------------------------------------------
# API /api/status
# ------------------------------------------------------------------
class TestApiStatus:
    async def test_status_returns_200(self, client):
        resp = await client.get("/api/status")
        assert resp.status == 200

    async def test_status_json_structure(self, client):
        data = await (await client.get("/api/status")).json()
        for key in (
            "uptime", "address", "label", "profile", "busy", "arena",
            "stats", "collectibles", "open_battles", "poller", "rate_limiter",
        ):
            assert key in data

    async def test_status_initial_values(self, client):
        data = await (await client.get("/api/status")).json()
        assert data["address"] == ALICE
        assert data["label"] == "Rip Ripper"
        assert data["busy"] is False
        assert data["arena"]["state"] == "IDLE"
        assert data["arena"]["presentation"]["spin"] == "normal"
        assert data["open_battles"] == 0
        assert data["poller"] == {"running": False, "cycles": 0, "skipped": 0}
        assert data["rate_limiter"]["rpc_calls"] == 0

    async def test_collectibles_carry_image_url(self, client):
        data = await (await client.get("/api/status")).json()
        assert [c["id"] for c in data["collectibles"]] == [3, 7]
        assert data["collectibles"][0]["image"].endswith("/3.png")


class TestBuildStatus:
    async def test_without_optional_parts(self, lifecycle):
        status = _build_status(lifecycle)
        assert status["label"] == ALICE
        assert status["profile"] is None
        assert status["poller"] is None
        assert status["rate_limiter"] is None

    async def test_stats_display(self, with_battles):
        status = _build_status(with_battles)
        assert status["stats"]["total_battles"] == 2
        assert status["stats"]["balance_display"] == "7.50M"
        assert status["arena"]["state"] == "AWAITING_OPPONENT"


# ------------------------------------------------------------------
# API /api/battles
# ------------------------------------------------------------------
class TestApiBattles:
    async def test_battles_view(self, with_battles, profile):
        app = create_dashboard_app(with_battles, profile)
        cli = TestClient(TestServer(app))
        await cli.start_server()
        try:
            resp = await cli.get("/api/battles")
            assert resp.status == 200
            battles = await resp.json()
        finally:
            await cli.close()

        by_creator = {b["creator"]: b for b in battles}
        assert by_creator[BOB]["joinable"] is True
        assert by_creator[BOB]["yours"] is False
        assert by_creator[BOB]["stake_display"] == "5.0K"
        assert by_creator[ALICE]["joinable"] is False
        assert by_creator[ALICE]["yours"] is True
        assert by_creator[ALICE]["stake"] == str(2_500_000 * 10**18)
        assert by_creator[ALICE]["image"].endswith("/7.png")

    async def test_empty(self, client):
        resp = await client.get("/api/battles")
        assert await resp.json() == []
