"""
Read-only HTTP status surface for a running arena session.

  GET /api/status   wallet, profile, arena state, stats, collectibles
  GET /api/battles  last-known-good open battles (``joinable`` per viewer)

Serves the lifecycle's cached views; never issues ledger reads itself.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from aiohttp import web

from utils.formatting import collectible_image_url, format_tarb

if TYPE_CHECKING:
    from core.lifecycle import BattleLifecycle
    from core.poller import OpenBattlePoller
    from core.rate_limiter import RateLimiter
    from core.wallet import SessionProfile

log = logging.getLogger("riparena.dashboard")

_lifecycle_key: web.AppKey[BattleLifecycle] = web.AppKey("lifecycle")
_profile_key: web.AppKey[SessionProfile | None] = web.AppKey("profile")
_poller_key: web.AppKey[OpenBattlePoller | None] = web.AppKey("poller")
_limiter_key: web.AppKey[RateLimiter | None] = web.AppKey("limiter")

_START_TIME: float = time.time()


def _uptime() -> str:
    s = int(time.time() - _START_TIME)
    h, s = divmod(s, 3600)
    m, s = divmod(s, 60)
    return f"{h}h {m}m {s}s"


def _build_status(
    lifecycle: BattleLifecycle,
    profile: SessionProfile | None = None,
    poller: OpenBattlePoller | None = None,
    limiter: RateLimiter | None = None,
) -> dict:
    stats = lifecycle.player_stats
    return {
        "uptime": _uptime(),
        "address": lifecycle.me,
        "label": profile.label(lifecycle.me) if profile else lifecycle.me,
        "profile": profile.to_dict() if profile else None,
        "busy": lifecycle.busy,
        "arena": lifecycle.arena.snapshot(),
        "stats": {
            **stats.to_dict(),
            "balance_display": format_tarb(stats.balance),
            "earnings_display": format_tarb(stats.earnings),
        },
        "collectibles": [
            {"id": cid, "image": collectible_image_url(cid)}
            for cid in lifecycle.collectibles
        ],
        "open_battles": len(lifecycle.open_battles),
        "poller": {
            "running": poller.running,
            "cycles": poller.cycles,
            "skipped": poller.skipped,
        } if poller else None,
        "rate_limiter": limiter.stats if limiter else None,
    }


def _battle_view(lifecycle: BattleLifecycle) -> list[dict]:
    views = []
    for b in lifecycle.open_battles:
        views.append({
            **b.to_dict(),
            "stake_display": format_tarb(b.stake),
            "image": collectible_image_url(b.creator_collectible_id),
            "yours": b.created_by(lifecycle.me),
            "joinable": b.is_joinable_by(lifecycle.me),
        })
    return views


async def _handle_status(request: web.Request) -> web.Response:
    status = _build_status(
        request.app[_lifecycle_key],
        request.app[_profile_key],
        request.app[_poller_key],
        request.app[_limiter_key],
    )
    return web.json_response(status)


async def _handle_battles(request: web.Request) -> web.Response:
    return web.json_response(_battle_view(request.app[_lifecycle_key]))


def create_dashboard_app(
    lifecycle: BattleLifecycle,
    profile: SessionProfile | None = None,
    poller: OpenBattlePoller | None = None,
    limiter: RateLimiter | None = None,
) -> web.Application:
    """Create and return the aiohttp status application."""
    global _START_TIME
    _START_TIME = time.time()

    app = web.Application()
    app[_lifecycle_key] = lifecycle
    app[_profile_key] = profile
    app[_poller_key] = poller
    app[_limiter_key] = limiter

    app.router.add_get("/api/status", _handle_status)
    app.router.add_get("/api/battles", _handle_battles)

    return app


async def start_dashboard(
    lifecycle: BattleLifecycle,
    profile: SessionProfile | None = None,
    poller: OpenBattlePoller | None = None,
    port: int = 8080,
    limiter: RateLimiter | None = None,
) -> web.AppRunner:
    """Start the status server as a background task."""
    app = create_dashboard_app(lifecycle, profile, poller, limiter=limiter)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    log.info("Dashboard running on http://0.0.0.0:%d", port)
    return runner
