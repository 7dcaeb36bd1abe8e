"""
Non-blocking Telegram alerts.

Sent for: battle created, battle settled (win / loss / unknown), crashes.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from core.config import settings

log = logging.getLogger("riparena.alerts")

_TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


async def send_alert(message: str) -> None:
    """Send a Telegram message. Logs and returns if not configured or on failure."""
    cfg = settings.telegram
    if not cfg.enabled:
        log.debug("Telegram not configured, skipping alert")
        return

    url = _TELEGRAM_API.format(token=cfg.bot_token)
    payload = {
        "chat_id": cfg.chat_id,
        "text": f"[RipArena] {message}",
        "disable_web_page_preview": True,
    }

    try:
        async with aiohttp.ClientSession() as sess:
            async with sess.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=5)) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    log.warning("Telegram API error %d: %s", resp.status, body)
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        log.warning("Telegram send failed: %s", exc)


async def alert_crash(error: str) -> None:
    await send_alert(f"SESSION CRASH\n{error}")
