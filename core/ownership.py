"""
Collectible ownership from the ERC-721 Transfer log.

The collectible contract has no "tokens of owner" view, so the holder's
set is rebuilt by replaying every Transfer into or out of the address
since a fixed origin block:

  1. read ``latest`` once so both scans cover the same range
  2. fetch inbound (to=holder) and outbound (from=holder) logs concurrently
  3. merge, de-duplicate self-transfers, order by (block, logIndex)
  4. fold: an outbound log drops the id, an inbound log adds it

Folding in order means an id sent away and later re-acquired ends up held.
A failed pass raises and the previous snapshot stays untouched.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

from web3 import Web3

from core.contracts import TRANSFER_TOPIC, address_topic, topic_to_address, topic_to_int
from core.errors import ConnectivityError
from utils.tasks import gather_or_cancel

if TYPE_CHECKING:
    from core.rate_limiter import RateLimiter

log = logging.getLogger("riparena.ownership")

_TOO_LARGE_HINTS = ("query returned more than", "too many", "block range", "limit exceeded")


@dataclass(frozen=True, slots=True)
class OwnershipSnapshot:
    holder: str
    collectible_ids: tuple[int, ...]
    latest_block: int

    def __contains__(self, collectible_id: object) -> bool:
        return collectible_id in self.collectible_ids

    def __len__(self) -> int:
        return len(self.collectible_ids)


def fold_transfers(holder: str, logs: Iterable[dict[str, Any]]) -> tuple[int, ...]:
    """Replay Transfer logs in ledger order and return the ids still held."""
    holder = holder.lower()
    seen: set[tuple[int, int]] = set()
    ordered: list[dict[str, Any]] = []
    for entry in logs:
        topics = entry.get("topics", [])
        if len(topics) != 4:
            # ERC-20 style Transfer (token id in data), not a collectible
            continue
        key = (int(entry["blockNumber"]), int(entry["logIndex"]))
        if key in seen:
            continue
        seen.add(key)
        ordered.append(entry)
    ordered.sort(key=lambda e: (int(e["blockNumber"]), int(e["logIndex"])))

    held: set[int] = set()
    for entry in ordered:
        _, src, dst, token = entry["topics"]
        token_id = topic_to_int(token)
        if topic_to_address(src).lower() == holder:
            held.discard(token_id)
        if topic_to_address(dst).lower() == holder:
            held.add(token_id)
    return tuple(sorted(held))


class OwnershipResolver:
    def __init__(
        self,
        w3: Web3,
        collectible_address: str,
        origin_block: int,
        chunk_size: int = 50_000,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._w3 = w3
        self._address = Web3.to_checksum_address(collectible_address)
        self._origin = origin_block
        self._chunk_size = chunk_size
        self._limiter = limiter
        self._snapshot: OwnershipSnapshot | None = None

    @property
    def snapshot(self) -> OwnershipSnapshot | None:
        return self._snapshot

    async def resolve(self, holder: str) -> OwnershipSnapshot:
        """Rebuild the holder's snapshot from scratch and install it."""
        loop = asyncio.get_running_loop()
        try:
            latest = await loop.run_in_executor(None, lambda: self._w3.eth.block_number)
        except Exception as exc:
            raise ConnectivityError(f"block_number failed: {exc}") from exc

        holder_topic = address_topic(holder)
        inbound, outbound = await gather_or_cancel(
            self._scan([TRANSFER_TOPIC, None, holder_topic], latest),
            self._scan([TRANSFER_TOPIC, holder_topic], latest),
        )

        ids = fold_transfers(holder, [*inbound, *outbound])
        snap = OwnershipSnapshot(
            holder=Web3.to_checksum_address(holder),
            collectible_ids=ids,
            latest_block=latest,
        )
        self._snapshot = snap
        log.info(
            "OWNERSHIP  %s holds %d collectible(s) %s (in=%d out=%d, blocks %d-%d)",
            holder[:10], len(ids), list(ids), len(inbound), len(outbound),
            self._origin, latest,
        )
        return snap

    async def _scan(self, topics: list[Any], latest: int) -> list[dict[str, Any]]:
        """Fetch matching logs from origin to ``latest`` in shrinking chunks."""
        logs: list[dict[str, Any]] = []
        current = self._origin
        batch = self._chunk_size
        while current <= latest:
            batch_to = min(current + batch - 1, latest)
            try:
                logs.extend(await self._get_logs(topics, current, batch_to))
            except Exception as exc:
                msg = str(exc).lower()
                if batch > 1 and any(h in msg for h in _TOO_LARGE_HINTS):
                    batch = max(batch // 2, 1)
                    log.warning(
                        "get_logs too large (%d-%d), reducing chunk to %d",
                        current, batch_to, batch,
                    )
                    continue
                raise ConnectivityError(f"get_logs {current}-{batch_to} failed: {exc}") from exc
            current = batch_to + 1
        return logs

    async def _get_logs(self, topics: list[Any], start: int, end: int) -> list[dict[str, Any]]:
        if self._limiter:
            await self._limiter.acquire()
        params = {
            "address": self._address,
            "fromBlock": start,
            "toBlock": end,
            "topics": topics,
        }
        loop = asyncio.get_running_loop()
        entries = await loop.run_in_executor(None, lambda: self._w3.eth.get_logs(params))
        return [dict(e) for e in entries]
