from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from web3 import Web3

from core.contracts import MAX_UINT256
from core.errors import PreconditionError

if TYPE_CHECKING:
    from core.ledger import LedgerReader
    from core.transactions import TransactionSender

log = logging.getLogger("riparena.allowance")


class AllowanceGuard:
    """
    Makes sure the arena may pull at least ``required`` $TARB before a
    stake is submitted.

    When the current allowance is short, a single unlimited approval is
    sent and awaited so later wagers skip this step. When it is already
    sufficient nothing is submitted.
    """

    def __init__(self, reader: LedgerReader, token: Any, sender: TransactionSender) -> None:
        self._reader = reader
        self._token = token
        self._sender = sender

    async def ensure(self, owner: str, spender: str, required: int) -> dict[str, Any] | None:
        """Return the approval receipt, or None when no approval was needed."""
        if required <= 0:
            raise PreconditionError(f"Required allowance must be > 0: got {required}")

        current = await self._reader.allowance(owner, spender)
        if current >= required:
            log.debug("ALLOWANCE ok: %d >= %d", current, required)
            return None

        log.info(
            "APPROVE  allowance %d < %d, approving unlimited for %s",
            current, required, spender,
        )
        call = self._token.functions.approve(Web3.to_checksum_address(spender), MAX_UINT256)
        return await self._sender.submit(call, "APPROVE")
