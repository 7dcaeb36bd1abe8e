"""
Signs, submits and waits for arena transactions.

Once ``send_raw_transaction`` returns the tx is final from the client's
point of view: abandoning the wait only stops watching, the ledger still
executes it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from core.errors import ArenaError, ConnectivityError, TransactionReverted

if TYPE_CHECKING:
    from core.rate_limiter import RateLimiter
    from core.wallet import WalletSession

log = logging.getLogger("riparena.transactions")


class TransactionSender:
    def __init__(
        self,
        wallet: WalletSession,
        timeout: float = 120.0,
        limiter: RateLimiter | None = None,
    ) -> None:
        self._wallet = wallet
        self._timeout = timeout
        self._limiter = limiter

    async def submit(self, call: Any, label: str) -> dict[str, Any]:
        """
        Build, sign and send ``call`` (a bound contract function), then wait
        for inclusion. Returns the receipt as a dict.
        """
        if self._limiter:
            await self._limiter.acquire(cost=4)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._submit_sync, call, label)
        except ArenaError:
            raise
        except Exception as exc:
            log.error("%s submission failed: %s", label, exc)
            raise ConnectivityError(f"{label} failed: {exc}") from exc

    def _submit_sync(self, call: Any, label: str) -> dict[str, Any]:
        w3 = self._wallet.w3
        sender = self._wallet.address

        tx = call.build_transaction({
            "from": sender,
            "nonce": w3.eth.get_transaction_count(sender),
            "gasPrice": w3.eth.gas_price,
            "chainId": self._wallet.chain_id,
        })
        tx["gas"] = w3.eth.estimate_gas(tx)

        signed = w3.eth.account.sign_transaction(tx, self._wallet.private_key)
        raw_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hex = w3.to_hex(raw_hash)
        log.info("%s sent tx=%s, waiting for inclusion", label, tx_hex)

        receipt = w3.eth.wait_for_transaction_receipt(raw_hash, timeout=self._timeout)
        status = receipt.get("status", 0)
        log.info(
            "%s | status=%s gas=%d block=%s tx=%s",
            label, "OK" if status == 1 else "FAILED",
            receipt.get("gasUsed", 0), receipt.get("blockNumber"), tx_hex,
        )
        if status != 1:
            raise TransactionReverted(label, tx_hex)
        return dict(receipt)
