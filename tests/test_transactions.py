from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes

from core.errors import ConnectivityError, TransactionReverted
from core.transactions import TransactionSender

TX_HASH = HexBytes(b"\x07" * 32)


@pytest.fixture
def wallet():
    w = MagicMock()
    w.address = "0x" + "a1" * 20
    w.private_key = "0x" + "11" * 32
    w.chain_id = 42161
    w3 = w.w3
    w3.eth.get_transaction_count.return_value = 4
    w3.eth.gas_price = 10**8
    w3.eth.estimate_gas.return_value = 210_000
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.to_hex.return_value = "0x" + "07" * 32
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1, "gasUsed": 180_000, "blockNumber": 55, "logs": [],
    }
    return w


@pytest.fixture
def call():
    c = MagicMock()
    c.build_transaction.side_effect = lambda params: dict(params, to="0xarena", data="0x")
    return c


class TestTransactionSender:
    @pytest.mark.asyncio
    async def test_submit_returns_receipt(self, wallet, call):
        sender = TransactionSender(wallet, timeout=30)
        receipt = await sender.submit(call, "CREATE")
        assert receipt["status"] == 1

        params = call.build_transaction.call_args[0][0]
        assert params["from"] == wallet.address
        assert params["nonce"] == 4
        assert params["chainId"] == 42161

        signed_tx = wallet.w3.eth.account.sign_transaction.call_args[0][0]
        assert signed_tx["gas"] == 210_000
        wallet.w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=30)

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, wallet, call):
        wallet.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "gasUsed": 1}
        sender = TransactionSender(wallet)
        with pytest.raises(TransactionReverted) as info:
            await sender.submit(call, "JOIN")
        assert info.value.label == "JOIN"
        assert info.value.tx_hash == "0x" + "07" * 32

    @pytest.mark.asyncio
    async def test_estimate_failure_is_connectivity(self, wallet, call):
        wallet.w3.eth.estimate_gas.side_effect = ValueError("execution reverted")
        sender = TransactionSender(wallet)
        with pytest.raises(ConnectivityError, match="APPROVE failed"):
            await sender.submit(call, "APPROVE")
        wallet.w3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_wait_timeout_is_connectivity(self, wallet, call):
        wallet.w3.eth.wait_for_transaction_receipt.side_effect = TimeoutError("not mined")
        sender = TransactionSender(wallet)
        with pytest.raises(ConnectivityError):
            await sender.submit(call, "CREATE")

    @pytest.mark.asyncio
    async def test_submission_costs_limiter_tokens(self, wallet, call):
        limiter = AsyncMock()
        sender = TransactionSender(wallet, limiter=limiter)
        await sender.submit(call, "CANCEL")
        limiter.acquire.assert_awaited_once_with(cost=4)
