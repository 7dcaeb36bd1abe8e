from __future__ import annotations

import os

import pytest

os.environ.setdefault("WALLET_PRIVATE_KEY", "0x" + "11" * 32)
os.environ.setdefault("ARENA_RPC_URLS", "https://arb1.arbitrum.io/rpc")
os.environ.setdefault("COLLECTIBLE_RPC_URLS", "https://mainnet.base.org")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("TELEGRAM_CHAT_ID", "")


@pytest.fixture
def chain():
    from tests.fakes import ALICE, BOB, ONE_TARB, FakeChain

    c = FakeChain()
    c.balances[ALICE.lower()] = 10_000_000 * ONE_TARB
    c.balances[BOB.lower()] = 10_000_000 * ONE_TARB
    return c


@pytest.fixture
def real_arena():
    from web3 import Web3

    from core.contracts import ARENA_ABI
    from tests.fakes import ARENA_ADDR

    return Web3().eth.contract(address=ARENA_ADDR, abi=ARENA_ABI)
