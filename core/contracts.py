"""
Minimal ABIs for the three contracts the arena talks to.

  ArenaBattles  (Arbitrum One)  wagers, stats, LetItRip settlement event
  $TARB         (Arbitrum One)  ERC-20 stake token
  Protardio     (Base)          ERC-721 collectible, Transfer log only
"""

from __future__ import annotations

import json
from typing import Any

from web3 import Web3

MAX_UINT256 = 2**256 - 1
ZERO_ADDR = "0x" + "0" * 40

ARENA_ABI = json.loads("""[
    {"inputs":[{"name":"tokenId","type":"uint256"},{"name":"stakeAmount","type":"uint256"}],"name":"createBattle","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"name":"battleId","type":"uint256"},{"name":"tokenId","type":"uint256"}],"name":"joinBattle","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"name":"battleId","type":"uint256"}],"name":"cancelBattle","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[],"name":"getOpenBattles","outputs":[{"name":"","type":"uint256[]"}],"stateMutability":"view","type":"function"},
    {"inputs":[{"name":"","type":"uint256"}],"name":"getBattle","outputs":[{"name":"player1","type":"address"},{"name":"player2","type":"address"},{"name":"stake","type":"uint256"},{"name":"p1TokenId","type":"uint256"},{"name":"p2TokenId","type":"uint256"},{"name":"active","type":"bool"}],"stateMutability":"view","type":"function"},
    {"inputs":[{"name":"","type":"address"}],"name":"getStats","outputs":[{"name":"wins","type":"uint256"},{"name":"losses","type":"uint256"},{"name":"earnings","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"inputs":[],"name":"totalBattles","outputs":[{"name":"","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"inputs":[],"name":"minStake","outputs":[{"name":"","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"anonymous":false,"inputs":[{"indexed":true,"name":"battleId","type":"uint256"},{"indexed":true,"name":"winner","type":"address"},{"indexed":true,"name":"loser","type":"address"},{"indexed":false,"name":"prize","type":"uint256"}],"name":"LetItRip","type":"event"}
]""")

ERC20_ABI = json.loads("""[
    {"constant":true,"inputs":[{"name":"_owner","type":"address"}],"name":"balanceOf","outputs":[{"name":"","type":"uint256"}],"type":"function"},
    {"constant":true,"inputs":[{"name":"_owner","type":"address"},{"name":"_spender","type":"address"}],"name":"allowance","outputs":[{"name":"","type":"uint256"}],"type":"function"},
    {"constant":false,"inputs":[{"name":"_spender","type":"address"},{"name":"_value","type":"uint256"}],"name":"approve","outputs":[{"name":"","type":"bool"}],"type":"function"}
]""")

SETTLEMENT_EVENT = "LetItRip"

# keccak("Transfer(address,address,uint256)"), shared by ERC-20 and ERC-721;
# only the ERC-721 form carries the token id as a fourth topic.
TRANSFER_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))


def arena_contract(w3: Web3, address: str) -> Any:
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=ARENA_ABI)


def token_contract(w3: Web3, address: str) -> Any:
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + "0" * 24 + address.lower().removeprefix("0x")


def topic_to_address(topic: Any) -> str:
    raw = bytes(topic) if not isinstance(topic, str) else bytes.fromhex(topic.removeprefix("0x"))
    return Web3.to_checksum_address("0x" + raw[-20:].hex())


def topic_to_int(topic: Any) -> int:
    raw = bytes(topic) if not isinstance(topic, str) else bytes.fromhex(topic.removeprefix("0x"))
    return int.from_bytes(raw, "big")
