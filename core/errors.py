"""
Error taxonomy shared by every arena component.

  ConnectivityError    RPC unreachable, request rejected or tx reverted
  PreconditionError    invalid local state, rejected before any network call
  SettlementAmbiguous  join was included but no LetItRip event decoded
  ChainMismatch        wallet is on the wrong network
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base class for all arena errors surfaced to the caller."""


class ConnectivityError(ArenaError):
    """Provider/RPC unreachable or the request was rejected."""


class TransactionReverted(ConnectivityError):
    def __init__(self, label: str, tx_hash: str) -> None:
        super().__init__(f"{label} tx reverted: {tx_hash}")
        self.label = label
        self.tx_hash = tx_hash


class UnknownNetwork(ConnectivityError):
    """The wallet has no RPC registered for the requested chain."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Chain {chain_id} is not known to the wallet")
        self.chain_id = chain_id


class PreconditionError(ArenaError):
    """Local state does not allow the requested action."""


class InvalidTransition(PreconditionError):
    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"Illegal arena transition {current} -> {target}")
        self.current = current
        self.target = target


class SettlementAmbiguous(ArenaError):
    """The join tx was included but the outcome could not be decoded."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"No settlement event found in tx {tx_hash}, outcome unknown")
        self.tx_hash = tx_hash


class ChainMismatch(ArenaError):
    def __init__(self, expected: int, actual: int | None) -> None:
        super().__init__(f"Connected to chain {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual
