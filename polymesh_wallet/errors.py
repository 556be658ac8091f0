"""Exception hierarchy for the Polymesh wallet.

Local validation failures (bad hex, bad mnemonic, bad address) are raised
before any network I/O. Chain and transport failures are surfaced as-is and
never retried.
"""

from __future__ import annotations

from typing import Any


class WalletError(Exception):
    """Base class for every error raised by :mod:`polymesh_wallet`."""


# ---------------------------------------------------------------------------
# Local validation
# ---------------------------------------------------------------------------


class InvalidKeyEncoding(WalletError, ValueError):
    """A private key is not valid hex or does not decode to 32 bytes."""


class InvalidMnemonic(WalletError, ValueError):
    """A mnemonic phrase failed BIP39 word-list or checksum validation."""


class InvalidAddress(WalletError, ValueError):
    """An SS58 address is malformed or its checksum does not match."""


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class NoIdentity(WalletError):
    """The account is not linked to any on-chain identity."""


class NotPrimaryKey(WalletError):
    """The account is linked to an identity, but not as its primary key."""


# ---------------------------------------------------------------------------
# Node communication
# ---------------------------------------------------------------------------


class TransportError(WalletError):
    """The node could not be reached or answered with garbage."""


class TransportTimeout(TransportError):
    """An operation against the node exceeded its deadline."""


class RpcError(WalletError):
    """The node returned a JSON-RPC error response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        detail = f" ({data})" if data else ""
        super().__init__(f"RPC error {code}: {message}{detail}")


class ChainRejected(RpcError):
    """The node refused an extrinsic (bad nonce, no funds, invalid call...)."""


# ---------------------------------------------------------------------------
# Staking
# ---------------------------------------------------------------------------


class NoStakingLedger(WalletError):
    """The account is not a staking controller."""
