"""Signing and signature verification.

:class:`Signer` is the capability the transaction builder and the
authorization protocol depend on. :class:`LocalKeypairSigner` holds key
material in memory; a remote or hardware signer would implement the same
interface without ever exposing a :class:`~polymesh_wallet.keys.KeyPair`.
"""

from __future__ import annotations

import abc

import sr25519

from polymesh_wallet.address import decode_address, encode_address
from polymesh_wallet.config import Network
from polymesh_wallet.keys import KeyPair
from polymesh_wallet.types import PublicKey, Signature

# MultiSignature variant index of sr25519 (Ed25519 = 0, Sr25519 = 1, Ecdsa = 2).
SR25519_DISCRIMINANT = 0x01


class Signer(abc.ABC):
    """Something that can sign payloads for one account."""

    @property
    @abc.abstractmethod
    def public_key(self) -> PublicKey:
        """The 32-byte public key of the signing account."""

    @abc.abstractmethod
    def sign(self, payload: bytes) -> Signature:
        """Return a 64-byte sr25519 signature over exactly *payload*."""

    def address(self, network: Network = Network.TESTNET) -> str:
        return encode_address(self.public_key, network)


class LocalKeypairSigner(Signer):
    """Signer backed by an in-memory :class:`KeyPair`."""

    __slots__ = ("_keypair",)

    def __init__(self, keypair: KeyPair) -> None:
        self._keypair = keypair

    @property
    def public_key(self) -> PublicKey:
        return self._keypair.public_key

    def sign(self, payload: bytes) -> Signature:
        return sign(self._keypair, payload)


def sign(keypair: KeyPair, payload: bytes) -> Signature:
    """Sign *payload* with *keypair*. No hashing is applied here."""
    return keypair.sign(payload)


def verify(signature: bytes, public_key: bytes, payload: bytes) -> bool:
    """Check an sr25519 signature.

    Never raises: malformed signatures or keys simply fail verification.
    """
    try:
        if len(signature) != Signature.LENGTH or len(public_key) != PublicKey.LENGTH:
            return False
        return bool(sr25519.verify(bytes(signature), bytes(payload), bytes(public_key)))
    except Exception:
        return False


def multi_signature(signature: bytes) -> bytes:
    """Self-describing 65-byte form: the scheme discriminant, then the signature."""
    return bytes([SR25519_DISCRIMINANT]) + bytes(Signature(signature))


# ---------------------------------------------------------------------------
# Hex helpers for the command line
# ---------------------------------------------------------------------------


def _unhex(value: str) -> bytes:
    return bytes.fromhex(value.strip().removeprefix("0x"))


def sign_payload_hex(keypair: KeyPair, payload_hex: str) -> str:
    """Sign a hex payload, returning the hex-encoded 65-byte multi-signature.

    The leading ``01`` byte marks the signature as sr25519, the form the
    chain expects wherever a ``MultiSignature`` is accepted.

    Raises:
        ValueError: If *payload_hex* is not valid hex.
    """
    payload = _unhex(payload_hex)
    return multi_signature(sign(keypair, payload)).hex()


def verify_payload_hex(signature_hex: str, address: str, payload_hex: str) -> bool:
    """Verify a hex signature over a hex payload against an SS58 address.

    Accepts the 64-byte signature or its 65-byte multi-signature form.
    Returns ``False`` for any malformed input.
    """
    try:
        signature = _unhex(signature_hex)
        payload = _unhex(payload_hex)
        public_key = decode_address(address)
    except ValueError:
        return False
    if len(signature) == Signature.LENGTH + 1 and signature[0] == SR25519_DISCRIMINANT:
        signature = signature[1:]
    return verify(signature, public_key, payload)
