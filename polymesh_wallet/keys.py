"""Deterministic sr25519 key derivation.

Keys are derived with ``substrate-interface`` (libsr25519 / libbip39 bindings)
so that a seed or mnemonic yields exactly the keypair the Substrate tooling
derives from it. Derivation is a pure function: nothing is cached or
persisted, and the secret stays inside the returned :class:`KeyPair`.
"""

from __future__ import annotations

import binascii

from bip39 import bip39_to_mini_secret, bip39_validate
from substrateinterface import Keypair, KeypairType

from polymesh_wallet.address import encode_address
from polymesh_wallet.config import Network
from polymesh_wallet.errors import InvalidKeyEncoding, InvalidMnemonic
from polymesh_wallet.types import PublicKey, Signature

SEED_LENGTH = 32


class KeyPair:
    """An sr25519 keypair.

    Instances are built through :func:`from_seed`, :func:`from_mnemonic` or
    :func:`from_uri`. The private half is never exposed as an attribute.
    """

    __slots__ = ("_keypair", "_public_key")

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair
        self._public_key = PublicKey(keypair.public_key)

    @property
    def public_key(self) -> PublicKey:
        """The raw 32-byte public key."""
        return self._public_key

    def address(self, network: Network = Network.TESTNET) -> str:
        """SS58 address of this keypair on *network*."""
        return encode_address(self._public_key, network)

    def sign(self, payload: bytes) -> Signature:
        """Sign *payload* verbatim. sr25519 signatures are randomized."""
        return Signature(self._keypair.sign(bytes(payload)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self._public_key == other._public_key

    def __hash__(self) -> int:
        return hash(self._public_key)

    def __repr__(self) -> str:
        return f"KeyPair(public_key=0x{self._public_key.hex()})"


def _from_mini_secret(seed: bytes) -> KeyPair:
    keypair = Keypair.create_from_seed(
        seed_hex=seed.hex(),
        ss58_format=Network.TESTNET.ss58_format,
        crypto_type=KeypairType.SR25519,
    )
    return KeyPair(keypair)


def from_seed(hex_seed: str) -> KeyPair:
    """Derive a keypair from a 32-byte seed given as hex.

    Args:
        hex_seed: 64 hex characters, optionally prefixed with ``0x``.

    Raises:
        InvalidKeyEncoding: If *hex_seed* is not hex or not 32 bytes long.
    """
    stripped = hex_seed.strip().removeprefix("0x")
    try:
        seed = binascii.unhexlify(stripped)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyEncoding(f"private key is not valid hex: {exc}") from exc
    if len(seed) != SEED_LENGTH:
        raise InvalidKeyEncoding(
            f"private key must be {SEED_LENGTH} bytes, got {len(seed)}"
        )
    return _from_mini_secret(seed)


def from_mnemonic(phrase: str, password: str | None = None) -> KeyPair:
    """Derive a keypair from a BIP39 mnemonic and optional passphrase.

    The mini-secret is PBKDF2-HMAC-SHA512 over the mnemonic's entropy,
    salted with ``"mnemonic" + password``, as Substrate does (this differs
    from the BIP39 seed used by Bitcoin wallets).

    Raises:
        InvalidMnemonic: If the word list or checksum is invalid.
    """
    phrase = " ".join(phrase.split())
    if not bip39_validate(phrase):
        raise InvalidMnemonic("invalid BIP39 mnemonic phrase")
    mini_secret = bytes(bytearray(bip39_to_mini_secret(phrase, password or "")))
    return _from_mini_secret(mini_secret)


def from_uri(suri: str) -> KeyPair:
    """Derive a keypair from a Substrate secret URI.

    Accepts ``<mnemonic>[//hard][/soft]`` and dev URIs such as
    ``//Alice``.

    Raises:
        InvalidMnemonic: If the phrase or the derivation path is invalid.
    """
    try:
        keypair = Keypair.create_from_uri(
            suri.strip(),
            ss58_format=Network.TESTNET.ss58_format,
            crypto_type=KeypairType.SR25519,
        )
    except (ValueError, NotImplementedError) as exc:
        raise InvalidMnemonic(f"invalid secret URI: {exc}") from exc
    return KeyPair(keypair)


def from_secret(
    key: str | None = None,
    mnemonic: str | None = None,
    password: str | None = None,
) -> KeyPair:
    """Derive a keypair from exactly one of a hex seed or a mnemonic/URI.

    Mnemonics carrying derivation junctions (``//``) go through
    :func:`from_uri`.

    Raises:
        ValueError: If both or neither secret is given, or a password is
            combined with a derivation path.
    """
    if key is not None:
        if mnemonic is not None:
            raise ValueError("exactly one of key or mnemonic is required")
        return from_seed(key)
    if mnemonic is None:
        raise ValueError("exactly one of key or mnemonic is required")
    if "/" in mnemonic:
        if password:
            raise InvalidMnemonic("a password cannot be combined with a derivation path")
        return from_uri(mnemonic)
    return from_mnemonic(mnemonic, password)
