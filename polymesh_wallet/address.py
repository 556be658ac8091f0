"""SS58 address encoding and decoding.

An SS58 address is ``base58(prefix ++ public_key ++ checksum)`` where the
checksum is the first two bytes of ``blake2b-512(b"SS58PRE" ++ prefix ++
public_key)``. The prefix selects the network: testnet uses the generic
Substrate format 42 (addresses start with ``5``), mainnet the registered
Polymesh format 12 (addresses start with ``2``).
"""

from __future__ import annotations

from scalecodec.utils.ss58 import ss58_decode, ss58_encode

from polymesh_wallet.config import Network
from polymesh_wallet.errors import InvalidAddress
from polymesh_wallet.types import PublicKey


def encode_address(public_key: bytes, network: Network = Network.TESTNET) -> str:
    """Encode a 32-byte public key as an SS58 address for *network*.

    Raises:
        ValueError: If *public_key* is not 32 bytes.
    """
    key = PublicKey(public_key)
    return ss58_encode(bytes(key), ss58_format=network.ss58_format)


def decode_address_with_network(address: str) -> tuple[PublicKey, Network]:
    """Decode an SS58 address, returning the public key and its network.

    Raises:
        InvalidAddress: On malformed base58, an unknown network prefix, a
            payload that is not a 32-byte key, or a checksum mismatch.
    """
    if not isinstance(address, str) or not address or address.startswith("0x"):
        raise InvalidAddress(f"not an SS58 address: {address!r}")

    last_error: Exception | None = None
    for network in Network:
        try:
            decoded = ss58_decode(address, valid_ss58_format=network.ss58_format)
        except (ValueError, IndexError) as exc:
            last_error = exc
            continue
        try:
            return PublicKey(decoded), network
        except ValueError as exc:
            raise InvalidAddress(f"invalid address {address}: {exc}") from exc

    raise InvalidAddress(f"invalid address {address}: {last_error}")


def decode_address(address: str) -> PublicKey:
    """Decode an SS58 address of either network to its 32-byte public key."""
    public_key, _ = decode_address_with_network(address)
    return public_key


def is_valid_address(address: str) -> bool:
    """Return ``True`` if *address* decodes on a supported network."""
    try:
        decode_address_with_network(address)
    except InvalidAddress:
        return False
    return True
