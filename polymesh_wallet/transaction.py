"""Extrinsic construction, signing, and verification.

The byte layouts here must match what the Polymesh runtime recomputes when it
checks a signature, so every field is encoded in fixed order with SCALE and
nothing is optional.

Signed payload::

    call bytes
    era            0x00 (immortal)
    nonce          compact u32
    tip            compact u128
    additional     chain-supplied bytes (spec version, tx version,
                   genesis hash, checkpoint hash), opaque here

    Payloads longer than 256 bytes are signed as their blake2b-256 digest.

Extrinsic (format version 4, signed)::

    length         compact length of everything below
    version        0x84 (0x80 signed bit | version 4)
    signer         0x00 (MultiAddress::Id) + 32-byte public key
    signature      0x01 (MultiSignature::Sr25519) + 64-byte signature
    era/nonce/tip  as in the payload
    call bytes

The extrinsic hash is blake2b-256 of the length-prefixed encoding.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from polymesh_wallet.nonce import NonceTracker
from polymesh_wallet.scale import ScaleDecodeError, ScaleReader, encode_compact
from polymesh_wallet.signing import SR25519_DISCRIMINANT, Signer, verify
from polymesh_wallet.types import Era, Extrinsic, PublicKey, Signature, SignedExtra

logger = logging.getLogger(__name__)

EXTRINSIC_VERSION = 4
SIGNED_BIT = 0x80
MULTIADDRESS_ID = 0x00
IMMORTAL_ERA = b"\x00"
MAX_UNHASHED_PAYLOAD = 256


def blake2_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


# ---------------------------------------------------------------------------
# Canonical encodings
# ---------------------------------------------------------------------------


def encode_signed_extra(extra: SignedExtra) -> bytes:
    """SCALE encoding of era, nonce and tip, in that order."""
    if extra.era is not Era.IMMORTAL:
        raise ValueError(f"unsupported era: {extra.era}")
    return IMMORTAL_ERA + encode_compact(extra.nonce) + encode_compact(extra.tip)


class SigningPayload(BaseModel):
    """An encoded, not yet signed, extrinsic for one signer."""

    model_config = ConfigDict(frozen=True)

    signer: PublicKey
    call: bytes
    extra: SignedExtra
    additional_signed: bytes

    def encode(self) -> bytes:
        """``call ++ extra ++ additional_signed``, before any hashing."""
        return self.call + encode_signed_extra(self.extra) + self.additional_signed

    def message(self) -> bytes:
        """The exact bytes handed to the signer."""
        raw = self.encode()
        if len(raw) > MAX_UNHASHED_PAYLOAD:
            return blake2_256(raw)
        return raw


def encode_extrinsic(xt: Extrinsic) -> bytes:
    """Length-prefixed wire encoding of a signed extrinsic."""
    body = bytearray()
    body.append(SIGNED_BIT | xt.version)
    body.append(MULTIADDRESS_ID)
    body += xt.signer
    body.append(SR25519_DISCRIMINANT)
    body += xt.signature
    body += encode_signed_extra(xt.extra)
    body += xt.call
    return encode_compact(len(body)) + bytes(body)


def decode_extrinsic(data: bytes) -> Extrinsic:
    """Parse an extrinsic produced by :func:`encode_extrinsic`.

    Raises:
        ValueError: If *data* is not a signed, immortal, version-4 sr25519
            extrinsic.
    """
    reader = ScaleReader(data)
    length = reader.read_compact()
    if length != reader.remaining:
        raise ScaleDecodeError(f"length prefix {length} but {reader.remaining} bytes follow")

    version_byte = reader.read_u8()
    if not version_byte & SIGNED_BIT:
        raise ScaleDecodeError("extrinsic is not signed")
    version = version_byte & ~SIGNED_BIT
    if version != EXTRINSIC_VERSION:
        raise ScaleDecodeError(f"unsupported extrinsic version {version}")
    if reader.read_u8() != MULTIADDRESS_ID:
        raise ScaleDecodeError("signer is not a MultiAddress::Id")
    signer = PublicKey(reader.read_bytes(PublicKey.LENGTH))
    if reader.read_u8() != SR25519_DISCRIMINANT:
        raise ScaleDecodeError("signature is not sr25519")
    signature = Signature(reader.read_bytes(Signature.LENGTH))
    if reader.read_bytes(1) != IMMORTAL_ERA:
        raise ScaleDecodeError("only immortal extrinsics are supported")
    nonce = reader.read_compact()
    tip = reader.read_compact()
    call = reader.read_bytes(reader.remaining)

    return Extrinsic(
        version=version,
        signer=signer,
        signature=signature,
        extra=SignedExtra(era=Era.IMMORTAL, nonce=nonce, tip=tip),
        call=call,
    )


def extrinsic_hash(xt: Extrinsic) -> bytes:
    """The 32-byte content hash nodes and explorers index extrinsics by."""
    return blake2_256(encode_extrinsic(xt))


def extrinsic_hash_hex(xt: Extrinsic) -> str:
    return "0x" + extrinsic_hash(xt).hex()


def verify_extrinsic(xt: Extrinsic, additional_signed: bytes) -> bool:
    """Check the extrinsic's signature against its recomputed payload."""
    payload = SigningPayload(
        signer=xt.signer,
        call=xt.call,
        extra=xt.extra,
        additional_signed=additional_signed,
    )
    return verify(xt.signature, xt.signer, payload.message())


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ExtrinsicChain(Protocol):
    """The chain operations the builder needs."""

    async def get_nonce(self, account: PublicKey) -> int: ...

    async def additional_signed(self) -> bytes: ...

    async def best_block_number(self) -> int: ...

    async def submit_extrinsic(self, encoded: bytes) -> str: ...

    async def wait_for_inclusion(self, extrinsic_hex: str, *, after: int) -> str: ...


class ExtrinsicBuilder:
    """Turns opaque call bytes into submitted extrinsics.

    The stages are explicit: :meth:`prepare` yields a :class:`SigningPayload`,
    :meth:`sign` an :class:`Extrinsic`, and :meth:`submit` hands it to the
    node. :meth:`sign_and_submit` chains all three while holding the signer's
    nonce lock.

    Example::

        builder = ExtrinsicBuilder(chain, NonceTracker(chain))
        tx_hash = await builder.sign_and_submit(call_bytes, signer)
    """

    def __init__(self, chain: ExtrinsicChain, nonces: NonceTracker) -> None:
        self._chain = chain
        self._nonces = nonces

    @property
    def nonces(self) -> NonceTracker:
        return self._nonces

    async def prepare(self, call: bytes, signer: Signer, *, tip: int = 0) -> SigningPayload:
        """Fetch the nonce and chain extras and encode the signing payload."""
        nonce = await self._nonces.current(signer.public_key)
        additional = await self._chain.additional_signed()
        return SigningPayload(
            signer=signer.public_key,
            call=bytes(call),
            extra=SignedExtra(era=Era.IMMORTAL, nonce=nonce, tip=tip),
            additional_signed=additional,
        )

    def sign(self, payload: SigningPayload, signer: Signer) -> Extrinsic:
        """Sign *payload* and assemble the extrinsic."""
        if bytes(signer.public_key) != bytes(payload.signer):
            raise ValueError("payload was prepared for a different signer")
        signature = signer.sign(payload.message())
        return Extrinsic(
            version=EXTRINSIC_VERSION,
            signer=payload.signer,
            signature=signature,
            extra=payload.extra,
            call=payload.call,
        )

    async def submit(self, xt: Extrinsic, *, wait_for_inclusion: bool = False) -> str:
        """Broadcast *xt* and return its ``0x``-prefixed hash.

        The nonce cache advances as soon as the node accepts the extrinsic
        into its pool. A rejection leaves it untouched; a failure while
        waiting for inclusion does not undo the advance.

        Raises:
            ChainRejected: If the pool refuses the extrinsic.
            TransportTimeout: If *wait_for_inclusion* is set and no block
                carries the extrinsic in time. It was still broadcast.
        """
        encoded = encode_extrinsic(xt)
        tx_hash = "0x" + blake2_256(encoded).hex()
        logger.debug("submitting extrinsic %s with nonce %d", tx_hash, xt.extra.nonce)

        start = await self._chain.best_block_number() if wait_for_inclusion else 0
        node_hash = await self._chain.submit_extrinsic(encoded)
        self._nonces.advance(xt.signer)

        if node_hash and node_hash.lower() != tx_hash:
            logger.warning("node reported hash %s for extrinsic %s", node_hash, tx_hash)
        if wait_for_inclusion:
            block_hash = await self._chain.wait_for_inclusion("0x" + encoded.hex(), after=start)
            logger.info("extrinsic %s included in block %s", tx_hash, block_hash)
        return tx_hash

    async def sign_and_submit(
        self,
        call: bytes,
        signer: Signer,
        *,
        wait_for_inclusion: bool = False,
    ) -> str:
        async with self._nonces.lock(signer.public_key):
            payload = await self.prepare(call, signer)
            xt = self.sign(payload, signer)
            return await self.submit(xt, wait_for_inclusion=wait_for_inclusion)
