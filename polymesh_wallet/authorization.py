"""Secondary-key authorization.

Adding a secondary key to an identity needs the consent of that key: it signs
a :class:`~polymesh_wallet.types.TargetIdAuthorization` naming the identity,
the identity's current off-chain authorization nonce and an expiry. The
primary key then submits the signed claim. Removing a secondary key needs no
consent and is signed by the primary key alone.

``expires_at`` is always milliseconds since the Unix epoch.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Protocol, Sequence

from polymesh_wallet.calls import AddSecondaryKeys, RemoveSecondaryKeys
from polymesh_wallet.errors import NoIdentity, NotPrimaryKey
from polymesh_wallet.scale import encode_u64
from polymesh_wallet.signing import Signer, multi_signature, verify
from polymesh_wallet.types import (
    U64_MAX,
    IdentityId,
    KeyRecord,
    KeyRecordKind,
    Permissions,
    PublicKey,
    SecondaryKeyWithAuth,
    Signature,
    TargetIdAuthorization,
)

logger = logging.getLogger(__name__)


class IdentityQueries(Protocol):
    async def query_identity_key_record(self, account: PublicKey) -> KeyRecord | None: ...

    async def query_authorization_nonce(self, identity_id: IdentityId) -> int: ...


def encode_authorization(auth: TargetIdAuthorization) -> bytes:
    """``target_id ++ u64_le(nonce) ++ u64_le(expires_at)``: the signed bytes."""
    return bytes(auth.target_id) + encode_u64(auth.nonce) + encode_u64(auth.expires_at)


def expires_at_ms(expires_after: timedelta | int, now: float | None = None) -> int:
    """Wall-clock time plus *expires_after*, in ms, saturating at ``2**64 - 1``.

    Args:
        expires_after: A :class:`~datetime.timedelta` or a number of seconds.
        now: Unix time in seconds; defaults to :func:`time.time`.
    """
    if isinstance(expires_after, timedelta):
        after_ms = (
            expires_after.days * 86_400_000
            + expires_after.seconds * 1000
            + expires_after.microseconds // 1000
        )
    else:
        after_ms = int(expires_after) * 1000
    if after_ms < 0:
        raise ValueError("expiry duration must not be negative")
    now_ms = int((time.time() if now is None else now) * 1000)
    return min(now_ms + after_ms, U64_MAX)


def sign_authorization(
    auth: TargetIdAuthorization,
    secondary: Signer,
    permissions: Permissions | None = None,
) -> SecondaryKeyWithAuth:
    """Have *secondary* sign *auth* and package its consent.

    The chain expects the bare 64-byte signature, so the scheme discriminant
    of the self-describing signature is dropped.
    """
    signature = multi_signature(secondary.sign(encode_authorization(auth)))[1:]
    return SecondaryKeyWithAuth(
        key=secondary.public_key,
        permissions=permissions or Permissions(),
        auth_signature=Signature(signature),
    )


def verify_authorization(auth: TargetIdAuthorization, record: SecondaryKeyWithAuth) -> bool:
    """Check that *record* carries its key's signature over *auth*."""
    return verify(record.auth_signature, record.key, encode_authorization(auth))


class AuthorizationProtocol:
    """Builds the calls that add and remove secondary keys.

    Args:
        chain: Identity queries (key records, authorization nonces).
    """

    def __init__(self, chain: IdentityQueries) -> None:
        self._chain = chain

    async def resolve_identity(self, primary: PublicKey) -> IdentityId:
        """The identity *primary* is the primary key of.

        Raises:
            NoIdentity: If the account has no key record.
            NotPrimaryKey: If it is linked, but not as a primary key.
        """
        record = await self._chain.query_identity_key_record(primary)
        if record is None:
            raise NoIdentity(f"0x{bytes(primary).hex()} doesn't have an identity")
        if record.kind is not KeyRecordKind.PRIMARY_KEY or record.identity is None:
            raise NotPrimaryKey("must use primary key to add secondary keys")
        return record.identity

    async def build_authorization(
        self,
        primary: PublicKey,
        expires_after: timedelta | int,
    ) -> TargetIdAuthorization:
        """A fresh authorization for the identity of *primary*."""
        target_id = await self.resolve_identity(primary)
        nonce = await self._chain.query_authorization_nonce(target_id)
        auth = TargetIdAuthorization(
            target_id=target_id,
            nonce=nonce,
            expires_at=expires_at_ms(expires_after),
        )
        logger.debug(
            "authorization for identity 0x%s: nonce %d, expires at %d",
            bytes(target_id).hex(),
            nonce,
            auth.expires_at,
        )
        return auth

    async def add_secondary_keys(
        self,
        primary: PublicKey,
        secondaries: Sequence[Signer],
        expires_after: timedelta | int,
        permissions: Permissions | None = None,
    ) -> AddSecondaryKeys:
        """The call, to be signed by *primary*, adding every key in *secondaries*."""
        if not secondaries:
            raise ValueError("at least one secondary key is required")
        auth = await self.build_authorization(primary, expires_after)
        records = [sign_authorization(auth, s, permissions) for s in secondaries]
        return AddSecondaryKeys(keys=records, expires_at=auth.expires_at)

    @staticmethod
    def remove_secondary_keys(keys: Sequence[PublicKey]) -> RemoveSecondaryKeys:
        """The call, to be signed by the primary key, revoking *keys*."""
        return RemoveSecondaryKeys(keys=list(keys))
