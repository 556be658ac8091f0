"""Core types for the Polymesh wallet.

All public-facing data structures are defined here as Pydantic v2 models.
Keys, identities and signatures are raw ``bytes`` subclasses that serialise
to hex on the wire; balances are unsigned integers in μPOLYX
(10**-6 POLYX).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
    field_serializer,
    model_validator,
)
from pydantic_core import CoreSchema, core_schema

U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1


# ---------------------------------------------------------------------------
# Fixed-width byte strings
# ---------------------------------------------------------------------------


class _FixedBytes(bytes):
    """``bytes`` of a fixed length, accepting raw bytes or (0x-)hex strings."""

    LENGTH: ClassVar[int] = 0
    LABEL: ClassVar[str] = "value"

    def __new__(cls, value: bytes | bytearray | str = b"") -> "_FixedBytes":
        if isinstance(value, str):
            value = bytes.fromhex(value.removeprefix("0x"))
        if len(value) != cls.LENGTH:
            raise ValueError(f"{cls.LABEL} must be {cls.LENGTH} bytes, got {len(value)}")
        return super().__new__(cls, value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda v: "0x" + bytes(v).hex(), when_used="json"
            ),
        )

    @classmethod
    def _validate(cls, v: Any) -> "_FixedBytes":
        if isinstance(v, cls):
            return v
        if not isinstance(v, (bytes, bytearray, str)):
            raise ValueError(f"{cls.LABEL} must be bytes or a hex string")
        return cls(v)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(0x{self.hex()})"


class PublicKey(_FixedBytes):
    """32-byte sr25519 public key; the canonical account identifier."""

    LENGTH = 32
    LABEL = "public key"


class IdentityId(_FixedBytes):
    """32-byte on-chain identity (DID)."""

    LENGTH = 32
    LABEL = "identity id"


class Signature(_FixedBytes):
    """64-byte sr25519 signature."""

    LENGTH = 64
    LABEL = "signature"


# ---------------------------------------------------------------------------
# Transaction envelope
# ---------------------------------------------------------------------------


class Era(str, Enum):
    """Transaction mortality. Only immortal transactions are built."""

    IMMORTAL = "immortal"


class SignedExtra(BaseModel):
    """Metadata signed together with the call: era, nonce and tip."""

    model_config = ConfigDict(frozen=True)

    era: Era = Era.IMMORTAL
    nonce: Annotated[int, Field(ge=0, le=U32_MAX)]
    tip: Annotated[int, Field(ge=0, le=U128_MAX)] = 0


class Extrinsic(BaseModel):
    """A signed, version-4 transaction envelope. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    version: int = 4
    signer: PublicKey
    signature: Signature
    extra: SignedExtra
    call: bytes

    @field_serializer("call", when_used="json")
    def _serialize_call(self, v: bytes) -> str:
        return "0x" + v.hex()


class RuntimeVersion(BaseModel):
    """The two runtime version numbers a signed payload commits to."""

    model_config = ConfigDict(populate_by_name=True)

    spec_version: int = Field(alias="specVersion", ge=0, le=U32_MAX)
    transaction_version: int = Field(alias="transactionVersion", ge=0, le=U32_MAX)


# ---------------------------------------------------------------------------
# Identity and secondary keys
# ---------------------------------------------------------------------------


class KeyRecordKind(str, Enum):
    """How an account is linked to an identity."""

    PRIMARY_KEY = "primary_key"
    SECONDARY_KEY = "secondary_key"
    MULTISIG_SIGNER_KEY = "multisig_signer_key"


class KeyRecord(BaseModel):
    """On-chain record linking an account to an identity."""

    kind: KeyRecordKind
    identity: IdentityId | None = None


class TargetIdAuthorization(BaseModel):
    """The off-chain claim a secondary key signs to consent to being added.

    ``expires_at`` is milliseconds since the Unix epoch.
    """

    model_config = ConfigDict(frozen=True)

    target_id: IdentityId
    nonce: Annotated[int, Field(ge=0, le=U64_MAX)]
    expires_at: Annotated[int, Field(ge=0, le=U64_MAX)]


class RestrictionKind(str, Enum):
    WHOLE = "Whole"
    THESE = "These"
    EXCEPT = "Except"


class SubsetRestriction(BaseModel):
    """Either everything, an allow-list, or a deny-list of values."""

    model_config = ConfigDict(frozen=True)

    kind: RestrictionKind = RestrictionKind.WHOLE
    values: tuple[Any, ...] = ()

    @model_validator(mode="after")
    def _whole_has_no_values(self) -> "SubsetRestriction":
        if self.kind is RestrictionKind.WHOLE and self.values:
            raise ValueError("a Whole restriction takes no values")
        return self

    @classmethod
    def whole(cls) -> "SubsetRestriction":
        return cls()

    @classmethod
    def these(cls, *values: Any) -> "SubsetRestriction":
        return cls(kind=RestrictionKind.THESE, values=values)

    @classmethod
    def except_(cls, *values: Any) -> "SubsetRestriction":
        return cls(kind=RestrictionKind.EXCEPT, values=values)

    def to_call_arg(self) -> Any:
        if self.kind is RestrictionKind.WHOLE:
            return "Whole"
        return {self.kind.value: list(self.values)}


class Permissions(BaseModel):
    """Permissions granted to a secondary key. Defaults to full access."""

    model_config = ConfigDict(frozen=True)

    asset: SubsetRestriction = Field(default_factory=SubsetRestriction.whole)
    extrinsic: SubsetRestriction = Field(default_factory=SubsetRestriction.whole)
    portfolio: SubsetRestriction = Field(default_factory=SubsetRestriction.whole)

    def to_call_arg(self) -> dict[str, Any]:
        return {
            "asset": self.asset.to_call_arg(),
            "extrinsic": self.extrinsic.to_call_arg(),
            "portfolio": self.portfolio.to_call_arg(),
        }


class SecondaryKeyWithAuth(BaseModel):
    """A secondary key, its permissions and its signed consent."""

    model_config = ConfigDict(frozen=True)

    key: PublicKey
    permissions: Permissions = Field(default_factory=Permissions)
    auth_signature: Signature


# ---------------------------------------------------------------------------
# Chain state
# ---------------------------------------------------------------------------


class AccountBalance(BaseModel):
    """Free and reserved balance in μPOLYX."""

    free: Annotated[int, Field(ge=0, le=U128_MAX)]
    reserved: Annotated[int, Field(ge=0, le=U128_MAX)] = 0


class UnlockChunk(BaseModel):
    value: Annotated[int, Field(ge=0)]
    era: Annotated[int, Field(ge=0)]


class StakingLedger(BaseModel):
    """Bonding state of a controller account."""

    stash: PublicKey
    total: Annotated[int, Field(ge=0)]
    active: Annotated[int, Field(ge=0)]
    unlocking: list[UnlockChunk] = Field(default_factory=list)
    claimed_rewards: list[int] = Field(default_factory=list)


class SlashingSpans(BaseModel):
    span_index: int
    last_start: int
    last_nonzero_slash: int
    prior: list[int] = Field(default_factory=list)
