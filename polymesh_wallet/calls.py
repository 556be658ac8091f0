"""Supported runtime calls and their encoding.

Every operation the wallet can submit is one of the call models below. A
call only names its pallet, its function and its arguments; turning that
into bytes needs the pallet and call indices and the argument types of the
running chain, which :class:`MetadataCallEncoder` reads from the runtime
metadata with ``scalecodec``. The transaction builder treats the result as
an opaque blob.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field
from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_preset

from polymesh_wallet.address import encode_address
from polymesh_wallet.config import Network
from polymesh_wallet.types import U32_MAX, U64_MAX, U128_MAX, PublicKey, SecondaryKeyWithAuth

MAX_NOMINATIONS = 24

Balance = Annotated[int, Field(ge=0, le=U128_MAX)]


class RewardDestination(str, Enum):
    """Where staking rewards are paid."""

    STAKED = "Staked"
    STASH = "Stash"
    CONTROLLER = "Controller"


class _Call(BaseModel):
    model_config = ConfigDict(frozen=True)

    pallet: ClassVar[str]
    function: ClassVar[str]

    def call_args(self, network: Network) -> dict[str, Any]:
        raise NotImplementedError


class Transfer(_Call):
    """Move ``value`` μPOLYX to ``dest``."""

    pallet = "Balances"
    function = "transfer"

    dest: PublicKey
    value: Balance

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"dest": encode_address(self.dest, network), "value": self.value}


class Bond(_Call):
    """Lock ``value`` of the signing stash, controlled by ``controller``."""

    pallet = "Staking"
    function = "bond"

    controller: PublicKey
    value: Balance
    payee: RewardDestination = RewardDestination.STASH

    def call_args(self, network: Network) -> dict[str, Any]:
        return {
            "controller": encode_address(self.controller, network),
            "value": self.value,
            "payee": self.payee.value,
        }


class Unbond(_Call):
    pallet = "Staking"
    function = "unbond"

    value: Balance

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"value": self.value}


class BondExtra(_Call):
    pallet = "Staking"
    function = "bond_extra"

    max_additional: Balance

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"max_additional": self.max_additional}


class WithdrawUnbonded(_Call):
    pallet = "Staking"
    function = "withdraw_unbonded"

    num_slashing_spans: Annotated[int, Field(ge=0, le=U32_MAX)]

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"num_slashing_spans": self.num_slashing_spans}


class Nominate(_Call):
    """Nominate up to 24 validators; takes effect from the next era."""

    pallet = "Staking"
    function = "nominate"

    targets: Annotated[list[PublicKey], Field(min_length=1, max_length=MAX_NOMINATIONS)]

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"targets": [encode_address(t, network) for t in self.targets]}


class AddSecondaryKeys(_Call):
    """Attach secondary keys to the signer's identity using their signed consent."""

    pallet = "Identity"
    function = "add_secondary_keys_with_authorization"

    keys: Annotated[list[SecondaryKeyWithAuth], Field(min_length=1)]
    expires_at: Annotated[int, Field(ge=0, le=U64_MAX)]

    def call_args(self, network: Network) -> dict[str, Any]:
        return {
            "additional_keys": [
                {
                    "secondary_key": {
                        "key": encode_address(k.key, network),
                        "permissions": k.permissions.to_call_arg(),
                    },
                    "auth_signature": "0x" + k.auth_signature.hex(),
                }
                for k in self.keys
            ],
            "expires_at": self.expires_at,
        }


class RemoveSecondaryKeys(_Call):
    pallet = "Identity"
    function = "remove_secondary_keys"

    keys: Annotated[list[PublicKey], Field(min_length=1)]

    def call_args(self, network: Network) -> dict[str, Any]:
        return {"keys_to_remove": [encode_address(k, network) for k in self.keys]}


Call = Union[
    Transfer,
    Bond,
    Unbond,
    BondExtra,
    WithdrawUnbonded,
    Nominate,
    AddSecondaryKeys,
    RemoveSecondaryKeys,
]


class CallEncoder(Protocol):
    def encode(self, call: Call) -> bytes: ...


class MetadataCallEncoder:
    """Encode calls against a chain's runtime metadata (V14+).

    Args:
        metadata_hex: The ``state_getMetadata`` result.
        network: Selects the SS58 format used for account arguments.
    """

    def __init__(self, metadata_hex: str, network: Network) -> None:
        self._network = network
        self._runtime = RuntimeConfigurationObject(
            ss58_format=network.ss58_format, implements_scale_info=True
        )
        self._runtime.update_type_registry(load_type_registry_preset("core"))
        self._metadata = self._runtime.create_scale_object(
            "MetadataVersioned", data=ScaleBytes(metadata_hex)
        )
        self._metadata.decode()
        self._runtime.add_portable_registry(self._metadata)

    def encode(self, call: Call) -> bytes:
        """Return the SCALE call bytes (pallet index, call index, arguments)."""
        scale_call = self._runtime.create_scale_object("Call", metadata=self._metadata)
        try:
            data = scale_call.encode(
                {
                    "call_module": call.pallet,
                    "call_function": call.function,
                    "call_args": call.call_args(self._network),
                }
            )
        except Exception as exc:
            raise ValueError(
                f"cannot encode {call.pallet}.{call.function} for this runtime: {exc}"
            ) from exc
        return bytes(data.data)
