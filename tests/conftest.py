"""Shared fixtures: an in-memory chain and a call encoder that needs no metadata."""

from __future__ import annotations

import pytest

from polymesh_wallet.calls import Call
from polymesh_wallet.config import Network, NetworkConfig
from polymesh_wallet.errors import ChainRejected
from polymesh_wallet.keys import from_seed
from polymesh_wallet.scale import encode_u32
from polymesh_wallet.signing import LocalKeypairSigner
from polymesh_wallet.transaction import blake2_256
from polymesh_wallet.types import (
    AccountBalance,
    IdentityId,
    KeyRecord,
    PublicKey,
    SlashingSpans,
    StakingLedger,
)

# Private key with a known testnet address.
SEED = "6282c8c97534f8570573ccd4136539b2be1db1dc5b35e224c4db2b51d29c653e"
SEED_ADDRESS = "5FPAYmXzQhLvFQggnYGNAgrkrUB3GCSoWAfT3NS2ageeGqtt"

OTHER_SEED = "11" * 32
GENESIS = bytes.fromhex("ab" * 32)
ADDITIONAL_SIGNED = encode_u32(5_000_000) + encode_u32(4) + GENESIS + GENESIS


class FakeChain:
    """Chain double holding state in dicts and recording every submission."""

    def __init__(self, config: NetworkConfig | None = None, next_nonce: int = 0) -> None:
        self.config = config or NetworkConfig(network=Network.TESTNET)
        self.next_nonce = next_nonce
        self.nonce_fetches = 0
        self.submitted: list[bytes] = []
        self.reject_with: Exception | None = None
        self.inclusion_error: Exception | None = None
        self.included: list[str] = []
        self.node_hash: str | None = None
        self.key_records: dict[bytes, KeyRecord] = {}
        self.authorization_nonces: dict[bytes, int] = {}
        self.balances: dict[bytes, AccountBalance] = {}
        self.ledgers: dict[bytes, StakingLedger] = {}
        self.slashing_spans: dict[bytes, SlashingSpans] = {}
        self.validators: list[PublicKey] = []
        self.closed = False

    async def __aenter__(self) -> "FakeChain":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        self.closed = True

    async def get_nonce(self, account: PublicKey) -> int:
        self.nonce_fetches += 1
        return self.next_nonce

    async def additional_signed(self) -> bytes:
        return ADDITIONAL_SIGNED

    async def best_block_number(self) -> int:
        return 0

    async def submit_extrinsic(self, encoded: bytes) -> str:
        if self.reject_with is not None:
            raise self.reject_with
        self.submitted.append(encoded)
        return self.node_hash or "0x" + blake2_256(encoded).hex()

    async def wait_for_inclusion(self, extrinsic_hex: str, *, after: int) -> str:
        if self.inclusion_error is not None:
            raise self.inclusion_error
        self.included.append(extrinsic_hex)
        return "0x" + "bb" * 32

    async def query_identity_key_record(self, account: PublicKey) -> KeyRecord | None:
        return self.key_records.get(bytes(account))

    async def query_authorization_nonce(self, identity_id: IdentityId) -> int:
        return self.authorization_nonces.get(bytes(identity_id), 0)

    async def query_account_balance(self, account: PublicKey) -> AccountBalance:
        return self.balances.get(bytes(account), AccountBalance(free=0))

    async def query_validator_set(self) -> list[PublicKey]:
        return list(self.validators)

    async def query_staking_ledger(self, controller: PublicKey) -> StakingLedger | None:
        return self.ledgers.get(bytes(controller))

    async def query_slashing_spans(self, stash: PublicKey) -> SlashingSpans | None:
        return self.slashing_spans.get(bytes(stash))

    async def get_metadata(self) -> str:
        raise AssertionError("tests supply a call encoder")


class FakeCallEncoder:
    """Encodes a call as its function name, remembering what it was given."""

    def __init__(self) -> None:
        self.calls: list[Call] = []

    def encode(self, call: Call) -> bytes:
        self.calls.append(call)
        return b"\x05\x00" + call.function.encode()


@pytest.fixture
def keypair():
    return from_seed(SEED)


@pytest.fixture
def signer(keypair) -> LocalKeypairSigner:
    return LocalKeypairSigner(keypair)


@pytest.fixture
def other_signer() -> LocalKeypairSigner:
    return LocalKeypairSigner(from_seed(OTHER_SEED))


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def rejecting_chain() -> FakeChain:
    fake = FakeChain()
    fake.reject_with = ChainRejected(code=1010, message="Invalid Transaction", data="Stale")
    return fake
