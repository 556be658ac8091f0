"""Async client for a Polymesh node's JSON-RPC API.

:class:`RpcClient` speaks raw JSON-RPC 2.0 over :mod:`httpx`.
:class:`ChainClient` builds the wallet's view of the chain on top of it:
nonces, storage reads decoded from SCALE, the extras every signed payload
commits to, and extrinsic submission.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from substrateinterface.utils.hasher import blake2_128_concat, identity, two_x64_concat, xxh128

from polymesh_wallet.address import encode_address
from polymesh_wallet.config import NetworkConfig
from polymesh_wallet.errors import ChainRejected, RpcError, TransportError, TransportTimeout
from polymesh_wallet.scale import ScaleDecodeError, ScaleReader, encode_u32
from polymesh_wallet.types import (
    AccountBalance,
    IdentityId,
    KeyRecord,
    KeyRecordKind,
    PublicKey,
    RuntimeVersion,
    SlashingSpans,
    StakingLedger,
    UnlockChunk,
)

logger = logging.getLogger(__name__)

# Transaction pool errors (invalid, unknown validity, banned, already
# imported, priority too low, ...) live in 1010-1019.
_POOL_ERROR_CODES = range(1010, 1020)


# ---------------------------------------------------------------------------
# JSON-RPC transport
# ---------------------------------------------------------------------------


class RpcClient:
    """Async JSON-RPC 2.0 client for a Substrate node.

    Args:
        url: HTTP(S) endpoint of the node.
        timeout: Request timeout in seconds.

    Example::

        async with RpcClient("https://testnet-rpc.polymesh.live") as rpc:
            version = await rpc.get_runtime_version()
    """

    def __init__(self, url: str, *, timeout: float = 30.0) -> None:
        self._url = url.rstrip("/")
        self._timeout = timeout
        self._request_id = 0
        self._client: httpx.AsyncClient | None = None

    # ----- lifecycle -------------------------------------------------------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "RpcClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ----- internal helpers ------------------------------------------------

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Send a JSON-RPC request and return its ``result`` field."""
        client = await self._ensure_client()
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": self._next_id(),
        }
        logger.debug("rpc %s", method)
        try:
            resp = await client.post(self._url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as exc:
            raise TransportTimeout(f"request to {self._url} timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{self._url} answered HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"cannot reach {self._url}: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"{self._url} returned invalid JSON") from exc

        if body.get("error") is not None:
            err = body["error"]
            code = err.get("code", -1)
            error_cls = ChainRejected if code in _POOL_ERROR_CODES else RpcError
            raise error_cls(
                code=code,
                message=err.get("message", "unknown error"),
                data=err.get("data"),
            )
        return body.get("result")

    # ----- public API ------------------------------------------------------

    async def account_next_index(self, address: str) -> int:
        """Next nonce for *address*, counting transactions in the pool."""
        return int(await self.call("system_accountNextIndex", [address]))

    async def get_storage(self, key: bytes) -> bytes | None:
        """Raw storage value at *key*, or ``None`` when unset."""
        result = await self.call("state_getStorage", ["0x" + key.hex()])
        if result is None:
            return None
        return bytes.fromhex(result.removeprefix("0x"))

    async def get_runtime_version(self) -> RuntimeVersion:
        result = await self.call("state_getRuntimeVersion")
        return RuntimeVersion.model_validate(result)

    async def get_block_hash(self, number: int | None = None) -> str:
        params = [] if number is None else [number]
        return str(await self.call("chain_getBlockHash", params))

    async def get_header(self, block_hash: str | None = None) -> dict[str, Any]:
        params = [] if block_hash is None else [block_hash]
        return await self.call("chain_getHeader", params)

    async def get_block(self, block_hash: str) -> dict[str, Any]:
        return await self.call("chain_getBlock", [block_hash])

    async def get_metadata(self) -> str:
        return str(await self.call("state_getMetadata"))

    async def submit_extrinsic(self, extrinsic_hex: str) -> str:
        """Hand an encoded extrinsic to the node's transaction pool."""
        return str(await self.call("author_submitExtrinsic", [extrinsic_hex]))


# ---------------------------------------------------------------------------
# Storage decoding
# ---------------------------------------------------------------------------


def storage_key(pallet: str, item: str, suffix: bytes = b"") -> bytes:
    """``twox128(pallet) ++ twox128(item) ++ suffix``."""
    return bytes(xxh128(pallet.encode()) + xxh128(item.encode()) + suffix)


def decode_account_balance(data: bytes) -> AccountBalance:
    reader = ScaleReader(data)
    for _ in range(4):  # nonce, consumers, providers, sufficients
        reader.read_u32()
    return AccountBalance(free=reader.read_u128(), reserved=reader.read_u128())


def decode_key_record(data: bytes) -> KeyRecord:
    reader = ScaleReader(data)
    variant = reader.read_u8()
    if variant == 0:
        return KeyRecord(kind=KeyRecordKind.PRIMARY_KEY, identity=IdentityId(reader.read_bytes(32)))
    if variant == 1:
        return KeyRecord(
            kind=KeyRecordKind.SECONDARY_KEY, identity=IdentityId(reader.read_bytes(32))
        )
    if variant == 2:
        return KeyRecord(kind=KeyRecordKind.MULTISIG_SIGNER_KEY)
    raise ScaleDecodeError(f"unknown KeyRecord variant {variant}")


def decode_staking_ledger(data: bytes) -> StakingLedger:
    reader = ScaleReader(data)
    stash = PublicKey(reader.read_bytes(32))
    total = reader.read_compact()
    active = reader.read_compact()
    unlocking = reader.read_vec(
        lambda r: UnlockChunk(value=r.read_compact(), era=r.read_compact())
    )
    claimed_rewards = reader.read_vec(ScaleReader.read_u32)
    return StakingLedger(
        stash=stash,
        total=total,
        active=active,
        unlocking=unlocking,
        claimed_rewards=claimed_rewards,
    )


def decode_slashing_spans(data: bytes) -> SlashingSpans:
    reader = ScaleReader(data)
    return SlashingSpans(
        span_index=reader.read_u32(),
        last_start=reader.read_u32(),
        last_nonzero_slash=reader.read_u32(),
        prior=reader.read_vec(ScaleReader.read_u32),
    )


def decode_validators(data: bytes) -> list[PublicKey]:
    reader = ScaleReader(data)
    validators = reader.read_vec(lambda r: PublicKey(r.read_bytes(32)))
    reader.finish()
    return validators


# ---------------------------------------------------------------------------
# Chain client
# ---------------------------------------------------------------------------


class ChainClient:
    """The wallet's gateway to one Polymesh network.

    Args:
        config: Endpoint and timeouts.
        rpc: Pre-built RPC client; one is created from *config* if omitted.
    """

    def __init__(self, config: NetworkConfig, rpc: RpcClient | None = None) -> None:
        self._config = config
        self._rpc = rpc or RpcClient(config.url, timeout=config.timeout)
        self._runtime_version: RuntimeVersion | None = None
        self._genesis_hash: bytes | None = None

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    async def close(self) -> None:
        await self._rpc.close()

    async def __aenter__(self) -> "ChainClient":
        await self._rpc.__aenter__()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ----- helpers ---------------------------------------------------------

    async def _storage(self, pallet: str, item: str, suffix: bytes = b"") -> bytes | None:
        return await self._rpc.get_storage(storage_key(pallet, item, suffix))

    @staticmethod
    def _decode(decoder: Any, data: bytes, what: str) -> Any:
        try:
            return decoder(data)
        except (ScaleDecodeError, ValueError) as exc:
            raise TransportError(f"undecodable {what} from node: {exc}") from exc

    # ----- queries ---------------------------------------------------------

    async def get_nonce(self, account: PublicKey) -> int:
        return await self._rpc.account_next_index(
            encode_address(account, self._config.network)
        )

    async def query_identity_key_record(self, account: PublicKey) -> KeyRecord | None:
        data = await self._storage("Identity", "KeyRecords", two_x64_concat(bytes(account)))
        if data is None:
            return None
        return self._decode(decode_key_record, data, "key record")

    async def query_authorization_nonce(self, identity_id: IdentityId) -> int:
        data = await self._storage(
            "Identity", "OffChainAuthorizationNonce", identity(bytes(identity_id))
        )
        if data is None:
            return 0
        return self._decode(lambda d: ScaleReader(d).read_u64(), data, "authorization nonce")

    async def query_account_balance(self, account: PublicKey) -> AccountBalance:
        data = await self._storage("System", "Account", blake2_128_concat(bytes(account)))
        if data is None:
            return AccountBalance(free=0, reserved=0)
        return self._decode(decode_account_balance, data, "account info")

    async def query_validator_set(self) -> list[PublicKey]:
        data = await self._storage("Session", "Validators")
        if data is None:
            return []
        return self._decode(decode_validators, data, "validator set")

    async def query_staking_ledger(self, controller: PublicKey) -> StakingLedger | None:
        data = await self._storage("Staking", "Ledger", blake2_128_concat(bytes(controller)))
        if data is None:
            return None
        return self._decode(decode_staking_ledger, data, "staking ledger")

    async def query_slashing_spans(self, stash: PublicKey) -> SlashingSpans | None:
        data = await self._storage("Staking", "SlashingSpans", two_x64_concat(bytes(stash)))
        if data is None:
            return None
        return self._decode(decode_slashing_spans, data, "slashing spans")

    async def get_metadata(self) -> str:
        return await self._rpc.get_metadata()

    # ----- signing extras --------------------------------------------------

    async def runtime_version(self) -> RuntimeVersion:
        if self._runtime_version is None:
            self._runtime_version = await self._rpc.get_runtime_version()
        return self._runtime_version

    async def genesis_hash(self) -> bytes:
        if self._genesis_hash is None:
            block_hash = await self._rpc.get_block_hash(0)
            self._genesis_hash = bytes.fromhex(block_hash.removeprefix("0x"))
        return self._genesis_hash

    async def additional_signed(self) -> bytes:
        """Spec version, transaction version, genesis hash, checkpoint hash.

        Immortal transactions use genesis as their checkpoint block.
        """
        version = await self.runtime_version()
        genesis = await self.genesis_hash()
        return (
            encode_u32(version.spec_version)
            + encode_u32(version.transaction_version)
            + genesis
            + genesis
        )

    # ----- submission ------------------------------------------------------

    async def best_block_number(self) -> int:
        header = await self._rpc.get_header()
        return int(header["number"], 16)

    async def submit_extrinsic(self, encoded: bytes) -> str:
        """Hand an encoded extrinsic to the node's pool; returns the node's hash.

        Raises:
            ChainRejected: If the pool refuses the extrinsic.
        """
        tx_hash = await self._rpc.submit_extrinsic("0x" + encoded.hex())
        logger.info("extrinsic %s accepted by %s", tx_hash, self._config.url)
        return tx_hash

    async def submit_and_watch(
        self, encoded: bytes, *, wait_for_inclusion: bool = False
    ) -> str:
        """Submit an encoded extrinsic; returns the hash reported by the node.

        Returns as soon as the node accepts the extrinsic into its pool. With
        *wait_for_inclusion* it then waits for a block containing it.

        Raises:
            ChainRejected: If the pool refuses the extrinsic.
            TransportTimeout: If inclusion is not seen in time.
        """
        start = await self.best_block_number() if wait_for_inclusion else 0
        tx_hash = await self.submit_extrinsic(encoded)
        if wait_for_inclusion:
            block_hash = await self.wait_for_inclusion("0x" + encoded.hex(), after=start)
            logger.info("extrinsic %s included in block %s", tx_hash, block_hash)
        return tx_hash

    async def wait_for_inclusion(self, extrinsic_hex: str, *, after: int) -> str:
        """Poll new blocks until one carries *extrinsic_hex*; returns its hash.

        Raises:
            TransportTimeout: If ``inclusion_timeout`` elapses first.
        """
        deadline = time.monotonic() + self._config.inclusion_timeout
        next_number = after + 1
        while True:
            best = await self.best_block_number()
            for number in range(next_number, best + 1):
                block_hash = await self._rpc.get_block_hash(number)
                block = await self._rpc.get_block(block_hash)
                if extrinsic_hex in block["block"]["extrinsics"]:
                    return block_hash
            next_number = max(next_number, best + 1)

            if time.monotonic() >= deadline:
                raise TransportTimeout(
                    f"extrinsic not included within {self._config.inclusion_timeout}s"
                )
            await asyncio.sleep(self._config.poll_interval)
