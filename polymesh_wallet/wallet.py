"""High-level wallet abstraction for Polymesh.

:class:`Wallet` bundles a signer, a chain client, nonce tracking and call
encoding behind one async interface. It is the recommended entry point for
applications that hold keys and submit transactions.

Example::

    config = NetworkConfig.for_network(Network.TESTNET)
    async with Wallet.from_mnemonic(phrase, config) as wallet:
        tx_hash = await wallet.transfer("5EEiPC3d...", 1_000_000)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Sequence

from polymesh_wallet.address import decode_address, encode_address
from polymesh_wallet.authorization import AuthorizationProtocol
from polymesh_wallet.calls import (
    Bond,
    BondExtra,
    Call,
    CallEncoder,
    MetadataCallEncoder,
    Nominate,
    RewardDestination,
    Transfer,
    Unbond,
    WithdrawUnbonded,
)
from polymesh_wallet.client import ChainClient
from polymesh_wallet.config import Network, NetworkConfig
from polymesh_wallet.errors import NoStakingLedger
from polymesh_wallet.keys import from_mnemonic, from_secret, from_seed
from polymesh_wallet.nonce import NonceTracker
from polymesh_wallet.signing import LocalKeypairSigner, Signer
from polymesh_wallet.transaction import ExtrinsicBuilder
from polymesh_wallet.types import Permissions, PublicKey, Signature, StakingLedger

logger = logging.getLogger(__name__)

MICRO_PER_POLYX = 1_000_000


def polyx_to_micro(amount: float | str) -> int:
    """Convert a POLYX amount to μPOLYX, truncating below one μPOLYX."""
    try:
        value = int(Decimal(str(amount)) * MICRO_PER_POLYX)
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise ValueError(f"not a number: {amount}") from exc
    if value < 0:
        raise ValueError(f"amount must not be negative: {amount}")
    return value


class Wallet:
    """A signing account connected to one Polymesh network.

    Args:
        signer: Signs extrinsics for this account.
        config: Network and endpoint settings.
        chain: Chain client; built from *config* when omitted.
        call_encoder: Call encoder; built from the runtime metadata on first
            use when omitted.
        wait_for_inclusion: Wait for a block containing each submitted
            extrinsic before returning.
    """

    def __init__(
        self,
        signer: Signer,
        config: NetworkConfig | None = None,
        *,
        chain: ChainClient | None = None,
        call_encoder: CallEncoder | None = None,
        wait_for_inclusion: bool = True,
    ) -> None:
        self._signer = signer
        self._config = config or (chain.config if chain is not None else NetworkConfig())
        self._chain = chain or ChainClient(self._config)
        self._call_encoder = call_encoder
        self._nonces = NonceTracker(self._chain)
        self._builder = ExtrinsicBuilder(self._chain, self._nonces)
        self._authorization = AuthorizationProtocol(self._chain)
        self._wait_for_inclusion = wait_for_inclusion

    # ----- constructors ----------------------------------------------------

    @classmethod
    def from_seed(cls, hex_seed: str, config: NetworkConfig | None = None, **kwargs) -> "Wallet":
        """Wallet for a 32-byte hex private key."""
        return cls(LocalKeypairSigner(from_seed(hex_seed)), config, **kwargs)

    @classmethod
    def from_mnemonic(
        cls,
        phrase: str,
        config: NetworkConfig | None = None,
        *,
        password: str | None = None,
        **kwargs,
    ) -> "Wallet":
        """Wallet for a BIP39 mnemonic and optional passphrase."""
        return cls(LocalKeypairSigner(from_mnemonic(phrase, password)), config, **kwargs)

    @classmethod
    def from_secret(
        cls,
        *,
        key: str | None = None,
        mnemonic: str | None = None,
        password: str | None = None,
        config: NetworkConfig | None = None,
        **kwargs,
    ) -> "Wallet":
        """Wallet for either a hex private key or a mnemonic / secret URI."""
        keypair = from_secret(key=key, mnemonic=mnemonic, password=password)
        return cls(LocalKeypairSigner(keypair), config, **kwargs)

    # ----- lifecycle -------------------------------------------------------

    async def close(self) -> None:
        await self._chain.close()

    async def __aenter__(self) -> "Wallet":
        await self._chain.__aenter__()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ----- properties ------------------------------------------------------

    @property
    def network(self) -> Network:
        return self._config.network

    @property
    def public_key(self) -> PublicKey:
        return self._signer.public_key

    @property
    def address(self) -> str:
        """SS58 address of this account on the configured network."""
        return encode_address(self._signer.public_key, self.network)

    @property
    def chain(self) -> ChainClient:
        return self._chain

    @property
    def nonces(self) -> NonceTracker:
        return self._nonces

    # ----- signing ---------------------------------------------------------

    def sign(self, payload: bytes) -> Signature:
        """Sign arbitrary bytes with this wallet's key."""
        return self._signer.sign(payload)

    async def _encoder(self) -> CallEncoder:
        if self._call_encoder is None:
            metadata = await self._chain.get_metadata()
            self._call_encoder = MetadataCallEncoder(metadata, self.network)
        return self._call_encoder

    async def submit(self, call: Call) -> str:
        """Encode, sign and submit *call*; returns the extrinsic hash."""
        encoder = await self._encoder()
        call_bytes = encoder.encode(call)
        logger.info("submitting %s.%s from %s", call.pallet, call.function, self.address)
        return await self._builder.sign_and_submit(
            call_bytes, self._signer, wait_for_inclusion=self._wait_for_inclusion
        )

    # ----- balances --------------------------------------------------------

    async def transfer(self, dest: str, amount: int) -> str:
        """Send *amount* μPOLYX to the SS58 address *dest*."""
        return await self.submit(Transfer(dest=decode_address(dest), value=amount))

    async def free_balance(self, address: str | None = None) -> int:
        """Free balance in μPOLYX of *address* (default: this account)."""
        account = decode_address(address) if address else self.public_key
        balance = await self._chain.query_account_balance(account)
        return balance.free

    async def staked_balance(self, address: str | None = None) -> int:
        """Actively bonded μPOLYX controlled by *address*, 0 if not a controller."""
        account = decode_address(address) if address else self.public_key
        ledger = await self._chain.query_staking_ledger(account)
        return ledger.active if ledger is not None else 0

    # ----- staking ---------------------------------------------------------

    async def _ledger(self) -> StakingLedger:
        ledger = await self._chain.query_staking_ledger(self.public_key)
        if ledger is None:
            raise NoStakingLedger(f"no staking ledger found for {self.address}")
        return ledger

    async def validators(self) -> list[str]:
        """SS58 addresses of the current validator set."""
        validators = await self._chain.query_validator_set()
        return [encode_address(v, self.network) for v in validators]

    async def nominate(self, validators: Sequence[str]) -> str:
        """As a controller, nominate up to 24 validators."""
        targets = [decode_address(v) for v in validators]
        return await self.submit(Nominate(targets=targets))

    async def bond(
        self,
        controller: str,
        value: int,
        payee: RewardDestination = RewardDestination.STASH,
    ) -> str:
        """As a stash, lock *value* μPOLYX under *controller*."""
        return await self.submit(
            Bond(controller=decode_address(controller), value=value, payee=payee)
        )

    async def unbond(self, value: int) -> str:
        """As a controller, schedule *value* μPOLYX for unbonding."""
        return await self.submit(Unbond(value=value))

    async def bond_extra(self, value: int) -> str:
        """As a stash, add *value* μPOLYX to the bonded amount."""
        return await self.submit(BondExtra(max_additional=value))

    async def active_in_ledger(self) -> int:
        return (await self._ledger()).active

    async def withdraw_unbonded(self) -> str:
        """As a controller, withdraw funds whose unbonding period has ended.

        The call must state how many slashing spans the stash has, which only
        matters once nothing remains actively bonded.
        """
        ledger = await self._ledger()
        num_slashing_spans = 0
        if ledger.active == 0:
            spans = await self._chain.query_slashing_spans(ledger.stash)
            if spans is not None:
                num_slashing_spans = len(spans.prior) + 1
        return await self.submit(WithdrawUnbonded(num_slashing_spans=num_slashing_spans))

    # ----- secondary keys --------------------------------------------------

    async def add_secondary_key(
        self,
        secondary: Signer | Sequence[Signer],
        expires_after: timedelta | int,
        permissions: Permissions | None = None,
    ) -> str:
        """Add secondary keys to this account's identity.

        This account must be the identity's primary key; every secondary key
        signs its own consent. *expires_after* bounds how long the consent
        stays valid (seconds or a timedelta).
        """
        secondaries = [secondary] if isinstance(secondary, Signer) else list(secondary)
        call = await self._authorization.add_secondary_keys(
            self.public_key, secondaries, expires_after, permissions
        )
        return await self.submit(call)

    async def remove_secondary_keys(self, addresses: Sequence[str]) -> str:
        """Revoke secondary keys, given by SS58 address, from this identity."""
        keys = [decode_address(a) for a in addresses]
        return await self.submit(AuthorizationProtocol.remove_secondary_keys(keys))
