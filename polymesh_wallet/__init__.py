"""Polymesh wallet.

Everything needed to hold keys for the Polymesh chain and act with them from
Python: sr25519 key derivation, SS58 addresses, payload signing, extrinsic
construction and submission, staking, and secondary-key management for
on-chain identities.

Quick start::

    from polymesh_wallet import Network, NetworkConfig, Wallet

    config = NetworkConfig.for_network(Network.TESTNET)
    async with Wallet.from_mnemonic(phrase, config) as wallet:
        print(wallet.address)
        tx_hash = await wallet.transfer("5EEiPC3d...", 1_000_000)
"""

from polymesh_wallet.address import (
    decode_address,
    decode_address_with_network,
    encode_address,
    is_valid_address,
)
from polymesh_wallet.authorization import (
    AuthorizationProtocol,
    encode_authorization,
    expires_at_ms,
    sign_authorization,
    verify_authorization,
)
from polymesh_wallet.calls import (
    AddSecondaryKeys,
    Bond,
    BondExtra,
    Call,
    MetadataCallEncoder,
    Nominate,
    RemoveSecondaryKeys,
    RewardDestination,
    Transfer,
    Unbond,
    WithdrawUnbonded,
)
from polymesh_wallet.client import ChainClient, RpcClient
from polymesh_wallet.config import Network, NetworkConfig
from polymesh_wallet.errors import (
    ChainRejected,
    InvalidAddress,
    InvalidKeyEncoding,
    InvalidMnemonic,
    NoIdentity,
    NoStakingLedger,
    NotPrimaryKey,
    RpcError,
    TransportError,
    TransportTimeout,
    WalletError,
)
from polymesh_wallet.keys import KeyPair, from_mnemonic, from_secret, from_seed, from_uri
from polymesh_wallet.nonce import NonceTracker
from polymesh_wallet.signing import LocalKeypairSigner, Signer, sign, verify
from polymesh_wallet.transaction import (
    ExtrinsicBuilder,
    SigningPayload,
    decode_extrinsic,
    encode_extrinsic,
    extrinsic_hash,
    verify_extrinsic,
)
from polymesh_wallet.types import (
    AccountBalance,
    Era,
    Extrinsic,
    IdentityId,
    KeyRecord,
    KeyRecordKind,
    Permissions,
    PublicKey,
    SecondaryKeyWithAuth,
    Signature,
    SignedExtra,
    StakingLedger,
    SubsetRestriction,
    TargetIdAuthorization,
)
from polymesh_wallet.wallet import Wallet, polyx_to_micro

__all__ = [
    # Keys and addresses
    "KeyPair",
    "from_seed",
    "from_mnemonic",
    "from_uri",
    "from_secret",
    "encode_address",
    "decode_address",
    "decode_address_with_network",
    "is_valid_address",
    # Signing
    "Signer",
    "LocalKeypairSigner",
    "sign",
    "verify",
    # Transactions
    "ExtrinsicBuilder",
    "SigningPayload",
    "encode_extrinsic",
    "decode_extrinsic",
    "extrinsic_hash",
    "verify_extrinsic",
    "NonceTracker",
    # Calls
    "Call",
    "Transfer",
    "Bond",
    "Unbond",
    "BondExtra",
    "WithdrawUnbonded",
    "Nominate",
    "AddSecondaryKeys",
    "RemoveSecondaryKeys",
    "RewardDestination",
    "MetadataCallEncoder",
    # Authorization
    "AuthorizationProtocol",
    "encode_authorization",
    "expires_at_ms",
    "sign_authorization",
    "verify_authorization",
    # Chain access
    "ChainClient",
    "RpcClient",
    "Network",
    "NetworkConfig",
    # Wallet
    "Wallet",
    "polyx_to_micro",
    # Types
    "AccountBalance",
    "Era",
    "Extrinsic",
    "IdentityId",
    "KeyRecord",
    "KeyRecordKind",
    "Permissions",
    "PublicKey",
    "SecondaryKeyWithAuth",
    "Signature",
    "SignedExtra",
    "StakingLedger",
    "SubsetRestriction",
    "TargetIdAuthorization",
    # Errors
    "WalletError",
    "InvalidKeyEncoding",
    "InvalidMnemonic",
    "InvalidAddress",
    "NoIdentity",
    "NotPrimaryKey",
    "NoStakingLedger",
    "TransportError",
    "TransportTimeout",
    "RpcError",
    "ChainRejected",
]

__version__ = "0.1.0"
