"""Tests for network configuration and core types."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from polymesh_wallet.calls import (
    MAX_NOMINATIONS,
    AddSecondaryKeys,
    Bond,
    Nominate,
    RemoveSecondaryKeys,
    RewardDestination,
    Transfer,
    WithdrawUnbonded,
)
from polymesh_wallet.config import DEFAULT_URLS, Network, NetworkConfig
from polymesh_wallet.types import (
    Extrinsic,
    PublicKey,
    SecondaryKeyWithAuth,
    Signature,
    SignedExtra,
    SubsetRestriction,
)

KEY = PublicKey(b"\x01" * 32)


# ---------------------------------------------------------------------------
# NetworkConfig
# ---------------------------------------------------------------------------


class TestNetworkConfig:
    """Endpoint selection and overrides."""

    def test_ss58_formats(self) -> None:
        assert Network.TESTNET.ss58_format == 42
        assert Network.MAINNET.ss58_format == 12

    def test_from_flag(self) -> None:
        assert Network.from_flag(True) is Network.MAINNET
        assert Network.from_flag(False) is Network.TESTNET

    def test_defaults(self) -> None:
        config = NetworkConfig()
        assert config.network is Network.TESTNET
        assert config.url == DEFAULT_URLS[Network.TESTNET]
        assert config.ss58_format == 42

    def test_for_network_defaults(self) -> None:
        config = NetworkConfig.for_network(Network.MAINNET, env={})
        assert config.url == DEFAULT_URLS[Network.MAINNET]
        assert config.ss58_format == 12

    def test_env_overrides(self) -> None:
        env = {"POLYMESH_TESTNET_URL": "http://node:9933/", "POLYMESH_RPC_TIMEOUT": "5"}
        config = NetworkConfig.for_network(Network.TESTNET, env=env)
        assert config.url == "http://node:9933"
        assert config.timeout == 5.0

    def test_other_network_override_ignored(self) -> None:
        env = {"POLYMESH_MAINNET_URL": "http://node:9933"}
        config = NetworkConfig.for_network(Network.TESTNET, env=env)
        assert config.url == DEFAULT_URLS[Network.TESTNET]

    def test_websocket_url_mapped_to_http(self) -> None:
        assert NetworkConfig(url="wss://example.org/").url == "https://example.org"
        assert NetworkConfig(url="ws://127.0.0.1:9944").url == "http://127.0.0.1:9944"

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ValidationError):
            NetworkConfig(url="ftp://example.org")

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            NetworkConfig(timeout=0)

    def test_frozen(self) -> None:
        config = NetworkConfig()
        with pytest.raises(ValidationError):
            config.url = "http://other"


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class TestFixedBytes:
    """Keys and signatures."""

    def test_hex_input(self) -> None:
        assert PublicKey("0x" + "01" * 32) == KEY
        assert PublicKey("01" * 32) == KEY

    def test_wrong_length(self) -> None:
        with pytest.raises(ValueError):
            PublicKey(b"\x01" * 31)
        with pytest.raises(ValueError):
            Signature(b"\x01" * 65)

    def test_json_is_hex(self) -> None:
        xt = Extrinsic(
            signer=KEY,
            signature=Signature(b"\x02" * 64),
            extra=SignedExtra(nonce=1),
            call=b"\x05\x00",
        )
        data = xt.model_dump(mode="json")
        assert data["signer"] == "0x" + "01" * 32
        assert data["call"] == "0x0500"
        assert data["extra"] == {"era": "immortal", "nonce": 1, "tip": 0}

    def test_model_rejects_wrong_type(self) -> None:
        with pytest.raises(ValidationError):
            SecondaryKeyWithAuth(key=123, auth_signature=b"\x00" * 64)


class TestSubsetRestriction:
    """Permission restrictions."""

    def test_whole(self) -> None:
        assert SubsetRestriction.whole().to_call_arg() == "Whole"

    def test_except(self) -> None:
        assert SubsetRestriction.except_(1, 2).to_call_arg() == {"Except": [1, 2]}

    def test_whole_takes_no_values(self) -> None:
        with pytest.raises(ValidationError):
            SubsetRestriction(values=(1,))


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


class TestCalls:
    """Call names and arguments."""

    def test_transfer(self) -> None:
        call = Transfer(dest=KEY, value=1_000_000)
        assert (call.pallet, call.function) == ("Balances", "transfer")
        args = call.call_args(Network.MAINNET)
        assert args["dest"].startswith("2")
        assert args["value"] == 1_000_000

    def test_negative_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Transfer(dest=KEY, value=-1)

    def test_bond(self) -> None:
        args = Bond(controller=KEY, value=5, payee=RewardDestination.STAKED).call_args(
            Network.TESTNET
        )
        assert args["payee"] == "Staked"
        assert args["controller"].startswith("5")

    def test_withdraw(self) -> None:
        call = WithdrawUnbonded(num_slashing_spans=3)
        assert call.call_args(Network.TESTNET) == {"num_slashing_spans": 3}

    def test_nominate_limits(self) -> None:
        Nominate(targets=[KEY] * MAX_NOMINATIONS)
        with pytest.raises(ValidationError):
            Nominate(targets=[KEY] * (MAX_NOMINATIONS + 1))
        with pytest.raises(ValidationError):
            Nominate(targets=[])

    def test_add_secondary_keys_args(self) -> None:
        record = SecondaryKeyWithAuth(key=KEY, auth_signature=Signature(b"\x03" * 64))
        call = AddSecondaryKeys(keys=[record], expires_at=1_700_000_000_000)
        assert call.function == "add_secondary_keys_with_authorization"
        args = call.call_args(Network.TESTNET)
        assert args["expires_at"] == 1_700_000_000_000
        entry = args["additional_keys"][0]
        assert entry["auth_signature"] == "0x" + "03" * 64
        assert entry["secondary_key"]["permissions"]["asset"] == "Whole"

    def test_remove_secondary_keys_args(self) -> None:
        args = RemoveSecondaryKeys(keys=[KEY]).call_args(Network.TESTNET)
        assert len(args["keys_to_remove"]) == 1
        assert args["keys_to_remove"][0].startswith("5")
