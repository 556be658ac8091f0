"""Tests for key derivation and SS58 addresses."""

from __future__ import annotations

import pytest
from scalecodec.utils.ss58 import ss58_encode

from conftest import SEED, SEED_ADDRESS
from polymesh_wallet.address import (
    decode_address,
    decode_address_with_network,
    encode_address,
    is_valid_address,
)
from polymesh_wallet.config import Network
from polymesh_wallet.errors import InvalidAddress, InvalidKeyEncoding, InvalidMnemonic
from polymesh_wallet.keys import KeyPair, from_mnemonic, from_secret, from_seed, from_uri
from polymesh_wallet.types import PublicKey

VALID_MNEMONIC = " ".join(["abandon"] * 11 + ["about"])
DEV_PHRASE = "bottom drive obey lake curtain smoke basket hold race lonely fit walk"
ALICE_PUBLIC_KEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
ALICE_ADDRESS = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


# ---------------------------------------------------------------------------
# Seeds
# ---------------------------------------------------------------------------


class TestFromSeed:
    """Hex private keys."""

    def test_known_address(self) -> None:
        assert from_seed(SEED).address() == SEED_ADDRESS

    def test_deterministic(self) -> None:
        assert from_seed(SEED) == from_seed(SEED)
        assert from_seed(SEED).public_key == from_seed(SEED).public_key

    def test_0x_prefix_accepted(self) -> None:
        assert from_seed("0x" + SEED) == from_seed(SEED)

    def test_surrounding_whitespace_ignored(self) -> None:
        assert from_seed(f"  {SEED}\n") == from_seed(SEED)

    def test_public_key_is_32_bytes(self) -> None:
        pk = from_seed(SEED).public_key
        assert isinstance(pk, PublicKey)
        assert len(pk) == 32

    def test_not_hex_rejected(self) -> None:
        with pytest.raises(InvalidKeyEncoding):
            from_seed("zz" * 32)

    def test_odd_length_rejected(self) -> None:
        with pytest.raises(InvalidKeyEncoding):
            from_seed(SEED[:-1])

    def test_wrong_length_rejected(self) -> None:
        with pytest.raises(InvalidKeyEncoding):
            from_seed("ab" * 16)

    def test_invalid_key_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            from_seed("")

    def test_repr_hides_secret(self) -> None:
        kp = from_seed(SEED)
        assert SEED not in repr(kp)
        assert kp.public_key.hex() in repr(kp)

    def test_hashable(self) -> None:
        assert len({from_seed(SEED), from_seed(SEED)}) == 1


# ---------------------------------------------------------------------------
# Mnemonics and secret URIs
# ---------------------------------------------------------------------------


class TestFromMnemonic:
    """BIP39 phrases and Substrate secret URIs."""

    def test_valid_mnemonic(self) -> None:
        kp = from_mnemonic(VALID_MNEMONIC)
        assert isinstance(kp, KeyPair)
        assert kp == from_mnemonic(VALID_MNEMONIC)

    def test_bad_checksum_rejected(self) -> None:
        with pytest.raises(InvalidMnemonic):
            from_mnemonic(" ".join(["abandon"] * 12))

    def test_unknown_word_rejected(self) -> None:
        with pytest.raises(InvalidMnemonic):
            from_mnemonic(" ".join(["abandon"] * 11 + ["polymesh"]))

    def test_password_changes_key(self) -> None:
        assert from_mnemonic(VALID_MNEMONIC) != from_mnemonic(VALID_MNEMONIC, "secret")

    def test_empty_password_is_no_password(self) -> None:
        assert from_mnemonic(VALID_MNEMONIC, "") == from_mnemonic(VALID_MNEMONIC)

    def test_extra_whitespace_normalised(self) -> None:
        spaced = "  " + VALID_MNEMONIC.replace(" ", "   ") + "\n"
        assert from_mnemonic(spaced) == from_mnemonic(VALID_MNEMONIC)

    def test_matches_uri_without_junctions(self) -> None:
        assert from_mnemonic(DEV_PHRASE) == from_uri(DEV_PHRASE)

    def test_dev_uri(self) -> None:
        alice = from_uri("//Alice")
        assert alice.public_key.hex() == ALICE_PUBLIC_KEY
        assert alice.address() == ALICE_ADDRESS

    def test_dev_uri_derives_from_dev_phrase(self) -> None:
        assert from_uri(f"{DEV_PHRASE}//Alice") == from_uri("//Alice")
        assert from_uri(f"{DEV_PHRASE}//Bob") != from_uri("//Alice")


class TestFromSecret:
    """Dispatch between seeds and mnemonics."""

    def test_key(self) -> None:
        assert from_secret(key=SEED) == from_seed(SEED)

    def test_mnemonic(self) -> None:
        assert from_secret(mnemonic=VALID_MNEMONIC) == from_mnemonic(VALID_MNEMONIC)

    def test_mnemonic_with_password(self) -> None:
        kp = from_secret(mnemonic=VALID_MNEMONIC, password="pw")
        assert kp == from_mnemonic(VALID_MNEMONIC, "pw")

    def test_uri(self) -> None:
        assert from_secret(mnemonic="//Alice") == from_uri("//Alice")

    def test_password_with_derivation_path_rejected(self) -> None:
        with pytest.raises(InvalidMnemonic):
            from_secret(mnemonic=f"{DEV_PHRASE}//hard", password="x")
        with pytest.raises(InvalidMnemonic):
            from_secret(mnemonic="//Alice", password="x")

    def test_empty_password_with_derivation_path(self) -> None:
        assert from_secret(mnemonic="//Alice", password="") == from_uri("//Alice")

    def test_neither_rejected(self) -> None:
        with pytest.raises(ValueError):
            from_secret()

    def test_both_rejected(self) -> None:
        with pytest.raises(ValueError):
            from_secret(key=SEED, mnemonic=VALID_MNEMONIC)


# ---------------------------------------------------------------------------
# SS58 addresses
# ---------------------------------------------------------------------------


class TestAddress:
    """SS58 encoding on both networks."""

    def test_decode_known_address(self) -> None:
        assert decode_address(SEED_ADDRESS) == from_seed(SEED).public_key

    def test_testnet_round_trip(self) -> None:
        pk = from_seed(SEED).public_key
        address = encode_address(pk, Network.TESTNET)
        assert address.startswith("5")
        assert decode_address_with_network(address) == (pk, Network.TESTNET)

    def test_mainnet_round_trip(self) -> None:
        pk = from_seed(SEED).public_key
        address = encode_address(pk, Network.MAINNET)
        assert address.startswith("2")
        assert decode_address_with_network(address) == (pk, Network.MAINNET)

    def test_networks_differ(self) -> None:
        pk = from_seed(SEED).public_key
        assert encode_address(pk, Network.TESTNET) != encode_address(pk, Network.MAINNET)

    def test_keypair_address_per_network(self) -> None:
        kp = from_seed(SEED)
        assert kp.address(Network.MAINNET) == encode_address(kp.public_key, Network.MAINNET)

    def test_checksum_mismatch_rejected(self) -> None:
        last = SEED_ADDRESS[-1]
        corrupted = SEED_ADDRESS[:-1] + ("u" if last != "u" else "v")
        with pytest.raises(InvalidAddress):
            decode_address(corrupted)

    @pytest.mark.parametrize("network", list(Network))
    def test_every_single_bit_flip_rejected(self, network) -> None:
        address = encode_address(from_seed(SEED).public_key, network)
        accepted = []
        for position in range(len(address)):
            for bit in range(8):
                flipped = chr(ord(address[position]) ^ (1 << bit))
                corrupted = address[:position] + flipped + address[position + 1:]
                if is_valid_address(corrupted):
                    accepted.append((position, bit, corrupted))
        assert accepted == []

    def test_invalid_base58_rejected(self) -> None:
        with pytest.raises(InvalidAddress):
            decode_address("0OIl" * 12)

    def test_hex_rejected(self) -> None:
        with pytest.raises(InvalidAddress):
            decode_address("0x" + "ab" * 32)

    def test_empty_rejected(self) -> None:
        with pytest.raises(InvalidAddress):
            decode_address("")

    def test_unsupported_format_rejected(self) -> None:
        pk = from_seed(SEED).public_key
        kusama = ss58_encode(bytes(pk), ss58_format=2)
        with pytest.raises(InvalidAddress):
            decode_address(kusama)

    def test_encode_wrong_length_rejected(self) -> None:
        with pytest.raises(ValueError):
            encode_address(b"\x01" * 31)

    def test_is_valid_address(self) -> None:
        assert is_valid_address(SEED_ADDRESS)
        assert not is_valid_address("not an address")
