"""Command-line interface: ``polymesh-wallet <command> ...``.

Secrets may be passed as flags, read from ``POLYMESH_KEY`` /
``POLYMESH_MNEMONIC`` when the flag is absent, or read from stdin when the
flag value is ``-``. Prefer the latter two: command-line arguments are
visible to other users of the machine.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Callable, Sequence

from polymesh_wallet import keys
from polymesh_wallet.address import decode_address, encode_address
from polymesh_wallet.client import ChainClient
from polymesh_wallet.config import Network, NetworkConfig
from polymesh_wallet.errors import WalletError
from polymesh_wallet.signing import LocalKeypairSigner, sign_payload_hex, verify_payload_hex
from polymesh_wallet.wallet import Wallet, polyx_to_micro

logger = logging.getLogger("polymesh_wallet")

KEY_ENV = "POLYMESH_KEY"
MNEMONIC_ENV = "POLYMESH_MNEMONIC"
SECONDARY_KEY_ENV = "POLYMESH_SECONDARY_KEY"


# ---------------------------------------------------------------------------
# Secret handling
# ---------------------------------------------------------------------------


def _read_secret(value: str | None, env_var: str) -> str | None:
    if value == "-":
        return sys.stdin.readline().strip()
    if value is None:
        return os.environ.get(env_var) or None
    return value


def _signing_keypair(args: argparse.Namespace) -> keys.KeyPair:
    key = _read_secret(getattr(args, "key", None), KEY_ENV)
    mnemonic = _read_secret(getattr(args, "mnemonic", None), MNEMONIC_ENV)
    if key is not None and mnemonic is not None:
        # A flag beats whatever is set in the environment.
        if getattr(args, "key", None) is not None:
            mnemonic = None
        else:
            key = None
    if key is None and mnemonic is None:
        raise ValueError(f"a private key (--key or {KEY_ENV}) or mnemonic is required")
    return keys.from_secret(key=key, mnemonic=mnemonic)


def _mnemonic_keypair(args: argparse.Namespace) -> keys.KeyPair:
    mnemonic = _read_secret(args.mnemonic, MNEMONIC_ENV)
    if mnemonic is None:
        raise ValueError(f"a mnemonic (--mnemonic or {MNEMONIC_ENV}) is required")
    return keys.from_secret(mnemonic=mnemonic)


def _config(args: argparse.Namespace) -> NetworkConfig:
    return NetworkConfig.for_network(Network.from_flag(args.mainnet))


def _wallet(args: argparse.Namespace, keypair: keys.KeyPair) -> Wallet:
    return Wallet(LocalKeypairSigner(keypair), _config(args))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _cmd_send(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    amount = polyx_to_micro(args.amount)
    decode_address(args.destination)
    async with _wallet(args, keypair) as wallet:
        return await wallet.transfer(args.destination, amount)


def _cmd_sign(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    return sign_payload_hex(keypair, args.payload)


def _cmd_verify(args: argparse.Namespace) -> str:
    return str(verify_payload_hex(args.signature, args.address, args.payload)).lower()


def _cmd_address(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    return encode_address(keypair.public_key, Network.from_flag(args.mainnet))


async def _cmd_balance(args: argparse.Namespace) -> str:
    account = decode_address(args.address)
    async with ChainClient(_config(args)) as chain:
        if args.staked:
            ledger = await chain.query_staking_ledger(account)
            return str(ledger.active if ledger is not None else 0)
        balance = await chain.query_account_balance(account)
        return str(balance.free)


async def _cmd_secondary_add(args: argparse.Namespace) -> str:
    primary = _mnemonic_keypair(args)
    secondary_key = _read_secret(args.secondary_key, SECONDARY_KEY_ENV)
    if secondary_key is None:
        raise ValueError(f"a secondary key (--secondary or {SECONDARY_KEY_ENV}) is required")
    secondary = LocalKeypairSigner(keys.from_seed(secondary_key))
    async with _wallet(args, primary) as wallet:
        return await wallet.add_secondary_key(secondary, args.expires_after)


async def _cmd_secondary_remove(args: argparse.Namespace) -> str:
    primary = _mnemonic_keypair(args)
    decode_address(args.who)
    async with _wallet(args, primary) as wallet:
        return await wallet.remove_secondary_keys([args.who])


async def _cmd_validators(args: argparse.Namespace) -> str:
    network = Network.from_flag(args.mainnet)
    async with ChainClient(_config(args)) as chain:
        validators = await chain.query_validator_set()
    return "\n".join(encode_address(v, network) for v in validators)


async def _cmd_nominate(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    for v in args.validators:
        decode_address(v)
    async with _wallet(args, keypair) as wallet:
        return await wallet.nominate(args.validators)


async def _cmd_bond(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    value = polyx_to_micro(args.value)
    decode_address(args.controller)
    async with _wallet(args, keypair) as wallet:
        return await wallet.bond(args.controller, value)


async def _cmd_unbond(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    value = polyx_to_micro(args.value)
    async with _wallet(args, keypair) as wallet:
        return await wallet.unbond(value)


async def _cmd_bond_extra(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    value = polyx_to_micro(args.value)
    async with _wallet(args, keypair) as wallet:
        return await wallet.bond_extra(value)


async def _cmd_withdraw(args: argparse.Namespace) -> str:
    keypair = _signing_keypair(args)
    async with _wallet(args, keypair) as wallet:
        return await wallet.withdraw_unbonded()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_mainnet(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mainnet", action="store_true", help="use mainnet instead of testnet"
    )


def _add_key(parser: argparse.ArgumentParser, help_text: str, *aliases: str) -> None:
    parser.add_argument(
        "-k", "--key", *aliases, dest="key", metavar="KEY",
        help=f"{help_text} ('-' reads stdin; default ${KEY_ENV})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polymesh-wallet",
        description="Utilities for interacting with the Polymesh blockchain",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("send", help="send POLYX between accounts")
    _add_key(p, "32-byte hex private key of the signing account")
    p.add_argument("-m", "--mnemonic", help="BIP39 mnemonic of the signing account")
    p.add_argument("-a", "--amount", required=True, help="amount to transfer in POLYX")
    p.add_argument("-d", "--destination", required=True, help="SS58 address of the recipient")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_send)

    p = sub.add_parser(
        "sign", help="sign a hex payload; prints the 65-byte sr25519 multi-signature"
    )
    _add_key(p, "32-byte hex private key of the signing account")
    p.add_argument("-p", "--payload", required=True, help="payload bytes as hex")
    p.set_defaults(handler=_cmd_sign)

    p = sub.add_parser("verify", help="verify a signature against an address and payload")
    p.add_argument("-a", "--address", required=True, help="SS58 address of the signer")
    p.add_argument("-p", "--payload", required=True, help="payload bytes as hex")
    p.add_argument("-s", "--signature", required=True, help="signature bytes as hex")
    p.set_defaults(handler=_cmd_verify)

    p = sub.add_parser("address", help="print the SS58 address of a private key or mnemonic")
    p.add_argument("key", nargs="?", help="32-byte hex private key")
    p.add_argument("-m", "--mnemonic", help="use a BIP39 mnemonic instead of a private key")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_address)

    p = sub.add_parser("balance", help="print an account's balance in μPOLYX")
    p.add_argument("address", help="SS58 address")
    p.add_argument("-s", "--staked", action="store_true", help="print the staked balance")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_balance)

    secondary = sub.add_parser("secondary", help="add and remove secondary keys")
    secondary_sub = secondary.add_subparsers(dest="secondary_command", required=True)

    p = secondary_sub.add_parser("add", help="add a secondary key (signed by the primary key)")
    p.add_argument("-m", "--mnemonic", help=f"mnemonic of the primary key (default ${MNEMONIC_ENV})")
    p.add_argument(
        "-s", "--secondary", "-w", "--who", dest="secondary_key",
        help=f"32-byte hex private key of the secondary (default ${SECONDARY_KEY_ENV})",
    )
    p.add_argument(
        "-e", "--expires", dest="expires_after", type=int, required=True,
        help="seconds for which the secondary's consent stays valid",
    )
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_secondary_add)

    p = secondary_sub.add_parser("remove", help="remove a secondary key (signed by the primary key)")
    p.add_argument("-m", "--mnemonic", help=f"mnemonic of the primary key (default ${MNEMONIC_ENV})")
    p.add_argument("-w", "--who", "-s", "--secondary", dest="who", required=True,
                   help="SS58 address of the secondary key")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_secondary_remove)

    staking = sub.add_parser("staking", help="staking utilities")
    staking_sub = staking.add_subparsers(dest="staking_command", required=True)

    p = staking_sub.add_parser("validators", help="list current validator addresses")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_validators)

    p = staking_sub.add_parser("nominate", help="nominate validators as a controller")
    _add_key(p, "32-byte hex private key of the controller", "--controller")
    p.add_argument("-v", "--validators", "--operators", nargs="+", required=True,
                   help="SS58 addresses of up to 24 validators")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_nominate)

    p = staking_sub.add_parser("bond", help="bond part of a stash's balance")
    _add_key(p, "32-byte hex private key of the stash", "--stash")
    p.add_argument("-c", "--controller", required=True, help="SS58 address of the controller")
    p.add_argument("-v", "--value", "--amount", required=True, help="amount in POLYX")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_bond)

    p = staking_sub.add_parser("unbond", help="unbond an amount as a controller")
    _add_key(p, "32-byte hex private key of the controller", "--controller")
    p.add_argument("-v", "--value", "--amount", required=True, help="amount in POLYX")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_unbond)

    p = staking_sub.add_parser("extra", help="bond an extra amount as a stash")
    _add_key(p, "32-byte hex private key of the stash", "--stash")
    p.add_argument("-v", "--value", "--amount", required=True, help="amount in POLYX")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_bond_extra)

    p = staking_sub.add_parser("withdraw", help="withdraw unbonded funds as a controller")
    _add_key(p, "32-byte hex private key of the controller")
    _add_mainnet(p)
    p.set_defaults(handler=_cmd_withdraw)

    return parser


def _run(handler: Callable[[argparse.Namespace], Any], args: argparse.Namespace) -> str:
    result = handler(args)
    if asyncio.iscoroutine(result):
        result = asyncio.run(result)
    return result


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        output = _run(args.handler, args)
    except (WalletError, ValueError) as exc:
        logger.debug("command failed", exc_info=True)
        print(exc, file=sys.stderr)
        return 1
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
