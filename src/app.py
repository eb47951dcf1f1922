"""
Tickfy Validator Setup

Command-line front end for provisioning and running a Tickfy validator node:
wallets, node installation, cosmovisor, the node process and its logs.

Entry point for the application.
"""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from errors import ValidatorSetupError, ValidationError
from networks import format_address
from services import ServiceContext
from services.logging import configure_logging, node_logger
from utils import load_server_config

PASSWORD_ENV = "TICKFY_WALLET_PASSWORD"


# ============================================
# Prompts
# ============================================

def _read_password(args: argparse.Namespace, confirm: bool = False) -> str:
    """Password from --password, the environment, or an interactive prompt."""
    if args.password:
        return args.password
    env_password = os.environ.get(PASSWORD_ENV)
    if env_password:
        return env_password

    first = getpass.getpass("Wallet password: ")
    if confirm:
        second = getpass.getpass("Confirm wallet password: ")
        if first != second:
            raise ValidationError("Passwords do not match")
    return first


def _print_progress(percent: int) -> None:
    print(f"\r  {percent:3d}%", end="", flush=True)
    if percent >= 100:
        print()


# ============================================
# Commands
# ============================================

def cmd_status(ctx: ServiceContext, args: argparse.Namespace) -> None:
    status = ctx.status.get_status()
    print(f"Wallet:       {status.wallet_address or 'none'}")
    print(f"Installed:    {'yes' if status.is_node_installed else 'no'}")
    print(f"Initialized:  {'yes' if status.is_node_initialized else 'no'}"
          + (f" ({status.moniker})" if status.moniker else ""))
    print(f"Cosmovisor:   {'yes' if status.is_cosmovisor_installed else 'no'}")
    print(f"Running:      {'yes' if status.is_node_running else 'no'}")
    print(f"Validator:    {'yes' if status.is_validator else 'no'}")
    if status.is_node_running:
        print(f"Block:        {status.current_block}")
        print(f"Peers:        {status.peers}")


def cmd_wallets(ctx: ServiceContext, args: argparse.Namespace) -> None:
    wallets, active_id = ctx.vault.list_wallets()
    if not wallets:
        print("No wallets. Create one with 'wallet-create'.")
        return
    for wallet in wallets:
        marker = "*" if wallet.id == active_id else " "
        print(f"{marker} {wallet.id}  {wallet.name:<20} {format_address(wallet.address)}")


def cmd_wallet_create(ctx: ServiceContext, args: argparse.Namespace) -> None:
    password = _read_password(args, confirm=True)
    wallet_id, address, mnemonic = ctx.vault.create_wallet(args.name, password)
    print(f"Created wallet {wallet_id}")
    print(f"Address: {address}")
    print()
    print("Write down your recovery phrase. It will not be shown again:")
    print()
    words = mnemonic.split()
    for i in range(0, len(words), 6):
        print("  " + " ".join(f"{n + 1:2d}. {w:<10}" for n, w in enumerate(words[i:i + 6], start=i)))


def cmd_wallet_import(ctx: ServiceContext, args: argparse.Namespace) -> None:
    mnemonic = args.mnemonic or input("Recovery phrase: ")
    password = _read_password(args, confirm=True)
    wallet_id, address = ctx.vault.import_wallet(args.name, mnemonic, password)
    print(f"Imported wallet {wallet_id}")
    print(f"Address: {address}")


def cmd_wallet_use(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.vault.set_active_wallet(args.wallet_id)
    address, name = ctx.vault.get_active_wallet_info()
    print(f"Active wallet: {name} ({address})")


def cmd_wallet_delete(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.vault.delete_wallet(args.wallet_id)
    print(f"Deleted wallet {args.wallet_id}")


def cmd_balance(ctx: ServiceContext, args: argparse.Namespace) -> None:
    balance = ctx.status.get_balance(args.address)
    print(balance.display)


def cmd_install(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.installer.install_node(progress=_print_progress)
    print(f"Node binary: {ctx.paths.binary}")


def cmd_init(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.installer.init_node(args.moniker)
    print(f"Node home: {ctx.paths.node_home}")


def cmd_cosmovisor(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.installer.install_cosmovisor(progress=_print_progress)
    ctx.installer.setup_cosmovisor_dirs()
    print("Cosmovisor ready; the node will start with auto-upgrades enabled")


def cmd_start(ctx: ServiceContext, args: argparse.Namespace) -> None:
    """Run the node in the foreground, echoing its log until it exits or Ctrl+C."""
    echo = logging.StreamHandler(sys.stdout)
    echo.setFormatter(logging.Formatter('[%(asctime)s] %(message)s', datefmt='%H:%M:%S'))
    node_logger.addHandler(echo)
    node_logger.setLevel(logging.DEBUG)
    node_logger.propagate = False
    try:
        ctx.supervisor.start()
        ctx.supervisor.wait()
    except KeyboardInterrupt:
        print()
        ctx.supervisor.shutdown()
    finally:
        node_logger.removeHandler(echo)


def cmd_logs(ctx: ServiceContext, args: argparse.Namespace) -> None:
    for entry in ctx.logs.recent(args.lines):
        print(entry)


def cmd_create_validator(ctx: ServiceContext, args: argparse.Namespace) -> None:
    password = _read_password(args)
    record = ctx.validator.create_validator(args.moniker, args.commission, args.stake, password)
    print(f"Validator {record.moniker} created with {record.stake} staked")


def cmd_validator(ctx: ServiceContext, args: argparse.Namespace) -> None:
    record = ctx.validator.get_validator_status()
    info = ctx.validator.get_staking_info()
    print(f"Moniker:         {record.moniker}")
    print(f"Commission:      {record.commission}")
    print(f"Total staked:    {info.total_staked}")
    print(f"Self delegation: {info.self_delegation}")
    print(f"Delegations:     {info.delegations}")


def cmd_withdraw_rewards(ctx: ServiceContext, args: argparse.Namespace) -> None:
    ctx.validator.withdraw_rewards(_read_password(args))
    print("Rewards withdrawn")


# ============================================
# Argument parsing
# ============================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tickfy-validator",
        description="Set up and run a Tickfy validator node.",
    )
    parser.add_argument("--data-dir", help="Data directory (default: ~/.tickfy-validator)")
    parser.add_argument("--log-retention", type=int, default=7,
                        help="Days of node logs to keep on disk (0 = memory only)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show setup and node status").set_defaults(func=cmd_status)
    sub.add_parser("wallets", help="List wallets").set_defaults(func=cmd_wallets)

    p = sub.add_parser("wallet-create", help="Create a wallet with a new recovery phrase")
    p.add_argument("--name", default="")
    p.add_argument("--password")
    p.set_defaults(func=cmd_wallet_create)

    p = sub.add_parser("wallet-import", help="Import a wallet from a recovery phrase")
    p.add_argument("--name", default="")
    p.add_argument("--mnemonic")
    p.add_argument("--password")
    p.set_defaults(func=cmd_wallet_import)

    p = sub.add_parser("wallet-use", help="Set the active wallet")
    p.add_argument("wallet_id")
    p.set_defaults(func=cmd_wallet_use)

    p = sub.add_parser("wallet-delete", help="Delete a wallet")
    p.add_argument("wallet_id")
    p.set_defaults(func=cmd_wallet_delete)

    p = sub.add_parser("balance", help="Show a balance (active wallet by default)")
    p.add_argument("address", nargs="?")
    p.set_defaults(func=cmd_balance)

    sub.add_parser("install", help="Download the node binary").set_defaults(func=cmd_install)

    p = sub.add_parser("init", help="Initialize the node home")
    p.add_argument("moniker")
    p.set_defaults(func=cmd_init)

    sub.add_parser("cosmovisor", help="Install cosmovisor and enable auto-upgrades") \
        .set_defaults(func=cmd_cosmovisor)
    sub.add_parser("start", help="Run the node in the foreground").set_defaults(func=cmd_start)

    p = sub.add_parser("logs", help="Show recent node log lines")
    p.add_argument("-n", "--lines", type=int, default=100)
    p.set_defaults(func=cmd_logs)

    p = sub.add_parser("create-validator", help="Register the node as a validator")
    p.add_argument("moniker")
    p.add_argument("--commission", default="0.10")
    p.add_argument("--stake", required=True, help="Self-bond amount")
    p.add_argument("--password")
    p.set_defaults(func=cmd_create_validator)

    sub.add_parser("validator", help="Show the local validator record") \
        .set_defaults(func=cmd_validator)

    p = sub.add_parser("withdraw-rewards", help="Withdraw all staking rewards")
    p.add_argument("--password")
    p.set_defaults(func=cmd_withdraw_rewards)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    # Configure logging before anything else
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = load_server_config(Path(args.data_dir) if args.data_dir else None)
        ctx = ServiceContext(config.data_dir, retention_days=max(args.log_retention, 0))
    except (OSError, ValidatorSetupError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        args.func(ctx, args)
    except ValidatorSetupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        ctx.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
