#!/usr/bin/env python3
"""
Command-line front end.

Usage:
    # Print the generated contract source
    token-forge generate --name "Test Token" --symbol TTK --decimals 18

    # Compile and write ABI / bytecode JSON next to each other
    token-forge compile --symbol TTK --name "Test Token" --out build/

    # Generate, compile, deploy and record (needs TOKEN_FORGE_PRIVATE_KEY)
    token-forge deploy --name "Test Token" --symbol TTK --decimals 18

    # Owner functions on a deployed token
    token-forge manage 0xToken... pause
    token-forge manage 0xToken... mint 0xRecipient... 500

    # Read-only views
    token-forge status 0xToken...
    token-forge list 0xWallet...

    # HTTP API
    token-forge serve --port 5000
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import load_settings, setup_logging
from .contract_template import TokenContractSpec
from .deployer import DeploymentOrchestrator, DeploymentOutcome
from .errors import ChainError, TokenForgeError
from .local_compiler import compile_contract

logger = logging.getLogger(__name__)

MANAGE_ACTIONS = {
    "pause": 0,
    "unpause": 0,
    "blacklist": 1,
    "unblacklist": 1,
    "mint": 2,
    "burn": 1,
    "transfer-ownership": 1,
    "renounce-ownership": 0,
}


def _spec_from_args(args) -> TokenContractSpec:
    return TokenContractSpec.from_raw(args.name, args.symbol, args.decimals)


def _registry(settings):
    if settings.registry_url:
        from .clients import RegistryClient
        return RegistryClient(settings.registry_url)
    from .registry import DeploymentRegistry
    return DeploymentRegistry(settings.db_path)


def cmd_generate(args, settings) -> int:
    print(_spec_from_args(args).generate(), end="")
    return 0


def cmd_compile(args, settings) -> int:
    spec = _spec_from_args(args)
    contract, warnings = compile_contract(
        spec.generate(), spec.contract_name,
        solc_version=settings.solc_version, optimizer_runs=settings.optimizer_runs,
    )
    for warning in warnings:
        logger.warning(warning)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    with open(out_dir / f"{spec.symbol}-abi.json", "w") as f:
        json.dump(contract.abi, f, indent=2)
    with open(out_dir / f"{spec.symbol}-bytecode.json", "w") as f:
        json.dump({"bytecode": contract.bytecode}, f, indent=2)
    logger.info("Wrote ABI and bytecode for %s to %s", spec.symbol, out_dir)
    return 0


def cmd_deploy(args, settings) -> int:
    from .wallet import Web3Wallet

    compiler = None
    if settings.compile_url:
        from .clients import RemoteCompiler
        compiler = RemoteCompiler(settings.compile_url).compile

    orchestrator = DeploymentOrchestrator(
        Web3Wallet.from_settings(settings),
        _registry(settings),
        compiler=compiler,
        solc_version=settings.solc_version,
        optimizer_runs=settings.optimizer_runs,
    )
    result = orchestrator.run(args.name, args.symbol, args.decimals)
    print(json.dumps(result.to_dict(), indent=2))

    if result.outcome is DeploymentOutcome.ORPHANED:
        logger.error(
            "Token is live at %s but NOT recorded. Record it manually.",
            result.contract_address,
        )
        return 3
    return 0 if result.success else 1


def cmd_manage(args, settings) -> int:
    from .token_manager import TokenManager
    from .wallet import Web3Wallet

    expected = MANAGE_ACTIONS[args.action]
    if len(args.params) != expected:
        logger.error("%s takes %d argument(s), got %d", args.action, expected, len(args.params))
        return 2

    manager = TokenManager(Web3Wallet.from_settings(settings), args.contract)
    method = getattr(manager, args.action.replace("-", "_"))
    pending = method(*args.params)
    print(json.dumps({
        "action": args.action,
        "txHash": pending.tx_hash,
        "status": pending.status.value,
    }, indent=2))
    return 0


def cmd_status(args, settings) -> int:
    from .token_manager import TokenManager
    from .wallet import Web3Wallet

    manager = TokenManager(Web3Wallet.from_settings(settings), args.contract)
    print(json.dumps(manager.status(), indent=2))
    return 0


def cmd_list(args, settings) -> int:
    records = _registry(settings).list_by_wallet(args.wallet)
    print(json.dumps([r.to_dict() for r in records], indent=2))
    return 0


def cmd_serve(args, settings) -> int:
    from .api import create_app

    app = create_app(settings)
    app.run(host=args.host, port=args.port, debug=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="token-forge",
        description="Generate, compile, deploy and manage owner-controlled ERC-20 tokens.",
    )
    parser.add_argument("--settings", default=None, help="Path to settings YAML")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def token_args(p):
        p.add_argument("--name", required=True, help="Token display name")
        p.add_argument("--symbol", required=True, help="Token symbol / contract name")
        p.add_argument("--decimals", default="18", help="Decimals, 0-18 (default: 18)")

    p = sub.add_parser("generate", help="Print generated contract source")
    token_args(p)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("compile", help="Compile generated source to ABI + bytecode")
    token_args(p)
    p.add_argument("--out", default="build", help="Output directory")
    p.set_defaults(func=cmd_compile)

    p = sub.add_parser("deploy", help="Generate, compile, deploy and record a token")
    token_args(p)
    p.set_defaults(func=cmd_deploy)

    p = sub.add_parser("manage", help="Call an owner function on a deployed token")
    p.add_argument("contract", help="Token contract address")
    p.add_argument("action", choices=sorted(MANAGE_ACTIONS))
    p.add_argument("params", nargs="*", help="Action arguments (addresses, whole-token amounts)")
    p.set_defaults(func=cmd_manage)

    p = sub.add_parser("status", help="Show a deployed token's state")
    p.add_argument("contract", help="Token contract address")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("list", help="List tokens deployed by a wallet")
    p.add_argument("wallet", help="Wallet address")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=5000)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    settings = load_settings(args.settings)

    try:
        return args.func(args, settings)
    except ChainError as e:
        logger.error("Transaction failed: %s", e)
        if e.revert is not None:
            logger.error("Contract rejected the call: %s", type(e.revert).__name__)
        return 1
    except TokenForgeError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
