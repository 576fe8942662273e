#!/usr/bin/env python3
"""
cli.py - Command line front end.

Usage:
    cannon build cannonfile.yaml owner=0xabc --preset main --write-deployments ./deployments
    cannon outputs my-protocol:1.0.0 --chain-id 13370
    cannon list my-protocol:1.0.0
    cannon resolve @ipfs <cid>
    cannon lint cannonfile.yaml

Builds run against the in-memory chain; host tooling with a live provider
calls cannon.runtime.service.build() directly.

Exit codes:
    0 - Success
    1 - Build, lookup or validation failure
    2 - Usage error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cannon.config.runtime_config import (
    get_default_preset,
    get_packages_dir,
    get_receipt_timeout,
)
from cannon.runtime.artifacts import HardhatArtifactProvider
from cannon.runtime.chain import DEFAULT_CHAIN_ID, InMemoryChain
from cannon.runtime.errors import CannonError
from cannon.runtime.registry import CannonRegistry, InMemoryRegistryContract
from cannon.runtime.storage import DeploymentStore, outputs_summary
from cannon.spec.loader import DEFAULT_CANNONFILE, lint_definition, load_definition

logger = logging.getLogger(__name__)


def _store(args: argparse.Namespace) -> DeploymentStore:
    return DeploymentStore(args.packages_dir or get_packages_dir())


def cmd_build(args: argparse.Namespace) -> int:
    from cannon.runtime.builder import EngineConfig
    from cannon.runtime.service import build, parse_settings
    from cannon.runtime.steps import BuildRuntime

    cannonfile = Path(args.cannonfile)
    try:
        options = parse_settings(args.settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    definition = load_definition(cannonfile)
    base_dir = cannonfile.resolve().parent
    runtime = BuildRuntime(
        provider=InMemoryChain(chain_id=args.chain_id),
        store=_store(args),
        artifacts=HardhatArtifactProvider(args.artifacts_dir or base_dir / "artifacts"),
        base_dir=base_dir,
        receipt_timeout=get_receipt_timeout(),
    )
    config = EngineConfig(
        persist=not args.dry_run,
        wipe=args.wipe,
        upgrade_from=args.upgrade_from,
        deployments_dir=args.write_deployments,
    )

    outputs = build(definition, options, config, runtime, args.preset or get_default_preset())
    print(json.dumps(outputs_summary(outputs), indent=2))
    if args.dry_run:
        print("Dry run: deployment record not saved", file=sys.stderr)
    else:
        print(
            f"Warning: built against the in-memory chain {args.chain_id}; the addresses saved "
            f"to {runtime.store.packages_dir} are simulated and restart at nonce 0 on every "
            "run (use --dry-run to skip saving)",
            file=sys.stderr,
        )
    return 0


def cmd_outputs(args: argparse.Namespace) -> int:
    from cannon.runtime.service import get_outputs

    preset = args.preset or get_default_preset()
    outputs = get_outputs(_store(args), args.package, args.chain_id, preset)
    if outputs is None:
        print(f"No deployment of {args.package} on chain {args.chain_id} (preset {preset})",
              file=sys.stderr)
        return 1
    print(json.dumps(outputs_summary(outputs), indent=2))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    store = _store(args)
    if not args.package:
        for ref in store.list_packages():
            print(ref)
        return 0
    for chain_id, preset in sorted(store.list(args.package)):
        print(f"{chain_id}\t{preset}")
    return 0


def cmd_resolve(args: argparse.Namespace) -> int:
    chain = InMemoryChain(chain_id=args.chain_id)
    registry = CannonRegistry(InMemoryRegistryContract(chain), chain)
    url = registry.resolve(args.name, args.version, args.variant)
    if url is None:
        print(f"{args.name}:{args.version} is not registered for variant {args.variant}",
              file=sys.stderr)
        return 1
    print(url)
    return 0


def cmd_lint(args: argparse.Namespace) -> int:
    result = lint_definition(Path(args.cannonfile))
    for warning in result["warnings"]:
        print(f"WARNING: {warning}")
    if result["errors"]:
        for error in result["errors"]:
            print(f"ERROR: {error}")
        return 1
    for i, name in enumerate(result["order"], 1):
        print(f"{i:3d}. {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cannon",
        description="Build, inspect and resolve smart contract deployment packages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    common.add_argument("--packages-dir", type=Path, help="Deployment store root")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build", parents=[common], help="Build a cannonfile")
    p.add_argument("cannonfile", nargs="?", default=DEFAULT_CANNONFILE)
    p.add_argument("settings", nargs="*", help="Setting overrides as key=value")
    p.add_argument("--preset", help="Preset label for the build")
    p.add_argument("--chain-id", type=int, default=DEFAULT_CHAIN_ID)
    p.add_argument("--upgrade-from", help="Seed the cache from another package (name:version)")
    p.add_argument("--wipe", action="store_true", help="Do not reuse any previously built artifacts")
    p.add_argument("--dry-run", action="store_true", help="Build without saving the deployment record")
    p.add_argument("--write-deployments", type=Path, help="Directory for <Contract>.json files")
    p.add_argument("--artifacts-dir", type=Path, help="Compiled artifacts (default: ./artifacts)")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("outputs", parents=[common], help="Print stored outputs of a package")
    p.add_argument("package", help="name:version")
    p.add_argument("--chain-id", type=int, default=DEFAULT_CHAIN_ID)
    p.add_argument("--preset")
    p.set_defaults(func=cmd_outputs)

    p = sub.add_parser("list", parents=[common], help="List packages, or a package's deployments")
    p.add_argument("package", nargs="?", help="name:version")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("resolve", parents=[common], help="Resolve a package URL from the registry")
    p.add_argument("name")
    p.add_argument("version")
    p.add_argument("--variant", default=f"{DEFAULT_CHAIN_ID}-main")
    p.add_argument("--chain-id", type=int, default=DEFAULT_CHAIN_ID)
    p.set_defaults(func=cmd_resolve)

    p = sub.add_parser("lint", parents=[common], help="Validate a cannonfile and print its step order")
    p.add_argument("cannonfile", nargs="?", default=DEFAULT_CANNONFILE)
    p.set_defaults(func=cmd_lint)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except CannonError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
