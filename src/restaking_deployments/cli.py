"""Command line entry point for restaking-deployments library.

Usage:
    restaking-deploy --config deploy.config.json --rpc-url http://localhost:8545
    restaking-deploy --config deploy.config.json --simulate --chain-id 17000
    restaking-deploy --config deploy.config.json --rehearse -o deployment.output.json

The run either completes and writes the manifest, or exits with status 1
and writes nothing.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .artifacts import ArtifactStore
from .chain import Chain
from .config import load_config
from .exceptions import ConfigurationError, DeploymentError
from .orchestrator import run_deployment
from .paths import get_default_artifacts_dir, get_default_config_path, get_manifest_path
from .rpc import RpcChain
from .simulated import DEFAULT_CHAIN_ID, DEFAULT_DEPLOYER, SimulatedChain

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restaking-deploy",
        description="Deploy, wire and verify the restaking contracts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", "-c", default=None,
        help="Deployment configuration JSON (default: ./script/configs/deploy.config.json)",
    )
    parser.add_argument(
        "--output", "-o", default=None,
        help="Manifest path (default: ./script/output/<network>/deployment.output.json)",
    )
    parser.add_argument(
        "--rpc-url", default=os.environ.get("RPC_URL"),
        help="JSON-RPC endpoint (default: $RPC_URL)",
    )
    parser.add_argument(
        "--sender", default=os.environ.get("DEPLOYER_ADDRESS"),
        help="Deploying address (default: $DEPLOYER_ADDRESS, else the node's first account)",
    )
    parser.add_argument(
        "--artifacts", default=None,
        help="Compiled contract artifacts directory (default: ./out)",
    )
    parser.add_argument(
        "--simulate", action="store_true",
        help="Deploy to an in-memory simulated chain instead of a node",
    )
    parser.add_argument(
        "--chain-id", type=int, default=None,
        help=f"Chain id of the simulated chain, only with --simulate (default: {DEFAULT_CHAIN_ID})",
    )
    parser.add_argument(
        "--rehearse", action="store_true",
        help="Run the full sequence on a disposable fork of the target first (anvil for a node)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def build_chain(args: argparse.Namespace) -> Chain:
    """
    Select the chain backend from the parsed arguments.

    Raises:
        ConfigurationError: If a node is targeted without an RPC URL
    """
    if args.simulate:
        chain_id = DEFAULT_CHAIN_ID if args.chain_id is None else args.chain_id
        return SimulatedChain(chain_id=chain_id, deployer=args.sender or DEFAULT_DEPLOYER)

    if not args.rpc_url:
        raise ConfigurationError("No RPC endpoint: pass --rpc-url or set RPC_URL (or use --simulate)")

    artifacts_dir = args.artifacts or get_default_artifacts_dir()
    return RpcChain(args.rpc_url, ArtifactStore(artifacts_dir), deployer=args.sender)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.chain_id is not None and not args.simulate:
        parser.error("--chain-id only applies to --simulate; a node reports its own chain id")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config or get_default_config_path())
        chain = build_chain(args)
        output_path = args.output or get_manifest_path(chain_id=chain.chain_id())
        manifest = run_deployment(chain, config, output_path=output_path, rehearse=args.rehearse)
    except DeploymentError as e:
        logger.error("Deployment aborted: %s", e)
        return 1

    logger.info(
        "Deployment complete: %d contracts, %d strategies, manifest at %s",
        len(manifest.addresses),
        len(manifest.strategies),
        output_path,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
