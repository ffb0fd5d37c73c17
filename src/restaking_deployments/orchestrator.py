"""Main API for restaking-deployments library."""

import logging
from pathlib import Path
from typing import Optional, Union

from .chain import Chain
from .config import DeploymentConfig, resolve_environment
from .context import DeploymentContext
from .exceptions import ConfigurationError
from .implementations import provision_implementations
from .manifest import build_manifest, write_manifest
from .placeholders import provision_placeholders
from .types import DeploymentManifest
from .verification import verify_deployment
from .wiring import run_wiring

logger = logging.getLogger(__name__)


def prepare_context(chain: Chain, config: DeploymentConfig) -> DeploymentContext:
    """
    Validate the configuration against the target chain.

    Everything here is read-only, so configuration errors surface before
    the first transaction.

    Args:
        chain: Target chain
        config: Parsed deployment configuration

    Returns:
        Empty deployment context for phase 1

    Raises:
        ConfigurationError: If the network needs a deposit contract override that
            is missing, or a principal is the deploying address
    """
    environment = resolve_environment(chain.chain_id(), config)

    deployer = chain.deployer
    for label, principal in config.principals().items():
        if principal.lower() == deployer.lower():
            raise ConfigurationError(
                f"{label} {principal} is the deploying address; roles must go to a separate principal"
            )

    logger.info(
        "Deploying to %s (chain id %d) from %s",
        environment.chain_name,
        environment.chain_id,
        deployer,
    )
    return DeploymentContext(chain=chain, config=config, environment=environment)


def run_phases(ctx: DeploymentContext) -> DeploymentManifest:
    """
    Run phases 1 to 4 and build the manifest.

    Verification only starts once every write has landed. A failure there
    raises VerificationError and leaves the deployed contracts in place.
    """
    ctx.deployment_block = ctx.chain.block_number()

    logger.info("Phase 1: provisioning proxies behind the placeholder")
    provision_placeholders(ctx)
    logger.info("Phase 2: deploying implementations")
    provision_implementations(ctx)
    logger.info("Phase 3: upgrading, initializing and handing over ownership")
    run_wiring(ctx)

    ctx.registry.freeze()
    logger.info("Phase 4: verifying deployment")
    verify_deployment(ctx)

    return build_manifest(ctx)


def rehearse_deployment(chain: Chain, config: DeploymentConfig) -> DeploymentManifest:
    """
    Run the whole sequence on a disposable fork of the target first.

    A node-backed target is forked with anvil, so the rehearsal sends the
    same bytecode through the same ABIs from the same deployer. The fork is
    discarded afterwards whether or not the rehearsal verified.
    """
    with chain.fork() as rehearsal:
        logger.warning("Rehearsing deployment on a fork of chain id %d", rehearsal.chain_id())
        manifest = run_phases(prepare_context(rehearsal, config))
        logger.info(
            "Rehearsal verified %d contracts and %d strategies",
            len(manifest.addresses),
            len(manifest.strategies),
        )
    return manifest


def run_deployment(
    chain: Chain,
    config: DeploymentConfig,
    output_path: Optional[Union[Path, str]] = None,
    rehearse: bool = False,
) -> DeploymentManifest:
    """
    Deploy, wire and verify the full system, then emit the manifest.

    Args:
        chain: Target chain
        config: Parsed deployment configuration
        output_path: Where to write the manifest (not written if None)
        rehearse: Run the sequence on a fork of the target before touching it

    Returns:
        Manifest of the verified deployment

    Raises:
        ConfigurationError: Before any write, if the configuration is unusable
        TransactionError: If a deployment or transaction fails
        VerificationError: If the deployed state does not match the configuration
    """
    ctx = prepare_context(chain, config)

    if rehearse:
        rehearse_deployment(chain, config)

    manifest = run_phases(ctx)

    if output_path is not None:
        write_manifest(manifest, output_path)

    return manifest
