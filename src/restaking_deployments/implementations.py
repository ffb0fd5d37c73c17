"""Phase 2: real implementation contracts wired to their peers' proxies."""

import logging
from typing import Any, List

from .config import NetworkKind
from .constants import ETH_POS_DEPOSIT
from .context import DeploymentContext, naming_component
from .exceptions import RegistryError
from .topology import (
    DEPOSIT_CONTRACT,
    POD_BEACON_SPEC,
    POD_SPEC,
    PROXIED_SPECS,
    STRATEGY_SPEC,
    ComponentSpec,
)
from .types import ComponentKind

logger = logging.getLogger(__name__)


def register_deposit_contract(ctx: DeploymentContext) -> str:
    """
    Record the beacon-chain deposit contract selected by the environment.

    It is an external dependency: on production the well-known contract is
    used verbatim, elsewhere the configured stand-in address.
    """
    environment = ctx.environment
    if environment.kind is NetworkKind.PRODUCTION:
        logger.warning(
            "Deploying to %s: using deposit contract %s",
            environment.chain_name,
            environment.deposit_contract,
        )
    else:
        logger.info(
            "Using configured deposit contract %s on %s",
            environment.deposit_contract,
            environment.chain_name,
        )

    ctx.registry.register_contract(
        DEPOSIT_CONTRACT, ETH_POS_DEPOSIT, environment.deposit_contract, external=True
    )
    return environment.deposit_contract


def constructor_args(ctx: DeploymentContext, spec: ComponentSpec) -> List[Any]:
    """
    Peer addresses for a component's constructor, in declaration order.

    Raises:
        RegistryError: If a peer has no address yet (phase ordering bug)
    """
    args: List[Any] = []
    for getter, peer in spec.peers:
        try:
            args.append(ctx.registry.address(peer))
        except RegistryError as e:
            raise RegistryError(
                f"Cannot construct {spec.name}: peer '{peer}' ({getter}) has no address yet"
            ) from e
    return args


def _record_parameters(ctx: DeploymentContext, name: str, spec: ComponentSpec, args: List[Any]) -> None:
    ctx.registry.record_parameters(name, dict(zip((getter for getter, _ in spec.peers), args)))


def deploy_pod_implementation(ctx: DeploymentContext) -> None:
    """Deploy the shared pod implementation and the beacon pointing at it."""
    args = constructor_args(ctx, POD_SPEC) + [ctx.config.required_balance_wei]
    with naming_component(POD_SPEC.name):
        implementation = ctx.chain.deploy(POD_SPEC.contract, *args)
    ctx.registry.register_contract(
        POD_SPEC.name, POD_SPEC.contract, implementation, kind=ComponentKind.BEACON_TEMPLATED
    )
    _record_parameters(ctx, POD_SPEC.name, POD_SPEC, args)
    ctx.registry.record_parameters(
        POD_SPEC.name, {"REQUIRED_BALANCE_WEI": ctx.config.required_balance_wei}
    )
    logger.info("Deployed %s implementation at %s", POD_SPEC.name, implementation)

    with naming_component(POD_BEACON_SPEC.name):
        beacon = ctx.chain.deploy(POD_BEACON_SPEC.contract, implementation)
    ctx.registry.register_contract(POD_BEACON_SPEC.name, POD_BEACON_SPEC.contract, beacon)
    ctx.registry.record_parameters(POD_BEACON_SPEC.name, {"implementation": implementation})
    logger.info("Deployed %s at %s", POD_BEACON_SPEC.name, beacon)


def deploy_singleton_implementations(ctx: DeploymentContext) -> None:
    """Deploy the implementation behind each phase 1 proxy and attach it."""
    for spec in PROXIED_SPECS:
        args = constructor_args(ctx, spec)
        with naming_component(spec.name):
            implementation = ctx.chain.deploy(spec.contract, *args)
        ctx.registry.attach_implementation(spec.name, implementation)
        _record_parameters(ctx, spec.name, spec, args)
        logger.info("Deployed %s implementation at %s", spec.name, implementation)


def deploy_strategy_implementation(ctx: DeploymentContext) -> None:
    """Deploy the implementation shared by every strategy proxy."""
    args = constructor_args(ctx, STRATEGY_SPEC)
    with naming_component(STRATEGY_SPEC.name):
        implementation = ctx.chain.deploy(STRATEGY_SPEC.contract, *args)
    ctx.registry.register_contract(STRATEGY_SPEC.name, STRATEGY_SPEC.contract, implementation)
    _record_parameters(ctx, STRATEGY_SPEC.name, STRATEGY_SPEC, args)
    logger.info("Deployed %s implementation at %s", STRATEGY_SPEC.name, implementation)


def provision_implementations(ctx: DeploymentContext) -> None:
    """
    Deploy every real implementation, passing peer proxy addresses as immutables.

    Requires phase 1 to have registered all proxies. The pod implementation
    and its beacon come first because the pod manager takes the beacon address.
    """
    if not ctx.registry.has(DEPOSIT_CONTRACT):
        register_deposit_contract(ctx)

    deploy_pod_implementation(ctx)
    deploy_singleton_implementations(ctx)
    deploy_strategy_implementation(ctx)
