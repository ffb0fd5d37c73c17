"""Phase 3: repoint proxies at their implementations and initialize them."""

import logging
from typing import Any, Callable, Dict, Tuple

from .constants import FIXED_SUPPLY_TOKEN, PROXY_ADMIN, TRANSPARENT_PROXY, ZERO_ADDRESS
from .context import DeploymentContext, naming_component
from .exceptions import AlreadyInitializedError
from .topology import (
    DELEGATION_MANAGER_SPEC,
    PAUSER_REGISTRY_SPEC,
    POD_BEACON_SPEC,
    POD_MANAGER_SPEC,
    PROXIED_SPECS,
    PROXY_ADMIN_SPEC,
    SLASHER_SPEC,
    STRATEGY_MANAGER_SPEC,
    STRATEGY_SPEC,
    WITHDRAWAL_ROUTER_SPEC,
)
from .types import StrategyBinding, TokenDescriptor

logger = logging.getLogger(__name__)


def _delegation_manager_args(ctx: DeploymentContext) -> Tuple[Any, ...]:
    return (
        ctx.roles.owner,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
        ctx.config.paused_status[DELEGATION_MANAGER_SPEC.name],
    )


def _strategy_manager_args(ctx: DeploymentContext) -> Tuple[Any, ...]:
    return (
        ctx.roles.owner,
        ctx.roles.strategy_whitelister,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
        ctx.config.paused_status[STRATEGY_MANAGER_SPEC.name],
        ctx.config.withdrawal_delay_blocks[STRATEGY_MANAGER_SPEC.name],
    )


def _slasher_args(ctx: DeploymentContext) -> Tuple[Any, ...]:
    return (
        ctx.roles.owner,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
        ctx.config.paused_status[SLASHER_SPEC.name],
    )


def _pod_manager_args(ctx: DeploymentContext) -> Tuple[Any, ...]:
    # No beacon-chain oracle at launch
    return (
        ZERO_ADDRESS,
        ctx.roles.owner,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
        ctx.config.paused_status[POD_MANAGER_SPEC.name],
    )


def _withdrawal_router_args(ctx: DeploymentContext) -> Tuple[Any, ...]:
    return (
        ctx.roles.owner,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
        ctx.config.paused_status[WITHDRAWAL_ROUTER_SPEC.name],
        ctx.config.withdrawal_delay_blocks[WITHDRAWAL_ROUTER_SPEC.name],
    )


INITIALIZER_ARGS: Dict[str, Callable[[DeploymentContext], Tuple[Any, ...]]] = {
    DELEGATION_MANAGER_SPEC.name: _delegation_manager_args,
    STRATEGY_MANAGER_SPEC.name: _strategy_manager_args,
    SLASHER_SPEC.name: _slasher_args,
    POD_MANAGER_SPEC.name: _pod_manager_args,
    WITHDRAWAL_ROUTER_SPEC.name: _withdrawal_router_args,
}


def initialize_component(ctx: DeploymentContext, name: str) -> None:
    """
    Upgrade one proxy to its implementation and initialize it atomically.

    Both happen in a single upgradeAndCall transaction through the proxy
    admin, so a proxy never points at real code while uninitialized.

    Raises:
        AlreadyInitializedError: If the proxy was already initialized
        TransactionError: If the upgrade or the initializer reverts
    """
    component = ctx.registry.get(name)
    args = INITIALIZER_ARGS[name](ctx)
    data = ctx.chain.encode_call(component.contract, "initialize", *args)

    with naming_component(name):
        try:
            ctx.chain.transact(
                ctx.registry.address(PROXY_ADMIN_SPEC.name),
                PROXY_ADMIN,
                "upgradeAndCall",
                component.proxy,
                component.implementation,
                data,
            )
        except AlreadyInitializedError:
            logger.error("%s is already initialized; refusing to continue", name)
            raise

    ctx.registry.record_parameters(name, {"initialize": args})
    logger.info("Upgraded %s proxy to %s and initialized", name, component.implementation)


def wire_components(ctx: DeploymentContext) -> None:
    """Repoint every phase 1 proxy at its real implementation."""
    for spec in PROXIED_SPECS:
        initialize_component(ctx, spec.name)


def provision_strategy(ctx: DeploymentContext, token: TokenDescriptor) -> StrategyBinding:
    """
    Create one strategy proxy, and its token when none is supplied.

    Strategies only depend on the already-initialized strategy manager, so
    the proxy is created pointing straight at the shared implementation with
    the initializer passed to its constructor.
    """
    token_address = token.address
    if token.needs_token:
        with naming_component(f"{token.symbol} token"):
            token_address = ctx.chain.deploy(
                FIXED_SUPPLY_TOKEN,
                token.name,
                token.symbol,
                ctx.config.token_initial_supply,
                ctx.chain.deployer,
            )
        logger.info("Deployed token %s (%s) at %s", token.symbol, token.name, token_address)

    implementation = ctx.registry.address(STRATEGY_SPEC.name)
    data = ctx.chain.encode_call(
        STRATEGY_SPEC.contract,
        "initialize",
        token_address,
        ctx.registry.address(PAUSER_REGISTRY_SPEC.name),
    )
    with naming_component(f"{token.symbol} strategy"):
        proxy = ctx.chain.deploy(
            TRANSPARENT_PROXY,
            implementation,
            ctx.registry.address(PROXY_ADMIN_SPEC.name),
            data,
        )
    binding = ctx.registry.add_strategy(
        StrategyBinding(
            symbol=token.symbol,
            token=token_address,
            proxy=proxy,
            implementation=implementation,
            token_created=token.needs_token,
        )
    )
    logger.info("Deployed %s strategy at %s", token.symbol, proxy)
    return binding


def provision_strategies(ctx: DeploymentContext) -> None:
    for token in ctx.config.tokens:
        provision_strategy(ctx, token)


def transfer_ownership(ctx: DeploymentContext) -> None:
    """Hand the deployer-owned admin contracts over to the owner principal."""
    owner = ctx.roles.owner
    for spec in (PROXY_ADMIN_SPEC, POD_BEACON_SPEC):
        with naming_component(spec.name):
            ctx.chain.transact(ctx.registry.address(spec.name), spec.contract, "transferOwnership", owner)
        logger.info("Transferred ownership of %s to %s", spec.name, owner)


def run_wiring(ctx: DeploymentContext) -> None:
    """
    Run phase 3: initialize singletons, create strategies, hand over ownership.

    Ownership of the proxy admin moves last because strategy creation and
    singleton upgrades still need the deployer as its owner.
    """
    wire_components(ctx)
    provision_strategies(ctx)
    transfer_ownership(ctx)
