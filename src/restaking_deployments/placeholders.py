"""Phase 1: proxy shells pointing at an inert placeholder implementation."""

import logging

from .constants import TRANSPARENT_PROXY
from .context import DeploymentContext, naming_component
from .topology import (
    PAUSER_REGISTRY_SPEC,
    PLACEHOLDER_SPEC,
    PROXIED_SPECS,
    PROXY_ADMIN_SPEC,
)

logger = logging.getLogger(__name__)


def deploy_admin_contracts(ctx: DeploymentContext) -> None:
    """
    Deploy the proxy admin, the pauser registry and the placeholder.

    The proxy admin stays owned by the deployer until phase 3 has run its
    upgrades; ownership is handed over at the end of wiring.
    """
    chain, registry, roles = ctx.chain, ctx.registry, ctx.roles

    with naming_component(PROXY_ADMIN_SPEC.name):
        proxy_admin = chain.deploy(PROXY_ADMIN_SPEC.contract)
    registry.register_contract(PROXY_ADMIN_SPEC.name, PROXY_ADMIN_SPEC.contract, proxy_admin)
    logger.info("Deployed %s at %s", PROXY_ADMIN_SPEC.name, proxy_admin)

    with naming_component(PAUSER_REGISTRY_SPEC.name):
        pauser_registry = chain.deploy(PAUSER_REGISTRY_SPEC.contract, roles.pauser, roles.unpauser)
    registry.register_contract(PAUSER_REGISTRY_SPEC.name, PAUSER_REGISTRY_SPEC.contract, pauser_registry)
    registry.record_parameters(
        PAUSER_REGISTRY_SPEC.name, {"pauser": roles.pauser, "unpauser": roles.unpauser}
    )
    logger.info("Deployed %s at %s", PAUSER_REGISTRY_SPEC.name, pauser_registry)

    with naming_component(PLACEHOLDER_SPEC.name):
        placeholder = chain.deploy(PLACEHOLDER_SPEC.contract)
    registry.register_contract(PLACEHOLDER_SPEC.name, PLACEHOLDER_SPEC.contract, placeholder)
    logger.info("Deployed %s at %s", PLACEHOLDER_SPEC.name, placeholder)


def provision_placeholders(ctx: DeploymentContext) -> None:
    """
    Give every mutually-referential component a stable proxy address.

    Each proxy starts out delegating to the placeholder, so the real
    implementations deployed in phase 2 can take each other's proxy
    addresses as constructor arguments. Only proxy addresses are recorded;
    implementation addresses stay unset until phase 2.
    """
    if not ctx.registry.has(PROXY_ADMIN_SPEC.name):
        deploy_admin_contracts(ctx)

    placeholder = ctx.registry.address(PLACEHOLDER_SPEC.name)
    proxy_admin = ctx.registry.address(PROXY_ADMIN_SPEC.name)

    for spec in PROXIED_SPECS:
        with naming_component(spec.name):
            proxy = ctx.chain.deploy(TRANSPARENT_PROXY, placeholder, proxy_admin, b"")
        ctx.registry.register_proxy(spec.name, spec.contract, proxy)
        logger.info("Deployed %s proxy at %s (placeholder)", spec.name, proxy)
