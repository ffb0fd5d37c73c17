"""Static component graph for restaking-deployments library."""

from dataclasses import dataclass
from typing import Tuple

from .constants import (
    DELAYED_WITHDRAWAL_ROUTER,
    DELEGATION_MANAGER,
    EIGEN_POD,
    EIGEN_POD_MANAGER,
    EMPTY_CONTRACT,
    PAUSER_REGISTRY,
    PROXY_ADMIN,
    SLASHER,
    STRATEGY_BASE,
    STRATEGY_MANAGER,
    UPGRADEABLE_BEACON,
)
from .types import ComponentKind


@dataclass(frozen=True)
class ComponentSpec:
    """
    Static description of one node in the deployment graph.

    peers lists (getter, component) pairs in constructor order: the getter is
    the read-only method that returns the peer address once deployed.
    """

    name: str
    contract: str
    kind: ComponentKind
    peers: Tuple[Tuple[str, str], ...] = ()
    manifest_key: str = ""
    owned: bool = False
    pausable: bool = False


# Administrative contracts deployed directly, ahead of the proxies
PROXY_ADMIN_SPEC = ComponentSpec(
    "proxy_admin", PROXY_ADMIN, ComponentKind.NON_UPGRADEABLE,
    manifest_key="proxyAdmin", owned=True,
)
PAUSER_REGISTRY_SPEC = ComponentSpec(
    "pauser_registry", PAUSER_REGISTRY, ComponentKind.NON_UPGRADEABLE,
    manifest_key="pauserRegistry",
)
PLACEHOLDER_SPEC = ComponentSpec(
    "placeholder", EMPTY_CONTRACT, ComponentKind.NON_UPGRADEABLE,
    manifest_key="emptyContract",
)

# Mutually-referential singletons, each behind a transparent proxy
DELEGATION_MANAGER_SPEC = ComponentSpec(
    "delegation_manager", DELEGATION_MANAGER, ComponentKind.SINGLETON_PROXY,
    peers=(("strategyManager", "strategy_manager"), ("slasher", "slasher")),
    manifest_key="delegationManager", owned=True, pausable=True,
)
STRATEGY_MANAGER_SPEC = ComponentSpec(
    "strategy_manager", STRATEGY_MANAGER, ComponentKind.SINGLETON_PROXY,
    peers=(
        ("delegation", "delegation_manager"),
        ("eigenPodManager", "pod_manager"),
        ("slasher", "slasher"),
    ),
    manifest_key="strategyManager", owned=True, pausable=True,
)
SLASHER_SPEC = ComponentSpec(
    "slasher", SLASHER, ComponentKind.SINGLETON_PROXY,
    peers=(("strategyManager", "strategy_manager"), ("delegation", "delegation_manager")),
    manifest_key="slasher", owned=True, pausable=True,
)
POD_MANAGER_SPEC = ComponentSpec(
    "pod_manager", EIGEN_POD_MANAGER, ComponentKind.SINGLETON_PROXY,
    peers=(
        ("ethPOS", "deposit_contract"),
        ("eigenPodBeacon", "pod_beacon"),
        ("strategyManager", "strategy_manager"),
        ("slasher", "slasher"),
    ),
    manifest_key="eigenPodManager", owned=True, pausable=True,
)
WITHDRAWAL_ROUTER_SPEC = ComponentSpec(
    "withdrawal_router", DELAYED_WITHDRAWAL_ROUTER, ComponentKind.SINGLETON_PROXY,
    peers=(("eigenPodManager", "pod_manager"),),
    manifest_key="delayedWithdrawalRouter", owned=True, pausable=True,
)

# Beacon-templated pods: shared implementation plus the beacon pointing at it
POD_SPEC = ComponentSpec(
    "pod", EIGEN_POD, ComponentKind.BEACON_TEMPLATED,
    peers=(
        ("ethPOS", "deposit_contract"),
        ("delayedWithdrawalRouter", "withdrawal_router"),
        ("eigenPodManager", "pod_manager"),
    ),
    manifest_key="eigenPodImplementation",
)
POD_BEACON_SPEC = ComponentSpec(
    "pod_beacon", UPGRADEABLE_BEACON, ComponentKind.NON_UPGRADEABLE,
    manifest_key="eigenPodBeacon", owned=True,
)

# Shared implementation behind every per-token strategy proxy
STRATEGY_SPEC = ComponentSpec(
    "strategy", STRATEGY_BASE, ComponentKind.NON_UPGRADEABLE,
    peers=(("strategyManager", "strategy_manager"),),
    manifest_key="baseStrategyImplementation",
)

DEPOSIT_CONTRACT = "deposit_contract"

ADMIN_SPECS = (PROXY_ADMIN_SPEC, PAUSER_REGISTRY_SPEC, PLACEHOLDER_SPEC)

# Initialization order in phase 3 matches this order
PROXIED_SPECS = (
    DELEGATION_MANAGER_SPEC,
    STRATEGY_MANAGER_SPEC,
    SLASHER_SPEC,
    POD_MANAGER_SPEC,
    WITHDRAWAL_ROUTER_SPEC,
)

ALL_SPECS = ADMIN_SPECS + PROXIED_SPECS + (POD_SPEC, POD_BEACON_SPEC, STRATEGY_SPEC)

SPECS_BY_NAME = {spec.name: spec for spec in ALL_SPECS}


def get_spec(name: str) -> ComponentSpec:
    """Look up the static description of a component by logical name."""
    return SPECS_BY_NAME[name]


def peer_names(spec: ComponentSpec) -> Tuple[str, ...]:
    """Components whose addresses this component's constructor takes."""
    return tuple(peer for _, peer in spec.peers)
