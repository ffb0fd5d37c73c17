"""Data types and dataclasses for restaking-deployments library."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class ComponentKind(Enum):
    """
    How a component is instantiated.

    Value strings define de/serialization law.

    - SINGLETON_PROXY: one transparent proxy in front of one implementation
    - BEACON_TEMPLATED: implementation shared by many instances through a beacon
    - NON_UPGRADEABLE: plain contract, address is the implementation address
    """

    SINGLETON_PROXY = "singleton-proxy"
    BEACON_TEMPLATED = "beacon-templated-proxy"
    NON_UPGRADEABLE = "non-upgradeable"


@dataclass(frozen=True)
class Component:
    """
    A deployed (or about to be deployed) component of the system.

    Immutable: the address registry replaces a component to attach its
    implementation or record parameters.
    """

    # Required fields
    name: str  # Logical name, e.g. "strategy_manager"
    kind: ComponentKind
    contract: str  # Artifact name, e.g. "StrategyManager"

    # Filled in as deployment proceeds
    proxy: Optional[str] = None
    implementation: Optional[str] = None
    # Ordered constructor/initializer parameters, recorded for diagnostics
    parameters: Mapping[str, Any] = field(default_factory=dict)
    external: bool = False  # Pre-existing dependency, never deployed by us

    def __post_init__(self):
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    @property
    def address(self) -> Optional[str]:
        """Address peers refer to: the proxy when there is one."""
        return self.proxy if self.proxy is not None else self.implementation


@dataclass(frozen=True)
class RoleAssignment:
    """Administrative roles resolved to principal addresses."""

    owner: str
    pauser: str
    unpauser: str
    strategy_whitelister: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "owner": self.owner,
            "pauser": self.pauser,
            "unpauser": self.unpauser,
            "strategyWhitelister": self.strategy_whitelister,
        }


@dataclass(frozen=True)
class TokenDescriptor:
    """A token to provision a strategy for."""

    address: Optional[str]  # None means a fresh token is created
    name: str
    symbol: str

    @property
    def needs_token(self) -> bool:
        return self.address is None


@dataclass(frozen=True)
class StrategyBinding:
    """A strategy proxy bound to its underlying token."""

    symbol: str
    token: str
    proxy: str
    implementation: str
    token_created: bool = False


@dataclass(frozen=True)
class Calldata:
    """
    Encoded-on-demand call to a contract method.

    Chains translate this into whatever their wire format requires, so
    initializer calls can be handed to proxies and proxy admins untouched.
    """

    contract: str
    method: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class DeploymentManifest:
    """Final record of a verified deployment. Immutable once created."""

    addresses: Mapping[str, str]
    strategies: Mapping[str, str]
    chain_id: int
    deployment_block: int
    parameters: Mapping[str, str]
    roles: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("addresses", "strategies", "parameters", "roles"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON document layout of the manifest."""
        addresses: Dict[str, Any] = dict(self.addresses)
        addresses["strategies"] = dict(self.strategies)
        return {
            "addresses": addresses,
            "chainInfo": {
                "chainId": self.chain_id,
                "deploymentBlock": self.deployment_block,
            },
            "parameters": dict(self.parameters),
            "roles": dict(self.roles),
        }

    def all_addresses(self) -> Tuple[str, ...]:
        return tuple(self.addresses.values()) + tuple(self.strategies.values())
