"""
restaking-deployments: staged deployment and verification of the restaking contracts
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("restaking-deployments")
except PackageNotFoundError:
    __version__ = None

from .config import DeploymentConfig, Environment, NetworkKind, load_config, parse_config
from .context import DeploymentContext
from .exceptions import (
    AlreadyInitializedError,
    ArtifactNotFoundError,
    ConfigurationError,
    DeploymentError,
    ManifestError,
    RegistryError,
    RpcError,
    TransactionError,
    VerificationError,
)
from .manifest import load_manifest, write_manifest
from .orchestrator import prepare_context, rehearse_deployment, run_deployment
from .registry import AddressRegistry
from .rpc import RpcChain
from .simulated import SimulatedChain
from .types import (
    Component,
    ComponentKind,
    DeploymentManifest,
    RoleAssignment,
    StrategyBinding,
    TokenDescriptor,
)
from .verification import InvariantVerifier

__all__ = [
    "run_deployment",
    "rehearse_deployment",
    "prepare_context",
    "load_config",
    "parse_config",
    "load_manifest",
    "write_manifest",
    "DeploymentConfig",
    "DeploymentContext",
    "DeploymentManifest",
    "Environment",
    "NetworkKind",
    "AddressRegistry",
    "InvariantVerifier",
    "SimulatedChain",
    "RpcChain",
    "Component",
    "ComponentKind",
    "RoleAssignment",
    "StrategyBinding",
    "TokenDescriptor",
    "DeploymentError",
    "ConfigurationError",
    "ArtifactNotFoundError",
    "RegistryError",
    "RpcError",
    "TransactionError",
    "AlreadyInitializedError",
    "VerificationError",
    "ManifestError",
]
