"""Shared pytest fixtures for restaking-deployments tests."""

import json
from pathlib import Path
from typing import Any, Dict

import pytest
from eth_utils import to_checksum_address

from restaking_deployments.config import DeploymentConfig, parse_config
from restaking_deployments.context import DeploymentContext
from restaking_deployments.implementations import provision_implementations
from restaking_deployments.orchestrator import prepare_context
from restaking_deployments.placeholders import provision_placeholders
from restaking_deployments.simulated import SimulatedChain
from restaking_deployments.wiring import run_wiring


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def community() -> str:
    """Community multisig of the sample configuration."""
    return to_checksum_address("0x" + "aa" * 20)


@pytest.fixture
def team() -> str:
    """Team multisig of the sample configuration."""
    return to_checksum_address("0x" + "bb" * 20)


@pytest.fixture
def sample_config_json(fixtures_dir: Path) -> Dict[str, Any]:
    """Load and return the sample deploy.config.json fixture."""
    with open(fixtures_dir / "deploy.config.json") as f:
        return json.load(f)


@pytest.fixture
def temp_config_file(tmp_path: Path, sample_config_json: Dict[str, Any]) -> Path:
    """Write the sample configuration to a temporary file."""
    config_path = tmp_path / "deploy.config.json"
    with open(config_path, "w") as f:
        json.dump(sample_config_json, f, indent=2)
    return config_path


@pytest.fixture
def config(sample_config_json: Dict[str, Any]) -> DeploymentConfig:
    """Parsed sample configuration."""
    return parse_config(sample_config_json)


@pytest.fixture
def chain() -> SimulatedChain:
    """Fresh simulated chain with the default devnet chain id."""
    return SimulatedChain()


@pytest.fixture
def context(chain: SimulatedChain, config: DeploymentConfig) -> DeploymentContext:
    """Empty context, ready for phase 1."""
    return prepare_context(chain, config)


@pytest.fixture
def placeholder_context(context: DeploymentContext) -> DeploymentContext:
    """Context after phase 1."""
    provision_placeholders(context)
    return context


@pytest.fixture
def implementation_context(placeholder_context: DeploymentContext) -> DeploymentContext:
    """Context after phase 2."""
    provision_implementations(placeholder_context)
    return placeholder_context


@pytest.fixture
def wired_context(implementation_context: DeploymentContext) -> DeploymentContext:
    """Context after phase 3, not yet verified."""
    implementation_context.deployment_block = 0
    run_wiring(implementation_context)
    return implementation_context
