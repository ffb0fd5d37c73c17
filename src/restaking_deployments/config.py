"""Deployment configuration parsing for restaking-deployments library."""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from eth_utils import (
    is_address,
    is_checksum_address,
    is_checksum_formatted_address,
    to_checksum_address,
)

from .constants import (
    DEFAULT_TOKEN_INITIAL_SUPPLY,
    GWEI,
    MAX_UINT256,
    MAX_WITHDRAWAL_DELAY_BLOCKS,
    NETWORK_CONFIG,
    PRODUCTION_CHAIN_ID,
    PRODUCTION_DEPOSIT_CONTRACT,
    UNPAUSE_ALL,
    ZERO_ADDRESS,
)
from .exceptions import ConfigurationError
from .types import RoleAssignment, TokenDescriptor

logger = logging.getLogger(__name__)

# Config section -> component whose initial pause bitmask it carries
PAUSE_STATUS_SECTIONS = {
    "delegation": "delegation_manager",
    "strategyManager": "strategy_manager",
    "slasher": "slasher",
    "eigenPodManager": "pod_manager",
    "delayedWithdrawalRouter": "withdrawal_router",
}

# Sections without a default; the rest fall back to UNPAUSE_ALL
REQUIRED_PAUSE_SECTIONS = ("strategyManager", "slasher", "delayedWithdrawalRouter")

WITHDRAWAL_DELAY_SECTIONS = {
    "strategyManager": "strategy_manager",
    "delayedWithdrawalRouter": "withdrawal_router",
}


class NetworkKind(Enum):
    """Whether the target network is the well-known production network."""

    PRODUCTION = "production"
    OTHER = "other"


@dataclass(frozen=True)
class DeploymentConfig:
    """Validated deployment configuration."""

    community_multisig: str
    team_multisig: str
    paused_status: Mapping[str, int]  # component name -> initial pause bitmask
    withdrawal_delay_blocks: Mapping[str, int]  # component name -> delay in blocks
    required_balance_wei: int
    tokens: Tuple[TokenDescriptor, ...] = ()
    deposit_contract_override: Optional[str] = None
    token_initial_supply: int = DEFAULT_TOKEN_INITIAL_SUPPLY

    def roles(self) -> RoleAssignment:
        """Resolve administrative roles to the two configured principals."""
        return RoleAssignment(
            owner=self.community_multisig,
            pauser=self.team_multisig,
            unpauser=self.community_multisig,
            strategy_whitelister=self.team_multisig,
        )

    def principals(self) -> Dict[str, str]:
        """Principal addresses as they appear in the manifest."""
        return {
            "communityMultisig": self.community_multisig,
            "teamMultisig": self.team_multisig,
        }


@dataclass(frozen=True)
class Environment:
    """
    Target network descriptor.

    Carries the one network-dependent value the deployment needs: the
    beacon-chain deposit contract address.
    """

    kind: NetworkKind
    chain_id: int
    deposit_contract: str

    @property
    def chain_name(self) -> str:
        return NETWORK_CONFIG.get(self.chain_id, {}).get(
            "chain_name", f"chain {self.chain_id}"
        )


def parse_uint(value: Any, path: str, maximum: int = MAX_UINT256) -> int:
    """
    Parse an unsigned integer from a JSON value.

    Accepts JSON integers, decimal strings and 0x-prefixed hex strings.

    Raises:
        ConfigurationError: If the value is not an integer in [0, maximum]
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"{path}: expected an integer, got {value!r}")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            result = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError:
            raise ConfigurationError(f"{path}: expected an integer, got {value!r}") from None
    else:
        raise ConfigurationError(f"{path}: expected an integer, got {value!r}")

    if result < 0 or result > maximum:
        raise ConfigurationError(f"{path}: {result} out of range [0, {maximum}]")
    return result


def parse_address(value: Any, path: str, allow_zero: bool = False) -> Optional[str]:
    """
    Parse and checksum an address.

    Returns:
        Checksummed address, or None for empty/zero input when allow_zero is set

    Raises:
        ConfigurationError: If the value is not a valid (non-zero) address
    """
    if value in (None, ""):
        if allow_zero:
            return None
        raise ConfigurationError(f"{path}: address is required")

    if not isinstance(value, str) or not is_address(value):
        raise ConfigurationError(f"{path}: invalid address {value!r}")

    # Mixed-case input must already carry a valid checksum
    if is_checksum_formatted_address(value) and not is_checksum_address(value):
        raise ConfigurationError(f"{path}: bad checksum in address {value!r}")

    address = to_checksum_address(value)
    if address == ZERO_ADDRESS:
        if allow_zero:
            return None
        raise ConfigurationError(f"{path}: zero address is not allowed")
    return address


def _section(data: Dict[str, Any], name: str, required: bool) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        if required:
            raise ConfigurationError(f"Missing configuration section '{name}'")
        return {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section '{name}' must be an object")
    return section


def _parse_tokens(raw: Any) -> Tuple[TokenDescriptor, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigurationError("strategies: expected a list of token descriptors")

    tokens: List[TokenDescriptor] = []
    seen_symbols = set()
    for index, entry in enumerate(raw):
        path = f"strategies[{index}]"
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{path}: expected an object")

        name = entry.get("token_name")
        symbol = entry.get("token_symbol")
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"{path}.token_name: non-empty string required")
        if not isinstance(symbol, str) or not symbol:
            raise ConfigurationError(f"{path}.token_symbol: non-empty string required")
        if symbol in seen_symbols:
            raise ConfigurationError(f"{path}.token_symbol: duplicate symbol '{symbol}'")
        seen_symbols.add(symbol)

        address = parse_address(
            entry.get("token_address"), f"{path}.token_address", allow_zero=True
        )
        tokens.append(TokenDescriptor(address=address, name=name, symbol=symbol))

    return tuple(tokens)


def parse_config(data: Dict[str, Any]) -> DeploymentConfig:
    """
    Build a DeploymentConfig from a parsed JSON document.

    Args:
        data: Parsed configuration document

    Returns:
        Validated DeploymentConfig

    Raises:
        ConfigurationError: On any missing or invalid field
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration document must be a JSON object")

    multisigs = _section(data, "multisig_addresses", required=True)
    community = parse_address(
        multisigs.get("communityMultisig"), "multisig_addresses.communityMultisig"
    )
    team = parse_address(multisigs.get("teamMultisig"), "multisig_addresses.teamMultisig")

    paused_status: Dict[str, int] = {}
    for section_name, component in PAUSE_STATUS_SECTIONS.items():
        section = _section(data, section_name, section_name in REQUIRED_PAUSE_SECTIONS)
        if "init_paused_status" in section:
            paused_status[component] = parse_uint(
                section["init_paused_status"], f"{section_name}.init_paused_status"
            )
        elif section_name in REQUIRED_PAUSE_SECTIONS:
            raise ConfigurationError(f"{section_name}.init_paused_status is required")
        else:
            paused_status[component] = UNPAUSE_ALL

    withdrawal_delay_blocks: Dict[str, int] = {}
    for section_name, component in WITHDRAWAL_DELAY_SECTIONS.items():
        section = _section(data, section_name, required=True)
        if "init_withdrawal_delay_blocks" not in section:
            raise ConfigurationError(f"{section_name}.init_withdrawal_delay_blocks is required")
        withdrawal_delay_blocks[component] = parse_uint(
            section["init_withdrawal_delay_blocks"],
            f"{section_name}.init_withdrawal_delay_blocks",
            maximum=MAX_WITHDRAWAL_DELAY_BLOCKS,
        )

    pod = _section(data, "eigenPod", required=True)
    if "REQUIRED_BALANCE_WEI" not in pod:
        raise ConfigurationError("eigenPod.REQUIRED_BALANCE_WEI is required")
    required_balance_wei = parse_uint(pod["REQUIRED_BALANCE_WEI"], "eigenPod.REQUIRED_BALANCE_WEI")
    if required_balance_wei % GWEI != 0:
        raise ConfigurationError(
            "eigenPod.REQUIRED_BALANCE_WEI must be a whole number of gwei"
        )

    override = parse_address(
        data.get("ethPOSDepositAddress"), "ethPOSDepositAddress", allow_zero=True
    )

    supply = DEFAULT_TOKEN_INITIAL_SUPPLY
    if "token_initial_supply" in data:
        supply = parse_uint(data["token_initial_supply"], "token_initial_supply")

    return DeploymentConfig(
        community_multisig=community,
        team_multisig=team,
        paused_status=paused_status,
        withdrawal_delay_blocks=withdrawal_delay_blocks,
        required_balance_wei=required_balance_wei,
        tokens=_parse_tokens(data.get("strategies")),
        deposit_contract_override=override,
        token_initial_supply=supply,
    )


def load_config(config_path: Union[Path, str]) -> DeploymentConfig:
    """
    Load and validate a deployment configuration file.

    Args:
        config_path: Path to the JSON configuration document

    Raises:
        ConfigurationError: If the file is missing, unparseable or invalid
    """
    config_path = Path(config_path)
    try:
        with open(config_path) as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found at {config_path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file {config_path} is not valid JSON: {e}") from e

    config = parse_config(data)
    logger.debug("Loaded configuration from %s (%d strategies)", config_path, len(config.tokens))
    return config


def resolve_environment(chain_id: int, config: DeploymentConfig) -> Environment:
    """
    Select the deposit contract for the target network.

    The production network always uses the well-known deposit contract;
    every other network requires ethPOSDepositAddress in the configuration.

    Raises:
        ConfigurationError: If a non-production network has no override address
    """
    if chain_id == PRODUCTION_CHAIN_ID:
        if config.deposit_contract_override not in (None, PRODUCTION_DEPOSIT_CONTRACT):
            logger.warning(
                "Ignoring ethPOSDepositAddress %s on production network, using %s",
                config.deposit_contract_override,
                PRODUCTION_DEPOSIT_CONTRACT,
            )
        return Environment(NetworkKind.PRODUCTION, chain_id, PRODUCTION_DEPOSIT_CONTRACT)

    if config.deposit_contract_override is None:
        raise ConfigurationError(
            f"ethPOSDepositAddress is required on non-production network (chain id {chain_id})"
        )
    return Environment(NetworkKind.OTHER, chain_id, config.deposit_contract_override)
