"""Unit tests for deployment configuration parsing."""

import copy
import json
from pathlib import Path
from typing import Any, Dict

import pytest
from eth_utils import to_checksum_address

from restaking_deployments.config import (
    NetworkKind,
    load_config,
    parse_address,
    parse_config,
    parse_uint,
    resolve_environment,
)
from restaking_deployments.constants import (
    DEFAULT_TOKEN_INITIAL_SUPPLY,
    MAX_UINT256,
    PRODUCTION_DEPOSIT_CONTRACT,
)
from restaking_deployments.exceptions import ConfigurationError


class TestParseUint:
    """Test the parse_uint function."""

    def test_accepts_json_integer(self):
        """Test parsing a plain integer."""
        assert parse_uint(50400, "x") == 50400

    def test_accepts_decimal_string(self):
        """Test parsing integers too large for some JSON parsers."""
        assert parse_uint("31000000000000000000", "x") == 31 * 10**18

    def test_accepts_hex_string(self):
        """Test parsing 0x-prefixed hex strings."""
        assert parse_uint("0xffffffffffffffff", "x") == 2**64 - 1

    def test_accepts_all_bits_set(self):
        """Test that a full uint256 bitmask is accepted."""
        assert parse_uint(str(MAX_UINT256), "x") == MAX_UINT256

    def test_rejects_values_above_maximum(self):
        """Test that out-of-range values are configuration errors."""
        with pytest.raises(ConfigurationError, match="out of range"):
            parse_uint(50401, "delay", maximum=50400)

    def test_rejects_negative_values(self):
        """Test that negative values are rejected."""
        with pytest.raises(ConfigurationError):
            parse_uint(-1, "x")

    def test_rejects_booleans(self):
        """Test that JSON booleans are not treated as integers."""
        with pytest.raises(ConfigurationError):
            parse_uint(True, "x")

    def test_rejects_garbage_strings(self):
        """Test that non-numeric strings are rejected with the field path."""
        with pytest.raises(ConfigurationError, match="slasher.init_paused_status"):
            parse_uint("lots", "slasher.init_paused_status")


class TestParseAddress:
    """Test the parse_address function."""

    def test_checksums_lowercase_address(self):
        """Test that lowercase input is returned checksummed."""
        address = "0x" + "aa" * 20
        assert parse_address(address, "x") == to_checksum_address(address)

    def test_rejects_zero_address_by_default(self):
        """Test that the zero address is not a valid principal."""
        with pytest.raises(ConfigurationError, match="zero address"):
            parse_address("0x" + "00" * 20, "multisig_addresses.teamMultisig")

    def test_rejects_missing_address(self):
        """Test that a missing address is reported."""
        with pytest.raises(ConfigurationError, match="required"):
            parse_address(None, "x")

    def test_zero_and_empty_allowed_when_requested(self):
        """Test that zero/empty addresses map to None when allowed."""
        assert parse_address("0x" + "00" * 20, "x", allow_zero=True) is None
        assert parse_address("", "x", allow_zero=True) is None

    def test_rejects_malformed_address(self):
        """Test that short or non-hex values are rejected."""
        with pytest.raises(ConfigurationError, match="invalid address"):
            parse_address("0x1234", "x")

    def test_rejects_bad_checksum(self):
        """Test that mixed-case input with a wrong checksum is rejected."""
        good = to_checksum_address("0x" + "ab" * 20)
        bad = good[:2] + good[2:].swapcase()
        with pytest.raises(ConfigurationError, match="bad checksum"):
            parse_address(bad, "x")
        with pytest.raises(ConfigurationError, match="bad checksum"):
            parse_address("0xabAbAbAbabABabABaBaBabaBabABABABAbAbabAb", "communityMultisig")

    def test_single_case_input_needs_no_checksum(self):
        """Test that all-lowercase and all-uppercase addresses are checksummed, not rejected."""
        good = to_checksum_address("0x" + "ab" * 20)

        assert parse_address("0x" + "ab" * 20, "x") == good
        assert parse_address("0x" + "AB" * 20, "x") == good


class TestParseConfig:
    """Test the parse_config function."""

    def test_parses_sample_config(self, sample_config_json: Dict[str, Any], community: str, team: str):
        """Test parsing the sample configuration document."""
        config = parse_config(sample_config_json)

        assert config.community_multisig == community
        assert config.team_multisig == team
        assert config.paused_status["slasher"] == 2**64 - 1
        assert config.paused_status["strategy_manager"] == 0
        assert config.withdrawal_delay_blocks == {
            "strategy_manager": 50400,
            "withdrawal_router": 50400,
        }
        assert config.required_balance_wei == 31 * 10**18
        assert config.deposit_contract_override == to_checksum_address("0x" + "cd" * 20)

    def test_zero_token_address_means_new_token(self, sample_config_json: Dict[str, Any]):
        """Test that a zero token address requests a fresh token."""
        config = parse_config(sample_config_json)

        assert len(config.tokens) == 1
        token = config.tokens[0]
        assert token.needs_token
        assert token.name == "Wrapped Foo"
        assert token.symbol == "wFOO"

    def test_existing_token_address_is_kept(self, sample_config_json: Dict[str, Any]):
        """Test that a supplied token address is used as-is."""
        data = copy.deepcopy(sample_config_json)
        data["strategies"][0]["token_address"] = "0x" + "11" * 20

        token = parse_config(data).tokens[0]

        assert not token.needs_token
        assert token.address == to_checksum_address("0x" + "11" * 20)

    def test_optional_sections_default_to_unpaused(self, sample_config_json: Dict[str, Any]):
        """Test that delegation and eigenPodManager default to pause status 0."""
        data = copy.deepcopy(sample_config_json)
        del data["delegation"]
        del data["eigenPodManager"]

        config = parse_config(data)

        assert config.paused_status["delegation_manager"] == 0
        assert config.paused_status["pod_manager"] == 0

    def test_token_supply_defaults(self, sample_config_json: Dict[str, Any]):
        """Test the default initial supply of freshly created tokens."""
        assert parse_config(sample_config_json).token_initial_supply == DEFAULT_TOKEN_INITIAL_SUPPLY

    def test_roles_follow_principals(self, config, community: str, team: str):
        """Test the role assignment derived from the two principals."""
        roles = config.roles()

        assert roles.owner == community
        assert roles.pauser == team
        assert roles.unpauser == community
        assert roles.strategy_whitelister == team

    def test_principals_use_manifest_keys(self, config, community: str, team: str):
        """Test that principals are keyed as in the manifest parameters block."""
        assert config.principals() == {"communityMultisig": community, "teamMultisig": team}

    @pytest.mark.parametrize("principal", ["communityMultisig", "teamMultisig"])
    def test_missing_principal_is_configuration_error(
        self, sample_config_json: Dict[str, Any], principal: str
    ):
        """Test that each administrative principal is required."""
        data = copy.deepcopy(sample_config_json)
        del data["multisig_addresses"][principal]

        with pytest.raises(ConfigurationError, match=principal):
            parse_config(data)

    def test_missing_required_pause_status(self, sample_config_json: Dict[str, Any]):
        """Test that required pause statuses must be present."""
        data = copy.deepcopy(sample_config_json)
        del data["slasher"]["init_paused_status"]

        with pytest.raises(ConfigurationError, match="slasher.init_paused_status"):
            parse_config(data)

    def test_withdrawal_delay_above_cap(self, sample_config_json: Dict[str, Any]):
        """Test that delays above the contracts' one week cap are rejected."""
        data = copy.deepcopy(sample_config_json)
        data["strategyManager"]["init_withdrawal_delay_blocks"] = 50401

        with pytest.raises(ConfigurationError, match="init_withdrawal_delay_blocks"):
            parse_config(data)

    def test_required_balance_must_be_whole_gwei(self, sample_config_json: Dict[str, Any]):
        """Test that the pod balance threshold is a whole number of gwei."""
        data = copy.deepcopy(sample_config_json)
        data["eigenPod"]["REQUIRED_BALANCE_WEI"] = 31 * 10**18 + 1

        with pytest.raises(ConfigurationError, match="gwei"):
            parse_config(data)

    def test_duplicate_symbols_rejected(self, sample_config_json: Dict[str, Any]):
        """Test that strategy symbols must be unique."""
        data = copy.deepcopy(sample_config_json)
        data["strategies"].append(dict(data["strategies"][0]))

        with pytest.raises(ConfigurationError, match="duplicate symbol"):
            parse_config(data)

    def test_missing_token_name_rejected(self, sample_config_json: Dict[str, Any]):
        """Test that token descriptors need a name."""
        data = copy.deepcopy(sample_config_json)
        data["strategies"][0]["token_name"] = ""

        with pytest.raises(ConfigurationError, match="token_name"):
            parse_config(data)

    def test_rejects_non_object_document(self):
        """Test that the document itself must be an object."""
        with pytest.raises(ConfigurationError):
            parse_config([])


class TestLoadConfig:
    """Test the load_config function."""

    def test_loads_config_file(self, temp_config_file: Path):
        """Test loading a configuration from disk."""
        config = load_config(temp_config_file)
        assert config.tokens[0].symbol == "wFOO"

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "does_not_exist.json")

    def test_invalid_json(self, tmp_path: Path):
        """Test that unparseable JSON is a configuration error."""
        broken = tmp_path / "broken.json"
        broken.write_text("{ invalid json")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_config(broken)


class TestResolveEnvironment:
    """Test network-conditional deposit contract selection."""

    def test_production_uses_well_known_deposit_contract(self, config):
        """Test that chain id 1 always uses the well-known deposit contract."""
        environment = resolve_environment(1, config)

        assert environment.kind is NetworkKind.PRODUCTION
        assert environment.deposit_contract == PRODUCTION_DEPOSIT_CONTRACT
        assert environment.chain_name == "Ethereum Mainnet"

    def test_production_ignores_override(self, config, caplog):
        """Test that the override is ignored, with a warning, on production."""
        with caplog.at_level("WARNING"):
            environment = resolve_environment(1, config)

        assert environment.deposit_contract != config.deposit_contract_override
        assert "Ignoring ethPOSDepositAddress" in caplog.text

    def test_other_network_uses_override(self, config):
        """Test that other networks use the configured stand-in."""
        environment = resolve_environment(17000, config)

        assert environment.kind is NetworkKind.OTHER
        assert environment.deposit_contract == config.deposit_contract_override
        assert environment.chain_name == "Holesky"

    def test_other_network_requires_override(self, sample_config_json: Dict[str, Any]):
        """Test that a missing override is a configuration error off production."""
        data = copy.deepcopy(sample_config_json)
        del data["ethPOSDepositAddress"]
        config = parse_config(data)

        with pytest.raises(ConfigurationError, match="ethPOSDepositAddress"):
            resolve_environment(31337, config)

    def test_unknown_chain_name(self, config):
        """Test the display name of chains missing from NETWORK_CONFIG."""
        assert resolve_environment(424242, config).chain_name == "chain 424242"
