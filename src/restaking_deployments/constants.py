"""Configuration constants for restaking-deployments library."""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MAX_UINT256 = 2**256 - 1

# Pause bitmasks
UNPAUSE_ALL = 0

# Upper bound enforced by StrategyManager and DelayedWithdrawalRouter (one week of blocks)
MAX_WITHDRAWAL_DELAY_BLOCKS = 50400

GWEI = 10**9

# Supply minted to the deployer for tokens created alongside their strategy
DEFAULT_TOKEN_INITIAL_SUPPLY = 10**27

# Network configuration
# Exactly one chain id is treated as production; its deposit contract is never mocked
PRODUCTION_CHAIN_ID = 1
PRODUCTION_DEPOSIT_CONTRACT = "0x00000000219ab540356cBB839Cbe05303d7705Fa"

NETWORK_CONFIG = {
    1: {"chain_name": "Ethereum Mainnet", "short_name": "eth"},  # EIP-3770
    5: {"chain_name": "Goerli", "short_name": "gor"},
    17000: {"chain_name": "Holesky", "short_name": "hol"},
    11155111: {"chain_name": "Sepolia", "short_name": "sep"},
    31337: {"chain_name": "Local Devnet", "short_name": "dev"},
}

# Contract (artifact) names
PROXY_ADMIN = "ProxyAdmin"
PAUSER_REGISTRY = "PauserRegistry"
EMPTY_CONTRACT = "EmptyContract"
TRANSPARENT_PROXY = "TransparentUpgradeableProxy"
UPGRADEABLE_BEACON = "UpgradeableBeacon"
DELEGATION_MANAGER = "DelegationManager"
STRATEGY_MANAGER = "StrategyManager"
SLASHER = "Slasher"
EIGEN_POD_MANAGER = "EigenPodManager"
DELAYED_WITHDRAWAL_ROUTER = "DelayedWithdrawalRouter"
EIGEN_POD = "EigenPod"
STRATEGY_BASE = "StrategyBase"
FIXED_SUPPLY_TOKEN = "ERC20PresetFixedSupply"
ETH_POS_DEPOSIT = "IETHPOSDeposit"

# Revert reasons surfaced by the contracts
ALREADY_INITIALIZED_REASON = "Initializable: contract is already initialized"
