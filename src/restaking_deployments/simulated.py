"""In-memory simulated chain for restaking-deployments library."""

import copy
import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from eth_utils import is_address, keccak, to_bytes, to_checksum_address

from .chain import Chain
from .constants import (
    ALREADY_INITIALIZED_REASON,
    DELAYED_WITHDRAWAL_ROUTER,
    DELEGATION_MANAGER,
    EIGEN_POD,
    EIGEN_POD_MANAGER,
    EMPTY_CONTRACT,
    FIXED_SUPPLY_TOKEN,
    GWEI,
    MAX_UINT256,
    MAX_WITHDRAWAL_DELAY_BLOCKS,
    PAUSER_REGISTRY,
    PROXY_ADMIN,
    SLASHER,
    STRATEGY_BASE,
    STRATEGY_MANAGER,
    TRANSPARENT_PROXY,
    UNPAUSE_ALL,
    UPGRADEABLE_BEACON,
    ZERO_ADDRESS,
)
from .exceptions import AlreadyInitializedError, ArtifactNotFoundError, TransactionError
from .types import Calldata

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 31337
DEFAULT_DEPLOYER = to_checksum_address("0x" + "de" * 20)

# Proxy bookkeeping lives in the proxy's own storage under EIP-1967 style keys
_IMPLEMENTATION_KEY = "eip1967.proxy.implementation"
_ADMIN_KEY = "eip1967.proxy.admin"

_INITIALIZED_KEY = "_initialized"
_INITIALIZERS_DISABLED = 255


class Revert(Exception):
    """Raised inside simulated contract code to abort the current transaction."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def require(condition: bool, reason: str) -> None:
    if not condition:
        raise Revert(reason)


def external(func: Callable) -> Callable:
    """Mark a contract method as callable from outside."""
    func._external = True
    return func


@dataclass
class Frame:
    """Execution context of one message call."""

    chain: "SimulatedChain"
    address: str  # Address whose storage is in use (the proxy when delegating)
    sender: str
    storage: Dict[str, Any]

    def call(self, target: str, method: str, *args: Any) -> Any:
        """Message-call another contract, with this contract as sender."""
        return self.chain._message(self.address, target, method, args)


@dataclass(frozen=True)
class TransactionRecord:
    sender: str
    to: Optional[str]  # None for contract creation
    contract: str
    method: str


class ContractCode:
    """
    Base class for simulated contract code.

    Immutables are attributes of the code object; mutable state lives in the
    storage dict of the executing address, so a proxy delegating to this code
    keeps its own state.
    """

    contract_name = ""

    def construct(self, frame: Frame, *args: Any) -> None:
        pass

    def dispatch(self, frame: Frame, method: str, args: Tuple[Any, ...]) -> Any:
        func = getattr(self, method, None)
        if func is None or not getattr(func, "_external", False):
            raise Revert(f"{self.contract_name}: function {method}() does not exist")
        try:
            inspect.signature(func).bind(frame, *args)
        except TypeError:
            raise Revert(f"{self.contract_name}: bad arguments for {method}()") from None
        return func(frame, *args)


class OwnableMixin:
    def _transfer_ownership(self, frame: Frame, new_owner: str) -> None:
        frame.storage["owner"] = new_owner

    def _only_owner(self, frame: Frame) -> None:
        require(frame.sender == frame.storage.get("owner"), "Ownable: caller is not the owner")

    @external
    def owner(self, frame: Frame) -> str:
        return frame.storage.get("owner", ZERO_ADDRESS)

    @external
    def transferOwnership(self, frame: Frame, new_owner: str) -> None:
        self._only_owner(frame)
        require(new_owner != ZERO_ADDRESS, "Ownable: new owner is the zero address")
        self._transfer_ownership(frame, new_owner)


class InitializableMixin:
    def _initializer(self, frame: Frame) -> None:
        require(not frame.storage.get(_INITIALIZED_KEY), ALREADY_INITIALIZED_REASON)
        frame.storage[_INITIALIZED_KEY] = 1

    def _disable_initializers(self, frame: Frame) -> None:
        frame.storage[_INITIALIZED_KEY] = _INITIALIZERS_DISABLED


class PausableMixin:
    def _initialize_pauser(self, frame: Frame, pauser_registry: str, initial_status: int) -> None:
        require(
            frame.storage.get("pauserRegistry", ZERO_ADDRESS) == ZERO_ADDRESS
            and pauser_registry != ZERO_ADDRESS,
            "Pausable._initializePauser: _initializePauser() can only be called once",
        )
        require(0 <= initial_status <= MAX_UINT256, "Pausable: status out of range")
        frame.storage["pauserRegistry"] = pauser_registry
        frame.storage["paused"] = initial_status

    @external
    def pauserRegistry(self, frame: Frame) -> str:
        return frame.storage.get("pauserRegistry", ZERO_ADDRESS)

    @external
    def paused(self, frame: Frame, index: Optional[int] = None) -> Any:
        status = frame.storage.get("paused", UNPAUSE_ALL)
        if index is None:
            return status
        return bool(status >> index & 1)

    @external
    def pause(self, frame: Frame, new_status: int) -> None:
        registry = self.pauserRegistry(frame)
        require(
            frame.sender == frame.call(registry, "pauser"), "msg.sender is not permissioned as pauser"
        )
        current = frame.storage.get("paused", UNPAUSE_ALL)
        require(current & new_status == current, "Pausable.pause: invalid attempt to unpause functionality")
        frame.storage["paused"] = new_status

    @external
    def unpause(self, frame: Frame, new_status: int) -> None:
        registry = self.pauserRegistry(frame)
        require(
            frame.sender == frame.call(registry, "unpauser"),
            "msg.sender is not permissioned as unpauser",
        )
        current = frame.storage.get("paused", UNPAUSE_ALL)
        require(new_status & current == new_status, "Pausable.unpause: invalid attempt to pause functionality")
        frame.storage["paused"] = new_status


class EmptyContract(ContractCode):
    contract_name = EMPTY_CONTRACT

    @external
    def foo(self, frame: Frame) -> int:
        return 0


class ProxyAdmin(OwnableMixin, ContractCode):
    contract_name = PROXY_ADMIN

    def construct(self, frame: Frame) -> None:
        self._transfer_ownership(frame, frame.sender)

    @external
    def getProxyImplementation(self, frame: Frame, proxy: str) -> str:
        return frame.call(proxy, "implementation")

    @external
    def getProxyAdmin(self, frame: Frame, proxy: str) -> str:
        return frame.call(proxy, "admin")

    @external
    def upgrade(self, frame: Frame, proxy: str, implementation: str) -> None:
        self._only_owner(frame)
        frame.call(proxy, "upgradeTo", implementation)

    @external
    def upgradeAndCall(self, frame: Frame, proxy: str, implementation: str, data: Calldata) -> None:
        self._only_owner(frame)
        frame.call(proxy, "upgradeToAndCall", implementation, data)


class TransparentUpgradeableProxy(ContractCode):
    contract_name = TRANSPARENT_PROXY

    ADMIN_FUNCTIONS = ("admin", "implementation", "upgradeTo", "upgradeToAndCall", "changeAdmin")

    def construct(self, frame: Frame, logic: str, admin: str, data: Any = b"") -> None:
        self._set_implementation(frame, logic)
        frame.storage[_ADMIN_KEY] = admin
        if isinstance(data, Calldata):
            self._delegate(frame, data.method, data.args)

    def _set_implementation(self, frame: Frame, implementation: str) -> None:
        require(
            frame.chain.has_code(implementation), "ERC1967: new implementation is not a contract"
        )
        frame.storage[_IMPLEMENTATION_KEY] = implementation

    def _delegate(self, frame: Frame, method: str, args: Tuple[Any, ...]) -> Any:
        code = frame.chain.code_object(frame.storage[_IMPLEMENTATION_KEY])
        return code.dispatch(frame, method, args)

    def dispatch(self, frame: Frame, method: str, args: Tuple[Any, ...]) -> Any:
        if frame.sender == frame.storage[_ADMIN_KEY]:
            require(
                method in self.ADMIN_FUNCTIONS,
                "TransparentUpgradeableProxy: admin cannot fallback to proxy target",
            )
            return super().dispatch(frame, method, args)
        return self._delegate(frame, method, args)

    @external
    def admin(self, frame: Frame) -> str:
        return frame.storage[_ADMIN_KEY]

    @external
    def implementation(self, frame: Frame) -> str:
        return frame.storage[_IMPLEMENTATION_KEY]

    @external
    def changeAdmin(self, frame: Frame, new_admin: str) -> None:
        require(new_admin != ZERO_ADDRESS, "ERC1967: new admin is the zero address")
        frame.storage[_ADMIN_KEY] = new_admin

    @external
    def upgradeTo(self, frame: Frame, implementation: str) -> None:
        self._set_implementation(frame, implementation)

    @external
    def upgradeToAndCall(self, frame: Frame, implementation: str, data: Calldata) -> None:
        self._set_implementation(frame, implementation)
        self._delegate(frame, data.method, data.args)


class UpgradeableBeacon(OwnableMixin, ContractCode):
    contract_name = UPGRADEABLE_BEACON

    def construct(self, frame: Frame, implementation: str) -> None:
        self._set_implementation(frame, implementation)
        self._transfer_ownership(frame, frame.sender)

    def _set_implementation(self, frame: Frame, implementation: str) -> None:
        require(
            frame.chain.has_code(implementation),
            "UpgradeableBeacon: implementation is not a contract",
        )
        frame.storage["implementation"] = implementation

    @external
    def implementation(self, frame: Frame) -> str:
        return frame.storage["implementation"]

    @external
    def upgradeTo(self, frame: Frame, implementation: str) -> None:
        self._only_owner(frame)
        self._set_implementation(frame, implementation)


class PauserRegistry(ContractCode):
    contract_name = PAUSER_REGISTRY

    def construct(self, frame: Frame, pauser: str, unpauser: str) -> None:
        require(pauser != ZERO_ADDRESS, "PauserRegistry._setPauser: zero address input")
        require(unpauser != ZERO_ADDRESS, "PauserRegistry._setUnpauser: zero address input")
        frame.storage["pauser"] = pauser
        frame.storage["unpauser"] = unpauser

    @external
    def pauser(self, frame: Frame) -> str:
        return frame.storage["pauser"]

    @external
    def unpauser(self, frame: Frame) -> str:
        return frame.storage["unpauser"]


class UpgradeableComponent(InitializableMixin, PausableMixin, OwnableMixin, ContractCode):
    """
    Implementation contract with immutable peer addresses.

    PEERS names the constructor parameters, which are exposed as getters.
    """

    PEERS: Tuple[str, ...] = ()

    def construct(self, frame: Frame, *peers: str) -> None:
        require(len(peers) == len(self.PEERS), f"{self.contract_name}: bad constructor arguments")
        self.immutables = dict(zip(self.PEERS, peers))
        self._disable_initializers(frame)

    def dispatch(self, frame: Frame, method: str, args: Tuple[Any, ...]) -> Any:
        if method in self.PEERS and not args:
            return self.immutables[method]
        return super().dispatch(frame, method, args)

    def _initialize_common(self, frame: Frame, owner: str, pauser_registry: str, status: int) -> None:
        self._initializer(frame)
        self._transfer_ownership(frame, owner)
        self._initialize_pauser(frame, pauser_registry, status)


class DelegationManager(UpgradeableComponent):
    contract_name = DELEGATION_MANAGER
    PEERS = ("strategyManager", "slasher")

    @external
    def initialize(self, frame: Frame, initial_owner: str, pauser_registry: str, paused_status: int) -> None:
        self._initialize_common(frame, initial_owner, pauser_registry, paused_status)


class StrategyManager(UpgradeableComponent):
    contract_name = STRATEGY_MANAGER
    PEERS = ("delegation", "eigenPodManager", "slasher")

    @external
    def initialize(
        self,
        frame: Frame,
        initial_owner: str,
        strategy_whitelister: str,
        pauser_registry: str,
        paused_status: int,
        withdrawal_delay_blocks: int,
    ) -> None:
        self._initialize_common(frame, initial_owner, pauser_registry, paused_status)
        frame.storage["strategyWhitelister"] = strategy_whitelister
        require(
            withdrawal_delay_blocks <= MAX_WITHDRAWAL_DELAY_BLOCKS,
            "StrategyManager.setWithdrawalDelay: _withdrawalDelayBlocks too high",
        )
        frame.storage["withdrawalDelayBlocks"] = withdrawal_delay_blocks

    @external
    def strategyWhitelister(self, frame: Frame) -> str:
        return frame.storage.get("strategyWhitelister", ZERO_ADDRESS)

    @external
    def withdrawalDelayBlocks(self, frame: Frame) -> int:
        return frame.storage.get("withdrawalDelayBlocks", 0)


class Slasher(UpgradeableComponent):
    contract_name = SLASHER
    PEERS = ("strategyManager", "delegation")

    @external
    def initialize(self, frame: Frame, initial_owner: str, pauser_registry: str, paused_status: int) -> None:
        self._initialize_common(frame, initial_owner, pauser_registry, paused_status)


class EigenPodManager(UpgradeableComponent):
    contract_name = EIGEN_POD_MANAGER
    PEERS = ("ethPOS", "eigenPodBeacon", "strategyManager", "slasher")

    @external
    def initialize(
        self,
        frame: Frame,
        beacon_chain_oracle: str,
        initial_owner: str,
        pauser_registry: str,
        paused_status: int,
    ) -> None:
        self._initialize_common(frame, initial_owner, pauser_registry, paused_status)
        frame.storage["beaconChainOracle"] = beacon_chain_oracle

    @external
    def beaconChainOracle(self, frame: Frame) -> str:
        return frame.storage.get("beaconChainOracle", ZERO_ADDRESS)


class DelayedWithdrawalRouter(UpgradeableComponent):
    contract_name = DELAYED_WITHDRAWAL_ROUTER
    PEERS = ("eigenPodManager",)

    def construct(self, frame: Frame, *peers: str) -> None:
        require(
            peers and peers[0] != ZERO_ADDRESS,
            "DelayedWithdrawalRouter.constructor: _eigenPodManager cannot be zero address",
        )
        super().construct(frame, *peers)

    @external
    def initialize(
        self,
        frame: Frame,
        initial_owner: str,
        pauser_registry: str,
        paused_status: int,
        withdrawal_delay_blocks: int,
    ) -> None:
        self._initialize_common(frame, initial_owner, pauser_registry, paused_status)
        require(
            withdrawal_delay_blocks <= MAX_WITHDRAWAL_DELAY_BLOCKS,
            "DelayedWithdrawalRouter._setWithdrawalDelayBlocks: newValue too large",
        )
        frame.storage["withdrawalDelayBlocks"] = withdrawal_delay_blocks

    @external
    def withdrawalDelayBlocks(self, frame: Frame) -> int:
        return frame.storage.get("withdrawalDelayBlocks", 0)


class EigenPod(InitializableMixin, ContractCode):
    contract_name = EIGEN_POD
    PEERS = ("ethPOS", "delayedWithdrawalRouter", "eigenPodManager")

    def construct(self, frame: Frame, eth_pos: str, router: str, pod_manager: str, required_balance_wei: int) -> None:
        require(
            required_balance_wei % GWEI == 0,
            "EigenPod.contructor: _REQUIRED_BALANCE_WEI is not a whole number of gwei",
        )
        self.immutables = dict(zip(self.PEERS, (eth_pos, router, pod_manager)))
        self.immutables["REQUIRED_BALANCE_WEI"] = required_balance_wei
        self._disable_initializers(frame)

    def dispatch(self, frame: Frame, method: str, args: Tuple[Any, ...]) -> Any:
        if method in self.immutables and not args:
            return self.immutables[method]
        return super().dispatch(frame, method, args)

    @external
    def initialize(self, frame: Frame, pod_owner: str) -> None:
        self._initializer(frame)
        frame.storage["podOwner"] = pod_owner

    @external
    def podOwner(self, frame: Frame) -> str:
        return frame.storage.get("podOwner", ZERO_ADDRESS)


class StrategyBase(InitializableMixin, PausableMixin, ContractCode):
    contract_name = STRATEGY_BASE

    def construct(self, frame: Frame, strategy_manager: str) -> None:
        self.immutables = {"strategyManager": strategy_manager}
        self._disable_initializers(frame)

    @external
    def strategyManager(self, frame: Frame) -> str:
        return self.immutables["strategyManager"]

    @external
    def initialize(self, frame: Frame, underlying_token: str, pauser_registry: str) -> None:
        self._initializer(frame)
        frame.storage["underlyingToken"] = underlying_token
        self._initialize_pauser(frame, pauser_registry, UNPAUSE_ALL)

    @external
    def underlyingToken(self, frame: Frame) -> str:
        return frame.storage.get("underlyingToken", ZERO_ADDRESS)

    @external
    def totalShares(self, frame: Frame) -> int:
        return frame.storage.get("totalShares", 0)


class ERC20PresetFixedSupply(ContractCode):
    contract_name = FIXED_SUPPLY_TOKEN

    def construct(self, frame: Frame, token_name: str, symbol: str, initial_supply: int, owner: str) -> None:
        frame.storage["name"] = token_name
        frame.storage["symbol"] = symbol
        frame.storage["totalSupply"] = initial_supply
        frame.storage["balances"] = {owner: initial_supply}

    @external
    def name(self, frame: Frame) -> str:
        return frame.storage["name"]

    @external
    def symbol(self, frame: Frame) -> str:
        return frame.storage["symbol"]

    @external
    def decimals(self, frame: Frame) -> int:
        return 18

    @external
    def totalSupply(self, frame: Frame) -> int:
        return frame.storage["totalSupply"]

    @external
    def balanceOf(self, frame: Frame, account: str) -> int:
        return frame.storage["balances"].get(account, 0)


CONTRACTS: Dict[str, Type[ContractCode]] = {
    cls.contract_name: cls
    for cls in (
        EmptyContract,
        ProxyAdmin,
        TransparentUpgradeableProxy,
        UpgradeableBeacon,
        PauserRegistry,
        DelegationManager,
        StrategyManager,
        Slasher,
        EigenPodManager,
        DelayedWithdrawalRouter,
        EigenPod,
        StrategyBase,
        ERC20PresetFixedSupply,
    )
}


def _normalize(value: Any) -> Any:
    """Checksum address-like arguments so comparisons are case-insensitive."""
    if isinstance(value, str) and is_address(value):
        return to_checksum_address(value)
    if isinstance(value, Calldata):
        return Calldata(value.contract, value.method, tuple(_normalize(a) for a in value.args))
    return value


class SimulatedChain(Chain):
    """
    Chain that executes the deployment in memory.

    Each transaction runs against the live state and is rolled back whole if
    any contract code reverts. Reads never change state.
    """

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, deployer: str = DEFAULT_DEPLOYER):
        self._chain_id = chain_id
        self._deployer = to_checksum_address(deployer)
        self._code: Dict[str, ContractCode] = {}
        self._storage: Dict[str, Dict[str, Any]] = {}
        self._nonces: Dict[str, int] = {}
        self._block = 0
        self.transactions: List[TransactionRecord] = []

    @property
    def deployer(self) -> str:
        return self._deployer

    def chain_id(self) -> int:
        return self._chain_id

    def block_number(self) -> int:
        return self._block

    @contextmanager
    def fork(self) -> Iterator["SimulatedChain"]:
        yield copy.deepcopy(self)

    def has_code(self, address: str) -> bool:
        return to_checksum_address(address) in self._code

    def code_object(self, address: str) -> ContractCode:
        return self._code[to_checksum_address(address)]

    def contract_at(self, address: str) -> Optional[str]:
        """Name of the contract deployed at an address, if any."""
        code = self._code.get(to_checksum_address(address))
        return code.contract_name if code is not None else None

    def _next_address(self, sender: str) -> str:
        nonce = self._nonces.get(sender, 0)
        self._nonces[sender] = nonce + 1
        digest = keccak(to_bytes(hexstr=sender) + nonce.to_bytes(32, "big"))
        return to_checksum_address(digest[-20:])

    def _create(self, sender: str, contract: str, args: Tuple[Any, ...]) -> str:
        if contract not in CONTRACTS:
            raise ArtifactNotFoundError(f"No simulated code for contract '{contract}'")
        address = self._next_address(sender)
        code = CONTRACTS[contract]()
        self._code[address] = code
        self._storage[address] = {}
        frame = Frame(self, address, sender, self._storage[address])
        try:
            inspect.signature(code.construct).bind(frame, *args)
        except TypeError:
            raise Revert(f"{contract}: bad constructor arguments") from None
        code.construct(frame, *args)
        return address

    def _message(self, sender: str, target: str, method: str, args: Tuple[Any, ...]) -> Any:
        target = to_checksum_address(target)
        code = self._code.get(target)
        require(code is not None, f"call to non-contract address {target}")
        frame = Frame(self, target, sender, self._storage[target])
        return code.dispatch(frame, method, args)

    def _run(self, sender: str, to: Optional[str], contract: str, method: str, body: Callable[[], Any]) -> Any:
        snapshot = (copy.deepcopy(self._storage), dict(self._code))
        if to is not None:
            # Creations bump the nonce while deriving the address
            self._nonces[sender] = self._nonces.get(sender, 0) + 1
        try:
            result = body()
        except Revert as e:
            # Nonces are not rolled back: a failed transaction still consumes one
            self._storage, self._code = snapshot
            error_cls = (
                AlreadyInitializedError if e.reason == ALREADY_INITIALIZED_REASON else TransactionError
            )
            raise error_cls(
                f"{contract}.{method} reverted: {e.reason}",
                contract=contract,
                method=method,
                reason=e.reason,
            ) from e
        self._block += 1
        self.transactions.append(TransactionRecord(sender, to, contract, method))
        logger.debug("Simulated %s.%s from %s in block %d", contract, method, sender, self._block)
        return result

    def deploy(self, contract: str, *args: Any) -> str:
        args = tuple(_normalize(a) for a in args)
        return self._run(
            self._deployer, None, contract, "constructor",
            lambda: self._create(self._deployer, contract, args),
        )

    def send(self, sender: str, address: str, contract: str, method: str, *args: Any) -> Any:
        """Send a transaction from an arbitrary sender (account impersonation)."""
        sender = to_checksum_address(sender)
        args = tuple(_normalize(a) for a in args)
        return self._run(
            sender, to_checksum_address(address), contract, method,
            lambda: self._message(sender, address, method, args),
        )

    def transact(self, address: str, contract: str, method: str, *args: Any) -> None:
        self.send(self._deployer, address, contract, method, *args)

    def call(self, address: str, contract: str, method: str, *args: Any) -> Any:
        args = tuple(_normalize(a) for a in args)
        snapshot = copy.deepcopy(self._storage)
        try:
            return self._message(self._deployer, address, method, args)
        except Revert as e:
            raise TransactionError(
                f"{contract}.{method} reverted: {e.reason}",
                contract=contract,
                method=method,
                reason=e.reason,
            ) from e
        finally:
            self._storage = snapshot
