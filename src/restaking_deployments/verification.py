"""Phase 4: read-only invariant checks gating manifest emission."""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

from eth_utils import is_address, is_same_address

from .constants import FIXED_SUPPLY_TOKEN, PROXY_ADMIN, STRATEGY_BASE, UNPAUSE_ALL, ZERO_ADDRESS
from .context import DeploymentContext
from .exceptions import TransactionError, VerificationError
from .topology import (
    ALL_SPECS,
    PAUSER_REGISTRY_SPEC,
    POD_BEACON_SPEC,
    POD_MANAGER_SPEC,
    POD_SPEC,
    PROXIED_SPECS,
    PROXY_ADMIN_SPEC,
    STRATEGY_MANAGER_SPEC,
    STRATEGY_SPEC,
    WITHDRAWAL_ROUTER_SPEC,
    ComponentSpec,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reverted:
    """Marker for a read that reverted; never equal to an expected value."""

    reason: Optional[str]

    def __repr__(self) -> str:
        return f"<reverted: {self.reason}>"


@dataclass(frozen=True)
class Check:
    """One expected-versus-live comparison."""

    component: str
    field: str
    expected: Any
    actual: Any

    @property
    def passed(self) -> bool:
        return values_match(self.expected, self.actual)


def values_match(expected: Any, actual: Any) -> bool:
    """
    Compare an expected value with one read from the chain.

    Addresses compare case-insensitively; everything else must be equal and
    of the same kind (a boolean is not an integer here).
    """
    if isinstance(expected, Reverted) or isinstance(actual, Reverted):
        return False
    if isinstance(expected, str) and isinstance(actual, str):
        if is_address(expected) and is_address(actual):
            return is_same_address(expected, actual)
        return expected == actual
    if isinstance(expected, bool) != isinstance(actual, bool):
        return False
    return expected == actual


class InvariantVerifier:
    """
    Reads back every deployed component and compares it with the registry
    and configuration.

    Checks are generated lazily per category so the gate can stop at the
    first mismatch while diagnostics can still collect all of them.
    """

    def __init__(self, ctx: DeploymentContext):
        self.ctx = ctx
        self.registry = ctx.registry
        self.config = ctx.config
        self.roles = ctx.roles

    def _read(self, address: str, contract: str, method: str, *args: Any) -> Any:
        try:
            return self.ctx.chain.call(address, contract, method, *args)
        except TransactionError as e:
            return Reverted(e.reason)

    def _check(self, component: str, field: str, expected: Any, address: str, contract: str,
               method: str, *args: Any) -> Check:
        actual = self._read(address, contract, method, *args)
        logger.debug("%s.%s: expected %r, got %r", component, field, expected, actual)
        return Check(component, field, expected, actual)

    def _peer_specs(self) -> Iterator[ComponentSpec]:
        return (spec for spec in ALL_SPECS if spec.peers)

    def referential_integrity(self) -> Iterator[Check]:
        """Peer getters equal the registered peer addresses, from both views."""
        for spec in self._peer_specs():
            component = self.registry.get(spec.name)
            for getter, peer in spec.peers:
                expected = self.registry.address(peer)
                yield self._check(
                    spec.name, f"{getter} (implementation)", expected,
                    component.implementation, spec.contract, getter,
                )
                if component.proxy is not None:
                    yield self._check(
                        spec.name, f"{getter} (proxy)", expected,
                        component.proxy, spec.contract, getter,
                    )

        strategy_manager = self.registry.address(STRATEGY_MANAGER_SPEC.name)
        for binding in self.registry.strategies():
            yield self._check(
                f"strategy[{binding.symbol}]", "strategyManager", strategy_manager,
                binding.proxy, STRATEGY_BASE, "strategyManager",
            )

    def bindings(self) -> Iterator[Check]:
        """Proxies delegate to the recorded implementation, under the shared admin."""
        proxy_admin = self.registry.address(PROXY_ADMIN_SPEC.name)

        def proxy_checks(name: str, proxy: str, implementation: str) -> Iterator[Check]:
            yield self._check(
                name, "implementation", implementation,
                proxy_admin, PROXY_ADMIN, "getProxyImplementation", proxy,
            )
            yield self._check(name, "admin", proxy_admin, proxy_admin, PROXY_ADMIN, "getProxyAdmin", proxy)

        for spec in PROXIED_SPECS:
            component = self.registry.get(spec.name)
            yield from proxy_checks(spec.name, component.proxy, component.implementation)

        for binding in self.registry.strategies():
            yield from proxy_checks(f"strategy[{binding.symbol}]", binding.proxy, binding.implementation)

        yield self._check(
            POD_BEACON_SPEC.name, "implementation", self.registry.implementation(POD_SPEC.name),
            self.registry.address(POD_BEACON_SPEC.name), POD_BEACON_SPEC.contract, "implementation",
        )

    def ownership(self) -> Iterator[Check]:
        for spec in ALL_SPECS:
            if spec.owned:
                yield self._check(
                    spec.name, "owner", self.roles.owner,
                    self.registry.address(spec.name), spec.contract, "owner",
                )

    def roles_assigned(self) -> Iterator[Check]:
        pauser_registry = self.registry.address(PAUSER_REGISTRY_SPEC.name)
        yield self._check(
            PAUSER_REGISTRY_SPEC.name, "pauser", self.roles.pauser,
            pauser_registry, PAUSER_REGISTRY_SPEC.contract, "pauser",
        )
        yield self._check(
            PAUSER_REGISTRY_SPEC.name, "unpauser", self.roles.unpauser,
            pauser_registry, PAUSER_REGISTRY_SPEC.contract, "unpauser",
        )
        yield self._check(
            STRATEGY_MANAGER_SPEC.name, "strategyWhitelister", self.roles.strategy_whitelister,
            self.registry.address(STRATEGY_MANAGER_SPEC.name), STRATEGY_MANAGER_SPEC.contract,
            "strategyWhitelister",
        )
        for spec in ALL_SPECS:
            if spec.pausable:
                yield self._check(
                    spec.name, "pauserRegistry", pauser_registry,
                    self.registry.address(spec.name), spec.contract, "pauserRegistry",
                )

    def pause_state(self) -> Iterator[Check]:
        """Live bitmasks equal the configured ones bit for bit."""
        for spec in ALL_SPECS:
            if spec.pausable:
                yield self._check(
                    spec.name, "paused", self.config.paused_status[spec.name],
                    self.registry.address(spec.name), spec.contract, "paused",
                )

    def parameters(self) -> Iterator[Check]:
        for spec in (STRATEGY_MANAGER_SPEC, WITHDRAWAL_ROUTER_SPEC):
            yield self._check(
                spec.name, "withdrawalDelayBlocks", self.config.withdrawal_delay_blocks[spec.name],
                self.registry.address(spec.name), spec.contract, "withdrawalDelayBlocks",
            )
        yield self._check(
            POD_SPEC.name, "REQUIRED_BALANCE_WEI", self.config.required_balance_wei,
            self.registry.implementation(POD_SPEC.name), POD_SPEC.contract, "REQUIRED_BALANCE_WEI",
        )
        yield self._check(
            POD_MANAGER_SPEC.name, "beaconChainOracle", ZERO_ADDRESS,
            self.registry.address(POD_MANAGER_SPEC.name), POD_MANAGER_SPEC.contract, "beaconChainOracle",
        )

    def strategies(self) -> Iterator[Check]:
        """Each strategy wraps its token, shares the pauser registry and starts unpaused."""
        pauser_registry = self.registry.address(PAUSER_REGISTRY_SPEC.name)
        shared = self.registry.implementation(STRATEGY_SPEC.name)
        descriptors = {token.symbol: token for token in self.config.tokens}

        for binding in self.registry.strategies():
            name = f"strategy[{binding.symbol}]"
            yield Check(name, "sharedImplementation", shared, binding.implementation)
            yield self._check(name, "underlyingToken", binding.token, binding.proxy, STRATEGY_BASE, "underlyingToken")
            yield self._check(name, "pauserRegistry", pauser_registry, binding.proxy, STRATEGY_BASE, "pauserRegistry")
            yield self._check(name, "paused", UNPAUSE_ALL, binding.proxy, STRATEGY_BASE, "paused")
            if binding.token_created:
                descriptor = descriptors[binding.symbol]
                yield self._check(name, "token.name", descriptor.name, binding.token, FIXED_SUPPLY_TOKEN, "name")
                yield self._check(name, "token.symbol", descriptor.symbol, binding.token, FIXED_SUPPLY_TOKEN, "symbol")

        yield Check("strategies", "count", len(self.config.tokens), len(self.registry.strategies()))

    def checks(self) -> Iterator[Check]:
        yield from self.referential_integrity()
        yield from self.bindings()
        yield from self.ownership()
        yield from self.roles_assigned()
        yield from self.pause_state()
        yield from self.parameters()
        yield from self.strategies()

    def find_violations(self) -> List[Check]:
        """Run every check and return the failing ones."""
        return [check for check in self.checks() if not check.passed]

    def verify(self) -> int:
        """
        Assert every invariant, stopping at the first mismatch.

        Returns:
            Number of checks that passed

        Raises:
            VerificationError: Naming the component and field that mismatched
        """
        count = 0
        for check in self.checks():
            if not check.passed:
                logger.error(
                    "Verification failed for %s.%s: expected %r, got %r",
                    check.component, check.field, check.expected, check.actual,
                )
                if isinstance(check.actual, str):
                    recorded = self.ctx.registry.find_by_address(check.actual)
                    if recorded is not None:
                        logger.error("%s is the address recorded for %s", check.actual, recorded)
                raise VerificationError(check.component, check.field, check.expected, check.actual)
            count += 1
        self.ctx.verified = True
        logger.info("Verified %d invariants", count)
        return count


def verify_deployment(ctx: DeploymentContext) -> int:
    return InvariantVerifier(ctx).verify()
