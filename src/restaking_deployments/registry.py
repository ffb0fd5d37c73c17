"""In-memory address registry for restaking-deployments library."""

from dataclasses import replace
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .exceptions import RegistryError
from .types import Component, ComponentKind, StrategyBinding


class AddressRegistry:
    """
    Maps logical component names to their deployed addresses.

    Components are appended during provisioning; afterwards the only
    permitted mutations are attaching an implementation address, once,
    and recording diagnostic parameters. Components are immutable, so
    both replace the stored entry. Proxy addresses never change after they
    are assigned. Once frozen, the registry is read-only.
    """

    def __init__(self):
        self._components: Dict[str, Component] = {}
        self._strategies: Dict[str, StrategyBinding] = {}
        self._frozen = False

    def _check_writable(self) -> None:
        if self._frozen:
            raise RegistryError("Address registry is frozen")

    def add(self, component: Component) -> Component:
        """
        Append a component.

        Raises:
            RegistryError: If a component with the same name exists or the registry is frozen
        """
        self._check_writable()
        if component.name in self._components:
            raise RegistryError(f"Component '{component.name}' is already registered")
        self._components[component.name] = component
        return component

    def register_proxy(self, name: str, contract: str, proxy: str) -> Component:
        """Record the stable proxy address of an upgradeable component."""
        return self.add(
            Component(name=name, kind=ComponentKind.SINGLETON_PROXY, contract=contract, proxy=proxy)
        )

    def register_contract(
        self,
        name: str,
        contract: str,
        address: str,
        kind: ComponentKind = ComponentKind.NON_UPGRADEABLE,
        external: bool = False,
    ) -> Component:
        """Record a component whose address is its implementation address."""
        return self.add(
            Component(
                name=name, kind=kind, contract=contract, implementation=address, external=external
            )
        )

    def attach_implementation(self, name: str, implementation: str) -> Component:
        """
        Attach the implementation address to a proxied component.

        Raises:
            RegistryError: If the component is unknown, has no proxy or
                already has an implementation
        """
        self._check_writable()
        component = self.get(name)
        if component.proxy is None:
            raise RegistryError(f"Component '{name}' has no proxy to attach an implementation to")
        if component.implementation is not None:
            raise RegistryError(
                f"Component '{name}' already has implementation {component.implementation}"
            )
        component = replace(component, implementation=implementation)
        self._components[name] = component
        return component

    def record_parameters(self, name: str, values: Mapping[str, Any]) -> Component:
        """Merge diagnostic parameters into a registered component."""
        self._check_writable()
        component = self.get(name)
        component = replace(component, parameters={**component.parameters, **values})
        self._components[name] = component
        return component

    def add_strategy(self, binding: StrategyBinding) -> StrategyBinding:
        self._check_writable()
        if binding.symbol in self._strategies:
            raise RegistryError(f"Strategy '{binding.symbol}' is already registered")
        self._strategies[binding.symbol] = binding
        return binding

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Component:
        """
        Get a component by logical name.

        Raises:
            RegistryError: If the component is not registered
        """
        if name not in self._components:
            raise RegistryError(f"Component '{name}' is not registered")
        return self._components[name]

    def has(self, name: str) -> bool:
        return name in self._components

    def address(self, name: str) -> str:
        """
        Address peers use to reach a component (proxy if it has one).

        Raises:
            RegistryError: If the component is unknown or has no address yet
        """
        address = self.get(name).address
        if address is None:
            raise RegistryError(f"Component '{name}' has no address yet")
        return address

    def proxy(self, name: str) -> str:
        proxy = self.get(name).proxy
        if proxy is None:
            raise RegistryError(f"Component '{name}' has no proxy")
        return proxy

    def implementation(self, name: str) -> str:
        implementation = self.get(name).implementation
        if implementation is None:
            raise RegistryError(f"Component '{name}' has no implementation yet")
        return implementation

    def strategy(self, symbol: str) -> StrategyBinding:
        if symbol not in self._strategies:
            raise RegistryError(f"Strategy '{symbol}' is not registered")
        return self._strategies[symbol]

    def strategies(self) -> List[StrategyBinding]:
        """Strategy bindings in the order they were provisioned."""
        return list(self._strategies.values())

    def components(self) -> List[Component]:
        """Components in the order they were registered."""
        return list(self._components.values())

    def find_by_address(self, address: str) -> Optional[str]:
        """Reverse lookup of a component name by proxy or implementation address."""
        wanted = address.lower()
        for component in self._components.values():
            for candidate in (component.proxy, component.implementation):
                if candidate is not None and candidate.lower() == wanted:
                    return component.name
        return None

    def __iter__(self) -> Iterator[Component]:
        return iter(self.components())

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, name: object) -> bool:
        return name in self._components
