"""Deployment context threaded through every phase."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from .chain import Chain
from .config import DeploymentConfig, Environment
from .exceptions import TransactionError
from .registry import AddressRegistry
from .types import RoleAssignment

logger = logging.getLogger(__name__)


@contextmanager
def naming_component(name: str) -> Iterator[None]:
    """Attribute any failed transaction inside the block to a logical component."""
    try:
        yield
    except TransactionError as e:
        logger.error("Deploying %s failed: %s", name, e.for_component(name))
        raise


@dataclass
class DeploymentContext:
    """
    In-progress state of one deployment run.

    Each phase function takes the context produced by the previous phase, so a
    phase can be exercised on its own against a fabricated prior context.
    """

    chain: Chain
    config: DeploymentConfig
    environment: Environment
    registry: AddressRegistry = field(default_factory=AddressRegistry)
    deployment_block: Optional[int] = None
    verified: bool = False

    @property
    def roles(self) -> RoleAssignment:
        return self.config.roles()

    def read(self, name: str, method: str, *args: Any) -> Any:
        """Read from a registered component through the address peers use."""
        component = self.registry.get(name)
        return self.chain.call(self.registry.address(name), component.contract, method, *args)
