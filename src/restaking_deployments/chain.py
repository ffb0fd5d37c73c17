"""Chain collaborator interface for restaking-deployments library."""

from abc import ABC, abstractmethod
from typing import Any, ContextManager

from .types import Calldata


class Chain(ABC):
    """
    Narrow interface to the network being deployed to.

    Every deploy() and transact() call is atomic: it either lands with all of
    its state changes or raises TransactionError and changes nothing.
    Signing, nonce management and broadcasting live behind this interface.
    """

    @property
    @abstractmethod
    def deployer(self) -> str:
        """Address that sends every deployment transaction."""

    @abstractmethod
    def chain_id(self) -> int:
        """Chain identifier of the network."""

    @abstractmethod
    def block_number(self) -> int:
        """Number of the latest block."""

    @abstractmethod
    def deploy(self, contract: str, *args: Any) -> str:
        """
        Create a contract and return its checksummed address.

        Raises:
            TransactionError: If the creation reverts or fails to land
        """

    @abstractmethod
    def transact(self, address: str, contract: str, method: str, *args: Any) -> None:
        """
        Send a state-changing call to a deployed contract.

        Raises:
            TransactionError: If the transaction reverts or fails to land
            AlreadyInitializedError: If the call replays a one-time initializer
        """

    @abstractmethod
    def call(self, address: str, contract: str, method: str, *args: Any) -> Any:
        """
        Perform a read-only call.

        Address results are returned checksummed, integers as int.
        """

    @abstractmethod
    def fork(self) -> ContextManager["Chain"]:
        """
        Disposable copy of this chain at its current state.

        Transactions sent to the fork never reach this chain. The fork keeps
        the chain id and the deployer, and is torn down when the context exits.
        """

    def encode_call(self, contract: str, method: str, *args: Any) -> Calldata:
        """Build calldata for a method, to be passed to proxies or proxy admins."""
        return Calldata(contract, method, tuple(args))
