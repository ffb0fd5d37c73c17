"""JSON-RPC chain backend for restaking-deployments library."""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple

import requests
from eth_utils import to_checksum_address
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception, Web3RPCError
from web3.types import TxReceipt

from .artifacts import ArtifactStore
from .chain import Chain
from .constants import ALREADY_INITIALIZED_REASON
from .exceptions import AlreadyInitializedError, RpcError, TransactionError
from .forking import fork_with_anvil
from .types import Calldata

logger = logging.getLogger(__name__)

REVERT_PREFIX = "execution reverted: "

# Launches a local fork of an endpoint with the given addresses unlocked
ForkLauncher = Callable[[str, Sequence[str]], Any]


def revert_reason(error: ContractLogicError) -> str:
    """Revert reason of a failed call, without the node's "execution reverted" prefix."""
    message = error.message or "execution reverted"
    if message.startswith(REVERT_PREFIX):
        return message[len(REVERT_PREFIX):]
    return message


class RpcChain(Chain):
    """
    Chain reached over HTTP JSON-RPC through web3.

    Transactions are sent with eth_sendTransaction, so signing is done by the
    node (an unlocked development account, or a signer such as Clef in front
    of it). Gas is estimated before anything is broadcast, which surfaces
    revert reasons without spending a transaction.
    """

    def __init__(
        self,
        rpc_url: str,
        artifacts: ArtifactStore,
        deployer: Optional[str] = None,
        poll_interval: float = 1.0,
        receipt_timeout: float = 300.0,
        session: Optional[requests.Session] = None,
        fork_launcher: ForkLauncher = fork_with_anvil,
    ):
        """
        Initialize the chain backend.

        Args:
            rpc_url: JSON-RPC endpoint URL
            artifacts: Store providing ABIs and bytecode
            deployer: Sending address (defaults to the node's first account)
            poll_interval: Seconds between receipt polls
            receipt_timeout: Seconds to wait for a transaction to be mined
            session: Optional requests session to reuse connections
            fork_launcher: Starts the local fork used by fork()
        """
        self.rpc_url = rpc_url
        self.artifacts = artifacts
        self.poll_interval = poll_interval
        self.receipt_timeout = receipt_timeout
        self.fork_launcher = fork_launcher
        self.web3 = Web3(
            Web3.HTTPProvider(
                rpc_url,
                request_kwargs={"timeout": 30},
                session=session,
                exception_retry_configuration=None,
            )
        )
        self._deployer = to_checksum_address(deployer) if deployer else None
        self._chain_id: Optional[int] = None

    @contextmanager
    def _rpc_errors(self, what: str) -> Iterator[None]:
        """
        Translate transport and node failures into RpcError.

        Reverts and receipt timeouts pass through for the caller to attribute.
        """
        try:
            yield
        except (ContractLogicError, TimeExhausted):
            raise
        except Web3RPCError as e:
            error = (e.rpc_response or {}).get("error")
            if not isinstance(error, dict):
                error = {}
            raise RpcError(
                f"RPC error in {what}: {error.get('message', e.message)}",
                code=error.get("code"),
                data=error.get("data"),
            ) from e
        except requests.RequestException as e:
            raise RpcError(f"Network error during {what}: {e}") from e
        except (Web3Exception, ValueError) as e:
            # Malformed replies: non-JSON bodies, or neither result nor error
            raise RpcError(f"Bad response from node during {what}: {e}") from e

    @property
    def deployer(self) -> str:
        if self._deployer is None:
            with self._rpc_errors("eth_accounts"):
                accounts = self.web3.eth.accounts
            if not accounts:
                raise RpcError("Node exposes no accounts; pass a deployer address")
            self._deployer = to_checksum_address(accounts[0])
        return self._deployer

    def chain_id(self) -> int:
        if self._chain_id is None:
            with self._rpc_errors("eth_chainId"):
                self._chain_id = self.web3.eth.chain_id
        return self._chain_id

    def block_number(self) -> int:
        with self._rpc_errors("eth_blockNumber"):
            return self.web3.eth.block_number

    def _contract(self, contract: str, address: Optional[str] = None) -> Contract:
        artifact = self.artifacts.load(contract)
        if address is None:
            return self.web3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        return self.web3.eth.contract(address=to_checksum_address(address), abi=artifact.abi)

    def _encode_args(self, args: Sequence[Any]) -> Tuple[Any, ...]:
        return tuple(self.encode_calldata(a) if isinstance(a, Calldata) else a for a in args)

    def _function(self, address: str, contract: str, method: str, args: Sequence[Any]) -> Any:
        # Raises FunctionNotFoundError before web3 picks an overload
        self.artifacts.load(contract).function_abi(method, len(args))
        return self._contract(contract, address).functions[method](*self._encode_args(args))

    def encode_calldata(self, calldata: Calldata) -> bytes:
        """Encode a Calldata value into selector + ABI-encoded arguments."""
        self.artifacts.load(calldata.contract).function_abi(calldata.method, len(calldata.args))
        encoded = self._contract(calldata.contract).encode_abi(
            calldata.method, args=list(self._encode_args(calldata.args))
        )
        return Web3.to_bytes(hexstr=encoded)

    def _send(self, transaction: Any, contract: str, method: str) -> TxReceipt:
        sender = self.deployer
        try:
            with self._rpc_errors(f"{contract}.{method}"):
                tx_hash = transaction.transact({"from": sender})
                logger.debug("Sent %s.%s in %s", contract, method, Web3.to_hex(tx_hash))
                receipt = self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_interval
                )
        except ContractLogicError as e:
            reason = revert_reason(e)
            error_cls = (
                AlreadyInitializedError
                if ALREADY_INITIALIZED_REASON in reason
                else TransactionError
            )
            raise error_cls(
                f"{contract}.{method} would revert: {reason}",
                contract=contract,
                method=method,
                reason=reason,
            ) from e
        except TimeExhausted as e:
            raise TransactionError(
                f"{contract}.{method}: transaction not mined within {self.receipt_timeout} seconds",
                contract=contract,
                method=method,
            ) from e

        if receipt["status"] != 1:
            raise TransactionError(
                f"{contract}.{method}: transaction {Web3.to_hex(tx_hash)} reverted in block "
                f"{receipt['blockNumber']}",
                contract=contract,
                method=method,
            )
        return receipt

    def deploy(self, contract: str, *args: Any) -> str:
        constructor = self._contract(contract).constructor(*self._encode_args(args))
        receipt = self._send(constructor, contract, "constructor")
        return to_checksum_address(receipt["contractAddress"])

    def transact(self, address: str, contract: str, method: str, *args: Any) -> None:
        self._send(self._function(address, contract, method, args), contract, method)

    def call(self, address: str, contract: str, method: str, *args: Any) -> Any:
        outputs = self.artifacts.load(contract).function_abi(method, len(args)).get("outputs", [])
        function = self._function(address, contract, method, args)
        try:
            with self._rpc_errors(f"{contract}.{method}"):
                result = function.call()
        except ContractLogicError as e:
            reason = revert_reason(e)
            raise TransactionError(
                f"{contract}.{method} reverted: {reason}",
                contract=contract,
                method=method,
                reason=reason,
            ) from e

        if len(outputs) > 1:
            return tuple(result)
        return result

    @contextmanager
    def fork(self) -> Iterator["RpcChain"]:
        """
        Fork the target with anvil and yield a backend pointed at the fork.

        The fork runs the same compiled bytecode through the same ABIs as the
        real deployment, from the same deployer.

        Raises:
            RpcError: If the fork cannot be started or reports another chain id
        """
        deployer = self.deployer
        launch = self.fork_launcher(self.rpc_url, [deployer])
        try:
            forked = RpcChain(
                launch.json_rpc_url,
                self.artifacts,
                deployer=deployer,
                poll_interval=self.poll_interval,
                receipt_timeout=self.receipt_timeout,
                fork_launcher=self.fork_launcher,
            )
            if forked.chain_id() != self.chain_id():
                raise RpcError(
                    f"Fork at {launch.json_rpc_url} reports chain id {forked.chain_id()}, "
                    f"expected {self.chain_id()}"
                )
            yield forked
        finally:
            launch.close()
