"""Unit tests for the JSON-RPC chain backend."""

import json
from pathlib import Path
from typing import Any, Dict, List

import eth_abi
import pytest
import responses
from eth_utils import keccak, to_checksum_address

from restaking_deployments.artifacts import ArtifactStore
from restaking_deployments.exceptions import (
    AlreadyInitializedError,
    FunctionNotFoundError,
    RpcError,
    TransactionError,
)
from restaking_deployments.rpc import RpcChain
from restaking_deployments.types import Calldata

RPC_URL = "http://localhost:8545"
FORK_URL = "http://localhost:8546"
DEPLOYER = to_checksum_address("0x" + "de" * 20)
OWNER = to_checksum_address("0x" + "aa" * 20)
PROXY = to_checksum_address("0x" + "11" * 20)
IMPL = to_checksum_address("0x" + "22" * 20)
PROXY_ADMIN = to_checksum_address("0x" + "ad" * 20)
TX_HASH = "0x" + "ab" * 32

MINED = {
    "transactionHash": TX_HASH,
    "blockHash": "0x" + "bb" * 32,
    "blockNumber": "0x10",
    "status": "0x1",
    "contractAddress": None,
    "gasUsed": "0x5208",
    "logs": [],
}

LATEST_BLOCK = {
    "number": "0x10",
    "hash": "0x" + "bb" * 32,
    "timestamp": "0x0",
    "gasLimit": "0x1c9c380",
    "baseFeePerGas": "0x3b9aca00",
    "extraData": "0x",
    "transactions": [],
}

# Answers every node gives while web3 fills in gas, fees and the chain id
NODE_DEFAULTS = {
    "eth_chainId": "0x7a69",
    "eth_estimateGas": "0x5208",
    "eth_maxPriorityFeePerGas": "0x3b9aca00",
    "eth_getBlockByNumber": LATEST_BLOCK,
}


class Fault:
    """JSON-RPC error object returned by the fake node."""

    def __init__(self, message: str, code: int = 3, data: Any = None):
        self.error = {"code": code, "message": message}
        if data is not None:
            self.error["data"] = data


def revert_data(reason: str) -> str:
    return "0x08c379a0" + eth_abi.encode(["string"], [reason]).hex()


def serve(handlers: Dict[str, Any], url: str = RPC_URL) -> List[Dict[str, Any]]:
    """
    Register a fake node answering JSON-RPC methods from handlers.

    A handler is a result value, a Fault, or a callable taking the params.
    Methods without a handler fall back to NODE_DEFAULTS, then to a
    method-not-found error. Returns the list that received request bodies
    are appended to.
    """
    answers = dict(NODE_DEFAULTS, **handlers)
    received: List[Dict[str, Any]] = []

    def callback(request):
        body = json.loads(request.body)
        received.append(body)
        answer = answers.get(body["method"], Fault("method not found", code=-32601))
        if callable(answer):
            answer = answer(body["params"])
        payload = {"jsonrpc": "2.0", "id": body["id"]}
        if isinstance(answer, Fault):
            payload["error"] = answer.error
        else:
            payload["result"] = answer
        return (200, {}, json.dumps(payload))

    responses.add_callback(responses.POST, url, callback=callback, content_type="application/json")
    return received


def sent_methods(received: List[Dict[str, Any]]) -> List[str]:
    return [body["method"] for body in received]


def params_of(received: List[Dict[str, Any]], method: str) -> List[Any]:
    """Params of the first request for a method."""
    return next(body["params"] for body in received if body["method"] == method)


@pytest.fixture
def store(fixtures_dir: Path) -> ArtifactStore:
    return ArtifactStore(fixtures_dir / "out")


@pytest.fixture
def rpc_chain(store: ArtifactStore) -> RpcChain:
    return RpcChain(RPC_URL, store, deployer=DEPLOYER, poll_interval=0)


class TestRequests:
    """Test node queries and error translation."""

    @responses.activate
    def test_chain_id_is_cached(self, rpc_chain: RpcChain):
        """Test that eth_chainId is requested once."""
        received = serve({"eth_chainId": "0x7a69"})

        assert rpc_chain.chain_id() == 31337
        assert rpc_chain.chain_id() == 31337
        assert sent_methods(received) == ["eth_chainId"]

    @responses.activate
    def test_block_number(self, rpc_chain: RpcChain):
        """Test decoding the latest block number."""
        serve({"eth_blockNumber": "0x1b4"})
        assert rpc_chain.block_number() == 436

    @responses.activate
    def test_deployer_defaults_to_first_account(self, store: ArtifactStore):
        """Test falling back to the node's first account."""
        serve({"eth_accounts": ["0x" + "de" * 20, "0x" + "ef" * 20]})

        assert RpcChain(RPC_URL, store).deployer == DEPLOYER

    @responses.activate
    def test_no_accounts(self, store: ArtifactStore):
        """Test that a node without accounts needs an explicit deployer."""
        serve({"eth_accounts": []})

        with pytest.raises(RpcError, match="no accounts"):
            RpcChain(RPC_URL, store).deployer

    @responses.activate
    def test_rpc_error_object(self, rpc_chain: RpcChain):
        """Test that JSON-RPC errors keep their code."""
        serve({"eth_blockNumber": Fault("header not found", code=-32000)})

        with pytest.raises(RpcError) as excinfo:
            rpc_chain.block_number()

        assert excinfo.value.code == -32000
        assert "header not found" in str(excinfo.value)

    @responses.activate
    def test_http_error(self, rpc_chain: RpcChain):
        """Test that non-200 responses raise RpcError."""
        responses.add(responses.POST, RPC_URL, status=500)

        with pytest.raises(RpcError, match="500"):
            rpc_chain.block_number()

    @responses.activate
    def test_network_error(self, rpc_chain: RpcChain):
        """Test that connection failures raise RpcError."""
        with pytest.raises(RpcError, match="Network error"):
            rpc_chain.block_number()

    @responses.activate
    def test_non_json_body(self, rpc_chain: RpcChain):
        """Test that an HTML page served with status 200 raises RpcError."""
        responses.add(responses.POST, RPC_URL, body="<html>bad gateway</html>", status=200)

        with pytest.raises(RpcError, match="Bad response"):
            rpc_chain.block_number()

    @responses.activate
    def test_reply_without_result(self, rpc_chain: RpcChain):
        """Test that a reply carrying neither result nor error raises RpcError."""

        def callback(request):
            body = json.loads(request.body)
            return (200, {}, json.dumps({"jsonrpc": "2.0", "id": body["id"]}))

        responses.add_callback(responses.POST, RPC_URL, callback=callback, content_type="application/json")

        with pytest.raises(RpcError, match="Bad response"):
            rpc_chain.block_number()


class TestCall:
    """Test read-only calls."""

    @responses.activate
    def test_decodes_address(self, rpc_chain: RpcChain):
        """Test that address results come back checksummed."""
        serve({"eth_call": "0x" + eth_abi.encode(["address"], [OWNER]).hex()})

        assert rpc_chain.call(PROXY, "ProxyAdmin", "owner") == OWNER

    @responses.activate
    def test_encodes_arguments(self, rpc_chain: RpcChain):
        """Test that the selector and arguments are sent."""
        received = serve({"eth_call": "0x" + eth_abi.encode(["address"], [IMPL]).hex()})

        assert rpc_chain.call(PROXY, "ProxyAdmin", "getProxyImplementation", PROXY) == IMPL

        expected = keccak(text="getProxyImplementation(address)")[:4] + eth_abi.encode(["address"], [PROXY])
        assert params_of(received, "eth_call")[0]["data"] == "0x" + expected.hex()

    @responses.activate
    def test_resolves_overloads(self, rpc_chain: RpcChain):
        """Test that paused(uint8) is chosen over paused() by argument count."""
        received = serve({"eth_call": "0x" + eth_abi.encode(["bool"], [True]).hex()})

        assert rpc_chain.call(PROXY, "Slasher", "paused", 3) is True
        assert params_of(received, "eth_call")[0]["data"].startswith("0x" + keccak(text="paused(uint8)")[:4].hex())

    def test_unknown_method(self, rpc_chain: RpcChain):
        """Test that a method missing from the ABI fails before any request."""
        with pytest.raises(FunctionNotFoundError):
            rpc_chain.call(PROXY, "ProxyAdmin", "upgrade", PROXY, IMPL)

    @responses.activate
    def test_revert_becomes_transaction_error(self, rpc_chain: RpcChain):
        """Test that reverted reads surface the revert reason."""
        serve({"eth_call": Fault("execution reverted", data=revert_data("nope"))})

        with pytest.raises(TransactionError) as excinfo:
            rpc_chain.call(PROXY, "ProxyAdmin", "owner")

        assert excinfo.value.reason == "nope"


class TestTransactions:
    """Test deployments and state-changing calls."""

    @responses.activate
    def test_deploy_appends_constructor_arguments(self, rpc_chain: RpcChain, store: ArtifactStore):
        """Test creation data and the returned contract address."""
        received = serve({
            "eth_sendTransaction": TX_HASH,
            "eth_getTransactionReceipt": dict(MINED, contractAddress="0x" + "cc" * 20),
        })

        address = rpc_chain.deploy("Slasher", PROXY, IMPL)

        assert address == to_checksum_address("0x" + "cc" * 20)
        methods = sent_methods(received)
        assert methods.index("eth_estimateGas") < methods.index("eth_sendTransaction")
        tx = params_of(received, "eth_sendTransaction")[0]
        assert tx["from"].lower() == DEPLOYER.lower()
        assert "to" not in tx
        assert tx["data"] == (
            store.load("Slasher").bytecode
            + eth_abi.encode(["address", "address"], [PROXY, IMPL]).hex()
        )

    @responses.activate
    def test_upgrade_and_call_encodes_nested_initializer(self, rpc_chain: RpcChain):
        """Test that initializer calldata is ABI-encoded inside upgradeAndCall."""
        received = serve({"eth_sendTransaction": TX_HASH, "eth_getTransactionReceipt": MINED})

        rpc_chain.transact(
            PROXY_ADMIN, "ProxyAdmin", "upgradeAndCall", PROXY, IMPL,
            Calldata("Slasher", "initialize", (OWNER, PROXY, 2**64 - 1)),
        )

        initializer = keccak(text="initialize(address,address,uint256)")[:4] + eth_abi.encode(
            ["address", "address", "uint256"], [OWNER, PROXY, 2**64 - 1]
        )
        expected = keccak(text="upgradeAndCall(address,address,bytes)")[:4] + eth_abi.encode(
            ["address", "address", "bytes"], [PROXY, IMPL, initializer]
        )
        tx = params_of(received, "eth_sendTransaction")[0]
        assert tx["to"].lower() == PROXY_ADMIN.lower()
        assert tx["data"] == "0x" + expected.hex()

    @responses.activate
    def test_encode_calldata(self, rpc_chain: RpcChain):
        """Test that calldata is encoded locally without a request."""
        data = rpc_chain.encode_calldata(Calldata("ProxyAdmin", "transferOwnership", (OWNER,)))

        assert data == keccak(text="transferOwnership(address)")[:4] + eth_abi.encode(["address"], [OWNER])
        assert len(responses.calls) == 0

    @responses.activate
    def test_estimate_revert_is_not_broadcast(self, rpc_chain: RpcChain):
        """Test that a failing gas estimate stops before eth_sendTransaction."""
        received = serve({
            "eth_estimateGas": Fault(
                "execution reverted", data=revert_data("Ownable: caller is not the owner")
            ),
        })

        with pytest.raises(TransactionError, match="caller is not the owner") as excinfo:
            rpc_chain.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

        assert excinfo.value.reason == "Ownable: caller is not the owner"
        assert "eth_sendTransaction" not in sent_methods(received)

    @responses.activate
    def test_replayed_initializer(self, rpc_chain: RpcChain):
        """Test that the already-initialized reason maps to AlreadyInitializedError."""
        serve({
            "eth_estimateGas": Fault(
                "execution reverted",
                data=revert_data("Initializable: contract is already initialized"),
            ),
        })

        with pytest.raises(AlreadyInitializedError):
            rpc_chain.transact(PROXY, "Slasher", "initialize", OWNER, PROXY, 0)

    @responses.activate
    def test_failed_receipt(self, rpc_chain: RpcChain):
        """Test that a mined but reverted transaction raises."""
        serve({
            "eth_sendTransaction": TX_HASH,
            "eth_getTransactionReceipt": dict(MINED, status="0x0"),
        })

        with pytest.raises(TransactionError, match="reverted in block 16"):
            rpc_chain.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

    @responses.activate
    def test_polls_until_mined(self, rpc_chain: RpcChain):
        """Test that pending receipts are polled again."""
        receipts = iter([None, None, MINED])
        received = serve({
            "eth_sendTransaction": TX_HASH,
            "eth_getTransactionReceipt": lambda params: next(receipts),
        })

        rpc_chain.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

        assert sent_methods(received).count("eth_getTransactionReceipt") == 3

    @responses.activate
    def test_receipt_timeout(self, store: ArtifactStore):
        """Test giving up on transactions that never get mined."""
        serve({"eth_sendTransaction": TX_HASH, "eth_getTransactionReceipt": None})
        chain = RpcChain(RPC_URL, store, deployer=DEPLOYER, poll_interval=0.01, receipt_timeout=0.05)

        with pytest.raises(TransactionError, match="not mined"):
            chain.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

    @responses.activate
    def test_node_failure_during_send(self, rpc_chain: RpcChain):
        """Test that a broken reply mid-transaction is an RpcError, not a crash."""
        serve({"eth_sendTransaction": Fault("nonce too low", code=-32000)})

        with pytest.raises(RpcError, match="nonce too low"):
            rpc_chain.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)


class FakeLaunch:
    """Stands in for a running anvil process."""

    def __init__(self, json_rpc_url: str):
        self.json_rpc_url = json_rpc_url
        self.closed = False

    def close(self):
        self.closed = True


class TestFork:
    """Test forking the target for a rehearsal."""

    @pytest.fixture
    def launches(self) -> List[Any]:
        return []

    @pytest.fixture
    def forking_chain(self, store: ArtifactStore, launches: List[Any]) -> RpcChain:
        def launcher(rpc_url, unlocked_addresses):
            launch = FakeLaunch(FORK_URL)
            launches.append((rpc_url, list(unlocked_addresses), launch))
            return launch

        return RpcChain(RPC_URL, store, deployer=DEPLOYER, poll_interval=0, fork_launcher=launcher)

    @responses.activate
    def test_fork_targets_the_fork_endpoint(self, forking_chain: RpcChain, launches: List[Any]):
        """Test that the fork unlocks the deployer and sends to the fork only."""
        target = serve({})
        fork = serve({"eth_sendTransaction": TX_HASH, "eth_getTransactionReceipt": MINED}, url=FORK_URL)

        with forking_chain.fork() as forked:
            assert forked.rpc_url == FORK_URL
            assert forked.deployer == DEPLOYER
            forked.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

        rpc_url, unlocked, launch = launches[0]
        assert rpc_url == RPC_URL
        assert unlocked == [DEPLOYER]
        assert launch.closed
        assert "eth_sendTransaction" in sent_methods(fork)
        assert "eth_sendTransaction" not in sent_methods(target)

    @responses.activate
    def test_fork_closed_on_failure(self, forking_chain: RpcChain, launches: List[Any]):
        """Test that the fork is torn down when the rehearsal raises."""
        serve({})
        serve({"eth_estimateGas": Fault("execution reverted", data=revert_data("nope"))}, url=FORK_URL)

        with pytest.raises(TransactionError):
            with forking_chain.fork() as forked:
                forked.transact(PROXY, "ProxyAdmin", "transferOwnership", OWNER)

        assert launches[0][2].closed

    @responses.activate
    def test_fork_must_keep_chain_id(self, forking_chain: RpcChain, launches: List[Any]):
        """Test that a fork of another network is refused."""
        serve({"eth_chainId": "0x1"})
        serve({"eth_chainId": "0x4268"}, url=FORK_URL)

        with pytest.raises(RpcError, match="expected 1"):
            with forking_chain.fork():
                pass

        assert launches[0][2].closed
