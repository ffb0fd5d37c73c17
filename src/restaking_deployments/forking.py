"""Local anvil forks of a live network, used to rehearse a deployment."""

import logging
from typing import TYPE_CHECKING, Sequence

from .exceptions import RpcError

if TYPE_CHECKING:
    from eth_defi.provider.anvil import AnvilLaunch

logger = logging.getLogger(__name__)


def fork_with_anvil(rpc_url: str, unlocked_addresses: Sequence[str]) -> "AnvilLaunch":
    """
    Start anvil forking the network behind rpc_url.

    The deployer is unlocked on the fork, so transactions sent with
    eth_sendTransaction are signed by anvil instead of the real signer.
    Needs the ``fork`` extra (web3-ethereum-defi) and anvil on the PATH.

    Returns:
        Running launch; its json_rpc_url is the fork endpoint and close()
        stops the process

    Raises:
        RpcError: If the fork cannot be started
    """
    try:
        from eth_defi.provider.anvil import fork_network_anvil
    except ImportError as e:
        raise RpcError(
            "Rehearsing against a node needs web3-ethereum-defi: "
            "pip install 'restaking-deployments[fork]'"
        ) from e

    try:
        launch = fork_network_anvil(rpc_url, unlocked_addresses=list(unlocked_addresses))
    except (AssertionError, OSError) as e:
        raise RpcError(f"Cannot start an anvil fork of {rpc_url}: {e}") from e
    logger.info("Anvil fork of %s started at %s", rpc_url, launch.json_rpc_url)
    return launch
