"""Path management utilities for restaking-deployments library."""

from pathlib import Path
from typing import Optional, Union

from .constants import NETWORK_CONFIG


def get_default_config_path() -> Path:
    """
    Get default deployment configuration path.

    Returns:
        Path to ./script/configs/deploy.config.json
    """
    return Path.cwd() / "script" / "configs" / "deploy.config.json"


def get_default_artifacts_dir() -> Path:
    """
    Get default compiled artifacts directory (Foundry layout).

    Returns:
        Path to ./out
    """
    return Path.cwd() / "out"


def get_default_output_dir() -> Path:
    """
    Get default directory for deployment manifests.

    Returns:
        Path to ./script/output
    """
    return Path.cwd() / "script" / "output"


def get_manifest_path(
    output_root: Optional[Union[Path, str]] = None, chain_id: Optional[int] = None
) -> Path:
    """
    Get the manifest file path for a chain.

    Args:
        output_root: Custom output directory (defaults to ./script/output)
        chain_id: Target chain id; known chains use their short name

    Returns:
        Path to <output_root>/<network>/deployment.output.json, or
        <output_root>/deployment.output.json when no chain id is given
    """
    if output_root is None:
        output_root = get_default_output_dir()
    else:
        output_root = Path(output_root).absolute()

    if chain_id is None:
        return output_root / "deployment.output.json"

    network = NETWORK_CONFIG.get(chain_id, {}).get("short_name", str(chain_id))
    return output_root / network / "deployment.output.json"
