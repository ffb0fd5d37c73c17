"""Deployment manifest output for restaking-deployments library."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from .context import DeploymentContext
from .exceptions import ManifestError
from .topology import SPECS_BY_NAME
from .types import DeploymentManifest

logger = logging.getLogger(__name__)


def manifest_addresses(ctx: DeploymentContext) -> Dict[str, str]:
    """
    Flatten the registry into the manifest's address table.

    Proxied components appear under their key (the proxy) and under
    key + "Implementation". External dependencies are not recorded.
    """
    addresses: Dict[str, str] = {}
    for component in ctx.registry:
        if component.external:
            continue
        key = SPECS_BY_NAME[component.name].manifest_key
        if component.proxy is not None:
            addresses[key] = component.proxy
            addresses[f"{key}Implementation"] = component.implementation
        else:
            addresses[key] = component.implementation
    return addresses


def build_manifest(ctx: DeploymentContext) -> DeploymentManifest:
    """
    Create the final manifest of a verified deployment.

    Raises:
        ManifestError: If verification has not succeeded for this context
    """
    if not ctx.verified:
        raise ManifestError("Refusing to build a manifest for an unverified deployment")
    if ctx.deployment_block is None:
        raise ManifestError("Deployment block was not recorded")

    return DeploymentManifest(
        addresses=manifest_addresses(ctx),
        strategies={binding.symbol: binding.proxy for binding in ctx.registry.strategies()},
        chain_id=ctx.environment.chain_id,
        deployment_block=ctx.deployment_block,
        parameters=ctx.config.principals(),
        roles=ctx.roles.as_dict(),
    )


def write_manifest(manifest: DeploymentManifest, output_path: Union[Path, str]) -> Path:
    """
    Write a manifest as JSON.

    The document is written to a temporary file beside the target and
    renamed into place, so readers never see a partial manifest. Parent
    directories are created if they don't exist.

    Args:
        manifest: Manifest to write
        output_path: Destination file

    Returns:
        Path written to

    Raises:
        ManifestError: If the file cannot be written; any previous manifest
            at the path is left as it was
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(manifest.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(tmp_name, output_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise ManifestError(f"Cannot write manifest to {output_path}: {e}") from e

    logger.info("Wrote deployment manifest to %s", output_path)
    return output_path


def manifest_from_dict(data: Dict[str, Any]) -> DeploymentManifest:
    """
    Rebuild a manifest from its JSON document layout.

    Raises:
        ManifestError: If a required group or field is missing
    """
    try:
        addresses = dict(data["addresses"])
        strategies = addresses.pop("strategies", {})
        chain_info = data["chainInfo"]
        return DeploymentManifest(
            addresses=addresses,
            strategies=strategies,
            chain_id=int(chain_info["chainId"]),
            deployment_block=int(chain_info["deploymentBlock"]),
            parameters=data["parameters"],
            roles=data.get("roles", {}),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ManifestError(f"Malformed deployment manifest: {e}") from e


def load_manifest(manifest_path: Union[Path, str]) -> DeploymentManifest:
    """
    Load a manifest previously written by write_manifest().

    Raises:
        ManifestError: If the file is missing or is not a valid manifest
    """
    manifest_path = Path(manifest_path)
    try:
        with open(manifest_path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Deployment manifest not found at {manifest_path}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Deployment manifest at {manifest_path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Deployment manifest at {manifest_path} must be a JSON object")
    return manifest_from_dict(data)
