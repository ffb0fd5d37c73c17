"""Compiled contract artifact parsers for restaking-deployments library."""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import ArtifactNotFoundError, FunctionNotFoundError


class ArtifactFormat(Enum):
    """
    Compiler output formats.

    - FOUNDRY: forge build output, out/<Name>.sol/<Name>.json with bytecode.object
    - HARDHAT: hardhat compile output, artifacts/**/<Name>.json with bytecode string
    """

    FOUNDRY = "foundry"
    HARDHAT = "hardhat"


@dataclass(frozen=True)
class ContractArtifact:
    """ABI and creation bytecode of a compiled contract."""

    name: str
    abi: List[Dict[str, Any]]
    bytecode: str  # 0x-prefixed creation code
    source_format: ArtifactFormat

    def constructor_inputs(self) -> List[Dict[str, Any]]:
        for item in self.abi:
            if item.get("type") == "constructor":
                return item.get("inputs", [])
        return []

    def function_abi(self, method: str, arg_count: int) -> Dict[str, Any]:
        """
        Get ABI definition for a function, resolving overloads by argument count.

        Raises:
            FunctionNotFoundError: If no function matches
        """
        for item in self.abi:
            if (
                item.get("type") == "function"
                and item.get("name") == method
                and len(item.get("inputs", [])) == arg_count
            ):
                return item

        raise FunctionNotFoundError(
            f"Function '{method}' taking {arg_count} arguments not found in {self.name} ABI"
        )


def detect_artifact_format(data: Dict[str, Any]) -> Optional[ArtifactFormat]:
    """
    Detect which compiler produced an artifact document.

    Returns:
        ArtifactFormat.FOUNDRY if bytecode is an object carrying "object"
        ArtifactFormat.HARDHAT if bytecode is a plain hex string
        None if the document has no usable bytecode
    """
    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict) and isinstance(bytecode.get("object"), str):
        return ArtifactFormat.FOUNDRY
    if isinstance(bytecode, str):
        return ArtifactFormat.HARDHAT
    return None


def parse_artifact(file_path: Path, name: Optional[str] = None) -> ContractArtifact:
    """
    Parse a compiled contract artifact.

    Args:
        file_path: Path to the artifact JSON file
        name: Contract name (defaults to the file stem)

    Raises:
        ArtifactNotFoundError: If the file carries no ABI or bytecode
    """
    with open(file_path) as f:
        data = json.load(f)

    artifact_format = detect_artifact_format(data)
    if artifact_format is None or "abi" not in data:
        raise ArtifactNotFoundError(f"No ABI/bytecode in artifact file: {file_path}")

    if artifact_format is ArtifactFormat.FOUNDRY:
        bytecode = data["bytecode"]["object"]
    else:
        bytecode = data["bytecode"]

    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    return ContractArtifact(
        name=name or data.get("contractName") or file_path.stem,
        abi=data["abi"],
        bytecode=bytecode,
        source_format=artifact_format,
    )


def find_artifact_file(artifacts_root: Path, name: str) -> Optional[Path]:
    """
    Locate the artifact file for a contract.

    Checks the foundry layout first, then searches recursively for a
    hardhat artifact (skipping *.dbg.json debug files).
    """
    foundry_file = artifacts_root / f"{name}.sol" / f"{name}.json"
    if foundry_file.exists():
        return foundry_file

    for candidate in sorted(artifacts_root.rglob(f"{name}.json")):
        if candidate.parent.name.endswith(".sol") or candidate.parent == artifacts_root:
            return candidate

    return None


class ArtifactStore:
    """Loads and caches contract artifacts from a build output directory."""

    def __init__(self, artifacts_root: Union[Path, str]):
        self.root = Path(artifacts_root)
        self._cache: Dict[str, ContractArtifact] = {}

    def load(self, name: str) -> ContractArtifact:
        """
        Get the artifact for a contract.

        Raises:
            ArtifactNotFoundError: If no artifact exists for the contract
        """
        if name not in self._cache:
            artifact_file = find_artifact_file(self.root, name)
            if artifact_file is None:
                raise ArtifactNotFoundError(
                    f"Artifact for contract '{name}' not found under {self.root}. "
                    "Compile the contracts first."
                )
            self._cache[name] = parse_artifact(artifact_file, name)
        return self._cache[name]
