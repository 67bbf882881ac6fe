"""Manifest loading from JSON or YAML files.

A manifest is either a single file holding the whole contract, or a
directory holding ``contract.(json|yaml)`` plus an optional
``commands.(json|yaml)`` mapping command names to their specs.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from contractkernel.kernel.executor.command_contract import Contract
from contractkernel.kernel.executor.errors import ManifestLoadError

logger = logging.getLogger(__name__)

_SUFFIXES = (".json", ".yaml", ".yml")


def _read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestLoadError(f"Cannot read manifest {path}: {e}", path=str(path)) from e

    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestLoadError(f"Malformed manifest {path}: {e}", path=str(path)) from e


def _find(directory: Path, stem: str) -> Path | None:
    for suffix in _SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def contract_from_data(data: Any, origin: str = "") -> Contract:
    """Build a Contract from already-decoded manifest data.

    Raises:
        ManifestLoadError: If the data violates the contract model
    """
    if not isinstance(data, dict):
        raise ManifestLoadError(f"Manifest {origin or '<data>'} must be an object", path=origin)
    try:
        return Contract.model_validate(data)
    except ValidationError as e:
        raise ManifestLoadError(f"Invalid manifest {origin or '<data>'}: {e}", path=origin) from e


def load_manifest(path: str | Path) -> Contract:
    """Load a contract from a manifest file or manifest directory.

    Args:
        path: Manifest file (.json/.yaml/.yml) or directory

    Returns:
        Validated Contract

    Raises:
        ManifestLoadError: If the manifest is missing, malformed or invalid
    """
    path = Path(path)

    if path.is_dir():
        contract_path = _find(path, "contract")
        if contract_path is None:
            raise ManifestLoadError(f"No contract file found in {path}", path=str(path))
        data = _read_document(contract_path)
        if not isinstance(data, dict):
            raise ManifestLoadError(f"Manifest {contract_path} must be an object", path=str(contract_path))

        commands_path = _find(path, "commands")
        if commands_path is not None:
            commands = _read_document(commands_path)
            if not isinstance(commands, dict):
                raise ManifestLoadError(
                    f"Commands file {commands_path} must map names to specs",
                    path=str(commands_path),
                )
            merged = dict(commands)
            # Local commands take priority over inline ones with the same name
            for inline in _as_list(data.get("commands")):
                merged.setdefault(inline.get("name"), inline)
            data = {**data, "commands": merged}
        origin = str(contract_path)
    elif path.is_file():
        data = _read_document(path)
        origin = str(path)
    else:
        raise ManifestLoadError(f"Manifest not found: {path}", path=str(path))

    contract = contract_from_data(data, origin=origin)
    logger.info("Loaded manifest %s with %d command(s)", origin, len(contract.commands))
    return contract


def _as_list(commands: Any) -> list[dict[str, Any]]:
    if isinstance(commands, dict):
        return [{"name": name, **(spec or {})} for name, spec in commands.items()]
    if isinstance(commands, list):
        return [entry for entry in commands if isinstance(entry, dict)]
    return []
