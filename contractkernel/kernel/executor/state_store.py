"""State store: session state snapshot I/O and side-effect reconciliation.

State is a plain ``dict[str, Any]``. :func:`apply_side_effects` never mutates
its input; it returns the next state. The store does not lock: hosts serving
concurrent sessions against one snapshot path must serialize
load-mutate-save themselves.
"""

import copy
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from contractkernel.kernel.executor.command_contract import CommandSpec, Contract, SetStateRule
from contractkernel.kernel.executor.command_parser import Command
from contractkernel.kernel.executor.errors import StateCorruptionError
from contractkernel.kernel.executor.results import Result
from contractkernel.kernel.executor.templates import evaluate

logger = logging.getLogger(__name__)

# fromResult path meaning "the whole output"
WHOLE_RESULT = "."


def default_state(contract: Contract) -> dict[str, Any]:
    """A deep copy of the contract's state defaults."""
    return copy.deepcopy(dict(contract.state_defaults))


def load_state(path: str | Path, contract: Contract) -> dict[str, Any]:
    """Load session state: defaults overlaid with the snapshot at ``path``.

    Args:
        path: Context snapshot file
        contract: Contract providing ``state_defaults``

    Returns:
        Fresh state dict

    Raises:
        StateCorruptionError: If the snapshot exists but is unreadable or not a JSON object
    """
    path = Path(path)
    state = default_state(contract)
    if not path.exists():
        return state

    try:
        snapshot = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StateCorruptionError(f"Corrupt context snapshot {path}: {e}", path=str(path)) from e

    if not isinstance(snapshot, dict):
        raise StateCorruptionError(
            f"Corrupt context snapshot {path}: expected a JSON object", path=str(path)
        )

    state.update(snapshot)
    return state


def save_state(state: Mapping[str, Any], path: str | Path, contract: Contract | None = None) -> None:
    """Write ``state`` to ``path`` as a JSON object, creating parent directories.

    The file is replaced atomically so a crash never leaves a half-written
    snapshot. ``contract`` is accepted for symmetry with :func:`load_state`.

    Raises:
        TypeError: If a value is not JSON-representable
        OSError: If the file cannot be written
    """
    path = Path(path)
    payload = json.dumps(dict(state), indent=2)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def extract_result(output: Any, path: str) -> tuple[bool, Any]:
    """Follow a dotted ``path`` into a handler's output.

    ``"."`` selects the whole output. Other paths walk nested mappings key by
    key; anything else along the way (a list, a scalar, a missing key)
    yields no value.

    Returns:
        ``(found, value)``
    """
    if path == WHOLE_RESULT:
        return output is not None, output

    current = output
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return False, None
        current = current[key]
    return True, current


def _state_value(rule: SetStateRule, args: Mapping[str, Any], result: Result) -> tuple[bool, Any]:
    if rule.from_param and args.get(rule.from_param) is not None:
        return True, args[rule.from_param]
    if rule.template:
        return True, evaluate(rule.template, {**args, "result": result.output})
    if rule.from_result:
        return extract_result(result.output, rule.from_result)
    return False, None


def apply_side_effects(
    state: Mapping[str, Any],
    command: Command,
    result: Result,
    spec: CommandSpec,
) -> dict[str, Any]:
    """Compute the state after a successful command.

    Order: ``set_state``, then ``clear_state``, then ``clear_state_if``.
    A failed result leaves state unchanged.

    Args:
        state: Current state (not modified)
        command: Canonical command with validated args
        result: The command's result
        spec: The command's contract

    Returns:
        The next state
    """
    next_state = dict(state)
    effects = spec.side_effects
    if effects is None or not result.ok:
        return next_state

    args = command.args
    for key, rule in effects.set_state.items():
        produced, value = _state_value(rule, args, result)
        if produced:
            next_state[key] = value

    for key in effects.clear_state:
        next_state.pop(key, None)

    for key, rule in effects.clear_state_if.items():
        supplied = args.get(rule.from_param)
        if supplied is None or key not in next_state:
            continue
        # bool is an int subclass: True must not match a stored 1
        if type(supplied) is type(next_state[key]) and supplied == next_state[key]:
            next_state.pop(key)
        else:
            logger.debug("Keeping state '%s': argument does not match stored value", key)

    return next_state


def mutates_state(spec: CommandSpec) -> bool:
    """True when the command declares any side effect."""
    effects = spec.side_effects
    return effects is not None and bool(
        effects.set_state or effects.clear_state or effects.clear_state_if
    )
