"""ParamValidator: applies a command's parameter contract to raw arguments.

Type coercion is done here; constraint checks (numeric bounds, string
length, pattern, enum) are delegated to a JSON Schema generated from each
ParamSpec. JSON Schema keywords only apply to matching instance types, so
``min`` never fires on a string and ``pattern`` never fires on a number.
All violations are collected; nothing short-circuits.
"""

import base64
import binascii
import json
import math
import re
from collections.abc import Mapping
from typing import Any

import jsonschema
from jsonschema import Draft7Validator
from pydantic import BaseModel, Field

from contractkernel.kernel.executor.command_contract import ParamSpec

_INTEGER_TEXT = re.compile(r"^[+-]?\d+$")
_DATA_URL = re.compile(r"^data:([^;,]+);base64,(.*)$", re.DOTALL)

# Sentinel returned by coercers that do not match
_NO_MATCH = object()


class ValidationOutcome(BaseModel):
    """Validation verdict plus canonicalized arguments."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    args: dict[str, Any] = Field(default_factory=dict)


def _coerce_string(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return _NO_MATCH


def _coerce_integer(value: Any) -> Any:
    if isinstance(value, bool):
        return _NO_MATCH
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_TEXT.match(value.strip()):
        return int(value.strip())
    return _NO_MATCH


def _coerce_number(value: Any) -> Any:
    if isinstance(value, bool):
        return _NO_MATCH
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_TEXT.match(text):
            return int(text)
        try:
            number = float(text)
        except ValueError:
            return _NO_MATCH
        if math.isfinite(number):
            return number
    return _NO_MATCH


def _coerce_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return _NO_MATCH


def _decode_json(value: Any, expected: type) -> Any:
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return _NO_MATCH
        if isinstance(decoded, expected):
            return decoded
    return _NO_MATCH


def _coerce_array(value: Any) -> Any:
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return _decode_json(value, list)


def _coerce_object(value: Any) -> Any:
    if isinstance(value, dict):
        return value
    return _decode_json(value, dict)


def _coerce_buffer(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        return _NO_MATCH

    match = _DATA_URL.match(value.strip())
    payload = match.group(2) if match else value.strip()
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return _NO_MATCH


def _coerce_enum(value: Any) -> Any:
    # Membership is checked by the enum constraint
    if isinstance(value, (dict, list)):
        return _NO_MATCH
    return value


def _coerce_any(value: Any) -> Any:
    return value


COERCERS = {
    "string": _coerce_string,
    "integer": _coerce_integer,
    "number": _coerce_number,
    "boolean": _coerce_boolean,
    "array": _coerce_array,
    "object": _coerce_object,
    "buffer": _coerce_buffer,
    "enum": _coerce_enum,
    "any": _coerce_any,
}


def coerce(value: Any, spec: ParamSpec) -> Any:
    """Coerce ``value`` to the first union member it satisfies.

    Returns:
        The coerced value, or the module's no-match sentinel
    """
    for type_name in spec.types:
        coerced = COERCERS[type_name](value)
        if coerced is not _NO_MATCH:
            return coerced
    return _NO_MATCH


def constraint_schema(spec: ParamSpec) -> dict[str, Any]:
    """JSON Schema carrying the constraint keywords of ``spec``."""
    schema: dict[str, Any] = {}
    if spec.min is not None:
        schema["minimum"] = spec.min
    if spec.max is not None:
        schema["maximum"] = spec.max
    if spec.min_length is not None:
        schema["minLength"] = spec.min_length
    if spec.max_length is not None:
        schema["maxLength"] = spec.max_length
    if spec.pattern is not None:
        schema["pattern"] = spec.pattern
    if spec.enum is not None:
        schema["enum"] = spec.enum
    return schema


def _describe(name: str, spec: ParamSpec, error: jsonschema.ValidationError) -> str:
    keyword = error.validator
    if keyword == "minimum":
        return f"Parameter {name} must be at least {_number(spec.min)}"
    if keyword == "maximum":
        return f"Parameter {name} must be at most {_number(spec.max)}"
    if keyword == "minLength":
        return f"Parameter {name} must be at least {spec.min_length} characters"
    if keyword == "maxLength":
        return f"Parameter {name} must be at most {spec.max_length} characters"
    if keyword == "pattern":
        return f"Parameter {name} must match pattern {spec.pattern}"
    if keyword == "enum":
        allowed = ", ".join(str(option) for option in spec.enum or [])
        return f"Parameter {name} must be one of: {allowed}"
    return f"Parameter {name}: {error.message}"


def _number(value: float | None) -> str:
    if value is not None and float(value).is_integer():
        return str(int(value))
    return str(value)


class ParamValidator:
    """Validates and coerces arguments against parameter contracts."""

    def check_constraints(self, name: str, value: Any, spec: ParamSpec) -> list[str]:
        """Return every constraint violation for an already-coerced value."""
        schema = constraint_schema(spec)
        if not schema:
            return []
        try:
            Draft7Validator.check_schema(schema)
            validator = Draft7Validator(schema)
            return [_describe(name, spec, error) for error in validator.iter_errors(value)]
        except jsonschema.exceptions.SchemaError as e:
            return [f"Parameter {name} has a malformed constraint: {e.message}"]

    def validate(
        self,
        args: Mapping[str, Any],
        params: Mapping[str, ParamSpec],
        state: Mapping[str, Any] | None = None,
    ) -> ValidationOutcome:
        """Validate ``args`` against ``params``.

        Absent values (missing or ``None``) are filled from
        ``state[runtime_fallback]``, then from ``default``. Required
        parameters still absent are errors.

        Args:
            args: Raw arguments, possibly still strings
            params: Parameter contracts by name
            state: Current session state, for runtime fallbacks

        Returns:
            ValidationOutcome; ``args`` holds coerced values for declared
            parameters that ended up present
        """
        state = state or {}
        errors: list[str] = []
        canonical: dict[str, Any] = {}

        lowered = {name.lower(): name for name in params}
        supplied: dict[str, Any] = {}
        for key, value in args.items():
            param_name = key if key in params else lowered.get(key.lower())
            if param_name is None:
                errors.append(f"Unknown parameter: {key}")
                continue
            supplied[param_name] = value

        for name, spec in params.items():
            value = supplied.get(name)

            if value is None and spec.runtime_fallback is not None:
                value = state.get(spec.runtime_fallback)
            if value is None and spec.has_default:
                value = spec.default

            if value is None:
                if spec.required:
                    errors.append(f"Missing required parameter: {name}")
                continue

            coerced = coerce(value, spec)
            if coerced is _NO_MATCH:
                errors.append(f"Parameter {name} must be of type: {spec.type}")
                continue

            errors.extend(self.check_constraints(name, coerced, spec))
            canonical[name] = coerced

        return ValidationOutcome(is_valid=not errors, errors=errors, args=canonical)
