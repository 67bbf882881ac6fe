"""CommandParser: text and structured invocations to canonical commands.

Supported forms, tried in this order:

1. CLI-style       ``copy file_a file_b mode=fast``
2. Object-call     ``copy({src: "file_a", dst: "file_b"})``
3. Function-call   ``copy(file_a, file_b, mode=fast)``
4. Simple          ``status`` (rewritten to ``status()``)

CLI-style is only attempted when the command is unknown or declares at least
one required parameter. For an all-optional command, ``cmd text`` would
otherwise bind ``text`` to nothing, so such lines fall through and fail as
unparseable.

Function-call arguments are split on every top-level comma. There is no
nesting awareness: ``f([1, 2])`` splits inside the brackets. Use the
object-call form for values containing commas.

A line holding a JSON object with a ``name`` key (``{"name": "copy", "args":
{...}}``) is taken as a structured invocation before any of the above.

Object-call values keep their JSON types; only the text forms normalize bare
literals.

The parser never raises on malformed grammar; errors are returned in
``ParseOutcome.error``.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from contractkernel.kernel.executor.builtin_commands import find_builtin
from contractkernel.kernel.executor.command_contract import CommandSpec, Contract
from contractkernel.kernel.executor.errors import ParseError


class _Undefined:
    """Marker for the ``undefined`` literal: the argument counts as absent."""

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()

_OBJECT_CALL = re.compile(r"^(\w+)\s*\(\s*(\{.*\})\s*\)\s*$", re.DOTALL)
_FUNCTION_CALL = re.compile(r"^(\w+)\s*\(\s*(.*?)\s*\)\s*$", re.DOTALL)
_SIMPLE = re.compile(r"^(\w+)\s*$")
_CLI_STYLE = re.compile(r"^(\w+)\s+(.+)$", re.DOTALL)
_NAMED_ARG = re.compile(r"^(\w+)\s*=(.*)$", re.DOTALL)
_CLI_TOKEN = re.compile(r"""(?:[^\s"']+|"[^"]*"|'[^']*')+""")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_$][\w$]*)(\s*:)")
_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")

_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None, "undefined": UNDEFINED}


class Command(BaseModel):
    """Canonical invocation, independent of the input grammar."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ParseOutcome(BaseModel):
    """Either a command or an error message."""

    error: str | None = None
    command: Command | None = None

    @classmethod
    def failure(cls, message: str) -> "ParseOutcome":
        return cls(error=message)

    def unwrap(self) -> Command:
        """Return the command, or raise ParseError carrying the message."""
        if self.error is not None or self.command is None:
            raise ParseError(self.error or "Could not parse command")
        return self.command


def normalize_value(value: Any) -> Any:
    """Convert bare literals to native values.

    Surrounding quotes are stripped and the content kept as a string.
    Unquoted ``true``/``false``/``null``/``undefined`` and integer or decimal
    literals are converted. Everything else is returned as a trimmed string
    for the parameter contract to coerce later.
    """
    if not isinstance(value, str):
        return value

    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in "\"'":
        return trimmed[1:-1]
    if trimmed in _LITERALS:
        return _LITERALS[trimmed]
    if _INTEGER.match(trimmed):
        return int(trimmed)
    if _DECIMAL.match(trimmed):
        return float(trimmed)
    return trimmed


def _strip_undefined(args: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in args.items() if value is not UNDEFINED}


def _json_invocation(text: str) -> dict[str, Any] | None:
    """Decode a ``{"name": ..., "args": {...}}`` command typed as JSON text."""
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(decoded, dict) and "name" in decoded:
        return decoded
    return None


class CommandParser:
    """Parses invocations against a contract."""

    def __init__(self, contract: Contract) -> None:
        self._contract = contract

    def parse(self, text: str) -> ParseOutcome:
        """Parse one line of input.

        Args:
            text: Raw command line

        Returns:
            ParseOutcome with either ``command`` or ``error`` set
        """
        if not isinstance(text, str) or not text.strip():
            return ParseOutcome.failure("Invalid input: must be a non-empty string")

        trimmed = text.strip()

        if trimmed.startswith("{"):
            structured = _json_invocation(trimmed)
            if structured is not None:
                return self.parse_structured(structured)

        cli_match = _CLI_STYLE.match(trimmed)
        if cli_match and not cli_match.group(2).lstrip().startswith(("(", "{")):
            spec = self._lookup(cli_match.group(1))
            if spec is None or spec.required_parameters:
                return self._parse_cli_style(cli_match.group(1), cli_match.group(2))

        object_match = _OBJECT_CALL.match(trimmed)
        if object_match:
            return self._parse_object_call(object_match.group(1), object_match.group(2))

        function_match = _FUNCTION_CALL.match(trimmed)
        if function_match:
            return self._parse_function_call(function_match.group(1), function_match.group(2))

        simple_match = _SIMPLE.match(trimmed)
        if simple_match:
            return self._parse_function_call(simple_match.group(1), "")

        return ParseOutcome.failure(f"Could not parse command: {text}")

    def parse_structured(self, invocation: Command | Mapping[str, Any]) -> ParseOutcome:
        """Accept a native ``{name, args}`` invocation.

        Unknown names are passed through so the dispatcher reports them.
        """
        if isinstance(invocation, Command):
            name, args = invocation.name, invocation.args
        elif isinstance(invocation, Mapping):
            name, args = invocation.get("name"), invocation.get("args") or {}
        else:
            return ParseOutcome.failure("Invalid input: expected {name, args}")

        if not isinstance(name, str) or not name:
            return ParseOutcome.failure("Invalid input: command name must be a non-empty string")
        if not isinstance(args, Mapping):
            return ParseOutcome.failure("Invalid input: args must be an object")

        spec = self._lookup(name)
        canonical = spec.name if spec else name
        return ParseOutcome(command=Command(name=canonical, args=_strip_undefined(dict(args))))

    def _lookup(self, name: str) -> CommandSpec | None:
        return self._contract.find_command(name) or find_builtin(name)

    def _parse_cli_style(self, name: str, rest: str) -> ParseOutcome:
        spec = self._lookup(name)
        if spec is None:
            return ParseOutcome.failure(f"Unknown command: {name}")

        tokens = _CLI_TOKEN.findall(rest)
        positional: list[str] = []
        named: list[str] = []
        for token in tokens:
            if _NAMED_ARG.match(token):
                named.append(token)
            else:
                positional.append(token)

        required = spec.required_parameters
        if len(positional) > len(required):
            return ParseOutcome.failure(f"Too many positional parameters for {spec.name}")

        args: dict[str, Any] = {}
        for param_name, token in zip(required, positional):
            args[param_name] = normalize_value(token)

        error = self._bind_named(spec, named, args)
        if error:
            return ParseOutcome.failure(error)
        return ParseOutcome(command=Command(name=spec.name, args=_strip_undefined(args)))

    def _parse_object_call(self, name: str, body: str) -> ParseOutcome:
        spec = self._lookup(name)
        if spec is None:
            return ParseOutcome.failure(f"Unknown command: {name}")

        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            try:
                parsed = json.loads(_BARE_KEY.sub(r'\1"\2"\3', body))
            except json.JSONDecodeError:
                return ParseOutcome.failure(f"Invalid object syntax: {body}")

        if not isinstance(parsed, dict):
            return ParseOutcome.failure(f"Invalid object syntax: {body}")

        args: dict[str, Any] = {}
        for key, value in parsed.items():
            param_name = spec.find_parameter(key)
            if param_name is None:
                return ParseOutcome.failure(f"Unknown parameter: {key}")
            # JSON values are already typed; quoted text stays text
            args[param_name] = value
        return ParseOutcome(command=Command(name=spec.name, args=args))

    def _parse_function_call(self, name: str, body: str) -> ParseOutcome:
        spec = self._lookup(name)
        if spec is None:
            return ParseOutcome.failure(f"Unknown command: {name}")

        tokens = [token.strip() for token in body.split(",")]
        tokens = [token for token in tokens if token]

        named = [token for token in tokens if _NAMED_ARG.match(token)]
        positional = [token for token in tokens if not _NAMED_ARG.match(token)]

        required = spec.required_parameters
        if len(positional) > len(required):
            return ParseOutcome.failure(f"Too many positional parameters for {spec.name}")

        args: dict[str, Any] = {}
        for param_name, token in zip(required, positional):
            args[param_name] = normalize_value(token)

        error = self._bind_named(spec, named, args)
        if error:
            return ParseOutcome.failure(error)
        return ParseOutcome(command=Command(name=spec.name, args=_strip_undefined(args)))

    @staticmethod
    def _bind_named(spec: CommandSpec, tokens: list[str], args: dict[str, Any]) -> str | None:
        for token in tokens:
            match = _NAMED_ARG.match(token)
            key, raw = match.group(1), match.group(2).strip()
            if not raw:
                return f"Invalid named parameter: {token}"
            param_name = spec.find_parameter(key)
            if param_name is None:
                return f"Unknown parameter: {key}"
            args[param_name] = normalize_value(raw)
        return None


def parse(text: str, contract: Contract) -> ParseOutcome:
    """Parse ``text`` against ``contract``."""
    return CommandParser(contract).parse(text)
