"""Contract model: the command catalog a kernel interprets.

Manifests are written in camelCase JSON/YAML (``commandType``,
``successOutput``, ``runtimeFallback`` ...). Every field also accepts its
snake_case name.
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PARAM_TYPES = frozenset(
    {"string", "integer", "number", "boolean", "array", "buffer", "enum", "object", "any"}
)


class _ManifestModel(BaseModel):
    # Contract is immutable after load; unknown manifest keys (help text, routes) are ignored
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ParamSpec(_ManifestModel):
    """Contract for a single command parameter."""

    type: str = "string"  # One of PARAM_TYPES, or a "|"-delimited union
    required: bool = False
    default: Any = None
    runtime_fallback: str | None = Field(default=None, alias="runtimeFallback")
    description: str = ""

    # Constraints
    min: float | None = None
    max: float | None = None
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    pattern: str | None = None
    enum: list[Any] | None = None

    @field_validator("type")
    @classmethod
    def _check_type(cls, value: str) -> str:
        members = [member.strip() for member in value.split("|")]
        unknown = [member for member in members if member not in PARAM_TYPES]
        if unknown:
            raise ValueError(f"unknown parameter type(s): {', '.join(unknown)}")
        return "|".join(members)

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    @property
    def types(self) -> list[str]:
        """Union members, in declaration order."""
        return self.type.split("|")

    @property
    def has_default(self) -> bool:
        """True when the manifest declared a default (even a null one)."""
        return "default" in self.model_fields_set


class SetStateRule(_ManifestModel):
    """How to compute a state value after a successful command.

    Sources are tried in order: ``from_param``, ``template``, ``from_result``.
    """

    from_param: str | None = Field(default=None, alias="fromParam")
    template: str | None = None
    from_result: str | None = Field(default=None, alias="fromResult")


class ClearStateIfRule(_ManifestModel):
    """Clear a key only when the named argument equals its stored value."""

    from_param: str = Field(alias="fromParam")


class SideEffects(_ManifestModel):
    """State mutations declared by a command."""

    set_state: dict[str, SetStateRule] = Field(default_factory=dict, alias="setState")
    clear_state: list[str] = Field(default_factory=list, alias="clearState")
    clear_state_if: dict[str, ClearStateIfRule] = Field(
        default_factory=dict, alias="clearStateIf"
    )


class CommandSpec(_ManifestModel):
    """One command's parameters and behavior."""

    name: str
    description: str = ""
    command_type: Literal["internal", "external-method"] = Field(
        default="internal", alias="commandType"
    )
    parameters: dict[str, ParamSpec] = Field(default_factory=dict)

    # external-method only
    source: str | None = None
    method_name: str | None = Field(default=None, alias="methodName")

    success_output: str | None = Field(default=None, alias="successOutput")
    side_effects: SideEffects | None = Field(default=None, alias="sideEffects")
    examples: list[str] = Field(default_factory=list)

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_from_list(cls, value: Any) -> Any:
        # Older manifests list parameters as [{"name": ..., ...}]
        if isinstance(value, list):
            mapping = {}
            for entry in value:
                if not isinstance(entry, dict) or "name" not in entry:
                    raise ValueError("parameter list entries need a 'name'")
                fields = dict(entry)
                mapping[fields.pop("name")] = fields
            return mapping
        return value

    @model_validator(mode="after")
    def _check_external(self) -> "CommandSpec":
        if self.command_type == "external-method":
            if not self.source or not self.method_name:
                raise ValueError(
                    f"external-method command '{self.name}' requires 'source' and 'methodName'"
                )
        return self

    @property
    def required_parameters(self) -> list[str]:
        """Names of required parameters, in declaration order."""
        return [name for name, spec in self.parameters.items() if spec.required]

    def find_parameter(self, key: str) -> str | None:
        """Match an argument key to a declared parameter name, ignoring case."""
        if key in self.parameters:
            return key
        lowered = key.lower()
        for name in self.parameters:
            if name.lower() == lowered:
                return name
        return None


class Contract(_ManifestModel):
    """The command catalog plus global configuration.

    Invariants:
    - command names are unique
    - an external-method command's source is a key of ``sources``
    """

    name: str = ""
    description: str = ""
    prompt: str = "> "
    state_defaults: dict[str, Any] = Field(default_factory=dict, alias="stateDefaults")
    sources: dict[str, str] = Field(default_factory=dict)
    commands: list[CommandSpec] = Field(default_factory=list)

    @field_validator("commands", mode="before")
    @classmethod
    def _commands_from_mapping(cls, value: Any) -> Any:
        # commands.json style: {"greet": {...}, "copy": {...}}
        if isinstance(value, dict):
            return [{"name": name, **(spec or {})} for name, spec in value.items()]
        return value

    @model_validator(mode="after")
    def _check_commands(self) -> "Contract":
        seen: set[str] = set()
        for command in self.commands:
            if command.name in seen:
                raise ValueError(f"duplicate command name '{command.name}'")
            seen.add(command.name)

            if command.command_type == "external-method" and command.source not in self.sources:
                raise ValueError(
                    f"command '{command.name}' references undeclared source '{command.source}'"
                )
        return self

    def find_command(self, name: str) -> CommandSpec | None:
        """Look up a command by name, ignoring case."""
        lowered = name.lower()
        for command in self.commands:
            if command.name.lower() == lowered:
                return command
        return None

    def command_names(self) -> list[str]:
        """Declared command names, in manifest order."""
        return [command.name for command in self.commands]
