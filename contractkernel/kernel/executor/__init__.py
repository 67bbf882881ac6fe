"""Executor module: parsing, validation, dispatch and state reconciliation."""

from contractkernel.kernel.executor.command_contract import (
    ClearStateIfRule,
    CommandSpec,
    Contract,
    ParamSpec,
    SetStateRule,
    SideEffects,
)
from contractkernel.kernel.executor.command_parser import (
    Command,
    CommandParser,
    ParseOutcome,
    parse,
)
from contractkernel.kernel.executor.dispatcher import DispatchOutcome, Dispatcher
from contractkernel.kernel.executor.errors import (
    ErrorCode,
    ExecutionError,
    KernelError,
    ManifestLoadError,
    MethodNotFoundError,
    ParameterValidationError,
    ParseError,
    SourceResolutionError,
    StateCorruptionError,
    UnknownCommandError,
)
from contractkernel.kernel.executor.manifest_loader import contract_from_data, load_manifest
from contractkernel.kernel.executor.param_validator import ParamValidator, ValidationOutcome
from contractkernel.kernel.executor.results import Result
from contractkernel.kernel.executor.source_registry import SourceRegistry
from contractkernel.kernel.executor.state_store import (
    apply_side_effects,
    load_state,
    save_state,
)
from contractkernel.kernel.executor.templates import evaluate

__all__ = [
    "ClearStateIfRule",
    "Command",
    "CommandParser",
    "CommandSpec",
    "Contract",
    "DispatchOutcome",
    "Dispatcher",
    "ErrorCode",
    "ExecutionError",
    "KernelError",
    "ManifestLoadError",
    "MethodNotFoundError",
    "ParamSpec",
    "ParamValidator",
    "ParameterValidationError",
    "ParseError",
    "ParseOutcome",
    "Result",
    "SetStateRule",
    "SideEffects",
    "SourceRegistry",
    "SourceResolutionError",
    "StateCorruptionError",
    "UnknownCommandError",
    "ValidationOutcome",
    "apply_side_effects",
    "contract_from_data",
    "evaluate",
    "load_manifest",
    "load_state",
    "parse",
    "save_state",
]
