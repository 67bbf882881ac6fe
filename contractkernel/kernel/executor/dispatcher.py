"""Dispatcher: lookup, validate and execute a canonical command.

Flow per call: Lookup -> Validate -> Execute -> Result, then side effects on
success. The dispatcher holds no per-call mutable state. It reads the
contract (immutable) and the source registry (shared cache), takes the
session state as an argument and returns the next state alongside the
Result.

Nothing raised inside lookup/validate/execute leaves this module; every
failure becomes ``Result(error=..., output=None)``.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from contractkernel.kernel.executor.builtin_commands import find_builtin, run_builtin
from contractkernel.kernel.executor.command_contract import CommandSpec, Contract
from contractkernel.kernel.executor.command_parser import Command, CommandParser
from contractkernel.kernel.executor.errors import (
    ExecutionError,
    KernelError,
    ParameterValidationError,
    ParseError,
    UnknownCommandError,
)
from contractkernel.kernel.executor.param_validator import ParamValidator
from contractkernel.kernel.executor.results import Result
from contractkernel.kernel.executor.source_registry import SourceRegistry, find_method
from contractkernel.kernel.executor.state_store import apply_side_effects, mutates_state
from contractkernel.kernel.executor.templates import evaluate

logger = logging.getLogger(__name__)


class DispatchOutcome(BaseModel):
    """Result of one dispatch plus the state it leaves behind."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    result: Result
    state: dict[str, Any] = Field(default_factory=dict)
    command: Command | None = None
    state_changed: bool = False


class Dispatcher:
    """Executes commands declared by a contract."""

    def __init__(
        self,
        contract: Contract,
        sources: SourceRegistry,
        validator: ParamValidator | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            contract: Command catalog
            sources: Registry resolving external-method sources
            validator: Parameter validator (a fresh one by default)
        """
        self.contract = contract
        self.sources = sources
        self.validator = validator or ParamValidator()
        self.parser = CommandParser(contract)

    def lookup(self, name: str) -> CommandSpec:
        """Find the spec for ``name``; contract commands shadow built-ins.

        Raises:
            UnknownCommandError: If neither the contract nor the built-ins declare it
        """
        spec = self.contract.find_command(name) or find_builtin(name)
        if spec is None:
            raise UnknownCommandError(name)
        return spec

    async def run(self, invocation: Any, state: Mapping[str, Any]) -> DispatchOutcome:
        """Parse then dispatch a text line or a structured ``{name, args}`` invocation."""
        if isinstance(invocation, str):
            parsed = self.parser.parse(invocation)
        else:
            parsed = self.parser.parse_structured(invocation)

        try:
            command = parsed.unwrap()
        except ParseError as e:
            return DispatchOutcome(result=Result.failure(e.message), state=dict(state))
        return await self.dispatch(command, state)

    async def dispatch(self, command: Command, state: Mapping[str, Any]) -> DispatchOutcome:
        """Execute ``command`` against ``state``.

        Args:
            command: Canonical command; args may still be raw strings
            state: Current session state (not modified)

        Returns:
            DispatchOutcome with the Result and the next state
        """
        current = dict(state)
        try:
            spec = self.lookup(command.name)

            validation = self.validator.validate(command.args, spec.parameters, current)
            if not validation.is_valid:
                raise ParameterValidationError(validation.errors)

            canonical = Command(name=spec.name, args=validation.args)
            logger.debug("Dispatching %s with %s", canonical.name, sorted(canonical.args))
            result = await self._execute(canonical, spec)
        except KernelError as e:
            logger.debug("Command %s rejected: %s", command.name, e.message)
            return DispatchOutcome(result=Result.failure(e.message), state=current, command=command)
        except Exception as e:
            logger.exception("Unexpected failure dispatching %s", command.name)
            return DispatchOutcome(
                result=Result.failure(f"Command processing error: {e}"),
                state=current,
                command=command,
            )

        if not result.ok or not mutates_state(spec):
            return DispatchOutcome(result=result, state=current, command=canonical)

        next_state = apply_side_effects(current, canonical, result, spec)
        return DispatchOutcome(
            result=result,
            state=next_state,
            command=canonical,
            state_changed=next_state != current,
        )

    async def _execute(self, command: Command, spec: CommandSpec) -> Result:
        if self.contract.find_command(spec.name) is None:
            return run_builtin(spec.name, command.args, self.contract)

        if spec.command_type == "internal":
            output = evaluate(spec.success_output, command.args) if spec.success_output else None
            return Result(output=output)

        return await self._execute_external(command, spec)

    async def _execute_external(self, command: Command, spec: CommandSpec) -> Result:
        source = await self.sources.resolve(spec.source)
        method = find_method(source, spec.source, spec.method_name)

        try:
            if inspect.iscoroutinefunction(method):
                value = await method(dict(command.args))
            else:
                # Sync handlers run off the event loop
                value = await asyncio.to_thread(method, dict(command.args))
                if inspect.isawaitable(value):
                    value = await value
        except Exception as e:
            logger.warning(
                "Handler %s.%s failed: %s", spec.source, spec.method_name, e, exc_info=True
            )
            raise ExecutionError(str(e) or e.__class__.__name__) from e

        if isinstance(value, Result):
            return value

        if spec.success_output:
            value = evaluate(spec.success_output, {**command.args, "result": value})
        return Result(output=value)
