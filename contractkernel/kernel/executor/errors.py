"""Error taxonomy for command parsing, validation and execution.

Errors raised inside lookup/validate/execute are converted to a Result by the
dispatcher. ManifestLoadError and StateCorruptionError are bootstrap failures
and propagate to the caller.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes."""

    PARSE_ERROR = "PARSE_ERROR"  # Malformed command grammar
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"  # Name not in the contract
    VALIDATION_FAILED = "VALIDATION_FAILED"  # One or more parameter violations
    SOURCE_UNRESOLVED = "SOURCE_UNRESOLVED"  # Locator unresolvable or file missing
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"  # Handler export missing
    EXECUTION_FAILED = "EXECUTION_FAILED"  # Handler raised
    MANIFEST_INVALID = "MANIFEST_INVALID"  # Manifest unreadable or malformed
    STATE_CORRUPT = "STATE_CORRUPT"  # Context snapshot unreadable or malformed


class KernelError(Exception):
    """Base class for all kernel errors.

    Attributes:
        code: Standardized error code
        message: Human-readable error description
    """

    code: ErrorCode = ErrorCode.EXECUTION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(KernelError):
    """Raised when a command line does not match any supported grammar."""

    code = ErrorCode.PARSE_ERROR


class UnknownCommandError(KernelError):
    """Raised when a command name is not declared in the contract.

    Attributes:
        command_name: Name that failed lookup
    """

    code = ErrorCode.UNKNOWN_COMMAND

    def __init__(self, command_name: str) -> None:
        super().__init__(f"Unknown command: {command_name}")
        self.command_name = command_name


class ParameterValidationError(KernelError):
    """Raised when arguments violate a command's parameter contract.

    Attributes:
        errors: Every violation found, in declaration order
    """

    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class SourceResolutionError(KernelError):
    """Raised when a source cannot be located or loaded.

    Attributes:
        source_name: Logical source name from the contract
        path: Resolved filesystem path, when one was computed
    """

    code = ErrorCode.SOURCE_UNRESOLVED

    def __init__(self, message: str, source_name: str = "", path: str = "") -> None:
        super().__init__(message)
        self.source_name = source_name
        self.path = path


class MethodNotFoundError(KernelError):
    """Raised when a resolved source does not export the requested function.

    Attributes:
        method_name: Function the command asked for
        source_name: Logical source name
        available: Callable names the source does export
    """

    code = ErrorCode.METHOD_NOT_FOUND

    def __init__(self, method_name: str, source_name: str, available: list[str]) -> None:
        listing = ", ".join(available) if available else "none"
        super().__init__(
            f"Method '{method_name}' not found in source '{source_name}'. "
            f"Available methods: {listing}"
        )
        self.method_name = method_name
        self.source_name = source_name
        self.available = list(available)


class ExecutionError(KernelError):
    """Raised when a handler fails. The message is the handler's own."""

    code = ErrorCode.EXECUTION_FAILED


class ManifestLoadError(KernelError):
    """Raised when a manifest cannot be read or violates the contract model.

    Attributes:
        path: Manifest path, when loaded from disk
    """

    code = ErrorCode.MANIFEST_INVALID

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class StateCorruptionError(KernelError):
    """Raised when a persisted context snapshot cannot be decoded.

    Attributes:
        path: Snapshot path
    """

    code = ErrorCode.STATE_CORRUPT

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path
