"""Dispatch errors.

Each error maps onto one ``InvocationStatus``; adapters only ever expose
the message to callers.
"""

from typing import Optional

from shared.models import InvocationStatus, OperationKind


class DispatchError(Exception):
    """Base class for failures raised by the dispatch engine."""
    status = InvocationStatus.ERROR
    error_code = "EXECUTION_ERROR"

    def __init__(self, message: str, duration_ms: float = 0) -> None:
        super().__init__(message)
        self.message = message
        self.duration_ms = duration_ms


class OperationNotFound(DispatchError):
    status = InvocationStatus.NOT_FOUND
    error_code = "OPERATION_NOT_FOUND"

    def __init__(self, name: str, kind: OperationKind = OperationKind.TOOL) -> None:
        label = "Resource" if kind == OperationKind.RESOURCE else "Tool"
        super().__init__(f'{label} "{name}" not found.')
        self.name = name
        self.kind = kind


class MissingParameter(DispatchError):
    status = InvocationStatus.VALIDATION_ERROR
    error_code = "MISSING_PARAMETER"

    def __init__(self, parameter: str, name: str, kind: OperationKind = OperationKind.TOOL) -> None:
        super().__init__(f'Missing required parameter "{parameter}" for {kind.value} "{name}"')
        self.parameter = parameter
        self.name = name


class InvalidParameters(DispatchError):
    status = InvocationStatus.VALIDATION_ERROR
    error_code = "VALIDATION_ERROR"

    def __init__(self, name: str, errors: list[str]) -> None:
        super().__init__(f'Invalid parameters for "{name}": {"; ".join(errors)}')
        self.errors = errors


class OperationTimeout(DispatchError):
    status = InvocationStatus.TIMEOUT
    error_code = "TIMEOUT"

    def __init__(self, name: str, timeout: float, duration_ms: float = 0) -> None:
        super().__init__(f'Operation "{name}" timed out after {timeout}s', duration_ms)


class ExecutionFailed(DispatchError):
    """The executor raised; carries its message only."""

    def __init__(self, message: str, duration_ms: float = 0, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, duration_ms)
        self.cause = cause

