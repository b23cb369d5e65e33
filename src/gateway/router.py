"""Operation Router for the gateway.

Looks calls up in the registry, checks their arguments, runs the executor
and records the outcome. Both protocol adapters dispatch through here.
"""

import asyncio
import inspect
from functools import partial
from typing import Any, Optional

from shared.logging import EventLogger
from shared.models import (
    InvocationResult,
    InvocationStatus,
    OperationCall,
    OperationDefinition,
    OperationKind,
)
from shared.schema import missing_required, validate_schema
from gateway.errors import (
    DispatchError,
    ExecutionFailed,
    InvalidParameters,
    MissingParameter,
    OperationNotFound,
    OperationTimeout,
)
from gateway.registry import OperationRegistry


class OperationRouter:
    """
    Dispatch engine shared by the JSON-RPC and legacy adapters.

    Responsibilities:
    - Resolve the operation by name in its catalogue
    - Check required parameters (and optionally their types)
    - Execute with an optional deadline
    - Emit exactly one started and one finished event per invocation
    """

    def __init__(
        self,
        registry: OperationRegistry,
        events: EventLogger,
        validate_types: bool = False,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.events = events
        self.validate_types = validate_types
        self.timeout_seconds = timeout_seconds

    async def invoke(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        kind: OperationKind = OperationKind.TOOL,
    ) -> Any:
        """
        Invoke an operation and return its raw result.

        Args:
            name: Operation name
            arguments: Argument map; extra keys are passed through
            kind: Catalogue to look the name up in

        Returns:
            Whatever the executor returned

        Raises:
            DispatchError: The subclass matching the failure
        """
        result, _ = await self._invoke(name, arguments, kind)
        return result

    async def _invoke(
        self,
        name: str,
        arguments: Optional[dict[str, Any]],
        kind: OperationKind,
    ) -> tuple[Any, float]:
        arguments = arguments if arguments is not None else {}
        elapsed = self.events.start_timer()
        self.events.operation_started(name, kind.value, arguments)

        try:
            definition = self._resolve(name, kind)
            self._validate(definition, arguments)
            result = await self._execute(definition, arguments)
        except DispatchError as e:
            e.duration_ms = elapsed()
            self.events.operation_finished(
                name, kind.value, success=False, error=e.message, duration_ms=e.duration_ms
            )
            raise

        duration_ms = elapsed()
        self.events.operation_finished(
            name, kind.value, success=True, result=result, duration_ms=duration_ms
        )
        return result, duration_ms

    async def execute(self, call: OperationCall) -> InvocationResult:
        """
        Execute an operation call without raising.

        Returns:
            InvocationResult carrying either the data or the error message
        """
        try:
            data, duration_ms = await self._invoke(call.name, call.arguments, call.kind)
        except DispatchError as e:
            return InvocationResult(
                name=call.name,
                kind=call.kind,
                status=e.status,
                error=e.message,
                error_code=e.error_code,
                execution_time_ms=e.duration_ms,
            )

        return InvocationResult(
            name=call.name,
            kind=call.kind,
            status=InvocationStatus.SUCCESS,
            data=data,
            execution_time_ms=duration_ms,
        )

    def _resolve(self, name: str, kind: OperationKind) -> OperationDefinition:
        definition = self.registry.get(name, kind)
        if definition is None:
            raise OperationNotFound(name, kind)
        return definition

    def _validate(self, definition: OperationDefinition, arguments: dict[str, Any]) -> None:
        missing = missing_required(arguments, definition.input_schema)
        if missing:
            raise MissingParameter(missing[0], definition.name, definition.kind)

        if self.validate_types:
            is_valid, errors = validate_schema(arguments, definition.input_schema)
            if not is_valid:
                raise InvalidParameters(definition.name, errors)

    async def _execute(self, definition: OperationDefinition, arguments: dict[str, Any]) -> Any:
        try:
            if self.timeout_seconds is None:
                return await self._call_executor(definition, arguments)
            return await asyncio.wait_for(
                self._call_executor(definition, arguments),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            if self.timeout_seconds is None:
                raise ExecutionFailed(str(e) or "Operation timed out", cause=e) from e
            raise OperationTimeout(definition.name, self.timeout_seconds) from e
        except DispatchError:
            raise
        except Exception as e:
            raise ExecutionFailed(str(e) or type(e).__name__, cause=e) from e

    async def _call_executor(self, definition: OperationDefinition, arguments: dict[str, Any]) -> Any:
        executor = definition.executor

        if inspect.iscoroutinefunction(executor):
            return await executor(arguments)

        # Run sync executors in the default thread pool
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, partial(executor, arguments))
        if inspect.isawaitable(result):
            result = await result
        return result
