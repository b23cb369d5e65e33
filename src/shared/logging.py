"""Structured logging setup for the gateway.

Uses structlog for consistent, machine-parseable log output. Every event
passes through the credential redactor before it is rendered.
"""

import logging
import sys
import time
from typing import Any, Callable, Optional

import structlog
from structlog.types import Processor

from shared.redaction import redact

LEVELS = ("debug", "info", "warning", "error")

QUIET_LOGGERS = ("httpx", "httpcore")


def redact_event(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask credentials in every event before rendering."""
    return redact(event_dict)


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; otherwise, use colored console output
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_event,
    ]

    if json_output:
        # Production: one JSON object per line
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard library logging (uvicorn, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # httpx logs full request URLs at INFO, query-string credentials included
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)
        **initial_context: Initial context values to bind to logger

    Returns:
        A bound structlog logger instance
    """
    return structlog.get_logger(name, **initial_context)


def bind_context(**context: Any) -> None:
    """Bind context values to all loggers in the current context."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context values."""
    structlog.contextvars.clear_contextvars()


class EventLogger:
    """
    Event sink shared by the dispatch engine, the protocol adapters and
    the provider clients.

    An instance is constructed explicitly at startup and handed to each
    collaborator, so tests can capture events without touching global
    logging state. Payloads are redacted before they reach the
    underlying structlog logger.
    """

    def __init__(
        self,
        min_level: str = "INFO",
        logger: Optional[Any] = None,
        service: str = "mcpsocial",
    ) -> None:
        level = min_level.lower()
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {min_level}")
        self.min_level = level
        if logger is None:
            # Lazy proxy, resolved against the configuration at first use
            self._logger = get_logger("gateway.events", service=service)
        else:
            self._logger = logger.bind(service=service)

    def is_enabled(self, level: str) -> bool:
        return LEVELS.index(level) >= LEVELS.index(self.min_level)

    def _emit(self, level: str, event: str, fields: dict[str, Any]) -> None:
        if not self.is_enabled(level):
            return
        getattr(self._logger, level)(event, **redact(fields))

    def debug(self, event: str, **fields: Any) -> None:
        self._emit("debug", event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit("info", event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit("warning", event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit("error", event, fields)

    @staticmethod
    def start_timer() -> Callable[[], float]:
        """Return a callable giving the elapsed milliseconds since now."""
        start = time.perf_counter()

        def elapsed() -> float:
            return round((time.perf_counter() - start) * 1000, 2)

        return elapsed

    def api_call(
        self,
        api: str,
        endpoint: str,
        method: str,
        payload: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Record an outbound provider request."""
        self.info(
            "API call",
            type="API_CALL",
            api=api,
            endpoint=endpoint,
            method=method,
            payload=payload,
            headers=headers,
        )

    def api_response(
        self,
        api: str,
        endpoint: str,
        status_code: Optional[int],
        response: Any = None,
        error: Optional[str] = None,
        duration_ms: float = 0,
    ) -> None:
        """Record the outcome of an outbound provider request."""
        failed = error is not None or (status_code is not None and status_code >= 400)
        emit = self.error if failed else self.info
        emit(
            "API response error" if failed else "API response",
            type="API_RESPONSE",
            api=api,
            endpoint=endpoint,
            status_code=status_code,
            response=response,
            error=error,
            duration_ms=duration_ms,
        )

    def operation_started(self, name: str, kind: str, params: Any) -> None:
        """Record the start of a tool or resource invocation."""
        self.info(
            f"{kind.capitalize()} execution started",
            type="TOOL_EXECUTION",
            operation=name,
            kind=kind,
            params=params,
        )

    def operation_finished(
        self,
        name: str,
        kind: str,
        success: bool,
        result: Any = None,
        error: Optional[str] = None,
        duration_ms: float = 0,
    ) -> None:
        """Record the outcome of a tool or resource invocation."""
        if success:
            self.info(
                f"{kind.capitalize()} execution completed",
                type="TOOL_RESULT",
                operation=name,
                kind=kind,
                success=True,
                result=result,
                duration_ms=duration_ms,
            )
        else:
            self.error(
                f"{kind.capitalize()} execution failed",
                type="TOOL_RESULT",
                operation=name,
                kind=kind,
                success=False,
                error=error,
                duration_ms=duration_ms,
            )
