"""Shared utilities and base classes for the social gateway."""

from shared.models import (
    InvocationResult,
    OperationCall,
    OperationDefinition,
    OperationKind,
    ProviderFamily,
    ToolParameter,
)
from shared.config import Settings, get_settings
from shared.logging import EventLogger, get_logger, setup_logging

__all__ = [
    "InvocationResult",
    "OperationCall",
    "OperationDefinition",
    "OperationKind",
    "ProviderFamily",
    "ToolParameter",
    "Settings",
    "get_settings",
    "EventLogger",
    "get_logger",
    "setup_logging",
]
