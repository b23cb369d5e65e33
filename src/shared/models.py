"""Core data models for the social gateway.

This module defines the shared data structures used across the gateway:
operation definitions held by the registry, invocation records produced by
the dispatch engine, and the OAuth exchange state handed back to callers.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(str, Enum):
    """Catalogue an operation belongs to."""
    TOOL = "tool"
    RESOURCE = "resource"


class ProviderFamily(str, Enum):
    """External provider family an operation talks to."""
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    AI = "ai"


class ToolParameter(BaseModel):
    """Definition of a single operation parameter."""
    name: str
    type: str = "string"
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[list[Any]] = None


# Executors take the argument map and return any JSON-serialisable value
Executor = Callable[[dict[str, Any]], Union[Any, Awaitable[Any]]]


class OperationDefinition(BaseModel):
    """
    Complete definition of a tool or resource.

    Definitions are registered once at startup and never mutated afterwards.
    The executor is excluded from serialisation.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(..., description="Unique operation name, e.g. postToLinkedIn")
    description: str = Field(..., description="Clear description for LLM usage")
    kind: OperationKind = Field(default=OperationKind.TOOL)
    family: ProviderFamily

    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON Schema for the argument map",
    )
    mime_type: str = Field(default="application/json")
    executor: Executor = Field(..., exclude=True, repr=False)

    @property
    def required_params(self) -> list[str]:
        """Names the argument map must contain."""
        return list(self.input_schema.get("required", []))


class OperationCall(BaseModel):
    """A request to invoke a named operation."""
    name: str
    kind: OperationKind = OperationKind.TOOL
    arguments: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class InvocationStatus(str, Enum):
    """Outcome of an invocation."""
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    TIMEOUT = "timeout"


class InvocationResult(BaseModel):
    """
    Result of an invocation.

    Carries the raw executor output on success, or the error message only.
    Never persisted.
    """
    name: str
    kind: OperationKind = OperationKind.TOOL
    status: InvocationStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    execution_time_ms: float = 0

    @property
    def success(self) -> bool:
        return self.status == InvocationStatus.SUCCESS


class ServerInfo(BaseModel):
    """Identity advertised by the gateway."""
    name: str
    version: str
    protocol_version: str = Field(..., serialization_alias="protocolVersion")
    capabilities: dict[str, bool] = Field(
        default_factory=lambda: {"tools": True, "resources": True}
    )


class AuthorizationRequest(BaseModel):
    """
    State of an authorization-code flow, held by the caller.

    Nothing here is retained server-side; for PKCE providers the caller
    must present ``code_verifier`` again at exchange time.
    """
    authorization_url: str
    state: str
    callback_url: str
    scope: str
    code_verifier: Optional[str] = None


class TokenGrant(BaseModel):
    """Tokens returned by a provider token endpoint."""
    access_token: str = Field(..., repr=False)
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = Field(default=None, repr=False)
    refresh_token_expires_in: Optional[int] = None
    scope: Optional[str] = None
    user_id: Optional[str] = None


class PromptMessage(BaseModel):
    """A single message sent to the LLM."""
    role: str = Field(..., description="Message role: system, user, assistant")
    content: str


class LLMResponse(BaseModel):
    """Response from the LLM layer."""
    content: Optional[str] = None
    finish_reason: str = "stop"
    usage: dict[str, int] = Field(default_factory=dict)
