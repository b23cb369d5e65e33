"""Social Gateway - FastAPI Application.

Serves the operation registry over two wire formats: JSON-RPC 2.0 at
``/mcp/v1`` and the legacy flat REST form at ``/mcp``. The registry is
built and frozen before the app serves its first request.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.config import Settings, get_settings
from shared.logging import EventLogger, get_logger, setup_logging
from shared.models import ServerInfo
from gateway.jsonrpc import create_jsonrpc_router
from gateway.legacy import create_legacy_router
from gateway.registry import OperationRegistry
from gateway.router import OperationRouter
from providers import ProviderContext, load_all_providers
from providers.llm import LLMProvider

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    families: list[str]
    operation_count: int


def build_registry(context: ProviderContext) -> OperationRegistry:
    """Populate and freeze the registry."""
    registry = OperationRegistry()
    load_all_providers(registry, context)
    registry.freeze()
    return registry


def create_app(
    settings: Optional[Settings] = None,
    events: Optional[EventLogger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    llm: Optional[LLMProvider] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Application settings (defaults to the cached settings)
        events: Event logger shared by every component
        transport: httpx transport for outbound provider calls
        llm: LLM provider for the AI tools

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    gateway = settings.gateway
    setup_logging(
        settings.log_level,
        json_output=settings.json_logs or settings.environment == "production",
    )
    events = events or EventLogger(settings.log_level, service=gateway.server_name)

    context = ProviderContext(settings=settings, events=events, transport=transport, llm=llm)
    registry = build_registry(context)
    router = OperationRouter(
        registry,
        events,
        validate_types=gateway.validate_types,
        timeout_seconds=gateway.invocation_timeout_seconds,
    )
    server_info = ServerInfo(
        name=gateway.server_name,
        version=gateway.version,
        protocol_version=gateway.protocol_version,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        for family, credentials in settings.provider_credentials().items():
            if not credentials.configured:
                logger.warning(
                    "Provider credentials not configured",
                    provider=family,
                    variables=[credentials.id_variable, credentials.secret_variable],
                )

        logger.info(
            "Social gateway started",
            server=server_info.name,
            version=server_info.version,
            protocol_version=server_info.protocol_version,
            families=registry.list_families(),
            operation_count=sum(registry.get_operation_count().values()),
        )

        yield

        logger.info("Shutting down social gateway")

    app = FastAPI(
        title="MCPSocial Gateway",
        description="Protocol-translation gateway for social media provider APIs",
        version=server_info.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.events = events
    app.state.registry = registry
    app.state.router = router
    app.state.server_info = server_info

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        create_jsonrpc_router(router, server_info, events, gateway.resource_scheme)
    )
    app.include_router(create_legacy_router(router, server_info, gateway.resource_scheme))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        events.error("Unhandled error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal Server Error", "message": str(exc)},
        )

    @app.get("/", tags=["System"])
    async def root() -> dict[str, Any]:
        """Server banner and endpoint map."""
        return {
            "message": f"{server_info.name} gateway is running",
            "version": server_info.version,
            "protocolVersion": server_info.protocol_version,
            "endpoints": {
                "mcpV1": "/mcp/v1",
                "mcpLegacy": "/mcp",
                "health": "/health",
            },
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=server_info.version,
            families=registry.list_families(),
            operation_count=sum(registry.get_operation_count().values()),
        )

    return app


def main():
    """Run the gateway."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "gateway.main:create_app",
        factory=True,
        host=settings.gateway.host,
        port=settings.gateway.port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    main()
