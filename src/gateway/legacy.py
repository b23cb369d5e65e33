"""Legacy flat REST adapter.

Older clients list operations as bare arrays and execute tools with a
``{toolName, params}`` body. Same registry and engine as JSON-RPC.
"""

from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from shared.models import OperationCall, OperationKind, ServerInfo
from gateway.router import OperationRouter


def _failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


def create_legacy_router(
    router: OperationRouter,
    server_info: ServerInfo,
    resource_scheme: str = "mcpsocial",
) -> APIRouter:
    """Build the legacy router bound to one dispatch engine."""
    api = APIRouter(prefix="/mcp", tags=["Legacy"])
    registry = router.registry

    @api.get("/tools")
    async def list_tools() -> list[dict[str, Any]]:
        """List all tools as a flat array."""
        return registry.describe_tools()

    @api.get("/resources")
    async def list_resources() -> list[dict[str, Any]]:
        """List all resources as a flat array."""
        return registry.describe_resources(resource_scheme)

    @api.get("/info")
    async def info() -> dict[str, Any]:
        """Server identity and capabilities."""
        return server_info.model_dump(by_alias=True)

    @api.post("/execute")
    async def execute(request: Request) -> JSONResponse:
        """
        Execute a tool.

        Returns ``{success: true, result}`` or HTTP 400 with
        ``{success: false, error}``.
        """
        try:
            body = await request.json()
        except ValueError:
            return _failure("Request body must be valid JSON")

        if not isinstance(body, dict):
            return _failure("Request body must be an object")

        tool_name = body.get("toolName")
        if not isinstance(tool_name, str) or not tool_name:
            return _failure('"toolName" is required')

        params = body.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return _failure('"params" must be an object')

        result = await router.execute(
            OperationCall(name=tool_name, kind=OperationKind.TOOL, arguments=params)
        )
        if not result.success:
            return _failure(result.error or "An unknown error occurred")

        return JSONResponse(content=jsonable_encoder({"success": True, "result": result.data}))

    return api
