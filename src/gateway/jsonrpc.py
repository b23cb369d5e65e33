"""JSON-RPC 2.0 adapter.

Exposes the registry over ``POST /mcp/v1`` using the tools/resources
method set, plus a few read-only GET conveniences.
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from shared.logging import EventLogger, bind_context, clear_context
from shared.models import OperationKind, ServerInfo
from gateway.router import OperationRouter

ENDPOINT = "/mcp/v1"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

ERROR_STATUS = {
    PARSE_ERROR: status.HTTP_400_BAD_REQUEST,
    INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    METHOD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class JsonRpcError(Exception):
    """An error to be returned in the JSON-RPC error envelope."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def to_text(result: Any) -> str:
    """Render an operation result as text content."""
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


def _require_params(request: dict[str, Any]) -> dict[str, Any]:
    params = request.get("params")
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ValueError("Invalid params: expected an object")
    return params


def _arguments(params: dict[str, Any]) -> dict[str, Any]:
    arguments = params.get("arguments")
    if arguments is None:
        return {}
    if not isinstance(arguments, dict):
        raise ValueError('Invalid params: "arguments" must be an object')
    return arguments


def _required_string(params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f'Invalid params: "{key}" is required')
    return value


def create_jsonrpc_router(
    router: OperationRouter,
    server_info: ServerInfo,
    events: EventLogger,
    resource_scheme: str = "mcpsocial",
) -> APIRouter:
    """Build the JSON-RPC router bound to one dispatch engine."""
    api = APIRouter(tags=["JSON-RPC"])
    registry = router.registry
    uri_prefix = f"{resource_scheme}:///"

    async def initialize(params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": server_info.protocol_version,
            "serverInfo": {
                "name": server_info.name,
                "version": server_info.version,
            },
            "capabilities": server_info.capabilities,
        }

    async def tools_list(params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": registry.describe_tools()}

    async def tools_call(params: dict[str, Any]) -> dict[str, Any]:
        name = _required_string(params, "name")
        result = await router.invoke(name, _arguments(params), OperationKind.TOOL)
        return {"content": [{"type": "text", "text": to_text(result)}]}

    async def resources_list(params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": registry.describe_resources(resource_scheme)}

    async def resources_read(params: dict[str, Any]) -> dict[str, Any]:
        uri = _required_string(params, "uri")
        name = uri[len(uri_prefix):] if uri.startswith(uri_prefix) else uri
        result = await router.invoke(name, _arguments(params), OperationKind.RESOURCE)
        definition = registry.get(name, OperationKind.RESOURCE)
        return {
            "contents": [
                {
                    "uri": uri,
                    "mimeType": definition.mime_type if definition else "application/json",
                    "text": to_text(result),
                }
            ]
        }

    methods = {
        "initialize": initialize,
        "tools/list": tools_list,
        "tools/call": tools_call,
        "resources/list": resources_list,
        "resources/read": resources_read,
    }

    def envelope(request_id: Any, result: Any = None, error: Optional[JsonRpcError] = None) -> dict[str, Any]:
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if error is None:
            body["result"] = result
        else:
            body["error"] = {"code": error.code, "message": error.message}
            if error.data is not None:
                body["error"]["data"] = error.data
        return body

    async def handle(payload: Any) -> tuple[int, dict[str, Any]]:
        if not isinstance(payload, dict):
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request")

        request_id = payload.get("id")
        method = payload.get("method")
        if payload.get("jsonrpc") != "2.0" or not isinstance(method, str) or not method:
            return ERROR_STATUS[INVALID_REQUEST], envelope(
                request_id, error=JsonRpcError(INVALID_REQUEST, "Invalid Request")
            )

        handler = methods.get(method)
        if handler is None:
            return ERROR_STATUS[METHOD_NOT_FOUND], envelope(
                request_id,
                error=JsonRpcError(METHOD_NOT_FOUND, "Method not found", f"Unknown method: {method}"),
            )

        try:
            result = await handler(_require_params(payload))
        except Exception as e:
            events.error("JSON-RPC method failed", method=method, error=str(e))
            return ERROR_STATUS[INTERNAL_ERROR], envelope(
                request_id, error=JsonRpcError(INTERNAL_ERROR, "Internal error", str(e))
            )

        return status.HTTP_200_OK, envelope(request_id, result=result)

    @api.post(ENDPOINT)
    async def rpc(request: Request) -> JSONResponse:
        """Handle one JSON-RPC 2.0 request."""
        elapsed = events.start_timer()
        method: Optional[str] = None

        try:
            payload = await request.json()
        except ValueError:
            status_code = ERROR_STATUS[PARSE_ERROR]
            body = envelope(None, error=JsonRpcError(PARSE_ERROR, "Parse error"))
        else:
            if isinstance(payload, dict) and isinstance(payload.get("method"), str):
                method = payload["method"]
            # Every event logged while this request runs carries its id and method
            bind_context(
                rpc_id=payload.get("id") if isinstance(payload, dict) else None,
                rpc_method=method,
            )
            events.info("MCP request", type="MCP_REQUEST", endpoint=ENDPOINT, method=method)
            try:
                status_code, body = await handle(payload)
            except JsonRpcError as e:
                status_code, body = ERROR_STATUS[e.code], envelope(None, error=e)

        try:
            events.info(
                "MCP response",
                type="MCP_RESPONSE",
                endpoint=ENDPOINT,
                method=method,
                status_code=status_code,
                success="error" not in body,
                duration_ms=elapsed(),
            )
        finally:
            clear_context()
        return JSONResponse(status_code=status_code, content=body)

    @api.get(f"{ENDPOINT}/tools/list")
    async def get_tools() -> dict[str, Any]:
        """List tools without a JSON-RPC envelope."""
        return await tools_list({})

    @api.get(f"{ENDPOINT}/resources/list")
    async def get_resources() -> dict[str, Any]:
        """List resources without a JSON-RPC envelope."""
        return await resources_list({})

    @api.get(f"{ENDPOINT}/info")
    async def get_info() -> dict[str, Any]:
        """Server identity and capabilities."""
        return server_info.model_dump(by_alias=True)

    return api
