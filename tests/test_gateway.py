"""Tests for gateway components: registry, dispatch engine and protocol adapters."""

import asyncio
import json
import logging

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from structlog.testing import LogCapture

from shared.models import (
    InvocationStatus,
    OperationCall,
    OperationKind,
    ProviderFamily,
    ServerInfo,
    ToolParameter,
)


def capturing_events(min_level: str = "DEBUG"):
    """Build an EventLogger whose output lands in a LogCapture."""
    from shared.logging import EventLogger

    capture = LogCapture()
    logger = structlog.wrap_logger(
        None,
        processors=[capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    )
    return EventLogger(min_level, logger=logger), capture


def param(name: str, **kwargs) -> ToolParameter:
    return ToolParameter(name=name, description=f"The {name}.", **kwargs)


def build_test_registry():
    """Registry with an echo tool and a profile resource."""
    from gateway.registry import OperationRegistry

    registry = OperationRegistry()
    registry.register_tool(
        "echo", "Returns its arguments.", ProviderFamily.AI,
        [param("message")], lambda args: args,
    )
    registry.register_resource(
        "getProfile", "Returns a fixed profile.", ProviderFamily.LINKEDIN,
        [], lambda args: {"id": "u1", "name": "Ada"},
    )
    return registry


def build_client(registry=None, **router_options):
    """TestClient over both adapters sharing one engine."""
    from gateway.jsonrpc import create_jsonrpc_router
    from gateway.legacy import create_legacy_router
    from gateway.router import OperationRouter

    registry = registry or build_test_registry()
    events, capture = capturing_events()
    router = OperationRouter(registry, events, **router_options)
    info = ServerInfo(name="mcpsocial", version="1.0.0", protocol_version="1.0")

    app = FastAPI()
    app.include_router(create_jsonrpc_router(router, info, events))
    app.include_router(create_legacy_router(router, info))
    return TestClient(app), capture


def rpc(client, method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        body["params"] = params
    return client.post("/mcp/v1", json=body)


class TestOperationRegistry:
    """Tests for the OperationRegistry."""

    def test_register_and_get(self):
        """Test registering distinct tools."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        for name in ("a", "b", "c"):
            registry.register_tool(name, name, ProviderFamily.AI, [], lambda args: None)

        assert [t.name for t in registry.list_tools()] == ["a", "b", "c"]
        assert registry.get("b").name == "b"
        assert registry.get("missing") is None

    def test_duplicate_last_wins(self):
        """Test that re-registering a name replaces the definition in place."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        registry.register_tool("a", "first", ProviderFamily.AI, [], lambda args: 1)
        registry.register_tool("b", "other", ProviderFamily.AI, [], lambda args: 2)
        registry.register_tool("a", "second", ProviderFamily.AI, [], lambda args: 3)

        assert [t.name for t in registry.list_tools()] == ["a", "b"]
        assert registry.get("a").description == "second"

    def test_catalogues_are_separate(self):
        """Test that a tool and a resource may share a name."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        registry.register_tool("profile", "tool", ProviderFamily.TWITTER, [], lambda args: 1)
        registry.register_resource("profile", "resource", ProviderFamily.TWITTER, [], lambda args: 2)

        assert registry.get("profile").description == "tool"
        assert registry.get("profile", OperationKind.RESOURCE).description == "resource"
        assert registry.get_operation_count() == {"twitter": 2}

    def test_frozen_rejects_registration(self):
        """Test that a frozen registry refuses new operations."""
        registry = build_test_registry()
        registry.freeze()

        assert registry.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register_tool("late", "late", ProviderFamily.AI, [], lambda args: None)

    def test_describe(self):
        """Test wire-form listings."""
        registry = build_test_registry()

        tools = registry.describe_tools()
        resources = registry.describe_resources("mcpsocial")

        assert tools == [{
            "name": "echo",
            "description": "Returns its arguments.",
            "inputSchema": {
                "type": "object",
                "properties": {"message": {"type": "string", "description": "The message."}},
                "required": ["message"],
            },
        }]
        assert resources == [{
            "uri": "mcpsocial:///getProfile",
            "name": "getProfile",
            "description": "Returns a fixed profile.",
            "mimeType": "application/json",
        }]
        assert registry.list_families() == ["ai", "linkedin"]


class TestOperationRouter:
    """Tests for the OperationRouter."""

    def setup_method(self):
        from gateway.registry import OperationRegistry

        self.calls = []
        self.registry = OperationRegistry()

        async def record(args):
            self.calls.append(args)
            return {"received": args}

        self.registry.register_tool(
            "needsAB", "Needs a and b.", ProviderFamily.AI, [param("a"), param("b")], record,
        )
        self.events, self.capture = capturing_events()

    def router(self, **options):
        from gateway.router import OperationRouter

        return OperationRouter(self.registry, self.events, **options)

    @pytest.mark.asyncio
    async def test_missing_parameter(self):
        """Test that a missing required parameter is named and the executor is not run."""
        from gateway.errors import MissingParameter

        with pytest.raises(MissingParameter) as exc_info:
            await self.router().invoke("needsAB", {"a": 1})

        assert exc_info.value.message == 'Missing required parameter "b" for tool "needsAB"'
        assert self.calls == []

    @pytest.mark.asyncio
    async def test_extra_keys_pass_through(self):
        """Test that undeclared arguments reach the executor."""
        result = await self.router().invoke("needsAB", {"a": 1, "b": 2, "c": 3})

        assert self.calls == [{"a": 1, "b": 2, "c": 3}]
        assert result == {"received": {"a": 1, "b": 2, "c": 3}}

    @pytest.mark.asyncio
    async def test_unknown_operation(self):
        """Test that unknown names raise OperationNotFound."""
        from gateway.errors import OperationNotFound

        with pytest.raises(OperationNotFound, match='Tool "nope" not found.'):
            await self.router().invoke("nope", {})

        with pytest.raises(OperationNotFound, match='Resource "needsAB" not found.'):
            await self.router().invoke("needsAB", {"a": 1, "b": 2}, OperationKind.RESOURCE)

    @pytest.mark.asyncio
    async def test_execute_never_raises(self):
        """Test that execute reports failures as results."""
        router = self.router()

        ok = await router.execute(OperationCall(name="needsAB", arguments={"a": 1, "b": 2}))
        missing = await router.execute(OperationCall(name="nope"))
        invalid = await router.execute(OperationCall(name="needsAB", arguments={"b": 2}))

        assert ok.success
        assert ok.data == {"received": {"a": 1, "b": 2}}
        assert missing.status == InvocationStatus.NOT_FOUND
        assert missing.error == 'Tool "nope" not found.'
        assert invalid.status == InvocationStatus.VALIDATION_ERROR
        assert invalid.error_code == "MISSING_PARAMETER"

    @pytest.mark.asyncio
    async def test_execute_reports_duration(self):
        """Test that successful results carry the measured execution time."""
        async def slow(args):
            await asyncio.sleep(0.05)
            return "done"

        self.registry.register_tool("slow", "Sleeps.", ProviderFamily.AI, [], slow)

        result = await self.router().execute(OperationCall(name="slow"))

        assert result.success
        assert result.data == "done"
        assert result.execution_time_ms >= 40
        assert self.capture.entries[-1]["duration_ms"] == result.execution_time_ms

    @pytest.mark.asyncio
    async def test_sync_executor(self):
        """Test that plain functions are run off the event loop."""
        self.registry.register_tool(
            "sum", "Adds.", ProviderFamily.AI, [param("a", type="integer")],
            lambda args: args["a"] + 1,
        )

        assert await self.router().invoke("sum", {"a": 41}) == 42

    @pytest.mark.asyncio
    async def test_executor_exception(self):
        """Test that executor failures surface with their message only."""
        from gateway.errors import ExecutionFailed

        def fail(args):
            raise RuntimeError("Could not create tweet on Twitter.")

        self.registry.register_tool("fail", "Fails.", ProviderFamily.TWITTER, [], fail)

        with pytest.raises(ExecutionFailed) as exc_info:
            await self.router().invoke("fail")

        assert exc_info.value.message == "Could not create tweet on Twitter."
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test that a configured deadline cancels slow executors."""
        from gateway.errors import OperationTimeout

        async def slow(args):
            await asyncio.sleep(5)

        self.registry.register_tool("slow", "Sleeps.", ProviderFamily.AI, [], slow)
        router = self.router(timeout_seconds=0.05)

        with pytest.raises(OperationTimeout):
            await router.invoke("slow")

        result = await router.execute(OperationCall(name="slow"))
        assert result.status == InvocationStatus.TIMEOUT
        assert result.execution_time_ms > 0

    @pytest.mark.asyncio
    async def test_type_validation(self):
        """Test optional schema type validation."""
        from gateway.errors import InvalidParameters

        self.registry.register_tool(
            "count", "Counts.", ProviderFamily.AI, [param("n", type="integer")], lambda args: args["n"],
        )

        # Off by default
        assert await self.router().invoke("count", {"n": "3"}) == "3"

        with pytest.raises(InvalidParameters, match="is not of type 'integer'"):
            await self.router(validate_types=True).invoke("count", {"n": "3"})

    @pytest.mark.asyncio
    async def test_started_and_finished_events(self):
        """Test that each invocation emits one started and one finished event."""
        await self.router().invoke("needsAB", {"a": 1, "b": 2, "accessToken": "tok"})
        with pytest.raises(Exception):
            await self.router().invoke("nope")

        names = [e["event"] for e in self.capture.entries]
        assert names == [
            "Tool execution started",
            "Tool execution completed",
            "Tool execution started",
            "Tool execution failed",
        ]
        assert self.capture.entries[0]["params"]["accessToken"] == "[REDACTED]"
        assert self.capture.entries[3]["error"] == 'Tool "nope" not found.'


class TestJsonRpc:
    """Tests for the JSON-RPC adapter."""

    def setup_method(self):
        self.client, self.capture = build_client()

    def test_initialize(self):
        """Test the initialize handshake."""
        response = rpc(self.client, "initialize", request_id="abc")

        assert response.status_code == 200
        assert response.json() == {
            "jsonrpc": "2.0",
            "id": "abc",
            "result": {
                "protocolVersion": "1.0",
                "serverInfo": {"name": "mcpsocial", "version": "1.0.0"},
                "capabilities": {"tools": True, "resources": True},
            },
        }

    def test_tools_list(self):
        """Test listing tools."""
        response = rpc(self.client, "tools/list")

        tools = response.json()["result"]["tools"]
        assert [t["name"] for t in tools] == ["echo"]
        assert tools[0]["inputSchema"]["required"] == ["message"]

    def test_tools_call_round_trip(self):
        """Test that results are returned as pretty-printed JSON text."""
        arguments = {"message": "hi", "extra": [1, 2]}

        response = rpc(self.client, "tools/call", {"name": "echo", "arguments": arguments})

        assert response.status_code == 200
        content = response.json()["result"]["content"]
        assert content == [{"type": "text", "text": json.dumps(arguments, indent=2)}]

    def test_tools_call_string_result(self):
        """Test that string results are returned verbatim."""
        from gateway.registry import OperationRegistry

        registry = OperationRegistry()
        registry.register_tool("caption", "Caption.", ProviderFamily.AI, [], lambda args: '{"casual": "hey"}')
        client, _ = build_client(registry)

        response = rpc(client, "tools/call", {"name": "caption"})

        assert response.json()["result"]["content"][0]["text"] == '{"casual": "hey"}'

    def test_tools_call_missing_parameter(self):
        """Test that dispatch failures become internal errors carrying the message."""
        response = rpc(self.client, "tools/call", {"name": "echo", "arguments": {}})

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == -32603
        assert error["message"] == "Internal error"
        assert error["data"] == 'Missing required parameter "message" for tool "echo"'

    def test_tools_call_missing_name(self):
        """Test that a call without a name is rejected."""
        response = rpc(self.client, "tools/call", {"arguments": {}})

        assert response.status_code == 500
        assert response.json()["error"]["data"] == 'Invalid params: "name" is required'

    def test_tools_call_unknown_tool(self):
        """Test calling a tool that does not exist."""
        response = rpc(self.client, "tools/call", {"name": "nope"})

        assert response.status_code == 500
        assert response.json()["error"]["data"] == 'Tool "nope" not found.'

    def test_resources_list_and_read(self):
        """Test reading a resource by URI."""
        listed = rpc(self.client, "resources/list").json()["result"]["resources"]
        uri = listed[0]["uri"]

        response = rpc(self.client, "resources/read", {"uri": uri})

        assert uri == "mcpsocial:///getProfile"
        assert response.json()["result"]["contents"] == [{
            "uri": uri,
            "mimeType": "application/json",
            "text": json.dumps({"id": "u1", "name": "Ada"}, indent=2),
        }]

    def test_resources_read_bare_name(self):
        """Test that a URI without the scheme prefix is used as the name."""
        response = rpc(self.client, "resources/read", {"uri": "getProfile"})

        assert response.status_code == 200

    def test_resources_read_unknown(self):
        """Test reading a resource that does not exist."""
        response = rpc(self.client, "resources/read", {"uri": "mcpsocial:///nope"})

        assert response.status_code == 500
        assert response.json()["error"]["data"] == 'Resource "nope" not found.'

    def test_method_not_found(self):
        """Test unknown methods."""
        response = rpc(self.client, "tools/destroy", request_id=7)

        assert response.status_code == 404
        assert response.json() == {
            "jsonrpc": "2.0",
            "id": 7,
            "error": {
                "code": -32601,
                "message": "Method not found",
                "data": "Unknown method: tools/destroy",
            },
        }

    def test_invalid_request(self):
        """Test requests missing the method or version."""
        missing_method = self.client.post("/mcp/v1", json={"jsonrpc": "2.0", "id": 1})
        wrong_version = self.client.post("/mcp/v1", json={"jsonrpc": "1.0", "id": 2, "method": "tools/list"})
        not_object = self.client.post("/mcp/v1", json=[1, 2])

        for response in (missing_method, wrong_version, not_object):
            assert response.status_code == 400
            assert response.json()["error"]["code"] == -32600

    def test_parse_error(self):
        """Test unparseable bodies."""
        response = self.client.post(
            "/mcp/v1", content="{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700
        assert response.json()["id"] is None

    def test_get_conveniences(self):
        """Test the read-only GET endpoints."""
        tools = self.client.get("/mcp/v1/tools/list").json()
        resources = self.client.get("/mcp/v1/resources/list").json()
        info = self.client.get("/mcp/v1/info").json()

        assert [t["name"] for t in tools["tools"]] == ["echo"]
        assert [r["name"] for r in resources["resources"]] == ["getProfile"]
        assert info["protocolVersion"] == "1.0"
        assert info["capabilities"] == {"tools": True, "resources": True}

    def test_request_and_response_events(self):
        """Test that each request is logged with its outcome."""
        rpc(self.client, "tools/list")

        entries = [e for e in self.capture.entries if e["event"] in ("MCP request", "MCP response")]
        assert [e["event"] for e in entries] == ["MCP request", "MCP response"]
        assert entries[1]["status_code"] == 200
        assert entries[1]["success"] is True

    def test_request_context_bound(self):
        """Test that the request id and method are bound while a call runs."""
        registry = build_test_registry()

        async def bound_context(args):
            return structlog.contextvars.get_contextvars()

        registry.register_tool("context", "Returns the log context.", ProviderFamily.AI, [], bound_context)
        client, _ = build_client(registry)

        response = rpc(client, "tools/call", {"name": "context"}, request_id=42)

        bound = json.loads(response.json()["result"]["content"][0]["text"])
        assert bound == {"rpc_id": 42, "rpc_method": "tools/call"}


class TestLegacyAdapter:
    """Tests for the legacy REST adapter."""

    def setup_method(self):
        self.client, _ = build_client()

    def test_list_tools_flat(self):
        """Test that tools are listed as a bare array."""
        response = self.client.get("/mcp/tools")

        assert response.status_code == 200
        assert [t["name"] for t in response.json()] == ["echo"]

    def test_list_resources_flat(self):
        """Test that resources are listed as a bare array."""
        response = self.client.get("/mcp/resources")

        assert response.json()[0]["uri"] == "mcpsocial:///getProfile"

    def test_execute_success(self):
        """Test executing a tool."""
        response = self.client.post("/mcp/execute", json={"toolName": "echo", "params": {"message": "hi"}})

        assert response.status_code == 200
        assert response.json() == {"success": True, "result": {"message": "hi"}}

    def test_execute_unknown_tool(self):
        """Test executing an unknown tool."""
        response = self.client.post("/mcp/execute", json={"toolName": "nope", "params": {}})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": 'Tool "nope" not found.'}

    def test_execute_missing_parameter(self):
        """Test that validation failures are reported as 400."""
        response = self.client.post("/mcp/execute", json={"toolName": "echo"})

        assert response.status_code == 400
        assert response.json()["error"] == 'Missing required parameter "message" for tool "echo"'

    def test_execute_bad_body(self):
        """Test malformed execute bodies."""
        no_name = self.client.post("/mcp/execute", json={"params": {}})
        bad_params = self.client.post("/mcp/execute", json={"toolName": "echo", "params": [1]})

        assert no_name.status_code == 400
        assert no_name.json()["success"] is False
        assert bad_params.status_code == 400


class TestApplication:
    """Tests for the assembled application."""

    def setup_method(self):
        from gateway.main import create_app
        from providers.llm import MockLLMProvider
        from shared.config import LinkedInSettings, Settings

        settings = Settings(linkedin=LinkedInSettings(client_id="id", client_secret="secret"))
        self.events, _ = capturing_events()
        self.app = create_app(settings, events=self.events, llm=MockLLMProvider())

    def test_health(self):
        """Test the health endpoint."""
        with TestClient(self.app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["families"] == ["ai", "facebook", "instagram", "linkedin", "twitter"]
        assert body["operation_count"] == len(self.app.state.registry.list_operations())

    def test_registry_frozen(self):
        """Test that the registry is frozen before serving."""
        assert self.app.state.registry.frozen

    def test_json_logs_setting(self, capsys):
        """Test that json_logs applies to the default event logger."""
        from gateway.main import create_app
        from providers.llm import MockLLMProvider
        from shared.config import Settings

        structlog.reset_defaults()
        try:
            app = create_app(Settings(json_logs=True), llm=MockLLMProvider())
            capsys.readouterr()

            rpc(TestClient(app), "tools/list")

            lines = [line for line in capsys.readouterr().out.splitlines() if "MCP request" in line]
        finally:
            structlog.reset_defaults()

        entry = json.loads(lines[0])
        assert entry["event"] == "MCP request"
        assert entry["service"] == "mcpsocial"
        assert entry["method"] == "tools/list"
        assert entry["rpc_id"] == 1

    def test_banner(self):
        """Test the root banner."""
        client = TestClient(self.app)

        body = client.get("/").json()

        assert body["protocolVersion"] == "1.0"
        assert body["endpoints"]["mcpV1"] == "/mcp/v1"

    def test_oauth_url_tool_over_jsonrpc(self):
        """Test an end-to-end call through the assembled app."""
        client = TestClient(self.app)

        response = rpc(client, "tools/call", {
            "name": "getLinkedInAuthUrl",
            "arguments": {"callbackUrl": "http://cb"},
        })

        assert response.status_code == 200
        result = json.loads(response.json()["result"]["content"][0]["text"])
        assert result["authorizationUrl"].startswith("https://www.linkedin.com/oauth/v2/authorization?")
        assert "client_id=id" in result["authorizationUrl"]
        assert "codeVerifier" not in result
