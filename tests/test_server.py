"""Tests for the tool server — schema conversion, tool dispatch, JSON-RPC surface."""

import json
from typing import Literal, Optional

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from wp_shared.core.cache import ResponseCache
from wp_shared.models.tools import RpcRequest, ToolResult
from wp_shared.server import (
    Tool,
    ToolServer,
    convert_schema,
    create_tool_server,
    error_result,
    text_result,
)


class Author(BaseModel):
    name: str
    email: Optional[str] = None

class CreatePostInput(BaseModel):
    title: str = Field(..., description="Post title")
    status: Literal["draft", "publish"] = "draft"
    author: Optional[Author] = None

class EmptyInput(BaseModel):
    pass

class Node(BaseModel):
    value: int
    children: list["Node"] = []


async def _create_post(args: CreatePostInput):
    return {"id": 1, "title": args.title, "status": args.status}

async def _explode(args: EmptyInput):
    raise RuntimeError("WordPress API Error (500): boom")

async def _raw(args: EmptyInput):
    return {"content": [{"type": "text", "text": "already formatted"}]}

async def _plain(args: EmptyInput):
    return "pong"


TOOLS = [
    Tool("wp_create_post", "Create a post", CreatePostInput, _create_post),
    Tool("wp_explode", "Always fails", EmptyInput, _explode),
    Tool("wp_raw", "Returns a ready result", EmptyInput, _raw),
    Tool("wp_ping", "Returns a string", EmptyInput, _plain),
]


class TestConvertSchema:
    def test_no_schema_key_and_no_defs(self):
        schema = convert_schema(CreatePostInput)
        assert "$schema" not in schema
        assert "$defs" not in schema
        assert "$ref" not in json.dumps(schema)

    def test_nested_model_inlined(self):
        schema = convert_schema(CreatePostInput)
        author = schema["properties"]["author"]
        variants = author["anyOf"]
        assert any(v.get("properties", {}).get("name") for v in variants)

    def test_keeps_required_and_descriptions(self):
        schema = convert_schema(CreatePostInput)
        assert schema["required"] == ["title"]
        assert schema["properties"]["title"]["description"] == "Post title"
        assert schema["properties"]["status"]["enum"] == ["draft", "publish"]

    def test_recursive_model_keeps_ref(self):
        schema = convert_schema(Node)
        assert schema["properties"]["children"]["items"] == {"$ref": "#/$defs/Node"}


class TestResults:
    def test_text_result_serializes_json(self):
        result = text_result({"id": 1})
        assert json.loads(result.content[0].text) == {"id": 1}
        assert result.is_error is False

    def test_text_result_passes_strings_through(self):
        assert text_result("hi").content[0].text == "hi"

    def test_error_result_shape(self):
        result = error_result("bad", "wp_tool")
        assert result.is_error is True
        assert json.loads(result.content[0].text) == {"error": "bad", "tool": "wp_tool"}

    def test_dump_uses_protocol_field_names(self):
        dumped = error_result("bad", "t").model_dump(by_alias=True)
        assert dumped["isError"] is True


class TestToolServer:
    def setup_method(self):
        self.server = ToolServer("wp-test", "1.0.0", TOOLS)

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            ToolServer("x", "1", [TOOLS[0], TOOLS[0]])

    def test_list_tools(self):
        names = [t.name for t in self.server.list_tools()]
        assert names == ["wp_create_post", "wp_explode", "wp_raw", "wp_ping"]

    @pytest.mark.asyncio
    async def test_call_validates_and_runs_handler(self):
        result = await self.server.call_tool("wp_create_post", {"title": "Hello"})
        assert result.is_error is False
        assert json.loads(result.content[0].text) == {"id": 1, "title": "Hello", "status": "draft"}

    @pytest.mark.asyncio
    async def test_invalid_arguments_become_error_result(self):
        result = await self.server.call_tool("wp_create_post", {"status": "archived"})
        assert result.is_error is True
        payload = json.loads(result.content[0].text)
        assert payload["tool"] == "wp_create_post"
        assert "title" in payload["error"]

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error_result(self):
        result = await self.server.call_tool("wp_explode", None)
        assert result.is_error is True
        assert "boom" in json.loads(result.content[0].text)["error"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        result = await self.server.call_tool("wp_nope", {})
        assert result.is_error is True
        assert json.loads(result.content[0].text)["error"] == "Unknown tool: wp_nope"

    @pytest.mark.asyncio
    async def test_handler_may_return_ready_result(self):
        result = await self.server.call_tool("wp_raw", {})
        assert isinstance(result, ToolResult)
        assert result.content[0].text == "already formatted"

    @pytest.mark.asyncio
    async def test_handle_initialize(self):
        resp = await self.server.handle(RpcRequest(id=1, method="initialize"))
        assert resp.result["serverInfo"] == {"name": "wp-test", "version": "1.0.0"}
        assert resp.result["capabilities"] == {"tools": {}}

    @pytest.mark.asyncio
    async def test_handle_unknown_method(self):
        resp = await self.server.handle(RpcRequest(id=2, method="resources/list"))
        assert resp.result is None
        assert resp.error.code == -32601

    @pytest.mark.asyncio
    async def test_handle_call_without_name(self):
        resp = await self.server.handle(RpcRequest(id=3, method="tools/call", params={}))
        assert resp.error.code == -32602


class TestHttpSurface:
    def setup_method(self):
        self.cache = ResponseCache(ttl_seconds=60)
        self.app = create_tool_server("wp-test", "1.0.0", TOOLS, cache=self.cache)
        self.client = TestClient(self.app)

    def test_tools_list_over_rpc(self):
        resp = self.client.post("/rpc", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == 1
        assert "error" not in body
        tool = body["result"]["tools"][0]
        assert tool["name"] == "wp_create_post"
        assert tool["inputSchema"]["type"] == "object"

    def test_tools_call_over_rpc(self):
        resp = self.client.post("/rpc", json={
            "jsonrpc": "2.0",
            "id": "a",
            "method": "tools/call",
            "params": {"name": "wp_ping", "arguments": {}},
        })
        body = resp.json()
        assert body["result"] == {"content": [{"type": "text", "text": "pong"}], "isError": False}

    def test_error_response_has_no_result(self):
        resp = self.client.post("/rpc", json={"jsonrpc": "2.0", "id": 9, "method": "bogus"})
        body = resp.json()
        assert "result" not in body
        assert body["error"]["code"] == -32601

    def test_get_tools(self):
        resp = self.client.get("/tools")
        assert len(resp.json()["tools"]) == 4

    def test_health_reports_cache_stats(self):
        self.cache.set("k", "v")
        self.cache.get("k")
        body = self.client.get("/health").json()
        assert body["status"] == "ok"
        assert body["cache"]["hits"] == 1
        assert body["cache"]["keys"] == 1

    def test_health_without_cache(self):
        app = create_tool_server("bare", "0.1.0", [])
        body = TestClient(app).get("/health").json()
        assert body["cache"] is None


def test_start_server_runs_uvicorn():
    from unittest.mock import patch

    from wp_shared.server import start_server

    app = create_tool_server("wp-test", "1.0.0", TOOLS)
    with patch("uvicorn.run") as run:
        start_server(app, port=9100, log_level="WARNING")

    run.assert_called_once_with(app, host="127.0.0.1", port=9100, log_level="warning")


class TestWordPressObjectResults:
    """Handlers often return raw WordPress objects, which carry their own "content" key."""

    @pytest.mark.asyncio
    async def test_post_dict_is_serialized_as_text(self):
        async def _get_post(args: EmptyInput):
            return {"id": 1, "content": {"rendered": "<p>x</p>"}}

        server = ToolServer("wp-test", "1.0.0", [Tool("wp_get_post", "Get a post", EmptyInput, _get_post)])
        result = await server.call_tool("wp_get_post", {})

        assert result.is_error is False
        assert json.loads(result.content[0].text) == {"id": 1, "content": {"rendered": "<p>x</p>"}}

    @pytest.mark.asyncio
    async def test_list_content_without_blocks_is_serialized_as_text(self):
        async def _odd(args: EmptyInput):
            return {"content": ["a", "b"]}

        server = ToolServer("wp-test", "1.0.0", [Tool("wp_odd", "Odd", EmptyInput, _odd)])
        result = await server.call_tool("wp_odd", {})

        assert result.is_error is False
        assert json.loads(result.content[0].text) == {"content": ["a", "b"]}

    def test_post_dict_over_rpc(self):
        async def _get_post(args: EmptyInput):
            return {"id": 7, "content": {"rendered": "<p>hi</p>", "protected": False}}

        app = create_tool_server("wp-test", "1.0.0", [Tool("wp_get_post", "Get a post", EmptyInput, _get_post)])
        resp = TestClient(app).post("/rpc", json={
            "jsonrpc": "2.0", "id": 1, "method": "tools/call",
            "params": {"name": "wp_get_post", "arguments": {}},
        })

        assert resp.status_code == 200
        assert resp.json()["result"]["isError"] is False
