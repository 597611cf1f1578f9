"""Expose async tool handlers over JSON-RPC (FastAPI).

A tool is a name, a description, a pydantic input model and an async
handler. `create_tool_server` wires a list of tools into an app answering
`initialize`, `tools/list` and `tools/call`.
"""
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

from fastapi import FastAPI
from pydantic import BaseModel, ValidationError

from wp_shared.core.cache import ResponseCache
from wp_shared.core.config import settings
from wp_shared.core.log import setup_logging
from wp_shared.models.tools import (
    RpcError,
    RpcRequest,
    RpcResponse,
    TextContent,
    ToolCallParams,
    ToolDefinition,
    ToolResult,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


@dataclass
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[Any], Awaitable[Any]]


def _inline_refs(node: Any, defs: dict, resolving: tuple[str, ...] = ()) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, defs, resolving) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/$defs/"):
        name = ref.rsplit("/", 1)[-1]
        # Self-referencing models keep their $ref
        if name in resolving or name not in defs:
            return node
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        resolved = _inline_refs(defs[name], defs, resolving + (name,))
        return {**resolved, **_inline_refs(siblings, defs, resolving)}

    return {k: _inline_refs(v, defs, resolving) for k, v in node.items()}


def convert_schema(model: type[BaseModel]) -> dict:
    """JSON Schema for `model` with definitions inlined and no `$schema` key.

    Flat schemas keep tool listings small for clients that paste them into
    a model context.
    """
    schema = model.model_json_schema()
    defs = schema.pop("$defs", {})
    schema.pop("$schema", None)
    return _inline_refs(schema, defs)


def text_result(data: Any) -> ToolResult:
    """Wrap a handler's return value as a single text content block."""
    text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)
    return ToolResult(content=[TextContent(text=text)])


def error_result(message: str, tool: str) -> ToolResult:
    payload = json.dumps({"error": message, "tool": tool}, indent=2)
    return ToolResult(content=[TextContent(text=payload)], is_error=True)


class ToolServer:
    def __init__(self, name: str, version: str, tools: list[Tool], cache: ResponseCache | None = None):
        self.name = name
        self.version = version
        self.cache = cache
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def list_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(name=t.name, description=t.description, input_schema=convert_schema(t.input_model))
            for t in self._tools.values()
        ]

    async def call_tool(self, name: str, arguments: dict | None = None) -> ToolResult:
        """Validate arguments and run the handler. Failures come back as error results."""
        logger.info(f"Tool called: {name}")

        tool = self._tools.get(name)
        if tool is None:
            return error_result(f"Unknown tool: {name}", name)

        try:
            validated = tool.input_model.model_validate(arguments or {})
            result = await tool.handler(validated)
            return self._to_result(result)
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {name}: {e}")
            return error_result(str(e), name)
        except Exception as e:
            logger.error(f"Tool execution failed for {name}: {e}")
            return error_result(str(e), name)

    @staticmethod
    def _to_result(result: Any) -> ToolResult:
        if isinstance(result, ToolResult):
            return result
        # WordPress objects also carry a "content" key ({"rendered": ...})
        content = result.get("content") if isinstance(result, dict) else None
        if isinstance(content, list) and content and all(isinstance(c, dict) and "type" in c for c in content):
            try:
                return ToolResult.model_validate(result)
            except ValidationError:
                pass
        return text_result(result)

    async def handle(self, request: RpcRequest) -> RpcResponse:
        if request.method == "initialize":
            return RpcResponse(id=request.id, result={
                "protocolVersion": PROTOCOL_VERSION,
                "serverInfo": {"name": self.name, "version": self.version},
                "capabilities": {"tools": {}},
            })

        if request.method == "tools/list":
            tools = [t.model_dump(by_alias=True) for t in self.list_tools()]
            return RpcResponse(id=request.id, result={"tools": tools})

        if request.method == "tools/call":
            try:
                params = ToolCallParams.model_validate(request.params)
            except ValidationError as e:
                return RpcResponse(id=request.id, error=RpcError(code=INVALID_PARAMS, message=str(e)))
            result = await self.call_tool(params.name, params.arguments)
            return RpcResponse(id=request.id, result=result.model_dump(by_alias=True))

        return RpcResponse(
            id=request.id,
            error=RpcError(code=METHOD_NOT_FOUND, message=f"Method not found: {request.method}"),
        )


def create_tool_server(
    name: str,
    version: str,
    tools: list[Tool],
    cache: ResponseCache | None = None,
) -> FastAPI:
    server = ToolServer(name, version, tools, cache=cache)
    app = FastAPI(title=name, version=version)
    app.state.tool_server = server

    @app.post("/rpc")
    async def rpc(request: RpcRequest):
        response = await server.handle(request)
        # A JSON-RPC response carries either result or error, never both
        return response.model_dump(exclude={"result"} if response.error else {"error"})

    @app.get("/tools")
    async def list_tools():
        return {"tools": [t.model_dump(by_alias=True) for t in server.list_tools()]}

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "name": server.name,
            "version": server.version,
            "cache": asdict(server.cache.stats()) if server.cache else None,
        }

    return app


def start_server(app: FastAPI, host: str = "127.0.0.1", port: int = 8000, log_level: str | None = None) -> None:
    import uvicorn

    setup_logging(log_level)
    logger.info(f"Tool server starting on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=(log_level or settings.LOG_LEVEL).lower())
