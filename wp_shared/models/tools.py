from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal, Optional, Union


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str

class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent] = []
    is_error: bool = Field(False, alias="isError")

class ToolDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(..., alias="inputSchema")

class ToolCallParams(BaseModel):
    name: str
    arguments: Optional[dict[str, Any]] = None

class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[int, str]] = None
    method: str
    params: dict[str, Any] = {}

class RpcError(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None

class RpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[int, str]] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[RpcError] = None
