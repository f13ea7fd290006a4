"""
Invocable tool variants and the execution result envelope.

Every source exposes its capabilities as one of two variants:

- ``NativeTool``: carries an async handler that runs the capability.
- ``HttpTool``: carries a declarative HTTP descriptor; invocation is
  synthesized at call time by ``HttpToolExecutor``.
"""

import base64
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from bitte_mcp.models import AgentTool

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]

EMPTY_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


def schema_from(parameters: Any) -> Dict[str, Any]:
    """Map a native parameter description to a JSON schema dict"""
    if parameters is None:
        return dict(EMPTY_SCHEMA)
    if isinstance(parameters, type) and issubclass(parameters, BaseModel):
        return parameters.model_json_schema()
    if isinstance(parameters, BaseModel):
        return type(parameters).model_json_schema()
    if isinstance(parameters, dict):
        return dict(parameters)
    raise ValueError(f"Unsupported parameter schema: {type(parameters).__name__}")


@dataclass(frozen=True)
class ExecutionSpec:
    """Where and how a declarative tool is called"""
    base_url: str
    path: str
    http_method: str = "GET"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseUrl": self.base_url,
            "path": self.path,
            "httpMethod": self.http_method
        }


@dataclass(frozen=True)
class NativeTool:
    """Tool with an embedded async handler"""
    name: str
    handler: ToolHandler = field(repr=False, compare=False)
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_SCHEMA), compare=False)
    source: str = ""
    kind: str = field(default="native", init=False)

    async def invoke(self, params: Dict[str, Any]) -> Any:
        return await self.handler(params)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters
        }


@dataclass(frozen=True)
class HttpTool:
    """Tool described by an HTTP execution descriptor"""
    name: str
    execution: ExecutionSpec
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_SCHEMA), compare=False)
    source: str = ""
    tool_id: Optional[str] = None
    kind: str = field(default="http", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "source": self.source,
            "id": self.tool_id,
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "execution": self.execution.to_dict()
        }


InvocableItem = Union[NativeTool, HttpTool]


def tool_from_registry(entry: Any, source: str) -> Optional[HttpTool]:
    """
    Convert a registry tool entry into an HttpTool.

    Returns None (and logs) for entries that cannot be executed: malformed
    records and tools without an execution descriptor.
    """
    try:
        record = AgentTool.model_validate(entry)
    except ValidationError as e:
        logger.warning(f"Skipping malformed registry tool: {e.error_count()} validation error(s)")
        return None

    if record.execution is None:
        logger.debug(f"Skipping registry tool without execution descriptor: {record.function.name}")
        return None

    return HttpTool(
        name=record.function.name,
        description=record.function.description,
        parameters=record.function.parameters or dict(EMPTY_SCHEMA),
        execution=ExecutionSpec(
            base_url=record.execution.base_url,
            path=record.execution.path,
            http_method=record.execution.http_method
        ),
        source=source,
        tool_id=record.id
    )


# ============================================================================
# Result envelope
# ============================================================================

@dataclass
class ContentBlock:
    """A single MCP content block"""
    text: str
    type: str = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ExecutionResult:
    """Normalized result of a search or an execution"""
    content: List[ContentBlock]
    is_error: bool = False

    @classmethod
    def success(cls, payload: Any) -> "ExecutionResult":
        return cls(content=[ContentBlock(text=to_text(payload))])

    @classmethod
    def failure(cls, message: str) -> "ExecutionResult":
        return cls(content=[ContentBlock(text=message)], is_error=True)

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"content": [block.to_dict() for block in self.content]}
        if self.is_error:
            result["isError"] = True
        return result


def to_text(payload: Any) -> str:
    """Strings pass through, anything else is serialized to JSON"""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)
