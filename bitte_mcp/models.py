"""
Bitte MCP Proxy - Data Models
Pydantic models for registry records and tool-call arguments.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ============================================================================
# Registry records
# ============================================================================

class FunctionSpec(_CamelModel):
    """Function part of a registry tool"""
    name: str
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None


class ExecutionDescriptor(_CamelModel):
    """HTTP execution descriptor of a registry tool"""
    base_url: str = Field(..., alias="baseUrl")
    path: str
    http_method: str = Field(..., alias="httpMethod")


class AgentTool(_CamelModel):
    """Tool entry as served by the registry"""
    id: Optional[str] = None
    agent_id: Optional[str] = Field(None, alias="agentId")
    type: str = "function"
    function: FunctionSpec
    execution: Optional[ExecutionDescriptor] = None
    verified: Optional[bool] = None
    image: Optional[str] = None
    chain_ids: Optional[List[Union[int, str]]] = Field(None, alias="chainIds")
    is_primitive: Optional[bool] = Field(None, alias="isPrimitive")
    pings: Optional[int] = None


class Agent(_CamelModel):
    """Agent record as served by the registry"""
    id: str
    name: str
    account_id: str = Field("", alias="accountId")
    description: str = ""
    instructions: str = ""
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    image: Optional[str] = None
    verified: bool = False
    chain_ids: Optional[List[Union[int, str]]] = Field(None, alias="chainIds")
    repo: Optional[str] = None
    generated_description: Optional[str] = Field(None, alias="generatedDescription")
    category: Optional[str] = None
    default_prompts: Optional[List[str]] = Field(None, alias="defaultPrompts")
    pings: int = 0


# ============================================================================
# Tool-call arguments
# ============================================================================

class SearchAgentsParams(_CamelModel):
    """Arguments of search-agents"""
    query: str = Field(..., description="Search query text, '*' returns everything")
    verified_only: bool = Field(True, alias="verifiedOnly")
    chain_ids: Optional[str] = Field(None, alias="chainIds")
    category: Optional[str] = None
    limit: int = 10
    offset: int = 0
    threshold: float = 0.3
    include_services: Optional[List[str]] = Field(
        None, alias="includeServices",
        description="Capability sources to search, defaults to all"
    )


class SearchToolsParams(_CamelModel):
    """Arguments of search-tools"""
    query: str = Field(..., description="Search query text, '*' returns everything")
    limit: int = 5
    threshold: float = 1.0
    include_services: Optional[List[str]] = Field(
        None, alias="includeServices",
        description="Capability sources to search, built-in sources are always included"
    )


class GetAgentParams(_CamelModel):
    """Arguments of get-agent-by-id"""
    agent_id: str = Field(..., alias="agentId", description="ID of the agent to retrieve")


class ExecuteAgentParams(_CamelModel):
    """Arguments of execute-agent"""
    agent_id: str = Field(..., alias="agentId", description="ID of the agent to execute")
    input: str = Field(..., description="Input to the agent")


class ExecuteToolParams(_CamelModel):
    """Arguments of execute-tool"""
    tool: str = Field(..., description="The tool to execute")
    params: Union[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="The parameters to pass to the tool, as an object or a JSON string"
    )
    source: Optional[str] = Field(None, description="Capability source that owns the tool")
    metadata: Optional[Dict[str, Any]] = Field(
        None,
        description='Optional metadata to pass to the tool i.e. {"accountId": "123", "evmAddress": "0x123"}'
    )
