"""
Bitte MCP Proxy - Server

Exposes the federated search and dispatch engine as five MCP tools over an
HTTP (FastAPI) or stdio (JSON lines) transport.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from bitte_mcp import __version__
from bitte_mcp.client import BitteClient
from bitte_mcp.config import ProxyConfig, load_config
from bitte_mcp.dispatcher import Dispatcher
from bitte_mcp.exceptions import ProxyError
from bitte_mcp.models import (
    ExecuteAgentParams,
    ExecuteToolParams,
    GetAgentParams,
    SearchAgentsParams,
    SearchToolsParams,
)
from bitte_mcp.observability.metrics import ProxyMetrics, get_metrics
from bitte_mcp.search import FederatedSearch
from bitte_mcp.sources import SourceRegistry, build_sources
from bitte_mcp.tools.base import ExecutionResult
from bitte_mcp.tools.http import HttpToolExecutor

logger = logging.getLogger(__name__)

LOG_FORMAT = ('{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s",'
              '"message":"%(message)s","session_id":"%(session_id)s"}')

_factory_installed = False


def configure_logging(level: str = "INFO"):
    """Structured single-line logs on stderr; stdout belongs to the stdio transport"""
    global _factory_installed
    if not _factory_installed:
        old_factory = logging.getLogRecordFactory()

        def _record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            if not hasattr(record, "session_id"):
                record.session_id = "-"
            return record

        logging.setLogRecordFactory(_record_factory)
        _factory_installed = True

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True
    )


# ============================================================================
# MCP Server
# ============================================================================

TOOL_DESCRIPTIONS = {
    "search-agents": (
        "Search for AI agents across the Bitte registry and the on-chain tool services",
        SearchAgentsParams
    ),
    "search-tools": (
        "Search for tools across the Bitte registry and the on-chain tool services",
        SearchToolsParams
    ),
    "get-agent-by-id": (
        "Get details of a specific AI agent by ID from the Bitte AI registry",
        GetAgentParams
    ),
    "execute-agent": ("Execute an AI agent", ExecuteAgentParams),
    "execute-tool": ("Execute a tool", ExecuteToolParams),
}


class ProxyServer:
    """Routes MCP tool calls to the search and dispatch layers"""

    def __init__(
        self,
        search: FederatedSearch,
        dispatcher: Dispatcher,
        metrics: Optional[ProxyMetrics] = None
    ):
        self.search = search
        self.dispatcher = dispatcher
        self.metrics = metrics
        self.version = __version__

    def list_tools(self) -> List[Dict[str, Any]]:
        """Describe the exposed tools with their JSON argument schemas"""
        return [
            {
                "name": name,
                "description": description,
                "inputSchema": model.model_json_schema(by_alias=True)
            }
            for name, (description, model) in TOOL_DESCRIPTIONS.items()
        ]

    async def handle_tool_call(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
        account_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Handle one MCP tool call; always returns a content envelope"""
        session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        arguments = arguments if arguments is not None else {}
        log_extra = {"session_id": session_id}
        logger.info(f"Tool call: {tool_name}", extra=log_extra)

        try:
            if tool_name == "search-agents":
                params = SearchAgentsParams.model_validate(arguments)
                result = await self._guard("Error searching agents", self._search_agents(params))
            elif tool_name == "search-tools":
                params = SearchToolsParams.model_validate(arguments)
                result = await self._guard("Error searching tools", self._search_tools(params))
            elif tool_name == "get-agent-by-id":
                params = GetAgentParams.model_validate(arguments)
                result = await self._guard("Error getting agent", self._get_agent(params))
            elif tool_name == "execute-agent":
                params = ExecuteAgentParams.model_validate(arguments)
                result = await self.dispatcher.execute_agent(
                    params.agent_id, params.input, session_id=session_id, account_id=account_id
                )
            elif tool_name == "execute-tool":
                params = ExecuteToolParams.model_validate(arguments)
                result = await self.dispatcher.execute_tool(
                    params.tool, params.params, source_hint=params.source, metadata=params.metadata
                )
            else:
                result = ExecutionResult.failure(f"Unknown tool: {tool_name}")
        except ValidationError as e:
            logger.error(f"Invalid arguments for {tool_name}: {e.error_count()} error(s)", extra=log_extra)
            self._record_error("INVALID_INPUT")
            result = ExecutionResult.failure(f"Invalid arguments for {tool_name}: {_describe_validation(e)}")
        except Exception as e:
            logger.exception(f"Unexpected error: {e}", extra=log_extra)
            self._record_error("INTERNAL_ERROR")
            result = ExecutionResult.failure(f"Internal error: {e}")

        return result.to_dict()

    async def _guard(self, prefix: str, operation) -> ExecutionResult:
        try:
            return ExecutionResult.success(await operation)
        except ProxyError as e:
            logger.error(f"{prefix}: {e.code} - {e.message}")
            self._record_error(e.code)
            return ExecutionResult.failure(f"{prefix}: {e.message}")

    async def _search_agents(self, params: SearchAgentsParams) -> Dict[str, Any]:
        result = await self.search.search_agents(params)
        return result.to_dict()

    async def _search_tools(self, params: SearchToolsParams) -> Dict[str, Any]:
        result = await self.search.search_tools(params)
        return result.to_dict()

    async def _get_agent(self, params: GetAgentParams) -> Any:
        return await self.dispatcher.get_agent(params.agent_id)

    def _record_error(self, code: str):
        if self.metrics:
            self.metrics.record_error(code)

    async def close(self):
        await self.dispatcher.executor.aclose()
        await self.dispatcher.client.close()


def _describe_validation(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def build_server(
    config: ProxyConfig,
    sources: Optional[SourceRegistry] = None,
    client: Optional[BitteClient] = None,
    executor: Optional[HttpToolExecutor] = None,
    metrics: Optional[ProxyMetrics] = None
) -> ProxyServer:
    """Wire client, sources, search and dispatcher from configuration"""
    if metrics is None and config.enable_metrics:
        metrics = get_metrics()
    client = client or BitteClient(
        registry_url=config.registry_url,
        runtime_url=config.runtime_url,
        api_key=config.api_key,
        timeout=config.request_timeout
    )
    executor = executor or HttpToolExecutor(timeout=config.request_timeout)
    sources = sources if sources is not None else build_sources(config)

    search = FederatedSearch(client, sources, metrics=metrics)
    dispatcher = Dispatcher(search, executor, client, metrics=metrics)
    return ProxyServer(search, dispatcher, metrics=metrics)


# ============================================================================
# HTTP Transport
# ============================================================================

def create_http_app(server: ProxyServer) -> FastAPI:
    """Create FastAPI application for HTTP transport"""
    app = FastAPI(title="Bitte MCP Proxy", version=server.version)

    @app.post("/mcp/call")
    async def mcp_call(request: Request):
        """MCP tool call endpoint"""
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return JSONResponse(
                status_code=400,
                content=ExecutionResult.failure("Request body must be a JSON object").to_dict()
            )

        return await server.handle_tool_call(
            body.get("name"),
            body.get("arguments") or {},
            session_id=request.headers.get("x-session-id"),
            account_id=request.headers.get("x-account-id")
        )

    @app.get("/mcp/list_tools")
    async def list_tools():
        return {"tools": server.list_tools()}

    @app.get("/health")
    async def health():
        """Simple health check"""
        return {
            "status": "ok",
            "version": server.version,
            "sources": server.search.sources.names()
        }

    if server.metrics is not None:
        @app.get("/metrics")
        async def metrics():
            """Prometheus metrics endpoint"""
            return Response(
                content=server.metrics.get_prometheus_metrics(),
                media_type=server.metrics.get_content_type()
            )

    @app.on_event("shutdown")
    async def shutdown():
        await server.close()

    return app


# ============================================================================
# STDIO Transport
# ============================================================================

async def stdio_server(server: ProxyServer, stdin=None, stdout=None):
    """Run the MCP server over stdio, one JSON request per line"""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logger.info("Starting Bitte MCP proxy on stdio")

    async def read_stdin():
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, stdin.readline)
            if not line:
                break
            yield line.strip()

    async for line in read_stdin():
        if not line:
            continue

        try:
            request = json.loads(line)
            if not isinstance(request, dict):
                raise ValueError("request must be a JSON object")
            result = await server.handle_tool_call(
                request.get("name"),
                request.get("arguments") or {},
                session_id=request.get("sessionId"),
                account_id=request.get("accountId")
            )
        except ValueError as e:
            logger.error(f"Error processing request: {e}")
            result = ExecutionResult.failure(f"Invalid request: {e}").to_dict()

        print(json.dumps(result), file=stdout, flush=True)


# ============================================================================
# Main Entry Point
# ============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bitte MCP Proxy")
    parser.add_argument("--transport", choices=["stdio", "http"], default=None,
                        help="Transport protocol")
    parser.add_argument("--port", type=int, default=None,
                        help="HTTP port (only for http transport)")
    parser.add_argument("--host", default=None,
                        help="HTTP bind address (only for http transport)")
    parser.add_argument("--config", default=None,
                        help="Path to YAML configuration file")
    parser.add_argument("--log-level", default=None,
                        help="Log level (DEBUG, INFO, WARNING, ERROR)")
    return parser.parse_args(argv)


def apply_args(config: ProxyConfig, args: argparse.Namespace) -> ProxyConfig:
    if args.transport:
        config.transport = args.transport
    if args.port:
        config.port = args.port
    if args.host:
        config.host = args.host
    if args.log_level:
        config.log_level = args.log_level.upper()
    return config


async def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = parse_args(argv)
    config = apply_args(load_config(args.config), args)
    configure_logging(config.log_level)

    server = build_server(config)
    logger.info(f"Bitte MCP proxy {__version__} using sources: {', '.join(server.search.sources.names()) or 'none'}")

    if config.transport == "stdio":
        try:
            await stdio_server(server)
        finally:
            await server.close()
    else:
        import uvicorn
        app = create_http_app(server)
        uvicorn_config = uvicorn.Config(app, host=config.host, port=config.port,
                                        log_level=config.log_level.lower())
        await uvicorn.Server(uvicorn_config).serve()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
