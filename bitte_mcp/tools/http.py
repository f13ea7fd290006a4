"""
Dynamic HTTP tool execution.

Turns a declarative ``HttpTool`` ({baseUrl, path, httpMethod} plus a
parameter schema) into an actual HTTP request.
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from bitte_mcp.exceptions import HttpError, MissingParameterError
from bitte_mcp.tools.base import HttpTool

logger = logging.getLogger(__name__)

METADATA_HEADER = "mb-metadata"

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
_QUERY_METHODS = {"GET", "HEAD"}


def normalize_base_url(base_url: str) -> str:
    """Prefix https:// when the base URL has no scheme"""
    if base_url.startswith(("http://", "https://")):
        return base_url
    return f"https://{base_url}"


def substitute_path(path: str, params: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Fill ``{name}`` placeholders in ``path`` from ``params``.

    Returns the expanded path and the parameters that were not consumed.

    Raises:
        MissingParameterError: if a placeholder has no (non-None) value.
    """
    remaining = dict(params)

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if remaining.get(key) is None:
            raise MissingParameterError(key)
        value = remaining.pop(key)
        return quote(_query_value(value), safe="")

    return _PLACEHOLDER_RE.sub(_replace, path), remaining


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_query_value(element) for element in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _join_url(base_url: str, path: str) -> str:
    if base_url.endswith("/") and path.startswith("/"):
        return base_url + path[1:]
    return base_url + path


class HttpToolExecutor:
    """Executes declarative HTTP tools"""

    def __init__(
        self,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self.timeout)
            )
        return self._client

    async def invoke(
        self,
        tool: HttpTool,
        params: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Call ``tool`` with ``params``.

        Never raises: returns ``{"data": ...}`` on success and
        ``{"error": "<tool name>: <message>"}`` on any failure.
        """
        try:
            data = await self._request(tool, params or {}, metadata)
            return {"data": data}
        except Exception as e:
            logger.error(f"HTTP tool {tool.name} failed: {e}")
            return {"error": f"{tool.name}: {e}"}

    async def _request(
        self,
        tool: HttpTool,
        params: Dict[str, Any],
        metadata: Optional[Dict[str, Any]]
    ) -> Any:
        spec = tool.execution
        path, remaining = substitute_path(spec.path, params)
        url = _join_url(normalize_base_url(spec.base_url), path)
        method = spec.http_method.upper()

        headers: Dict[str, str] = {}
        if metadata:
            headers[METADATA_HEADER] = json.dumps(metadata)

        request_kwargs: Dict[str, Any] = {"headers": headers}
        if method in _QUERY_METHODS:
            query = {key: _query_value(value) for key, value in remaining.items() if value is not None}
            if query:
                request_kwargs["params"] = query
        else:
            headers["Content-Type"] = "application/json"
            request_kwargs["content"] = json.dumps(remaining)

        logger.info(f"Calling {method} {url} for tool {tool.name}")
        client = await self._get_client()
        response = await client.request(method, url, **request_kwargs)

        if not response.is_success:
            raise HttpError(response.status_code, response.reason_phrase, url=str(response.url))

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()
        if "text" in content_type:
            return response.text
        return response.content

    async def aclose(self):
        if self._client:
            await self._client.aclose()
            self._client = None
