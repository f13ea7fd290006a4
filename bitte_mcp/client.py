"""
Bitte MCP Proxy - Registry and Runtime Client
Thin async HTTP client for the Bitte registry (/api/*) and runtime (/chat).
"""

import logging
from typing import Any, Dict, Optional

import httpx

from bitte_mcp.exceptions import HttpError, UpstreamConnectionError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

REGISTRY_PREFIX = "/api/"
CHAT_ENDPOINT = "/chat"


class BitteClient:
    """Asynchronous client for the Bitte registry and runtime."""

    def __init__(
        self,
        registry_url: str,
        runtime_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.registry_url = registry_url.rstrip("/")
        self.runtime_url = runtime_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "bitte-mcp-proxy/0.1.0"
                },
                timeout=httpx.Timeout(self.timeout)
            )
        return self._client

    def url_for(self, endpoint: str) -> str:
        base_url = self.registry_url if endpoint.startswith(REGISTRY_PREFIX) else self.runtime_url
        return f"{base_url}{endpoint}"

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Call a registry or runtime endpoint.

        Endpoints under /api/ go to the registry, everything else to the
        runtime. The runtime chat endpoint answers with raw text; every
        other endpoint answers with JSON.

        Raises:
            HttpError: on a non-2xx response.
            UpstreamTimeoutError: when the request times out.
            UpstreamConnectionError: when the service cannot be reached.
        """
        url = self.url_for(endpoint)
        headers: Dict[str, str] = {}
        if body is not None and not endpoint.startswith(REGISTRY_PREFIX) and self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        client = await self._get_client()
        logger.info(f"Calling {method} {url}")

        try:
            response = await client.request(method=method, url=url, json=body, headers=headers)
        except httpx.TimeoutException:
            raise UpstreamTimeoutError(operation=f"{method} {endpoint}", timeout=self.timeout)
        except httpx.TransportError as e:
            raise UpstreamConnectionError(url=url, message=str(e))

        if not response.is_success:
            logger.error(f"API error: {method} {url} returned {response.status_code}")
            raise HttpError(response.status_code, response.reason_phrase, url=url)

        if endpoint == CHAT_ENDPOINT:
            return response.text
        return response.json()

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
