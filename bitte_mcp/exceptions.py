"""
Bitte MCP Proxy - Exceptions
Typed errors raised by the search, dispatch and HTTP layers.
"""

from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base exception for all proxy errors"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "UNKNOWN_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(ProxyError):
    """Raised when no agent or tool matches a request"""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"name": name} if name else {}
        )
        self.name = name


class MissingParameterError(ProxyError):
    """Raised when a path placeholder has no matching parameter"""

    def __init__(self, parameter: str):
        super().__init__(
            f"Missing required path parameter: {parameter}",
            code="MISSING_PARAMETER",
            details={"parameter": parameter}
        )
        self.parameter = parameter


class HttpError(ProxyError):
    """Raised when an upstream service answers with a non-2xx status"""

    def __init__(self, status: int, status_text: str = "", url: Optional[str] = None):
        message = f"HTTP error {status}"
        if status_text:
            message += f" {status_text}"
        super().__init__(
            message,
            code="HTTP_ERROR",
            details={"status": status, "status_text": status_text, "url": url}
        )
        self.status = status
        self.status_text = status_text
        self.url = url


class InvalidInputError(ProxyError):
    """Raised when search or dispatch input is malformed"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            code="INVALID_INPUT",
            details={"field": field} if field else {}
        )
        self.field = field


class SourceUnavailableError(ProxyError):
    """Raised when a capability source cannot list its tools"""

    def __init__(self, source: str, message: Optional[str] = None):
        super().__init__(
            message or f"Source unavailable: {source}",
            code="SOURCE_UNAVAILABLE",
            details={"source": source}
        )
        self.source = source


class UpstreamTimeoutError(ProxyError):
    """Raised when an upstream call times out"""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Operation '{operation}' timed out after {timeout}s",
            code="TIMEOUT",
            details={"operation": operation, "timeout": timeout}
        )
        self.operation = operation
        self.timeout = timeout


class UpstreamConnectionError(ProxyError):
    """Raised when an upstream service cannot be reached"""

    def __init__(self, url: str, message: Optional[str] = None):
        super().__init__(
            message or f"Failed to connect to {url}",
            code="CONNECTION_ERROR",
            details={"url": url}
        )
        self.url = url
