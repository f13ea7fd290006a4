"""
Capability source infrastructure.

A capability source is a named backend that lists invocable tools. Sources
are registered once at start-up in a ``SourceRegistry`` that is passed by
reference to the search and dispatch layers.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from bitte_mcp.tools.base import InvocableItem, NativeTool, ToolHandler

logger = logging.getLogger(__name__)


class CapabilitySource(ABC):
    """
    Base class for capability sources.

    Subclasses set ``name`` and implement ``list_tools``. Listing must be
    side-effect free apart from the SDK or network call it wraps, and must
    skip (not raise on) individual malformed entries.
    """

    name: str = ""
    builtin: bool = False

    @abstractmethod
    async def list_tools(self) -> List[InvocableItem]:
        """Return the current tools of this source"""


class CallableSource(CapabilitySource):
    """Source backed by an async zero-argument function returning tools"""

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[Sequence[InvocableItem]]],
        builtin: bool = False
    ):
        self.name = name
        self.builtin = builtin
        self._fetch = fetch

    async def list_tools(self) -> List[InvocableItem]:
        return list(await self._fetch())


class SdkSource(CapabilitySource):
    """
    Source backed by a third-party tool SDK.

    ``loader`` returns the SDK's native tool objects; ``translate`` turns one
    native object into a ``NativeTool``. Entries that fail translation are
    skipped and logged.
    """

    builtin = True

    def __init__(self, loader: Callable[[], Awaitable[Sequence[Any]]], name: Optional[str] = None):
        if name:
            self.name = name
        self._loader = loader

    async def list_tools(self) -> List[InvocableItem]:
        natives = await self._loader()
        tools: List[InvocableItem] = []
        for native in natives:
            try:
                tools.append(self.translate(native))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.name} tool {getattr(native, 'name', '?')!r}: {e}")
        logger.debug(f"Source {self.name} listed {len(tools)} tools")
        return tools

    @abstractmethod
    def translate(self, native: Any) -> NativeTool:
        """Map one native SDK tool to a NativeTool"""


def wrap_callable(func: Callable[..., Any]) -> ToolHandler:
    """Adapt a sync or async callable taking one params dict to a ToolHandler"""
    if not callable(func):
        raise TypeError("tool handler is not callable")

    async def handler(params: Dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(func):
            return await func(params)
        result = await asyncio.to_thread(func, params)
        if inspect.isawaitable(result):
            result = await result
        return result

    return handler


def require_name(native: Any) -> str:
    name = getattr(native, "name", None)
    if not isinstance(name, str) or not name:
        raise ValueError("tool has no name")
    return name


class SourceRegistry:
    """Ordered, immutable mapping of source name to capability source"""

    def __init__(self, sources: Iterable[CapabilitySource] = ()):
        registered: Dict[str, CapabilitySource] = {}
        for source in sources:
            if not source.name:
                raise ValueError(f"Source {type(source).__name__} has no name")
            if source.name in registered:
                raise ValueError(f"Duplicate capability source: {source.name}")
            registered[source.name] = source
            logger.info(f"Registered capability source: {source.name}")
        self._sources = registered

    def get(self, name: str) -> Optional[CapabilitySource]:
        return self._sources.get(name)

    def names(self) -> List[str]:
        return list(self._sources)

    def builtin_names(self) -> List[str]:
        return [name for name, source in self._sources.items() if source.builtin]

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __iter__(self) -> Iterator[CapabilitySource]:
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)
