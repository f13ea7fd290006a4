"""
Capability sources: the on-chain tool SDKs behind the proxy.
"""

import logging

from bitte_mcp.config import ProxyConfig
from bitte_mcp.sources.agentkit import AgentKitSource, agentkit_loader
from bitte_mcp.sources.base import (
    CallableSource,
    CapabilitySource,
    SdkSource,
    SourceRegistry,
    wrap_callable,
)
from bitte_mcp.sources.goat import GoatSource, goat_loader

logger = logging.getLogger(__name__)


def build_sources(config: ProxyConfig) -> SourceRegistry:
    """Create the source registry named by ``config.sources``"""
    sources = []
    for name in config.sources:
        if name == GoatSource.name:
            sources.append(GoatSource(goat_loader(config.goat)))
        elif name == AgentKitSource.name:
            sources.append(AgentKitSource(agentkit_loader(config.agentkit)))
        else:
            logger.warning(f"Unknown capability source in config: {name}")
    return SourceRegistry(sources)


__all__ = [
    "AgentKitSource",
    "CallableSource",
    "CapabilitySource",
    "GoatSource",
    "SdkSource",
    "SourceRegistry",
    "build_sources",
    "wrap_callable",
]
