"""
Coinbase AgentKit capability source.

Exposes AgentKit actions (wallet, WETH, Pyth, Compound, ERC-20, ERC-721,
WOW) as native tools. Install with the ``agentkit`` extra.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List

from bitte_mcp.exceptions import SourceUnavailableError
from bitte_mcp.sources.base import SdkSource, require_name, wrap_callable
from bitte_mcp.tools.base import NativeTool, schema_from

logger = logging.getLogger(__name__)

SOURCE_NAME = "agentkit"

DEFAULT_CHAIN_ID = "84532"


class AgentKitSource(SdkSource):
    """Translates AgentKit ``Action`` objects (name, description, args_schema, invoke)"""

    name = SOURCE_NAME

    def translate(self, native: Any) -> NativeTool:
        name = require_name(native)
        invoke = getattr(native, "invoke", None)
        if not callable(invoke):
            raise TypeError(f"action {name} has no invoke callable")

        def run(params: Dict[str, Any]) -> Any:
            logger.info(f"Executing AgentKit action {name}")
            return invoke(params)

        return NativeTool(
            name=name,
            description=getattr(native, "description", "") or "",
            parameters=schema_from(getattr(native, "args_schema", None)),
            handler=wrap_callable(run),
            source=self.name
        )


def agentkit_loader(options: Dict[str, Any]) -> Callable[[], Awaitable[List[Any]]]:
    """Build a loader that creates an AgentKit instance and lists its actions"""

    async def load() -> List[Any]:
        return await asyncio.to_thread(_load_agentkit_actions, options)

    return load


def _load_agentkit_actions(options: Dict[str, Any]) -> List[Any]:
    private_key = options.get("private_key")
    if not private_key:
        raise SourceUnavailableError(SOURCE_NAME, "agentkit source requires private_key")

    try:
        from coinbase_agentkit import (
            AgentKit,
            AgentKitConfig,
            EthAccountWalletProvider,
            EthAccountWalletProviderConfig,
            compound_action_provider,
            erc20_action_provider,
            erc721_action_provider,
            pyth_action_provider,
            wallet_action_provider,
            weth_action_provider,
            wow_action_provider,
        )
        from eth_account import Account
    except ImportError as e:
        raise SourceUnavailableError(SOURCE_NAME, f"AgentKit is not installed: {e}")

    wallet_provider = EthAccountWalletProvider(
        config=EthAccountWalletProviderConfig(
            account=Account.from_key(private_key),
            chain_id=str(options.get("chain_id") or DEFAULT_CHAIN_ID)
        )
    )
    agentkit = AgentKit(AgentKitConfig(
        wallet_provider=wallet_provider,
        action_providers=[
            wallet_action_provider(),
            wow_action_provider(),
            weth_action_provider(),
            pyth_action_provider(),
            compound_action_provider(),
            erc20_action_provider(),
            erc721_action_provider(),
        ]
    ))
    return list(agentkit.get_actions())
