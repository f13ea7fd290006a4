"""
GOAT SDK capability source.

Exposes the GOAT on-chain tools (ERC-20 plugin over an EVM wallet) as
native tools. Install with the ``goat`` extra.
"""

import asyncio
import logging
from typing import Any, Callable, Awaitable, Dict, List

from bitte_mcp.exceptions import SourceUnavailableError
from bitte_mcp.sources.base import SdkSource, require_name, wrap_callable
from bitte_mcp.tools.base import NativeTool, schema_from

logger = logging.getLogger(__name__)

SOURCE_NAME = "goat"


class GoatSource(SdkSource):
    """Translates GOAT ``ToolBase`` objects (name, description, parameters, execute)"""

    name = SOURCE_NAME

    def translate(self, native: Any) -> NativeTool:
        return NativeTool(
            name=require_name(native),
            description=getattr(native, "description", "") or "",
            parameters=schema_from(getattr(native, "parameters", None)),
            handler=wrap_callable(getattr(native, "execute", None)),
            source=self.name
        )


def goat_loader(options: Dict[str, Any]) -> Callable[[], Awaitable[List[Any]]]:
    """Build a loader that creates the GOAT wallet and lists its tools"""

    async def load() -> List[Any]:
        return await asyncio.to_thread(_load_goat_tools, options)

    return load


def _load_goat_tools(options: Dict[str, Any]) -> List[Any]:
    rpc_url = options.get("rpc_url")
    private_key = options.get("private_key")
    if not rpc_url or not private_key:
        raise SourceUnavailableError(SOURCE_NAME, "goat source requires rpc_url and private_key")

    try:
        from eth_account import Account
        from goat.utils.get_tools import get_tools
        from goat_plugins.erc20 import ERC20PluginOptions, erc20
        from goat_plugins.erc20.token import USDC
        from goat_wallets.web3 import Web3EVMWalletClient
        from web3 import Web3
        from web3.middleware import SignAndSendRawMiddlewareBuilder
    except ImportError as e:
        raise SourceUnavailableError(SOURCE_NAME, f"GOAT SDK is not installed: {e}")

    w3 = Web3(Web3.HTTPProvider(rpc_url))
    account = Account.from_key(private_key)
    w3.eth.default_account = account.address
    w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))

    tools = get_tools(
        wallet=Web3EVMWalletClient(w3),
        plugins=[erc20(options=ERC20PluginOptions(tokens=[USDC]))]
    )
    logger.debug(f"GOAT SDK returned {len(tools)} tools")
    return list(tools)
