"""
Bitte MCP Proxy - Configuration

Configuration is resolved in three layers: built-in defaults, an optional
YAML file, then environment variables. Command-line flags are applied on
top by ``server.main``.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.bitte.ai"
DEFAULT_RUNTIME_URL = "https://ai-runtime-446257178793.europe-west1.run.app"


@dataclass
class ProxyConfig:
    """Proxy server configuration"""
    registry_url: str = DEFAULT_REGISTRY_URL
    runtime_url: str = DEFAULT_RUNTIME_URL
    api_key: Optional[str] = None
    request_timeout: float = 60.0

    host: str = "0.0.0.0"
    port: int = 3000
    transport: str = "http"
    log_level: str = "INFO"
    enable_metrics: bool = True

    # Capability sources to register, in order
    sources: List[str] = field(default_factory=lambda: ["goat", "agentkit"])
    goat: Dict[str, Any] = field(default_factory=dict)
    agentkit: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProxyConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        values = {key: value for key, value in data.items() if key in known}
        # An empty YAML section loads as None
        for section in ("goat", "agentkit"):
            if section in values:
                values[section] = values[section] or {}
        return cls(**values)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env(config: ProxyConfig, environ: Dict[str, str]) -> ProxyConfig:
    if environ.get("BITTE_REGISTRY_URL"):
        config.registry_url = environ["BITTE_REGISTRY_URL"]
    if environ.get("BITTE_RUNTIME_URL"):
        config.runtime_url = environ["BITTE_RUNTIME_URL"]
    if environ.get("BITTE_API_KEY"):
        config.api_key = environ["BITTE_API_KEY"]
    if environ.get("BITTE_REQUEST_TIMEOUT"):
        config.request_timeout = float(environ["BITTE_REQUEST_TIMEOUT"])
    if environ.get("BITTE_SOURCES") is not None:
        config.sources = [name.strip() for name in environ["BITTE_SOURCES"].split(",") if name.strip()]
    if environ.get("HOST"):
        config.host = environ["HOST"]
    if environ.get("PORT"):
        config.port = int(environ["PORT"])
    if environ.get("LOG_LEVEL"):
        config.log_level = environ["LOG_LEVEL"].upper()
    if environ.get("ENABLE_METRICS"):
        config.enable_metrics = _env_bool(environ["ENABLE_METRICS"])

    if environ.get("RPC_PROVIDER_URL"):
        config.goat.setdefault("rpc_url", environ["RPC_PROVIDER_URL"])
    if environ.get("WALLET_PRIVATE_KEY"):
        config.goat.setdefault("private_key", environ["WALLET_PRIVATE_KEY"])
        config.agentkit.setdefault("private_key", environ["WALLET_PRIVATE_KEY"])
    if environ.get("AGENTKIT_CHAIN_ID"):
        config.agentkit.setdefault("chain_id", environ["AGENTKIT_CHAIN_ID"])
    return config


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> ProxyConfig:
    """Load configuration from defaults, an optional YAML file and the environment"""
    data: Dict[str, Any] = {}
    if path:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            logger.info(f"Loaded configuration from {path}")
        else:
            logger.warning(f"Config file not found: {path}, using defaults")

    config = ProxyConfig.from_dict(data)
    return _apply_env(config, dict(os.environ) if environ is None else environ)
