"""Configuration module for taxbridge."""

from taxbridge.config.loader import load_config, get_config_path, save_config
from taxbridge.config.schema import BridgeConfig, Config, ServerConfig
from taxbridge.config.access import get_config, clear_config_cache

__all__ = [
    "BridgeConfig",
    "Config",
    "ServerConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
