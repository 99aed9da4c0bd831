"""Configuration system for vaultbridge."""

from .config import (
    BridgeConfig,
    LoggingConfig,
    PluginConfig,
    VaultConfig,
    load_config,
    resolve_config_path,
    save_config,
)

__all__ = [
    "BridgeConfig",
    "LoggingConfig",
    "PluginConfig",
    "VaultConfig",
    "load_config",
    "resolve_config_path",
    "save_config",
]
