"""
Configuration loading and models for vaultbridge.

Version: 0.1.0
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from vaultbridge.core.bridge.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "vaultbridge.yaml"
CONFIG_PATH_ENV = "VAULTBRIDGE_CONFIG"


@dataclass
class PluginConfig:
    """Plugin identity and backend selection."""

    id: str = "vault-secrets"
    backend: str = "vault"


@dataclass
class LoggingConfig:
    """Configuration for logging.

    Attributes:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        plugin_level: Level for messages emitted by the backend.
        path: Optional log file destination path.
        reset_on_start: If True, delete log file on startup. If False, add separator.
    """

    level: str = "INFO"
    plugin_level: Optional[str] = None
    path: Optional[str] = None
    reset_on_start: bool = True


@dataclass
class VaultConfig:
    """Default Vault connection settings.

    Requests that carry their own configuration take precedence.
    """

    address: Optional[str] = None
    token: Optional[str] = None
    mount_point: str = "secret"
    kv_version: int = 2
    namespace: Optional[str] = None
    verify: bool = True
    timeout: int = 30

    def to_settings(self) -> dict[str, Any]:
        """Render as backend settings (keys of the plugin configuration)."""
        data: dict[str, Any] = {
            "vault_addr": self.address,
            "vault_token": self.token,
            "mount_point": self.mount_point,
            "kv_version": self.kv_version,
            "namespace": self.namespace,
            "verify": self.verify,
            "timeout": self.timeout,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class BridgeConfig:
    """Top-level configuration."""

    plugin: PluginConfig = field(default_factory=PluginConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        plugin_data = data.get("plugin") or {}
        logging_data = data.get("logging") or {}
        vault_data = data.get("vault") or {}
        for name, section in (("plugin", plugin_data), ("logging", logging_data), ("vault", vault_data)):
            if not isinstance(section, dict):
                raise ConfigError(f"Section '{name}' must be a mapping")

        try:
            return cls(
                plugin=PluginConfig(**plugin_data),
                logging=LoggingConfig(**logging_data),
                vault=VaultConfig(**vault_data),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "plugin": {"id": self.plugin.id, "backend": self.plugin.backend},
            "logging": {
                "level": self.logging.level,
                "plugin_level": self.logging.plugin_level,
                "path": self.logging.path,
                "reset_on_start": self.logging.reset_on_start,
            },
            "vault": {
                "address": self.vault.address,
                "mount_point": self.vault.mount_point,
                "kv_version": self.vault.kv_version,
                "namespace": self.vault.namespace,
                "verify": self.vault.verify,
                "timeout": self.vault.timeout,
            },
        }


def _apply_env_overrides(config: BridgeConfig) -> None:
    """Standard Vault environment variables win over the file."""
    address = os.environ.get("VAULT_ADDR")
    if address:
        config.vault.address = address
    token = os.environ.get("VAULT_TOKEN")
    if token:
        config.vault.token = token
    namespace = os.environ.get("VAULT_NAMESPACE")
    if namespace:
        config.vault.namespace = namespace


def resolve_config_path(config_file: str | Path | None = None) -> Path:
    """Return the config path from the argument, the environment, or the default name."""
    if config_file:
        return Path(config_file)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return Path.cwd() / CONFIG_FILE_NAME


def load_config(config_file: str | Path | None = None) -> BridgeConfig:
    """Load configuration from a YAML file.

    A missing file yields defaults. A file that exists but cannot be read
    or parsed raises ``ConfigError``.
    """
    config_path = resolve_config_path(config_file)

    if not config_path.is_file():
        logger.debug("No config file found at %s, using defaults.", config_path)
        config = BridgeConfig()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config from %s", config_path)
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config file: {e}", config_path=str(config_path)) from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping", config_path=str(config_path))

    config = BridgeConfig.from_dict(data)
    config.config_path = config_path
    _apply_env_overrides(config)
    return config


def save_config(config: BridgeConfig, config_file: str | Path) -> Path:
    """Write configuration to YAML. The Vault token is never written."""
    config_path = Path(config_file)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
    logger.info("Saved config to %s", config_path)
    return config_path
