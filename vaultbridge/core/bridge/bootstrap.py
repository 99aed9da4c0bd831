"""Plugin bootstrap module.

Version: 0.1.0

Holds the process-wide plugin instance for hosts that load vaultbridge
as a module. It should be called once during host startup to:
1. Load configuration and set up logging
2. Build the plugin with the configured backend
3. Initialize it with the host accessor

Usage:
    from vaultbridge.core.bridge.bootstrap import init_plugin, get_plugin

    # At startup
    plugin = init_plugin(accessor)

    # Per request
    response = get_plugin().handle(request)
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from vaultbridge.config import BridgeConfig
    from vaultbridge.core.bridge.bridge import SecretsPlugin
    from vaultbridge.core.bridge.registry import BackendRef

logger = logging.getLogger(__name__)

# Module-level state
_initialized = False
_plugin: Optional["SecretsPlugin"] = None


def init_plugin(
    accessor: Any = None,
    config: Optional["BridgeConfig"] = None,
    backend: Optional["BackendRef"] = None,
) -> "SecretsPlugin":
    """Initialize the process-wide plugin.

    Args:
        accessor: Host accessor passed to the backend
        config: Bridge configuration (loaded from disk if omitted)
        backend: Backend reference overriding ``config.plugin.backend``

    Returns:
        The ready SecretsPlugin

    Raises:
        Exception: Whatever initialization raised, after logging it
    """
    global _initialized, _plugin

    if _initialized and _plugin is not None:
        logger.warning("Plugin already initialized, skipping")
        return _plugin

    from vaultbridge.config import load_config
    from vaultbridge.core.bridge.bridge import SecretsPlugin
    from vaultbridge.core.bridge.services import set_plugin_log_level
    from vaultbridge.core.logging_utils import configure_logging, level_number

    if config is None:
        config = load_config()

    configure_logging(
        config.logging.level,
        log_file=config.logging.path,
        reset_on_start=config.logging.reset_on_start,
    )
    if config.logging.plugin_level:
        set_plugin_log_level(config.plugin.id, level_number(config.logging.plugin_level))

    backend_ref = backend if backend is not None else config.plugin.backend
    if backend_ref == "vault":
        backend_ref = functools.partial(_vault_backend, config.vault.to_settings())

    plugin = SecretsPlugin(backend=backend_ref, plugin_id=config.plugin.id)
    try:
        plugin.initialize_application_accessor(accessor)
    except Exception as e:
        logger.error("Failed to initialize plugin %s: %s", config.plugin.id, e)
        raise

    _plugin = plugin
    _initialized = True
    return plugin


def _vault_backend(defaults: Dict[str, Any]) -> Any:
    """Build the Vault backend seeded with the config's ``vault`` section."""
    from vaultbridge.backends.vault import VaultBackend
    return VaultBackend(defaults=defaults)


def shutdown_plugin() -> None:
    """Drop the process-wide plugin. The state cell goes with it."""
    global _initialized, _plugin

    if not _initialized:
        logger.debug("Plugin not initialized, nothing to shutdown")
        return

    logger.info("Shutting down plugin %s", _plugin.plugin_id if _plugin else "?")
    _plugin = None
    _initialized = False


def is_initialized() -> bool:
    """Check if the plugin is initialized."""
    return _initialized


def get_plugin() -> Optional["SecretsPlugin"]:
    """Get the plugin instance, or None if not initialized."""
    return _plugin


def get_plugin_stats() -> Dict[str, Any]:
    """Get plugin status and dispatch counters."""
    if not _initialized or _plugin is None:
        return {
            "initialized": False,
            "state": None,
            "metrics": {},
        }

    return {
        "initialized": True,
        **_plugin.to_dict(),
    }
