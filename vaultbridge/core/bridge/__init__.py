"""vaultbridge Plugin Bridge - Core Infrastructure.

Version: 0.1.0

The bridge connects a host's plugin protocol to a pluggable secrets
backend. It provides:
- Plugin identity reporting
- One-time initialization with fail-fast error handling
- A shared state cell with atomic replace and compare-and-set
- Pass-through request dispatch to the backend handler
- A logging bridge so backends log without host logger types
- A registry for late-bound backend resolution

This package contains:
- interfaces.py: Request/response types and the backend contract
- exceptions.py: Dedicated exception classes
- state.py: Atomic state cell
- services.py: Logging bridge and plugin logger
- registry.py: Backend handler registry
- bridge.py: SecretsPlugin runtime
- bootstrap.py: Process-wide plugin lifecycle
"""

__version__ = "0.1.0"

from vaultbridge.core.bridge.exceptions import (
    BridgeError,
    PluginError,
    BackendResolutionError,
    LifecycleError,
    InitializationError,
    PluginNotReadyError,
    UnhandledRequestTypeError,
    ConfigError,
)

from vaultbridge.core.bridge.interfaces import (
    BackendHandler,
    HostAccessor,
    LoggerFn,
    PluginIdentifier,
    PluginRequest,
    PluginResponse,
    PluginState,
    SUCCESS_RESPONSE_CODE,
    BAD_REQUEST,
    NOT_FOUND,
    VALIDATION_FAILED,
    INTERNAL_ERROR,
)

from vaultbridge.core.bridge.state import StateCell

from vaultbridge.core.bridge.services import (
    PluginLogger,
    build_logger_fn,
    log_plugin_message,
    set_global_log_level_floor,
    get_global_log_level_floor,
    set_plugin_log_level,
    get_plugin_log_level,
    clear_plugin_log_levels,
)

from vaultbridge.core.bridge.registry import (
    BackendRegistry,
    ENTRY_POINT_GROUP,
    get_backend_registry,
    reset_backend_registry,
)

from vaultbridge.core.bridge.bridge import (
    SecretsPlugin,
    PLUGIN_IDENTIFIER,
    DEFAULT_PLUGIN_ID,
)

__all__ = [
    # Exceptions
    "BridgeError",
    "PluginError",
    "BackendResolutionError",
    "LifecycleError",
    "InitializationError",
    "PluginNotReadyError",
    "UnhandledRequestTypeError",
    "ConfigError",
    # Interfaces
    "BackendHandler",
    "HostAccessor",
    "LoggerFn",
    "PluginIdentifier",
    "PluginRequest",
    "PluginResponse",
    "PluginState",
    "SUCCESS_RESPONSE_CODE",
    "BAD_REQUEST",
    "NOT_FOUND",
    "VALIDATION_FAILED",
    "INTERNAL_ERROR",
    # State
    "StateCell",
    # Logging
    "PluginLogger",
    "build_logger_fn",
    "log_plugin_message",
    "set_global_log_level_floor",
    "get_global_log_level_floor",
    "set_plugin_log_level",
    "get_plugin_log_level",
    "clear_plugin_log_levels",
    # Registry
    "BackendRegistry",
    "ENTRY_POINT_GROUP",
    "get_backend_registry",
    "reset_backend_registry",
    # Runtime
    "SecretsPlugin",
    "PLUGIN_IDENTIFIER",
    "DEFAULT_PLUGIN_ID",
]
