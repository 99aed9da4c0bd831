"""Logging services for vaultbridge backends.

Version: 0.1.0

Backends never import host logger types. They receive a plain function,
``log(level, message, error)``, built once by the bridge during
initialization and bound to a ``PluginLogger`` that writes through the
host's logging facility.

Usage:
    from vaultbridge.core.bridge.services import PluginLogger, build_logger_fn

    log = build_logger_fn(PluginLogger("vault-secrets"))
    log("info", "Connected to Vault", None)
    log("error", "Lookup failed", exc)

Level mapping:
    "debug" -> DEBUG, "info" -> INFO, "warn" -> WARNING,
    anything else -> ERROR
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from vaultbridge.core.bridge.interfaces import LoggerFn

# Plugins can never be more verbose than this
_GLOBAL_LOG_LEVEL_FLOOR: int = logging.DEBUG
_PLUGIN_LOG_LEVELS: Dict[str, int] = {}


def set_global_log_level_floor(level: int) -> None:
    """Set the minimum level any plugin may log at."""
    global _GLOBAL_LOG_LEVEL_FLOOR
    _GLOBAL_LOG_LEVEL_FLOOR = level


def get_global_log_level_floor() -> int:
    return _GLOBAL_LOG_LEVEL_FLOOR


def set_plugin_log_level(plugin_id: str, level: int) -> None:
    """Set a plugin's own level (``logging.plugin_level`` in the config)."""
    _PLUGIN_LOG_LEVELS[plugin_id] = level


def get_plugin_log_level(plugin_id: str) -> Optional[int]:
    return _PLUGIN_LOG_LEVELS.get(plugin_id)


def clear_plugin_log_levels() -> None:
    _PLUGIN_LOG_LEVELS.clear()


class PluginLogger:
    """Host-side logger behind a plugin's logging bridge.

    Records go to ``vaultbridge.plugins.<plugin_id>`` prefixed with
    ``[plugin:<plugin_id>]``. A record is dropped unless its level reaches
    both the global floor and the plugin's own level.
    """

    def __init__(self, plugin_id: str, base_logger: Optional[logging.Logger] = None):
        self._plugin_id = plugin_id
        self._prefix = f"[plugin:{plugin_id}] "
        self._logger = base_logger or logging.getLogger(f"vaultbridge.plugins.{plugin_id}")

    @property
    def plugin_id(self) -> str:
        return self._plugin_id

    def _format_msg(self, msg: str) -> str:
        return self._prefix + msg

    def getEffectiveLevel(self) -> int:
        plugin_level = get_plugin_log_level(self._plugin_id)
        if plugin_level is None:
            return get_global_log_level_floor()
        return max(get_global_log_level_floor(), plugin_level)

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.getEffectiveLevel()

    def setLevel(self, level: int) -> None:
        set_plugin_log_level(self._plugin_id, level)

    def _emit(self, level: int, method: str, msg: str, args: Any, kwargs: Any) -> None:
        if self.isEnabledFor(level):
            getattr(self._logger, method)(self._format_msg(msg), *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, "debug", msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.INFO, "info", msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.WARNING, "warning", msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.ERROR, "error", msg, args, kwargs)


def log_plugin_message(
    host_logger: Any,
    level: Any,
    message: Any,
    error: Optional[BaseException] = None,
) -> None:
    """Route one backend log record to the host logger.

    Levels other than "debug", "info" and "warn" are logged as errors.
    When ``error`` is an exception it is attached as ``exc_info`` so the
    host renders its traceback; anything else is ignored and the message
    is logged alone. Never raises.
    """
    try:
        if level == "debug":
            emit = host_logger.debug
        elif level == "info":
            emit = host_logger.info
        elif level == "warn":
            emit = host_logger.warning
        else:
            emit = host_logger.error

        if isinstance(error, BaseException):
            exc_info = (type(error), error, error.__traceback__)
            emit("%s", message, exc_info=exc_info)
        else:
            emit("%s", message)
    except Exception:
        pass


def build_logger_fn(host_logger: Any) -> LoggerFn:
    """Construct the log function handed to a backend.

    Args:
        host_logger: PluginLogger (or any logger-like object) to write to

    Returns:
        A three-argument ``log(level, message, error)`` callable
    """

    def log(level: str, message: str, error: Optional[BaseException] = None) -> None:
        log_plugin_message(host_logger, level, message, error)

    return log
