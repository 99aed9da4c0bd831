"""Exception classes for the vaultbridge plugin runtime.

Version: 0.1.0

Only two tiers are allowed to escape the bridge as raised failures:
fatal startup errors (backend resolution, backend initialization) and
unsupported request types. Business-logic failures travel as responses.
"""

from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    """Base exception for all bridge-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (dict, plugin_id, etc.)
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class PluginError(BridgeError):
    """Error related to a specific plugin instance.

    Attributes:
        plugin_id: The ID of the plugin that caused the error
    """

    def __init__(
        self,
        message: str,
        plugin_id: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.plugin_id = plugin_id
        self.details["plugin_id"] = plugin_id

    def __str__(self) -> str:
        return f"[{self.plugin_id}] {self.message}"


class BackendResolutionError(BridgeError):
    """The backend handler could not be resolved.

    Raised when:
    - The reference names no registered backend or entry point
    - The backend module fails to import
    - The resolved object does not implement the backend contract
    """

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.backend = backend
        if backend:
            self.details["backend"] = backend


class LifecycleError(PluginError):
    """Error during plugin lifecycle transitions.

    Raised when:
    - Initialization is attempted on an instance that already failed
    - Invalid state transition attempted
    """

    def __init__(
        self,
        message: str,
        plugin_id: str,
        current_state: Optional[str] = None,
        target_state: Optional[str] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, plugin_id, details)
        self.current_state = current_state
        self.target_state = target_state

        if current_state:
            self.details["current_state"] = current_state
        if target_state:
            self.details["target_state"] = target_state


class InitializationError(LifecycleError):
    """The backend handler did not produce a usable state value."""


class PluginNotReadyError(LifecycleError):
    """A request arrived before successful initialization (or after a failed one)."""


class UnhandledRequestTypeError(BridgeError):
    """The backend does not recognize the request's type tag.

    Distinct from an error response: it tells the host the operation is
    not supported at all, rather than that it failed.
    """

    def __init__(
        self,
        request_name: str,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        message = f"Unhandled request type: {request_name!r}"
        super().__init__(message, details)
        self.request_name = request_name
        self.details["request_name"] = request_name


class ConfigError(BridgeError):
    """Error loading or parsing the bridge configuration file."""

    def __init__(
        self,
        message: str,
        config_path: Optional[str] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.config_path = config_path
        if config_path:
            self.details["config_path"] = config_path
