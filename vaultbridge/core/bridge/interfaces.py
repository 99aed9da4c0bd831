"""Interface definitions for the vaultbridge plugin runtime.

Version: 0.1.0

This module defines the message types exchanged with the host and the
contract a backend handler must implement to plug into the bridge.

Key interfaces:
- PluginIdentifier: extension kind + supported protocol versions
- PluginRequest / PluginResponse: host-shaped request and response
- BackendHandler: the two-operation backend contract (required)
- HostAccessor: services the host exposes to the plugin
- LoggerFn: the log capability handed to backends
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

if TYPE_CHECKING:
    from vaultbridge.core.bridge.state import StateCell


# =============================================================================
# CONSTANTS
# =============================================================================

SUCCESS_RESPONSE_CODE = 200
BAD_REQUEST = 400
NOT_FOUND = 404
VALIDATION_FAILED = 412
INTERNAL_ERROR = 500


# =============================================================================
# ENUMERATIONS
# =============================================================================

class PluginState(str, Enum):
    """Lifecycle states of a plugin instance."""

    DISCOVERED = "discovered"   # Constructed, not initialized
    LOADING = "loading"         # Initialization in progress
    READY = "ready"             # Accepting requests
    ERROR = "error"             # Initialization failed; instance unusable


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class PluginIdentifier:
    """Tells the host what kind of plugin this is and which API versions it speaks."""

    kind: str
    versions: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"extension": self.kind, "versions": list(self.versions)}


@dataclass(frozen=True)
class PluginRequest:
    """A request issued by the host.

    The body is kept as the raw JSON text the host sent; backends decode
    it with ``json_body()`` when they need it.
    """

    request_name: str
    request_body: Optional[str] = None
    request_parameters: Mapping[str, Any] = field(default_factory=dict)
    request_headers: Mapping[str, str] = field(default_factory=dict)
    extension: str = "secrets"
    extension_version: str = "1.0"

    def json_body(self) -> Any:
        """Decode the request body (an empty body decodes to ``{}``)."""
        if not self.request_body:
            return {}
        return json.loads(self.request_body)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginRequest":
        body = data.get("request_body")
        if body is not None and not isinstance(body, str):
            body = json.dumps(body)
        return cls(
            request_name=data["request_name"],
            request_body=body,
            request_parameters=dict(data.get("request_parameters") or {}),
            request_headers=dict(data.get("request_headers") or {}),
            extension=data.get("extension", "secrets"),
            extension_version=data.get("extension_version", "1.0"),
        )


@dataclass
class PluginResponse:
    """A response returned to the host.

    Very much like an HTTP response: a status code, a body and optional
    headers. The body is a structured value; ``body_as_json()`` renders
    it for hosts that want text.
    """

    response_code: int
    response_body: Any = None
    response_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def success(cls, body: Any = None) -> "PluginResponse":
        return cls(SUCCESS_RESPONSE_CODE, body)

    @classmethod
    def bad_request(cls, body: Any = None) -> "PluginResponse":
        return cls(BAD_REQUEST, body)

    @classmethod
    def not_found(cls, body: Any = None) -> "PluginResponse":
        return cls(NOT_FOUND, body)

    @classmethod
    def error(cls, body: Any = None) -> "PluginResponse":
        return cls(INTERNAL_ERROR, body)

    @property
    def is_success(self) -> bool:
        return 200 <= self.response_code < 300

    def body_as_json(self) -> str:
        if self.response_body is None:
            return ""
        if isinstance(self.response_body, str):
            return self.response_body
        return json.dumps(self.response_body)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_code": self.response_code,
            "response_body": self.response_body,
            "response_headers": dict(self.response_headers),
        }


# =============================================================================
# TYPE ALIASES
# =============================================================================

# log(level, message, error_or_none); never raises
LoggerFn = Callable[[str, str, Optional[BaseException]], None]


# =============================================================================
# PROTOCOLS
# =============================================================================

@runtime_checkable
class HostAccessor(Protocol):
    """Curated host API exposed to plugins (the application accessor)."""

    def submit(self, request: Any) -> Any:
        """Submit a request to the host's plugin-facing API."""
        ...


# =============================================================================
# ABSTRACT BASE CLASSES
# =============================================================================

class BackendHandler(ABC):
    """Contract a secret-resolution backend implements.

    The bridge resolves one handler at startup and treats it as a black
    box afterwards: ``initialize`` once, then ``handle`` for every request,
    possibly from many threads at the same time.
    """

    @abstractmethod
    def initialize(self, log: LoggerFn, accessor: Any) -> Any:
        """Build the backend's initial state value.

        Args:
            log: Logging capability routed to the host's logger
            accessor: Host accessor handed over by the host

        Returns:
            The state value the bridge stores in its state cell. A
            ``StateCell`` may be returned instead and is used as-is.
        """
        ...

    @abstractmethod
    def handle(self, state: "StateCell[Any]", request: PluginRequest) -> PluginResponse:
        """Handle one request.

        Raises:
            UnhandledRequestTypeError: If ``request.request_name`` is not
                a type this backend supports.
        """
        ...
