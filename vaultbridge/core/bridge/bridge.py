"""vaultbridge plugin runtime bridge.

Version: 0.1.0

The bridge wires host requests into a backend handler call and returns a
host-shaped response. It manages:
- Plugin identity (extension kind and supported API versions)
- One-time initialization: resolve the backend, build the logger
  function, create the shared state cell
- Request dispatch: forward (state cell, request) to the backend and
  return its response verbatim

Usage:
    from vaultbridge.core.bridge import SecretsPlugin

    plugin = SecretsPlugin(backend="vault")
    plugin.initialize_application_accessor(accessor)
    response = plugin.handle(request)
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Dict, Optional

from vaultbridge.core.bridge.exceptions import (
    BackendResolutionError,
    InitializationError,
    LifecycleError,
    PluginNotReadyError,
    UnhandledRequestTypeError,
)
from vaultbridge.core.bridge.interfaces import (
    BackendHandler,
    LoggerFn,
    PluginIdentifier,
    PluginRequest,
    PluginResponse,
    PluginState,
)
from vaultbridge.core.bridge.registry import (
    BackendRef,
    BackendRegistry,
    get_backend_registry,
)
from vaultbridge.core.bridge.services import PluginLogger, build_logger_fn
from vaultbridge.core.bridge.state import StateCell

logger = logging.getLogger(__name__)

DEFAULT_PLUGIN_ID = "vault-secrets"
DEFAULT_BACKEND = "vault"

PLUGIN_IDENTIFIER = PluginIdentifier("secrets", ("1.0",))


@dataclass
class DispatchMetrics:
    """Counters kept by the dispatch path. They never affect responses."""

    handled: int = 0
    unhandled_request_types: int = 0
    failures: int = 0
    last_request_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SecretsPlugin:
    """Secrets extension plugin backed by a pluggable backend handler.

    Thread Safety:
        ``initialize_application_accessor`` is serialized by a lock and
        publishes the backend and state cell only after the backend's
        ``initialize`` returned. ``handle`` takes no lock; it reads the
        published references and forwards the call.
    """

    def __init__(
        self,
        backend: BackendRef = DEFAULT_BACKEND,
        plugin_id: str = DEFAULT_PLUGIN_ID,
        registry: Optional[BackendRegistry] = None,
        host_logger: Optional[Any] = None,
    ) -> None:
        """Create an uninitialized plugin instance.

        Args:
            backend: Backend reference resolved during initialization
            plugin_id: Identifier used for log prefixes and errors
            registry: Registry to resolve from (defaults to the global one)
            host_logger: Logger backing the logging bridge (defaults to a
                PluginLogger for ``plugin_id``)
        """
        self._backend_ref = backend
        self._plugin_id = plugin_id
        self._registry = registry
        self._host_logger = host_logger or PluginLogger(plugin_id)

        self._accessor: Optional[Any] = None
        self._handler: Optional[BackendHandler] = None
        self._state: Optional[StateCell[Any]] = None
        self._log_fn: Optional[LoggerFn] = None
        self._plugin_state = PluginState.DISCOVERED
        self._error: Optional[str] = None

        self._lock = Lock()
        self._metrics = DispatchMetrics()
        self._metrics_lock = Lock()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def plugin_id(self) -> str:
        return self._plugin_id

    @property
    def state(self) -> PluginState:
        """Current lifecycle state."""
        return self._plugin_state

    @property
    def is_ready(self) -> bool:
        return self._plugin_state == PluginState.READY

    @property
    def error(self) -> Optional[str]:
        """Initialization failure message, if any."""
        return self._error

    @property
    def state_cell(self) -> Optional[StateCell[Any]]:
        """The shared state cell (None until initialization succeeds)."""
        return self._state

    @property
    def accessor(self) -> Optional[Any]:
        return self._accessor

    @property
    def log_fn(self) -> Optional[LoggerFn]:
        """The logging bridge handed to the backend."""
        return self._log_fn

    # =========================================================================
    # IDENTITY
    # =========================================================================

    def plugin_identifier(self) -> PluginIdentifier:
        """Tell the host what kind of plugin this is and which API versions it supports."""
        return PLUGIN_IDENTIFIER

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize_application_accessor(self, accessor: Any) -> None:
        """Executed once at startup to inject the host accessor.

        Resolves the backend handler, builds the logging bridge, calls the
        backend's ``initialize`` and stores its result in the state cell.

        Raises:
            BackendResolutionError: If the backend cannot be resolved
            InitializationError: If the backend returned no state
            LifecycleError: If this instance already failed to initialize
            Exception: Anything raised by the backend's ``initialize``
        """
        with self._lock:
            if self._plugin_state == PluginState.READY:
                logger.warning("Plugin %s already initialized, skipping", self._plugin_id)
                return
            if self._plugin_state == PluginState.ERROR:
                raise LifecycleError(
                    "Plugin failed to initialize earlier; create a new instance",
                    plugin_id=self._plugin_id,
                    current_state=self._plugin_state.value,
                    target_state=PluginState.READY.value,
                )

            logger.info("Initializing plugin %s", self._plugin_id)
            self._plugin_state = PluginState.LOADING
            self._accessor = accessor

            try:
                handler = self._resolve_backend()
            except Exception as e:
                self._fail(e)
                logger.error("Failed to load plugin API handler", exc_info=True)
                if isinstance(e, BackendResolutionError):
                    raise
                raise BackendResolutionError(
                    f"Failed to load plugin API handler: {e}",
                    backend=str(self._backend_ref),
                ) from e

            try:
                log_fn = build_logger_fn(self._host_logger)
                value = handler.initialize(log_fn, accessor)
                if value is None:
                    raise InitializationError(
                        "Backend initialize returned no state",
                        plugin_id=self._plugin_id,
                    )
                cell = value if isinstance(value, StateCell) else StateCell(value)
            except Exception as e:
                self._fail(e)
                logger.error("Failed to initialize plugin state", exc_info=True)
                raise

            self._handler = handler
            self._log_fn = log_fn
            self._state = cell
            self._plugin_state = PluginState.READY
            logger.info(
                "Plugin %s ready (backend: %s)",
                self._plugin_id, type(handler).__name__,
            )

    def _resolve_backend(self) -> BackendHandler:
        registry = self._registry or get_backend_registry()
        return registry.resolve(self._backend_ref)

    def _fail(self, exc: BaseException) -> None:
        self._plugin_state = PluginState.ERROR
        self._error = str(exc)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle(self, request: PluginRequest) -> PluginResponse:
        """Handle a plugin request and return the backend's response.

        The response is very much like an HTTP response: a status code, a
        body and optional headers. It is returned exactly as the backend
        produced it.

        Raises:
            PluginNotReadyError: If initialization has not succeeded
            UnhandledRequestTypeError: If the backend does not support the
                request type
        """
        handler = self._handler
        cell = self._state
        if handler is None or cell is None:
            raise PluginNotReadyError(
                f"Plugin is not ready to handle {request.request_name!r}",
                plugin_id=self._plugin_id,
                current_state=self._plugin_state.value,
            )

        try:
            response = handler.handle(cell, request)
        except UnhandledRequestTypeError:
            self._record(unhandled=True)
            raise
        except Exception:
            self._record(failed=True)
            raise

        self._record()
        return response

    def _record(self, unhandled: bool = False, failed: bool = False) -> None:
        with self._metrics_lock:
            self._metrics.last_request_at = time.time()
            if unhandled:
                self._metrics.unhandled_request_types += 1
            elif failed:
                self._metrics.failures += 1
            else:
                self._metrics.handled += 1

    def metrics(self) -> Dict[str, Any]:
        """Snapshot of dispatch counters."""
        with self._metrics_lock:
            return self._metrics.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize plugin status."""
        return {
            "id": self._plugin_id,
            "identifier": PLUGIN_IDENTIFIER.to_dict(),
            "backend": type(self._handler).__name__ if self._handler else str(self._backend_ref),
            "state": self._plugin_state.value,
            "error": self._error,
            "metrics": self.metrics(),
        }
