"""Backend handler registry.

Version: 0.1.0

Late binding of the backend handler. The bridge asks the registry to
resolve a reference once at startup; a reference may be:

1. A ``BackendHandler`` instance or a zero-argument factory (dependency injection)
2. A registered name (e.g., "vault")
3. An installed entry point in the ``vaultbridge.backends`` group
4. A "package.module:attribute" entrypoint string

Usage:
    from vaultbridge.core.bridge.registry import get_backend_registry

    registry = get_backend_registry()
    registry.register("static", lambda: StaticBackend({"db/password": "s3cret"}))
    handler = registry.resolve("static")
"""

from __future__ import annotations

import importlib
import logging
from importlib.metadata import entry_points
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Union

from vaultbridge.core.bridge.exceptions import BackendResolutionError
from vaultbridge.core.bridge.interfaces import BackendHandler

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "vaultbridge.backends"

BackendFactory = Callable[[], BackendHandler]
BackendRef = Union[str, BackendHandler, BackendFactory]


def _load_entrypoint(entrypoint: str) -> Any:
    """Import ``module:attribute`` and return the attribute."""
    module_path, attr_name = entrypoint.rsplit(":", 1)
    module = importlib.import_module(module_path)
    obj: Any = module
    for part in attr_name.split("."):
        obj = getattr(obj, part)
    return obj


def _instantiate(obj: Any, ref: str) -> BackendHandler:
    """Turn a resolved object (instance, class or factory) into a handler."""
    if isinstance(obj, BackendHandler):
        return obj
    if callable(obj):
        handler = obj()
        if isinstance(handler, BackendHandler):
            return handler
        raise BackendResolutionError(
            f"Backend factory returned {type(handler).__name__}, expected a BackendHandler",
            backend=ref,
        )
    raise BackendResolutionError(
        f"Backend reference resolved to {type(obj).__name__}, expected a BackendHandler",
        backend=ref,
    )


class BackendRegistry:
    """Registry of named backend handler factories.

    Thread Safety:
        Registration and lookup are protected by a lock; factories are
        invoked outside of it.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, BackendFactory] = {}
        self._lock = Lock()

    def register(self, name: str, factory: Union[BackendFactory, str]) -> None:
        """Register a backend under ``name``.

        Args:
            name: Backend name used in configuration
            factory: Zero-argument callable returning a handler, or an
                "module:attribute" entrypoint string imported lazily
        """
        name = name.strip()
        if not name:
            raise ValueError("backend name is required")

        if isinstance(factory, str):
            entrypoint = factory

            def lazy_factory() -> BackendHandler:
                return _instantiate(_load_entrypoint(entrypoint), entrypoint)

            factory = lazy_factory

        if not callable(factory):
            raise ValueError("backend factory must be callable")

        with self._lock:
            if name in self._factories:
                logger.debug("Replacing backend registration: %s", name)
            self._factories[name] = factory

    def unregister(self, name: str) -> bool:
        """Remove a registration. Returns True if it existed."""
        with self._lock:
            return self._factories.pop(name, None) is not None

    def names(self) -> List[str]:
        """Registered backend names, sorted."""
        with self._lock:
            return sorted(self._factories)

    def _installed_entry_point(self, name: str) -> Optional[Any]:
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name == name:
                return ep
        return None

    def resolve(self, ref: BackendRef) -> BackendHandler:
        """Resolve a backend reference to a handler instance.

        Raises:
            BackendResolutionError: If the reference cannot be resolved
        """
        if isinstance(ref, BackendHandler):
            return ref

        if callable(ref) and not isinstance(ref, str):
            name = getattr(ref, "__qualname__", None) or repr(ref)
            try:
                return _instantiate(ref, name)
            except BackendResolutionError:
                raise
            except Exception as e:
                raise BackendResolutionError(
                    f"Backend factory {name} failed: {e}",
                    backend=name,
                ) from e

        if not isinstance(ref, str) or not ref.strip():
            raise BackendResolutionError(f"Invalid backend reference: {ref!r}")
        ref = ref.strip()

        with self._lock:
            factory = self._factories.get(ref)

        try:
            if factory is not None:
                logger.debug("Resolving registered backend %s", ref)
                return _instantiate(factory(), ref)

            ep = self._installed_entry_point(ref)
            if ep is not None:
                logger.debug("Resolving backend %s from entry point %s", ref, ep.value)
                return _instantiate(ep.load(), ref)

            if ":" in ref:
                logger.debug("Resolving backend from entrypoint %s", ref)
                return _instantiate(_load_entrypoint(ref), ref)

        except BackendResolutionError:
            raise
        except Exception as e:
            raise BackendResolutionError(
                f"Failed to load backend {ref!r}: {e}",
                backend=ref,
            ) from e

        raise BackendResolutionError(
            f"Unknown backend {ref!r}",
            backend=ref,
            details={"registered": self.names()},
        )


# =============================================================================
# GLOBAL REGISTRY
# =============================================================================

_registry: Optional[BackendRegistry] = None
_registry_lock = Lock()


def get_backend_registry() -> BackendRegistry:
    """Get the process-wide registry, creating it with built-in backends."""
    global _registry
    registry = _registry
    if registry is not None:
        return registry
    with _registry_lock:
        if _registry is None:
            created = BackendRegistry()
            created.register("vault", "vaultbridge.backends.vault:VaultBackend")
            _registry = created
        return _registry


def reset_backend_registry() -> None:
    """Drop the process-wide registry (for testing)."""
    global _registry
    with _registry_lock:
        _registry = None
