"""Tests for vaultbridge.core.bridge.registry module.

Version: 0.1.0
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from importlib.metadata import EntryPoint

import pytest

from vaultbridge.backends.vault import VaultBackend
from vaultbridge.core.bridge import registry as registry_module
from vaultbridge.core.bridge.exceptions import BackendResolutionError
from vaultbridge.core.bridge.interfaces import BackendHandler, PluginResponse
from vaultbridge.core.bridge.registry import (
    BackendRegistry,
    get_backend_registry,
    reset_backend_registry,
)


class StaticBackend(BackendHandler):
    def __init__(self, secrets=None):
        self.secrets = secrets or {}

    def initialize(self, log, accessor):
        return dict(self.secrets)

    def handle(self, state, request):
        return PluginResponse.success(state.get())


NOT_A_BACKEND = {"plain": "dict"}


@pytest.fixture
def registry():
    return BackendRegistry()


@pytest.fixture
def no_installed_backends(monkeypatch):
    monkeypatch.setattr(registry_module, "entry_points", lambda group: [])


class TestRegister:
    """Tests for registration bookkeeping."""

    def test_register_and_names(self, registry):
        registry.register("zeta", StaticBackend)
        registry.register("alpha", StaticBackend)
        assert registry.names() == ["alpha", "zeta"]

    def test_name_is_stripped(self, registry):
        registry.register("  static ", StaticBackend)
        assert registry.names() == ["static"]

    def test_empty_name_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("   ", StaticBackend)

    def test_non_callable_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("bad", 42)

    def test_reregister_replaces(self, registry):
        first = StaticBackend({"a": "1"})
        second = StaticBackend({"b": "2"})
        registry.register("static", lambda: first)
        registry.register("static", lambda: second)
        assert registry.resolve("static") is second

    def test_unregister(self, registry):
        registry.register("static", StaticBackend)
        assert registry.unregister("static") is True
        assert registry.unregister("static") is False
        assert registry.names() == []


class TestResolve:
    """Tests for the resolution order."""

    def test_instance_returned_as_is(self, registry):
        backend = StaticBackend()
        assert registry.resolve(backend) is backend

    def test_factory_is_called(self, registry):
        backend = StaticBackend()
        assert registry.resolve(lambda: backend) is backend

    def test_class_is_instantiated(self, registry):
        assert isinstance(registry.resolve(StaticBackend), StaticBackend)

    def test_registered_name(self, registry):
        backend = StaticBackend()
        registry.register("static", lambda: backend)
        assert registry.resolve("static") is backend

    def test_registered_entrypoint_string_is_lazy(self, registry, monkeypatch):
        calls = []
        original = registry_module._load_entrypoint

        def tracking(entrypoint):
            calls.append(entrypoint)
            return original(entrypoint)

        monkeypatch.setattr(registry_module, "_load_entrypoint", tracking)
        registry.register("vault", "vaultbridge.backends.vault:VaultBackend")
        assert calls == []

        assert isinstance(registry.resolve("vault"), VaultBackend)
        assert calls == ["vaultbridge.backends.vault:VaultBackend"]

    def test_module_attribute_string(self, registry, no_installed_backends):
        handler = registry.resolve("vaultbridge.backends.vault:VaultBackend")
        assert isinstance(handler, VaultBackend)

    def test_installed_entry_point(self, registry, monkeypatch):
        ep = EntryPoint(
            name="kv",
            value="vaultbridge.backends.vault:VaultBackend",
            group=registry_module.ENTRY_POINT_GROUP,
        )
        monkeypatch.setattr(registry_module, "entry_points", lambda group: [ep])
        assert isinstance(registry.resolve("kv"), VaultBackend)

    def test_registered_name_wins_over_entry_point(self, registry, monkeypatch):
        ep = EntryPoint(
            name="vault",
            value="vaultbridge.backends.vault:VaultBackend",
            group=registry_module.ENTRY_POINT_GROUP,
        )
        monkeypatch.setattr(registry_module, "entry_points", lambda group: [ep])
        backend = StaticBackend()
        registry.register("vault", lambda: backend)
        assert registry.resolve("vault") is backend


class TestResolveErrors:
    """Resolution failures surface as BackendResolutionError."""

    def test_unknown_name(self, registry, no_installed_backends):
        registry.register("static", StaticBackend)
        with pytest.raises(BackendResolutionError) as exc_info:
            registry.resolve("missing")
        assert exc_info.value.backend == "missing"
        assert exc_info.value.details["registered"] == ["static"]

    @pytest.mark.parametrize("ref", ["", "   ", None, 12])
    def test_invalid_reference(self, registry, ref):
        with pytest.raises(BackendResolutionError):
            registry.resolve(ref)

    def test_missing_module(self, registry, no_installed_backends):
        with pytest.raises(BackendResolutionError) as exc_info:
            registry.resolve("no_such_module_xyz:Backend")
        assert isinstance(exc_info.value.__cause__, ImportError)

    def test_missing_attribute(self, registry, no_installed_backends):
        with pytest.raises(BackendResolutionError) as exc_info:
            registry.resolve("vaultbridge.backends.vault:NoSuchBackend")
        assert isinstance(exc_info.value.__cause__, AttributeError)

    def test_not_a_backend(self, registry, no_installed_backends):
        with pytest.raises(BackendResolutionError, match="expected a BackendHandler"):
            registry.resolve(f"{__name__}:NOT_A_BACKEND")

    def test_factory_returning_wrong_type(self, registry):
        registry.register("wrong", lambda: object())
        with pytest.raises(BackendResolutionError, match="expected a BackendHandler"):
            registry.resolve("wrong")

    def test_factory_raising_is_wrapped(self, registry):
        def broken():
            raise RuntimeError("cannot connect")

        with pytest.raises(BackendResolutionError) as exc_info:
            registry.resolve(broken)
        assert "cannot connect" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    def setup_method(self):
        reset_backend_registry()

    def teardown_method(self):
        reset_backend_registry()

    def test_singleton(self):
        assert get_backend_registry() is get_backend_registry()

    def test_vault_is_builtin(self):
        assert "vault" in get_backend_registry().names()

    def test_reset_creates_fresh_registry(self):
        first = get_backend_registry()
        first.register("extra", StaticBackend)
        reset_backend_registry()
        assert "extra" not in get_backend_registry().names()

    def test_concurrent_first_use_builds_one_registry(self, monkeypatch):
        built = []

        class SlowRegistry(BackendRegistry):
            def __init__(self):
                time.sleep(0.01)
                super().__init__()
                built.append(self)

        monkeypatch.setattr(registry_module, "BackendRegistry", SlowRegistry)
        barrier = threading.Barrier(8)

        def first_use():
            barrier.wait()
            return get_backend_registry()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [future.result() for future in [pool.submit(first_use) for _ in range(8)]]

        assert len(built) == 1
        assert all(result is built[0] for result in results)
