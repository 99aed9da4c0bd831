"""HashiCorp Vault secrets backend.

Version: 0.1.0

Implements the GoCD secrets extension (v1.0) on top of the hvac client.
The backend keeps a ``VaultState`` (validated settings + hvac client) in
the bridge's state cell. Lookups carry their own configuration; when it
differs from the cell's settings a new client is built and installed
with compare-and-set, so concurrent lookups never see a half-built state.

Request types:
- go.cd.secrets.get-icon
- go.cd.secrets.secrets-config.get-metadata
- go.cd.secrets.secrets-config.get-view
- go.cd.secrets.secrets-config.validate
- go.cd.secrets.secrets-lookup

Secret keys are ``path`` or ``path#field``; the field defaults to
``value``. Secret values are never logged.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import hvac
import requests
from hvac.exceptions import InvalidPath, VaultError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from vaultbridge.core.bridge.exceptions import BridgeError, UnhandledRequestTypeError
from vaultbridge.core.bridge.interfaces import (
    BackendHandler,
    LoggerFn,
    PluginRequest,
    PluginResponse,
)
from vaultbridge.core.bridge.state import StateCell

REQUEST_GET_ICON = "go.cd.secrets.get-icon"
REQUEST_GET_METADATA = "go.cd.secrets.secrets-config.get-metadata"
REQUEST_GET_VIEW = "go.cd.secrets.secrets-config.get-view"
REQUEST_VALIDATE = "go.cd.secrets.secrets-config.validate"
REQUEST_LOOKUP = "go.cd.secrets.secrets-lookup"

DEFAULT_FIELD = "value"

ICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 64">'
    '<path fill="#000" d="M32 60 4 4h56z"/>'
    '<path fill="#ffd814" d="M26 20h4v4h-4zm8 0h4v4h-4zm-8 8h4v4h-4zm8 0h4v4h-4zm-4 8h4v4h-4z"/>'
    "</svg>"
)

VIEW_TEMPLATE = """\
<div class="form_item_block">
  <label>Vault address:<span class="asterisk">*</span></label>
  <input type="text" ng-model="vault_addr" ng-required="true" placeholder="https://vault.example.com:8200"/>
  <span class="form_error" ng-show="GOINPUTNAME[vault_addr].$error.server">{{GOINPUTNAME[vault_addr].$error.server}}</span>
</div>
<div class="form_item_block">
  <label>Vault token:<span class="asterisk">*</span></label>
  <input type="password" ng-model="vault_token" ng-required="true"/>
  <span class="form_error" ng-show="GOINPUTNAME[vault_token].$error.server">{{GOINPUTNAME[vault_token].$error.server}}</span>
</div>
<div class="form_item_block">
  <label>KV mount point:</label>
  <input type="text" ng-model="mount_point" placeholder="secret"/>
</div>
<div class="form_item_block">
  <label>KV version (1 or 2):</label>
  <input type="text" ng-model="kv_version" placeholder="2"/>
</div>
<div class="form_item_block">
  <label>Namespace:</label>
  <input type="text" ng-model="namespace"/>
</div>
<div class="form_item_block">
  <label>Verify TLS:</label>
  <input type="checkbox" ng-model="verify" ng-true-value="'true'" ng-false-value="'false'"/>
</div>
<div class="form_item_block">
  <label>Timeout (seconds):</label>
  <input type="text" ng-model="timeout" placeholder="30"/>
</div>
"""

# (key, required, secure)
CONFIG_FIELDS: List[Tuple[str, bool, bool]] = [
    ("vault_addr", True, False),
    ("vault_token", True, True),
    ("mount_point", False, False),
    ("kv_version", False, False),
    ("namespace", False, False),
    ("verify", False, False),
    ("timeout", False, False),
]


class VaultConnectionError(BridgeError):
    """Vault could not be reached or rejected the configured token."""


class VaultSettings(BaseModel):
    """Validated Vault connection settings.

    GoCD sends every configuration value as a string; blank values count
    as unset.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    vault_addr: str = Field(description="Vault server URL.")
    vault_token: str = Field(description="Token used to authenticate.")
    mount_point: str = Field(default="secret", description="KV secrets engine mount point.")
    kv_version: int = Field(default=2, description="KV secrets engine version.")
    namespace: Optional[str] = Field(default=None, description="Vault Enterprise namespace.")
    verify: bool = Field(default=True, description="Verify TLS certificates.")
    timeout: int = Field(default=30, gt=0, description="HTTP timeout in seconds.")

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if not (isinstance(v, str) and not v.strip())}
        return data

    @field_validator("vault_addr")
    @classmethod
    def _check_addr(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("mount_point")
    @classmethod
    def _check_mount(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("kv_version")
    @classmethod
    def _check_kv_version(cls, value: int) -> int:
        if value not in (1, 2):
            raise ValueError("must be 1 or 2")
        return value


@dataclass(frozen=True)
class VaultState:
    """Value held in the bridge's state cell."""

    settings: Optional[VaultSettings] = None
    client: Optional[Any] = None
    created_at: float = 0.0

    def matches(self, settings: VaultSettings) -> bool:
        return self.client is not None and self.settings == settings


def validation_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """Flatten a pydantic error into GoCD's ``[{"key", "message"}]`` shape."""
    errors: List[Dict[str, str]] = []
    for err in exc.errors():
        key = str(err["loc"][0]) if err.get("loc") else ""
        errors.append({"key": key, "message": err.get("msg", "invalid value")})
    return errors


def parse_secret_key(key: str) -> Tuple[str, str]:
    """Split ``path#field`` into (path, field)."""
    path, _, field_name = key.partition("#")
    return path.strip().strip("/"), field_name.strip() or DEFAULT_FIELD


def build_client(settings: VaultSettings) -> Any:
    """Create an hvac client for the given settings."""
    return hvac.Client(
        url=settings.vault_addr,
        token=settings.vault_token,
        namespace=settings.namespace,
        verify=settings.verify,
        timeout=settings.timeout,
    )


class VaultBackend(BackendHandler):
    """GoCD secrets backend that reads from Vault's KV engine."""

    def __init__(
        self,
        defaults: Optional[Dict[str, Any]] = None,
        client_factory: Callable[[VaultSettings], Any] = build_client,
    ) -> None:
        """Create the backend.

        Args:
            defaults: Settings used under any per-request configuration
            client_factory: Builds a client from settings (injectable for tests)
        """
        self._defaults = dict(defaults or {})
        self._client_factory = client_factory
        self._log: LoggerFn = lambda level, message, error=None: None
        self._handlers: Dict[str, Callable[[StateCell[VaultState], PluginRequest], PluginResponse]] = {
            REQUEST_GET_ICON: self._get_icon,
            REQUEST_GET_METADATA: self._get_metadata,
            REQUEST_GET_VIEW: self._get_view,
            REQUEST_VALIDATE: self._validate,
            REQUEST_LOOKUP: self._lookup,
        }

    @property
    def request_types(self) -> List[str]:
        return sorted(self._handlers)

    # =========================================================================
    # BACKEND CONTRACT
    # =========================================================================

    def initialize(self, log: LoggerFn, accessor: Any) -> VaultState:
        """Build the initial state.

        When the defaults carry a complete configuration the client is
        created and authenticated now, so a bad address or token fails
        plugin loading instead of the first lookup.
        """
        self._log = log
        log("info", "Initializing Vault secrets backend", None)

        if not self._defaults.get("vault_addr") or not self._defaults.get("vault_token"):
            log("debug", "No default Vault configuration; clients are built per lookup", None)
            return VaultState(created_at=time.time())

        settings = VaultSettings(**self._defaults)
        client = self._client_factory(settings)
        try:
            authenticated = client.is_authenticated()
        except (VaultError, requests.exceptions.RequestException) as e:
            raise VaultConnectionError(
                f"Could not reach Vault at {settings.vault_addr}: {e}",
                details={"vault_addr": settings.vault_addr},
            ) from e
        if not authenticated:
            raise VaultConnectionError(
                f"Vault rejected the configured token at {settings.vault_addr}",
                details={"vault_addr": settings.vault_addr},
            )

        log("info", f"Connected to Vault at {settings.vault_addr}", None)
        return VaultState(settings=settings, client=client, created_at=time.time())

    def handle(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        handler = self._handlers.get(request.request_name)
        if handler is None:
            raise UnhandledRequestTypeError(request.request_name)
        return handler(state, request)

    # =========================================================================
    # CONFIGURATION REQUESTS
    # =========================================================================

    def _get_icon(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        data = base64.b64encode(ICON_SVG.encode("utf-8")).decode("ascii")
        return PluginResponse.success({"content_type": "image/svg+xml", "data": data})

    def _get_metadata(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        return PluginResponse.success([
            {"key": key, "metadata": {"required": required, "secure": secure}}
            for key, required, secure in CONFIG_FIELDS
        ])

    def _get_view(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        return PluginResponse.success({"template": VIEW_TEMPLATE})

    def _validate(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        try:
            body = request.json_body()
        except ValueError as e:
            return PluginResponse.bad_request({"message": f"Request body is not valid JSON: {e}"})

        configuration = body if isinstance(body, dict) else {}
        try:
            VaultSettings(**configuration)
        except ValidationError as e:
            return PluginResponse.success(validation_errors(e))
        return PluginResponse.success([])

    # =========================================================================
    # SECRET LOOKUP
    # =========================================================================

    def _settings_for(self, configuration: Dict[str, Any]) -> VaultSettings:
        merged = {**self._defaults}
        merged.update({k: v for k, v in configuration.items() if v not in (None, "")})
        return VaultSettings(**merged)

    def _client_for(self, state: StateCell[VaultState], settings: VaultSettings) -> Any:
        """Return a client for ``settings``, installing a new state if needed."""
        current = state.get()
        if current.matches(settings):
            return current.client

        client = self._client_factory(settings)
        new_state = VaultState(settings=settings, client=client, created_at=time.time())
        if state.compare_and_set(current, new_state):
            self._log("info", f"Vault client configured for {settings.vault_addr}", None)
            return client

        winner = state.get()
        if winner.matches(settings):
            return winner.client
        return client

    def _read_secret(self, client: Any, settings: VaultSettings, path: str) -> Dict[str, Any]:
        if settings.kv_version == 1:
            response = client.secrets.kv.v1.read_secret(path=path, mount_point=settings.mount_point)
            return response.get("data") or {}
        response = client.secrets.kv.v2.read_secret_version(
            path=path,
            mount_point=settings.mount_point,
            raise_on_deleted_version=True,
        )
        return (response.get("data") or {}).get("data") or {}

    def _lookup(self, state: StateCell[VaultState], request: PluginRequest) -> PluginResponse:
        try:
            body = request.json_body()
        except ValueError as e:
            return PluginResponse.bad_request({"message": f"Request body is not valid JSON: {e}"})
        if not isinstance(body, dict):
            return PluginResponse.bad_request({"message": "Request body must be an object"})

        keys = body.get("keys") or []
        configuration = body.get("configuration") or {}
        if not isinstance(keys, list) or not all(isinstance(key, str) for key in keys):
            return PluginResponse.bad_request({"message": "'keys' must be a list of strings"})
        if not isinstance(configuration, dict):
            return PluginResponse.bad_request({"message": "'configuration' must be an object"})
        try:
            settings = self._settings_for(configuration)
        except ValidationError as e:
            return PluginResponse.bad_request({
                "message": "Invalid Vault configuration",
                "errors": validation_errors(e),
            })

        client = self._client_for(state, settings)
        self._log("debug", f"Looking up {len(keys)} secret(s)", None)

        secrets: List[Dict[str, str]] = []
        missing: List[str] = []
        documents: Dict[str, Dict[str, Any]] = {}
        for key in keys:
            path, field_name = parse_secret_key(key)
            try:
                if path not in documents:
                    documents[path] = self._read_secret(client, settings, path)
            except InvalidPath:
                documents[path] = {}
            except (VaultError, requests.exceptions.RequestException) as e:
                self._log("error", f"Failed to read secret {key} from Vault", e)
                return PluginResponse.error({"message": f"Error looking up secret {key}: {e}"})

            value = documents[path].get(field_name)
            if value is None:
                missing.append(key)
                continue
            secrets.append({
                "key": key,
                "value": value if isinstance(value, str) else json.dumps(value),
            })

        if missing:
            self._log("warn", f"Secrets not found: {', '.join(missing)}", None)
            return PluginResponse.not_found({
                "message": f"Secrets with keys {missing} not found.",
                "keys": missing,
            })
        return PluginResponse.success(secrets)

