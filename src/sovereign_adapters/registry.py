"""
Adapter catalogue loading and in-memory registry.

REST adapters are described in YAML so catalogue maintenance never needs a
code change. A catalogue is a list of adapter definitions::

    - id: example_exchange
      name: Example Exchange
      category: crypto
      base_url: https://api.example.com
      rate_limit_per_minute: 120
      client:
        timeout: 10
        headers: {Accept: application/json}
      endpoints:
        ticker:
          path: /ticker/${symbol}
          data_path: price
        quote:
          path: /quote
          method: POST

API keys should come from the secrets bundle (``[adapters.<id>] api_key``)
rather than the catalogue itself.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, MutableMapping, Optional

import yaml

from .adapters.base import ConfigurationError, SovereignAdapter, derive_adapter_id
from .adapters.rest import GenericRestAdapter, RestEndpointConfig, SchemaAdapterConfig
from .config import RuntimeOptions, SecretsBundle
from .core.logging import get_logger
from .core.models import DataCategory, category_label

logger = get_logger(__name__)


class RegistryLoadError(ConfigurationError):
    """Raised when a catalogue YAML file cannot be parsed or validated."""


def load_schema_configs(path: Path | str) -> List[SchemaAdapterConfig]:
    """Load REST adapter definitions from a YAML catalogue."""

    location = Path(path)
    if not location.exists():
        raise RegistryLoadError(f"Catalogue file '{location}' does not exist.")

    try:
        with location.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise RegistryLoadError(f"Failed to parse '{location}': {exc}") from exc

    if not isinstance(payload, list):
        raise RegistryLoadError(f"Catalogue file '{location}' must contain a list of adapters.")

    configs = [_config_from_payload(entry, origin=location) for entry in payload]
    seen: set[str] = set()
    for config in configs:
        adapter_id = derive_adapter_id(config)
        if adapter_id in seen:
            raise RegistryLoadError(f"Duplicate adapter id '{adapter_id}' in '{location}'.")
        seen.add(adapter_id)
    logger.debug("Catalogue loaded", extra={"path": str(location), "adapters": len(configs)})
    return configs


def _config_from_payload(entry: object, *, origin: Path) -> SchemaAdapterConfig:
    if not isinstance(entry, dict):
        raise RegistryLoadError(f"Invalid entry in '{origin}': expected mapping, got {type(entry)!r}")

    try:
        name = str(entry["name"])
        endpoints_raw = entry.get("endpoints") or {}
        if not isinstance(endpoints_raw, dict):
            raise RegistryLoadError(f"Adapter '{name}' in '{origin}' must declare endpoints as a mapping.")
        client_raw = entry.get("client") or {}
        if not isinstance(client_raw, dict):
            raise RegistryLoadError(f"Adapter '{name}' in '{origin}' must declare client options as a mapping.")
        rate_limit = entry.get("rate_limit_per_minute")
        return SchemaAdapterConfig(
            name=name,
            id=_optional_str(entry.get("id")),
            category=_parse_category(entry.get("category")),
            base_url=str(entry["base_url"]),
            endpoints={str(key): _endpoint_from_payload(key, value, origin=origin) for key, value in endpoints_raw.items()},
            api_key=_optional_str(entry.get("api_key")),
            rate_limit_request_per_minute=int(rate_limit) if rate_limit is not None else None,
            use_mocks=bool(entry.get("use_mocks", False)),
            proxy=_optional_str(entry.get("proxy")),
            client_config=dict(client_raw),
        )
    except KeyError as exc:
        raise RegistryLoadError(f"Missing required key {exc!s} in '{origin}'.") from exc
    except (TypeError, ValueError) as exc:
        raise RegistryLoadError(f"Invalid field in '{origin}': {exc}") from exc
    except RegistryLoadError:
        raise
    except ConfigurationError as exc:
        raise RegistryLoadError(f"Invalid adapter definition in '{origin}': {exc}") from exc


def _endpoint_from_payload(name: object, entry: object, *, origin: Path) -> RestEndpointConfig:
    if isinstance(entry, str):
        return RestEndpointConfig(path=entry)
    if not isinstance(entry, dict):
        raise RegistryLoadError(f"Endpoint '{name}' in '{origin}' must be a mapping or a path string.")
    data_path = entry.get("data_path", entry.get("dataPath"))
    return RestEndpointConfig(
        path=str(entry["path"]),
        method=str(entry.get("method", "GET")),
        data_path=_optional_str(data_path),
    )


def _parse_category(value: object | None) -> DataCategory | str | None:
    text = _optional_str(value)
    if text is None:
        return None
    try:
        return DataCategory(text.lower())
    except ValueError:
        return text


def _optional_str(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class AdapterRegistry:
    """In-memory catalogue of live adapter instances keyed by adapter id."""

    def __init__(self) -> None:
        self._entries: MutableMapping[str, SovereignAdapter[Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, adapter_id: object) -> bool:
        return adapter_id in self._entries

    def __iter__(self) -> Iterator[SovereignAdapter[Any]]:
        return iter(list(self._entries.values()))

    def register(self, adapter: SovereignAdapter[Any]) -> None:
        """Register or overwrite an adapter."""

        self._entries[adapter.id] = adapter

    def unregister(self, adapter_id: str) -> Optional[SovereignAdapter[Any]]:
        """Remove an adapter without disposing it; the caller owns the returned instance."""

        return self._entries.pop(adapter_id, None)

    def get(self, adapter_id: str) -> Optional[SovereignAdapter[Any]]:
        return self._entries.get(adapter_id)

    def require(self, adapter_id: str) -> SovereignAdapter[Any]:
        """Retrieve an adapter or raise an informative error."""

        adapter = self.get(adapter_id)
        if adapter is None:
            raise KeyError(f"Adapter '{adapter_id}' is not registered.")
        return adapter

    def ids(self) -> List[str]:
        return list(self._entries)

    def list(self, *, category: DataCategory | str | None = None) -> List[SovereignAdapter[Any]]:
        """Return registered adapters, optionally filtered by category."""

        items = list(self._entries.values())
        if category is None:
            return items
        wanted = category_label(category)
        return [item for item in items if item.category_label == wanted]

    async def initialize_all(self) -> None:
        await asyncio.gather(*(adapter.initialize() for adapter in self._entries.values()))

    async def dispose_all(self) -> None:
        """Dispose every adapter and empty the registry. The first failure is re-raised after all ran."""

        adapters = list(self._entries.values())
        self._entries.clear()
        results = await asyncio.gather(*(adapter.dispose() for adapter in adapters), return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.error("Adapter dispose failed", extra={"source": adapter.id, "error": str(result)})
        if errors:
            raise errors[0]

    @classmethod
    def from_configs(
        cls,
        configs: Iterable[SchemaAdapterConfig],
        *,
        secrets: Optional[SecretsBundle] = None,
        options: Optional[RuntimeOptions] = None,
    ) -> "AdapterRegistry":
        """
        Build :class:`GenericRestAdapter` instances for ``configs``.

        Adapters without an ``api_key`` pick one up from ``secrets`` when the
        bundle holds ``[adapters.<id>] api_key``.
        """

        resolved_options = options if options is not None else RuntimeOptions.from_env()
        registry = cls()
        for config in configs:
            if secrets is not None and not config.api_key:
                config = replace(config, api_key=secrets.api_key_for(derive_adapter_id(config)))
            registry.register(GenericRestAdapter(config, options=resolved_options))
        return registry

    @classmethod
    def from_yaml(
        cls,
        path: Path | str,
        *,
        secrets: Optional[SecretsBundle] = None,
        options: Optional[RuntimeOptions] = None,
    ) -> "AdapterRegistry":
        return cls.from_configs(load_schema_configs(path), secrets=secrets, options=options)


def describe_config(config: SchemaAdapterConfig) -> Dict[str, Any]:
    """Return a JSON-friendly summary of a catalogue entry. Credentials are reported by presence only."""

    return {
        "id": derive_adapter_id(config),
        "name": config.name,
        "category": category_label(config.category),
        "base_url": config.base_url,
        "requires_auth": bool(config.api_key),
        "rate_limit_per_minute": config.rate_limit_request_per_minute,
        "use_mocks": config.use_mocks,
        "proxy": config.proxy,
        "endpoints": {
            name: {"path": endpoint.path, "method": endpoint.method, "data_path": endpoint.data_path}
            for name, endpoint in config.endpoints.items()
        },
    }
