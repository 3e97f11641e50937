"""
Configuration-driven REST adapter.

A :class:`GenericRestAdapter` is defined entirely by data: a base URL plus a
table of named endpoint templates. Adding an endpoint is a configuration
change, never a code change.

Example::

    config = SchemaAdapterConfig(
        name="Example Exchange",
        category=DataCategory.CRYPTO,
        base_url="https://api.example.com",
        endpoints={"ticker": RestEndpointConfig(path="/ticker/${symbol}", data_path="price")},
    )
    adapter = GenericRestAdapter(config)
    response = await adapter.fetch(DataRequest(params={"endpoint": "ticker", "symbol": "BTC"}))
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..config import RuntimeOptions
from ..core.logging import get_logger
from ..core.models import TruthData, current_millis, current_seconds
from .base import AdapterConfig, ConfigurationError, EndpointNotConfiguredError, SovereignAdapter

FALLBACK_CATEGORY = "universal"
SUPPORTED_METHODS = ("GET", "POST")

_PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")

logger = get_logger(__name__)


@dataclass(slots=True)
class RestEndpointConfig:
    """One named REST call: path template, HTTP method and optional extraction path."""

    path: str
    method: str = "GET"
    data_path: Optional[str] = None

    def __post_init__(self) -> None:
        method = (self.method or "GET").upper()
        if method not in SUPPORTED_METHODS:
            raise ConfigurationError(f"Unsupported HTTP method '{self.method}' for path '{self.path}'. Expected one of: {', '.join(SUPPORTED_METHODS)}.")
        self.method = method


@dataclass(slots=True, kw_only=True)
class SchemaAdapterConfig(AdapterConfig):
    """Adapter config plus the declarative endpoint table."""

    base_url: str
    endpoints: Dict[str, RestEndpointConfig] = field(default_factory=dict)


def interpolate_path(template: str, params: Mapping[str, Any]) -> str:
    """
    Substitute ``${key}`` placeholders with values from ``params``.

    A single flat pass: substituted values are never re-scanned, every
    occurrence of a placeholder is replaced, and keys absent from ``params``
    leave their placeholder in place.
    """

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in params:
            return match.group(0)
        return _stringify(params[key])

    return _PLACEHOLDER.sub(_substitute, template)


def unresolved_placeholders(template: str, params: Mapping[str, Any]) -> list[str]:
    """Template keys that ``params`` does not supply."""

    return [key for key in _PLACEHOLDER.findall(template) if key not in params]


def extract_data_path(payload: Any, data_path: str) -> Any:
    """
    Descend into ``payload`` along a dotted path such as ``"result.price"``.

    Numeric segments index into lists. Returns ``None`` as soon as a level is
    missing instead of raising.
    """

    current = payload
    for segment in data_path.split("."):
        if current is None:
            break
        current = _descend(current, segment)
    return current


def resolve_point_id(params: Mapping[str, Any]) -> Optional[str]:
    """Point identifier precedence: ``id``, then ``symbol``, then ``endpoint``."""

    value = params.get("id") or params.get("symbol") or params.get("endpoint")
    return None if value is None else str(value)


def _descend(value: Any, segment: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(segment)
    if isinstance(value, (list, tuple)) and segment.isdigit():
        index = int(segment)
        return value[index] if index < len(value) else None
    return None


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _query_value(value: Any) -> Any:
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return value


def _query_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Query mapping for GET. Lists repeat the key; mappings and nested lists are sent as compact JSON."""

    query: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            query[key] = [_query_value(item) for item in value if item is not None]
        else:
            query[key] = _query_value(value)
    return query


class RestEndpointProducer:
    """Produces :class:`TruthData` by calling endpoints from a declarative table."""

    def __init__(self, base_url: str, endpoints: Mapping[str, RestEndpointConfig]) -> None:
        self.base_url = base_url
        self.endpoints = dict(endpoints)

    async def fetch_data(self, adapter: SovereignAdapter[Any], params: Mapping[str, Any]) -> TruthData:
        endpoint_name = params.get("endpoint")
        endpoint = self.endpoints.get(endpoint_name) if isinstance(endpoint_name, str) else None
        if endpoint is None:
            raise EndpointNotConfiguredError(endpoint_name, adapter.name)

        path = interpolate_path(endpoint.path, params)
        missing = unresolved_placeholders(endpoint.path, params)
        if missing:
            adapter.logger.warning(
                "Path placeholders left unresolved",
                extra={"endpoint": endpoint_name, "placeholders": missing},
            )
        url = f"{self.base_url}{path}"
        method = endpoint.method

        adapter.logger.debug("HTTP request", extra={"endpoint": endpoint_name, "method": method, "url": url})
        if method == "GET":
            response = await adapter.client.request(method, url, params=_query_params(params))
        else:
            response = await adapter.client.request(method, url, json=dict(params))
        response.raise_for_status()
        adapter.logger.debug(
            "HTTP response",
            extra={"endpoint": endpoint_name, "status_code": response.status_code, "url": str(response.url)},
        )

        raw_data = _decode_body(response)
        if endpoint.data_path:
            raw_data = extract_data_path(raw_data, endpoint.data_path)

        metadata: Dict[str, Any] = {"endpoint": endpoint_name}
        if isinstance(raw_data, (Mapping, list)):
            metadata["raw_data"] = raw_data
        return TruthData(
            id=resolve_point_id(params) or endpoint_name,
            value=raw_data,
            category=adapter.category_label or FALLBACK_CATEGORY,
            source=adapter.id,
            timestamp=current_seconds(),
            metadata=metadata,
        )

    async def get_mock_data(self, adapter: SovereignAdapter[Any], params: Mapping[str, Any]) -> Dict[str, Any]:
        return {"mocked": True, "endpoint": params.get("endpoint"), "timestamp": current_millis()}


def _decode_body(response: Any) -> Any:
    try:
        return response.json()
    except ValueError:
        logger.debug("Response body is not JSON; keeping text", extra={"url": str(response.url)})
        return response.text


class GenericRestAdapter(SovereignAdapter[Any]):
    """A :class:`SovereignAdapter` bound to a :class:`RestEndpointProducer`."""

    def __init__(self, config: SchemaAdapterConfig, *, options: Optional[RuntimeOptions] = None) -> None:
        super().__init__(config, RestEndpointProducer(config.base_url, config.endpoints), options=options)
        self.config: SchemaAdapterConfig = config

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def endpoints(self) -> Mapping[str, RestEndpointConfig]:
        return self.config.endpoints
