"""
Base contract for sovereign data adapters.

Adapters are intentionally narrow: they translate one upstream API into
:class:`~sovereign_adapters.core.models.TruthData` and nothing else. Rate
limiting, retries, caching, circuit breaking and consensus are the Gateway's
job, so this layer never recovers from errors locally and lets every failure
propagate to the caller unchanged.

Source-specific behaviour is supplied by composing a :class:`DataProducer`
into a :class:`SovereignAdapter` rather than by subclassing it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Protocol, TypeVar

import httpx

from ..config import RuntimeOptions
from ..core.logging import get_logger
from ..core.models import (
    DataCategory,
    DataRequest,
    DataResponse,
    ResponseMetadata,
    SourceCapabilities,
    category_label,
    current_millis,
)
from .http import build_http_client

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

_WHITESPACE_RUN = re.compile(r"\s+")


class AdapterError(RuntimeError):
    """Raised when an adapter encounters a non-recoverable error."""


class ConfigurationError(AdapterError):
    """Raised when adapter or endpoint configuration is invalid."""


class EndpointNotConfiguredError(ConfigurationError):
    """Raised when a request names an endpoint absent from the adapter's schema."""

    def __init__(self, endpoint: Any, adapter_name: str) -> None:
        super().__init__(f"Endpoint '{endpoint}' not defined in schema for {adapter_name}")
        self.endpoint = endpoint
        self.adapter_name = adapter_name


@dataclass(slots=True)
class AdapterConfig:
    """
    Identity and transport settings for one adapter instance.

    Attributes
    ----------
    name:
        Human-readable name, e.g. ``"Binance Spot"``.
    category:
        Routing category; a :class:`DataCategory` or a free-form string.
    id:
        Stable identifier. When omitted it is derived from ``name``, see
        :func:`derive_adapter_id`.
    api_key:
        Credential exposed through :meth:`SovereignAdapter.get_secret`. Its
        presence also flips ``capabilities.requires_auth``.
    rate_limit_request_per_minute:
        Advisory only. Surfaced in the capabilities for the Gateway's limiter.
    use_mocks:
        Per-instance switch onto the mock path.
    response_schema:
        Optional validator callable carried for the Gateway. It receives a
        value and returns the validated value or raises.
    proxy:
        HTTP(S) proxy URL for every outbound call.
    client_config:
        Passthrough keyword options for :class:`httpx.AsyncClient`.
    """

    name: str
    category: DataCategory | str | None = None
    id: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    rate_limit_request_per_minute: Optional[int] = None
    use_mocks: bool = False
    response_schema: Optional[Callable[[Any], Any]] = None
    proxy: Optional[str] = None
    client_config: Dict[str, Any] = field(default_factory=dict)


def derive_adapter_id(config: AdapterConfig) -> str:
    """Return the explicit id, or ``name`` lowercased with whitespace runs collapsed to ``_``."""

    if config.id:
        return config.id
    return _WHITESPACE_RUN.sub("_", config.name.lower())


class DataProducer(Protocol[T_co]):
    """The two data-producing operations a concrete source supplies."""

    async def fetch_data(self, adapter: "SovereignAdapter[Any]", params: Mapping[str, Any]) -> T_co:
        """Fetch from the live source. Raise when the source is unreachable or malformed."""

    async def get_mock_data(self, adapter: "SovereignAdapter[Any]", params: Mapping[str, Any]) -> T_co:
        """Return a fixture without any network I/O."""


class DataSource(Protocol[T_co]):
    """
    What the Gateway sees of any adapter.

    Batch fetching is not part of the contract: sources declare
    ``supports_batch=False`` and the Gateway fans out single ``fetch`` calls.
    """

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def category(self) -> DataCategory | str | None: ...

    @property
    def schema(self) -> Optional[Callable[[Any], Any]]: ...

    @property
    def capabilities(self) -> SourceCapabilities: ...

    async def fetch(self, request: DataRequest) -> DataResponse[T_co]: ...

    async def initialize(self) -> None: ...

    async def dispose(self) -> None: ...


class SovereignAdapter(Generic[T]):
    """
    Stateless adapter lifecycle around a :class:`DataProducer`.

    Parameters
    ----------
    config:
        Identity, credentials and transport settings.
    producer:
        Supplies ``fetch_data`` and ``get_mock_data``. Optional ``initialize``
        and ``dispose`` coroutines on the producer are forwarded.
    options:
        Runtime switches. Defaults to :meth:`RuntimeOptions.from_env`.
    """

    def __init__(
        self,
        config: AdapterConfig,
        producer: DataProducer[T],
        *,
        options: Optional[RuntimeOptions] = None,
    ) -> None:
        self.config = config
        self.id = derive_adapter_id(config)
        self.name = config.name
        self.category = config.category
        self.schema = config.response_schema
        self.capabilities = SourceCapabilities(
            supports_historical=False,
            supports_realtime=True,
            supports_batch=False,
            requires_auth=bool(config.api_key),
            rate_limit_per_minute=config.rate_limit_request_per_minute,
        )
        self.options = options if options is not None else RuntimeOptions.from_env()
        self.client: httpx.AsyncClient = build_http_client(proxy=config.proxy, client_config=config.client_config)
        self.logger: LoggerAdapter = get_logger(
            f"{self.__class__.__module__}.{self.__class__.__name__}",
            extra={"source": self.id},
        )
        self._producer = producer
        self._disposed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, category={self.category_label!r})"

    @property
    def producer(self) -> DataProducer[T]:
        return self._producer

    @property
    def category_label(self) -> Optional[str]:
        return category_label(self.category)

    @property
    def use_mocks(self) -> bool:
        return bool(self.config.use_mocks or self.options.use_mocks)

    async def fetch(self, request: DataRequest) -> DataResponse[T]:
        """
        Produce one response for ``request``.

        The as-of ``timestamp`` is the attestation timestamp when the request
        belongs to an attestation round, so every participant of the round
        reports the same instant however long its own fetch took. Producer
        errors propagate unchanged.
        """

        context = request.attestation_context
        mocked = self.use_mocks
        self.logger.debug(
            "Dispatching fetch",
            extra={
                "mocked": mocked,
                "request_id": context.request_id if context else None,
                "attempt": context.attempt if context else None,
            },
        )
        if mocked:
            value = await self._producer.get_mock_data(self, request.params)
        else:
            value = await self._producer.fetch_data(self, request.params)

        timestamp = context.attestation_timestamp if context is not None else current_millis()
        metadata = ResponseMetadata(
            source=self.id,
            timestamp=timestamp,
            fetched_at=current_millis(),
            cache_hit=False,
            latency=0,
            retry_attempt=context.attempt if context is not None else None,
        )
        return DataResponse(data=value, metadata=metadata)

    async def get_secret(self, name: str) -> Optional[str]:
        """
        Resolve a named secret.

        The default only knows the configured ``api_key`` and returns it for
        any name containing ``API_KEY``. Override to consult a secret manager.
        """

        if "API_KEY" in name:
            return self.config.api_key
        return None

    def validate(self, value: Any) -> Any:
        """Apply the configured response schema, if any."""

        if self.schema is None:
            return value
        return self.schema(value)

    async def initialize(self) -> None:
        hook = getattr(self._producer, "initialize", None)
        if hook is not None:
            await hook()

    async def dispose(self) -> None:
        """Release the transport client and any producer resources."""

        if self._disposed:
            return
        self._disposed = True
        hook = getattr(self._producer, "dispose", None)
        try:
            if hook is not None:
                await hook()
        finally:
            await self.client.aclose()
        self.logger.debug("Adapter disposed")

    async def __aenter__(self) -> "SovereignAdapter[T]":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()
