from __future__ import annotations

import asyncio
import time
from typing import Any, Mapping

import httpx
import pytest

from sovereign_adapters.adapters.base import AdapterConfig, AdapterError, DataSource, SovereignAdapter, derive_adapter_id
from sovereign_adapters.adapters.http import DEFAULT_TIMEOUT
from sovereign_adapters.config import RuntimeOptions
from sovereign_adapters.core.models import AttestationContext, DataCategory, DataRequest


class StaticProducer:
    def __init__(self, value: Any = 42, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.value = value
        self.delay = delay
        self.error = error
        self.live_calls: list[Mapping[str, Any]] = []
        self.mock_calls: list[Mapping[str, Any]] = []

    async def fetch_data(self, adapter: SovereignAdapter[Any], params: Mapping[str, Any]) -> Any:
        self.live_calls.append(params)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value

    async def get_mock_data(self, adapter: SovereignAdapter[Any], params: Mapping[str, Any]) -> Any:
        self.mock_calls.append(params)
        return {"mocked": True}


class HookedProducer(StaticProducer):
    def __init__(self) -> None:
        super().__init__()
        self.initialized = 0
        self.disposed = 0

    async def initialize(self) -> None:
        self.initialized += 1

    async def dispose(self) -> None:
        self.disposed += 1


def _adapter(producer: Any = None, **config_overrides: Any) -> SovereignAdapter[Any]:
    config = AdapterConfig(name=config_overrides.pop("name", "Test Source"), category=DataCategory.CRYPTO, **config_overrides)
    return SovereignAdapter(config, producer or StaticProducer(), options=RuntimeOptions())


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Binance", "binance"),
        ("Open Weather Map", "open_weather_map"),
        ("  Padded   Name\t", "_padded_name_"),
        ("Multi\n\nLine  Source", "multi_line_source"),
    ],
)
def test_derived_id_collapses_whitespace(name, expected):
    assert derive_adapter_id(AdapterConfig(name=name)) == expected


def test_explicit_id_wins_over_name():
    adapter = _adapter(name="Open Weather Map", id="owm")

    assert adapter.id == "owm"
    assert adapter.name == "Open Weather Map"


def test_capabilities_are_declared_from_config():
    keyed = _adapter(api_key="secret", rate_limit_request_per_minute=60)
    anonymous = _adapter()

    assert keyed.capabilities.requires_auth is True
    assert keyed.capabilities.rate_limit_per_minute == 60
    assert keyed.capabilities.supports_realtime is True
    assert keyed.capabilities.supports_historical is False
    assert keyed.capabilities.supports_batch is False
    assert anonymous.capabilities.requires_auth is False


def test_client_defaults_and_overrides():
    default = _adapter()
    tuned = _adapter(client_config={"timeout": 5.0, "headers": {"X-Client": "gateway"}})

    assert default.client.timeout.connect == DEFAULT_TIMEOUT
    assert tuned.client.timeout.connect == 5.0
    assert tuned.client.headers["X-Client"] == "gateway"


def test_proxy_disables_environment_proxy_detection():
    proxied = _adapter(proxy="http://proxy.internal:3128")
    direct = _adapter()

    assert proxied.client.trust_env is False
    assert direct.client.trust_env is True


@pytest.mark.asyncio
async def test_fetch_reports_attestation_timestamp_regardless_of_duration():
    producer = StaticProducer(value={"price": 1}, delay=0.02)
    adapter = _adapter(producer)
    context = AttestationContext(request_id="round-1", attestation_timestamp=1_700_000_000_000, deadline=1_700_000_060, attempt=2)

    response = await adapter.fetch(DataRequest(params={"symbol": "BTC"}, attestation_context=context))

    assert response.metadata.timestamp == 1_700_000_000_000
    assert response.metadata.fetched_at > context.attestation_timestamp
    assert response.metadata.retry_attempt == 2
    assert response.data == {"price": 1}
    await adapter.dispose()


@pytest.mark.asyncio
async def test_attestation_timestamp_is_stable_across_retries():
    adapter = _adapter(StaticProducer(delay=0.005))
    context = AttestationContext(request_id="round-2", attestation_timestamp=1_650_000_000_000, deadline=1_650_000_030)

    first = await adapter.fetch(DataRequest(attestation_context=context))
    retried = await adapter.fetch(DataRequest(attestation_context=context.next_attempt("timeout")))

    assert first.metadata.timestamp == retried.metadata.timestamp == 1_650_000_000_000
    assert retried.metadata.retry_attempt == 1
    await adapter.dispose()


@pytest.mark.asyncio
async def test_fetch_without_context_uses_wall_clock(monkeypatch):
    adapter = _adapter()
    ticks = iter(range(1_000_000, 2_000_000, 500))
    monkeypatch.setattr("sovereign_adapters.adapters.base.current_millis", lambda: next(ticks))

    first = await adapter.fetch(DataRequest())
    second = await adapter.fetch(DataRequest())

    assert first.metadata.timestamp == 1_000_000
    assert first.metadata.fetched_at == 1_000_500
    assert second.metadata.timestamp >= first.metadata.timestamp
    assert second.metadata.retry_attempt is None
    assert first.metadata.cache_hit is False
    assert first.metadata.latency == 0
    assert first.metadata.source == adapter.id
    await adapter.dispose()


@pytest.mark.asyncio
async def test_fetch_timestamp_within_execution_window():
    adapter = _adapter()
    before = int(time.time() * 1000)
    response = await adapter.fetch(DataRequest())
    after = int(time.time() * 1000)

    assert before <= response.metadata.timestamp <= after
    await adapter.dispose()


@pytest.mark.asyncio
async def test_per_adapter_mock_flag_skips_network(transport_factory):
    transport = transport_factory()
    producer = StaticProducer()
    adapter = _adapter(producer, use_mocks=True, client_config={"transport": transport})

    response = await adapter.fetch(DataRequest(params={"endpoint": "ticker"}))

    assert response.data == {"mocked": True}
    assert producer.live_calls == []
    assert len(producer.mock_calls) == 1
    assert transport.requests == []
    await adapter.dispose()


@pytest.mark.asyncio
async def test_runtime_mock_option_forces_mock_path(transport_factory):
    transport = transport_factory()
    producer = StaticProducer()
    config = AdapterConfig(name="Forced", client_config={"transport": transport})
    adapter = SovereignAdapter(config, producer, options=RuntimeOptions(use_mocks=True))

    await adapter.fetch(DataRequest(params={"endpoint": "ticker"}))

    assert adapter.use_mocks is True
    assert producer.live_calls == []
    assert transport.requests == []
    await adapter.dispose()


def test_options_default_to_environment(monkeypatch):
    monkeypatch.setenv("SOVEREIGN_USE_MOCKS", "true")

    adapter = SovereignAdapter(AdapterConfig(name="Env"), StaticProducer())

    assert adapter.options.use_mocks is True
    assert adapter.use_mocks is True


@pytest.mark.asyncio
async def test_producer_errors_propagate_unchanged():
    boom = httpx.ConnectError("connection refused")
    adapter = _adapter(StaticProducer(error=boom))

    with pytest.raises(httpx.ConnectError) as excinfo:
        await adapter.fetch(DataRequest())

    assert excinfo.value is boom
    await adapter.dispose()


@pytest.mark.asyncio
async def test_adapter_errors_are_not_wrapped():
    adapter = _adapter(StaticProducer(error=AdapterError("upstream said no")))

    with pytest.raises(AdapterError, match="upstream said no"):
        await adapter.fetch(DataRequest())
    await adapter.dispose()


@pytest.mark.asyncio
async def test_get_secret_resolves_api_key_names_only():
    adapter = _adapter(api_key="k-123")

    assert await adapter.get_secret("BINANCE_API_KEY") == "k-123"
    assert await adapter.get_secret("API_KEY") == "k-123"
    assert await adapter.get_secret("DB_PASSWORD") is None
    assert await adapter.get_secret("api_key") is None
    await adapter.dispose()


def test_validate_applies_schema():
    def positive(value: Any) -> Any:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    adapter = _adapter(response_schema=positive)
    plain = _adapter()

    assert adapter.schema is positive
    assert adapter.validate(3) == 3
    with pytest.raises(ValueError):
        adapter.validate(-1)
    assert plain.validate(-1) == -1


@pytest.mark.asyncio
async def test_dispose_closes_client_and_is_idempotent():
    producer = HookedProducer()
    adapter = _adapter(producer)

    await adapter.dispose()
    await adapter.dispose()

    assert adapter.client.is_closed
    assert producer.disposed == 1


@pytest.mark.asyncio
async def test_async_context_manager_runs_lifecycle_hooks():
    producer = HookedProducer()

    async with _adapter(producer) as adapter:
        assert producer.initialized == 1
        await adapter.fetch(DataRequest())

    assert producer.disposed == 1
    assert adapter.client.is_closed


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_client():
    producer = StaticProducer(delay=0.01)
    adapter = _adapter(producer)
    client = adapter.client

    responses = await asyncio.gather(*(adapter.fetch(DataRequest(params={"n": n})) for n in range(5)))

    assert len(responses) == 5
    assert len(producer.live_calls) == 5
    assert adapter.client is client
    await adapter.dispose()


def test_repr_mentions_id_and_category():
    assert repr(_adapter(id="src")) == "SovereignAdapter(id='src', category='crypto')"


def test_adapter_exposes_every_data_source_member():
    members = sorted(name for name in vars(DataSource) if not name.startswith("_"))
    adapter = _adapter(response_schema=str)

    assert members == ["capabilities", "category", "dispose", "fetch", "id", "initialize", "name", "schema"]
    assert all(hasattr(adapter, name) for name in members)
    assert adapter.category is DataCategory.CRYPTO
    assert adapter.schema is str
