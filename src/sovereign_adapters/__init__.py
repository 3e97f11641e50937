"""
Sovereign data adapters.

A lean adapter contract for oracle and consensus hosts. Each adapter turns one
external source into canonical :class:`~sovereign_adapters.core.models.TruthData`
records; the host keeps every cross-cutting concern (rate limiting, retries,
caching, circuit breaking, consensus).

Import :class:`GenericRestAdapter` with a :class:`SchemaAdapterConfig` for
configuration-only REST sources, or compose a custom :class:`DataProducer`
into a :class:`SovereignAdapter`.
"""

from .adapters import (
    AdapterConfig,
    AdapterError,
    ConfigurationError,
    DataProducer,
    DataSource,
    EndpointNotConfiguredError,
    GenericRestAdapter,
    RestEndpointConfig,
    SchemaAdapterConfig,
    SovereignAdapter,
)
from .config import RuntimeOptions, SecretsBundle, load_secrets
from .core.models import (
    AttestationContext,
    DataCategory,
    DataRequest,
    DataResponse,
    ResponseMetadata,
    SourceCapabilities,
    TruthData,
    ValueKind,
)
from .registry import AdapterRegistry, RegistryLoadError, load_schema_configs

__all__ = [
    "AdapterConfig",
    "AdapterError",
    "ConfigurationError",
    "DataProducer",
    "DataSource",
    "EndpointNotConfiguredError",
    "GenericRestAdapter",
    "RestEndpointConfig",
    "SchemaAdapterConfig",
    "SovereignAdapter",
    "RuntimeOptions",
    "SecretsBundle",
    "load_secrets",
    "AttestationContext",
    "DataCategory",
    "DataRequest",
    "DataResponse",
    "ResponseMetadata",
    "SourceCapabilities",
    "TruthData",
    "ValueKind",
    "AdapterRegistry",
    "RegistryLoadError",
    "load_schema_configs",
]
