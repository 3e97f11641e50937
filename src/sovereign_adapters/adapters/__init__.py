"""
Adapter contract and the generic REST implementation.

:class:`SovereignAdapter` owns the lifecycle every source shares; a
:class:`DataProducer` supplies the source-specific fetch. The REST producer
covers most upstreams through configuration alone.
"""

from .base import (
    AdapterConfig,
    AdapterError,
    ConfigurationError,
    DataProducer,
    DataSource,
    EndpointNotConfiguredError,
    SovereignAdapter,
    derive_adapter_id,
)
from .http import DEFAULT_TIMEOUT, build_http_client
from .rest import (
    GenericRestAdapter,
    RestEndpointConfig,
    RestEndpointProducer,
    SchemaAdapterConfig,
    extract_data_path,
    interpolate_path,
    resolve_point_id,
)

__all__ = [
    "AdapterConfig",
    "AdapterError",
    "ConfigurationError",
    "DataProducer",
    "DataSource",
    "EndpointNotConfiguredError",
    "SovereignAdapter",
    "derive_adapter_id",
    "DEFAULT_TIMEOUT",
    "build_http_client",
    "GenericRestAdapter",
    "RestEndpointConfig",
    "RestEndpointProducer",
    "SchemaAdapterConfig",
    "extract_data_path",
    "interpolate_path",
    "resolve_point_id",
]
