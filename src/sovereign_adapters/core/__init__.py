"""
Core value types and logging shared by every adapter.

This package depends only on the standard library so it can be imported by
Gateway code that never instantiates an adapter.
"""

from .logging import StructuredLogFormatter, configure_logging, get_logger
from .models import (
    AttestationContext,
    CircuitBreakerState,
    DataCategory,
    DataLineage,
    DataMetadata,
    DataRequest,
    DataResponse,
    QualityMetrics,
    ResponseMetadata,
    SLAMetrics,
    SourceCapabilities,
    TruthData,
    TruthPoint,
    ValueKind,
    category_label,
    current_millis,
    current_seconds,
)

__all__ = [
    "AttestationContext",
    "CircuitBreakerState",
    "DataCategory",
    "DataLineage",
    "DataMetadata",
    "DataRequest",
    "DataResponse",
    "QualityMetrics",
    "ResponseMetadata",
    "SLAMetrics",
    "SourceCapabilities",
    "TruthData",
    "TruthPoint",
    "ValueKind",
    "category_label",
    "current_millis",
    "current_seconds",
    "StructuredLogFormatter",
    "configure_logging",
    "get_logger",
]
