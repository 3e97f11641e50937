"""
Value types exchanged between adapters and the Gateway.

Every adapter, regardless of upstream API shape, produces :class:`TruthData`
records wrapped in a :class:`DataResponse`. Timestamps follow two units on
purpose: response metadata uses Unix milliseconds, canonical records use Unix
seconds.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


def current_millis() -> int:
    """Wall-clock time in Unix milliseconds."""

    return int(time.time() * 1000)


def current_seconds() -> int:
    """Wall-clock time in Unix seconds, floored."""

    return math.floor(time.time())


class DataCategory(str, Enum):
    """Routing tags for the kind of data a source provides."""

    CRYPTO = "crypto"
    SPORTS = "sports"
    WEATHER = "weather"
    ECONOMICS = "economics"
    FINANCE = "finance"
    FOREX = "forex"
    ONCHAIN = "onchain"
    SOCIAL = "social"
    PREDICTION = "prediction"
    NEWS = "news"
    CUSTOM = "custom"


def category_label(category: DataCategory | str | None) -> Optional[str]:
    """Return the plain string form of a category, or ``None`` when unset."""

    if isinstance(category, DataCategory):
        return category.value
    return category or None


class ValueKind(str, Enum):
    """Runtime type tag for the unconstrained ``value`` of a record."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"

    @classmethod
    def of(cls, value: Any) -> "ValueKind":
        if value is None:
            return cls.NULL
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, Mapping):
            return cls.OBJECT
        if isinstance(value, (list, tuple)):
            return cls.ARRAY
        return cls.STRING


@dataclass(slots=True)
class SourceCapabilities:
    """
    Adapter-declared feature flags.

    These are declarations, not measurements. ``rate_limit_per_minute`` is
    advisory and only informs the Gateway's limiter.
    """

    supports_historical: bool = False
    supports_realtime: bool = True
    supports_batch: bool = False
    requires_auth: bool = False
    max_historical_days: Optional[int] = None
    rate_limit_per_minute: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "supports_historical": self.supports_historical,
            "supports_realtime": self.supports_realtime,
            "supports_batch": self.supports_batch,
            "requires_auth": self.requires_auth,
        }
        if self.max_historical_days is not None:
            payload["max_historical_days"] = self.max_historical_days
        if self.rate_limit_per_minute is not None:
            payload["rate_limit_per_minute"] = self.rate_limit_per_minute
        return payload


@dataclass(slots=True, frozen=True)
class AttestationContext:
    """
    State shared by every fetch belonging to one attestation round.

    Attributes
    ----------
    request_id:
        Opaque correlation identifier.
    attestation_timestamp:
        The as-of time (Unix milliseconds) every participating fetch reports.
        It is fixed for the whole round and survives retries unchanged.
    deadline:
        Absolute cutoff in Unix seconds.
    attempt:
        Zero-based retry counter.
    previous_errors:
        Failures recorded by earlier attempts.
    """

    request_id: str
    attestation_timestamp: int
    deadline: int
    attempt: int = 0
    previous_errors: Tuple[Any, ...] = ()

    def next_attempt(self, error: Any = None) -> "AttestationContext":
        """Return the context for the following retry, keeping the as-of time."""

        errors = self.previous_errors if error is None else (*self.previous_errors, error)
        return replace(self, attempt=self.attempt + 1, previous_errors=errors)


@dataclass(slots=True, frozen=True)
class DataRequest:
    """A single fetch request. ``params`` are adapter-specific."""

    params: Mapping[str, Any] = field(default_factory=dict)
    timestamp: Optional[int] = None
    timeout: Optional[float] = None
    attestation_context: Optional[AttestationContext] = None


@dataclass(slots=True)
class ResponseMetadata:
    """
    Metadata attached to every response.

    ``cache_hit`` and ``latency`` are placeholders at this layer; the Gateway
    overwrites them once it knows the cache outcome and measured latency.
    ``verifiable_hash`` is likewise computed by the consensus layer.
    """

    source: str
    timestamp: int
    fetched_at: int
    cache_hit: bool = False
    latency: float = 0
    retry_attempt: Optional[int] = None
    verifiable_hash: Optional[str] = None
    extra: Optional[Mapping[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": self.source,
            "timestamp": self.timestamp,
            "fetched_at": self.fetched_at,
            "cache_hit": self.cache_hit,
            "latency": self.latency,
        }
        if self.retry_attempt is not None:
            payload["retry_attempt"] = self.retry_attempt
        if self.verifiable_hash is not None:
            payload["verifiable_hash"] = self.verifiable_hash
        if self.extra is not None:
            payload["extra"] = dict(self.extra)
        return payload


@dataclass(slots=True)
class TruthData:
    """Canonical record every adapter normalizes into."""

    id: str
    value: Any
    category: str
    source: str
    timestamp: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> ValueKind:
        return ValueKind.of(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "value": self.value,
            "category": self.category,
            "source": self.source,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }


@dataclass(slots=True)
class DataResponse(Generic[T]):
    data: T
    metadata: ResponseMetadata

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if isinstance(self.data, TruthData) else self.data
        return {"data": data, "metadata": self.metadata.to_dict()}


class CircuitBreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(slots=True)
class DataLineage:
    """
    Where a data point came from and what happened to it on the way.

    Filled in by the Gateway: adapters only know ``adapter`` and ``fetched_at``.
    """

    adapter: str
    fetched_at: int
    cache_hit: bool = False
    cached_at: Optional[int] = None
    transformed_by: Optional[Tuple[str, ...]] = None
    retry_attempts: Optional[int] = None
    circuit_breaker_state: Optional[CircuitBreakerState] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "adapter": self.adapter,
            "fetched_at": self.fetched_at,
            "cache_hit": self.cache_hit,
        }
        if self.cached_at is not None:
            payload["cached_at"] = self.cached_at
        if self.transformed_by is not None:
            payload["transformed_by"] = list(self.transformed_by)
        if self.retry_attempts is not None:
            payload["retry_attempts"] = self.retry_attempts
        if self.circuit_breaker_state is not None:
            payload["circuit_breaker_state"] = self.circuit_breaker_state.value
        return payload


@dataclass(slots=True)
class QualityMetrics:
    """Validation outcome for a data point. ``confidence`` is in ``[0, 1]``, ``freshness`` in ms."""

    confidence: float
    freshness: int
    validated: bool
    sample_size: Optional[int] = None
    variance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "confidence": self.confidence,
            "freshness": self.freshness,
            "validated": self.validated,
        }
        if self.sample_size is not None:
            payload["sample_size"] = self.sample_size
        if self.variance is not None:
            payload["variance"] = self.variance
        return payload


@dataclass(slots=True)
class SLAMetrics:
    met: bool
    latency: float
    availability: float
    freshness_requirement_met: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "met": self.met,
            "latency": self.latency,
            "availability": self.availability,
            "freshness_requirement_met": self.freshness_requirement_met,
        }


@dataclass(slots=True)
class DataMetadata:
    """
    Provenance attached to a :class:`TruthPoint`.

    ``extra`` holds open-ended fields (tags, snippets, geo, ...). They are
    flattened into :meth:`to_dict` but never override the named fields.
    """

    source: str
    timestamp: int
    request_id: str
    lineage: DataLineage
    quality: QualityMetrics
    sla: Optional[SLAMetrics] = None
    verifiable_hash: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "source": self.source,
                "timestamp": self.timestamp,
                "request_id": self.request_id,
                "lineage": self.lineage.to_dict(),
                "quality": self.quality.to_dict(),
            }
        )
        if self.sla is not None:
            payload["sla"] = self.sla.to_dict()
        if self.verifiable_hash is not None:
            payload["verifiable_hash"] = self.verifiable_hash
        return payload


@dataclass(slots=True)
class TruthPoint(Generic[T]):
    """A value wrapped with lineage, quality and SLA metadata for the consensus layer."""

    value: T
    metadata: DataMetadata

    def to_dict(self) -> Dict[str, Any]:
        value = self.value.to_dict() if isinstance(self.value, TruthData) else self.value
        return {"value": value, "metadata": self.metadata.to_dict()}
