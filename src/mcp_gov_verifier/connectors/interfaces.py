"""Interfaces for the verification connectors.

This module defines the data structures shared by every verification
service and the ``VerificationService`` contract that plugs a concrete
portal (FSSP, GIBDD, MVD) into the generic gateway.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from ..browser.session import FormSpec

Q = TypeVar("Q")


class VerificationSource(Enum):
    """Where a verification result came from."""
    LIVE = "live"  # Fetched from the portal just now
    CACHE = "cache"  # Served from the result cache
    FALLBACK = "fallback"  # Portal not consulted or unreachable


@dataclass
class Extraction:
    """What a result extractor read from a portal response page.

    Attributes:
        verdict: The yes/no answer (debt present, fines present, passport invalid).
        payload: Service-specific details.
        low_confidence: True when no rule matched and the verdict is a default.
        message: Note for the caller, mainly for low-confidence results.
    """
    verdict: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    low_confidence: bool = False
    message: Optional[str] = None


_RESULT_KEYS = ("service", "verdict", "source", "checked_at", "error", "message", "low_confidence")


@dataclass
class VerificationResult:
    """Result of one verification check.

    A FALLBACK result always carries a human-readable ``error``.

    Attributes:
        service: Service name, e.g. ``"fssp"``.
        verdict: The yes/no answer for the service.
        payload: Service-specific details.
        source: Where the result came from.
        checked_at: When the portal was (or would have been) consulted.
        error: Why the portal answer is missing, for FALLBACK results.
        message: Informational note.
        low_confidence: True when the verdict is a default rather than read.
    """
    service: str
    verdict: bool
    payload: Dict[str, Any]
    source: VerificationSource
    checked_at: datetime
    error: Optional[str] = None
    message: Optional[str] = None
    low_confidence: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a JSON-compatible dict with the payload inlined."""
        data = dict(self.payload)
        data.update({
            "service": self.service,
            "verdict": self.verdict,
            "source": self.source.value,
            "checked_at": self.checked_at.isoformat(),
            "error": self.error,
            "message": self.message,
            "low_confidence": self.low_confidence,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VerificationResult':
        """Rebuild a result written by :meth:`to_dict`."""
        payload = {k: v for k, v in data.items() if k not in _RESULT_KEYS}
        return cls(
            service=data["service"],
            verdict=bool(data["verdict"]),
            payload=payload,
            source=VerificationSource(data["source"]),
            checked_at=datetime.fromisoformat(data["checked_at"]),
            error=data.get("error"),
            message=data.get("message"),
            low_confidence=bool(data.get("low_confidence", False)),
        )


class VerificationService(ABC, Generic[Q]):
    """Everything portal-specific the gateway needs.

    Implementations are stateless: they normalize queries, describe the form,
    parse the response and provide fallback answers. The gateway supplies all
    the resilience around them.
    """

    #: Short service name used in logs and results
    name: str = ""
    #: Prefix of every cache key
    cache_prefix: str = ""
    #: Error for results produced while the integration is disabled
    disabled_error: str = ""
    #: Error for results produced after the portal could not be reached
    failure_error: str = ""
    #: Error for results produced while the circuit breaker is open
    circuit_open_error: str = ""

    @abstractmethod
    def normalize(self, query: Any) -> Q:
        """Validate and normalize a query.

        Args:
            query: A query dataclass or a mapping of its fields.

        Raises:
            QueryValidationError: A required field is missing or malformed.
        """
        pass

    def cache_key(self, query: Q) -> str:
        """Cache key for a normalized query."""
        return f"{self.cache_prefix}:" + ":".join(self.key_fields(query))

    @abstractmethod
    def key_fields(self, query: Q) -> list:
        """Normalized field values that identify the query."""
        pass

    @abstractmethod
    def form_spec(self, query: Q, url: str) -> FormSpec:
        """Describe how to fill the portal form for query."""
        pass

    @abstractmethod
    def parse(self, html: str, query: Q) -> Extraction:
        """Read the answer from the portal response page. Never raises."""
        pass

    @abstractmethod
    def empty_extraction(self, query: Q) -> Extraction:
        """Negative answer with an empty payload, used by fallbacks."""
        pass

    def disabled_extraction(self, query: Q) -> Extraction:
        """Answer returned while the integration is disabled."""
        return self.empty_extraction(query)

    def failure_extraction(self, query: Q) -> Extraction:
        """Answer returned when the portal could not be consulted."""
        return self.empty_extraction(query)

    @abstractmethod
    def demo_extraction(self) -> Extraction:
        """Fixed, positive sample answer for demonstrations."""
        pass
