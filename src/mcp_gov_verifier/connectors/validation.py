"""Field normalization helpers shared by the service query types.

Normalized values feed both the cache key and the portal form, so two
queries that differ only in case or spacing hit the same cache entry.
"""

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..exceptions import QueryValidationError

_WS_RE = re.compile(r"\s+")
_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")


def as_mapping(query: Any) -> Mapping[str, Any]:
    """Accept a query dataclass or a plain mapping of its fields."""
    if isinstance(query, Mapping):
        return query
    return vars(query)


def normalize_text(value: Any) -> str:
    """Upper-case, trim and collapse inner whitespace."""
    if value is None:
        return ""
    return _WS_RE.sub(" ", str(value)).strip().upper()


def require_text(fields: Mapping[str, Any], name: str) -> str:
    value = normalize_text(fields.get(name))
    if not value:
        raise QueryValidationError(name, "is required")
    return value


def optional_text(fields: Mapping[str, Any], name: str) -> Optional[str]:
    return normalize_text(fields.get(name)) or None


def require_digits(fields: Mapping[str, Any], name: str, length: int) -> str:
    """Exactly ``length`` digits; inner spaces are ignored."""
    value = _WS_RE.sub("", str(fields.get(name) or ""))
    if not value:
        raise QueryValidationError(name, "is required")
    if not value.isdigit() or len(value) != length:
        raise QueryValidationError(name, f"must be {length} digits")
    return value


def parse_date(fields: Mapping[str, Any], name: str, required: bool = True) -> Optional[str]:
    """Accept ``YYYY-MM-DD``, ``DD.MM.YYYY`` or a date; return ISO format."""
    raw = fields.get(name)
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()

    text = str(raw or "").strip()
    if not text:
        if required:
            raise QueryValidationError(name, "is required")
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise QueryValidationError(name, "must be a date in YYYY-MM-DD or DD.MM.YYYY format")


def to_form_date(iso_date: str) -> str:
    """ISO date to the ``DD.MM.YYYY`` format the portals expect."""
    return datetime.strptime(iso_date, "%Y-%m-%d").strftime("%d.%m.%Y")
