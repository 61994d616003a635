"""Data structures for MVD passport validity checks."""

from dataclasses import dataclass
from enum import Enum


class PassportStatus(Enum):
    """Answer of the MVD invalid passports register."""
    VALID = "VALID"
    INVALID = "INVALID"  # Listed as invalid (lost, stolen, expired)
    NOT_FOUND = "NOT_FOUND"  # Not listed, i.e. not known to be invalid
    UNKNOWN = "UNKNOWN"  # The register could not be read


@dataclass
class PassportQuery:
    """Passport to look up.

    Attributes:
        series: Four digits.
        number: Six digits.
    """
    series: str
    number: str
