"""Data structures for GIBDD traffic fine checks."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GibddCheckType(Enum):
    """How the vehicle or driver is identified."""
    STS = "sts"  # Plate number + vehicle registration certificate
    LICENSE = "license"  # Driver's license


@dataclass
class GibddQuery:
    """Fine check by vehicle registration or by driver's license.

    STS checks need ``reg_number`` and ``sts_number``; license checks need
    ``license_number`` and optionally ``issue_date``.
    """
    check_type: GibddCheckType
    reg_number: Optional[str] = None
    sts_number: Optional[str] = None
    license_number: Optional[str] = None
    issue_date: Optional[str] = None


@dataclass
class GibddFine:
    """One unpaid fine."""
    date: Optional[str] = None
    article: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    discount_amount: Optional[float] = None
    discount_deadline: Optional[str] = None
    uin: Optional[str] = None
    payment_url: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
