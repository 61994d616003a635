"""Data structures for FSSP (bailiff service) debt checks."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class FsspQuery:
    """Debt check for a private person.

    Attributes:
        last_name: Family name.
        first_name: Given name.
        birth_date: ISO ``YYYY-MM-DD`` (``DD.MM.YYYY`` is also accepted).
        region: Region code, 1..99.
        middle_name: Patronymic, if the person has one.
    """
    last_name: str
    first_name: str
    birth_date: str
    region: int
    middle_name: Optional[str] = None


@dataclass
class ExecutiveProceeding:
    """One enforcement proceeding found for the person."""
    number: Optional[str] = None
    date: Optional[str] = None
    subject: Optional[str] = None
    department: Optional[str] = None
    bailiff: Optional[str] = None
    amount: Optional[float] = None
    executive_document: Optional[str] = None
    uin: Optional[str] = None
