"""Verification connectors.

Each government portal is described by a ``VerificationService`` and run
through the shared ``VerificationGateway``:

- fssp: Enforcement proceedings (debts) of the Federal Bailiff Service
- gibdd: Unpaid traffic fines
- passport: MVD register of invalid passports
"""

from .fssp import FsspQuery, FsspService
from .gateway import VerificationGateway
from .gibdd import GibddCheckType, GibddQuery, GibddService
from .interfaces import Extraction, VerificationResult, VerificationService, VerificationSource
from .passport import PassportQuery, PassportService, PassportStatus

__all__ = [
    "FsspQuery",
    "FsspService",
    "VerificationGateway",
    "GibddCheckType",
    "GibddQuery",
    "GibddService",
    "Extraction",
    "VerificationResult",
    "VerificationService",
    "VerificationSource",
    "PassportQuery",
    "PassportService",
    "PassportStatus",
]
