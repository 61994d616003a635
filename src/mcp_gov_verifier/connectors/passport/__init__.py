"""MVD passport validity check."""

from .connector import PassportService
from .interfaces import PassportQuery, PassportStatus

__all__ = ["PassportService", "PassportQuery", "PassportStatus"]
