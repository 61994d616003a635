"""GIBDD (traffic police) fine check."""

from .connector import GibddService
from .interfaces import GibddCheckType, GibddFine, GibddQuery

__all__ = ["GibddService", "GibddCheckType", "GibddFine", "GibddQuery"]
