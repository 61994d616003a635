"""FSSP (Federal Bailiff Service) debt check."""

from .connector import FsspService
from .interfaces import ExecutiveProceeding, FsspQuery

__all__ = ["FsspService", "ExecutiveProceeding", "FsspQuery"]
