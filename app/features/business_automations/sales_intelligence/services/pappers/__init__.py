"""Pappers registry services."""

from .crud_services import PappersCrudService, transfer_score, transfer_signal_type
from .scan_services import (
    PappersScanService,
    anniversary_signal,
    relevance_for_anniversary,
    relevance_for_company,
)

__all__ = [
    "PappersCrudService",
    "PappersScanService",
    "anniversary_signal",
    "relevance_for_anniversary",
    "relevance_for_company",
    "transfer_score",
    "transfer_signal_type",
]
