"""Credit plan and usage services."""

from .credit_services import CreditService, compute_summary

__all__ = ["CreditService", "compute_summary"]
