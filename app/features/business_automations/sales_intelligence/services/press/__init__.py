"""Press scan services (NewsAPI + Claude + Perplexity)."""

from .scan_services import PressScanService, estimate_revenue_from_employees, parse_detected_signals

__all__ = ["PressScanService", "estimate_revenue_from_employees", "parse_detected_signals"]
