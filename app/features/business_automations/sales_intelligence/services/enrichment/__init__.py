"""Company and engager enrichment services (Manus AI agents)."""

from .enrichment_services import EnrichmentService, build_enrichment_prompt, parse_manus_output
from .engager_enrichment_services import EngagerEnrichmentService

__all__ = ["EnrichmentService", "EngagerEnrichmentService", "build_enrichment_prompt", "parse_manus_output"]
