"""LinkedIn engagement services."""

from .linkedin_services import (
    LinkedInService,
    company_from_headline,
    contact_priority_score,
    engagement_signal_score,
    freshness_bonus,
    persona_base_score,
)

__all__ = [
    "LinkedInService",
    "company_from_headline",
    "contact_priority_score",
    "engagement_signal_score",
    "freshness_bonus",
    "persona_base_score",
]
