"""
Pappers API client for the French company registry.

Two endpoints are used:
- /v2/recherche: companies filtered by creation date and workforce band
- /v2/publications: BODACC publications (management and capital changes)
"""

import httpx
from typing import Optional, Dict, Any
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)

logger = get_logger(__name__)


class PappersClient:
    """Client for Pappers company and publication search."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = "https://api.pappers.fr/v2"
        self.timeout = 30.0
        self.transport = transport

        if not self.api_key:
            logger.warning("Pappers API key not provided")

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ProviderNotConfiguredError("pappers")

        query = {key: value for key, value in params.items() if value is not None}
        query["api_token"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}{path}",
                    params=query,
                    headers={"Accept": "application/json"}
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning("Pappers rate limit exceeded", path=path)
            else:
                logger.error("Pappers API error", path=path, status_code=e.response.status_code, error=str(e))
            raise ProviderError("pappers", f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Pappers request failed", path=path, error=str(e))
            raise ProviderError("pappers", str(e)) from e

    async def search_companies(
        self,
        date_creation_min: str,
        date_creation_max: str,
        page: int = 1,
        per_page: int = 25,
        tranche_effectif_min: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Search active companies created inside a date window.

        Returns:
            Pappers payload with ``resultats`` and ``total``
        """
        logger.info(
            "Searching Pappers companies",
            date_creation_min=date_creation_min,
            date_creation_max=date_creation_max,
            page=page
        )
        return await self._get("/recherche", {
            "date_creation_min": date_creation_min,
            "date_creation_max": date_creation_max,
            "entreprise_cessee": "false",
            "par_page": per_page,
            "page": page,
            "tranche_effectif_min": tranche_effectif_min,
        })

    async def search_publications(
        self,
        type_publication: str = "modification",
        date_publication_min: Optional[str] = None,
        per_page: int = 50
    ) -> Dict[str, Any]:
        """Search recent BODACC publications."""
        logger.info("Searching Pappers publications", type_publication=type_publication)
        return await self._get("/publications", {
            "type_publication": type_publication,
            "date_publication_min": date_publication_min,
            "par_page": per_page,
        })
