"""
NewsAPI client for the press scan.

Searches the /v2/everything endpoint for French business press matching
the tenant's search queries.
"""

import httpx
from datetime import datetime
from typing import Optional, Dict, Any, List
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)

logger = get_logger(__name__)


class NewsAPIClient:
    """Client for NewsAPI article search."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize NewsAPI client.

        Args:
            api_key: NewsAPI key from the settings table or environment
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key
        self.base_url = "https://newsapi.org/v2"
        self.timeout = 15.0
        self.transport = transport

        if not self.api_key:
            logger.warning("NewsAPI key not provided")

    async def search_everything(
        self,
        query: str,
        from_date: datetime,
        language: str = "fr",
        page_size: int = 50
    ) -> List[Dict[str, Any]]:
        """
        Search articles published since ``from_date``.

        Returns:
            Raw NewsAPI article dicts (title, url, description, content, source, ...)
        """
        if not self.api_key:
            raise ProviderNotConfiguredError("newsapi")

        params = {
            "q": query,
            "from": from_date.strftime("%Y-%m-%dT%H:%M:%S"),
            "language": language,
            "sortBy": "publishedAt",
            "pageSize": page_size,
            "apiKey": self.api_key,
        }

        logger.info("Searching NewsAPI", query=query[:80], from_date=params["from"])

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/everything", params=params)
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning("NewsAPI rate limit exceeded")
            else:
                logger.error("NewsAPI error", status_code=e.response.status_code, error=str(e))
            raise ProviderError("newsapi", f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("NewsAPI request failed", error=str(e))
            raise ProviderError("newsapi", str(e)) from e

        if data.get("status") != "ok":
            raise ProviderError("newsapi", data.get("message") or "Unexpected response")

        articles = data.get("articles") or []
        logger.info("NewsAPI articles received", query=query[:80], count=len(articles))
        return articles
