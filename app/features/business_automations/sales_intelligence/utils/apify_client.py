"""
Apify client for LinkedIn scraping actors.

Actors are started asynchronously, their run is polled until it reaches a
terminal state and the default dataset is then downloaded.
"""

import asyncio
import httpx
from typing import Optional, Dict, Any, List
from app.features.core.config import get_settings
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)

logger = get_logger(__name__)

TERMINAL_STATUSES = {"SUCCEEDED", "FAILED", "ABORTED", "TIMED-OUT"}


class ApifyClient:
    """Client for running Apify actors and reading their datasets."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_polls: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.api_key = api_key
        self.base_url = "https://api.apify.com/v2"
        self.timeout = 30.0
        self.poll_interval = settings.APIFY_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.max_polls = settings.APIFY_MAX_POLLS if max_polls is None else max_polls
        self.transport = transport

        if not self.api_key:
            logger.warning("Apify API key not provided")

    async def run_actor(self, actor_id: str, run_input: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Run an actor and return its dataset items.

        A run that has not succeeded after max_polls status checks yields no items.
        """
        if not self.api_key:
            raise ProviderNotConfiguredError("apify")

        params = {"token": self.api_key}
        # Actor ids are "user/name" in the console and "user~name" in API paths
        actor_path = actor_id.replace("/", "~")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/acts/{actor_path}/runs",
                    params=params,
                    json=run_input
                )
                response.raise_for_status()
                run = response.json().get("data") or {}

                run_id = run.get("id")
                status = run.get("status")
                logger.info("Apify run started", actor=actor_id, run_id=run_id, status=status)

                polls = 0
                while status not in TERMINAL_STATUSES and polls < self.max_polls:
                    await asyncio.sleep(self.poll_interval)
                    status_response = await client.get(f"{self.base_url}/actor-runs/{run_id}", params=params)
                    status_response.raise_for_status()
                    status = (status_response.json().get("data") or {}).get("status")
                    polls += 1
                    logger.debug("Apify run status", run_id=run_id, status=status, attempt=polls)

                if status != "SUCCEEDED":
                    logger.error("Apify run did not succeed", actor=actor_id, run_id=run_id, status=status)
                    return []

                dataset_id = run.get("defaultDatasetId")
                items_response = await client.get(f"{self.base_url}/datasets/{dataset_id}/items", params=params)
                items_response.raise_for_status()
                items = items_response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning("Apify rate limit exceeded", actor=actor_id)
            else:
                logger.error("Apify API error", actor=actor_id, status_code=e.response.status_code, error=str(e))
            raise ProviderError("apify", f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Apify request failed", actor=actor_id, error=str(e))
            raise ProviderError("apify", str(e)) from e

        items = items if isinstance(items, list) else []
        logger.info("Apify dataset downloaded", actor=actor_id, items=len(items))
        return items

    async def scrape_posts(self, actor_id: str, source_url: str, max_items: int) -> List[Dict[str, Any]]:
        """Latest posts of a profile or company page."""
        return await self.run_actor(actor_id, {
            "urls": [source_url],
            "profileUrls": [source_url],
            "companyUrls": [source_url],
            "maxItems": max_items,
        })

    async def scrape_reactions(self, actor_id: str, post_url: str, max_items: int) -> List[Dict[str, Any]]:
        """Reactions and comments on a single post."""
        return await self.run_actor(actor_id, {
            "postUrls": [post_url],
            "urls": [post_url],
            "maxItems": max_items,
        })
