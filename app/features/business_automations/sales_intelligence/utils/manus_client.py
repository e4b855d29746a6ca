"""
Manus AI agent client.

Enrichment runs as an asynchronous Manus task: the task is created with a
research prompt and its status is polled until the agent has produced the
JSON answer.
"""

import httpx
from typing import Optional, Dict, Any
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)

logger = get_logger(__name__)


class ManusClient:
    """Client for the Manus task API."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = "https://api.manus.ai/v1"
        self.timeout = 30.0
        self.transport = transport
        self.agent_profile = "manus-1.6"

        if not self.api_key:
            logger.warning("Manus API key not provided")

    def _headers(self) -> Dict[str, str]:
        return {"API_KEY": self.api_key, "Content-Type": "application/json"}

    async def create_task(self, prompt: str) -> Dict[str, str]:
        """
        Start an agent task.

        Returns:
            {"task_id": ..., "task_url": ...}
        """
        if not self.api_key:
            raise ProviderNotConfiguredError("manus")

        body = {"prompt": prompt, "agentProfile": self.agent_profile, "taskMode": "agent"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/tasks", json=body, headers=self._headers())
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning("Manus rate limit exceeded")
            else:
                logger.error("Manus API error", status_code=e.response.status_code, error=str(e))
            raise ProviderError("manus", f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Manus request failed", error=str(e))
            raise ProviderError("manus", str(e)) from e

        # The task id comes back as "id" or "task_id" depending on the API version
        task_id = data.get("id") or data.get("task_id")
        if not task_id:
            raise ProviderError("manus", "Manus API did not return a task_id")

        task_url = data.get("task_url") or data.get("url") or f"https://manus.ai/tasks/{task_id}"
        logger.info("Manus task created", task_id=task_id)
        return {"task_id": task_id, "task_url": task_url}

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        """Fetch task state; ``status`` is running, completed or failed."""
        if not self.api_key:
            raise ProviderNotConfiguredError("manus")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/tasks/{task_id}", headers=self._headers())
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error("Manus status check failed", task_id=task_id, status_code=e.response.status_code)
            raise ProviderError("manus", f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Manus status request failed", task_id=task_id, error=str(e))
            raise ProviderError("manus", str(e)) from e
