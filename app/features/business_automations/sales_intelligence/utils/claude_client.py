"""
Anthropic Claude client for press analysis and message copywriting.
"""

import anthropic
from anthropic import AsyncAnthropic
from typing import Optional
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.constants import CLAUDE_ANALYSIS_MODEL
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)

logger = get_logger(__name__)


class ClaudeClient:
    """Thin wrapper over the Anthropic messages API."""

    def __init__(self, api_key: Optional[str] = None, model: str = CLAUDE_ANALYSIS_MODEL):
        """
        Initialize Claude client.

        Args:
            api_key: Anthropic API key from the settings table or environment
            model: Model used for every call
        """
        if not api_key:
            logger.warning("Anthropic API key not provided")
            self.client = None
        else:
            self.client = AsyncAnthropic(api_key=api_key)

        self.model = model

    async def complete(self, prompt: str, system: Optional[str] = None, max_tokens: int = 1024) -> str:
        """
        Send a single user prompt and return the concatenated text reply.

        Raises:
            ProviderNotConfiguredError: No API key
            ProviderError: API failure (status_code 429 on rate limit)
        """
        if not self.client:
            raise ProviderNotConfiguredError("claude")

        params = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system

        try:
            response = await self.client.messages.create(**params)
        except anthropic.RateLimitError as e:
            logger.warning("Anthropic rate limit exceeded")
            raise ProviderError("claude", "Rate limit exceeded. Please try again later.", 429) from e
        except anthropic.APIStatusError as e:
            logger.error("Anthropic API error", status_code=e.status_code, error=str(e))
            raise ProviderError("claude", e.message, e.status_code) from e
        except anthropic.APIError as e:
            logger.error("Anthropic request failed", error=str(e))
            raise ProviderError("claude", str(e)) from e

        generated_text = ""
        for content_block in response.content:
            if content_block.type == "text":
                generated_text += content_block.text

        if not generated_text:
            raise ProviderError("claude", "No text generated by Claude")

        logger.info(
            "Claude completion received",
            model=self.model,
            stop_reason=response.stop_reason,
            length=len(generated_text)
        )
        return generated_text
