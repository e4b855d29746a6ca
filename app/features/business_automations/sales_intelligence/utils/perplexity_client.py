"""
Perplexity client for company revenue lookups.

Perplexity exposes an OpenAI-compatible chat API, so the OpenAI SDK is
pointed at its base URL.
"""

from typing import Optional
from openai import AsyncOpenAI
from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.sales_intelligence.constants import PERPLEXITY_MODEL
from app.features.business_automations.sales_intelligence.utils.json_extract import extract_json

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "Tu es un assistant qui recherche des informations financières sur les entreprises "
    "françaises. Réponds UNIQUEMENT en JSON valide, sans markdown."
)


class PerplexityClient:
    """Client for Perplexity web-grounded answers."""

    def __init__(self, api_key: Optional[str] = None):
        if not api_key:
            logger.warning("Perplexity API key not provided")
            self.client = None
        else:
            self.client = AsyncOpenAI(api_key=api_key, base_url="https://api.perplexity.ai")

        self.model = PERPLEXITY_MODEL

    async def find_revenue(self, company_name: str) -> Optional[float]:
        """
        Look up the latest annual revenue of a French company.

        Returns:
            Revenue in euros, or None when unknown or on any failure
        """
        if not self.client:
            logger.error("Perplexity client not configured")
            return None

        prompt = (
            f"Recherche le chiffre d'affaires annuel le plus récent de l'entreprise \"{company_name}\" en France.\n\n"
            "Réponds UNIQUEMENT avec ce JSON (sans markdown ni texte):\n"
            '{"company": "nom exact trouvé", "revenue_euros": nombre en euros, "year": année du CA, '
            '"confidence": "high" | "medium" | "low", "source": "source de l\'info"}\n\n'
            f'Si tu ne trouves pas le CA, réponds: {{"company": "{company_name}", "revenue_euros": null, '
            '"confidence": "none", "source": null}'
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=0.1,
                max_tokens=500
            )

            content = response.choices[0].message.content or ""
            result = extract_json(content)
            revenue = result.get("revenue_euros") if isinstance(result, dict) else None

            if isinstance(revenue, (int, float)) and not isinstance(revenue, bool):
                logger.info("Revenue found", company=company_name, revenue=revenue)
                return float(revenue)

            logger.info("Revenue not found", company=company_name)
            return None

        except Exception as e:
            logger.error("Perplexity revenue lookup failed", company=company_name, error=str(e))
            return None
