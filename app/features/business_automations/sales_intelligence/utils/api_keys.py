"""
API key lookup for external providers.

Keys entered on the settings page are stored per tenant in the settings
table; the environment is the fallback for single-tenant deployments.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.features.core.config import get_settings
from app.features.core.sqlalchemy_imports import get_logger, select
from app.features.business_automations.sales_intelligence.models import AppSetting

logger = get_logger(__name__)

# provider -> (settings table key, environment variable)
PROVIDER_KEYS = {
    "newsapi": ("newsapi_key", "NEWSAPI_KEY"),
    "claude": ("claude_api_key", "ANTHROPIC_API_KEY"),
    "perplexity": ("perplexity_api_key", "PERPLEXITY_API_KEY"),
    "pappers": ("pappers_api_key", "PAPPERS_API_KEY"),
    "manus": ("manus_api_key", "MANUS_API_KEY"),
    "apify": ("apify_api_key", "APIFY_API_KEY"),
}


async def get_provider_api_key(
    db: AsyncSession,
    tenant_id: Optional[str],
    provider: str
) -> Optional[str]:
    """
    Fetch a provider API key for a tenant.

    Args:
        db: Database session
        tenant_id: Tenant ID ("global" or None for the shared tenant)
        provider: One of PROVIDER_KEYS

    Returns:
        API key string or None if not configured
    """
    setting_key, env_name = PROVIDER_KEYS[provider]
    value = None

    try:
        stmt = (
            select(AppSetting.value)
            .where(AppSetting.key == setting_key)
            .where(AppSetting.tenant_id == (tenant_id or "global"))
            .limit(1)
        )
        value = (await db.execute(stmt)).scalar_one_or_none()
    except Exception as e:
        logger.error("Error retrieving API key from settings", provider=provider, error=str(e))

    if value and value.strip():
        return value.strip()

    env_value = getattr(get_settings(), env_name, None)
    if env_value:
        return env_value

    logger.warning("API key not configured", provider=provider, tenant_id=tenant_id)
    return None
