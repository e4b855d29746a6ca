"""Utility modules for Sales Intelligence."""

from .api_keys import get_provider_api_key
from .apify_client import ApifyClient
from .claude_client import ClaudeClient
from .json_extract import extract_json
from .manus_client import ManusClient
from .newsapi_client import NewsAPIClient
from .pappers_client import PappersClient
from .perplexity_client import PerplexityClient

__all__ = [
    "get_provider_api_key",
    "ApifyClient",
    "ClaudeClient",
    "extract_json",
    "ManusClient",
    "NewsAPIClient",
    "PappersClient",
    "PerplexityClient",
]
