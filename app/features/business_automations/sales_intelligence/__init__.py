"""
Sales Intelligence Feature.

Detects B2B prospecting signals and turns them into reachable contacts.

Features:
- Press scan (NewsAPI articles analysed by Claude, revenue checks via Perplexity)
- Registry scan (Pappers company anniversaries and BODACC publications)
- LinkedIn engagement scraping (Apify)
- Contact enrichment through Manus AI agents
- Outreach pipeline, message generation, events and partner news
- Per-provider credit tracking
"""

__version__ = "1.0.0"
