"""
Vocabulary and defaults for the sales intelligence slice.

Allowed values are plain tuples so schemas, services and tests share one
source; defaults mirror what a fresh tenant gets before anything is
configured in the settings table.
"""

# Signals
SIGNAL_TYPES = ("anniversaire", "levee", "ma", "distinction", "expansion", "nomination", "linkedin_engagement")
SIGNAL_STATUSES = ("new", "contacted", "meeting", "proposal", "won", "lost", "ignored")
SIGNAL_IN_PROGRESS_STATUSES = ("contacted", "meeting", "proposal")
SIGNAL_UNPROCESSED_STATUSES = ("new", "ignored")
ESTIMATED_SIZES = ("PME", "ETI", "Grand Compte", "Inconnu")
SIGNAL_PERIODS = {"7d": 7, "30d": 30, "90d": 90}

# Enrichment lifecycle (signal.enrichment_status and company_enrichment.status)
ENRICHMENT_NONE = "none"
ENRICHMENT_PENDING = "pending"
ENRICHMENT_PROCESSING = "processing"
ENRICHMENT_MANUS_PROCESSING = "manus_processing"
ENRICHMENT_COMPLETED = "completed"
ENRICHMENT_FAILED = "failed"

SIGNAL_ACTION_TYPES = ("status_change", "note_added", "next_action_set", "enrichment_triggered", "contact_created")

# Contacts
CONTACT_OUTREACH_STATUSES = ("new", "linkedin_sent", "email_sent", "responded", "meeting", "not_interested")
CONTACT_SOURCES = ("presse", "pappers", "linkedin", "manual")
# Set by the system while Manus enriches a contact, never by users
CONTACT_ENRICHING_STATUS = "manus_processing"
CONTACT_ACTION_TYPES = (
    "status_change",
    "linkedin_message_generated",
    "email_generated",
    "email_sent",
    "linkedin_message_copied",
    "email_copied",
    "note_added",
    "next_action_set",
)

# Personas targeted by enrichment, overridable per source with the personas_{source} setting
DEFAULT_PERSONAS = [
    {"name": "Assistant(e) de direction", "isPriority": True},
    {"name": "Office Manager", "isPriority": True},
    {"name": "Responsable RH", "isPriority": False},
    {"name": "Directeur Général", "isPriority": False},
    {"name": "DAF / CFO", "isPriority": False},
    {"name": "Responsable Communication", "isPriority": False},
    {"name": "Responsable Achats", "isPriority": False},
]

# Press analysis
EMPLOYEES_BY_SIZE = {"PME": 50, "ETI": 300, "Grand Compte": 1000, "Inconnu": 100}
DEFAULT_MIN_REVENUE = 1_000_000
DEFAULT_MIN_EMPLOYEES = 20
DEFAULT_AUTO_ENRICH_MIN_SCORE = 4
DEFAULT_DAYS_TO_FETCH = 1
MISSING_ARTICLE_TITLE = "Sans titre"

# Pappers
ANNIVERSARY_YEARS = [5, 10, 20, 25, 30, 40, 50, 75, 100]
PAPPERS_RESULTS_PER_PAGE = 25
PAPPERS_MIN_WORKFORCE_BAND = "10"
PAPPERS_SCAN_STATUSES = ("pending", "running", "paused", "completed", "error")
PAPPERS_SCAN_ACTIONS = ("start", "pause", "resume", "status", "stop")
PAPPERS_QUERY_TYPES = ("anniversary", "nomination", "capital_increase")
PAPPERS_DRY_RUN_ESTIMATED_COMPANIES = 10_000
PAPPERS_DRY_RUN_ESTIMATED_CREDITS = 40
PAPPERS_PUBLICATION_WINDOW_DAYS = 7
PAPPERS_BONUS_NAF_PREFIXES = ("56", "47", "70", "82", "93")

# LinkedIn / Apify
APIFY_ACTORS = {
    "profile": "apimaestro/linkedin-profile-posts",
    "company": "apimaestro/linkedin-company-posts",
    "reactions": "harvestapi/linkedin-post-reactions",
}
LINKEDIN_SOURCE_TYPES = ("profile", "company")
LINKEDIN_POSTS_PER_SOURCE = 10
LINKEDIN_REACTIONS_PER_POST = 100
ENGAGER_ENRICHMENT_BATCH_LIMIT = 10

# Events
EVENT_TYPES = ("salon", "conference", "networking", "autre")
EVENT_STATUSES = ("planned", "attended", "cancelled")
DEFAULT_EVENT_LOCATION = "À définir"

# Partners
PARTNER_NEWS_TYPES = ("product", "event", "press", "social")

# Messages
MESSAGE_TYPES = ("inmail", "email")
CHARTER_UPDATE_EVERY = 5
CHARTER_CONFIDENCE_PER_CORRECTION = 0.03
CHARTER_MAX_FALLBACK_CONFIDENCE = 0.95
DEFAULT_TONAL_CHARTER = {
    "formality": {"level": "neutre", "tutoyment": False, "observations": []},
    "structure": {"max_paragraphs": 3, "sentence_length": "moyenne", "observations": []},
    "vocabulary": {"forbidden_words": [], "preferred_words": [], "observations": []},
    "tone": {"style": "professionnel", "humor_allowed": False, "observations": []},
    "signatures": {"preferred": [], "avoided": []},
    "openings": {"preferred": [], "avoided": []},
}

# Credits
CREDIT_PROVIDERS = ("pappers", "manus", "apify", "newsapi", "perplexity")
DEFAULT_CREDIT_PLANS = {
    "pappers": {"plan_name": "Standard", "credit_limit": 10000, "period": "monthly", "alert_threshold_percent": 80, "unit_cost": 1.0},
    "manus": {"plan_name": "Standard", "credit_limit": 1000, "period": "monthly", "alert_threshold_percent": 80, "unit_cost": 1.0},
    "apify": {"plan_name": "Starter", "credit_limit": 5000, "period": "monthly", "alert_threshold_percent": 80, "unit_cost": 0.5},
    "newsapi": {"plan_name": "Developer", "credit_limit": 100, "period": "daily", "alert_threshold_percent": 80, "unit_cost": 1.0},
    "perplexity": {"plan_name": "Standard", "credit_limit": 1000, "period": "monthly", "alert_threshold_percent": 80, "unit_cost": 1.0},
}
CREDIT_WARNING_MARGIN = 10

# LLM models
CLAUDE_ANALYSIS_MODEL = "claude-sonnet-4-20250514"
PERPLEXITY_MODEL = "sonar"
PERPLEXITY_TOKENS_PER_LOOKUP = 150
