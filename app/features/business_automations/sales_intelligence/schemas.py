"""
Pydantic schemas for the Sales Intelligence feature.

Request bodies only: responses are the models' ``to_dict()`` payloads the
SPA already consumes. Allowed values come from ``constants`` so a typo in a
status or type is rejected with a 422 before reaching the services.
"""

from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict

from app.features.business_automations.sales_intelligence.constants import (
    CONTACT_ACTION_TYPES,
    CONTACT_OUTREACH_STATUSES,
    CONTACT_SOURCES,
    ESTIMATED_SIZES,
    EVENT_STATUSES,
    EVENT_TYPES,
    LINKEDIN_SOURCE_TYPES,
    MESSAGE_TYPES,
    PAPPERS_QUERY_TYPES,
    PARTNER_NEWS_TYPES,
    SIGNAL_ACTION_TYPES,
    SIGNAL_STATUSES,
    SIGNAL_TYPES,
)


def _check_allowed(value: Optional[str], allowed, label: str) -> Optional[str]:
    if value is not None and value not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return value


class UpdateSchema(BaseModel):
    """Partial update: only the fields the client sent are applied."""

    model_config = ConfigDict(extra="ignore")

    @field_validator('*', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None for all optional fields."""
        if v == '':
            return None
        return v

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ===== Signal Schemas =====

class SignalCreate(BaseModel):
    """Manually entered signal."""
    company_name: str = Field(..., min_length=1, max_length=255)
    signal_type: str = Field(..., description="anniversaire, levee, ma, distinction, expansion, nomination, linkedin_engagement")
    score: int = Field(3, ge=1, le=5)
    status: str = Field("new")
    estimated_size: Optional[str] = Field(None)
    sector: Optional[str] = Field(None, max_length=255)
    event_detail: Optional[str] = None
    hook_suggestion: Optional[str] = None
    source_name: Optional[str] = Field(None, max_length=255)
    source_url: Optional[str] = None
    revenue_estimate: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator('signal_type')
    @classmethod
    def validate_signal_type(cls, v):
        return _check_allowed(v, SIGNAL_TYPES, "Signal type")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return _check_allowed(v, SIGNAL_STATUSES, "Status")

    @field_validator('estimated_size')
    @classmethod
    def validate_estimated_size(cls, v):
        return _check_allowed(v, ESTIMATED_SIZES, "Estimated size")


class SignalUpdate(UpdateSchema):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    signal_type: Optional[str] = None
    score: Optional[int] = Field(None, ge=1, le=5)
    status: Optional[str] = None
    estimated_size: Optional[str] = None
    sector: Optional[str] = None
    event_detail: Optional[str] = None
    hook_suggestion: Optional[str] = None
    revenue_estimate: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator('signal_type')
    @classmethod
    def validate_signal_type(cls, v):
        return _check_allowed(v, SIGNAL_TYPES, "Signal type")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return _check_allowed(v, SIGNAL_STATUSES, "Status")

    @field_validator('estimated_size')
    @classmethod
    def validate_estimated_size(cls, v):
        return _check_allowed(v, ESTIMATED_SIZES, "Estimated size")


class NextActionUpdate(BaseModel):
    """Follow-up reminder for a signal or a contact (null clears it)."""
    next_action_at: Optional[datetime] = None
    next_action_note: Optional[str] = Field(None, max_length=1000)

    @field_validator('next_action_at')
    @classmethod
    def strip_timezone(cls, v):
        """Columns are naive UTC."""
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class SignalInteractionCreate(BaseModel):
    action_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('action_type')
    @classmethod
    def validate_action_type(cls, v):
        return _check_allowed(v, SIGNAL_ACTION_TYPES, "Action type")


class EnrichmentRequest(BaseModel):
    source: str = Field("presse")

    @field_validator('source')
    @classmethod
    def validate_source(cls, v):
        return _check_allowed(v, CONTACT_SOURCES, "Source")


# ===== Contact Schemas =====

class ContactCreate(BaseModel):
    signal_id: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    full_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    department: Optional[str] = Field(None, max_length=255)
    email_principal: Optional[str] = Field(None, max_length=255)
    email_alternatif: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    linkedin_url: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    source: str = Field("manual")
    outreach_status: str = Field("new")
    priority_score: Optional[int] = Field(None, ge=0, le=100)
    is_priority_target: bool = False
    notes: Optional[str] = None

    @field_validator('source')
    @classmethod
    def validate_source(cls, v):
        return _check_allowed(v, CONTACT_SOURCES, "Source")

    @field_validator('outreach_status')
    @classmethod
    def validate_outreach_status(cls, v):
        return _check_allowed(v, CONTACT_OUTREACH_STATUSES, "Outreach status")


class ContactUpdate(UpdateSchema):
    signal_id: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    full_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    department: Optional[str] = None
    email_principal: Optional[str] = None
    email_alternatif: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    location: Optional[str] = None
    outreach_status: Optional[str] = None
    priority_score: Optional[int] = Field(None, ge=0, le=100)
    is_priority_target: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator('outreach_status')
    @classmethod
    def validate_outreach_status(cls, v):
        return _check_allowed(v, CONTACT_OUTREACH_STATUSES, "Outreach status")


class ContactInteractionCreate(BaseModel):
    action_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('action_type')
    @classmethod
    def validate_action_type(cls, v):
        return _check_allowed(v, CONTACT_ACTION_TYPES, "Action type")


# ===== Settings Schemas =====

class SettingUpdate(BaseModel):
    """A setting value; lists and objects are stored as JSON."""
    value: Any = None


class SearchQueryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    query: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_active: bool = True


class SearchQueryUpdate(UpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    query: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


# ===== Pappers Schemas =====

class PappersScanRequest(BaseModel):
    """Body of the single scan endpoint; ``action`` selects the operation."""
    action: str = Field(..., description="start, pause, resume, status or stop")
    scan_id: Optional[str] = None
    query_id: Optional[str] = None
    dry_run: bool = True
    months_ahead: int = Field(9, ge=0, le=24)
    years: Optional[List[int]] = None
    max_results: Optional[int] = Field(None, ge=1)

    @field_validator('years')
    @classmethod
    def validate_years(cls, v):
        if v is not None and any(year <= 0 for year in v):
            raise ValueError("Years must be positive")
        return v


class PappersQueryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, PAPPERS_QUERY_TYPES, "Query type")


class PappersQueryUpdate(UpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, PAPPERS_QUERY_TYPES, "Query type")


class PappersSignalUpdate(UpdateSchema):
    processed: Optional[bool] = None
    relevance_score: Optional[int] = Field(None, ge=0, le=100)
    signal_detail: Optional[str] = None


# ===== LinkedIn Schemas =====

class LinkedInSourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    linkedin_url: str = Field(..., min_length=1)
    source_type: str = Field("profile")
    is_active: bool = True

    @field_validator('source_type')
    @classmethod
    def validate_source_type(cls, v):
        return _check_allowed(v, LINKEDIN_SOURCE_TYPES, "Source type")


class LinkedInSourceUpdate(UpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    linkedin_url: Optional[str] = None
    source_type: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('source_type')
    @classmethod
    def validate_source_type(cls, v):
        return _check_allowed(v, LINKEDIN_SOURCE_TYPES, "Source type")


class LinkedInPostCreate(BaseModel):
    post_url: str = Field(..., min_length=1)
    source_id: Optional[str] = None
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    published_at: Optional[datetime] = None


# ===== Message Schemas =====

class MessageGenerateRequest(BaseModel):
    type: str = Field(..., description="inmail or email")
    recipient_name: str = Field(..., min_length=1, max_length=255)
    recipient_first_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=300)
    event_detail: Optional[str] = Field(None, max_length=1000)
    job_title: Optional[str] = Field(None, max_length=200)
    contact_id: Optional[str] = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, MESSAGE_TYPES, "Message type")


class MessageFeedbackCreate(BaseModel):
    """Lengths are checked by the service so violations answer 400."""
    message_type: str
    original_message: str
    edited_message: str
    original_subject: Optional[str] = None
    edited_subject: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class TonalCharterLearningUpdate(BaseModel):
    enabled: bool


# ===== Event Schemas =====

class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field("salon")
    date_start: date
    date_end: Optional[date] = None
    location: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    notes: Optional[str] = None
    status: str = Field("planned")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, EVENT_TYPES, "Event type")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return _check_allowed(v, EVENT_STATUSES, "Event status")


class EventUpdate(UpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    location: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    website_url: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, EVENT_TYPES, "Event type")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return _check_allowed(v, EVENT_STATUSES, "Event status")


class EventContactCreate(BaseModel):
    """A person met at an event, typed in or copied from ``contact_id``."""
    contact_id: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    full_name: Optional[str] = Field(None, max_length=255)
    company_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    linkedin_url: Optional[str] = None
    notes: Optional[str] = None
    outreach_status: Optional[str] = None


class EventContactUpdate(UpdateSchema):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    notes: Optional[str] = None
    outreach_status: Optional[str] = None


class DetectedEventTransfer(BaseModel):
    """Overrides applied to the event created from a detected one."""
    name: Optional[str] = None
    type: Optional[str] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    location: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return _check_allowed(v, EVENT_TYPES, "Event type")


# ===== Partner Schemas =====

class PartnerHouseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    is_active: bool = True


class PartnerHouseUpdate(UpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None


class PartnerNewsCreate(BaseModel):
    house_id: str
    title: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = None
    news_type: str
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    published_at: Optional[datetime] = None
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    is_featured: bool = False

    @field_validator('news_type')
    @classmethod
    def validate_news_type(cls, v):
        return _check_allowed(v, PARTNER_NEWS_TYPES, "News type")


class PartnerNewsUpdate(UpdateSchema):
    house_id: Optional[str] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    news_type: Optional[str] = None
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    published_at: Optional[datetime] = None
    event_date: Optional[date] = None
    event_location: Optional[str] = None
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    is_featured: Optional[bool] = None

    @field_validator('news_type')
    @classmethod
    def validate_news_type(cls, v):
        return _check_allowed(v, PARTNER_NEWS_TYPES, "News type")


# ===== Credit Schemas =====

class CreditPlanUpdate(BaseModel):
    plan_name: Optional[str] = Field(None, max_length=100)
    credit_limit: Optional[int] = Field(None, ge=0)
    period: Optional[str] = None
    current_period_start: Optional[date] = None
    current_period_end: Optional[date] = None
    alert_threshold_percent: Optional[int] = Field(None, ge=0, le=100)
    unit_cost: Optional[float] = Field(None, ge=0)

    @field_validator('period')
    @classmethod
    def validate_period(cls, v):
        return _check_allowed(v, ("monthly", "daily"), "Period")
