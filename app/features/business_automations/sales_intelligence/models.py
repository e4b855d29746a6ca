"""
Database models for the Sales Intelligence feature.

Follows platform conventions:
- All models inherit from Base and AuditMixin
- All models have tenant_id for multi-tenancy
- Timezone-naive UTC datetimes (TIMESTAMP WITHOUT TIME ZONE)
- Child rows reference parents by id; services load them with explicit queries
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, Text, JSON, Boolean, Date, DateTime,
    ForeignKey, Index, UniqueConstraint,
)

from app.features.core.database import Base
from app.features.core.audit_mixin import AuditMixin
from app.features.core.sqlalchemy_imports import get_logger, utcnow

logger = get_logger(__name__)


def _uuid() -> str:
    return str(uuid4())


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# ===== Settings & press sources =====

class AppSetting(Base, AuditMixin):
    """Tenant key/value configuration (API keys, thresholds, personas)."""

    __tablename__ = "intel_settings"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    key = Column(String(100), nullable=False)
    value = Column(Text, nullable=False, default="")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'key', name='uq_intel_settings_tenant_key'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "updated_at": _iso(self.updated_at),
        }


class SearchQuery(Base, AuditMixin):
    """A NewsAPI search run by the press scan."""

    __tablename__ = "intel_search_queries"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    query = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, default="general")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_fetched_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_intel_search_queries_tenant_active', 'tenant_id', 'is_active'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "query": self.query,
            "category": self.category,
            "description": self.description,
            "is_active": self.is_active,
            "last_fetched_at": _iso(self.last_fetched_at),
            "created_at": _iso(self.created_at),
        }


class RawArticle(Base, AuditMixin):
    """Press article fetched from NewsAPI, waiting for LLM analysis."""

    __tablename__ = "intel_raw_articles"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    query_id = Column(String(36), ForeignKey("intel_search_queries.id", ondelete="SET NULL"), nullable=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    url = Column(Text, nullable=False)
    source_name = Column(String(255), nullable=True)
    author = Column(String(255), nullable=True)
    image_url = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    fetched_at = Column(DateTime, default=utcnow, nullable=False)
    processed = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'url', name='uq_intel_raw_articles_tenant_url'),
        Index('idx_intel_raw_articles_processed', 'tenant_id', 'processed'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "query_id": self.query_id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "source_name": self.source_name,
            "author": self.author,
            "image_url": self.image_url,
            "published_at": _iso(self.published_at),
            "fetched_at": _iso(self.fetched_at),
            "processed": self.processed,
        }


class ScanLog(Base, AuditMixin):
    """One run of the full press scan."""

    __tablename__ = "intel_scan_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    status = Column(String(20), default="running", nullable=False)
    # Status values: running, completed, failed
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    articles_fetched = Column(Integer, default=0, nullable=False)
    articles_analyzed = Column(Integer, default=0, nullable=False)
    signals_created = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "articles_fetched": self.articles_fetched,
            "articles_analyzed": self.articles_analyzed,
            "signals_created": self.signals_created,
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
        }


# ===== Signals =====

class Signal(Base, AuditMixin):
    """
    A company event worth prospecting (anniversary, funding, M&A, ...).

    Created by press analysis, Pappers transfers, LinkedIn engagement or by hand,
    then worked through the outreach pipeline via ``status``.
    """

    __tablename__ = "intel_signals"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    company_name = Column(String(255), nullable=False)
    signal_type = Column(String(50), nullable=False)
    score = Column(Integer, default=3, nullable=False)  # 1..5
    status = Column(String(20), default="new", nullable=False)
    enrichment_status = Column(String(30), default="none", nullable=False)
    estimated_size = Column(String(20), nullable=True)
    sector = Column(String(255), nullable=True)
    event_detail = Column(Text, nullable=True)
    hook_suggestion = Column(Text, nullable=True)
    source_name = Column(String(255), nullable=True)
    source_url = Column(Text, nullable=True)
    article_id = Column(String(36), ForeignKey("intel_raw_articles.id", ondelete="SET NULL"), nullable=True)
    revenue_estimate = Column(Float, nullable=True)
    detected_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    contacted_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    next_action_at = Column(DateTime, nullable=True)
    next_action_note = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_intel_signals_tenant_status', 'tenant_id', 'status'),
        Index('idx_intel_signals_tenant_type', 'tenant_id', 'signal_type'),
        Index('idx_intel_signals_company_source', 'tenant_id', 'company_name', 'source_url'),
    )

    def to_dict(self):
        base_dict = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company_name": self.company_name,
            "signal_type": self.signal_type,
            "score": self.score,
            "status": self.status,
            "enrichment_status": self.enrichment_status,
            "estimated_size": self.estimated_size,
            "sector": self.sector,
            "event_detail": self.event_detail,
            "hook_suggestion": self.hook_suggestion,
            "source_name": self.source_name,
            "source_url": self.source_url,
            "article_id": self.article_id,
            "revenue_estimate": self.revenue_estimate,
            "detected_at": _iso(self.detected_at),
            "contacted_at": _iso(self.contacted_at),
            "notes": self.notes,
            "next_action_at": _iso(self.next_action_at),
            "next_action_note": self.next_action_note,
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class SignalInteraction(Base, AuditMixin):
    """Timeline entry on a signal."""

    __tablename__ = "intel_signal_interactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    signal_id = Column(String(36), ForeignKey("intel_signals.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    details = Column("metadata", JSON, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "signal_id": self.signal_id,
            "action_type": self.action_type,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "metadata": self.details or {},
            "created_by": self.created_by_email,
            "created_at": _iso(self.created_at),
        }


class CompanyEnrichment(Base, AuditMixin):
    """Company facts and Manus task state gathered for a signal."""

    __tablename__ = "intel_company_enrichments"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    signal_id = Column(String(36), ForeignKey("intel_signals.id", ondelete="CASCADE"), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    status = Column(String(30), default="pending", nullable=False)
    enrichment_source = Column(String(50), nullable=True)  # presse, pappers, linkedin
    description = Column(Text, nullable=True)
    domain = Column(String(255), nullable=True)
    website = Column(Text, nullable=True)
    industry = Column(String(255), nullable=True)
    employee_count = Column(String(50), nullable=True)
    founded_year = Column(Integer, nullable=True)
    headquarters_location = Column(String(255), nullable=True)
    linkedin_company_url = Column(Text, nullable=True)
    raw_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    @property
    def manus_task_id(self) -> Optional[str]:
        return (self.raw_data or {}).get("manus_task_id")

    def to_dict(self):
        raw = self.raw_data or {}
        return {
            "id": self.id,
            "signal_id": self.signal_id,
            "company_name": self.company_name,
            "status": self.status,
            "enrichment_source": self.enrichment_source,
            "description": self.description,
            "domain": self.domain,
            "website": self.website,
            "industry": self.industry,
            "employee_count": self.employee_count,
            "founded_year": self.founded_year,
            "headquarters_location": self.headquarters_location,
            "linkedin_company_url": self.linkedin_company_url,
            "manus_task_id": raw.get("manus_task_id"),
            "manus_task_url": raw.get("manus_task_url"),
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ===== Contacts =====

class Contact(Base, AuditMixin):
    """A person to reach out to, usually attached to a signal."""

    __tablename__ = "intel_contacts"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    signal_id = Column(String(36), ForeignKey("intel_signals.id", ondelete="SET NULL"), nullable=True, index=True)
    enrichment_id = Column(String(36), ForeignKey("intel_company_enrichments.id", ondelete="SET NULL"), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=False)
    job_title = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    email_principal = Column(String(255), nullable=True)
    email_alternatif = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    linkedin_url = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    source = Column(String(20), default="manual", nullable=False)
    outreach_status = Column(String(30), default="new", nullable=False)
    priority_score = Column(Integer, nullable=True)
    is_priority_target = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    next_action_at = Column(DateTime, nullable=True)
    next_action_note = Column(Text, nullable=True)
    raw_data = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_intel_contacts_tenant_status', 'tenant_id', 'outreach_status'),
    )

    def to_dict(self):
        base_dict = {
            "id": self.id,
            "signal_id": self.signal_id,
            "enrichment_id": self.enrichment_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "job_title": self.job_title,
            "department": self.department,
            "email_principal": self.email_principal,
            "email_alternatif": self.email_alternatif,
            "phone": self.phone,
            "linkedin_url": self.linkedin_url,
            "location": self.location,
            "source": self.source,
            "outreach_status": self.outreach_status,
            "priority_score": self.priority_score,
            "is_priority_target": self.is_priority_target,
            "notes": self.notes,
            "next_action_at": _iso(self.next_action_at),
            "next_action_note": self.next_action_note,
        }
        base_dict.update(self.get_audit_info())
        return base_dict


class ContactInteraction(Base, AuditMixin):
    """Timeline entry on a contact."""

    __tablename__ = "intel_contact_interactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    contact_id = Column(String(36), ForeignKey("intel_contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    details = Column("metadata", JSON, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "contact_id": self.contact_id,
            "action_type": self.action_type,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "metadata": self.details or {},
            "created_by": self.created_by_email,
            "created_at": _iso(self.created_at),
        }


# ===== Pappers =====

class PappersQuery(Base, AuditMixin):
    """Saved registry search (anniversary, nomination or capital increase)."""

    __tablename__ = "intel_pappers_queries"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    type = Column(String(30), nullable=False)
    parameters = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_run_at = Column(DateTime, nullable=True)
    signals_count = Column(Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "parameters": self.parameters or {},
            "is_active": self.is_active,
            "last_run_at": _iso(self.last_run_at),
            "signals_count": self.signals_count,
            "created_at": _iso(self.created_at),
        }


class PappersScanProgress(Base, AuditMixin):
    """Progress of one anniversary-year sweep through the registry."""

    __tablename__ = "intel_pappers_scans"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    query_id = Column(String(36), ForeignKey("intel_pappers_queries.id", ondelete="SET NULL"), nullable=True)
    scan_type = Column(String(30), default="anniversary", nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    # Status values: pending, running, paused, completed, error
    anniversary_years = Column(Integer, nullable=True)
    current_page = Column(Integer, default=1, nullable=False)
    total_pages = Column(Integer, nullable=True)
    total_results = Column(Integer, nullable=True)
    processed_results = Column(Integer, default=0, nullable=False)
    signals_created = Column(Integer, default=0, nullable=False)
    max_results = Column(Integer, nullable=True)
    date_creation_min = Column(Date, nullable=True)
    date_creation_max = Column(Date, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_intel_pappers_scans_tenant_status', 'tenant_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "query_id": self.query_id,
            "scan_type": self.scan_type,
            "status": self.status,
            "anniversary_years": self.anniversary_years,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_results": self.total_results,
            "processed_results": self.processed_results,
            "signals_created": self.signals_created,
            "max_results": self.max_results,
            "date_creation_min": _iso(self.date_creation_min),
            "date_creation_max": _iso(self.date_creation_max),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
        }


class PappersSignal(Base, AuditMixin):
    """Registry hit awaiting review before it becomes a Signal."""

    __tablename__ = "intel_pappers_signals"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    query_id = Column(String(36), ForeignKey("intel_pappers_queries.id", ondelete="SET NULL"), nullable=True)
    scan_id = Column(String(36), ForeignKey("intel_pappers_scans.id", ondelete="SET NULL"), nullable=True)
    siren = Column(String(20), nullable=True)
    company_name = Column(String(255), nullable=False)
    signal_type = Column(String(50), nullable=False)
    signal_detail = Column(Text, nullable=True)
    relevance_score = Column(Integer, default=50, nullable=False)
    company_data = Column(JSON, nullable=True)
    processed = Column(Boolean, default=False, nullable=False)
    transferred_to_signals = Column(Boolean, default=False, nullable=False)
    signal_id = Column(String(36), ForeignKey("intel_signals.id", ondelete="SET NULL"), nullable=True)
    detected_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'siren', 'signal_type', name='uq_intel_pappers_signals_siren_type'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "query_id": self.query_id,
            "scan_id": self.scan_id,
            "siren": self.siren,
            "company_name": self.company_name,
            "signal_type": self.signal_type,
            "signal_detail": self.signal_detail,
            "relevance_score": self.relevance_score,
            "company_data": self.company_data or {},
            "processed": self.processed,
            "transferred_to_signals": self.transferred_to_signals,
            "signal_id": self.signal_id,
            "detected_at": _iso(self.detected_at),
        }


# ===== Credits =====

class CreditPlan(Base, AuditMixin):
    """Quota of one external provider for a tenant."""

    __tablename__ = "intel_credit_plans"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    provider = Column(String(20), nullable=False)
    plan_name = Column(String(100), nullable=False)
    credit_limit = Column(Float, nullable=False)
    period = Column(String(10), default="monthly", nullable=False)  # monthly | daily
    current_period_start = Column(Date, nullable=True)
    current_period_end = Column(Date, nullable=True)
    alert_threshold_percent = Column(Integer, default=80, nullable=False)
    unit_cost = Column(Float, default=1.0, nullable=False)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'provider', name='uq_intel_credit_plans_provider'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "plan_name": self.plan_name,
            "credit_limit": self.credit_limit,
            "period": self.period,
            "current_period_start": _iso(self.current_period_start),
            "current_period_end": _iso(self.current_period_end),
            "alert_threshold_percent": self.alert_threshold_percent,
            "unit_cost": self.unit_cost,
        }


class CreditUsage(Base, AuditMixin):
    """Credits consumed by one provider call or batch."""

    __tablename__ = "intel_credit_usage"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    provider = Column(String(20), nullable=False)
    date = Column(Date, default=date.today, nullable=False)
    credits_used = Column(Float, default=0, nullable=False)
    units = Column(Integer, default=0, nullable=False)  # requests, api calls, scrapes, enrichments
    signal_id = Column(String(36), nullable=True)
    scan_id = Column(String(36), nullable=True)
    query_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_intel_credit_usage_provider_date', 'tenant_id', 'provider', 'date'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "provider": self.provider,
            "date": _iso(self.date),
            "credits_used": self.credits_used,
            "units": self.units,
            "signal_id": self.signal_id,
            "scan_id": self.scan_id,
            "query_id": self.query_id,
            "details": self.details or {},
            "created_at": _iso(self.created_at),
        }


# ===== LinkedIn =====

class LinkedInSource(Base, AuditMixin):
    """Profile or company page whose posts are scraped for engagers."""

    __tablename__ = "intel_linkedin_sources"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    linkedin_url = Column(Text, nullable=False)
    source_type = Column(String(20), nullable=False)  # profile | company
    is_active = Column(Boolean, default=True, nullable=False)
    last_scraped_at = Column(DateTime, nullable=True)
    posts_count = Column(Integer, default=0, nullable=False)
    engagers_count = Column(Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "linkedin_url": self.linkedin_url,
            "source_type": self.source_type,
            "is_active": self.is_active,
            "last_scraped_at": _iso(self.last_scraped_at),
            "posts_count": self.posts_count,
            "engagers_count": self.engagers_count,
        }


class LinkedInPost(Base, AuditMixin):
    __tablename__ = "intel_linkedin_posts"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    source_id = Column(String(36), ForeignKey("intel_linkedin_sources.id", ondelete="SET NULL"), nullable=True)
    post_url = Column(Text, nullable=False)
    title = Column(String(255), nullable=True)
    content = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    shares_count = Column(Integer, default=0, nullable=False)
    last_scraped_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('tenant_id', 'post_url', name='uq_intel_linkedin_posts_url'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "source_id": self.source_id,
            "post_url": self.post_url,
            "title": self.title,
            "content": self.content,
            "published_at": _iso(self.published_at),
            "likes_count": self.likes_count,
            "comments_count": self.comments_count,
            "shares_count": self.shares_count,
            "last_scraped_at": _iso(self.last_scraped_at),
        }


class LinkedInEngager(Base, AuditMixin):
    """Someone who liked, commented on or shared a scraped post."""

    __tablename__ = "intel_linkedin_engagers"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    post_id = Column(String(36), ForeignKey("intel_linkedin_posts.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    headline = Column(Text, nullable=True)
    company = Column(String(255), nullable=True)
    linkedin_url = Column(Text, nullable=True)
    engagement_type = Column(String(20), nullable=False)  # like | comment | share
    comment_text = Column(Text, nullable=True)
    scraped_at = Column(DateTime, default=utcnow, nullable=False)
    is_prospect = Column(Boolean, default=True, nullable=False)
    transferred_to_contacts = Column(Boolean, default=False, nullable=False)
    contact_id = Column(String(36), ForeignKey("intel_contacts.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        UniqueConstraint('post_id', 'linkedin_url', 'engagement_type', name='uq_intel_linkedin_engagers_post_profile'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "post_id": self.post_id,
            "name": self.name,
            "headline": self.headline,
            "company": self.company,
            "linkedin_url": self.linkedin_url,
            "engagement_type": self.engagement_type,
            "comment_text": self.comment_text,
            "scraped_at": _iso(self.scraped_at),
            "is_prospect": self.is_prospect,
            "transferred_to_contacts": self.transferred_to_contacts,
            "contact_id": self.contact_id,
        }


# ===== Messages =====

class MessageFeedback(Base, AuditMixin):
    """A generated message next to the version the user actually sent."""

    __tablename__ = "intel_message_feedback"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    message_type = Column(String(10), nullable=False)
    original_message = Column(Text, nullable=False)
    edited_message = Column(Text, nullable=False)
    original_subject = Column(String(500), nullable=True)
    edited_subject = Column(String(500), nullable=True)
    context = Column(JSON, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "message_type": self.message_type,
            "original_message": self.original_message,
            "edited_message": self.edited_message,
            "original_subject": self.original_subject,
            "edited_subject": self.edited_subject,
            "context": self.context or {},
            "created_by": self.created_by_email,
            "created_at": _iso(self.created_at),
        }


class TonalCharter(Base, AuditMixin):
    """Writing preferences learned from edited drafts, one row per tenant."""

    __tablename__ = "intel_tonal_charters"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, unique=True)

    charter_data = Column(JSON, nullable=False)
    corrections_count = Column(Integer, default=0, nullable=False)
    confidence_score = Column(Float, default=0, nullable=False)
    last_analysis_at = Column(DateTime, nullable=True)
    is_learning_enabled = Column(Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "charter_data": self.charter_data or {},
            "corrections_count": self.corrections_count,
            "confidence_score": self.confidence_score,
            "last_analysis_at": _iso(self.last_analysis_at),
            "is_learning_enabled": self.is_learning_enabled,
            "updated_at": _iso(self.updated_at),
        }


# ===== Events =====

class Event(Base, AuditMixin):
    """Trade show, conference or networking event the team attends."""

    __tablename__ = "intel_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    type = Column(String(30), default="salon", nullable=False)
    date_start = Column(Date, nullable=False)
    date_end = Column(Date, nullable=True)
    location = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default="planned", nullable=False)
    contacts_count = Column(Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "date_start": _iso(self.date_start),
            "date_end": _iso(self.date_end),
            "location": self.location,
            "address": self.address,
            "description": self.description,
            "website_url": self.website_url,
            "notes": self.notes,
            "status": self.status,
            "contacts_count": self.contacts_count,
            "created_at": _iso(self.created_at),
        }


class EventContact(Base, AuditMixin):
    __tablename__ = "intel_event_contacts"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    event_id = Column(String(36), ForeignKey("intel_events.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    linkedin_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    outreach_status = Column(String(30), default="new", nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "company_name": self.company_name,
            "job_title": self.job_title,
            "email": self.email,
            "phone": self.phone,
            "linkedin_url": self.linkedin_url,
            "notes": self.notes,
            "outreach_status": self.outreach_status,
            "created_at": _iso(self.created_at),
        }


class DetectedEvent(Base, AuditMixin):
    """Event spotted by a scraper, waiting to be added to the calendar."""

    __tablename__ = "intel_detected_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    type = Column(String(30), nullable=True)
    date_start = Column(Date, nullable=True)
    date_end = Column(Date, nullable=True)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    source = Column(String(100), nullable=False)
    source_url = Column(Text, nullable=True)
    relevance_score = Column(Integer, nullable=True)
    is_added = Column(Boolean, default=False, nullable=False)
    event_id = Column(String(36), ForeignKey("intel_events.id", ondelete="SET NULL"), nullable=True)
    detected_at = Column(DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "date_start": _iso(self.date_start),
            "date_end": _iso(self.date_end),
            "location": self.location,
            "description": self.description,
            "source": self.source,
            "source_url": self.source_url,
            "relevance_score": self.relevance_score,
            "is_added": self.is_added,
            "event_id": self.event_id,
            "detected_at": _iso(self.detected_at),
        }


# ===== Partners =====

class PartnerHouse(Base, AuditMixin):
    """Partner brand whose products and news feed the sales pitch."""

    __tablename__ = "intel_partner_houses"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    logo_url = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    linkedin_url = Column(Text, nullable=True)
    instagram_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "logo_url": self.logo_url,
            "website_url": self.website_url,
            "linkedin_url": self.linkedin_url,
            "instagram_url": self.instagram_url,
            "description": self.description,
            "category": self.category,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class PartnerNews(Base, AuditMixin):
    __tablename__ = "intel_partner_news"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)

    house_id = Column(String(36), ForeignKey("intel_partner_houses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    news_type = Column(String(20), nullable=False)
    image_url = Column(Text, nullable=True)
    source_url = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    event_date = Column(Date, nullable=True)
    event_location = Column(String(255), nullable=True)
    product_name = Column(String(255), nullable=True)
    product_category = Column(String(100), nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "house_id": self.house_id,
            "title": self.title,
            "content": self.content,
            "news_type": self.news_type,
            "image_url": self.image_url,
            "source_url": self.source_url,
            "published_at": _iso(self.published_at),
            "event_date": _iso(self.event_date),
            "event_location": self.event_location,
            "product_name": self.product_name,
            "product_category": self.product_category,
            "is_featured": self.is_featured,
            "created_at": _iso(self.created_at),
        }
