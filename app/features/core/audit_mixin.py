"""
Audit mixin shared by every table.

Records who created and last changed a row by email and display name rather
than by id, since identities come from an external authentication provider.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from typing import Dict, Any, Optional


class AuditMixin:
    """Creation and update audit columns."""

    # Creation audit
    created_by_email = Column(String(255), nullable=True, index=True)
    created_by_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    # Update audit
    updated_by_email = Column(String(255), nullable=True)
    updated_by_name = Column(String(255), nullable=True)
    updated_at = Column(DateTime, onupdate=func.now(), server_default=func.now())

    def get_audit_info(self) -> Dict[str, Any]:
        """Get human-readable audit information for this record."""
        return {
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "created_by": {
                "email": self.created_by_email,
                "name": self.created_by_name,
            },
            "updated_by": {
                "email": self.updated_by_email,
                "name": self.updated_by_name,
            } if self.updated_by_email else None,
        }

    def stamp_created(self, audit: Optional["AuditContext"]):
        """Set creation audit information (system when no user)."""
        audit = audit or AuditContext.system()
        self.created_by_email = audit.user_email
        self.created_by_name = audit.user_name

    def stamp_updated(self, audit: Optional["AuditContext"]):
        """Set update audit information (system when no user)."""
        audit = audit or AuditContext.system()
        self.updated_by_email = audit.user_email
        self.updated_by_name = audit.user_name


class AuditContext:
    """
    Who is acting: a request user resolved from upstream identity headers,
    or the system for Celery tasks and automatic enrichment.
    """

    def __init__(self, user_email: str, user_name: str, user_id: Optional[str] = None):
        self.user_email = user_email
        self.user_name = user_name
        self.user_id = user_id

    @classmethod
    def from_user(cls, user) -> "AuditContext":
        """Create audit context from a user object or dict."""
        if user is None:
            return cls.system()
        if isinstance(user, AuditContext):
            return user

        if hasattr(user, 'email'):
            return cls(
                user_email=user.email,
                user_name=getattr(user, 'name', None) or user.email,
                user_id=getattr(user, 'id', None)
            )
        elif isinstance(user, dict):
            return cls(
                user_email=user.get('email', 'unknown'),
                user_name=user.get('name', user.get('email', 'unknown')),
                user_id=user.get('id')
            )
        return cls(f"user-{user}", f"User {user}", str(user))

    @classmethod
    def system(cls) -> "AuditContext":
        """Audit context for automated operations."""
        return cls("system", "System", "system")

    @property
    def is_system(self) -> bool:
        return self.user_email == "system"

    def __str__(self) -> str:
        return f"{self.user_name} ({self.user_email})"
