"""Outreach message services."""

from .message_services import (
    MessageService,
    build_charter_prompt,
    build_system_prompt,
    build_user_prompt,
    charter_confidence,
    parse_email_reply,
)

__all__ = [
    "MessageService",
    "build_charter_prompt",
    "build_system_prompt",
    "build_user_prompt",
    "charter_confidence",
    "parse_email_reply",
]
