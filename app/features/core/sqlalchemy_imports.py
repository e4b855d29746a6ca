"""
Centralized SQLAlchemy imports and utilities.
Services import from here so query code looks the same across slices.
"""

# Core SQLAlchemy imports
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import (
    select, insert, update, delete, func, and_, or_, not_,
    cast, case, text, String, Integer, Boolean, DateTime, JSON,
    asc, desc, nulls_first, nulls_last
)
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

# Common type imports
from typing import List, Optional, Dict, Any, TypeVar, Generic, Union, Tuple
from datetime import date, datetime, timedelta, timezone
import structlog

__all__ = [
    # Sessions
    'AsyncSession',

    # Query builders
    'select', 'insert', 'update', 'delete', 'text',

    # Functions
    'func', 'cast', 'case',

    # Logical operators
    'and_', 'or_', 'not_',

    # Types for casting
    'String', 'Integer', 'Boolean', 'DateTime', 'JSON',

    # Ordering
    'asc', 'desc', 'nulls_first', 'nulls_last',

    # Loading strategies
    'selectinload',

    'Select',

    # Python typing
    'List', 'Optional', 'Dict', 'Any', 'TypeVar', 'Generic', 'Union', 'Tuple',
    'date', 'datetime', 'timedelta', 'timezone', 'structlog',

    # Utilities
    'get_logger', 'utcnow'
]


def get_logger(name: str):
    """Standardized logger creation."""
    return structlog.get_logger(name)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
