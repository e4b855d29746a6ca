"""
Shared infrastructure: configuration, database session, logging and the
base service every feature slice builds on.
"""

from .database import get_db, create_tables

__all__ = ["get_db", "create_tables"]
