"""Database module for SQLAlchemy models and session management."""

from actionplan.database.base import Base, async_session_maker, engine
from actionplan.database.client import DatabaseClient, close_database, db_client, init_database
from actionplan.database.models import ActionPlan, Checklist, ChecklistItem, Document

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "DatabaseClient",
    "db_client",
    "init_database",
    "close_database",
    "Document",
    "ActionPlan",
    "Checklist",
    "ChecklistItem",
]
