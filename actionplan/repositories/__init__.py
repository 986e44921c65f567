"""Repository layer for database operations."""

from actionplan.repositories.action_plan_repository import ActionPlanRepository
from actionplan.repositories.base_repository import BaseRepository
from actionplan.repositories.checklist_repository import ChecklistRepository, SqlChecklistStore

__all__ = [
    "BaseRepository",
    "ActionPlanRepository",
    "ChecklistRepository",
    "SqlChecklistStore",
]
