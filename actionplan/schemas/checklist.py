"""Checklist and progress schemas.

``can_complete`` is deliberately absent from :class:`ChecklistItem`: it is
derived from the completion state of the item's dependencies every time it
is read (:meth:`Checklist.can_complete`, :meth:`Checklist.to_view`).
"""

from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class DeadlineRef(BaseModel):
    """The earliest deadline attached to a checklist item."""

    deadline_id: str
    description: str
    due_date: date


class ChecklistItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    step_number: int = Field(..., ge=1)
    description: str
    completed: bool = False
    completed_at: Optional[datetime] = None
    dependency_ids: List[str] = Field(default_factory=list)
    deadline: Optional[DeadlineRef] = None
    time_sensitive: bool = False


class Checklist(BaseModel):
    """Per-user tracking structure derived 1:1 from a workflow."""

    id: UUID = Field(default_factory=uuid4)
    document_id: UUID
    user_id: UUID
    workflow_id: UUID
    workflow_step_count: int = Field(..., ge=0)
    items: List[ChecklistItem] = Field(default_factory=list)
    halted: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def item_index(self) -> Dict[str, ChecklistItem]:
        return {item.id: item for item in self.items}

    def can_complete(self, item: ChecklistItem) -> bool:
        """True iff every dependency of ``item`` is completed."""
        index = self.item_index()
        return all(index[dep].completed for dep in item.dependency_ids if dep in index)

    def dependents_of(self, item_id: str) -> List[ChecklistItem]:
        return [item for item in self.items if item_id in item.dependency_ids]

    def to_view(self) -> "ChecklistView":
        return ChecklistView(
            id=self.id,
            document_id=self.document_id,
            user_id=self.user_id,
            workflow_id=self.workflow_id,
            halted=self.halted,
            created_at=self.created_at,
            updated_at=self.updated_at,
            items=[
                ChecklistItemView(**item.model_dump(), can_complete=self.can_complete(item))
                for item in self.items
            ],
        )


class ChecklistItemView(ChecklistItem):
    """Read model of an item with its derived ``can_complete`` flag."""

    can_complete: bool


class ChecklistView(BaseModel):
    id: UUID
    document_id: UUID
    user_id: UUID
    workflow_id: UUID
    halted: bool
    created_at: datetime
    updated_at: datetime
    items: List[ChecklistItemView]


class UpcomingDeadline(BaseModel):
    item_id: str
    step_number: int
    description: str
    deadline_id: str
    due_date: date


class ProgressView(BaseModel):
    """Derived, re-computable view of checklist progress."""

    checklist_id: UUID
    percent: int = Field(..., ge=0, le=100)
    completed_count: int
    total_count: int
    next_actions: List[ChecklistItemView] = Field(default_factory=list)
    upcoming_deadlines: List[UpcomingDeadline] = Field(default_factory=list)
