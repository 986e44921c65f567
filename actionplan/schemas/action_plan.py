"""Result contract of the action-plan pipeline."""

from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from actionplan.schemas.checklist import Checklist
from actionplan.schemas.workflow import Workflow


class PlanStatus(str, Enum):
    STRUCTURED = "structured"
    FALLBACK = "fallback"


class PlanError(BaseModel):
    """Structured error telling the caller why the structured plan is missing."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ActionPlanResult(BaseModel):
    """Outcome of one document's pipeline run.

    A ``fallback`` result carries no workflow or checklist; the surrounding
    system is expected to render its unstructured simplified summary instead.
    """

    document_id: UUID
    status: PlanStatus
    workflow: Optional[Workflow] = None
    checklist: Optional[Checklist] = None
    error: Optional[PlanError] = None

    @property
    def is_structured(self) -> bool:
        return self.status == PlanStatus.STRUCTURED
