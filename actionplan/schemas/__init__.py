"""Pydantic schemas shared across the action-plan core."""

from actionplan.schemas.action_plan import ActionPlanResult, PlanError, PlanStatus
from actionplan.schemas.checklist import (
    Checklist,
    ChecklistItem,
    ChecklistItemView,
    ChecklistView,
    DeadlineRef,
    ProgressView,
    UpcomingDeadline,
)
from actionplan.schemas.entities import (
    AssociableEntity,
    ChunkInfo,
    ChunkRegistry,
    Citation,
    ConfidenceRevision,
    ContactInfo,
    Deadline,
    EntityBase,
    EntityCandidate,
    ExtractedEntity,
    ExtractionBundle,
    ExtractionSignals,
    ExtractionStatus,
    Fee,
    ProcessStep,
    RequiredDocument,
    VerificationReason,
)
from actionplan.schemas.workflow import DependencyGraph, Workflow, WorkflowStep

__all__ = [
    "ActionPlanResult",
    "PlanError",
    "PlanStatus",
    "Checklist",
    "ChecklistItem",
    "ChecklistItemView",
    "ChecklistView",
    "DeadlineRef",
    "ProgressView",
    "UpcomingDeadline",
    "AssociableEntity",
    "ChunkInfo",
    "ChunkRegistry",
    "Citation",
    "ConfidenceRevision",
    "ContactInfo",
    "Deadline",
    "EntityBase",
    "EntityCandidate",
    "ExtractedEntity",
    "ExtractionBundle",
    "ExtractionSignals",
    "ExtractionStatus",
    "Fee",
    "ProcessStep",
    "RequiredDocument",
    "VerificationReason",
    "DependencyGraph",
    "Workflow",
    "WorkflowStep",
]
