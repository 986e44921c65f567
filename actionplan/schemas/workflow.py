"""Workflow and dependency graph schemas."""

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from actionplan.schemas.entities import (
    AssociableEntity,
    Citation,
    ContactInfo,
    Deadline,
    Fee,
    RequiredDocument,
)


class DependencyGraph(BaseModel):
    """Directed acyclic graph over step numbers.

    Edges point from prerequisite to dependent. ``dependencies`` is the
    index-based adjacency (step number -> prerequisite step numbers) that the
    algorithms operate on; ``edges`` is the same information as pairs.
    """

    nodes: List[int] = Field(default_factory=list)
    dependencies: Dict[int, List[int]] = Field(default_factory=dict)
    topological_order: List[int] = Field(default_factory=list)
    critical_path: List[int] = Field(default_factory=list)
    critical_path_weight: float = 0.0

    @property
    def edges(self) -> List[Tuple[int, int]]:
        return [
            (prerequisite, dependent)
            for dependent in self.nodes
            for prerequisite in self.dependencies.get(dependent, [])
        ]


class WorkflowStep(BaseModel):
    """One numbered step of an assembled workflow."""

    number: int = Field(..., ge=1)
    original_step_number: int = Field(..., description="Step number as the extractor reported it")
    entity_id: str
    description: str
    simplified_description: str
    deadlines: List[Deadline] = Field(default_factory=list)
    fees: List[Fee] = Field(default_factory=list)
    required_documents: List[RequiredDocument] = Field(default_factory=list)
    dependencies: List[int] = Field(default_factory=list)
    time_sensitive: bool = False
    due_date: Optional[date] = Field(None, description="Earliest resolved deadline of the step")
    estimated_duration_days: Optional[float] = None
    citations: List[Citation] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    needs_verification: bool = False
    on_critical_path: bool = False


class Workflow(BaseModel):
    """Ordered, numbered, dependency-validated plan for one document."""

    id: UUID = Field(default_factory=uuid4)
    document_id: Optional[UUID] = None
    version: int = 1
    steps: List[WorkflowStep] = Field(default_factory=list)
    graph: DependencyGraph = Field(default_factory=DependencyGraph)
    critical_path: List[int] = Field(default_factory=list)
    reference_timestamp: datetime
    anchor_date: Optional[date] = None
    resolved_deadlines: Dict[str, date] = Field(default_factory=dict)
    contacts: List[ContactInfo] = Field(default_factory=list)
    unassociated_entities: List[AssociableEntity] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_step_numbering(self) -> "Workflow":
        numbers = [step.number for step in self.steps]
        expected = list(range(1, len(self.steps) + 1))
        if numbers != expected:
            raise ValueError(f"step numbers must be 1..{len(self.steps)} in order, got {numbers}")
        if sorted(self.graph.nodes) != expected:
            raise ValueError("dependency graph nodes do not match workflow steps")
        return self

    def step(self, number: int) -> WorkflowStep:
        return self.steps[number - 1]
