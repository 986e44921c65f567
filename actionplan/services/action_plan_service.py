"""Action-plan pipeline for one document.

Entity-level stages (scoring) fan out; graph construction waits for every
process step; the workflow and its checklist are committed together at the
very end, so a cancelled or failed run leaves nothing behind.
"""

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

from actionplan.core.exceptions import (
    CycleError,
    ExtractionUnavailable,
    ValidationError,
)
from actionplan.schemas.action_plan import ActionPlanResult, PlanError, PlanStatus
from actionplan.schemas.entities import (
    ContactInfo,
    Deadline,
    EntityCandidate,
    ExtractionBundle,
    ExtractionStatus,
    Fee,
    ProcessStep,
)
from actionplan.services.base_service import BaseService
from actionplan.services.checklist.checklist_state_machine import ChecklistStateMachine
from actionplan.services.graph.dependency_graph_builder import DependencyGraphBuilder
from actionplan.services.scoring.confidence_scorer import ConfidenceScorer
from actionplan.services.workflow.workflow_assembler import WorkflowAssembler, ensure_unique_entity_ids
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)

FALLBACK_ERRORS = (CycleError, ValidationError, ExtractionUnavailable)


def _normalize_for_comparison(value: str) -> str:
    normalized = value.lower().strip()
    normalized = normalized.replace(" ", "").replace("-", "").replace("_", "")
    return normalized


def comparison_key(entity) -> Tuple[str, str]:
    """Key under which two extractions count as the same fact."""
    if isinstance(entity, Deadline):
        value = entity.due_date.isoformat() if entity.is_absolute else f"+{entity.days_from_start}"
    elif isinstance(entity, Fee):
        value = f"{entity.amount.normalize():f}{entity.currency}" if entity.amount is not None else entity.description
    elif isinstance(entity, ContactInfo):
        value = entity.email or entity.phone or entity.name or entity.description
    else:
        value = entity.description
    return entity.kind, _normalize_for_comparison(str(value))


def find_cross_validated(candidates: List[EntityCandidate]) -> Set[str]:
    """Ids of entities confirmed by another extraction cited from a different chunk."""
    groups: Dict[Tuple[str, str], List[EntityCandidate]] = defaultdict(list)
    for candidate in candidates:
        groups[comparison_key(candidate.entity)].append(candidate)

    confirmed: Set[str] = set()
    for group in groups.values():
        if len(group) < 2:
            continue
        chunks = [{c.chunk_id for c in candidate.entity.citations} for candidate in group]
        for i, candidate in enumerate(group):
            others = set().union(*(chunks[j] for j in range(len(group)) if j != i))
            if others - chunks[i]:
                confirmed.add(candidate.entity.id)
    return confirmed


class ActionPlanService(BaseService):
    """Turns one extraction bundle into a committed workflow and checklist."""

    def __init__(
        self,
        state_machine: ChecklistStateMachine,
        scorer: Optional[ConfidenceScorer] = None,
        graph_builder: Optional[DependencyGraphBuilder] = None,
        assembler: Optional[WorkflowAssembler] = None,
    ):
        super().__init__()
        self.state_machine = state_machine
        self.scorer = scorer or ConfidenceScorer()
        self.graph_builder = graph_builder or DependencyGraphBuilder()
        self.assembler = assembler or WorkflowAssembler(graph_builder=self.graph_builder)

    async def generate(self, bundle: ExtractionBundle) -> ActionPlanResult:
        return await self.execute(bundle)

    async def run(self, bundle: ExtractionBundle) -> ActionPlanResult:
        try:
            return await self._generate(bundle)
        except FALLBACK_ERRORS as e:
            LOGGER.warning(
                f"Falling back to unstructured summary for document {bundle.document_id}: {e.message}",
                extra={"document_id": str(bundle.document_id), "error_code": e.code},
            )
            return ActionPlanResult(
                document_id=bundle.document_id,
                status=PlanStatus.FALLBACK,
                error=PlanError(**e.to_dict()),
            )

    async def _generate(self, bundle: ExtractionBundle) -> ActionPlanResult:
        document_id = bundle.document_id
        if bundle.status == ExtractionStatus.UNAVAILABLE:
            raise ExtractionUnavailable(str(document_id), bundle.failure_reason)

        LOGGER.info(
            "Generating action plan",
            extra={"document_id": str(document_id), "candidate_count": len(bundle.candidates)},
        )

        ensure_unique_entity_ids(candidate.entity for candidate in bundle.candidates)
        confirmed = find_cross_validated(bundle.candidates)
        scored: List[Any] = await asyncio.gather(
            *(
                asyncio.to_thread(
                    self.scorer.score_entity,
                    candidate.entity,
                    candidate.signals,
                    candidate.signals.cross_validated or candidate.entity.id in confirmed,
                )
                for candidate in bundle.candidates
            )
        )

        steps = [entity for entity in scored if isinstance(entity, ProcessStep)]
        others = [entity for entity in scored if not isinstance(entity, ProcessStep)]

        graph = self.graph_builder.build(steps)

        version = await self.state_machine.store.next_workflow_version(document_id)
        workflow = self.assembler.assemble(
            sorted(steps, key=lambda step: graph.topological_order.index(step.step_number)),
            graph,
            others,
            bundle.reference_timestamp,
            chunk_registry=bundle.chunk_registry,
            document_id=document_id,
            version=version,
        )

        checklist = await self.state_machine.create(workflow, bundle.user_id, document_id)

        LOGGER.info(
            "Action plan committed",
            extra={
                "document_id": str(document_id),
                "workflow_id": str(workflow.id),
                "checklist_id": str(checklist.id),
                "version": version,
            },
        )
        return ActionPlanResult(
            document_id=document_id,
            status=PlanStatus.STRUCTURED,
            workflow=workflow,
            checklist=checklist,
        )
