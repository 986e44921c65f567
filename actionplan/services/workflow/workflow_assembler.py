"""Workflow assembly from validated steps and scored entities.

Stages, in order:
1. Citation grounding: downgrade and flag entities with ungrounded citations
2. Renumbering: steps are numbered 1..N following the topological order
3. Association: deadlines, fees and required documents attach to the steps
   their citations overlap
4. Deadline resolution and time-sensitivity
5. Verification flags for low-confidence entities
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from actionplan.core.config import AssemblySettings, settings
from actionplan.core.exceptions import InconsistentState, ValidationError
from actionplan.schemas.entities import (
    ChunkRegistry,
    Citation,
    ContactInfo,
    Deadline,
    EntityBase,
    Fee,
    ProcessStep,
    RequiredDocument,
    VerificationReason,
)
from actionplan.schemas.workflow import DependencyGraph, Workflow, WorkflowStep
from actionplan.services.citation.citation_validator import CitationValidator
from actionplan.services.graph.dependency_graph_builder import DependencyGraphBuilder
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)

ASSOCIABLE_TYPES = (Deadline, Fee, RequiredDocument)


def ensure_unique_entity_ids(entities: Iterable[EntityBase]) -> None:
    """Raise ValidationError if two extracted entities share an id."""
    seen: Set[str] = set()
    for entity in entities:
        if entity.id in seen:
            raise ValidationError(
                f"Entity id {entity.id} appears more than once",
                reason="duplicate_entity",
                entity_id=entity.id,
            )
        seen.add(entity.id)


def _page_span(citation: Citation, chunk_registry: Optional[ChunkRegistry]) -> Optional[Tuple[int, int]]:
    if citation.page_span is not None:
        return citation.page_span
    chunk = chunk_registry.get(citation.chunk_id) if chunk_registry is not None else None
    return (chunk.page_start, chunk.page_end) if chunk is not None else None


def citations_overlap(
    left: Sequence[Citation],
    right: Sequence[Citation],
    chunk_registry: Optional[ChunkRegistry] = None,
) -> bool:
    """True if any pair of citations shares a chunk or an overlapping page span.

    A citation without page numbers spans its chunk's pages when the chunk is
    in the registry.
    """
    for a in left:
        for b in right:
            if a.chunk_id == b.chunk_id:
                return True
            span_a, span_b = _page_span(a, chunk_registry), _page_span(b, chunk_registry)
            if span_a and span_b and span_a[0] <= span_b[1] and span_b[0] <= span_a[1]:
                return True
    return False


class WorkflowAssembler:
    """Assembles a numbered workflow out of a validated dependency graph."""

    def __init__(
        self,
        assembly_settings: Optional[AssemblySettings] = None,
        citation_validator: Optional[CitationValidator] = None,
        graph_builder: Optional[DependencyGraphBuilder] = None,
    ):
        self.settings = assembly_settings or settings.assembly
        self.citation_validator = citation_validator or CitationValidator()
        self.graph_builder = graph_builder or DependencyGraphBuilder(self.settings)

    def assemble(
        self,
        ordered_steps: Sequence[ProcessStep],
        dependency_graph: DependencyGraph,
        scored_entities: Sequence[EntityBase],
        reference_timestamp: datetime,
        *,
        chunk_registry: Optional[ChunkRegistry] = None,
        document_id: Optional[UUID] = None,
        version: int = 1,
    ) -> Workflow:
        """Assemble the workflow for one document.

        Args:
            ordered_steps: Scored process steps, numbered as extracted
            dependency_graph: Graph built over those steps
            scored_entities: Scored deadlines, fees, required documents and contacts
            reference_timestamp: "Now" for time-sensitivity and relative deadlines
            chunk_registry: Registry to ground citations against; skipped when None
            document_id: Owning document
            version: Workflow version for this document

        Returns:
            Workflow: Steps numbered 1..N with associated entities

        Raises:
            InconsistentState: If steps and graph disagree or numbering breaks
            ValidationError: If two entities share an id
        """
        steps_by_number = {step.step_number: step for step in ordered_steps}
        if sorted(steps_by_number) != sorted(dependency_graph.nodes) or len(steps_by_number) != len(ordered_steps):
            raise InconsistentState(
                "Steps do not match the dependency graph nodes: "
                f"steps={sorted(steps_by_number)}, nodes={sorted(dependency_graph.nodes)}"
            )
        ensure_unique_entity_ids(
            [*ordered_steps, *(entity for entity in scored_entities if not isinstance(entity, ProcessStep))]
        )

        # Grounding
        valid_citations: Dict[str, List[Citation]] = {}
        steps: Dict[int, ProcessStep] = {}
        for number, step in steps_by_number.items():
            step, valid_citations[step.id] = self._ground(step, chunk_registry)
            steps[number] = step

        others: List[EntityBase] = []
        for entity in scored_entities:
            if isinstance(entity, ProcessStep):
                continue
            entity, valid_citations[entity.id] = self._ground(entity, chunk_registry)
            others.append(entity)

        # Renumbering
        renumber = {original: index for index, original in enumerate(dependency_graph.topological_order, start=1)}
        renumbered: Dict[int, ProcessStep] = {
            renumber[original]: step.model_copy(
                update={
                    "step_number": renumber[original],
                    "dependencies": sorted(renumber[dep] for dep in step.dependencies),
                }
            )
            for original, step in steps.items()
        }

        # Association
        attachments: Dict[int, List[EntityBase]] = {number: [] for number in renumbered}
        unassociated: List[EntityBase] = []
        contacts: List[ContactInfo] = []
        associated: List[Tuple[EntityBase, List[int]]] = []
        for entity in others:
            if isinstance(entity, ContactInfo):
                contacts.append(entity)
                continue
            if not isinstance(entity, ASSOCIABLE_TYPES):
                continue
            matches = [
                number
                for number in sorted(renumbered)
                if citations_overlap(
                    valid_citations[entity.id],
                    valid_citations[renumbered[number].id],
                    chunk_registry,
                )
            ]
            if not matches:
                LOGGER.debug(
                    "Entity matches no step",
                    extra={"entity_id": entity.id, "entity_kind": entity.kind},
                )
                unassociated.append(entity)
                continue
            if len(matches) > 1:
                LOGGER.warning(
                    f"Entity {entity.id} overlaps {len(matches)} steps, attaching to all",
                    extra={"entity_id": entity.id, "step_numbers": matches},
                )
                entity = entity.with_confidence(
                    entity.confidence * self.settings.ambiguity_factor,
                    reason="ambiguous_step_association",
                ).flagged(VerificationReason.AMBIGUOUS_STEP_ASSOCIATION)
            associated.append((entity, matches))

        # Verification flags are final once every confidence adjustment is done
        renumbered = {number: self._flag_low_confidence(step) for number, step in renumbered.items()}
        contacts = [self._flag_low_confidence(contact) for contact in contacts]
        unassociated = [self._flag_low_confidence(entity) for entity in unassociated]
        for entity, matches in associated:
            entity = self._flag_low_confidence(entity)
            for number in matches:
                attachments[number].append(entity)

        # Deadline resolution
        reference_date = reference_timestamp.date()
        all_deadlines = [e for e in unassociated if isinstance(e, Deadline)] + [
            e for e, _ in associated if isinstance(e, Deadline)
        ]
        anchor_date = self._anchor_date(all_deadlines)
        resolved = {
            deadline.id: self._resolve(deadline, anchor_date or reference_date) for deadline in all_deadlines
        }

        step_due: Dict[int, date] = {}
        for number, attached in attachments.items():
            dates = [resolved[e.id] for e in attached if isinstance(e, Deadline)]
            if dates:
                step_due[number] = min(dates)

        graph = DependencyGraph(
            nodes=sorted(renumbered),
            dependencies={number: list(step.dependencies) for number, step in renumbered.items()},
            topological_order=[renumber[original] for original in dependency_graph.topological_order],
        )
        path, weight = self.graph_builder.critical_path(graph, list(renumbered.values()), step_due)
        graph.critical_path = path
        graph.critical_path_weight = weight
        on_path: Set[int] = set(path)

        # Overdue deadlines count as time-sensitive.
        window = self.settings.time_sensitive_window_days
        workflow_steps = []
        for number in graph.topological_order:
            step = renumbered[number]
            attached = attachments[number]
            due = step_due.get(number)
            workflow_steps.append(
                WorkflowStep(
                    number=number,
                    original_step_number=dependency_graph.topological_order[number - 1],
                    entity_id=step.id,
                    description=step.description,
                    simplified_description=step.simplified_description or step.description,
                    deadlines=[e for e in attached if isinstance(e, Deadline)],
                    fees=[e for e in attached if isinstance(e, Fee)],
                    required_documents=[e for e in attached if isinstance(e, RequiredDocument)],
                    dependencies=list(step.dependencies),
                    time_sensitive=due is not None and (due - reference_date).days <= window,
                    due_date=due,
                    estimated_duration_days=step.estimated_duration_days,
                    citations=list(step.citations),
                    confidence=step.confidence,
                    needs_verification=step.needs_verification,
                    on_critical_path=number in on_path,
                )
            )

        numbers = [step.number for step in workflow_steps]
        if numbers != list(range(1, len(workflow_steps) + 1)):
            raise InconsistentState(f"Workflow steps are not numbered contiguously: {numbers}")

        workflow = Workflow(
            document_id=document_id,
            version=version,
            steps=workflow_steps,
            graph=graph,
            critical_path=path,
            reference_timestamp=reference_timestamp,
            anchor_date=anchor_date,
            resolved_deadlines=resolved,
            contacts=contacts,
            unassociated_entities=unassociated,
        )

        LOGGER.info(
            "Assembled workflow",
            extra={
                "document_id": str(document_id) if document_id else None,
                "step_count": len(workflow_steps),
                "time_sensitive_steps": sum(1 for step in workflow_steps if step.time_sensitive),
                "unassociated_count": len(unassociated),
            },
        )
        return workflow

    def _ground(self, entity, chunk_registry: Optional[ChunkRegistry]):
        """Return the (possibly downgraded) entity and its grounded citations."""
        if chunk_registry is None:
            return entity, list(entity.citations)

        report = self.citation_validator.check_entity(entity, chunk_registry)
        if not report.has_invalid:
            return entity, report.valid

        downgraded = entity.with_confidence(
            entity.confidence * report.valid_ratio * self.settings.invalid_citation_penalty,
            reason="invalid_citation",
        ).flagged(VerificationReason.INVALID_CITATION)
        return downgraded, report.valid

    def _flag_low_confidence(self, entity):
        if entity.confidence < self.settings.verification_threshold:
            return entity.flagged(VerificationReason.LOW_CONFIDENCE)
        return entity

    @staticmethod
    def _anchor_date(deadlines: Sequence[Deadline]) -> Optional[date]:
        anchors = [d.due_date for d in deadlines if d.is_anchor and d.is_absolute and d.due_date]
        return min(anchors) if anchors else None

    @staticmethod
    def _resolve(deadline: Deadline, base_date: date) -> date:
        if deadline.is_absolute:
            return deadline.due_date
        return base_date + timedelta(days=deadline.days_from_start)
