"""Checklist creation and the single completion-toggle transition."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from actionplan.core.exceptions import (
    DependencyConflict,
    InconsistentState,
    ValidationError,
)
from actionplan.schemas.checklist import Checklist, ChecklistItem, DeadlineRef
from actionplan.schemas.workflow import Workflow
from actionplan.services.checklist.store import ChecklistStore
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ChecklistStateMachine:
    """Owns every checklist mutation.

    Completion state must stay consistent with the dependency graph: an item
    may only be completed once all its dependencies are, and may only be
    reopened while nothing completed depends on it.
    """

    def __init__(self, store: ChecklistStore):
        self.store = store

    @staticmethod
    def build(workflow: Workflow, user_id: UUID, document_id: Optional[UUID] = None) -> Checklist:
        """Derive an uncommitted checklist from a workflow, one item per step."""
        document_id = document_id or workflow.document_id
        if document_id is None:
            raise ValidationError(
                "A checklist requires the workflow's document id",
                reason="missing_document",
            )

        items = [
            ChecklistItem(step_number=step.number, description=step.simplified_description)
            for step in workflow.steps
        ]
        item_ids = {item.step_number: item.id for item in items}

        for item, step in zip(items, workflow.steps):
            item.dependency_ids = [item_ids[number] for number in step.dependencies]
            item.time_sensitive = step.time_sensitive
            if step.deadlines:
                earliest = min(step.deadlines, key=lambda d: (workflow.resolved_deadlines[d.id], d.id))
                item.deadline = DeadlineRef(
                    deadline_id=earliest.id,
                    description=earliest.description,
                    due_date=workflow.resolved_deadlines[earliest.id],
                )

        return Checklist(
            document_id=document_id,
            user_id=user_id,
            workflow_id=workflow.id,
            workflow_step_count=len(workflow.steps),
            items=items,
        )

    async def create(self, workflow: Workflow, user_id: UUID, document_id: Optional[UUID] = None) -> Checklist:
        """Create and commit the checklist for a workflow."""
        checklist = await self.store.add(self.build(workflow, user_id, document_id), workflow)
        LOGGER.info(
            "Created checklist",
            extra={
                "checklist_id": str(checklist.id),
                "workflow_id": str(workflow.id),
                "item_count": len(checklist.items),
            },
        )
        return checklist

    async def get(self, checklist_id: UUID) -> Checklist:
        return await self.store.get(checklist_id)

    async def toggle(
        self,
        checklist_id: UUID,
        item_id: str,
        completed: bool,
        now: Optional[datetime] = None,
    ) -> Checklist:
        """Set one item's completion state.

        Args:
            checklist_id: Checklist to mutate
            item_id: Item to toggle
            completed: Requested state; requesting the current state is a no-op
            now: Completion timestamp, defaults to the current UTC time

        Returns:
            Snapshot of the checklist after the transition

        Raises:
            ChecklistNotFoundError: Unknown checklist
            ValidationError: Unknown item, or completing with unmet dependencies
            DependencyConflict: Reopening an item that completed items depend on
            InconsistentState: The checklist is (or has just been) halted
        """
        now = now or datetime.now(timezone.utc)
        problem: Optional[str] = None

        async with self.store.transaction(checklist_id) as checklist:
            if checklist.halted:
                raise InconsistentState(
                    f"Checklist {checklist_id} is halted after an inconsistency",
                    checklist_id=str(checklist_id),
                )

            problem = self._consistency_problem(checklist)
            if problem is not None:
                checklist.halted = True
                checklist.updated_at = now
            else:
                self._apply(checklist, item_id, completed, now)
            snapshot = checklist.model_copy(deep=True)

        if problem is not None:
            LOGGER.error(
                f"Halting checklist {checklist_id}: {problem}",
                extra={"checklist_id": str(checklist_id)},
            )
            raise InconsistentState(problem, checklist_id=str(checklist_id))
        return snapshot

    def _apply(self, checklist: Checklist, item_id: str, completed: bool, now: datetime) -> None:
        index: Dict[str, ChecklistItem] = checklist.item_index()
        item = index.get(item_id)
        if item is None:
            raise ValidationError(
                f"Item {item_id} is not part of checklist {checklist.id}",
                reason="unknown_item",
                item_id=item_id,
            )

        if item.completed == completed:
            LOGGER.debug("No-op toggle", extra={"item_id": item_id, "completed": completed})
            return

        if completed:
            unmet = [dep for dep in item.dependency_ids if not index[dep].completed]
            if unmet:
                raise ValidationError(
                    f"Item {item_id} has incomplete dependencies",
                    reason="unmet_dependency",
                    item_id=item_id,
                    unmet_dependency_ids=unmet,
                )
            item.completed = True
            item.completed_at = now
        else:
            blocking = [dependent.id for dependent in checklist.dependents_of(item_id) if dependent.completed]
            if blocking:
                raise DependencyConflict(item_id, blocking)
            item.completed = False
            item.completed_at = None

        checklist.updated_at = now
        LOGGER.info(
            "Toggled checklist item",
            extra={
                "checklist_id": str(checklist.id),
                "item_id": item_id,
                "step_number": item.step_number,
                "completed": completed,
            },
        )

    @staticmethod
    def _consistency_problem(checklist: Checklist) -> Optional[str]:
        if len(checklist.items) != checklist.workflow_step_count:
            return (
                f"Checklist has {len(checklist.items)} items but its workflow has "
                f"{checklist.workflow_step_count} steps"
            )
        numbers: List[int] = [item.step_number for item in checklist.items]
        if numbers != list(range(1, len(numbers) + 1)):
            return f"Checklist step numbers are not 1..{len(numbers)}: {numbers}"
        ids = set(checklist.item_index())
        for item in checklist.items:
            dangling = [dep for dep in item.dependency_ids if dep not in ids]
            if dangling:
                return f"Item {item.id} references unknown dependencies: {dangling}"
        return None
