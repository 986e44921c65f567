"""Unit tests for ChecklistStateMachine."""

import asyncio
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio

from actionplan.core.exceptions import (
    ChecklistNotFoundError,
    DependencyConflict,
    InconsistentState,
    ValidationError,
)
from actionplan.schemas.entities import Citation, Deadline
from actionplan.services.graph.dependency_graph_builder import DependencyGraphBuilder
from actionplan.services.workflow.workflow_assembler import WorkflowAssembler

NOW = datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def workflow(make_step, chunk_registry, document_id, reference_timestamp):
    """Workflow 1 -> {2, 3} with a deadline on step 2."""
    steps = [make_step(1), make_step(2, [1]), make_step(3, [1])]
    deadline = Deadline(
        id="d-1",
        description="Submit application",
        due_date=date(2024, 1, 20),
        citations=[Citation(chunk_id="c2", page_numbers=[2])],
        confidence=0.9,
    )
    builder = DependencyGraphBuilder()
    return WorkflowAssembler(graph_builder=builder).assemble(
        steps,
        builder.build(steps),
        [deadline],
        reference_timestamp,
        chunk_registry=chunk_registry,
        document_id=document_id,
    )


@pytest_asyncio.fixture
async def checklist(state_machine, workflow, user_id):
    return await state_machine.create(workflow, user_id)


def item(checklist, step_number):
    return checklist.items[step_number - 1]


class TestCreate:

    @pytest.mark.asyncio
    async def test_one_item_per_step(self, checklist, workflow):
        assert len(checklist.items) == len(workflow.steps) == checklist.workflow_step_count
        assert [i.step_number for i in checklist.items] == [1, 2, 3]
        assert not any(i.completed for i in checklist.items)
        assert checklist.workflow_id == workflow.id

    @pytest.mark.asyncio
    async def test_dependencies_translated_to_item_ids(self, checklist):
        assert item(checklist, 2).dependency_ids == [item(checklist, 1).id]
        assert item(checklist, 3).dependency_ids == [item(checklist, 1).id]

    @pytest.mark.asyncio
    async def test_earliest_deadline_attached(self, checklist):
        assert item(checklist, 2).deadline.deadline_id == "d-1"
        assert item(checklist, 2).deadline.due_date == date(2024, 1, 20)
        assert item(checklist, 2).time_sensitive
        assert item(checklist, 1).deadline is None

    @pytest.mark.asyncio
    async def test_can_complete_is_derived(self, checklist):
        view = checklist.to_view()

        assert [i.can_complete for i in view.items] == [True, False, False]

    @pytest.mark.asyncio
    async def test_recreating_supersedes_previous_checklist(self, state_machine, workflow, user_id, checklist):
        replacement = await state_machine.create(workflow, user_id)

        with pytest.raises(ChecklistNotFoundError):
            await state_machine.get(checklist.id)
        assert (await state_machine.get(replacement.id)).id == replacement.id


class TestToggle:

    @pytest.mark.asyncio
    async def test_toggle_then_read_round_trip(self, state_machine, checklist):
        await state_machine.toggle(checklist.id, item(checklist, 1).id, True, now=NOW)

        stored = await state_machine.get(checklist.id)

        assert item(stored, 1).completed is True
        assert item(stored, 1).completed_at == NOW
        assert [i.can_complete for i in stored.to_view().items] == [True, True, True]

    @pytest.mark.asyncio
    async def test_unmet_dependency_rejected(self, state_machine, checklist):
        with pytest.raises(ValidationError) as exc_info:
            await state_machine.toggle(checklist.id, item(checklist, 2).id, True)

        assert exc_info.value.reason == "unmet_dependency"
        assert exc_info.value.unmet_dependency_ids == [item(checklist, 1).id]
        stored = await state_machine.get(checklist.id)
        assert not item(stored, 2).completed

    @pytest.mark.asyncio
    async def test_reopen_blocked_by_completed_dependent(self, state_machine, checklist):
        await state_machine.toggle(checklist.id, item(checklist, 1).id, True)
        await state_machine.toggle(checklist.id, item(checklist, 2).id, True)

        with pytest.raises(DependencyConflict) as exc_info:
            await state_machine.toggle(checklist.id, item(checklist, 1).id, False)

        assert exc_info.value.blocking_item_ids == [item(checklist, 2).id]
        stored = await state_machine.get(checklist.id)
        assert item(stored, 1).completed

    @pytest.mark.asyncio
    async def test_reopen_clears_completion_timestamp(self, state_machine, checklist):
        await state_machine.toggle(checklist.id, item(checklist, 1).id, True, now=NOW)

        reopened = await state_machine.toggle(checklist.id, item(checklist, 1).id, False)

        assert item(reopened, 1).completed is False
        assert item(reopened, 1).completed_at is None

    @pytest.mark.asyncio
    async def test_noop_toggle_changes_nothing(self, state_machine, checklist):
        result = await state_machine.toggle(checklist.id, item(checklist, 1).id, False, now=NOW)

        assert result.updated_at == checklist.updated_at
        assert result.items == checklist.items

    @pytest.mark.asyncio
    async def test_unknown_item(self, state_machine, checklist):
        with pytest.raises(ValidationError) as exc_info:
            await state_machine.toggle(checklist.id, "missing-item", True)

        assert exc_info.value.reason == "unknown_item"

    @pytest.mark.asyncio
    async def test_unknown_checklist(self, state_machine, workflow):
        with pytest.raises(ChecklistNotFoundError):
            await state_machine.toggle(workflow.id, "any", True)


class TestConsistency:

    @pytest.mark.asyncio
    async def test_inconsistent_checklist_is_halted(self, state_machine, store, checklist):
        store._checklists[checklist.id].items.pop()

        with pytest.raises(InconsistentState):
            await state_machine.toggle(checklist.id, item(checklist, 1).id, True)

        stored = await state_machine.get(checklist.id)
        assert stored.halted
        assert not item(stored, 1).completed

        with pytest.raises(InconsistentState):
            await state_machine.toggle(checklist.id, item(checklist, 1).id, True)

    @pytest.mark.asyncio
    async def test_concurrent_toggles_keep_graph_consistent(self, state_machine, checklist):
        ids = [i.id for i in checklist.items]
        results = await asyncio.gather(
            *(state_machine.toggle(checklist.id, item_id, True) for item_id in ids + ids),
            return_exceptions=True,
        )

        assert not [r for r in results if isinstance(r, InconsistentState)]
        stored = await state_machine.get(checklist.id)
        index = stored.item_index()
        for entry in stored.items:
            if entry.completed:
                assert all(index[dep].completed for dep in entry.dependency_ids)
        assert all(entry.completed for entry in stored.items)

    @pytest.mark.asyncio
    async def test_delete_for_document_removes_checklists(self, state_machine, store, checklist, document_id):
        assert await store.delete_for_document(document_id) == 1

        with pytest.raises(ChecklistNotFoundError):
            await state_machine.get(checklist.id)
