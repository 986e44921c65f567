"""Unit tests for ActionPlanService."""

from datetime import date
from unittest.mock import patch

import pytest

from actionplan.core.exceptions import AppError
from actionplan.schemas.action_plan import PlanStatus
from actionplan.schemas.entities import (
    Citation,
    Deadline,
    EntityCandidate,
    ExtractionBundle,
    ExtractionSignals,
    ExtractionStatus,
    Fee,
)
from actionplan.services.action_plan_service import ActionPlanService, find_cross_validated

SIGNALS = ExtractionSignals(retrieval_scores=[0.9], model_likelihood=0.9, explicit=True)


@pytest.fixture
def service(state_machine):
    return ActionPlanService(state_machine)


@pytest.fixture
def make_bundle(make_step, chunk_registry, document_id, user_id, reference_timestamp):
    def _make(steps=None, entities=(), status=ExtractionStatus.COMPLETE, failure_reason=None):
        if steps is None:
            steps = [make_step(1), make_step(2, [1]), make_step(3, [2])]
        return ExtractionBundle(
            document_id=document_id,
            user_id=user_id,
            status=status,
            failure_reason=failure_reason,
            candidates=[EntityCandidate(entity=e, signals=SIGNALS) for e in [*steps, *entities]],
            chunk_registry=chunk_registry,
            reference_timestamp=reference_timestamp,
        )

    return _make


class TestStructuredPlan:

    @pytest.mark.asyncio
    async def test_generates_and_commits_plan(self, service, state_machine, make_bundle):
        deadline = Deadline(
            id="d-1",
            description="File the request",
            due_date=date(2024, 1, 15),
            citations=[Citation(chunk_id="c2", page_numbers=[2])],
        )

        result = await service.generate(make_bundle(entities=[deadline]))

        assert result.status == PlanStatus.STRUCTURED
        assert result.error is None
        assert [step.number for step in result.workflow.steps] == [1, 2, 3]
        assert result.workflow.version == 1
        assert result.workflow.step(2).time_sensitive
        assert result.workflow.step(1).confidence == pytest.approx(0.4 * 0.9 + 0.4 * 0.9 + 0.1)
        stored = await state_machine.get(result.checklist.id)
        assert len(stored.items) == 3

    @pytest.mark.asyncio
    async def test_regeneration_bumps_version_and_supersedes(self, service, state_machine, make_bundle):
        first = await service.generate(make_bundle())
        second = await service.generate(make_bundle())

        assert second.workflow.version == 2
        assert (await state_machine.get(second.checklist.id)).workflow_id == second.workflow.id
        with pytest.raises(AppError):
            await state_machine.get(first.checklist.id)


class TestFallback:

    @pytest.mark.asyncio
    async def test_cycle_produces_no_workflow(self, service, store, make_bundle, make_step, document_id):
        steps = [make_step(1, [3]), make_step(2, [1]), make_step(3, [2])]

        result = await service.generate(make_bundle(steps=steps))

        assert result.status == PlanStatus.FALLBACK
        assert result.workflow is None
        assert result.checklist is None
        assert result.error.code == "cycle_error"
        assert result.error.details["cycle_path"] == [1, 2, 3, 1]
        assert await store.next_workflow_version(document_id) == 1

    @pytest.mark.asyncio
    async def test_dangling_reference(self, service, make_bundle, make_step):
        result = await service.generate(make_bundle(steps=[make_step(1), make_step(2, [7])]))

        assert result.status == PlanStatus.FALLBACK
        assert result.error.code == "validation_error"
        assert result.error.details["missing_id"] == 7

    @pytest.mark.asyncio
    async def test_repeated_entity_id(self, service, store, make_bundle, document_id):
        first = Deadline(id="d", description="Submit form", due_date=date(2024, 1, 10))
        second = Deadline(id="d", description="Renew permit", due_date=date(2024, 6, 10))

        result = await service.generate(make_bundle(entities=[first, second]))

        assert result.status == PlanStatus.FALLBACK
        assert result.workflow is None
        assert result.error.code == "validation_error"
        assert result.error.details == {"reason": "duplicate_entity", "entity_id": "d"}
        assert await store.next_workflow_version(document_id) == 1

    @pytest.mark.asyncio
    async def test_unavailable_extraction(self, service, make_bundle):
        result = await service.generate(
            make_bundle(status=ExtractionStatus.UNAVAILABLE, failure_reason="model timeout")
        )

        assert result.status == PlanStatus.FALLBACK
        assert result.error.code == "extraction_unavailable"
        assert result.error.details["reason"] == "model timeout"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, service, make_bundle):
        with patch.object(service.scorer, "score_entity", side_effect=RuntimeError("boom")):
            with pytest.raises(AppError) as exc_info:
                await service.generate(make_bundle())

        assert isinstance(exc_info.value.original_error, RuntimeError)


class TestCrossValidation:

    def test_same_fact_from_different_chunks(self):
        first = Fee(id="f1", description="Fee", amount="50", citations=[Citation(chunk_id="c1")])
        second = Fee(id="f2", description="Application fee", amount="50.0", citations=[Citation(chunk_id="c4")])
        other = Fee(id="f3", description="Fee", amount="75", citations=[Citation(chunk_id="c5")])

        confirmed = find_cross_validated([EntityCandidate(entity=e) for e in (first, second, other)])

        assert confirmed == {"f1", "f2"}

    def test_same_chunk_does_not_confirm(self):
        first = Fee(id="f1", description="Fee", amount="50", citations=[Citation(chunk_id="c1")])
        second = Fee(id="f2", description="Fee", amount="50", citations=[Citation(chunk_id="c1")])

        assert find_cross_validated([EntityCandidate(entity=first), EntityCandidate(entity=second)]) == set()
