"""Action-plan generation activity."""

from typing import Dict

from pydantic import ValidationError as PydanticValidationError
from temporalio import activity
from temporalio.exceptions import ApplicationError

from actionplan.core.exceptions import NON_RETRYABLE_ERRORS, AppError
from actionplan.database.base import async_session_maker
from actionplan.repositories.checklist_repository import SqlChecklistStore
from actionplan.schemas.entities import ExtractionBundle
from actionplan.services.action_plan_service import ActionPlanService
from actionplan.services.checklist.checklist_state_machine import ChecklistStateMachine


def build_service() -> ActionPlanService:
    return ActionPlanService(ChecklistStateMachine(SqlChecklistStore(async_session_maker)))


@activity.defn
async def generate_action_plan(payload: Dict) -> Dict:
    """Build and commit the action plan of one document.

    Invalid extraction output comes back as a ``fallback`` result rather than
    an error. Errors that escape are raised as ApplicationError, marked
    non-retryable when retrying the same input cannot succeed.
    """
    try:
        bundle = ExtractionBundle.model_validate(payload)
    except PydanticValidationError as e:
        activity.logger.error(f"Rejected malformed extraction payload: {e}")
        raise ApplicationError(str(e), type="ValidationError", non_retryable=True) from e

    activity.logger.info(
        f"[Action Plan] Generating plan for document {bundle.document_id} "
        f"({len(bundle.candidates)} candidates, attempt {activity.info().attempt})"
    )

    try:
        result = await build_service().generate(bundle)
    except AppError as e:
        activity.logger.error(f"[Action Plan] Generation failed for {bundle.document_id}: {e.message}")
        raise ApplicationError(
            e.message,
            e.to_dict(),
            type=e.__class__.__name__,
            non_retryable=isinstance(e, NON_RETRYABLE_ERRORS),
        ) from e

    activity.logger.info(
        f"[Action Plan] Document {bundle.document_id} finished with status {result.status.value}"
    )
    return result.model_dump(mode="json")
