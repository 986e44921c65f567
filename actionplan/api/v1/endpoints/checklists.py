"""Checklist API endpoints.

``PATCH /checklists/{id}/items/{item_id}`` is the only way to mutate a
checklist; every other endpoint is a read.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from actionplan.api.dependencies import get_checklist_state_machine, get_progress_calculator
from actionplan.api.errors import to_http_exception
from actionplan.core.exceptions import AppError
from actionplan.schemas.common import ToggleItemRequest
from actionplan.services.checklist.checklist_state_machine import ChecklistStateMachine
from actionplan.services.checklist.progress_calculator import ProgressCalculator
from actionplan.utils.logging import get_logger
from actionplan.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/{checklist_id}",
    response_model=dict,
    summary="Get a checklist",
    operation_id="get_checklist",
)
async def get_checklist(
    request: Request,
    checklist_id: UUID,
    state_machine: Annotated[ChecklistStateMachine, Depends(get_checklist_state_machine)],
) -> dict:
    """Get a checklist with the derived ``can_complete`` flag of every item."""
    try:
        checklist = await state_machine.get(checklist_id)
    except AppError as e:
        raise to_http_exception(e) from e

    return create_api_response(
        data=checklist.to_view(),
        message="Checklist retrieved successfully",
        request=request,
    )


@router.patch(
    "/{checklist_id}/items/{item_id}",
    response_model=dict,
    summary="Complete or reopen a checklist item",
    operation_id="toggle_checklist_item",
)
async def toggle_checklist_item(
    request: Request,
    checklist_id: UUID,
    item_id: str,
    body: ToggleItemRequest,
    state_machine: Annotated[ChecklistStateMachine, Depends(get_checklist_state_machine)],
) -> dict:
    """Set an item's completion state.

    Raises:
        HTTPException 404: Checklist not found
        HTTPException 409: Reopening an item that completed items depend on
        HTTPException 422: Unknown item or unmet dependencies
        HTTPException 500: Checklist halted after an inconsistency
    """
    try:
        checklist = await state_machine.toggle(checklist_id, item_id, body.completed)
    except AppError as e:
        LOGGER.info(
            f"Rejected toggle on checklist {checklist_id}: {e.message}",
            extra={"checklist_id": str(checklist_id), "item_id": item_id, "error_code": e.code},
        )
        raise to_http_exception(e) from e

    return create_api_response(
        data=checklist.to_view(),
        message="Checklist item updated",
        request=request,
    )


@router.get(
    "/{checklist_id}/progress",
    response_model=dict,
    summary="Get checklist progress",
    operation_id="get_checklist_progress",
)
async def get_checklist_progress(
    request: Request,
    checklist_id: UUID,
    state_machine: Annotated[ChecklistStateMachine, Depends(get_checklist_state_machine)],
    calculator: Annotated[ProgressCalculator, Depends(get_progress_calculator)],
) -> dict:
    """Percent complete, next actions and upcoming deadlines."""
    try:
        checklist = await state_machine.get(checklist_id)
    except AppError as e:
        raise to_http_exception(e) from e

    return create_api_response(
        data=calculator.progress(checklist),
        message="Progress computed successfully",
        request=request,
    )
