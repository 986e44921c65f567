"""Action-plan generation endpoint."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from actionplan.api.dependencies import get_action_plan_service
from actionplan.api.errors import to_http_exception
from actionplan.core.exceptions import AppError
from actionplan.schemas.entities import ExtractionBundle
from actionplan.services.action_plan_service import ActionPlanService
from actionplan.utils.logging import get_logger
from actionplan.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{document_id}/action-plan",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Generate the action plan of a document",
    operation_id="generate_action_plan",
)
async def generate_action_plan(
    request: Request,
    response: Response,
    document_id: UUID,
    bundle: ExtractionBundle,
    service: Annotated[ActionPlanService, Depends(get_action_plan_service)],
) -> dict:
    """Run the reconciliation pipeline over a document's extracted entities.

    Returns 201 with the workflow and checklist, or 200 with a fallback
    payload when the extraction cannot be structured (cycles, dangling
    references, extraction unavailable).
    """
    if bundle.document_id != document_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Path document_id does not match the bundle",
        )

    try:
        result = await service.generate(bundle)
    except AppError as e:
        raise to_http_exception(e) from e

    if not result.is_structured:
        response.status_code = status.HTTP_200_OK
        return create_api_response(
            data=result,
            message="Structured plan unavailable, use the unstructured summary",
            request=request,
        )

    return create_api_response(
        data={
            "document_id": str(result.document_id),
            "status": result.status.value,
            "workflow": result.workflow.model_dump(mode="json"),
            "checklist": result.checklist.to_view().model_dump(mode="json"),
        },
        message="Action plan generated successfully",
        request=request,
    )
