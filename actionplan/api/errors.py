"""Translation of domain errors into HTTP errors."""

from fastapi import HTTPException, status

from actionplan.core.exceptions import (
    AppError,
    ChecklistNotFoundError,
    CycleError,
    DependencyConflict,
    InconsistentState,
    ValidationError,
)
from actionplan.schemas.common import ErrorResponse

STATUS_BY_ERROR = (
    (ChecklistNotFoundError, status.HTTP_404_NOT_FOUND),
    (DependencyConflict, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CycleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InconsistentState, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(error: AppError) -> HTTPException:
    detail = ErrorResponse(**error.to_dict()).model_dump()
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
