"""Custom exception hierarchy for the action-plan core.

Every error carries structured attributes so the surrounding pipeline can
decide between the structured workflow and the degraded-summary fallback
without parsing messages.
"""

from typing import Any, Dict, List, Optional, Sequence


class AppError(Exception):
    """Base exception for application errors."""

    code = "app_error"

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses and workflow results."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppError):
    """Raised when input or a requested mutation violates an invariant.

    Covers dangling dependency references, duplicate step numbers and
    repeated entity ids in extraction output, and toggles that would
    complete an item whose dependencies are still pending.
    """

    code = "validation_error"

    def __init__(
        self,
        message: str,
        reason: str,
        missing_id: Optional[int] = None,
        step_number: Optional[int] = None,
        item_id: Optional[str] = None,
        unmet_dependency_ids: Optional[Sequence[str]] = None,
        entity_id: Optional[str] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.reason = reason
        self.missing_id = missing_id
        self.step_number = step_number
        self.item_id = item_id
        self.unmet_dependency_ids: List[str] = list(unmet_dependency_ids or [])
        self.entity_id = entity_id

    @property
    def details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {"reason": self.reason}
        if self.missing_id is not None:
            details["missing_id"] = self.missing_id
        if self.step_number is not None:
            details["step_number"] = self.step_number
        if self.item_id is not None:
            details["item_id"] = self.item_id
        if self.unmet_dependency_ids:
            details["unmet_dependency_ids"] = self.unmet_dependency_ids
        if self.entity_id is not None:
            details["entity_id"] = self.entity_id
        return details


class CycleError(AppError):
    """Raised when step dependencies contain a cycle.

    ``cycle_path`` is closed: the first step number is repeated at the end.
    """

    code = "cycle_error"

    def __init__(self, cycle_path: Sequence[int]):
        self.cycle_path: List[int] = list(cycle_path)
        rendered = " -> ".join(str(step) for step in self.cycle_path)
        super().__init__(f"Circular step dependency detected: {rendered}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"cycle_path": self.cycle_path}


class InvalidCitation(AppError):
    """Raised when a citation does not resolve against the chunk registry."""

    code = "invalid_citation"

    def __init__(
        self,
        message: str,
        reason: str,
        chunk_id: Optional[str] = None,
        page_number: Optional[int] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.chunk_id = chunk_id
        self.page_number = page_number

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "chunk_id": self.chunk_id,
            "page_number": self.page_number,
        }


class DependencyConflict(AppError):
    """Raised when reopening an item that completed items depend on."""

    code = "dependency_conflict"

    def __init__(self, item_id: str, blocking_item_ids: Sequence[str]):
        self.item_id = item_id
        self.blocking_item_ids: List[str] = list(blocking_item_ids)
        super().__init__(
            f"Item {item_id} cannot be reopened while dependent items are completed: "
            f"{', '.join(self.blocking_item_ids)}"
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {"item_id": self.item_id, "blocking_item_ids": self.blocking_item_ids}


class InconsistentState(AppError):
    """Raised when stored state breaks a structural invariant. Always fatal."""

    code = "inconsistent_state"

    def __init__(self, message: str, checklist_id: Optional[str] = None):
        super().__init__(message)
        self.checklist_id = checklist_id

    @property
    def details(self) -> Dict[str, Any]:
        return {"checklist_id": self.checklist_id}


class ExtractionUnavailable(AppError):
    """Raised when the extraction collaborator gave up (timeout, retries exhausted)."""

    code = "extraction_unavailable"

    def __init__(self, document_id: str, reason: Optional[str] = None):
        self.document_id = document_id
        self.reason = reason
        super().__init__(
            f"Extraction unavailable for document {document_id}"
            + (f": {reason}" if reason else "")
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {"document_id": self.document_id, "reason": self.reason}


class ChecklistNotFoundError(AppError):
    """Raised when a checklist id is unknown to the store."""

    code = "checklist_not_found"

    def __init__(self, checklist_id: str):
        self.checklist_id = checklist_id
        super().__init__(f"Checklist {checklist_id} not found")

    @property
    def details(self) -> Dict[str, Any]:
        return {"checklist_id": self.checklist_id}


# Errors that reflect invalid AI output; retrying the same input cannot help.
NON_RETRYABLE_ERRORS = (ValidationError, CycleError, ExtractionUnavailable)
