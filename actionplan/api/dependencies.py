"""FastAPI dependency factories for the action-plan services."""

from typing import Annotated

from fastapi import Depends

from actionplan.database.base import async_session_maker
from actionplan.repositories.checklist_repository import SqlChecklistStore
from actionplan.services.action_plan_service import ActionPlanService
from actionplan.services.checklist.checklist_state_machine import ChecklistStateMachine
from actionplan.services.checklist.progress_calculator import ProgressCalculator
from actionplan.services.checklist.store import ChecklistStore

_store = SqlChecklistStore(async_session_maker)


def get_checklist_store() -> ChecklistStore:
    """Dependency for the checklist store."""
    return _store


def get_checklist_state_machine(
    store: Annotated[ChecklistStore, Depends(get_checklist_store)]
) -> ChecklistStateMachine:
    """Dependency for the checklist state machine."""
    return ChecklistStateMachine(store)


def get_progress_calculator() -> ProgressCalculator:
    return ProgressCalculator()


def get_action_plan_service(
    state_machine: Annotated[ChecklistStateMachine, Depends(get_checklist_state_machine)]
) -> ActionPlanService:
    """Dependency for the action-plan pipeline."""
    return ActionPlanService(state_machine)
