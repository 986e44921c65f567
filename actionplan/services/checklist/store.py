"""Checklist persistence contract and the in-process implementation.

Mutations go through :meth:`ChecklistStore.transaction`, which serializes
writers per checklist and persists the yielded copy only when the block
exits cleanly. Reads return snapshots and never take the lock.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional
from uuid import UUID

from actionplan.core.exceptions import ChecklistNotFoundError
from actionplan.schemas.checklist import Checklist
from actionplan.schemas.workflow import Workflow
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ChecklistStore(ABC):
    """Storage seam for workflows and their checklists."""

    @abstractmethod
    async def get(self, checklist_id: UUID) -> Checklist:
        """Return a snapshot of the checklist or raise ChecklistNotFoundError."""

    @abstractmethod
    async def add(self, checklist: Checklist, workflow: Optional[Workflow] = None) -> Checklist:
        """Commit a checklist (and its workflow) in one step.

        Any earlier checklist for the same document and user is replaced.
        """

    @abstractmethod
    def transaction(self, checklist_id: UUID):
        """Async context manager yielding a working copy that is saved on clean exit."""

    @abstractmethod
    async def next_workflow_version(self, document_id: UUID) -> int:
        """Version number the next workflow of a document will carry."""

    @abstractmethod
    async def delete_for_document(self, document_id: UUID) -> int:
        """Delete every checklist of a document and return how many were removed."""


class InMemoryChecklistStore(ChecklistStore):
    """Process-local store with one asyncio lock per checklist."""

    def __init__(self):
        self._checklists: Dict[UUID, Checklist] = {}
        self._workflows: Dict[UUID, List[Workflow]] = {}
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, checklist_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(checklist_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[checklist_id] = lock
        return lock

    async def get(self, checklist_id: UUID) -> Checklist:
        checklist = self._checklists.get(checklist_id)
        if checklist is None:
            raise ChecklistNotFoundError(str(checklist_id))
        return checklist.model_copy(deep=True)

    async def add(self, checklist: Checklist, workflow: Optional[Workflow] = None) -> Checklist:
        superseded = [
            existing.id
            for existing in self._checklists.values()
            if existing.document_id == checklist.document_id and existing.user_id == checklist.user_id
        ]
        for checklist_id in superseded:
            async with self._lock_for(checklist_id):
                self._checklists.pop(checklist_id, None)
            self._locks.pop(checklist_id, None)
            LOGGER.info(
                "Superseded checklist",
                extra={"checklist_id": str(checklist_id), "document_id": str(checklist.document_id)},
            )

        if workflow is not None:
            self._workflows.setdefault(checklist.document_id, []).append(workflow.model_copy(deep=True))
        self._checklists[checklist.id] = checklist.model_copy(deep=True)
        return checklist.model_copy(deep=True)

    @asynccontextmanager
    async def transaction(self, checklist_id: UUID) -> AsyncIterator[Checklist]:
        if checklist_id not in self._checklists:
            raise ChecklistNotFoundError(str(checklist_id))
        async with self._lock_for(checklist_id):
            # Re-read under the lock: the checklist may have been superseded meanwhile.
            current = self._checklists.get(checklist_id)
            if current is None:
                raise ChecklistNotFoundError(str(checklist_id))
            working = current.model_copy(deep=True)
            yield working
            self._checklists[checklist_id] = working

    async def next_workflow_version(self, document_id: UUID) -> int:
        versions = [workflow.version for workflow in self._workflows.get(document_id, [])]
        return max(versions, default=0) + 1

    async def delete_for_document(self, document_id: UUID) -> int:
        doomed = [c.id for c in self._checklists.values() if c.document_id == document_id]
        for checklist_id in doomed:
            del self._checklists[checklist_id]
            self._locks.pop(checklist_id, None)
        self._workflows.pop(document_id, None)
        return len(doomed)
