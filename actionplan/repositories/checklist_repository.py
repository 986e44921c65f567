"""Checklist persistence on PostgreSQL.

Mutations lock the checklist row with ``SELECT ... FOR UPDATE`` for the
duration of the transaction, so concurrent toggles on one checklist are
serialized across processes while different checklists proceed in parallel.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from actionplan.core.exceptions import ChecklistNotFoundError
from actionplan.database.models import Checklist as ChecklistModel
from actionplan.database.models import ChecklistItem as ChecklistItemModel
from actionplan.database.models import Document
from actionplan.repositories.action_plan_repository import ActionPlanRepository
from actionplan.repositories.base_repository import BaseRepository
from actionplan.schemas.checklist import Checklist, ChecklistItem, DeadlineRef
from actionplan.schemas.workflow import Workflow
from actionplan.services.checklist.store import ChecklistStore
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ChecklistRepository(BaseRepository[ChecklistModel]):
    """Repository for checklist rows and their items."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ChecklistModel)

    async def get_with_items(self, checklist_id: UUID, for_update: bool = False) -> Optional[ChecklistModel]:
        """Load a checklist with its items, optionally locking the checklist row."""
        try:
            query = (
                select(ChecklistModel)
                .where(ChecklistModel.id == checklist_id)
                .options(selectinload(ChecklistModel.items))
            )
            if for_update:
                query = query.with_for_update()
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading checklist {checklist_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def delete_for_owner(self, document_id: UUID, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(ChecklistModel).where(
                ChecklistModel.document_id == document_id,
                ChecklistModel.user_id == user_id,
            )
        )
        return result.rowcount or 0

    async def delete_for_document(self, document_id: UUID) -> int:
        result = await self.session.execute(
            delete(ChecklistModel).where(ChecklistModel.document_id == document_id)
        )
        return result.rowcount or 0

    @staticmethod
    def to_schema(row: ChecklistModel) -> Checklist:
        return Checklist(
            id=row.id,
            document_id=row.document_id,
            user_id=row.user_id,
            workflow_id=row.workflow_id,
            workflow_step_count=row.workflow_step_count,
            halted=row.halted,
            created_at=row.created_at,
            updated_at=row.updated_at,
            items=[
                ChecklistItem(
                    id=item.id,
                    step_number=item.step_number,
                    description=item.description,
                    completed=item.completed,
                    completed_at=item.completed_at,
                    dependency_ids=list(item.dependency_ids or []),
                    deadline=DeadlineRef(**item.deadline) if item.deadline else None,
                    time_sensitive=item.time_sensitive,
                )
                for item in sorted(row.items, key=lambda i: i.position)
            ],
        )

    @staticmethod
    def to_row(checklist: Checklist) -> ChecklistModel:
        return ChecklistModel(
            id=checklist.id,
            document_id=checklist.document_id,
            user_id=checklist.user_id,
            workflow_id=checklist.workflow_id,
            workflow_step_count=checklist.workflow_step_count,
            halted=checklist.halted,
            created_at=checklist.created_at,
            updated_at=checklist.updated_at,
            items=[
                ChecklistItemModel(
                    id=item.id,
                    position=position,
                    step_number=item.step_number,
                    description=item.description,
                    completed=item.completed,
                    completed_at=item.completed_at,
                    dependency_ids=list(item.dependency_ids),
                    deadline=item.deadline.model_dump(mode="json") if item.deadline else None,
                    time_sensitive=item.time_sensitive,
                )
                for position, item in enumerate(checklist.items)
            ],
        )

    @staticmethod
    def apply(row: ChecklistModel, checklist: Checklist) -> None:
        """Copy mutable checklist state back onto a loaded row."""
        row.halted = checklist.halted
        row.updated_at = checklist.updated_at
        items = checklist.item_index()
        for item_row in row.items:
            item = items.get(item_row.id)
            if item is None:
                continue
            item_row.completed = item.completed
            item_row.completed_at = item.completed_at


class SqlChecklistStore(ChecklistStore):
    """Checklist store backed by PostgreSQL sessions."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, checklist_id: UUID) -> Checklist:
        async with self.session_factory() as session:
            row = await ChecklistRepository(session).get_with_items(checklist_id)
            if row is None:
                raise ChecklistNotFoundError(str(checklist_id))
            return ChecklistRepository.to_schema(row)

    async def add(self, checklist: Checklist, workflow: Optional[Workflow] = None) -> Checklist:
        async with self.session_factory() as session:
            async with session.begin():
                documents = BaseRepository(session, Document)
                if await documents.get_by_id(checklist.document_id) is None:
                    await documents.create(id=checklist.document_id)

                if workflow is not None:
                    await ActionPlanRepository(session).save_workflow(workflow)

                repo = ChecklistRepository(session)
                replaced = await repo.delete_for_owner(checklist.document_id, checklist.user_id)
                session.add(repo.to_row(checklist))

        if replaced:
            LOGGER.info(
                "Superseded checklist",
                extra={"document_id": str(checklist.document_id), "replaced": replaced},
            )
        return checklist.model_copy(deep=True)

    @asynccontextmanager
    async def transaction(self, checklist_id: UUID) -> AsyncIterator[Checklist]:
        async with self.session_factory() as session:
            async with session.begin():
                repo = ChecklistRepository(session)
                row = await repo.get_with_items(checklist_id, for_update=True)
                if row is None:
                    raise ChecklistNotFoundError(str(checklist_id))
                working = repo.to_schema(row)
                yield working
                repo.apply(row, working)

    async def next_workflow_version(self, document_id: UUID) -> int:
        async with self.session_factory() as session:
            return await ActionPlanRepository(session).latest_version(document_id) + 1

    async def delete_for_document(self, document_id: UUID) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                return await ChecklistRepository(session).delete_for_document(document_id)
