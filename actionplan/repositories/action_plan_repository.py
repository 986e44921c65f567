"""Repository for stored workflow versions."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from actionplan.database.models import ActionPlan
from actionplan.repositories.base_repository import BaseRepository
from actionplan.schemas.workflow import Workflow


class ActionPlanRepository(BaseRepository[ActionPlan]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ActionPlan)

    async def latest_version(self, document_id: UUID) -> int:
        """Highest stored workflow version of a document, 0 when none exists."""
        try:
            query = select(func.max(ActionPlan.version)).where(ActionPlan.document_id == document_id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none() or 0
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error reading workflow version for document {document_id}: {str(e)}",
                exc_info=True
            )
            raise

    async def save_workflow(self, workflow: Workflow) -> ActionPlan:
        return await self.create(
            id=workflow.id,
            document_id=workflow.document_id,
            version=workflow.version,
            step_count=len(workflow.steps),
            payload=workflow.model_dump(mode="json"),
        )
