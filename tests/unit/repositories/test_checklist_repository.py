"""Unit tests for the SQL checklist repository and store, with mocked sessions."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from actionplan.core.exceptions import ChecklistNotFoundError
from actionplan.repositories.checklist_repository import ChecklistRepository, SqlChecklistStore
from actionplan.schemas.checklist import Checklist, ChecklistItem, DeadlineRef


def async_context(value):
    """MagicMock usable as ``async with`` that does not swallow exceptions."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=value)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


def mock_session(row=None):
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    session.execute.return_value = result
    session.begin = MagicMock(return_value=async_context(None))
    return session


def session_factory(session):
    return MagicMock(return_value=async_context(session))


@pytest.fixture
def checklist():
    first = ChecklistItem(id="i1", step_number=1, description="Gather documents")
    second = ChecklistItem(
        id="i2",
        step_number=2,
        description="Submit form",
        dependency_ids=["i1"],
        deadline=DeadlineRef(deadline_id="d1", description="Form due", due_date=date(2024, 2, 1)),
        time_sensitive=True,
    )
    return Checklist(
        document_id=uuid4(),
        user_id=uuid4(),
        workflow_id=uuid4(),
        workflow_step_count=2,
        items=[first, second],
    )


class TestChecklistRepository:

    def test_row_mapping_preserves_items(self, checklist):
        row = ChecklistRepository.to_row(checklist)

        restored = ChecklistRepository.to_schema(row)

        assert [item.position for item in row.items] == [0, 1]
        assert row.items[1].deadline == {"deadline_id": "d1", "description": "Form due", "due_date": "2024-02-01"}
        assert restored.items == checklist.items

    @pytest.mark.asyncio
    async def test_mutation_query_locks_the_row(self):
        session = mock_session()

        await ChecklistRepository(session).get_with_items(uuid4(), for_update=True)

        statement = session.execute.call_args.args[0]
        assert "FOR UPDATE" in str(statement.compile(dialect=postgresql.dialect()))


class TestSqlChecklistStore:

    @pytest.mark.asyncio
    async def test_get_unknown_checklist(self):
        store = SqlChecklistStore(session_factory(mock_session(row=None)))

        with pytest.raises(ChecklistNotFoundError):
            await store.get(uuid4())

    @pytest.mark.asyncio
    async def test_transaction_writes_back_completion(self, checklist):
        row = ChecklistRepository.to_row(checklist)
        store = SqlChecklistStore(session_factory(mock_session(row=row)))

        async with store.transaction(checklist.id) as working:
            working.items[0].completed = True
            working.halted = False

        assert row.items[0].completed is True
        assert row.items[1].completed is False

    @pytest.mark.asyncio
    async def test_failed_transaction_leaves_row_untouched(self, checklist):
        row = ChecklistRepository.to_row(checklist)
        store = SqlChecklistStore(session_factory(mock_session(row=row)))

        with pytest.raises(RuntimeError):
            async with store.transaction(checklist.id) as working:
                working.items[0].completed = True
                raise RuntimeError("rejected")

        assert row.items[0].completed is False
