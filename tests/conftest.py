"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from actionplan.api.dependencies import get_checklist_store
from actionplan.main import app
from actionplan.schemas.entities import ChunkInfo, ChunkRegistry, Citation, ProcessStep
from actionplan.services.checklist.checklist_state_machine import ChecklistStateMachine
from actionplan.services.checklist.store import InMemoryChecklistStore


@pytest.fixture
def document_id() -> UUID:
    return UUID("11111111-1111-4111-8111-111111111111")


@pytest.fixture
def user_id() -> UUID:
    return UUID("22222222-2222-4222-8222-222222222222")


@pytest.fixture
def reference_timestamp() -> datetime:
    return datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def chunk_registry(document_id) -> ChunkRegistry:
    """Ten single-page chunks ``c1``..``c10``, chunk ``cN`` covering page N."""
    return ChunkRegistry.from_chunks(
        document_id,
        page_count=10,
        chunks=[
            ChunkInfo(chunk_id=f"c{page}", document_id=document_id, page_start=page, page_end=page)
            for page in range(1, 11)
        ],
    )


@pytest.fixture
def make_step():
    """Factory for process steps citing chunk ``c<number>`` on page <number>."""

    def _make(
        number: int,
        dependencies: Sequence[int] = (),
        duration: Optional[float] = None,
        confidence: float = 0.8,
        citations: Optional[List[Citation]] = None,
    ) -> ProcessStep:
        return ProcessStep(
            id=f"step-{number}",
            description=f"Complete step {number}",
            step_number=number,
            dependencies=list(dependencies),
            estimated_duration_days=duration,
            confidence=confidence,
            citations=citations
            if citations is not None
            else [Citation(chunk_id=f"c{number}", page_numbers=[number])],
        )

    return _make


@pytest.fixture
def store() -> InMemoryChecklistStore:
    return InMemoryChecklistStore()


@pytest.fixture
def state_machine(store) -> ChecklistStateMachine:
    return ChecklistStateMachine(store)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def test_client(store) -> TestClient:
    """FastAPI test client backed by the in-memory checklist store."""
    app.dependency_overrides[get_checklist_store] = lambda: store
    return TestClient(app)
