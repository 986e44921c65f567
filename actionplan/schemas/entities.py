"""Extracted entity schemas.

Entities arrive from the extraction collaborator as a tagged union keyed on
``kind``. All variants share the citation/confidence fields of
:class:`EntityBase`, which is what keeps scoring and citation checks
variant-agnostic. Entities are frozen: the core never edits them in place,
it derives copies whose confidence history records every recomputation.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class VerificationReason(str, Enum):
    """Why an entity was flagged for manual verification."""

    INVALID_CITATION = "invalid_citation"
    AMBIGUOUS_STEP_ASSOCIATION = "ambiguous_step_association"
    LOW_CONFIDENCE = "low_confidence"


class Citation(BaseModel):
    """Pointer from an extracted fact to the chunk/pages it came from."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(..., min_length=1, description="Chunk identifier in the chunk registry")
    page_numbers: List[int] = Field(default_factory=list, description="1-indexed page numbers")
    quote: str = Field(default="", description="Quoted source span")

    @property
    def page_span(self) -> Optional[tuple]:
        """Inclusive (first, last) page range, or None when no pages are cited."""
        if not self.page_numbers:
            return None
        return min(self.page_numbers), max(self.page_numbers)


class ChunkInfo(BaseModel):
    """A retrievable unit of source text with its page range."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: UUID
    page_start: int = Field(..., ge=1)
    page_end: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_page_order(self) -> "ChunkInfo":
        if self.page_end < self.page_start:
            raise ValueError("page_end must be >= page_start")
        return self


class ChunkRegistry(BaseModel):
    """Chunks known for one document, used to ground citations."""

    document_id: UUID
    page_count: int = Field(..., ge=1, description="Total pages in the document")
    chunks: Dict[str, ChunkInfo] = Field(default_factory=dict)

    def get(self, chunk_id: str) -> Optional[ChunkInfo]:
        return self.chunks.get(chunk_id)

    @classmethod
    def from_chunks(cls, document_id: UUID, page_count: int, chunks: List[ChunkInfo]) -> "ChunkRegistry":
        return cls(
            document_id=document_id,
            page_count=page_count,
            chunks={chunk.chunk_id: chunk for chunk in chunks},
        )


class ConfidenceRevision(BaseModel):
    """One recomputation of an entity's confidence."""

    model_config = ConfigDict(frozen=True)

    previous: float
    current: float
    reason: str


class EntityBase(BaseModel):
    """Fields shared by every extracted entity variant."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    description: str = Field(..., min_length=1)
    citations: List[Citation] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    needs_verification: bool = False
    verification_reasons: List[VerificationReason] = Field(default_factory=list)
    confidence_history: List[ConfidenceRevision] = Field(default_factory=list)

    def with_confidence(self, confidence: float, reason: str):
        """Return a copy carrying a recomputed confidence and its revision record."""
        confidence = min(1.0, max(0.0, confidence))
        revision = ConfidenceRevision(previous=self.confidence, current=confidence, reason=reason)
        return self.model_copy(
            update={
                "confidence": confidence,
                "confidence_history": [*self.confidence_history, revision],
            }
        )

    def flagged(self, reason: VerificationReason):
        """Return a copy flagged for manual verification."""
        reasons = list(self.verification_reasons)
        if reason not in reasons:
            reasons.append(reason)
        return self.model_copy(update={"needs_verification": True, "verification_reasons": reasons})


class Deadline(EntityBase):
    """A date by which something must happen, absolute or relative to the process start."""

    kind: Literal["deadline"] = "deadline"
    due_date: Optional[date] = None
    days_from_start: Optional[int] = None
    is_absolute: bool = True
    is_anchor: bool = Field(
        default=False,
        description="Absolute date marking the start of the process; relative deadlines resolve from it",
    )

    @model_validator(mode="after")
    def check_date_fields(self) -> "Deadline":
        if self.is_absolute and self.due_date is None:
            raise ValueError("absolute deadlines require due_date")
        if not self.is_absolute and self.days_from_start is None:
            raise ValueError("relative deadlines require days_from_start")
        if self.is_anchor and not self.is_absolute:
            raise ValueError("an anchor deadline must be absolute")
        return self


class Fee(EntityBase):
    kind: Literal["fee"] = "fee"
    amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = "USD"
    is_variable: bool = False


class RequiredDocument(EntityBase):
    kind: Literal["required_document"] = "required_document"
    mandatory: bool = True


class ProcessStep(EntityBase):
    """A step of the process, numbered the way the extractor numbered it."""

    kind: Literal["process_step"] = "process_step"
    step_number: int
    dependencies: List[int] = Field(default_factory=list)
    estimated_duration_days: Optional[float] = Field(default=None, ge=0)
    simplified_description: Optional[str] = None

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: List[int]) -> List[int]:
        return sorted(set(v))


class ContactInfo(EntityBase):
    kind: Literal["contact_info"] = "contact_info"
    name: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


ExtractedEntity = Annotated[
    Union[Deadline, Fee, RequiredDocument, ProcessStep, ContactInfo],
    Field(discriminator="kind"),
]

class ExtractionSignals(BaseModel):
    """Raw signals the extraction collaborator reports for one entity."""

    model_config = ConfigDict(protected_namespaces=())

    retrieval_scores: List[float] = Field(default_factory=list)
    model_likelihood: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    explicit: bool = False
    cross_validated: bool = False


class EntityCandidate(BaseModel):
    """An unscored entity together with its extraction signals."""

    entity: ExtractedEntity
    signals: ExtractionSignals = Field(default_factory=ExtractionSignals)


class ExtractionStatus(str, Enum):
    COMPLETE = "complete"
    UNAVAILABLE = "unavailable"


class ExtractionBundle(BaseModel):
    """Everything the core needs to build one document's action plan."""

    document_id: UUID
    user_id: UUID
    status: ExtractionStatus = ExtractionStatus.COMPLETE
    failure_reason: Optional[str] = None
    candidates: List[EntityCandidate] = Field(default_factory=list)
    chunk_registry: ChunkRegistry
    reference_timestamp: datetime

    @model_validator(mode="after")
    def check_registry_document(self) -> "ExtractionBundle":
        if self.chunk_registry.document_id != self.document_id:
            raise ValueError("chunk_registry belongs to a different document")
        return self


AssociableEntity = Annotated[
    Union[Deadline, Fee, RequiredDocument],
    Field(discriminator="kind"),
]
