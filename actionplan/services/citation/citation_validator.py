"""Citation grounding against the document's chunk registry.

The validator only answers "is this citation grounded?". What happens to an
entity with ungrounded citations is decided by the workflow assembler.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from actionplan.core.exceptions import InvalidCitation
from actionplan.schemas.entities import ChunkRegistry, Citation, EntityBase
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)

UNKNOWN_CHUNK = "unknown_chunk"
FOREIGN_CHUNK = "foreign_chunk"
PAGE_OUT_OF_RANGE = "page_out_of_range"


@dataclass
class CitationReport:
    """Outcome of checking every citation of one entity.

    Attributes:
        entity_id: Entity whose citations were checked
        valid: Citations that resolved against the registry
        invalid: Pairs of (citation, error) that did not resolve
    """

    entity_id: str
    valid: List[Citation] = field(default_factory=list)
    invalid: List[Tuple[Citation, InvalidCitation]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.invalid)

    @property
    def has_invalid(self) -> bool:
        return bool(self.invalid)

    @property
    def valid_ratio(self) -> float:
        if self.total == 0:
            return 1.0
        return len(self.valid) / self.total


class CitationValidator:
    """Checks that citations name registered chunks and real pages."""

    def validate(self, citation: Citation, chunk_registry: ChunkRegistry) -> None:
        """Validate one citation.

        Args:
            citation: Citation to check
            chunk_registry: Chunks and page range of the cited document

        Raises:
            InvalidCitation: If the chunk is unknown or belongs to another
                document, or a page lies outside the document's page range
        """
        chunk = chunk_registry.get(citation.chunk_id)
        if chunk is None:
            raise InvalidCitation(
                f"Chunk {citation.chunk_id} is not registered for document {chunk_registry.document_id}",
                reason=UNKNOWN_CHUNK,
                chunk_id=citation.chunk_id,
            )

        if chunk.document_id != chunk_registry.document_id:
            raise InvalidCitation(
                f"Chunk {citation.chunk_id} belongs to document {chunk.document_id}",
                reason=FOREIGN_CHUNK,
                chunk_id=citation.chunk_id,
            )

        for page in citation.page_numbers:
            if page < 1 or page > chunk_registry.page_count:
                raise InvalidCitation(
                    f"Page {page} is outside the document range 1..{chunk_registry.page_count}",
                    reason=PAGE_OUT_OF_RANGE,
                    chunk_id=citation.chunk_id,
                    page_number=page,
                )

    def check_entity(self, entity: EntityBase, chunk_registry: ChunkRegistry) -> CitationReport:
        """Validate all citations of an entity without raising."""
        report = CitationReport(entity_id=entity.id)
        for citation in entity.citations:
            try:
                self.validate(citation, chunk_registry)
            except InvalidCitation as e:
                LOGGER.warning(
                    f"Invalid citation on entity {entity.id}: {e.message}",
                    extra={"entity_id": entity.id, **e.details},
                )
                report.invalid.append((citation, e))
            else:
                report.valid.append(citation)
        return report
