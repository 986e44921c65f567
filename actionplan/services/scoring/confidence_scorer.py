"""Confidence scoring for extracted entities.

Combines three signals into a bounded score:
- retrieval relevance (best similarity of the supporting chunks)
- model certainty (token likelihood reported by the extractor)
- explicitness / cross-validation bonuses
"""

from typing import Optional, Sequence, TypeVar

from actionplan.core.config import ScoringSettings, settings
from actionplan.schemas.entities import EntityBase, ExtractionSignals
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)

EntityT = TypeVar("EntityT", bound=EntityBase)


class ConfidenceScorer:
    """Pure, deterministic confidence computation.

    ``confidence = clamp(w_r * max(retrieval) + w_m * likelihood + bonus, 0, 1)``

    Every weight and bonus is non-negative, so the score is monotonically
    non-decreasing in each input while the others are held fixed.
    """

    def __init__(self, scoring_settings: Optional[ScoringSettings] = None):
        self.settings = scoring_settings or settings.scoring

    def score(
        self,
        retrieval_scores: Sequence[float],
        model_likelihood: Optional[float] = None,
        explicit: bool = False,
        cross_validated: bool = False,
    ) -> float:
        """Combine extraction signals into a confidence in [0, 1].

        Args:
            retrieval_scores: Similarity scores of the chunks backing the entity
            model_likelihood: Model certainty, or None when the model gave none
            explicit: Whether the fact is stated explicitly in the source
            cross_validated: Whether another extraction confirmed the fact

        Returns:
            float: Clamped confidence score
        """
        retrieval = max(retrieval_scores) if retrieval_scores else 0.0
        model_score = model_likelihood if model_likelihood is not None else self.settings.likelihood_fallback

        bonus = 0.0
        if explicit:
            bonus += self.settings.explicit_bonus
        if cross_validated:
            bonus += self.settings.cross_validation_bonus

        raw = (
            self.settings.retrieval_weight * retrieval
            + self.settings.likelihood_weight * model_score
            + bonus
        )
        return min(1.0, max(0.0, raw))

    def score_entity(
        self,
        entity: EntityT,
        signals: ExtractionSignals,
        cross_validated: Optional[bool] = None,
    ) -> EntityT:
        """Return a copy of ``entity`` carrying its computed confidence.

        Args:
            entity: Unscored extracted entity
            signals: Extraction signals reported for the entity
            cross_validated: Overrides ``signals.cross_validated`` when given

        Returns:
            The entity copy with a ``scored`` confidence revision
        """
        confidence = self.score(
            signals.retrieval_scores,
            signals.model_likelihood,
            explicit=signals.explicit,
            cross_validated=signals.cross_validated if cross_validated is None else cross_validated,
        )
        LOGGER.debug(
            "Scored entity",
            extra={
                "entity_id": entity.id,
                "entity_kind": getattr(entity, "kind", None),
                "confidence": round(confidence, 4),
            },
        )
        return entity.with_confidence(confidence, reason="scored")
