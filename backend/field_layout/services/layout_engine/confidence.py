"""
Composite confidence scoring.

    overall = 0.3 * label_match + 0.5 * position_certainty + 0.2 * type_certainty
              (+ 0.05 when the region has a visually detected boundary)

capped at 1.0 and bucketed into high (>= 0.85), medium (>= 0.70) and low.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .descriptors import FieldKind

logger = logging.getLogger(__name__)

LABEL_WEIGHT = 0.3
POSITION_WEIGHT = 0.5
TYPE_WEIGHT = 0.2
VISUAL_BOUNDARY_BOOST = 0.05

HIGH_THRESHOLD = 0.85
MEDIUM_THRESHOLD = 0.70

# How much the field locator's rule for each kind can be trusted
POSITION_CERTAINTY: Dict[FieldKind, float] = {
    FieldKind.TABLE_CELL: 0.9,
    FieldKind.UNDERLINE: 0.8,
    FieldKind.TITLE_RIGHT: 0.8,
    FieldKind.DIGIT_BOXES: 0.75,
    FieldKind.BOX_WITH_TITLE: 0.7,
    FieldKind.SELECTION_MARK: 0.6,
    FieldKind.GENERIC: 0.5,
}

# Position certainty when the geometry came from a placeholder box
PLACEHOLDER_POSITION_CERTAINTY = 0.3


class QualityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    
    @classmethod
    def for_score(cls, overall: float) -> 'QualityTier':
        if overall >= HIGH_THRESHOLD:
            return cls.HIGH
        if overall >= MEDIUM_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


def _unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


@dataclass(frozen=True)
class ConfidenceBreakdown:
    label_match: float
    position_certainty: float
    type_certainty: float
    visual_boundary: bool = False
    
    def to_dict(self) -> Dict[str, object]:
        return {
            'label_match': self.label_match,
            'position_certainty': self.position_certainty,
            'type_certainty': self.type_certainty,
            'visual_boundary': self.visual_boundary
        }


@dataclass(frozen=True)
class ConfidenceScore:
    overall: float
    quality: QualityTier
    breakdown: Optional[ConfidenceBreakdown] = None


class ConfidenceScorer:
    """Weighted composite confidence per field."""
    
    def score(
        self,
        label_match: float,
        position_certainty: float,
        type_certainty: float,
        visual_boundary: bool = False
    ) -> ConfidenceScore:
        """
        Combine the three factors into one score.
        
        Factors are clamped to [0, 1], so the result is in [0, 1] and
        non-decreasing in each factor.
        """
        breakdown = ConfidenceBreakdown(
            label_match=_unit(label_match),
            position_certainty=_unit(position_certainty),
            type_certainty=_unit(type_certainty),
            visual_boundary=visual_boundary
        )
        overall = (
            breakdown.label_match * LABEL_WEIGHT +
            breakdown.position_certainty * POSITION_WEIGHT +
            breakdown.type_certainty * TYPE_WEIGHT
        )
        if visual_boundary:
            overall += VISUAL_BOUNDARY_BOOST
        overall = round(min(overall, 1.0), 4)
        
        return ConfidenceScore(
            overall=overall,
            quality=QualityTier.for_score(overall),
            breakdown=breakdown
        )
    
    def flat(self, overall: float) -> ConfidenceScore:
        """A fixed score without factor breakdown (fallback fields)."""
        overall = _unit(overall)
        return ConfidenceScore(overall=overall, quality=QualityTier.for_score(overall))
    
    def position_certainty(self, kind: FieldKind, anchor_geometry_available: bool = True) -> float:
        certainty = POSITION_CERTAINTY[kind]
        if not anchor_geometry_available:
            certainty = min(certainty, PLACEHOLDER_POSITION_CERTAINTY)
        return certainty
