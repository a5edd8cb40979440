"""
Field Layout Engine
===================

Infers where the fillable regions of a form page are, from OCR geometry
plus a coarse semantic description of the page's fields.

Pipeline Stages (per page):
1. COORDINATES: Normalize OCR polygons to bottom-left-origin page points
2. LABELS: Classify OCR text as labels and group them into reading rows
3. RESOLUTION: Tie each semantic label back to an OCR span
4. POSITIONING: Compute each input region from its label and row neighbours
5. FUSION: Merge key-value pairs, resolved labels and selection marks
   without duplicates, scoring each field's confidence
6. FALLBACK: Colon-terminated lines only, when semantic labeling fails

Design Principles:
- Geometry always comes from OCR; the semantic model says WHAT, not WHERE
- Reading direction is derived from label script (RTL and LTR forms)
- Failures are page-scoped; only an unreadable document fails a request
- Label vocabularies are data (lexicons/*.json), not code
"""

from .geometry import Box, PageGeometry, PositionKey, PositionQuantization, normalize_polygon
from .lexicon import Direction, LabelLexicon, detect_direction
from .ocr_page import OcrPage, parse_analyze_result
from .label_classifier import LabelCandidate, LabelClassifier
from .row_aggregator import LabelLayout, group_rows
from .label_resolver import LabelMatch, resolve_label, text_similarity
from .descriptors import FieldDescriptor, FieldKind, InputType, SemanticAnalysis
from .field_locator import position_field
from .confidence import ConfidenceScorer, QualityTier
from .fusion import ExtractedField, FusionEngine, Provenance
from .fallback import FallbackController
from .semantic_labeler import SemanticLabeler
from .pipeline import (
    DocumentResult,
    FieldLayoutPipeline,
    PageFieldExtractor,
    PageResult,
    layout_from_analyze_result
)
from .errors import (
    DocumentUnreadable,
    FieldLayoutError,
    GeometryUnavailable,
    LabelUnresolved,
    SemanticAnalysisFailed
)

__all__ = [
    'FieldLayoutPipeline',
    'PageFieldExtractor',
    'DocumentResult',
    'PageResult',
    'layout_from_analyze_result',
    'Box',
    'PageGeometry',
    'PositionKey',
    'PositionQuantization',
    'normalize_polygon',
    'Direction',
    'LabelLexicon',
    'detect_direction',
    'OcrPage',
    'parse_analyze_result',
    'LabelCandidate',
    'LabelClassifier',
    'LabelLayout',
    'group_rows',
    'LabelMatch',
    'resolve_label',
    'text_similarity',
    'FieldDescriptor',
    'FieldKind',
    'InputType',
    'SemanticAnalysis',
    'position_field',
    'ConfidenceScorer',
    'QualityTier',
    'ExtractedField',
    'FusionEngine',
    'Provenance',
    'FallbackController',
    'SemanticLabeler',
    # Errors
    'FieldLayoutError',
    'GeometryUnavailable',
    'LabelUnresolved',
    'SemanticAnalysisFailed',
    'DocumentUnreadable',
]
