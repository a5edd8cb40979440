"""
Layout engine error taxonomy.

Only DocumentUnreadable is fatal to a request. The other conditions are
page- or field-scoped: the engine logs them and degrades (placeholder
geometry, dropped descriptor, fallback path) instead of aborting.
"""

from typing import Optional


class FieldLayoutError(Exception):
    """Base class for layout engine errors."""


class GeometryUnavailable(FieldLayoutError):
    """A bounding polygon was missing or had fewer than 8 numbers."""

    def __init__(self, polygon_length: int):
        self.polygon_length = polygon_length
        super().__init__(f"Bounding polygon has {polygon_length} numbers, expected at least 8")


class LabelUnresolved(FieldLayoutError):
    """A semantic descriptor's label text matched no OCR span on its page."""

    def __init__(self, label_text: str, field_kind: str, page_number: int):
        self.label_text = label_text
        self.field_kind = field_kind
        self.page_number = page_number
        super().__init__(
            f"Label '{label_text}' ({field_kind}) not found in OCR text of page {page_number}"
        )


class SemanticAnalysisFailed(FieldLayoutError):
    """The semantic labeling collaborator errored, timed out or returned unusable output."""

    def __init__(self, page_number: int, reason: str, raw_response: Optional[str] = None):
        self.page_number = page_number
        self.reason = reason
        self.raw_response = raw_response
        super().__init__(f"Semantic analysis failed for page {page_number}: {reason}")


class DocumentUnreadable(FieldLayoutError):
    """Page count or page dimensions could not be determined for the document."""
