"""
Semantic field descriptors.

FieldKind is the closed set of visual field layouts the field locator
knows how to position. The semantic collaborator's JSON is validated with
pydantic into FieldDescriptor objects; an unrecognized fieldType degrades
to FieldKind.GENERIC instead of failing the page.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import SemanticAnalysisFailed

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    """Visual layout of a fillable field relative to its label."""
    UNDERLINE = "underline"
    BOX_WITH_TITLE = "box_with_title"
    DIGIT_BOXES = "digit_boxes"
    TABLE_CELL = "table_cell"
    TITLE_RIGHT = "title_right"
    SELECTION_MARK = "selection_mark"
    GENERIC = "generic"
    
    @classmethod
    def parse(cls, value: Optional[str]) -> 'FieldKind':
        normalized = (value or '').strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        logger.debug(f"Unknown field type '{value}', treating as generic")
        return cls.GENERIC


class InputType(str, Enum):
    """Kind of input control the field takes."""
    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SIGNATURE = "signature"
    DROPDOWN = "dropdown"


@dataclass(frozen=True)
class FieldDescriptor:
    """One fillable field as reported by the semantic collaborator (no geometry)."""
    label_text: str
    field_kind: FieldKind
    input_type: InputType = InputType.TEXT
    section: Optional[str] = None
    required: bool = False


class SemanticFieldPayload(BaseModel):
    """A single field entry of the semantic collaborator's JSON response."""
    labelText: str = Field(..., min_length=1, description="Label text copied from the OCR inventory")
    fieldType: FieldKind = Field(FieldKind.GENERIC, description="Visual field layout")
    inputType: InputType = Field(InputType.TEXT, description="Input control type")
    section: Optional[str] = Field(None, description="Logical section name")
    required: bool = False
    
    @field_validator('fieldType', mode='before')
    @classmethod
    def _coerce_field_type(cls, value):
        if isinstance(value, FieldKind):
            return value
        if value is not None and not isinstance(value, str):
            raise ValueError(f"fieldType must be a string, got {type(value).__name__}")
        return FieldKind.parse(value)
    
    @field_validator('inputType', mode='before')
    @classmethod
    def _lower_input_type(cls, value):
        if value is None:
            return InputType.TEXT
        if isinstance(value, str):
            return value.strip().lower()
        return value
    
    @field_validator('section', mode='before')
    @classmethod
    def _blank_section(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value
    
    def to_descriptor(self) -> FieldDescriptor:
        return FieldDescriptor(
            label_text=self.labelText,
            field_kind=self.fieldType,
            input_type=self.inputType,
            section=self.section,
            required=self.required
        )


class SemanticPageResponse(BaseModel):
    """The semantic collaborator's JSON response for one page."""
    totalFieldCount: Optional[int] = Field(None, ge=0, description="Total fields the collaborator identified")
    fields: List[SemanticFieldPayload] = Field(default_factory=list)
    
    @property
    def reported_field_count(self) -> int:
        if self.totalFieldCount is None:
            return len(self.fields)
        return self.totalFieldCount
    
    def descriptors(self) -> List[FieldDescriptor]:
        return [f.to_descriptor() for f in self.fields]


@dataclass
class SemanticAnalysis:
    """
    Outcome of semantic labeling for one page.
    
    Exactly one of two shapes: descriptors (possibly empty) with the
    collaborator's reported field count, or a failure that sends the page
    down the fallback path.
    """
    descriptors: List[FieldDescriptor] = field(default_factory=list)
    reported_field_count: int = 0
    failure: Optional[SemanticAnalysisFailed] = None
    
    @property
    def succeeded(self) -> bool:
        return self.failure is None
    
    @classmethod
    def from_response(cls, response: SemanticPageResponse) -> 'SemanticAnalysis':
        return cls(
            descriptors=response.descriptors(),
            reported_field_count=response.reported_field_count
        )
    
    @classmethod
    def from_payload(cls, page_number: int, payload: Any) -> 'SemanticAnalysis':
        """Validate an already-decoded JSON payload; invalid payloads become failures."""
        try:
            return cls.from_response(SemanticPageResponse.model_validate(payload))
        except ValidationError as e:
            return cls.failed(SemanticAnalysisFailed(page_number, f"invalid payload: {e.error_count()} errors"))
    
    @classmethod
    def failed(cls, failure: SemanticAnalysisFailed) -> 'SemanticAnalysis':
        return cls(failure=failure)
