"""
Pydantic models for API request/response schemas.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class RateLimitStatus(BaseModel):
    """Rate limit status response model."""
    total_calls: int
    max_calls: int
    remaining_calls: int
    calls_by_service: Dict[str, int]


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    ocr_configured: bool = False
    semantic_labeler_configured: bool = False
    label_lexicons: List[str] = []


class FieldOutput(BaseModel):
    """A positioned fillable field. Coordinates are page points, bottom-left origin."""
    type: str = Field(..., description="text | checkbox | radio | signature | dropdown")
    name: str
    label: Optional[str] = None
    x: float
    y: float
    width: float = Field(..., ge=0.0)
    height: float = Field(..., ge=0.0)
    page_number: int
    direction: str = Field(..., description="ltr | rtl")
    required: bool = False
    confidence: float = Field(..., ge=0.0, le=1.0)
    quality: str = Field(..., description="high | medium | low")
    section_name: Optional[str] = None
    provenance: str = Field(..., description="key-value | label-resolved | selection-mark | fallback")
    tab_index: Optional[int] = None
    confidence_breakdown: Optional[Dict[str, Any]] = None


class PageOutput(BaseModel):
    """Single page result in output."""
    page_number: int
    fields: List[FieldOutput]
    used_fallback: bool = False
    failure_reason: Optional[str] = None
    unmatched_labels: List[str] = []
    reported_field_count: int = 0


class ExtractResponse(BaseModel):
    """Response for the extraction endpoints."""
    success: bool
    document_id: Optional[str] = None
    fields: List[FieldOutput] = []
    pages: List[PageOutput] = []
    statistics: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class PageGeometryInput(BaseModel):
    """Upright page dimensions in points."""
    page_number: int = Field(..., ge=1)
    width: float = Field(..., gt=0.0)
    height: float = Field(..., gt=0.0)


class LayoutRequest(BaseModel):
    """Request for laying out fields from pre-extracted OCR and semantic data."""
    analyze_result: Dict[str, Any] = Field(..., description="OCR layout analysis result (camelCase keys)")
    semantic_pages: Dict[int, Any] = Field(
        default_factory=dict,
        description="Page number -> semantic labeler JSON ({totalFieldCount, fields}); missing pages use the fallback path"
    )
    page_geometries: Optional[List[PageGeometryInput]] = None
    document_id: Optional[str] = None
