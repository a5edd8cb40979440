"""
Field Extraction API Routes
===========================

REST API endpoints for the field layout engine.

Endpoints:
- POST /api/v1/fields/extract - Extract positioned fields from a PDF
- POST /api/v1/fields/layout - Lay out fields from pre-extracted OCR + semantic data
"""

import logging
from typing import Optional
from fastapi import APIRouter, File, UploadFile, HTTPException, Query

from field_layout.models import ExtractResponse, LayoutRequest
from field_layout.services.layout_engine import (
    DocumentResult,
    DocumentUnreadable,
    FieldLayoutPipeline,
    PageFieldExtractor,
    PageGeometry,
    layout_from_analyze_result
)
from field_layout.utils.pdf_handler import PDFHandler
from field_layout.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/fields", tags=["Field Extraction"])


# ============================================================================
# Pipeline Instances (Singletons)
# ============================================================================

_pipeline_instance: Optional[FieldLayoutPipeline] = None
_extractor_instance: Optional[PageFieldExtractor] = None
_rate_limiter: Optional[RateLimiter] = None


def configure(rate_limiter: Optional[RateLimiter] = None):
    """Share the application's rate limiter with the pipeline."""
    global _rate_limiter, _pipeline_instance
    _rate_limiter = rate_limiter
    _pipeline_instance = None


def get_pipeline() -> FieldLayoutPipeline:
    """Get or create the pipeline instance."""
    global _pipeline_instance
    
    if _pipeline_instance is None:
        _pipeline_instance = FieldLayoutPipeline.from_config(rate_limiter=_rate_limiter)
        logger.info("Initialized FieldLayoutPipeline singleton")
    
    return _pipeline_instance


def get_extractor() -> PageFieldExtractor:
    """Get or create the per-page extractor instance."""
    global _extractor_instance
    
    if _extractor_instance is None:
        _extractor_instance = PageFieldExtractor.from_config()
        logger.info("Initialized PageFieldExtractor singleton")
    
    return _extractor_instance


def _response(result: DocumentResult, include_statistics: bool) -> ExtractResponse:
    data = result.to_dict()
    return ExtractResponse(
        success=True,
        document_id=data['document_id'],
        fields=data['fields'],
        pages=data['pages'],
        statistics=data['statistics'] if include_statistics else None
    )


# ============================================================================
# API Endpoints
# ============================================================================

@router.post("/extract", response_model=ExtractResponse)
async def extract_fields(
    file: UploadFile = File(..., description="PDF file to analyze"),
    include_statistics: bool = Query(True, description="Include statistics summary"),
    document_id: Optional[str] = Query(None, description="Optional document identifier")
) -> ExtractResponse:
    """
    Extract positioned fillable fields from a PDF.
    
    1. OCR layout analysis
    2. Per-page semantic labeling (fallback on failure)
    3. Label resolution, positioning, fusion and confidence scoring
    """
    if not file.filename or not file.filename.lower().endswith('.pdf'):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")
    
    pdf_bytes = await file.read()
    
    if len(pdf_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file uploaded")
    
    if not PDFHandler.is_pdf(pdf_bytes):
        raise HTTPException(status_code=400, detail="Invalid PDF format")
    
    try:
        pipeline = get_pipeline()
    except ValueError as e:
        logger.error(f"Pipeline not configured: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    
    logger.info(f"Extracting fields: {file.filename} ({len(pdf_bytes)} bytes)")
    
    try:
        result = await pipeline.aprocess_pdf(pdf_bytes, document_id=document_id)
    except DocumentUnreadable as e:
        logger.error(f"Document unreadable: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Pipeline error: {e}", exc_info=True)
        return ExtractResponse(success=False, error=str(e))
    
    return _response(result, include_statistics)


@router.post("/layout", response_model=ExtractResponse)
async def layout_fields(
    request: LayoutRequest,
    include_statistics: bool = Query(True, description="Include statistics summary")
) -> ExtractResponse:
    """
    Lay out fields from a pre-extracted OCR analyze result.
    
    Each page with an entry in semantic_pages takes the semantic path;
    pages without one (or with an invalid one) take the fallback path.
    """
    page_geometries = None
    if request.page_geometries:
        page_geometries = {
            g.page_number: PageGeometry(page_number=g.page_number, width=g.width, height=g.height)
            for g in request.page_geometries
        }
    
    try:
        result = layout_from_analyze_result(
            request.analyze_result,
            semantic_payloads=request.semantic_pages,
            page_geometries=page_geometries,
            document_id=request.document_id,
            extractor=get_extractor()
        )
    except DocumentUnreadable as e:
        logger.error(f"Document unreadable: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    
    return _response(result, include_statistics)
