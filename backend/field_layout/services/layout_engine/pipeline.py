"""
Field Layout Pipeline
=====================

The orchestrator that turns a PDF into positioned fillable fields.

Pipeline Stages:
----------------
1. INPUT: Read upright page dimensions from the PDF
2. OCR: Layout analysis (lines, words, tables, selection marks, key-value pairs)
3. SEMANTIC LABELING: Per page, ask the vision model which fields exist
4. FUSION: Per page, pick the semantic or fallback path and build the field list
5. OUTPUT: Boundary validation, document tab order, statistics

Concurrency:
------------
Pages are labeled concurrently (bounded by MAX_CONCURRENT_PAGES). Each
labeling call runs in a worker thread under a per-page timeout; a timeout
or failure sends only that page down the fallback path. Pages share no
mutable state, and results are re-ordered by page number before output.

Cancelling aprocess_pdf cancels every still-pending page; pages that
already finished are left in the caller's `completed` list.

Output Schema:
--------------
{
  "document_id": string,
  "fields": [ExtractedField, ...],        # tab order
  "pages": [{"page_number", "fields", "used_fallback", ...}],
  "statistics": {...}
}
"""

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .descriptors import SemanticAnalysis
from .errors import SemanticAnalysisFailed
from .fallback import FallbackController
from .fusion import ExtractedField, FusionEngine
from .geometry import PositionQuantization
from .lexicon import LabelLexicon
from .ocr_page import OcrPage, parse_analyze_result
from .postprocess import assign_tab_order, validate_boundaries
from .semantic_labeler import SemanticLabeler

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    """Fields and processing metadata for a single page."""
    page_number: int
    fields: List[ExtractedField]
    used_fallback: bool = False
    failure_reason: Optional[str] = None
    unmatched_labels: List[str] = field(default_factory=list)
    reported_field_count: int = 0
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'page_number': self.page_number,
            'fields': [f.to_dict() for f in self.fields],
            'used_fallback': self.used_fallback,
            'failure_reason': self.failure_reason,
            'unmatched_labels': self.unmatched_labels,
            'reported_field_count': self.reported_field_count
        }


@dataclass
class DocumentResult:
    """Complete pipeline output for a document."""
    document_id: str
    pages: List[PageResult]
    fields: List[ExtractedField]
    
    @property
    def statistics(self) -> Dict[str, Any]:
        quality = Counter(f.quality.value for f in self.fields)
        total = len(self.fields)
        return {
            'total_fields': total,
            'page_count': len(self.pages),
            'fields_per_page': {p.page_number: len(p.fields) for p in self.pages},
            'fallback_pages': [p.page_number for p in self.pages if p.used_fallback],
            'average_confidence': round(sum(f.confidence for f in self.fields) / total, 4) if total else 0.0,
            'quality_distribution': {
                'high': quality.get('high', 0),
                'medium': quality.get('medium', 0),
                'low': quality.get('low', 0)
            }
        }
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'document_id': self.document_id,
            'fields': [f.to_dict() for f in self.fields],
            'pages': [p.to_dict() for p in self.pages],
            'statistics': self.statistics
        }


class PageFieldExtractor:
    """
    Pure per-page transformation: OCR page + semantic analysis -> PageResult.
    
    The path is chosen once per page: the semantic path when the analysis
    succeeded, the fallback path when it failed.
    """
    
    def __init__(self, engine: Optional[FusionEngine] = None):
        self.engine = engine or FusionEngine()
        self.fallback = FallbackController(self.engine)
    
    @classmethod
    def from_config(cls) -> 'PageFieldExtractor':
        """Build an extractor with lexicons and tunables from Config."""
        from field_layout.config import Config
        
        engine = FusionEngine(
            lexicon=LabelLexicon.load(Config.LABEL_LEXICONS),
            quantization=PositionQuantization(
                x_bucket=Config.POSITION_BUCKET_X,
                y_bucket=Config.POSITION_BUCKET_Y,
                tolerance=Config.POSITION_KEY_TOLERANCE
            ),
            row_tolerance=Config.ROW_TOLERANCE_POINTS
        )
        return cls(engine)
    
    def extract(self, page: OcrPage, analysis: SemanticAnalysis) -> PageResult:
        if analysis.succeeded:
            assembly = self.engine.fuse(page, analysis.descriptors)
        else:
            logger.warning(f"Using fallback for page {page.page_number}: {analysis.failure}")
            assembly = self.fallback.run(page)
        
        fields = validate_boundaries(assembly.fields, page.geometry)
        
        if analysis.succeeded and analysis.reported_field_count > len(fields):
            logger.warning(
                f"Page {page.page_number}: semantic labeler reported {analysis.reported_field_count} "
                f"fields but only {len(fields)} were positioned"
            )
        
        return PageResult(
            page_number=page.page_number,
            fields=fields,
            used_fallback=not analysis.succeeded,
            failure_reason=analysis.failure.reason if analysis.failure else None,
            unmatched_labels=list(assembly.unmatched_labels),
            reported_field_count=analysis.reported_field_count
        )


def assemble_document(document_id: str, page_results: List[PageResult]) -> DocumentResult:
    """Order pages by number and assign the document tab order."""
    pages = sorted(page_results, key=lambda p: p.page_number)
    fields = assign_tab_order([f for p in pages for f in p.fields])
    return DocumentResult(document_id=document_id, pages=pages, fields=fields)


class FieldLayoutPipeline:
    """
    Main pipeline orchestrator.
    
    Usage:
        pipeline = FieldLayoutPipeline(ocr_service, labeler)
        result = pipeline.process_pdf(pdf_bytes)
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    """
    
    def __init__(
        self,
        ocr_service: Any,
        labeler: Optional[SemanticLabeler] = None,
        extractor: Optional[PageFieldExtractor] = None,
        page_geometry_reader: Optional[Callable[[bytes], Dict]] = None,
        page_renderer: Optional[Callable[[bytes, int], Optional[str]]] = None,
        max_concurrent_pages: int = 4,
        labeler_timeout: float = 60.0
    ):
        """
        Initialize the pipeline.
        
        Args:
            ocr_service: Object with analyze(pdf_bytes) -> analyze result dict
            labeler: Semantic labeler (None sends every page to the fallback path)
            extractor: Per-page extractor (defaults to one with bundled lexicons)
            page_geometry_reader: pdf_bytes -> {page_number: PageGeometry}
            page_renderer: (pdf_bytes, page_number) -> base64 PNG or None
            max_concurrent_pages: Pages labeled at the same time
            labeler_timeout: Per-page labeling timeout in seconds
        """
        self.ocr_service = ocr_service
        self.labeler = labeler
        self.extractor = extractor or PageFieldExtractor()
        self.page_geometry_reader = page_geometry_reader
        self.page_renderer = page_renderer
        self.max_concurrent_pages = max(1, max_concurrent_pages)
        self.labeler_timeout = labeler_timeout
    
    @classmethod
    def from_config(cls, rate_limiter: Optional[Any] = None) -> 'FieldLayoutPipeline':
        """
        Build the production pipeline from Config.
        
        Raises:
            ValueError: If the OCR service is not configured
        """
        from field_layout.config import Config
        from field_layout.services.document_intelligence_service import DocumentIntelligenceService
        from field_layout.utils.pdf_handler import PDFHandler
        
        labeler = SemanticLabeler(
            api_key=Config.SEMANTIC_LABELER_API_KEY,
            api_base=Config.SEMANTIC_LABELER_API_BASE,
            model_name=Config.SEMANTIC_LABELER_MODEL,
            timeout=Config.SEMANTIC_LABELER_TIMEOUT,
            rate_limiter=rate_limiter
        )
        dpi = Config.PAGE_RENDER_DPI
        
        return cls(
            ocr_service=DocumentIntelligenceService(rate_limiter=rate_limiter),
            labeler=labeler,
            extractor=PageFieldExtractor.from_config(),
            page_geometry_reader=PDFHandler.page_geometries,
            page_renderer=lambda pdf_bytes, page_number: PDFHandler.render_page_base64(pdf_bytes, page_number, dpi),
            max_concurrent_pages=Config.MAX_CONCURRENT_PAGES,
            labeler_timeout=Config.SEMANTIC_LABELER_TIMEOUT
        )
    
    def _label_page_sync(self, pdf_bytes: bytes, page: OcrPage) -> SemanticAnalysis:
        if self.labeler is None:
            raise SemanticAnalysisFailed(page.page_number, "no semantic labeler configured")
        image = self.page_renderer(pdf_bytes, page.page_number) if self.page_renderer else None
        return self.labeler.label_page(page, image)
    
    async def _analyze_page(self, pdf_bytes: bytes, page: OcrPage) -> SemanticAnalysis:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._label_page_sync, pdf_bytes, page),
                timeout=self.labeler_timeout
            )
        except asyncio.TimeoutError:
            return SemanticAnalysis.failed(SemanticAnalysisFailed(
                page.page_number, f"semantic labeling timed out after {self.labeler_timeout}s"
            ))
        except SemanticAnalysisFailed as e:
            return SemanticAnalysis.failed(e)
        except Exception as e:
            logger.error(f"Semantic labeler raised on page {page.page_number}: {e}")
            return SemanticAnalysis.failed(SemanticAnalysisFailed(page.page_number, str(e)))
    
    async def _process_page(
        self,
        pdf_bytes: bytes,
        page: OcrPage,
        semaphore: asyncio.Semaphore,
        completed: List[PageResult]
    ) -> PageResult:
        async with semaphore:
            analysis = await self._analyze_page(pdf_bytes, page)
        result = self.extractor.extract(page, analysis)
        completed.append(result)
        return result
    
    async def aprocess_pdf(
        self,
        pdf_bytes: bytes,
        document_id: Optional[str] = None,
        completed: Optional[List[PageResult]] = None
    ) -> DocumentResult:
        """
        Process a PDF through the full pipeline.
        
        Args:
            pdf_bytes: PDF file as bytes
            document_id: Optional document identifier
            completed: Optional list that receives each PageResult as soon as
                its page finishes; still valid after cancellation
        
        Returns:
            DocumentResult with fields in tab order
        
        Raises:
            DocumentUnreadable: If no page geometry can be determined or OCR fails
        """
        document_id = document_id or str(uuid.uuid4())
        completed = completed if completed is not None else []
        
        page_geometries = self.page_geometry_reader(pdf_bytes) if self.page_geometry_reader else {}
        analyze_result = await asyncio.to_thread(self.ocr_service.analyze, pdf_bytes)
        pages = parse_analyze_result(analyze_result, page_geometries)
        
        logger.info(f"Processing document {document_id}: {len(pages)} pages")
        
        semaphore = asyncio.Semaphore(self.max_concurrent_pages)
        tasks = [
            asyncio.ensure_future(self._process_page(pdf_bytes, page, semaphore, completed))
            for page in pages.values()
        ]
        
        try:
            page_results = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            logger.warning(
                f"Document {document_id} cancelled with {len(completed)}/{len(tasks)} pages complete"
            )
            raise
        
        result = assemble_document(document_id, list(page_results))
        logger.info(
            f"Document {document_id}: {len(result.fields)} fields, "
            f"{len(result.statistics['fallback_pages'])} pages on fallback"
        )
        return result
    
    def process_pdf(self, pdf_bytes: bytes, document_id: Optional[str] = None) -> DocumentResult:
        """Synchronous wrapper around aprocess_pdf."""
        return asyncio.run(self.aprocess_pdf(pdf_bytes, document_id))


def layout_from_analyze_result(
    analyze_result: Dict[str, Any],
    semantic_payloads: Optional[Dict[int, Any]] = None,
    page_geometries: Optional[Dict] = None,
    document_id: Optional[str] = None,
    extractor: Optional[PageFieldExtractor] = None
) -> DocumentResult:
    """
    Pure transformation of pre-extracted OCR and semantic data.
    
    Args:
        analyze_result: OCR analyze result dict
        semantic_payloads: page number -> semantic JSON payload; pages
            without one, or with an invalid one, take the fallback path
        page_geometries: Optional upright page dimensions
        document_id: Optional document identifier
        extractor: Per-page extractor (defaults to one with bundled lexicons)
    
    Raises:
        DocumentUnreadable: If no page geometry can be determined
    """
    document_id = document_id or str(uuid.uuid4())
    semantic_payloads = semantic_payloads or {}
    extractor = extractor or PageFieldExtractor()
    pages = parse_analyze_result(analyze_result, page_geometries)
    
    page_results = []
    for page_number, page in pages.items():
        if page_number in semantic_payloads:
            analysis = SemanticAnalysis.from_payload(page_number, semantic_payloads[page_number])
        else:
            analysis = SemanticAnalysis.failed(
                SemanticAnalysisFailed(page_number, "no semantic analysis supplied")
            )
        page_results.append(extractor.extract(page, analysis))
    
    return assemble_document(document_id, page_results)
