"""
Fallback path for pages whose semantic analysis failed.

Every colon-terminated OCR line is taken as a label and given one text
field beside it using the field locator's generic strip. Key-value pairs
with a value box are still emitted first, as on the semantic path.
"""

import logging

from .confidence import ConfidenceScorer
from .descriptors import InputType
from .field_locator import generic_strip
from .fusion import FusionEngine, PageAssembly, Provenance
from .lexicon import detect_direction
from .ocr_page import OcrPage

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.5


class FallbackController:
    """Builds a page's field list from OCR lines alone."""
    
    def __init__(self, engine: FusionEngine, confidence: float = FALLBACK_CONFIDENCE):
        self.engine = engine
        self.confidence = confidence
    
    @property
    def scorer(self) -> ConfidenceScorer:
        return self.engine.scorer
    
    def add_colon_lines(self, assembly: PageAssembly) -> int:
        """One generic text field per colon-terminated line. Returns fields added."""
        lexicon = self.engine.lexicon
        score = self.scorer.flat(self.confidence)
        added = 0
        
        for line in assembly.page.lines:
            content = line.content.strip()
            if not content or not lexicon.ends_with_colon(content):
                continue
            
            box = generic_strip(line.box, detect_direction(content), assembly.geometry)
            candidate = self.engine.make_field(
                assembly, InputType.TEXT, box, content, score, Provenance.FALLBACK
            )
            if assembly.add(candidate):
                added += 1
        
        return added
    
    def run(self, page: OcrPage) -> PageAssembly:
        """Fallback path: pass 1 plus colon-line fields for one page."""
        assembly = self.engine.start(page)
        kv_count = self.engine.add_key_value_pairs(assembly)
        fallback_count = self.add_colon_lines(assembly)
        
        logger.info(
            f"Page {page.page_number}: fallback produced {fallback_count} fields "
            f"({kv_count} key-value fields kept)"
        )
        return assembly
