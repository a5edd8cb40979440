"""
Label classification over OCR text lines.

A line is a label when it ends with a colon glyph or matches the label
lexicon. Lines that are not labels as a whole may still hold several short
prompts side by side ("שם הסוכן:     מס׳ הסוכן:"); for those the words lying
on the line are scanned and accumulated until the buffer reads as a label.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .geometry import Box
from .lexicon import Direction, LabelLexicon, detect_direction
from .ocr_page import OcrPage, TextSpan

logger = logging.getLogger(__name__)

# Word-to-line membership: vertical slack in line heights, horizontal slack in points
LINE_MEMBERSHIP_HEIGHTS = 1.5
LINE_MEMBERSHIP_SLACK = 2.0


@dataclass(frozen=True)
class LabelCandidate:
    """OCR text believed to be a form label."""
    text: str
    box: Box
    row_id: Optional[int] = None
    
    @property
    def direction(self) -> Direction:
        return detect_direction(self.text)


class LabelClassifier:
    """Finds label candidates among a page's OCR lines and words."""
    
    def __init__(self, lexicon: LabelLexicon):
        self.lexicon = lexicon
    
    def is_label(self, text: str) -> bool:
        """True if the trimmed text ends with a colon glyph or matches the lexicon."""
        trimmed = (text or '').strip()
        if not trimmed:
            return False
        return self.lexicon.ends_with_colon(trimmed) or self.lexicon.matches_label(trimmed)
    
    def words_on_line(self, line: TextSpan, words: List[TextSpan]) -> List[TextSpan]:
        """Words whose box lies on the given line, in OCR order."""
        members = []
        for word in words:
            if not word.geometry_available:
                continue
            if (
                abs(word.box.y - line.box.y) < line.box.height * LINE_MEMBERSHIP_HEIGHTS and
                line.box.x - LINE_MEMBERSHIP_SLACK <= word.box.x <= line.box.right + LINE_MEMBERSHIP_SLACK
            ):
                members.append(word)
        return members
    
    def split_line(self, words: List[TextSpan]) -> List[LabelCandidate]:
        """
        Word-level scan of one line.
        
        Words accumulate into a buffer; whenever the buffer ends with a colon
        glyph or reads as a lexicon label it becomes one candidate and the
        buffer starts over. Trailing words that never form a label are dropped.
        """
        candidates = []
        buffer: List[TextSpan] = []
        
        for word in words:
            content = word.content.strip()
            if not content:
                continue
            buffer.append(word)
            text = ' '.join(w.content.strip() for w in buffer)
            
            if self.lexicon.ends_with_colon(content) or self.lexicon.matches_label(text):
                candidates.append(LabelCandidate(
                    text=text,
                    box=Box.union([w.box for w in buffer])
                ))
                buffer = []
        
        return candidates
    
    def extract_candidates(self, page: OcrPage) -> List[LabelCandidate]:
        """
        All label candidates on a page.
        
        Lines without usable geometry are skipped; they cannot anchor a field.
        """
        candidates = []
        
        for line in page.lines:
            content = line.content.strip()
            if not content or not line.geometry_available:
                continue
            
            if self.is_label(content):
                candidates.append(LabelCandidate(text=content, box=line.box))
                continue
            
            if page.words:
                candidates.extend(self.split_line(self.words_on_line(line, page.words)))
        
        logger.debug(f"Page {page.page_number}: {len(candidates)} label candidates")
        return candidates
