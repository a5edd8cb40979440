"""
Label resolution: tie a semantically reported label back to OCR text.

The semantic collaborator is asked to copy label text verbatim from the OCR
inventory, but in practice it trims colons, joins or splits words and drops
niqqud. Matching therefore runs in three tiers, each only attempted when
the previous one found nothing:

    1. line-level similarity >= 0.85
    2. word-level similarity >= 0.85 (label is a sub-span of a longer line)
    3. substring containment against lines, either direction, ignoring
       spacing, diacritics and case
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .ocr_page import Granularity, TextSpan

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.85
SUBSTRING_SCORE = 0.7

TRAILING_PUNCTUATION = re.compile(r'[:\s׃：]+$')
WHITESPACE = re.compile(r'\s+')


def _clean(text: str) -> str:
    cleaned = TRAILING_PUNCTUATION.sub('', (text or '').strip())
    return WHITESPACE.sub(' ', cleaned)


def _compact(text: str) -> str:
    return WHITESPACE.sub('', strip_diacritics(_clean(text))).casefold()


def strip_diacritics(text: str) -> str:
    """Remove combining marks (niqqud, accents) after canonical decomposition."""
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def text_similarity(a: str, b: str) -> float:
    """
    Score how well two label strings match, 0 to 1.
    
    Exact match after trimming trailing colons/whitespace scores 1.0,
    containment 0.9, equality ignoring diacritics and case 0.95,
    containment ignoring diacritics and case 0.85, anything else 0.
    """
    clean_a = _clean(a)
    clean_b = _clean(b)
    
    if not clean_a or not clean_b:
        return 1.0 if clean_a == clean_b else 0.0
    
    if clean_a == clean_b:
        return 1.0
    if clean_a in clean_b or clean_b in clean_a:
        return 0.9
    
    norm_a = strip_diacritics(clean_a).casefold()
    norm_b = strip_diacritics(clean_b).casefold()
    if norm_a == norm_b:
        return 0.95
    if norm_a and norm_b and (norm_a in norm_b or norm_b in norm_a):
        return 0.85
    
    return 0.0


@dataclass(frozen=True)
class LabelMatch:
    """An OCR span resolved for a semantic label."""
    span: TextSpan
    score: float
    tier: int


def _best_match(label_text: str, spans: Sequence[TextSpan], tier: int) -> Optional[LabelMatch]:
    best = None
    for span in spans:
        score = text_similarity(label_text, span.content)
        if score >= MATCH_THRESHOLD and (best is None or score > best.score):
            best = LabelMatch(span=span, score=score, tier=tier)
    return best


def resolve_label(label_text: str, spans: Sequence[TextSpan]) -> Optional[LabelMatch]:
    """
    Find the OCR span a semantic label refers to.
    
    Args:
        label_text: Label text reported by the semantic collaborator
        spans: The page's OCR lines and words
    
    Returns:
        LabelMatch for the best span of the first successful tier, or None.
        Within a tier the highest score wins; ties keep the earlier span.
    """
    if not _clean(label_text):
        return None
    
    lines: List[TextSpan] = [s for s in spans if s.granularity == Granularity.LINE]
    words: List[TextSpan] = [s for s in spans if s.granularity == Granularity.WORD]
    
    match = _best_match(label_text, lines, tier=1)
    if match:
        return match
    
    match = _best_match(label_text, words, tier=2)
    if match:
        return match
    
    # OCR often drops or inserts spaces inside labels
    needle = _compact(label_text)
    for line in lines:
        content = _compact(line.content)
        if content and (needle in content or content in needle):
            return LabelMatch(span=line, score=SUBSTRING_SCORE, tier=3)
    
    return None
