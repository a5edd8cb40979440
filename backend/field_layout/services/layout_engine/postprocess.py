"""
Document-level post-processing of fused fields: page boundary validation
and tab order.
"""

import logging
from collections import Counter
from typing import Dict, List

from .fusion import ExtractedField
from .geometry import Box, PageGeometry, clamp_to_margins
from .lexicon import Direction

logger = logging.getLogger(__name__)

TAB_ROW_TOLERANCE = 10.0


def validate_boundaries(fields: List[ExtractedField], page: PageGeometry) -> List[ExtractedField]:
    """
    Keep fields inside their page.
    
    Boxes are trimmed to the page vertically and kept inside the margins
    horizontally. Fields with no area, or lying entirely above the page,
    are dropped.
    """
    valid = []
    for f in fields:
        box = f.box
        if box.width <= 0 or box.height <= 0 or box.y >= page.height:
            logger.info(
                f"Page {page.page_number}: dropping field '{f.name}' outside page bounds "
                f"({box.to_dict()})"
            )
            continue
        
        y = max(box.y, 0.0)
        top = min(box.top, page.height)
        trimmed = clamp_to_margins(
            Box(x=box.x, y=y, width=box.width, height=top - y),
            page
        )
        if trimmed.area <= 0:
            logger.info(f"Page {page.page_number}: dropping field '{f.name}' with no area after trimming")
            continue
        
        if trimmed != box:
            logger.debug(f"Page {page.page_number}: adjusted field '{f.name}' to {trimmed.to_dict()}")
            f.box = trimmed
        valid.append(f)
    
    return valid


def document_direction(fields: List[ExtractedField]) -> Direction:
    """Majority direction of the fields; LTR on a tie or no fields."""
    counts = Counter(f.direction for f in fields)
    if counts[Direction.RTL] > counts[Direction.LTR]:
        return Direction.RTL
    return Direction.LTR


def assign_tab_order(fields: List[ExtractedField]) -> List[ExtractedField]:
    """
    Assign 1-based tab indexes across the document.
    
    Order is page, then rows from the top of the page down (fields whose
    top edges are within 10pt share a row), then right-to-left within a
    row for an RTL document and left-to-right otherwise.
    
    Returns:
        The fields in tab order
    """
    direction = document_direction(fields)
    by_page: Dict[int, List[ExtractedField]] = {}
    for f in fields:
        by_page.setdefault(f.page_number, []).append(f)
    
    ordered: List[ExtractedField] = []
    for page_number in sorted(by_page):
        rows: List[List[ExtractedField]] = []
        for f in sorted(by_page[page_number], key=lambda f: -f.box.top):
            if rows and abs(rows[-1][0].box.top - f.box.top) <= TAB_ROW_TOLERANCE:
                rows[-1].append(f)
            else:
                rows.append([f])
        
        for row in rows:
            row.sort(key=lambda f: f.box.x, reverse=(direction == Direction.RTL))
            ordered.extend(row)
    
    for index, f in enumerate(ordered, start=1):
        f.tab_index = index
    
    return ordered
