"""
Field Locator
=============

Computes where the fillable region of a field sits, given its label's box.

Each FieldKind has its own positioning rule, registered in LOCATORS. The
registry is checked against FieldKind at import time so a new kind cannot
silently fall through to a default.

All coordinates are page points, bottom-left origin. "Near" edges face the
label, "far" edges face away from it.
"""

import logging
from typing import Callable, Dict, List, Optional

from .descriptors import FieldKind
from .geometry import Box, PageGeometry, clamp_to_margins
from .lexicon import Direction

logger = logging.getLogger(__name__)

# Gap between a label and the far boundary / a facing neighbour
GAP = 5.0
# Gap between a label edge and the near edge of its input strip
NEAR_GAP = 3.0
MIN_STRIP_WIDTH = 50.0
STRIP_HEIGHT = 20.0

TITLE_BOX_HEIGHT = 35.0
TITLE_BOX_MIN_WIDTH = 80.0
TITLE_BOX_WIDTH_RATIO = 1.5

DIGIT_BOXES_MAX_WIDTH = 200.0
DIGIT_BOXES_HEIGHT = 22.0

TABLE_CELL_MIN_WIDTH = 50.0
TABLE_CELL_MIN_HEIGHT = 18.0

SELECTION_MARK_SIZE = 15.0

GENERIC_WIDTH = 140.0
GENERIC_RTL_OFFSET = 150.0


def _strip_beside_label(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    """Input strip running from the label to the nearest neighbour or margin."""
    if direction == Direction.RTL:
        near_edge = anchor.x - NEAR_GAP
        far_edge = page.left_margin
        for other in neighbors:
            if far_edge < other.right < anchor.x:
                far_edge = other.right + GAP
        width = near_edge - far_edge
        if width < MIN_STRIP_WIDTH:
            far_edge = max(page.left_margin, near_edge - MIN_STRIP_WIDTH)
            width = max(near_edge - far_edge, MIN_STRIP_WIDTH)
        return Box(x=far_edge, y=anchor.y, width=width, height=STRIP_HEIGHT)
    
    near_edge = anchor.right + NEAR_GAP
    far_edge = page.right_margin
    for other in neighbors:
        if anchor.right < other.x < far_edge:
            far_edge = other.x - GAP
    width = far_edge - near_edge
    if width < MIN_STRIP_WIDTH:
        width = MIN_STRIP_WIDTH
    return Box(x=near_edge, y=anchor.y, width=width, height=STRIP_HEIGHT)


def _underline(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    return _strip_beside_label(anchor, direction, neighbors, page)


def _title_right(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    return _strip_beside_label(anchor, direction, neighbors, page)


def _box_with_title(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    # Title sits under the box, so the box is above the label
    width = max(anchor.width * TITLE_BOX_WIDTH_RATIO, TITLE_BOX_MIN_WIDTH)
    return Box(
        x=anchor.center_x - width / 2,
        y=anchor.top + GAP,
        width=width,
        height=TITLE_BOX_HEIGHT
    )


def _digit_boxes(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    if direction == Direction.RTL:
        width = min(anchor.x - page.left_margin - GAP, DIGIT_BOXES_MAX_WIDTH)
        width = max(width, MIN_STRIP_WIDTH)
        return Box(x=anchor.x - width - GAP, y=anchor.y, width=width, height=DIGIT_BOXES_HEIGHT)
    
    x = anchor.right + GAP
    width = max(min(page.right_margin - x, DIGIT_BOXES_MAX_WIDTH), MIN_STRIP_WIDTH)
    return Box(x=x, y=anchor.y, width=width, height=DIGIT_BOXES_HEIGHT)


def _table_cell(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    return anchor.with_min_size(TABLE_CELL_MIN_WIDTH, TABLE_CELL_MIN_HEIGHT)


def _selection_mark(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    # Only reached when no OCR selection mark was found on the page
    return Box(x=anchor.x, y=anchor.y, width=SELECTION_MARK_SIZE, height=SELECTION_MARK_SIZE)


def _generic(anchor: Box, direction: Direction, neighbors: List[Box], page: PageGeometry) -> Box:
    if direction == Direction.RTL:
        x = max(page.left_margin, anchor.x - GENERIC_RTL_OFFSET)
    else:
        x = anchor.right + GAP
    return Box(x=x, y=anchor.y, width=GENERIC_WIDTH, height=STRIP_HEIGHT)


LocatorFn = Callable[[Box, Direction, List[Box], PageGeometry], Box]

LOCATORS: Dict[FieldKind, LocatorFn] = {
    FieldKind.UNDERLINE: _underline,
    FieldKind.TITLE_RIGHT: _title_right,
    FieldKind.BOX_WITH_TITLE: _box_with_title,
    FieldKind.DIGIT_BOXES: _digit_boxes,
    FieldKind.TABLE_CELL: _table_cell,
    FieldKind.SELECTION_MARK: _selection_mark,
    FieldKind.GENERIC: _generic,
}

_missing_kinds = set(FieldKind) - set(LOCATORS)
if _missing_kinds:
    raise RuntimeError(f"No locator registered for field kinds: {sorted(k.value for k in _missing_kinds)}")


def position_field(
    kind: FieldKind,
    direction: Direction,
    anchor: Box,
    row_neighbors: Optional[List[Box]],
    page: PageGeometry
) -> Box:
    """
    Compute the input region for a field.
    
    Args:
        kind: Visual layout of the field
        direction: Reading direction of the field's label
        anchor: The label's box
        row_neighbors: Boxes of other labels on the same row
        page: Page geometry (margins are 5%/95% of its width)
    
    Returns:
        Input box clamped inside the page margins
    """
    box = LOCATORS[kind](anchor, direction, row_neighbors or [], page)
    return clamp_to_margins(box, page)


def generic_strip(anchor: Box, direction: Direction, page: PageGeometry) -> Box:
    """Direction-aware default strip beside a label, used by the fallback path."""
    return position_field(FieldKind.GENERIC, direction, anchor, None, page)
