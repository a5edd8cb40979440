"""
Row aggregation of label candidates.

Candidates are grouped greedily into reading rows by vertical centre and
each row is ordered the way it is read: rightmost-first when the row holds
right-to-left script, leftmost-first otherwise.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from .geometry import Box
from .label_classifier import LabelCandidate
from .lexicon import Direction, detect_direction

logger = logging.getLogger(__name__)

DEFAULT_ROW_TOLERANCE = 8.0


def _same_label(a: Box, b: Box) -> bool:
    return a.contains(b) or b.contains(a)


@dataclass
class LabelRow:
    """Label candidates sharing one reading row, in reading order."""
    row_id: int
    candidates: List[LabelCandidate] = field(default_factory=list)
    direction: Direction = Direction.LTR
    
    @property
    def boxes(self) -> List[Box]:
        return [c.box for c in self.candidates]
    
    @property
    def center_y(self) -> float:
        return sum(c.box.center_y for c in self.candidates) / len(self.candidates)


def group_rows(
    candidates: List[LabelCandidate],
    tolerance: float = DEFAULT_ROW_TOLERANCE
) -> List[LabelRow]:
    """
    Group candidates into rows.
    
    Takes the first unconsumed candidate as a seed and collects every other
    unconsumed candidate whose vertical centre is within tolerance of the
    seed's; repeats until all are consumed.
    
    Returns:
        Rows in seed order, each sorted by reading direction and with
        row_id stamped on its candidates
    """
    rows: List[LabelRow] = []
    consumed = [False] * len(candidates)
    
    for i, seed in enumerate(candidates):
        if consumed[i]:
            continue
        consumed[i] = True
        members = [seed]
        
        for j in range(i + 1, len(candidates)):
            if consumed[j]:
                continue
            if abs(candidates[j].box.center_y - seed.box.center_y) < tolerance:
                consumed[j] = True
                members.append(candidates[j])
        
        row_text = ' '.join(m.text for m in members)
        direction = detect_direction(row_text)
        members.sort(key=lambda m: m.box.x, reverse=(direction == Direction.RTL))
        
        row_id = len(rows)
        rows.append(LabelRow(
            row_id=row_id,
            candidates=[replace(m, row_id=row_id) for m in members],
            direction=direction
        ))
    
    return rows


class LabelLayout:
    """Rows of label candidates on one page, queried by the field locator."""
    
    def __init__(self, rows: List[LabelRow], tolerance: float = DEFAULT_ROW_TOLERANCE):
        self.rows = rows
        self.tolerance = tolerance
    
    @classmethod
    def build(cls, candidates: List[LabelCandidate], tolerance: float = DEFAULT_ROW_TOLERANCE) -> 'LabelLayout':
        return cls(group_rows(candidates, tolerance), tolerance)
    
    @property
    def candidates(self) -> List[LabelCandidate]:
        return [c for row in self.rows for c in row.candidates]
    
    def row_of(self, anchor: Box) -> Optional[LabelRow]:
        """
        The row an anchor belongs to.
        
        A candidate counts as the anchor itself when either box contains the
        other. Anchors that are not candidates (table cells) join the row whose
        centre is nearest, if it is within tolerance.
        """
        for row in self.rows:
            if any(_same_label(box, anchor) for box in row.boxes):
                return row
        
        nearest = min(self.rows, key=lambda r: abs(r.center_y - anchor.center_y), default=None)
        if nearest is not None and abs(nearest.center_y - anchor.center_y) < self.tolerance:
            return nearest
        return None
    
    def neighbors_of(self, anchor: Box) -> List[Box]:
        """Boxes of the other labels in the anchor's row, in reading order."""
        row = self.row_of(anchor)
        if row is None:
            return []
        return [box for box in row.boxes if not _same_label(box, anchor)]
    
    def __len__(self) -> int:
        return len(self.rows)
