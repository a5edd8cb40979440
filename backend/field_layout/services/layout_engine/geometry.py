"""
Page Geometry
=============

Coordinate normalization and the position primitives shared by every stage.

Coordinate system:
------------------
All normalized geometry is in page points (1/72 inch) with a BOTTOM-LEFT
origin, matching PDF user space. The OCR provider reports 4-corner polygons
clockwise from top-left in its own length unit (inches for PDF input,
pixels for image input) with a TOP-LEFT origin; normalize_polygon converts
between the two.

Position keys:
--------------
Deduplication treats two fields as the same physical field when their
quantized (page, x-bucket, y-bucket) keys collide. The bucket sizes
(10pt horizontal / 5pt vertical) are an empirical default; on dense forms
they can merge genuinely distinct neighbours, so they are configurable via
PositionQuantization.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Set

logger = logging.getLogger(__name__)

POINTS_PER_INCH = 72.0

# Substituted for malformed polygons so downstream stages still have a box
PLACEHOLDER_WIDTH = 50.0
PLACEHOLDER_HEIGHT = 20.0

# Horizontal margins as fractions of page width
LEFT_MARGIN_RATIO = 0.05
RIGHT_MARGIN_RATIO = 0.95


def _round2(value: float) -> float:
    return round(float(value), 2)


@dataclass(frozen=True)
class PageGeometry:
    """
    Upright page dimensions in points.
    
    Rotation is already applied: width/height describe the page as it
    is visually read.
    """
    page_number: int
    width: float
    height: float
    
    @property
    def left_margin(self) -> float:
        return self.width * LEFT_MARGIN_RATIO
    
    @property
    def right_margin(self) -> float:
        return self.width * RIGHT_MARGIN_RATIO


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned rectangle in page points, bottom-left origin.
    
    Values are rounded to 2 decimals on construction so equal geometry
    compares equal; negative sizes are clamped to zero.
    """
    x: float
    y: float
    width: float
    height: float
    
    def __post_init__(self):
        object.__setattr__(self, 'x', _round2(self.x))
        object.__setattr__(self, 'y', _round2(self.y))
        object.__setattr__(self, 'width', _round2(max(0.0, self.width)))
        object.__setattr__(self, 'height', _round2(max(0.0, self.height)))
    
    @property
    def right(self) -> float:
        """X coordinate of right edge."""
        return self.x + self.width
    
    @property
    def top(self) -> float:
        """Y coordinate of top edge (bottom-left origin, so y + height)."""
        return self.y + self.height
    
    @property
    def center_x(self) -> float:
        return self.x + self.width / 2
    
    @property
    def center_y(self) -> float:
        return self.y + self.height / 2
    
    @property
    def area(self) -> float:
        return self.width * self.height
    
    def manhattan_distance(self, other: 'Box') -> float:
        """Distance between the two boxes' origins along both axes."""
        return abs(self.x - other.x) + abs(self.y - other.y)
    
    def intersection_area(self, other: 'Box') -> float:
        x_overlap = max(0.0, min(self.right, other.right) - max(self.x, other.x))
        y_overlap = max(0.0, min(self.top, other.top) - max(self.y, other.y))
        return x_overlap * y_overlap
    
    def contains(self, other: 'Box', tolerance: float = 1.0) -> bool:
        """True if other lies inside this box (with a small tolerance)."""
        return (
            other.x >= self.x - tolerance and
            other.right <= self.right + tolerance and
            other.y >= self.y - tolerance and
            other.top <= self.top + tolerance
        )
    
    def with_min_size(self, min_width: float, min_height: float) -> 'Box':
        return Box(
            x=self.x,
            y=self.y,
            width=max(self.width, min_width),
            height=max(self.height, min_height)
        )
    
    def to_dict(self) -> Dict[str, float]:
        return {
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height
        }
    
    @classmethod
    def union(cls, boxes: Sequence['Box']) -> 'Box':
        """Smallest box covering all given boxes."""
        x_min = min(b.x for b in boxes)
        y_min = min(b.y for b in boxes)
        x_max = max(b.right for b in boxes)
        y_max = max(b.top for b in boxes)
        return cls(x=x_min, y=y_min, width=x_max - x_min, height=y_max - y_min)


PLACEHOLDER_BOX = Box(x=0, y=0, width=PLACEHOLDER_WIDTH, height=PLACEHOLDER_HEIGHT)


def is_complete_polygon(polygon: Optional[Sequence[float]]) -> bool:
    """True if the polygon has all four corners."""
    return bool(polygon) and len(polygon) >= 8


def normalize_polygon(
    polygon: Optional[Sequence[float]],
    page: PageGeometry,
    unit_scale: float = POINTS_PER_INCH
) -> Box:
    """
    Convert an OCR bounding polygon to a bottom-left-origin Box in points.
    
    Args:
        polygon: [x1, y1, ..., x4, y4] clockwise from top-left, provider units
        page: Upright page geometry in points
        unit_scale: Points per provider length unit (72 for inches)
    
    Returns:
        Normalized Box. Malformed polygons (fewer than 8 numbers) yield
        PLACEHOLDER_BOX rather than an error.
    """
    if not is_complete_polygon(polygon):
        logger.debug(
            f"Page {page.page_number}: bounding polygon has {len(polygon or [])} numbers, "
            f"using placeholder box"
        )
        return PLACEHOLDER_BOX
    
    xs = [float(v) for v in polygon[0:8:2]]
    ys = [float(v) for v in polygon[1:8:2]]
    
    # min/max over all corners handles skewed and rotated boxes
    x_min = min(xs) * unit_scale
    x_max = max(xs) * unit_scale
    y_min = min(ys) * unit_scale
    y_max = max(ys) * unit_scale
    
    # Flip from top-left origin to bottom-left origin
    y = min(max(page.height - y_max, 0.0), page.height)
    
    return Box(x=x_min, y=y, width=x_max - x_min, height=y_max - y_min)


def clamp_to_margins(box: Box, page: PageGeometry) -> Box:
    """
    Keep a box inside the page's horizontal margins.
    
    A box narrower than the margin span is shifted inward keeping its size;
    a wider one is trimmed to the span.
    """
    left = page.left_margin
    right = page.right_margin
    span = right - left
    
    if box.width <= span:
        x = min(max(box.x, left), right - box.width)
        return Box(x=x, y=box.y, width=box.width, height=box.height)
    
    return Box(x=left, y=box.y, width=span, height=box.height)


@dataclass(frozen=True)
class PositionQuantization:
    """Bucket sizes (points) and neighbour tolerance (buckets) for position keys."""
    x_bucket: float = 10.0
    y_bucket: float = 5.0
    tolerance: int = 0


DEFAULT_QUANTIZATION = PositionQuantization()


def _bucket(value: float, size: float) -> int:
    # Round half up so 12.5 and 13.0 land in the same bucket regardless of parity
    return int(math.floor(value / size + 0.5))


@dataclass(frozen=True)
class PositionKey:
    """Quantized field position used purely for deduplication."""
    page_number: int
    column: int
    row: int
    
    @classmethod
    def from_box(
        cls,
        page_number: int,
        box: Box,
        quantization: PositionQuantization = DEFAULT_QUANTIZATION
    ) -> 'PositionKey':
        return cls(
            page_number=page_number,
            column=_bucket(box.x, quantization.x_bucket),
            row=_bucket(box.y, quantization.y_bucket)
        )
    
    def collides_with(self, other: 'PositionKey', tolerance: int = 0) -> bool:
        return (
            self.page_number == other.page_number and
            abs(self.column - other.column) <= tolerance and
            abs(self.row - other.row) <= tolerance
        )


@dataclass
class PositionReservations:
    """
    Position keys already claimed by emitted fields on one page.
    
    Created per page and handed from one fusion pass to the next.
    """
    quantization: PositionQuantization = DEFAULT_QUANTIZATION
    keys: Set[PositionKey] = field(default_factory=set)
    
    def key_for(self, page_number: int, box: Box) -> PositionKey:
        return PositionKey.from_box(page_number, box, self.quantization)
    
    def collides(self, key: PositionKey) -> bool:
        if key in self.keys:
            return True
        if self.quantization.tolerance <= 0:
            return False
        return any(key.collides_with(k, self.quantization.tolerance) for k in self.keys)
    
    def reserve(self, key: PositionKey) -> None:
        self.keys.add(key)
    
    def try_reserve(self, key: PositionKey) -> bool:
        """Reserve the key unless it collides; returns True on success."""
        if self.collides(key):
            return False
        self.reserve(key)
        return True
    
    def __len__(self) -> int:
        return len(self.keys)
