"""
OCR Page Model
==============

Immutable per-page view of the OCR collaborator's output, with every
polygon already normalized to bottom-left-origin page points.

parse_analyze_result() consumes the layout analysis result (as a plain
dict, camelCase keys) returned by the OCR service:

    {
      "pages": [{"pageNumber": 1, "width": 8.27, "height": 11.69, "unit": "inch",
                 "lines": [{"content": ..., "polygon": [...]}],
                 "words": [...], "selectionMarks": [...]}],
      "tables": [{"rowCount": .., "columnCount": .., "cells": [...]}],
      "keyValuePairs": [{"key": {...}, "value": {...}, "confidence": ..}]
    }
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DocumentUnreadable
from .geometry import (
    Box, PageGeometry, POINTS_PER_INCH,
    is_complete_polygon, normalize_polygon
)

logger = logging.getLogger(__name__)

DEFAULT_KV_CONFIDENCE = 0.8
DEFAULT_MARK_CONFIDENCE = 0.5


class Granularity(str, Enum):
    """OCR text span granularity."""
    LINE = "line"
    WORD = "word"


class SelectionState(str, Enum):
    """Checked state of an OCR selection mark."""
    SELECTED = "selected"
    UNSELECTED = "unselected"
    
    @classmethod
    def parse(cls, value: Optional[str]) -> 'SelectionState':
        if value and value.lower() in ('selected', 'checked'):
            return cls.SELECTED
        return cls.UNSELECTED


@dataclass(frozen=True)
class TextSpan:
    """A line or word of OCR text with its position."""
    content: str
    box: Box
    granularity: Granularity
    geometry_available: bool = True


@dataclass(frozen=True)
class SelectionMark:
    """An OCR-detected checkbox / radio mark."""
    state: SelectionState
    box: Box
    confidence: float
    geometry_available: bool = True


@dataclass(frozen=True)
class KeyValuePair:
    """An OCR-detected label ("key") and its adjacent value region."""
    key_text: str
    value_text: str
    confidence: float
    key_box: Optional[Box] = None
    value_box: Optional[Box] = None


@dataclass(frozen=True)
class TableCell:
    row_index: int
    column_index: int
    content: str
    box: Box
    kind: Optional[str] = None


@dataclass(frozen=True)
class OcrTable:
    row_count: int
    column_count: int
    cells: List[TableCell] = field(default_factory=list)


@dataclass
class OcrPage:
    """Everything the OCR collaborator reported for one page."""
    geometry: PageGeometry
    lines: List[TextSpan] = field(default_factory=list)
    words: List[TextSpan] = field(default_factory=list)
    tables: List[OcrTable] = field(default_factory=list)
    selection_marks: List[SelectionMark] = field(default_factory=list)
    key_value_pairs: List[KeyValuePair] = field(default_factory=list)
    
    @property
    def page_number(self) -> int:
        return self.geometry.page_number
    
    @property
    def spans(self) -> List[TextSpan]:
        return self.lines + self.words
    
    def cell_containing(self, box: Box) -> Optional[TableCell]:
        """The table cell enclosing a box, if any."""
        for table in self.tables:
            for cell in table.cells:
                if cell.box.contains(box):
                    return cell
        return None
    
    def summary(self) -> str:
        return (
            f"{len(self.lines)} lines, {len(self.words)} words, "
            f"{len(self.tables)} tables, {len(self.selection_marks)} selection marks, "
            f"{len(self.key_value_pairs)} key-value pairs"
        )


def _unit_scale(raw_page: Dict[str, Any], geometry: PageGeometry) -> float:
    """Points per provider unit for one OCR page."""
    unit = (raw_page.get('unit') or 'inch').lower()
    if unit == 'pixel':
        raw_width = raw_page.get('width') or 0
        if raw_width > 0:
            return geometry.width / raw_width
        logger.warning(f"Page {geometry.page_number}: pixel unit without width, assuming inches")
    return POINTS_PER_INCH


def _resolve_page_geometry(
    raw_page: Dict[str, Any],
    page_geometries: Dict[int, PageGeometry]
) -> PageGeometry:
    page_number = raw_page.get('pageNumber')
    if page_number is None:
        raise DocumentUnreadable("OCR page without a page number")
    
    if page_number in page_geometries:
        return page_geometries[page_number]
    
    # PDF dimensions unavailable: derive them from the OCR page itself
    width = raw_page.get('width')
    height = raw_page.get('height')
    unit = (raw_page.get('unit') or 'inch').lower()
    if not width or not height or unit != 'inch':
        raise DocumentUnreadable(f"Cannot determine dimensions of page {page_number}")
    
    geometry = PageGeometry(
        page_number=page_number,
        width=round(width * POINTS_PER_INCH, 2),
        height=round(height * POINTS_PER_INCH, 2)
    )
    logger.info(
        f"Page {page_number}: using OCR-reported dimensions "
        f"{geometry.width}x{geometry.height} points"
    )
    return geometry


def _span(raw: Dict[str, Any], granularity: Granularity, page: PageGeometry, scale: float) -> TextSpan:
    polygon = raw.get('polygon') or []
    return TextSpan(
        content=raw.get('content') or '',
        box=normalize_polygon(polygon, page, scale),
        granularity=granularity,
        geometry_available=is_complete_polygon(polygon)
    )


def _first_region(element: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not element:
        return None
    regions = element.get('boundingRegions') or []
    return regions[0] if regions else None


def parse_analyze_result(
    result: Dict[str, Any],
    page_geometries: Optional[Dict[int, PageGeometry]] = None
) -> Dict[int, OcrPage]:
    """
    Build per-page OcrPage objects from a layout analysis result.
    
    Args:
        result: Analyze result dictionary from the OCR service
        page_geometries: Upright page dimensions in points, keyed by page
            number (from the PDF). Missing pages fall back to the
            OCR-reported dimensions.
    
    Returns:
        Dict of page number -> OcrPage, in page order
    
    Raises:
        DocumentUnreadable: If the result has no pages or a page's
            dimensions cannot be determined.
    """
    page_geometries = page_geometries or {}
    raw_pages = result.get('pages') or []
    
    if not raw_pages:
        raise DocumentUnreadable("OCR result contains no pages")
    
    pages: Dict[int, OcrPage] = {}
    scales: Dict[int, float] = {}
    
    for raw_page in raw_pages:
        geometry = _resolve_page_geometry(raw_page, page_geometries)
        scale = _unit_scale(raw_page, geometry)
        scales[geometry.page_number] = scale
        
        marks = []
        for raw_mark in raw_page.get('selectionMarks') or []:
            polygon = raw_mark.get('polygon') or []
            marks.append(SelectionMark(
                state=SelectionState.parse(raw_mark.get('state')),
                box=normalize_polygon(polygon, geometry, scale),
                confidence=raw_mark.get('confidence') or DEFAULT_MARK_CONFIDENCE,
                geometry_available=is_complete_polygon(polygon)
            ))
        
        pages[geometry.page_number] = OcrPage(
            geometry=geometry,
            lines=[_span(l, Granularity.LINE, geometry, scale) for l in raw_page.get('lines') or []],
            words=[_span(w, Granularity.WORD, geometry, scale) for w in raw_page.get('words') or []],
            selection_marks=marks
        )
    
    # Tables are document-level; attach each to the page of its first cell
    for raw_table in result.get('tables') or []:
        raw_cells = raw_table.get('cells') or []
        first_region = _first_region(raw_cells[0]) if raw_cells else None
        table_page_number = first_region.get('pageNumber', 1) if first_region else 1
        page = pages.get(table_page_number)
        if page is None:
            continue
        
        cells = []
        for raw_cell in raw_cells:
            region = _first_region(raw_cell)
            cells.append(TableCell(
                row_index=raw_cell.get('rowIndex', 0),
                column_index=raw_cell.get('columnIndex', 0),
                content=raw_cell.get('content') or '',
                box=normalize_polygon(
                    region.get('polygon') if region else None,
                    page.geometry,
                    scales[table_page_number]
                ),
                kind=raw_cell.get('kind')
            ))
        
        page.tables.append(OcrTable(
            row_count=raw_table.get('rowCount') or 0,
            column_count=raw_table.get('columnCount') or 0,
            cells=cells
        ))
    
    # Key-value pairs are document-level too; the key's region decides the page
    for raw_kv in result.get('keyValuePairs') or []:
        key = raw_kv.get('key') or {}
        value = raw_kv.get('value') or {}
        key_region = _first_region(key)
        value_region = _first_region(value)
        anchor_region = key_region or value_region
        if anchor_region is None:
            continue
        
        page = pages.get(anchor_region.get('pageNumber', 1))
        if page is None:
            continue
        scale = scales[page.page_number]
        
        key_box = None
        if key_region and is_complete_polygon(key_region.get('polygon')):
            key_box = normalize_polygon(key_region['polygon'], page.geometry, scale)
        value_box = None
        if value_region and is_complete_polygon(value_region.get('polygon')):
            value_box = normalize_polygon(value_region['polygon'], page.geometry, scale)
        
        page.key_value_pairs.append(KeyValuePair(
            key_text=key.get('content') or '',
            value_text=value.get('content') or '',
            confidence=raw_kv.get('confidence') or DEFAULT_KV_CONFIDENCE,
            key_box=key_box,
            value_box=value_box
        ))
    
    for page in pages.values():
        logger.info(f"Page {page.page_number}: {page.summary()}")
    
    return dict(sorted(pages.items()))
