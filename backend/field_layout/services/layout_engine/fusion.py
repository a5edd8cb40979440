"""
Fusion & Deduplication
======================

Merges fields from three independent sources into one list per page:

1. KEY-VALUE: OCR key-value pairs with a value-side box (highest confidence)
2. LABEL-RESOLVED: semantic descriptors resolved against OCR text and
   positioned by the field locator (selection-mark descriptors snap to
   the nearest OCR selection mark)
3. LEFTOVERS: key-value pairs without a value box and selection marks
   nothing else claimed

Each pass reserves PositionKeys in a per-page PositionReservations object;
a later candidate whose key collides with a reserved one is the same
physical field and is dropped. The fallback path runs pass 1 and then the
fallback controller instead of passes 2 and 3.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .confidence import ConfidenceBreakdown, ConfidenceScore, ConfidenceScorer, QualityTier
from .descriptors import FieldDescriptor, FieldKind, InputType
from .errors import LabelUnresolved
from .field_locator import SELECTION_MARK_SIZE, position_field
from .geometry import (
    Box, DEFAULT_QUANTIZATION, PageGeometry, PositionKey,
    PositionQuantization, PositionReservations, clamp_to_margins
)
from .label_classifier import LabelCandidate, LabelClassifier
from .label_resolver import LabelMatch, resolve_label
from .lexicon import Direction, LabelLexicon, detect_direction
from .ocr_page import OcrPage, SelectionMark
from .row_aggregator import DEFAULT_ROW_TOLERANCE, LabelLayout

logger = logging.getLogger(__name__)

KV_TYPE_CERTAINTY = 0.8
RESOLVED_TYPE_CERTAINTY = 0.9
GENERIC_TYPE_CERTAINTY = 0.5
MARK_TYPE_CERTAINTY = 0.95
UNMATCHED_MARK_TYPE_CERTAINTY = 0.9


class Provenance(str, Enum):
    """Which source produced a field."""
    KEY_VALUE = "key-value"
    LABEL_RESOLVED = "label-resolved"
    SELECTION_MARK = "selection-mark"
    FALLBACK = "fallback"


@dataclass
class ExtractedField:
    """A positioned fillable field."""
    type: InputType
    name: str
    box: Box
    page_number: int
    direction: Direction
    confidence: float
    provenance: Provenance
    label: Optional[str] = None
    required: bool = False
    section_name: Optional[str] = None
    quality: QualityTier = QualityTier.LOW
    confidence_breakdown: Optional[ConfidenceBreakdown] = None
    tab_index: Optional[int] = None
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': self.type.value,
            'name': self.name,
            'label': self.label,
            'x': self.box.x,
            'y': self.box.y,
            'width': self.box.width,
            'height': self.box.height,
            'page_number': self.page_number,
            'direction': self.direction.value,
            'required': self.required,
            'confidence': self.confidence,
            'quality': self.quality.value,
            'section_name': self.section_name,
            'provenance': self.provenance.value,
            'tab_index': self.tab_index,
            'confidence_breakdown': (
                self.confidence_breakdown.to_dict() if self.confidence_breakdown else None
            )
        }


class FieldNamer:
    """Unique field names within one page."""
    
    def __init__(self, lexicon: LabelLexicon):
        self.lexicon = lexicon
        self._used: Dict[str, int] = {}
    
    def _unique(self, base: str) -> str:
        count = self._used.get(base, 0) + 1
        self._used[base] = count
        if count == 1:
            return base
        candidate = f"{base}_{count}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count}"
        self._used[base] = count
        self._used[candidate] = 1
        return candidate
    
    def for_label(self, label: Optional[str], index: int) -> str:
        """Canonical name for the label, else field_<index>."""
        base = self.lexicon.field_name_for(label) if label else None
        return self._unique(base or f"field_{index}")
    
    def for_checkbox(self, index: int) -> str:
        return self._unique(f"checkbox_{index}")


@dataclass
class PageAssembly:
    """
    Working state of one page while its field list is built.
    
    Lives for a single page-processing call; nothing in it is shared
    across pages.
    """
    page: OcrPage
    reservations: PositionReservations
    namer: FieldNamer
    fields: List[ExtractedField] = field(default_factory=list)
    anchor_keys: Set[PositionKey] = field(default_factory=set)
    used_marks: Set[int] = field(default_factory=set)
    unmatched_labels: List[str] = field(default_factory=list)
    collisions: int = 0
    
    @property
    def geometry(self) -> PageGeometry:
        return self.page.geometry
    
    @property
    def next_index(self) -> int:
        return len(self.fields) + 1
    
    def key_for(self, box: Box) -> PositionKey:
        return self.reservations.key_for(self.page.page_number, box)
    
    def add(self, candidate: ExtractedField, checkbox: bool = False) -> bool:
        """
        Emit the field unless its position is already taken.
        
        Names are handed out only to fields that survive, so numbering has
        no gaps left by dropped duplicates.
        """
        key = self.key_for(candidate.box)
        if not self.reservations.try_reserve(key):
            self.collisions += 1
            logger.debug(
                f"Page {self.page.page_number}: dropping {candidate.provenance.value} field "
                f"'{candidate.label or candidate.name}', position already taken"
            )
            return False
        if checkbox:
            candidate.name = self.namer.for_checkbox(self.next_index)
        else:
            candidate.name = self.namer.for_label(candidate.label, self.next_index)
        self.fields.append(candidate)
        return True


@dataclass
class _ResolvedDescriptor:
    descriptor: FieldDescriptor
    match: LabelMatch
    anchor: Box


class FusionEngine:
    """
    Builds de-duplicated field lists from OCR and semantic sources.
    
    Stateless between calls; configuration only.
    """
    
    def __init__(
        self,
        lexicon: Optional[LabelLexicon] = None,
        scorer: Optional[ConfidenceScorer] = None,
        quantization: PositionQuantization = DEFAULT_QUANTIZATION,
        row_tolerance: float = DEFAULT_ROW_TOLERANCE
    ):
        self.lexicon = lexicon or LabelLexicon.load()
        self.scorer = scorer or ConfidenceScorer()
        self.classifier = LabelClassifier(self.lexicon)
        self.quantization = quantization
        self.row_tolerance = row_tolerance
    
    def start(self, page: OcrPage) -> PageAssembly:
        return PageAssembly(
            page=page,
            reservations=PositionReservations(quantization=self.quantization),
            namer=FieldNamer(self.lexicon)
        )
    
    def make_field(
        self,
        assembly: PageAssembly,
        input_type: InputType,
        box: Box,
        label: Optional[str],
        score: ConfidenceScore,
        provenance: Provenance,
        required: bool = False,
        section_name: Optional[str] = None
    ) -> ExtractedField:
        clean_label = self.lexicon.strip_colon(label) if label else None
        return ExtractedField(
            type=input_type,
            name='',
            label=clean_label or None,
            box=clamp_to_margins(box, assembly.geometry),
            page_number=assembly.page.page_number,
            direction=detect_direction(label or ''),
            required=required,
            confidence=score.overall,
            quality=score.quality,
            confidence_breakdown=score.breakdown,
            section_name=section_name,
            provenance=provenance
        )
    
    # ---- Pass 1 ---------------------------------------------------------
    
    def add_key_value_pairs(self, assembly: PageAssembly) -> int:
        """Pass 1: key-value pairs with a value-side box. Returns fields added."""
        added = 0
        for kv in assembly.page.key_value_pairs:
            if kv.value_box is None:
                continue
            score = self.scorer.score(
                label_match=kv.confidence,
                position_certainty=1.0,
                type_certainty=KV_TYPE_CERTAINTY,
                visual_boundary=True
            )
            candidate = self.make_field(
                assembly, InputType.TEXT, kv.value_box, kv.key_text, score, Provenance.KEY_VALUE
            )
            if assembly.add(candidate):
                added += 1
                if kv.key_box is not None:
                    assembly.anchor_keys.add(assembly.key_for(kv.key_box))
        return added
    
    # ---- Pass 2 ---------------------------------------------------------
    
    def _resolve_all(self, assembly: PageAssembly, descriptors: List[FieldDescriptor]) -> List[_ResolvedDescriptor]:
        page = assembly.page
        spans = page.spans
        resolved = []
        for descriptor in descriptors:
            match = resolve_label(descriptor.label_text, spans)
            if match is None:
                error = LabelUnresolved(descriptor.label_text, descriptor.field_kind.value, page.page_number)
                logger.info(f"Dropping descriptor: {error}")
                assembly.unmatched_labels.append(descriptor.label_text)
                continue
            resolved.append(_ResolvedDescriptor(descriptor=descriptor, match=match, anchor=match.span.box))
        return resolved
    
    def _nearest_mark(self, assembly: PageAssembly, anchor: Box) -> Optional[int]:
        best_index = None
        best_distance = float('inf')
        for index, mark in enumerate(assembly.page.selection_marks):
            if index in assembly.used_marks:
                continue
            distance = mark.box.manhattan_distance(anchor)
            if distance < best_distance:
                best_index = index
                best_distance = distance
        return best_index
    
    def _position_descriptor(
        self,
        assembly: PageAssembly,
        item: _ResolvedDescriptor,
        layout: LabelLayout
    ) -> ExtractedField:
        descriptor = item.descriptor
        kind = descriptor.field_kind
        direction = detect_direction(descriptor.label_text)
        geometry_available = item.match.span.geometry_available
        input_type = descriptor.input_type
        
        if kind == FieldKind.SELECTION_MARK:
            if input_type not in (InputType.CHECKBOX, InputType.RADIO):
                input_type = InputType.CHECKBOX
            mark_index = self._nearest_mark(assembly, item.anchor)
            if mark_index is not None:
                mark: SelectionMark = assembly.page.selection_marks[mark_index]
                assembly.used_marks.add(mark_index)
                score = self.scorer.score(
                    label_match=item.match.score,
                    position_certainty=mark.confidence,
                    type_certainty=MARK_TYPE_CERTAINTY,
                    visual_boundary=True
                )
                return self.make_field(
                    assembly, input_type,
                    mark.box.with_min_size(SELECTION_MARK_SIZE, SELECTION_MARK_SIZE),
                    descriptor.label_text, score, Provenance.LABEL_RESOLVED,
                    required=descriptor.required, section_name=descriptor.section
                )
        
        anchor = item.anchor
        visual_boundary = False
        if kind == FieldKind.TABLE_CELL:
            cell = assembly.page.cell_containing(anchor)
            if cell is not None:
                anchor = cell.box
                visual_boundary = True
        
        box = position_field(kind, direction, anchor, layout.neighbors_of(anchor), assembly.geometry)
        score = self.scorer.score(
            label_match=item.match.score,
            position_certainty=self.scorer.position_certainty(kind, geometry_available),
            type_certainty=GENERIC_TYPE_CERTAINTY if kind == FieldKind.GENERIC else RESOLVED_TYPE_CERTAINTY,
            visual_boundary=visual_boundary
        )
        return self.make_field(
            assembly, input_type, box, descriptor.label_text, score, Provenance.LABEL_RESOLVED,
            required=descriptor.required, section_name=descriptor.section
        )
    
    def add_descriptors(self, assembly: PageAssembly, descriptors: List[FieldDescriptor]) -> int:
        """Pass 2: semantic descriptors resolved against OCR text. Returns fields added."""
        resolved = self._resolve_all(assembly, descriptors)
        
        # Row neighbours come from every label candidate plus every resolved anchor
        candidates = self.classifier.extract_candidates(assembly.page)
        known = {c.box for c in candidates}
        for item in resolved:
            if item.anchor not in known:
                candidates.append(LabelCandidate(text=item.match.span.content, box=item.anchor))
                known.add(item.anchor)
        layout = LabelLayout.build(candidates, self.row_tolerance)
        
        added = 0
        for item in resolved:
            anchor_key = assembly.key_for(item.anchor)
            if anchor_key in assembly.anchor_keys:
                # The label already anchors a key-value field from pass 1
                assembly.collisions += 1
                logger.info(
                    f"Page {assembly.page.page_number}: '{item.descriptor.label_text}' "
                    f"is already anchored by a key-value pair"
                )
                continue
            candidate = self._position_descriptor(assembly, item, layout)
            if assembly.add(candidate):
                added += 1
                assembly.anchor_keys.add(anchor_key)
            else:
                logger.info(
                    f"Page {assembly.page.page_number}: '{item.descriptor.label_text}' "
                    f"({item.descriptor.field_kind.value}) collides with an existing field"
                )
        return added
    
    # ---- Pass 3 ---------------------------------------------------------
    
    def add_leftovers(self, assembly: PageAssembly) -> int:
        """Pass 3: key-only pairs and selection marks nothing claimed. Returns fields added."""
        added = 0
        
        for kv in assembly.page.key_value_pairs:
            if kv.value_box is not None or kv.key_box is None:
                continue
            if assembly.key_for(kv.key_box) in assembly.anchor_keys:
                continue
            box = position_field(
                FieldKind.GENERIC, detect_direction(kv.key_text), kv.key_box, None, assembly.geometry
            )
            score = self.scorer.score(
                label_match=kv.confidence,
                position_certainty=self.scorer.position_certainty(FieldKind.GENERIC),
                type_certainty=KV_TYPE_CERTAINTY
            )
            candidate = self.make_field(assembly, InputType.TEXT, box, kv.key_text, score, Provenance.KEY_VALUE)
            if assembly.add(candidate):
                added += 1
                assembly.anchor_keys.add(assembly.key_for(kv.key_box))
        
        for index, mark in enumerate(assembly.page.selection_marks):
            if index in assembly.used_marks:
                continue
            score = self.scorer.score(
                label_match=0.0,
                position_certainty=mark.confidence,
                type_certainty=UNMATCHED_MARK_TYPE_CERTAINTY,
                visual_boundary=mark.geometry_available
            )
            candidate = self.make_field(
                assembly, InputType.CHECKBOX,
                mark.box.with_min_size(SELECTION_MARK_SIZE, SELECTION_MARK_SIZE),
                None, score, Provenance.SELECTION_MARK
            )
            if assembly.add(candidate, checkbox=True):
                added += 1
                assembly.used_marks.add(index)
        
        return added
    
    def fuse(self, page: OcrPage, descriptors: List[FieldDescriptor]) -> PageAssembly:
        """Semantic path: passes 1-3 for one page."""
        assembly = self.start(page)
        kv_count = self.add_key_value_pairs(assembly)
        resolved_count = self.add_descriptors(assembly, descriptors)
        leftover_count = self.add_leftovers(assembly)
        
        logger.info(
            f"Page {page.page_number}: {kv_count} key-value, {resolved_count} label-resolved, "
            f"{leftover_count} leftover fields; {len(assembly.unmatched_labels)} unmatched labels, "
            f"{assembly.collisions} collisions"
        )
        return assembly
