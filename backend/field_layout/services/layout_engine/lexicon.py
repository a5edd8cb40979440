"""
Label Lexicon
=============

Language/script-specific label knowledge kept as data, not code.

Each lexicon is a JSON file in the ``lexicons`` directory:

    {
      "name": "he",
      "direction": "rtl",
      "colon_glyphs": [":", "׃"],
      "labels": ["שם", "כתובת", ...],
      "field_names": {"שם משפחה": "last_name", ...}
    }

Adding a language means dropping in another file and listing it in
LABEL_LEXICONS; the classifier and resolver logic stay untouched.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

LEXICON_DIR = Path(__file__).parent / 'lexicons'

# Hebrew, Arabic, Syriac, Thaana, NKo, Samaritan and the presentation forms
RTL_SCRIPT_PATTERN = re.compile('[\u0590-\u08FF\uFB1D-\uFDFF\uFE70-\uFEFF]')


class Direction(str, Enum):
    """Reading direction of a label, derived from its script."""
    LTR = "ltr"
    RTL = "rtl"


def detect_direction(text: str) -> Direction:
    """RTL if the text contains any right-to-left script character."""
    if text and RTL_SCRIPT_PATTERN.search(text):
        return Direction.RTL
    return Direction.LTR


@dataclass(frozen=True)
class LabelLexicon:
    """Merged label vocabulary for one or more languages."""
    names: Tuple[str, ...] = ()
    colon_glyphs: Tuple[str, ...] = (':',)
    labels: Tuple[str, ...] = ()
    field_names: Dict[str, str] = field(default_factory=dict)
    
    @classmethod
    def load(cls, names: Iterable[str] = ('he', 'en'), directory: Optional[Path] = None) -> 'LabelLexicon':
        """
        Load and merge lexicon files.
        
        Args:
            names: Lexicon file stems, e.g. ('he', 'en')
            directory: Directory holding <name>.json files (defaults to the bundled ones)
        
        Returns:
            A single merged LabelLexicon
        """
        directory = directory or LEXICON_DIR
        loaded = []
        glyphs = []
        labels = []
        field_names: Dict[str, str] = {}
        
        for name in names:
            path = directory / f"{name}.json"
            if not path.exists():
                raise ValueError(f"Unknown label lexicon '{name}' (expected {path})")
            
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            
            loaded.append(data.get('name', name))
            for glyph in data.get('colon_glyphs', []):
                if glyph not in glyphs:
                    glyphs.append(glyph)
            for label in data.get('labels', []):
                if label not in labels:
                    labels.append(label)
            for native, canonical in data.get('field_names', {}).items():
                field_names.setdefault(native, canonical)
        
        logger.info(
            f"Loaded label lexicons {loaded}: {len(labels)} labels, "
            f"{len(field_names)} field names, colon glyphs {glyphs}"
        )
        
        return cls(
            names=tuple(loaded),
            colon_glyphs=tuple(glyphs) or (':',),
            labels=tuple(labels),
            field_names=field_names
        )
    
    def ends_with_colon(self, text: str) -> bool:
        return text.rstrip().endswith(self.colon_glyphs)
    
    def strip_colon(self, text: str) -> str:
        """Remove trailing colon glyphs and whitespace."""
        cleaned = text.strip()
        while cleaned and cleaned.endswith(self.colon_glyphs):
            cleaned = cleaned[:-1].rstrip()
        return cleaned
    
    def matches_label(self, text: str) -> bool:
        """True if text equals a lexicon label or extends one after a space."""
        candidate = text.strip().casefold()
        if not candidate:
            return False
        for label in self.labels:
            folded = label.casefold()
            if candidate == folded or candidate.startswith(folded + ' '):
                return True
        return False
    
    def field_name_for(self, label_text: str) -> Optional[str]:
        """
        Canonical field name for a label, or None.
        
        The longest native phrase contained in the label wins, so
        "שם משפחה" maps to last_name rather than name.
        """
        cleaned = self.strip_colon(label_text).casefold()
        if not cleaned:
            return None
        
        best_native = None
        for native in self.field_names:
            if native.casefold() in cleaned:
                if best_native is None or len(native) > len(best_native):
                    best_native = native
        
        return self.field_names[best_native] if best_native else None
