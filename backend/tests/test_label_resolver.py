import pytest

from field_layout.services.layout_engine.geometry import Box
from field_layout.services.layout_engine.label_resolver import (
    SUBSTRING_SCORE,
    resolve_label,
    strip_diacritics,
    text_similarity,
)
from field_layout.services.layout_engine.ocr_page import Granularity, TextSpan


def _span(content, granularity=Granularity.LINE, x=50, y=700):
    return TextSpan(content=content, box=Box(x=x, y=y, width=60, height=12), granularity=granularity)


@pytest.mark.parametrize("a,b,expected", [
    ("Name:", "Name", 1.0),
    ("Name :", "Name", 1.0),
    ("Name", "Full Name", 0.9),
    ("CAFÉ", "cafe", 0.95),
    ("שָׁם", "שם", 0.95),
    ("café", "Cafe Address", 0.85),
    ("Name", "Address", 0.0),
    ("", "Name", 0.0),
    ("", "  ", 1.0),
])
def test_text_similarity(a, b, expected):
    assert text_similarity(a, b) == expected


def test_strip_diacritics_removes_niqqud():
    assert strip_diacritics("חֲתִימָה") == "חתימה"


def test_exact_line_match_wins():
    spans = [_span("NAME:"), _span("ADDRESS:", y=650)]
    match = resolve_label("NAME:", spans)
    assert match.span.content == "NAME:"
    assert match.score == 1.0
    assert match.tier == 1


def test_best_line_score_wins_over_earlier_weaker_match():
    spans = [_span("Applicant Name"), _span("Name", y=650)]
    match = resolve_label("Name", spans)
    assert match.span.content == "Name"
    assert match.score == 1.0


def test_ties_keep_earlier_span():
    spans = [_span("Name", y=700), _span("Name", y=650)]
    match = resolve_label("Name", spans)
    assert match.span.box.y == 700


def test_word_tier_used_when_no_line_matches():
    spans = [
        _span("Phone 555 0100"),
        _span("Phone", Granularity.WORD, x=50),
        _span("Fax", Granularity.WORD, x=200),
    ]
    match = resolve_label("Fax:", spans)
    assert match.tier == 2
    assert match.span.box.x == 200


def test_compact_containment_tier_ignores_spacing():
    spans = [_span("תאריך  לי דה"), _span("Other", Granularity.WORD)]
    match = resolve_label("תאריך לידה", spans)
    assert match.tier == 3
    assert match.score == SUBSTRING_SCORE


def test_unresolvable_label_returns_none():
    assert resolve_label("Signature", [_span("Name:"), _span("Date:", Granularity.WORD)]) is None
    assert resolve_label("   ", [_span("Name:")]) is None
