from field_layout.services.layout_engine.confidence import QualityTier
from field_layout.services.layout_engine.descriptors import InputType
from field_layout.services.layout_engine.fusion import ExtractedField, Provenance
from field_layout.services.layout_engine.geometry import Box, PageGeometry
from field_layout.services.layout_engine.lexicon import Direction
from field_layout.services.layout_engine.postprocess import (
    assign_tab_order,
    document_direction,
    validate_boundaries,
)


def _field(name, box, page_number=1, direction=Direction.LTR):
    return ExtractedField(
        type=InputType.TEXT,
        name=name,
        box=box,
        page_number=page_number,
        direction=direction,
        confidence=0.9,
        provenance=Provenance.LABEL_RESOLVED,
        quality=QualityTier.HIGH,
    )


def test_validate_boundaries_drops_and_trims():
    page = PageGeometry(1, 595, 842)
    fields = [
        _field("inside", Box(100, 500, 100, 20)),
        _field("above", Box(100, 842, 100, 20)),
        _field("flat", Box(100, 500, 100, 0)),
        _field("straddles_top", Box(100, 830, 100, 20)),
        _field("too_far_right", Box(560, 400, 100, 20)),
    ]
    valid = validate_boundaries(fields, page)

    assert [f.name for f in valid] == ["inside", "straddles_top", "too_far_right"]
    assert valid[1].box == Box(100, 830, 100, 12)
    assert valid[2].box.right <= page.right_margin + 0.01
    assert all(f.box.top <= page.height for f in valid)


def test_negative_y_is_trimmed_to_page():
    valid = validate_boundaries([_field("low", Box(100, -5, 100, 20))], PageGeometry(1, 595, 842))
    assert valid[0].box == Box(100, 0, 100, 15)


def test_tab_order_ltr_document():
    a = _field("a", Box(50, 700, 100, 20))
    b = _field("b", Box(300, 695, 100, 20))
    c = _field("c", Box(50, 600, 100, 20))
    ordered = assign_tab_order([c, b, a])

    assert [f.name for f in ordered] == ["a", "b", "c"]
    assert [f.tab_index for f in ordered] == [1, 2, 3]


def test_tab_order_rtl_document_reads_right_to_left():
    a = _field("a", Box(50, 700, 100, 20), direction=Direction.RTL)
    b = _field("b", Box(300, 700, 100, 20), direction=Direction.RTL)
    c = _field("c", Box(50, 600, 100, 20))
    ordered = assign_tab_order([a, b, c])

    assert [f.name for f in ordered] == ["b", "a", "c"]


def test_tab_order_runs_page_by_page():
    low_on_first = _field("first", Box(50, 100, 100, 20), page_number=1)
    high_on_second = _field("second", Box(50, 800, 100, 20), page_number=2)
    ordered = assign_tab_order([high_on_second, low_on_first])

    assert [f.name for f in ordered] == ["first", "second"]
    assert ordered[1].tab_index == 2


def test_document_direction_tie_is_ltr():
    fields = [
        _field("a", Box(0, 0, 1, 1), direction=Direction.RTL),
        _field("b", Box(0, 0, 1, 1), direction=Direction.LTR),
    ]
    assert document_direction(fields) == Direction.LTR
    assert document_direction([]) == Direction.LTR
