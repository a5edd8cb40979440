import pytest

from field_layout.services.layout_engine.descriptors import FieldKind
from field_layout.services.layout_engine.field_locator import LOCATORS, generic_strip, position_field
from field_layout.services.layout_engine.geometry import Box
from field_layout.services.layout_engine.lexicon import Direction


def test_every_field_kind_has_a_locator():
    assert set(LOCATORS) == set(FieldKind)


@pytest.mark.parametrize("kind", list(FieldKind))
@pytest.mark.parametrize("direction", list(Direction))
def test_positions_stay_inside_margins(a4_page, kind, direction):
    for anchor in (Box(40, 700, 30, 12), Box(300, 700, 40, 12), Box(540, 700, 20, 12)):
        box = position_field(kind, direction, anchor, [], a4_page)
        assert box.x >= a4_page.left_margin - 0.01
        assert box.right <= a4_page.right_margin + 0.01


def test_rtl_underline_extends_left_to_margin(a4_page):
    anchor = Box(300, 700, 40, 12)
    box = position_field(FieldKind.UNDERLINE, Direction.RTL, anchor, [], a4_page)
    assert box.x == pytest.approx(29.75)
    assert box.right == pytest.approx(297)
    assert box.y == 700
    assert box.height == 20


def test_rtl_underline_stops_at_nearest_neighbour(a4_page):
    anchor = Box(300, 700, 40, 12)
    neighbors = [Box(100, 700, 30, 12), Box(150, 700, 50, 12)]
    box = position_field(FieldKind.UNDERLINE, Direction.RTL, anchor, neighbors, a4_page)
    assert box.x == 205
    assert box.right == pytest.approx(297)


def test_rtl_underline_keeps_minimum_width(a4_page):
    anchor = Box(300, 700, 40, 12)
    neighbors = [Box(230, 700, 40, 12)]
    box = position_field(FieldKind.UNDERLINE, Direction.RTL, anchor, neighbors, a4_page)
    assert box.width == 50
    assert box.x == 247


def test_ltr_underline_starts_after_label(a4_page):
    anchor = Box(50, 700, 40, 12)
    box = position_field(FieldKind.UNDERLINE, Direction.LTR, anchor, [], a4_page)
    assert box.x > anchor.right
    assert box.x == 93
    assert box.right == pytest.approx(565.25)


def test_ltr_underline_stops_at_neighbour(a4_page):
    anchor = Box(50, 700, 40, 12)
    box = position_field(FieldKind.UNDERLINE, Direction.LTR, anchor, [Box(300, 700, 40, 12)], a4_page)
    assert box.x == 93
    assert box.right == 295


def test_box_with_title_sits_above_label(a4_page):
    box = position_field(FieldKind.BOX_WITH_TITLE, Direction.LTR, Box(100, 700, 40, 12), [], a4_page)
    assert box == Box(80, 717, 80, 35)


@pytest.mark.parametrize("direction,anchor,expected", [
    (Direction.LTR, Box(50, 700, 40, 12), Box(95, 700, 200, 22)),
    (Direction.RTL, Box(400, 700, 40, 12), Box(195, 700, 200, 22)),
])
def test_digit_boxes(a4_page, direction, anchor, expected):
    assert position_field(FieldKind.DIGIT_BOXES, direction, anchor, [], a4_page) == expected


def test_table_cell_enforces_minimum_size(a4_page):
    box = position_field(FieldKind.TABLE_CELL, Direction.LTR, Box(100, 500, 30, 10), [], a4_page)
    assert box == Box(100, 500, 50, 18)


def test_generic_strip(a4_page):
    assert generic_strip(Box(50, 700, 40, 12), Direction.LTR, a4_page) == Box(95, 700, 140, 20)
    assert generic_strip(Box(100, 700, 40, 12), Direction.RTL, a4_page) == Box(29.75, 700, 140, 20)


def test_box_near_right_margin_is_shifted_inward(a4_page):
    box = position_field(FieldKind.UNDERLINE, Direction.LTR, Box(540, 700, 20, 12), [], a4_page)
    assert box.width == 50
    assert box.x == 515.25
