from field_layout.services.layout_engine.geometry import Box
from field_layout.services.layout_engine.label_classifier import LabelCandidate
from field_layout.services.layout_engine.lexicon import Direction
from field_layout.services.layout_engine.row_aggregator import LabelLayout, group_rows


def _candidate(text, x, y, width=40, height=12):
    return LabelCandidate(text=text, box=Box(x=x, y=y, width=width, height=height))


def test_group_rows_by_vertical_centre():
    candidates = [
        _candidate("Name:", 50, 700),
        _candidate("Date:", 300, 703),
        _candidate("Address:", 50, 650),
    ]
    rows = group_rows(candidates, tolerance=8)
    assert len(rows) == 2
    assert [c.text for c in rows[0].candidates] == ["Name:", "Date:"]
    assert [c.text for c in rows[1].candidates] == ["Address:"]
    assert all(c.row_id == 0 for c in rows[0].candidates)
    assert rows[1].candidates[0].row_id == 1


def test_rows_at_tolerance_are_separate():
    rows = group_rows([_candidate("A:", 50, 700), _candidate("B:", 200, 708)], tolerance=8)
    assert len(rows) == 2


def test_ltr_row_sorted_left_to_right():
    rows = group_rows([
        _candidate("Date:", 300, 700),
        _candidate("Name:", 50, 701),
        _candidate("City:", 180, 699),
    ])
    assert rows[0].direction == Direction.LTR
    assert [c.text for c in rows[0].candidates] == ["Name:", "City:", "Date:"]


def test_rtl_row_sorted_right_to_left():
    rows = group_rows([
        _candidate("תאריך:", 100, 700),
        _candidate("שם:", 500, 700),
        _candidate("עיר:", 300, 702),
    ])
    assert rows[0].direction == Direction.RTL
    assert [c.text for c in rows[0].candidates] == ["שם:", "עיר:", "תאריך:"]


def test_neighbors_of_returns_same_row_boxes_only():
    anchor = Box(x=300, y=700, width=40, height=12)
    layout = LabelLayout.build([
        LabelCandidate(text="שם:", box=anchor),
        _candidate("עיר:", 150, 701),
        _candidate("רחוב:", 450, 699),
        _candidate("הערות:", 150, 600),
    ])
    neighbors = layout.neighbors_of(anchor)
    assert sorted(b.x for b in neighbors) == [150, 450]
    assert len(layout) == 2


def test_neighbors_of_follows_row_membership():
    a = _candidate("A:", 200, 700)
    b = _candidate("B:", 50, 707)
    c = _candidate("C:", 300, 714)
    layout = LabelLayout.build([a, b, c])

    assert [[m.text for m in row.candidates] for row in layout.rows] == [["B:", "A:"], ["C:"]]
    # C is within tolerance of B's centre but was grouped into the next row
    assert layout.neighbors_of(b.box) == [a.box]


def test_neighbors_of_returns_reading_order():
    anchor = Box(x=300, y=700, width=40, height=12)
    layout = LabelLayout.build([
        _candidate("עיר:", 150, 701),
        LabelCandidate(text="שם:", box=anchor),
        _candidate("רחוב:", 450, 699),
    ])
    assert [b.x for b in layout.neighbors_of(anchor)] == [450, 150]


def test_anchor_outside_candidates_joins_nearest_row():
    layout = LabelLayout.build([_candidate("Amount:", 50, 300), _candidate("Total:", 400, 600)])
    cell = Box(x=200, y=295, width=100, height=20)
    assert layout.row_of(cell).row_id == 0
    assert layout.neighbors_of(cell) == [Box(50, 300, 40, 12)]
    assert layout.neighbors_of(Box(200, 450, 100, 20)) == []
