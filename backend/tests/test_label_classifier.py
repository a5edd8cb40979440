import pytest

from field_layout.services.layout_engine.geometry import Box, PageGeometry
from field_layout.services.layout_engine.label_classifier import LabelClassifier
from field_layout.services.layout_engine.lexicon import Direction, LabelLexicon, detect_direction
from field_layout.services.layout_engine.ocr_page import Granularity, OcrPage, TextSpan


def _line(content, x, y, width, height=12):
    return TextSpan(content=content, box=Box(x=x, y=y, width=width, height=height), granularity=Granularity.LINE)


def _word(content, x, y, width, height=12):
    return TextSpan(content=content, box=Box(x=x, y=y, width=width, height=height), granularity=Granularity.WORD)


@pytest.fixture
def classifier(lexicon):
    return LabelClassifier(lexicon)


@pytest.mark.parametrize("text", [
    "Name:",
    "  Date of birth :  ",
    "שם:",
    "חתימה׃",
    "Signature",
    "signature of applicant",
    "שם משפחה",
])
def test_is_label_accepts(classifier, text):
    assert classifier.is_label(text)


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "Signatures",
    "Please read carefully before signing",
    "12345",
])
def test_is_label_rejects(classifier, text):
    assert not classifier.is_label(text)


def test_whole_line_labels_become_candidates(classifier):
    page = OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[
            _line("Name:", 50, 700, 40),
            _line("Please read carefully", 50, 650, 200),
            _line("כתובת:", 450, 600, 60),
        ],
    )
    candidates = classifier.extract_candidates(page)
    assert [c.text for c in candidates] == ["Name:", "כתובת:"]
    assert candidates[0].box == Box(x=50, y=700, width=40, height=12)
    assert candidates[1].direction == Direction.RTL


def test_line_with_several_labels_is_split_by_words(classifier):
    page = OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[_line("Phone: Fax: ______", 50, 700, 250)],
        words=[
            _word("Phone:", 50, 700, 40),
            _word("Fax:", 150, 700, 30),
            _word("______", 200, 700, 100),
            _word("Elsewhere:", 50, 500, 60),
        ],
    )
    candidates = classifier.extract_candidates(page)
    assert [c.text for c in candidates] == ["Phone:", "Fax:"]
    assert candidates[1].box == Box(x=150, y=700, width=30, height=12)


def test_word_buffer_spans_multi_word_labels(classifier):
    words = [
        _word("First", 50, 700, 30),
        _word("name:", 85, 700, 35),
        _word("Last", 200, 700, 25),
        _word("name", 230, 700, 30),
    ]
    candidates = classifier.split_line(words)
    assert [c.text for c in candidates] == ["First name:", "Last name"]
    assert candidates[0].box == Box(x=50, y=700, width=70, height=12)


def test_rtl_word_buffer_box_covers_all_words(classifier):
    # Hebrew words arrive in logical order, right to left on the page
    words = [
        _word("מען", 500, 700, 20),
        _word("למשלוח:", 450, 700, 45),
    ]
    candidates = classifier.split_line(words)
    assert len(candidates) == 1
    assert candidates[0].text == "מען למשלוח:"
    assert candidates[0].box == Box(x=450, y=700, width=70, height=12)


def test_lines_without_geometry_are_skipped(classifier):
    page = OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[TextSpan(content="Name:", box=Box(0, 0, 50, 20), granularity=Granularity.LINE, geometry_available=False)],
    )
    assert classifier.extract_candidates(page) == []


def test_detect_direction():
    assert detect_direction("שם משפחה") == Direction.RTL
    assert detect_direction("Name (שם)") == Direction.RTL
    assert detect_direction("الاسم") == Direction.RTL
    assert detect_direction("Name") == Direction.LTR
    assert detect_direction("") == Direction.LTR


def test_lexicon_field_names_prefer_longest_phrase(lexicon):
    assert lexicon.field_name_for("שם משפחה:") == "last_name"
    assert lexicon.field_name_for("שם:") == "name"
    assert lexicon.field_name_for("Date of birth") == "date_of_birth"
    assert lexicon.field_name_for("Favourite colour") is None


def test_lexicon_strip_colon(lexicon):
    assert lexicon.strip_colon(" Name : ") == "Name"
    assert lexicon.strip_colon("חתימה׃") == "חתימה"


def test_unknown_lexicon_is_rejected():
    with pytest.raises(ValueError):
        LabelLexicon.load(("xx",))
