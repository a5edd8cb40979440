from field_layout.services.layout_engine.descriptors import SemanticAnalysis
from field_layout.services.layout_engine.errors import SemanticAnalysisFailed
from field_layout.services.layout_engine.fallback import FALLBACK_CONFIDENCE, FallbackController
from field_layout.services.layout_engine.fusion import Provenance
from field_layout.services.layout_engine.geometry import Box, PageGeometry
from field_layout.services.layout_engine.ocr_page import Granularity, KeyValuePair, OcrPage, TextSpan


def _line(content, x, y, width=40):
    return TextSpan(content=content, box=Box(x, y, width, 12), granularity=Granularity.LINE)


def _failed(page_number=1):
    return SemanticAnalysis.failed(SemanticAnalysisFailed(page_number, "labeler unavailable"))


def test_colon_lines_become_fallback_fields(extractor):
    page = OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[_line("Name:", 50, 700), _line("Address:", 50, 650, 50), _line("Read carefully", 50, 600, 90)],
    )
    result = extractor.extract(page, _failed())

    assert result.used_fallback is True
    assert result.failure_reason == "labeler unavailable"
    assert len(result.fields) == 2
    assert all(f.provenance == Provenance.FALLBACK for f in result.fields)
    assert all(f.confidence == FALLBACK_CONFIDENCE for f in result.fields)
    assert [f.label for f in result.fields] == ["Name", "Address"]


def test_fallback_keeps_key_value_pairs_first(engine):
    page = OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[_line("Phone:", 50, 700), _line("Email:", 50, 600)],
        key_value_pairs=[KeyValuePair("Phone:", "", 0.9, Box(50, 700, 40, 12), Box(95, 700, 140, 20))],
    )
    assembly = FallbackController(engine).run(page)

    assert [f.provenance for f in assembly.fields] == [Provenance.KEY_VALUE, Provenance.FALLBACK]
    assert assembly.collisions == 1
    assert assembly.fields[1].label == "Email"


def test_rtl_colon_line_strip_is_left_of_label(engine):
    page = OcrPage(geometry=PageGeometry(1, 595, 842), lines=[_line("שם:", 500, 700, 30)])
    field = FallbackController(engine).run(page).fields[0]

    assert field.box == Box(350, 700, 140, 20)
    assert field.direction.value == "rtl"
    assert field.quality.value == "low"
    assert field.confidence_breakdown is None
