import pytest
import requests

from field_layout.services.layout_engine import semantic_labeler as semantic_labeler_module
from field_layout.services.layout_engine.descriptors import FieldKind
from field_layout.services.layout_engine.errors import SemanticAnalysisFailed
from field_layout.services.layout_engine.geometry import Box, PageGeometry
from field_layout.services.layout_engine.ocr_page import Granularity, OcrPage, TextSpan
from field_layout.services.layout_engine.semantic_labeler import SemanticLabeler
from field_layout.utils.rate_limiter import RateLimiter


class _FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return {"choices": [{"message": {"content": self.content}}], "usage": {"total_tokens": 42}}


def _page():
    return OcrPage(
        geometry=PageGeometry(1, 595, 842),
        lines=[TextSpan("Name:", Box(50, 700, 40, 12), Granularity.LINE)],
    )


def _patch_post(monkeypatch, response=None, error=None):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(semantic_labeler_module.requests, "post", fake_post)
    return calls


def test_label_page_parses_fenced_json(monkeypatch):
    reply = '```json\n{"totalFieldCount": 1, "fields": [{"labelText": "Name:", "fieldType": "underline"}]}\n```'
    calls = _patch_post(monkeypatch, _FakeResponse(reply))
    labeler = SemanticLabeler(api_key="test-key", api_base="https://example.test/v1/")

    analysis = labeler.label_page(_page(), "aW1hZ2U=")

    assert analysis.succeeded
    assert analysis.descriptors[0].field_kind == FieldKind.UNDERLINE
    assert calls[0]["url"] == "https://example.test/v1/chat/completions"
    assert calls[0]["json"]["temperature"] == 0.0
    image_part = calls[0]["json"]["messages"][1]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_prompt_lists_ocr_lines():
    prompt = SemanticLabeler(api_key="k").build_prompt(_page())
    assert '[1] "Name:"' in prompt
    assert "(no tables detected)" in prompt


@pytest.mark.parametrize("reply,field_kind", [
    ('Here you go: {"fields": [{"labelText": "Name", "fieldType": "squiggle"}]} thanks', FieldKind.GENERIC),
    ('{"fields": [{"labelText": "Name", "fieldType": "digit_boxes"}]}', FieldKind.DIGIT_BOXES),
])
def test_parse_response_tolerates_prose_and_unknown_types(reply, field_kind):
    parsed = SemanticLabeler(api_key="k").parse_response(1, reply)
    assert parsed.fields[0].fieldType == field_kind


@pytest.mark.parametrize("reply", [
    "I could not find any fields.",
    '{"fields": [{"fieldType": "underline"}]}',
    '{"totalFieldCount": "many", "fields": []}',
])
def test_parse_response_rejects_bad_replies(reply):
    with pytest.raises(SemanticAnalysisFailed) as exc_info:
        SemanticLabeler(api_key="k").parse_response(4, reply)
    assert exc_info.value.page_number == 4
    assert exc_info.value.raw_response == reply


@pytest.mark.parametrize("error", [requests.Timeout("slow"), requests.ConnectionError("down")])
def test_transport_errors_raise_semantic_failure(monkeypatch, error):
    _patch_post(monkeypatch, error=error)
    with pytest.raises(SemanticAnalysisFailed):
        SemanticLabeler(api_key="k").label_page(_page())


def test_http_error_raises_semantic_failure(monkeypatch):
    _patch_post(monkeypatch, _FakeResponse("", status_code=500))
    with pytest.raises(SemanticAnalysisFailed):
        SemanticLabeler(api_key="k").label_page(_page())


def test_unconfigured_labeler_raises():
    with pytest.raises(SemanticAnalysisFailed):
        SemanticLabeler(api_key=None).label_page(_page())


def test_rate_limit_blocks_requests(monkeypatch):
    calls = _patch_post(monkeypatch, _FakeResponse('{"fields": []}'))
    limiter = RateLimiter(max_total_calls=1, enabled=True)
    labeler = SemanticLabeler(api_key="k", rate_limiter=limiter)

    labeler.label_page(_page())
    with pytest.raises(SemanticAnalysisFailed, match="rate limit"):
        labeler.label_page(_page())

    assert len(calls) == 1
    assert limiter.get_stats()["total_calls"] == 1
