import fitz
import pytest
from azure.core.exceptions import HttpResponseError
from PIL import Image

from field_layout.services.document_intelligence_service import DocumentIntelligenceService
from field_layout.services.layout_engine.errors import DocumentUnreadable
from field_layout.services.layout_engine.geometry import PageGeometry
from field_layout.utils.pdf_handler import PDFHandler
from field_layout.utils.rate_limiter import RateLimiter


class _FakePoller:
    def __init__(self, result):
        self._result = result

    def result(self):
        return self._result


class _FakeClient:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.requests = []

    def begin_analyze_document(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return _FakePoller(self.result)


def _pdf(*sizes, rotate=0):
    doc = fitz.open()
    for width, height in sizes:
        page = doc.new_page(width=width, height=height)
        if rotate:
            page.set_rotation(rotate)
    data = doc.tobytes()
    doc.close()
    return data


def test_analyze_returns_result_dict_and_counts_call():
    client = _FakeClient(result={"pages": [{"pageNumber": 1}]})
    limiter = RateLimiter(max_total_calls=5, enabled=True)
    service = DocumentIntelligenceService(rate_limiter=limiter, client=client)

    result = service.analyze(b"%PDF-1.7")

    assert result == {"pages": [{"pageNumber": 1}]}
    assert client.requests[0]["content_type"] == "application/pdf"
    assert limiter.get_stats("document_intelligence")["total_calls"] == 1


def test_analyze_wraps_service_errors():
    service = DocumentIntelligenceService(client=_FakeClient(error=HttpResponseError(message="bad request")))
    with pytest.raises(DocumentUnreadable):
        service.analyze(b"%PDF-1.7")


def test_analyze_refuses_when_rate_limit_exhausted():
    client = _FakeClient(result={})
    service = DocumentIntelligenceService(rate_limiter=RateLimiter(max_total_calls=0, enabled=True), client=client)
    with pytest.raises(DocumentUnreadable, match="Rate limit"):
        service.analyze(b"%PDF-1.7")
    assert client.requests == []


def test_rate_limiter_disabled_always_allows():
    limiter = RateLimiter(max_total_calls=0, enabled=False)
    assert limiter.acquire("semantic_labeler") == (True, "OK")
    assert limiter.get_stats()["total_calls"] == 1


def test_rate_limiter_reset():
    limiter = RateLimiter(max_total_calls=1, enabled=True)
    assert limiter.acquire("semantic_labeler")[0] is True
    assert limiter.acquire("document_intelligence")[0] is False
    assert limiter.get_stats("document_intelligence")["refused_calls"] == 1
    limiter.reset()
    assert limiter.get_stats()["remaining_calls"] == 1


def test_is_pdf():
    assert PDFHandler.is_pdf(b"%PDF-1.4 ...")
    assert not PDFHandler.is_pdf(b"")
    assert not PDFHandler.is_pdf(b"PK\x03\x04")


def test_page_geometries_reads_each_page():
    geometries = PDFHandler.page_geometries(_pdf((595, 842), (612, 792)))
    assert geometries == {
        1: PageGeometry(1, 595, 842),
        2: PageGeometry(2, 612, 792),
    }


def test_page_geometries_swaps_rotated_pages():
    geometries = PDFHandler.page_geometries(_pdf((595, 842), rotate=90))
    assert geometries[1] == PageGeometry(1, 842, 595)


def test_page_geometries_of_garbage_is_empty():
    assert PDFHandler.page_geometries(b"%PDF-not really") == {}


def test_image_to_base64():
    encoded = PDFHandler.image_to_base64(Image.new("RGB", (4, 4), "white"))
    assert encoded.startswith("iVBOR")
