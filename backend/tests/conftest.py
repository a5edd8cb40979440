import pytest

from field_layout.services.layout_engine.confidence import ConfidenceScorer
from field_layout.services.layout_engine.fusion import FusionEngine
from field_layout.services.layout_engine.geometry import PageGeometry
from field_layout.services.layout_engine.lexicon import LabelLexicon
from field_layout.services.layout_engine.pipeline import PageFieldExtractor


@pytest.fixture(scope="session")
def lexicon():
    return LabelLexicon.load(("he", "en"))


@pytest.fixture
def a4_page():
    return PageGeometry(page_number=1, width=595.0, height=842.0)


@pytest.fixture
def engine(lexicon):
    return FusionEngine(lexicon=lexicon, scorer=ConfidenceScorer())


@pytest.fixture
def extractor(engine):
    return PageFieldExtractor(engine)


def inch_polygon(x, y, width, height):
    """Clockwise-from-top-left polygon in inches, top-left origin."""
    return [x, y, x + width, y, x + width, y + height, x, y + height]


@pytest.fixture
def polygon():
    return inch_polygon
