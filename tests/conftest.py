"""Pytest configuration and shared fixtures."""

import pytest
from sqlalchemy.pool import StaticPool

from pva.db.session import init_db, make_engine, make_session_factory
from pva.extract.ai_extractor import AIContentExtractor
from pva.ingest.fetcher import WebPageFetcher
from pva.pipeline.extractor import ProductDataExtractor
from pva.products.service import ProductService
from tests.fakes import FakeLLMProvider, html_transport


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def products(session_factory):
    return ProductService(session_factory)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_fetcher(sleeps):
    def _make(transport, **kwargs):
        return WebPageFetcher(transport=transport, sleep=sleeps.append, **kwargs)

    return _make


@pytest.fixture
def fake_llm():
    return FakeLLMProvider()


@pytest.fixture
def make_pipeline(session_factory, make_fetcher):
    """Build a ProductDataExtractor over the test database with fake I/O."""

    def _make(transport=None, llm=None, products=None):
        llm = llm or FakeLLMProvider()
        return ProductDataExtractor(
            fetcher=make_fetcher(transport or html_transport()),
            ai_extractor=AIContentExtractor(llm.config, provider=llm),
            products=products or ProductService(session_factory),
        )

    return _make
