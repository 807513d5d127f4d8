"""
Pytest configuration and shared fixtures for pagemeta tests.
"""

import httpx
import pytest

from pagemeta.document import Page
from pagemeta.extract import extract_graph
from pagemeta.models import InvocationContext
from pagemeta.oembed import OEmbedClient
from pagemeta.rules import SiteRules

LOCATION = "http://example.com/photos/1"


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


def html_doc(head: str = "", body: str = "") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


@pytest.fixture
def location() -> str:
    return LOCATION


@pytest.fixture
def make_page():
    def _make(head: str = "", body: str = "", location: str = LOCATION) -> Page:
        return Page(html_doc(head, body), location)
    return _make


@pytest.fixture
def make_ctx():
    """Extracted graph plus invocation context for engine-level tests."""
    def _make(page: Page, rules=None) -> InvocationContext:
        page.fix_meta_elements()
        return InvocationContext(
            page=page,
            rules=SiteRules.coerce(rules),
            graph=extract_graph(page),
            location=page.location,
        )
    return _make


@pytest.fixture
def oembed_client():
    """OEmbedClient whose HTTP traffic goes to `handler` instead of the network."""
    def _make(handler) -> OEmbedClient:
        return OEmbedClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    return _make
