"""
End-to-end tests for PagePreparer: pipeline states, the in-flight guard and
location watching.
"""

import asyncio

import httpx
import pytest

from pagemeta.document import INJECTED_ATTR
from pagemeta.models import State
from pagemeta.orchestrator import PagePreparer
from pagemeta.persist import (
    ELEMENT_ID_ATTR,
    LOCATION_ATTR,
    MAIN_IMAGE_ID_ATTR,
    MAIN_IMAGE_SELECTOR_ATTR,
    MAIN_IMAGE_SUBJECT_ATTR,
    METADATA_ATTR,
)
from pagemeta.settings import PageMetaSettings

ENDPOINT = "https://oembed.example/api"
DC_TITLE = "http://purl.org/dc/elements/1.1/title"

OEMBED_RULES = {
    "mainElement": "#photo",
    "mainSubject": ["document"],
    "oembed": {"endpoint": ENDPOINT},
    "watchLocation": True,
}


def _oembed_handler(request):
    return httpx.Response(200, json={"title": "Title for " + request.url.params["url"]})


class TestPrepareMetadata:

    @pytest.mark.asyncio
    async def test_og_image_without_rules(self, make_page, location):
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">',
                         body='<img src="http://x/a.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata(None)

        assert ctx.state is State.DONE
        assert ctx.transitions == [State.EXTRACTING, State.DISCOVERING, State.REWRITING,
                                   State.PERSISTING, State.DONE]
        assert len(ctx.elements) == 1
        assert ctx.main is ctx.elements[0]
        assert ctx.main.subject.id == location
        assert ctx.main.node is page.query("img")

        root = page.root
        assert root[MAIN_IMAGE_SUBJECT_ATTR] == location
        assert root[MAIN_IMAGE_ID_ATTR] == ctx.main.id
        assert root[LOCATION_ATTR] == location
        assert page.query("img")[ELEMENT_ID_ATTR] == ctx.main.id

    @pytest.mark.asyncio
    async def test_document_strategy(self, make_page, location):
        page = make_page(head='<meta property="dc:title" content="Sunset">',
                         body='<img id="photo" src="/p.jpg"><img src="/q.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata({"mainElement": "#photo", "mainSubject": ["document"]})

        assert [el.node for el in ctx.elements] == [page.query("#photo")]
        assert ctx.main.subject.id == location
        assert ctx.main.selector == "#photo"
        assert page.root[MAIN_IMAGE_SELECTOR_ATTR] == "#photo"

    @pytest.mark.asyncio
    async def test_rewrite(self, make_page, location):
        page = make_page(head='<link rel="seeAlso" href="http://canonical/1">',
                         body='<img id="photo" src="/p.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata({"mainElement": "#photo", "rewriteMainSubject": ["rdf:seeAlso"]})

        assert ctx.main.subject.id == "http://canonical/1"
        assert ctx.graph.get_subject(location) is ctx.main.subject
        assert page.root[MAIN_IMAGE_SUBJECT_ATTR] == "http://canonical/1"
        assert 'rdf:about="http://canonical/1"' in page.root[METADATA_ATTR]

    @pytest.mark.asyncio
    async def test_no_metadata(self, make_page, location):
        page = make_page(body='<img src="/p.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata()

        assert ctx.state is State.DONE
        assert State.REWRITING not in ctx.transitions
        assert ctx.elements == []
        assert ctx.main is None
        assert not page.root.has_attr(MAIN_IMAGE_ID_ATTR)
        assert page.root[LOCATION_ATTR] == location

    @pytest.mark.asyncio
    async def test_oembed_fields_reach_the_graph(self, make_page, oembed_client, location):
        page = make_page(body='<img id="photo" src="/p.jpg">')
        preparer = PagePreparer(page, client=oembed_client(_oembed_handler))

        ctx = await preparer.prepare_metadata(OEMBED_RULES)

        assert ctx.transitions[0] is State.MERGING
        assert ctx.injected == [DC_TITLE]
        assert ctx.main.subject.get_values(DC_TITLE) == ["Title for " + location]

    @pytest.mark.asyncio
    async def test_fetch_failure_still_completes(self, make_page, oembed_client, location):
        page = make_page(head='<meta property="dc:title" content="Sunset">',
                         body='<img id="photo" src="/p.jpg">')
        preparer = PagePreparer(page, client=oembed_client(lambda r: httpx.Response(503)))

        ctx = await preparer.prepare_metadata(OEMBED_RULES)

        assert ctx.state is State.DONE
        assert ctx.injected == []
        assert ctx.main.subject.get_values(DC_TITLE) == ["Sunset"]

    @pytest.mark.asyncio
    async def test_repeated_runs_store_identical_payloads(self, make_page):
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">',
                         body='<img src="http://x/a.jpg">')
        preparer = PagePreparer(page)

        await preparer.prepare_metadata()
        first = page.root[METADATA_ATTR], page.query("img")[METADATA_ATTR]
        await preparer.prepare_metadata()

        assert (page.root[METADATA_ATTR], page.query("img")[METADATA_ATTR]) == first


class TestMalformedMarkup:
    """Unparsable URLs in the page are misses, never a failed run."""

    @pytest.mark.asyncio
    async def test_broken_src_without_rules(self, make_page, location):
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">',
                         body='<img id="bad" src="http://[broken/b.jpg"><img id="good" src="http://x/a.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata(None)

        assert ctx.state is State.DONE
        assert [el.node for el in ctx.elements] == [page.query("#good")]
        assert page.query("#good")[ELEMENT_ID_ATTR] == ctx.main.id
        assert page.query("#good").has_attr(METADATA_ATTR)
        assert not page.query("#bad").has_attr(METADATA_ATTR)
        assert page.root[MAIN_IMAGE_SUBJECT_ATTR] == location

    @pytest.mark.asyncio
    async def test_broken_about(self, make_page, location):
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">',
                         body='<span about="http://[x" property="dc:title">Broken</span>'
                              '<img src="http://x/a.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata(None)

        assert ctx.state is State.DONE
        assert [s.id for s in ctx.graph.list_subjects()] == [location]
        assert page.query("img")[ELEMENT_ID_ATTR] == ctx.main.id
        assert "Broken" not in page.root[METADATA_ATTR]

    @pytest.mark.asyncio
    async def test_broken_urls_with_site_rules(self, make_page, location):
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">'
                              '<link rel="canonical" href="http://[x/canonical">',
                         body='<img id="bad" src="http://[broken/b.jpg"><img id="photo" src="http://x/a.jpg">')
        rules = {
            "mainElement": ["#bad", "#photo"],
            "mainSubject": ["rdf:og:image"],
            "rewriteMainSubject": ['link:rel="canonical"'],
        }

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata(rules)

        assert ctx.state is State.DONE
        assert ctx.main.selector == "#photo"
        assert ctx.main.subject.id == location
        assert page.query("#photo")[ELEMENT_ID_ATTR] == ctx.main.id
        assert page.root[MAIN_IMAGE_SELECTOR_ATTR] == "#photo"

    @pytest.mark.asyncio
    async def test_failing_stage_still_stores_the_graph(self, make_page, location, monkeypatch):
        def boom(page, graph):
            raise RuntimeError("boom")

        monkeypatch.setattr("pagemeta.orchestrator.discover_subject_elements", boom)
        page = make_page(head='<meta property="og:image" content="http://x/a.jpg">',
                         body='<img src="http://x/a.jpg">')

        async with PagePreparer(page) as preparer:
            ctx = await preparer.prepare_metadata(None)

        assert ctx.state is State.DONE
        assert ctx.transitions[-2:] == [State.PERSISTING, State.DONE]
        assert ctx.elements == []
        assert page.root[LOCATION_ATTR] == location
        assert "http://x/a.jpg" in page.root[METADATA_ATTR]


class TestInFlightGuard:

    @pytest.mark.asyncio
    async def test_second_trigger_is_rejected(self, make_page, oembed_client):
        gate = asyncio.Event()

        async def handler(request):
            await gate.wait()
            return _oembed_handler(request)

        page = make_page(body='<img id="photo" src="/p.jpg">')
        preparer = PagePreparer(page, client=oembed_client(handler))

        first = asyncio.create_task(preparer.prepare_metadata(OEMBED_RULES))
        while not preparer.in_flight:
            await asyncio.sleep(0)

        assert await preparer.prepare_metadata(OEMBED_RULES) is None
        page.location = "http://example.com/photos/2"
        assert await preparer.check_staleness() is False

        gate.set()
        ctx = await first
        assert ctx.state is State.DONE
        assert not preparer.in_flight


class TestStaleness:

    @pytest.mark.asyncio
    async def test_location_change_refreshes_metadata(self, make_page, oembed_client, location):
        page = make_page(body='<img id="photo" src="/p.jpg">')
        preparer = PagePreparer(page, client=oembed_client(_oembed_handler))
        await preparer.prepare_metadata(OEMBED_RULES)

        assert await preparer.check_staleness() is False

        new_location = "http://example.com/photos/2"
        page.location = new_location
        assert await preparer.check_staleness() is True

        injected = page.query_all(f"meta[{INJECTED_ATTR}]")
        assert [m["content"] for m in injected] == ["Title for " + new_location]
        assert page.root[LOCATION_ATTR] == new_location
        assert page.root[MAIN_IMAGE_SUBJECT_ATTR] == new_location
        assert preparer.last.main.subject.get_values(DC_TITLE) == ["Title for " + new_location]

    @pytest.mark.asyncio
    async def test_watcher_runs_until_stopped(self, make_page, oembed_client):
        page = make_page(body='<img id="photo" src="/p.jpg">')
        cfg = PageMetaSettings(staleness_interval=0.01)
        preparer = PagePreparer(page, client=oembed_client(_oembed_handler), cfg=cfg)

        await preparer.prepare_page(OEMBED_RULES)
        try:
            page.location = "http://example.com/photos/3"
            for _ in range(200):
                if page.root[LOCATION_ATTR] == page.location:
                    break
                await asyncio.sleep(0.01)
            assert page.root[LOCATION_ATTR] == "http://example.com/photos/3"
        finally:
            await preparer.stop_watching()

        page.location = "http://example.com/photos/4"
        await asyncio.sleep(0.05)
        assert page.root[LOCATION_ATTR] == "http://example.com/photos/3"

    def test_watch_class(self, make_page):
        flickr = PagePreparer(make_page(location="https://www.flickr.com/photos/ann/1"))
        other = PagePreparer(make_page(location="https://example.com/photos/1"))

        assert flickr.should_watch() is True
        assert other.should_watch() is False
        assert other.should_watch(rules=None) is False

    @pytest.mark.asyncio
    async def test_start_watching_respects_rules(self, make_page):
        preparer = PagePreparer(make_page(body='<img src="/p.jpg">'))
        await preparer.prepare_metadata({"watchLocation": False})

        assert preparer.start_watching() is False
        await preparer.aclose()
