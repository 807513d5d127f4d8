from __future__ import annotations

import asyncio
import logging
import re

from .discovery import discover_subject_elements
from .document import Page
from .extract import extract_graph
from .models import InvocationContext, State
from .oembed import OEmbedClient, injected_properties, merge_external_record
from .persist import persist, recorded_location
from .rewrite import rewrite_main_subject
from .rules import SiteRules
from .settings import PageMetaSettings, settings
from .site_rules import find_site_main_element

logger = logging.getLogger(__name__)


class PagePreparer:
    """Resolves the page's metadata to nodes and stores it on them.

    One run goes MERGING -> EXTRACTING -> DISCOVERING -> REWRITING ->
    PERSISTING -> DONE; MERGING only with oEmbed rules and REWRITING only
    when a main element was found. A failing stage is logged and the run
    stores whatever it has so far; without a graph, PERSISTING is skipped.
    Only one run may be in flight: a trigger arriving meanwhile is rejected.

    On pages whose location can change without a reload, a watcher compares
    the recorded location with the live one and re-runs on mismatch.
    """

    def __init__(
        self,
        page: Page,
        client: OEmbedClient | None = None,
        cfg: PageMetaSettings | None = None,
    ):
        self.page = page
        self.settings = cfg or settings
        self._client = client
        self._owns_client = client is None
        self._in_flight = False
        self._rules: SiteRules | None = None
        self._watch_task: asyncio.Task | None = None
        self.last: InvocationContext | None = None

    async def __aenter__(self) -> PagePreparer:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.stop_watching()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> OEmbedClient:
        if self._client is None:
            self._client = OEmbedClient()
        return self._client

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def prepare_page(self, rules: SiteRules | dict | None = None) -> InvocationContext | None:
        """Run once, then keep the metadata fresh if this page needs watching."""
        ctx = await self.prepare_metadata(rules)
        self.start_watching()
        return ctx

    async def prepare_metadata(self, rules: SiteRules | dict | None = None) -> InvocationContext | None:
        rules = SiteRules.coerce(rules)
        if self._in_flight:
            logger.warning("metadata preparation already in flight, ignoring trigger")
            return None

        self._in_flight = True
        try:
            self._rules = rules
            ctx = InvocationContext(page=self.page, rules=rules, location=self.page.location)
            await self._run(ctx)
            self.last = ctx
            return ctx
        finally:
            self._in_flight = False

    async def _run(self, ctx: InvocationContext) -> None:
        rules = ctx.rules

        if rules is not None and rules.oembed is not None:
            ctx.enter(State.MERGING)
            try:
                ctx.injected = await merge_external_record(self.page, rules, self.client, ctx.location)
            except Exception as e:
                logger.warning("oEmbed merge failed for %s: %s", ctx.location, e)

        try:
            self._resolve(ctx)
        except Exception as e:
            logger.warning("resolving subjects failed in %s for %s: %s", ctx.state.name, ctx.location, e)

        if ctx.graph is not None:
            ctx.enter(State.PERSISTING)
            try:
                persist(self.page, ctx.graph, ctx.elements, ctx.main, ctx.location)
            except Exception as e:
                logger.warning("storing metadata failed for %s: %s", ctx.location, e)

        ctx.enter(State.DONE)

    def _resolve(self, ctx: InvocationContext) -> None:
        rules = ctx.rules

        ctx.enter(State.EXTRACTING)
        self.page.fix_meta_elements()
        ctx.graph = extract_graph(self.page, ctx.location)

        ctx.enter(State.DISCOVERING)
        if rules is not None and rules.main_element:
            logger.debug("using site rules to find main element")
            ctx.elements = find_site_main_element(ctx)
        else:
            logger.debug("discovering subject elements")
            ctx.elements = discover_subject_elements(self.page, ctx.graph)
        ctx.main = next((el for el in ctx.elements if el.main), None)

        if ctx.main is not None:
            ctx.enter(State.REWRITING)
            try:
                rewrite_main_subject(ctx, ctx.main)
            except Exception as e:
                logger.warning("rewriting main subject failed for %s: %s", ctx.location, e)

    def should_watch(self, rules: SiteRules | None = None) -> bool:
        rules = rules if rules is not None else self._rules
        if rules is not None and rules.watch_location is not None:
            return rules.watch_location
        return re.search(self.settings.watch_pattern, self.page.location) is not None

    def start_watching(self) -> bool:
        """Start the periodic location check; needs a running event loop."""
        if self._watch_task is not None and not self._watch_task.done():
            return True
        if not self.should_watch():
            return False
        self._watch_task = asyncio.get_running_loop().create_task(self._watch_loop())
        return True

    async def stop_watching(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.staleness_interval)
            try:
                await self.check_staleness()
            except Exception:
                logger.exception("staleness check failed")

    async def check_staleness(self) -> bool:
        """Re-run when the live location differs from the recorded one."""
        if self._in_flight:
            return False
        recorded = recorded_location(self.page)
        if recorded is None or recorded == self.page.location:
            return False

        logger.info("location changed from %s to %s, refreshing metadata", recorded, self.page.location)
        # keep oEmbed fields of the previous location from piling up in <head>
        self.page.remove_injected_meta(injected_properties(self._rules))
        ctx = await self.prepare_metadata(self._rules)
        return ctx is not None
