from __future__ import annotations

import logging
from collections.abc import Callable

from bs4 import Tag

from .document import Page, node_attr
from .graph import Subject
from .models import InvocationContext, SubjectElement
from .namespaces import OG_IMAGE
from .rules import MainSubjectStrategy

logger = logging.getLogger(__name__)


def _by_og_image(ctx: InvocationContext, node: Tag) -> Subject | None:
    raw_src = node_attr(node, "src")
    src = ctx.page.resolve(raw_src, ctx.location) if raw_src else None
    if src is None:
        return None
    ids = ctx.graph.list_subjects(OG_IMAGE, src)
    if len(ids) == 1:
        logger.debug("found main subject on og:image: %s", ids[0])
        return ctx.graph.get_subject(ids[0])
    return None


def _by_single_subject(ctx: InvocationContext, node: Tag) -> Subject | None:
    subjects = ctx.graph.list_subjects()
    if len(subjects) == 1:
        logger.debug("found single subject: %s", subjects[0].id)
        return subjects[0]
    return None


def _by_document(ctx: InvocationContext, node: Tag) -> Subject | None:
    subject = ctx.graph.get_subject(ctx.location)
    if subject is not None:
        logger.debug("found subject for document: %s", subject.id)
    return subject


MAIN_SUBJECT_STRATEGIES: dict[MainSubjectStrategy, Callable[[InvocationContext, Tag], Subject | None]] = {
    MainSubjectStrategy.OG_IMAGE: _by_og_image,
    MainSubjectStrategy.SINGLE_SUBJECT: _by_single_subject,
    MainSubjectStrategy.DOCUMENT: _by_document,
}


def resolve_main_subject(ctx: InvocationContext, node: Tag) -> Subject | None:
    """Try the configured strategies in order; first hit wins."""
    for strategy in ctx.rules.main_subject:
        fn = MAIN_SUBJECT_STRATEGIES.get(strategy)
        if fn is None:
            logger.error("unknown siteRules.mainSubject: %s", strategy)
            continue
        subject = fn(ctx, node)
        if subject is not None:
            return subject

    logger.warning("could not find site main subject")
    return None


def find_overlay_elements(page: Page, selectors: list[str] | None) -> list[Tag] | None:
    """Nodes matched by the first overlay selector that matches anything."""
    if not selectors:
        return None
    for selector in selectors:
        nodes = page.query_all(selector)
        if nodes:
            logger.debug("found overlays using: %s", selector)
            return nodes
    return None


def find_site_main_element(ctx: InvocationContext) -> list[SubjectElement]:
    """Locate the main element with the site's selectors.

    Returns at most one association. Heuristic discovery is not consulted,
    even when nothing is found.
    """
    rules = ctx.rules
    for selector in rules.main_element or []:
        node = ctx.page.query(selector)
        if node is None:
            continue

        logger.debug("found main element using: %s", selector)
        subject = resolve_main_subject(ctx, node)
        if subject is None:
            logger.warning("no subject found for main element %s", selector)
            continue

        overlays = None
        if rules.main_overlay_elements:
            overlays = find_overlay_elements(ctx.page, rules.main_overlay_elements.get(selector))

        return [
            SubjectElement(
                node=node,
                subject=subject,
                main=True,
                selector=selector,
                overlays=overlays,
            )
        ]

    return []
