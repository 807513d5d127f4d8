from __future__ import annotations

import logging
from collections.abc import Callable

from .document import node_attr
from .models import InvocationContext, SubjectElement
from .rules import RewriteKind, RewriteSource

logger = logging.getLogger(__name__)


def _from_rdf(ctx: InvocationContext, el: SubjectElement, arg: str) -> str | None:
    values = el.subject.get_values(arg)
    if len(values) == 1 and isinstance(values[0], str) and values[0]:
        return values[0]
    return None


def _from_link(ctx: InvocationContext, el: SubjectElement, arg: str) -> str | None:
    links = ctx.page.query_all(f"link[{arg}]")
    if len(links) != 1:
        return None
    href = node_attr(links[0], "href")
    return ctx.page.resolve(href, ctx.location) if href else None


def _from_oembed(ctx: InvocationContext, el: SubjectElement, arg: str) -> str | None:
    # Reserved: the merged record is only reachable through the graph for now.
    return None


REWRITE_SOURCES: dict[RewriteKind, Callable[[InvocationContext, SubjectElement, str], str | None]] = {
    RewriteKind.RDF: _from_rdf,
    RewriteKind.LINK: _from_link,
    RewriteKind.OEMBED: _from_oembed,
}


def find_rewrite_target(
    ctx: InvocationContext, el: SubjectElement, sources: list[RewriteSource]
) -> tuple[RewriteSource, str] | None:
    for source in sources:
        fn = REWRITE_SOURCES.get(source.kind)
        if fn is None:
            logger.warning("unknown subject rewrite source: %s", source.raw)
            continue
        value = fn(ctx, el, source.arg)
        if value:
            return source, value
    return None


def rewrite_main_subject(ctx: InvocationContext, el: SubjectElement) -> bool:
    """Replace the main subject's identifier if the site rules say how.

    The old identifier stays resolvable in the graph. Returns True when a
    rewrite source produced a value.
    """
    if ctx.rules is None or not ctx.rules.rewrite_main_subject:
        return False

    found = find_rewrite_target(ctx, el, ctx.rules.rewrite_main_subject)
    if found is None:
        logger.debug("found no rewrite source")
        return False

    source, new_id = found
    logger.debug("%s: rewriting %s to %s", source.raw, el.subject.id, new_id)
    ctx.graph.rename(el.subject, new_id)
    return True
