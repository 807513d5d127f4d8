from __future__ import annotations

import logging

from bs4 import Tag
from rdflib import Graph, Literal, URIRef

from .document import Page, node_attr, resolve_url
from .graph import SubjectGraph
from .namespaces import DEFAULT_PREFIXES, expand

logger = logging.getLogger(__name__)


def _collect_prefixes(page: Page) -> dict[str, str]:
    prefixes = dict(DEFAULT_PREFIXES)
    for el in page.soup.find_all(True):
        for name, value in el.attrs.items():
            if name.startswith("xmlns:") and isinstance(value, str):
                prefixes[name[6:].lower()] = value
        decl = node_attr(el, "prefix")
        if decl:
            # RDFa 1.1: "og: http://ogp.me/ns# dc: http://purl.org/dc/terms/"
            tokens = decl.split()
            for pfx, iri in zip(tokens[::2], tokens[1::2]):
                if pfx.endswith(":"):
                    prefixes[pfx[:-1].lower()] = iri
    return prefixes


def _subject_of(base: str, el: Tag) -> URIRef | None:
    """Subject from the nearest `about`, or the base. None if `about` is not a URL."""
    node: Tag | None = el
    while isinstance(node, Tag):
        about = node_attr(node, "about")
        if about is not None:
            iri = resolve_url(base, about)
            return URIRef(iri) if iri is not None else None
        node = node.parent
    return URIRef(base)


def _names(el: Tag, attr: str, prefixes: dict[str, str]) -> list[URIRef]:
    raw = node_attr(el, attr)
    if not raw:
        return []
    out = []
    for name in raw.split():
        iri = expand(name, prefixes)
        if iri:
            out.append(URIRef(iri))
    return out


def _resource_ref(el: Tag) -> str | None:
    for attr in ("resource", "href", "src"):
        ref = node_attr(el, attr)
        if ref is not None:
            return ref
    return None


def extract_graph(page: Page, base: str | None = None) -> SubjectGraph:
    """Read RDFa-lite statements from the page into a SubjectGraph.

    Handles <meta property>, <link rel>, and property/rel/about attributes on
    ordinary elements. Typed nodes, lists and vocab defaults are not supported.
    Relative references resolve against `base`, the page location by default.
    Statements whose subject or object is not a parseable URL are skipped.
    """
    base = base or page.location
    prefixes = _collect_prefixes(page)
    g = Graph()

    for el in page.soup.find_all(True):
        properties = _names(el, "property", prefixes)
        rels = _names(el, "rel", prefixes)
        if not properties and not rels:
            continue

        subject = _subject_of(base, el)
        if subject is None:
            continue

        ref = _resource_ref(el)
        target = None
        if ref is not None:
            iri = resolve_url(base, ref)
            target = URIRef(iri) if iri is not None else None

        if properties:
            content = node_attr(el, "content")
            if content is not None:
                obj = Literal(content)
            elif ref is not None:
                obj = target
            else:
                obj = Literal(el.get_text().strip())
            if obj is not None:
                for p in properties:
                    g.add((subject, p, obj))

        if rels and target is not None:
            for p in rels:
                g.add((subject, p, target))

    logger.debug("extracted %d triples from %s", len(g), base)
    return SubjectGraph(g, base=base, prefixes=prefixes)
