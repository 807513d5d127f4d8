from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

# Marks <meta> nodes added by the external record merge so they can be removed again.
INJECTED_ATTR = "data-pagemeta-injected"


def resolve_url(base: str, ref: str) -> str | None:
    try:
        return urljoin(base, ref.strip())
    except ValueError as e:
        # e.g. "Invalid IPv6 URL" for an unbalanced "[" in the host
        logger.debug("cannot resolve %r against %s: %s", ref, base, e)
        return None


class Page:
    """A parsed HTML document plus its canonical location.

    `location` is mutable: single-page applications change it without
    reloading the document, which is what the staleness watcher looks for.
    """

    def __init__(self, html: str, location: str, *, parser: str = "lxml"):
        self.soup = BeautifulSoup(html, parser)
        self.location = location

    @property
    def root(self) -> Tag:
        return self.soup.body or self.soup.html or self.soup

    @property
    def head(self) -> Tag:
        head = self.soup.head
        if head is None:
            head = self.soup.new_tag("head")
            html = self.soup.html
            if html is not None:
                html.insert(0, head)
            else:
                self.soup.insert(0, head)
        return head

    @property
    def html(self) -> str:
        return str(self.soup)

    def query_all(self, selector: str) -> list[Tag]:
        try:
            return list(self.soup.select(selector))
        except SelectorSyntaxError as e:
            logger.error("invalid selector %r: %s", selector, e)
            return []

    def query(self, selector: str) -> Tag | None:
        nodes = self.query_all(selector)
        return nodes[0] if nodes else None

    def resolve(self, ref: str, base: str | None = None) -> str | None:
        """Absolute form of `ref`, or None when it cannot be parsed as a URL."""
        return resolve_url(base or self.location, ref)

    def fix_meta_elements(self) -> int:
        """Copy `name` to `property` on <meta name> lacking a property.

        Some sites publish OpenGraph with name="og:..." which RDFa ignores.
        """
        fixed = 0
        for el in self.query_all("meta[name]"):
            if not el.has_attr("property"):
                el["property"] = el["name"]
                fixed += 1
        return fixed

    def add_meta_property(self, prop: str, content: str) -> Tag:
        meta = self.soup.new_tag("meta")
        meta["property"] = prop
        meta["content"] = content
        meta[INJECTED_ATTR] = ""
        self.head.append(meta)
        return meta

    def remove_injected_meta(self, props: set[str] | list[str]) -> int:
        props = set(props)
        removed = 0
        for el in self.query_all(f"head > meta[{INJECTED_ATTR}]"):
            if el.get("property") in props:
                el.decompose()
                removed += 1
        return removed


def node_attr(node: Tag, name: str) -> str | None:
    """Single-valued attribute read; bs4 returns lists for rel/class."""
    value = node.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return value


def is_image(node: Tag) -> bool:
    return isinstance(node, Tag) and (node.name or "").lower() == "img"
