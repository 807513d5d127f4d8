from __future__ import annotations

import logging

import httpx

from .document import Page
from .http import HttpClientFactory, transient_retry
from .models import FetchResult
from .namespaces import CC, DC, OG
from .rules import SiteRules

logger = logging.getLogger(__name__)

# oEmbed response key -> predicate injected into the page
DEFAULT_FIELD_MAP: dict[str, str] = {
    "title": str(DC.title),
    "web_page": str(OG.url),
    "author_name": str(CC.attributionName),
    "author_url": str(CC.attributionURL),
}


class OEmbedClient:
    """Fetches oEmbed records (https://oembed.com/) as plain dicts."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or HttpClientFactory.client()

    async def aclose(self):
        await self._client.aclose()

    @transient_retry()
    async def _get(self, endpoint: str, url: str) -> httpx.Response:
        r = await self._client.get(endpoint, params={"url": url, "format": "json"})
        r.raise_for_status()
        return r

    async def fetch(self, endpoint: str, url: str) -> FetchResult:
        logger.debug("fetching oEmbed for %s from %s", url, endpoint)
        try:
            r = await self._get(endpoint, url)
            data = r.json()
        except httpx.HTTPError as e:
            return FetchResult(error=f"{type(e).__name__}: {e}")
        except ValueError as e:
            return FetchResult(error=f"invalid JSON: {e}")

        if not isinstance(data, dict):
            return FetchResult(error=f"expected a JSON object, got {type(data).__name__}")
        return FetchResult(record=data)


def field_map(rules: SiteRules) -> dict[str, str]:
    """Default map overridden key by key by the site's map."""
    merged = dict(DEFAULT_FIELD_MAP)
    if rules.oembed is not None:
        merged.update({k: v for k, v in rules.oembed.field_map.items() if v})
    return merged


def injected_properties(rules: SiteRules | None) -> set[str]:
    """Every property the merge may have injected for these rules."""
    props = set(DEFAULT_FIELD_MAP.values())
    if rules is not None and rules.oembed is not None:
        props.update(v for v in rules.oembed.field_map.values() if v)
    return props


def _text(value) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def merge_external_record(
    page: Page, rules: SiteRules | None, client: OEmbedClient, location: str
) -> list[str]:
    """Inject the site's oEmbed record as <meta property> tags before extraction.

    Returns the injected properties; failures are logged and yield none.
    """
    if rules is None or rules.oembed is None:
        return []

    result = await client.fetch(rules.oembed.endpoint, location)
    if not result.ok:
        logger.warning("oEmbed fetch failed for %s: %s", location, result.error)
        return []

    mapping = field_map(rules)
    injected: list[str] = []
    for key, value in result.record.items():
        prop = mapping.get(key)
        text = _text(value)
        if prop and text is not None:
            page.add_meta_property(prop, text)
            injected.append(prop)

    logger.debug("injected %d oEmbed properties", len(injected))
    return injected
