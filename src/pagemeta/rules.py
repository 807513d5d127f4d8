from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class MainSubjectStrategy(str, Enum):
    """How the subject of a site's main element is located."""

    OG_IMAGE = "rdf:og:image"
    SINGLE_SUBJECT = "single-subject"
    DOCUMENT = "document"


DEFAULT_MAIN_SUBJECT = [
    MainSubjectStrategy.OG_IMAGE,
    MainSubjectStrategy.SINGLE_SUBJECT,
    MainSubjectStrategy.DOCUMENT,
]


class RewriteKind(str, Enum):
    RDF = "rdf"
    LINK = "link"
    OEMBED = "oembed"


class RewriteSource(BaseModel):
    """One `kind:arg` entry of rewriteMainSubject, e.g. `rdf:og:url` or `link:canonical`."""

    model_config = ConfigDict(frozen=True)

    kind: RewriteKind
    arg: str

    @property
    def raw(self) -> str:
        return f"{self.kind.value}:{self.arg}"

    @classmethod
    def parse(cls, raw: str) -> RewriteSource | None:
        kind, sep, arg = raw.partition(":")
        if not sep:
            return None
        try:
            return cls(kind=RewriteKind(kind), arg=arg)
        except ValueError:
            return None


class OEmbedConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    endpoint: str
    # oEmbed response key -> predicate IRI, overriding the default map
    field_map: dict[str, str] = Field(default_factory=dict, alias="map")


def _as_list(v: Any) -> Any:
    return [v] if isinstance(v, str) else v


class SiteRules(BaseModel):
    """Per-site configuration for locating the main element and its subject.

    Accepts the camelCase keys used in rule files (`mainElement`, ...) as well
    as the attribute names. Unknown strategies and rewrite sources are logged
    and dropped here, so the engines only ever see valid entries.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True
    )

    main_element: list[str] | None = None
    main_subject: list[MainSubjectStrategy] = Field(
        default_factory=lambda: list(DEFAULT_MAIN_SUBJECT)
    )
    main_overlay_elements: dict[str, list[str]] | None = None
    rewrite_main_subject: list[RewriteSource] | None = None
    oembed: OEmbedConfig | None = None
    watch_location: bool | None = None

    @field_validator("main_element", mode="before")
    @classmethod
    def _main_element(cls, v: Any) -> Any:
        return _as_list(v)

    @field_validator("main_subject", mode="before")
    @classmethod
    def _main_subject(cls, v: Any) -> Any:
        if v is None:
            return list(DEFAULT_MAIN_SUBJECT)
        out = []
        for name in _as_list(v):
            try:
                out.append(MainSubjectStrategy(name))
            except ValueError:
                logger.error("unknown siteRules.mainSubject: %s", name)
        return out

    @field_validator("main_overlay_elements", mode="before")
    @classmethod
    def _overlays(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: _as_list(sel) for k, sel in v.items()}
        return v

    @field_validator("rewrite_main_subject", mode="before")
    @classmethod
    def _rewrite_sources(cls, v: Any) -> Any:
        if v is None:
            return None
        out = []
        for item in _as_list(v):
            if not isinstance(item, str):
                out.append(item)
                continue
            src = RewriteSource.parse(item)
            if src is None:
                logger.warning("unknown subject rewrite source: %s", item)
                continue
            out.append(src)
        return out

    @classmethod
    def coerce(cls, rules: SiteRules | dict | None) -> SiteRules | None:
        if rules is None or isinstance(rules, SiteRules):
            return rules
        return cls.model_validate(rules)


class SiteRulesRegistry:
    """Site rules keyed by hostname, loaded from a JSON object file."""

    def __init__(self, rules: dict[str, SiteRules] | None = None):
        self.rules = dict(rules or {})

    @classmethod
    def load(cls, path: str | Path) -> SiteRulesRegistry:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a JSON object keyed by hostname")
        return cls({host.lower(): SiteRules.model_validate(r) for host, r in raw.items()})

    def rules_for(self, url: str) -> SiteRules | None:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return None
        found = self.rules.get(host)
        if found is None and host.startswith("www."):
            found = self.rules.get(host[4:])
        return found
