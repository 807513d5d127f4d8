from __future__ import annotations

from rdflib import Namespace
from rdflib.namespace import DC, DCTERMS, FOAF, RDF, RDFS

OG = Namespace("http://ogp.me/ns#")
CC = Namespace("http://creativecommons.org/ns#")
XHV = Namespace("http://www.w3.org/1999/xhtml/vocab#")
SCHEMA = Namespace("http://schema.org/")

OG_IMAGE = str(OG.image)

DEFAULT_PREFIXES: dict[str, str] = {
    "og": str(OG),
    "dc": str(DC),
    "dcterms": str(DCTERMS),
    "cc": str(CC),
    "rdf": str(RDF),
    "rdfs": str(RDFS),
    "xhv": str(XHV),
    "foaf": str(FOAF),
    "schema": str(SCHEMA),
}

# Bare terms accepted in property/rel attributes and rewrite sources.
TERMS: dict[str, str] = {
    "license": str(XHV.license),
    "describedby": "http://www.w3.org/2007/05/powder-s#describedby",
    "role": str(XHV.role),
    "seeAlso": str(RDFS.seeAlso),
}


def expand(name: str, prefixes: dict[str, str] | None = None) -> str | None:
    """Expand a CURIE, term or absolute IRI into an absolute predicate IRI.

    Returns None when the name cannot be resolved (unknown prefix or term).
    """
    name = (name or "").strip()
    if not name:
        return None
    if "://" in name or name.startswith("urn:"):
        return name

    prefixes = prefixes if prefixes is not None else DEFAULT_PREFIXES
    if ":" in name:
        prefix, local = name.split(":", 1)
        base = prefixes.get(prefix.lower())
        return base + local if base else None

    return TERMS.get(name)
