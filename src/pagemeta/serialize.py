from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from rdflib import BNode, Graph, URIRef
from rdflib.term import Node

from .graph import Subject, SubjectGraph
from .namespaces import CC, OG

logger = logging.getLogger(__name__)


def _term(graph: SubjectGraph, node: Node) -> Node:
    if isinstance(node, URIRef):
        return URIRef(graph.canonical_id(node))
    return node


def _sort_key(triple: tuple[Node, Node, Node]) -> tuple[str, ...]:
    return tuple(f"{type(t).__name__}:{t}" for t in triple)


def collect_triples(
    graph: SubjectGraph, subjects: Iterable[Subject], include_closure: bool = True
) -> list[tuple[Node, Node, Node]]:
    """Triples of `subjects`, plus those of every subject reachable through objects."""
    queue = deque(s.node for s in subjects)
    visited: set[Node] = set()
    triples: list[tuple[Node, Node, Node]] = []

    while queue:
        node = queue.popleft()
        if node in visited:
            continue
        visited.add(node)
        for p, o in graph.rdf.predicate_objects(node):
            triples.append((node, p, o))
            if include_closure and isinstance(o, (URIRef, BNode)) and o not in visited:
                if (o, None, None) in graph.rdf:
                    queue.append(o)

    return sorted(
        {(_term(graph, s), p, _term(graph, o)) for s, p, o in triples}, key=_sort_key
    )


def serialize_subjects(
    graph: SubjectGraph, subjects: Iterable[Subject], include_closure: bool = True
) -> str:
    """Serialize the subjects as RDF/XML.

    Output is byte-identical for identical input: triples are added in sorted
    order and rewritten subjects are emitted under their new identifier.
    """
    out = Graph()
    out.bind("og", OG)
    out.bind("cc", CC)
    for t in collect_triples(graph, subjects, include_closure):
        try:
            out.namespace_manager.compute_qname_strict(t[1])
        except ValueError:
            # RDF/XML can only express predicates that split into namespace + NCName
            logger.warning("dropping predicate not expressible in RDF/XML: %s", t[1])
            continue
        out.add(t)
    return out.serialize(format="xml")
