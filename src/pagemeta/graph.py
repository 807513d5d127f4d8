from __future__ import annotations

from urllib.parse import urljoin

from rdflib import BNode, Graph, URIRef
from rdflib.term import Node

from .namespaces import DEFAULT_PREFIXES, expand


class Subject:
    """A graph subject seen through its (possibly rewritten) identifier.

    `node` is the term the subject was extracted under and never changes;
    `id` is the identifier used for output and may be rewritten.
    """

    __slots__ = ("id", "node", "_graph")

    def __init__(self, graph: SubjectGraph, node: Node):
        self._graph = graph
        self.node = node
        self.id = f"_:{node}" if isinstance(node, BNode) else str(node)

    def get_values(self, predicate: str) -> list:
        return self._graph.get_values(self, predicate)

    def __repr__(self) -> str:
        return f"Subject({self.id!r})"


class SubjectGraph:
    """Subject-oriented view over an rdflib graph extracted from one page."""

    def __init__(self, rdf: Graph, base: str, prefixes: dict[str, str] | None = None):
        self.rdf = rdf
        self.base = base
        self.prefixes = dict(prefixes or DEFAULT_PREFIXES)
        self._subjects: dict[Node, Subject] = {}
        self._aliases: dict[str, Subject] = {}

    def __len__(self) -> int:
        return len(self.rdf)

    def _subject(self, node: Node) -> Subject:
        s = self._subjects.get(node)
        if s is None:
            s = Subject(self, node)
            self._subjects[node] = s
        return s

    def _predicate(self, predicate: str) -> URIRef:
        return URIRef(expand(predicate, self.prefixes) or predicate)

    def _is_subject(self, node: Node) -> bool:
        return (node, None, None) in self.rdf

    def has_any_metadata(self) -> bool:
        return len(self.rdf) > 0

    def list_subjects(self, predicate: str | None = None, obj: str | None = None) -> list:
        """Without a predicate: every Subject. With one: identifiers of matching subjects."""
        if predicate is None:
            seen: dict[Node, Subject] = {}
            for s in self.rdf.subjects():
                if s not in seen:
                    seen[s] = self._subject(s)
            return list(seen.values())

        ids: list[str] = []
        for s, _p, o in self.rdf.triples((None, self._predicate(predicate), None)):
            if obj is not None and str(o) != obj:
                continue
            sid = self._subject(s).id
            if sid not in ids:
                ids.append(sid)
        return ids

    def get_subject(self, identifier: str) -> Subject | None:
        if not identifier:
            return None
        alias = self._aliases.get(identifier)
        if alias is not None:
            return alias

        if identifier.startswith("_:"):
            node = BNode(identifier[2:])
            return self._subject(node) if self._is_subject(node) else None

        node = URIRef(identifier)
        if self._is_subject(node):
            return self._subject(node)
        try:
            node = URIRef(urljoin(self.base, identifier))
        except ValueError:
            return None
        return self._subject(node) if self._is_subject(node) else None

    def get_values(self, subject: Subject, predicate: str) -> list:
        values: list = []
        for o in self.rdf.objects(subject.node, self._predicate(predicate)):
            if isinstance(o, BNode) and self._is_subject(o):
                values.append(self._subject(o))
            else:
                values.append(str(o))
        return values

    def rename(self, subject: Subject, new_id: str) -> None:
        """Give `subject` a new canonical identifier; the old one keeps resolving."""
        subject.id = new_id
        self._aliases[new_id] = subject

    def canonical_id(self, node: Node) -> str:
        s = self._subjects.get(node)
        return s.id if s is not None else str(node)
