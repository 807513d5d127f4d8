from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bs4 import Tag

from .document import Page
from .graph import Subject, SubjectGraph
from .rules import SiteRules


def new_element_id() -> str:
    return str(uuid.uuid4())


@dataclass(eq=False)
class SubjectElement:
    """A document node associated with a graph subject during one discovery pass."""

    node: Tag
    subject: Subject
    id: str = field(default_factory=new_element_id)
    main: bool = False
    selector: str | None = None
    overlays: list[Tag] | None = None


@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching an external record: either `record` or `error` is set."""

    record: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class State(str, Enum):
    IDLE = "idle"
    MERGING = "merging"
    EXTRACTING = "extracting"
    DISCOVERING = "discovering"
    REWRITING = "rewriting"
    PERSISTING = "persisting"
    DONE = "done"


@dataclass(eq=False)
class InvocationContext:
    """Everything one page-preparation run reads and produces.

    Built fresh for each trigger and handed to every stage; nothing is kept
    between runs except the document itself.
    """

    page: Page
    rules: SiteRules | None = None
    graph: SubjectGraph | None = None
    location: str = ""
    elements: list[SubjectElement] = field(default_factory=list)
    main: SubjectElement | None = None
    injected: list[str] = field(default_factory=list)
    state: State = State.IDLE
    transitions: list[State] = field(default_factory=list)

    def enter(self, state: State) -> None:
        self.state = state
        self.transitions.append(state)
