from __future__ import annotations

import logging
from urllib.parse import unquote

from bs4 import Tag

from .document import Page, is_image, node_attr
from .graph import SubjectGraph
from .models import SubjectElement
from .namespaces import OG_IMAGE

logger = logging.getLogger(__name__)


def find_image_subject(page: Page, graph: SubjectGraph, node: Tag) -> SubjectElement | None:
    """Locate the subject for one image node without any site knowledge.

    Tried in order:
    - the node id, as subject `#id`
    - the percent-decoded absolute src, as a subject IRI
    - the src as the object of exactly one og:image triple (flagged main)
    """
    if not is_image(node):
        return None

    subject = None
    main = False

    node_id = node_attr(node, "id")
    if node_id:
        subject = graph.get_subject("#" + node_id)
        if subject is not None:
            logger.debug("found subject on ID: %s", subject.id)

    raw_src = node_attr(node, "src")
    resolved = page.resolve(raw_src, graph.base) if raw_src else None
    if subject is None and resolved is not None:
        src = unquote(resolved)
        subject = graph.get_subject(src)
        if subject is not None:
            logger.debug("found subject on src: %s", subject.id)
        else:
            ids = graph.list_subjects(OG_IMAGE, src)
            if len(ids) == 1:
                subject = graph.get_subject(ids[0])
                main = subject is not None
                logger.debug("found subject on og:image: %s", ids[0])
            elif ids:
                logger.debug("%d og:image subjects for %s, ignoring", len(ids), src)

    if subject is None:
        return None
    return SubjectElement(node=node, subject=subject, main=main)


def discover_subject_elements(page: Page, graph: SubjectGraph) -> list[SubjectElement]:
    """Associate every image on the page that has metadata with its subject.

    Only images are considered: their src can be decoded into a form that is
    comparable with the IRIs in the graph.
    """
    result: list[SubjectElement] = []
    for node in page.query_all("img"):
        el = find_image_subject(page, graph, node)
        if el is not None:
            result.append(el)
    logger.debug("discovered %d subject elements", len(result))
    return result
