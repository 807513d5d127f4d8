from __future__ import annotations

import logging
from typing import Any

from bs4 import Tag

from .document import Page, node_attr
from .graph import SubjectGraph
from .models import SubjectElement
from .serialize import serialize_subjects

logger = logging.getLogger(__name__)

# Attributes written on subject elements and their overlays
METADATA_ATTR = "data-pagemeta-metadata"
SUBJECT_ATTR = "data-pagemeta-subject"
ELEMENT_ID_ATTR = "data-pagemeta-element-id"
OVERLAY_ID_ATTR = "data-pagemeta-overlay-id"
OVERLAY_SUBJECT_ATTR = "data-pagemeta-overlay-subject"
OVERLAY_SELECTOR_ATTR = "data-pagemeta-overlay-selector"

# Attributes written on the document root for the main image
MAIN_IMAGE_METADATA_ATTR = "data-pagemeta-main-image-metadata"
MAIN_IMAGE_ID_ATTR = "data-pagemeta-main-image-id"
MAIN_IMAGE_SUBJECT_ATTR = "data-pagemeta-main-image-subject"
MAIN_IMAGE_SELECTOR_ATTR = "data-pagemeta-main-image-selector"
LOCATION_ATTR = "data-pagemeta-metadata-location"

ALL_ATTRS = (
    METADATA_ATTR,
    SUBJECT_ATTR,
    ELEMENT_ID_ATTR,
    OVERLAY_ID_ATTR,
    OVERLAY_SUBJECT_ATTR,
    OVERLAY_SELECTOR_ATTR,
    MAIN_IMAGE_METADATA_ATTR,
    MAIN_IMAGE_ID_ATTR,
    MAIN_IMAGE_SUBJECT_ATTR,
    MAIN_IMAGE_SELECTOR_ATTR,
    LOCATION_ATTR,
)


def clear_metadata(page: Page) -> int:
    """Remove every attribute a previous pass wrote."""
    removed = 0
    for node in page.soup.find_all(True):
        for attr in ALL_ATTRS:
            if node.has_attr(attr):
                del node[attr]
                removed += 1
    return removed


def store_metadata(graph: SubjectGraph, el: SubjectElement) -> str:
    """Write the subject's metadata on its node and on each overlay."""
    rdf = serialize_subjects(graph, [el.subject], include_closure=True)

    el.node[METADATA_ATTR] = rdf
    if el.subject.id:
        el.node[SUBJECT_ATTR] = el.subject.id
    if el.id:
        el.node[ELEMENT_ID_ATTR] = el.id

    for overlay in el.overlays or []:
        overlay[METADATA_ATTR] = rdf
        if el.id:
            overlay[OVERLAY_ID_ATTR] = el.id
        if el.subject.id:
            overlay[OVERLAY_SUBJECT_ATTR] = el.subject.id
        if el.main and el.selector:
            overlay[OVERLAY_SELECTOR_ATTR] = el.selector

    return rdf


def store_page_metadata(page: Page, graph: SubjectGraph) -> str:
    """Write all metadata on the page to the document root."""
    rdf = serialize_subjects(graph, graph.list_subjects(), include_closure=True)
    page.root[METADATA_ATTR] = rdf
    return rdf


def store_main_image_metadata(page: Page, graph: SubjectGraph, el: SubjectElement, location: str) -> None:
    root = page.root
    root[MAIN_IMAGE_METADATA_ATTR] = serialize_subjects(graph, [el.subject], include_closure=True)
    if el.id:
        root[MAIN_IMAGE_ID_ATTR] = el.id
    if el.subject.id:
        root[MAIN_IMAGE_SUBJECT_ATTR] = el.subject.id
    if el.selector:
        root[MAIN_IMAGE_SELECTOR_ATTR] = el.selector
    # compared against the live location by the staleness check
    root[LOCATION_ATTR] = location


def persist(
    page: Page,
    graph: SubjectGraph,
    elements: list[SubjectElement],
    main: SubjectElement | None,
    location: str,
) -> None:
    clear_metadata(page)
    store_page_metadata(page, graph)
    for el in elements:
        store_metadata(graph, el)
    if main is not None:
        store_main_image_metadata(page, graph, main, location)
    else:
        page.root[LOCATION_ATTR] = location
    logger.debug("stored metadata for %d elements (main=%s)", len(elements), main is not None)


def recorded_location(page: Page) -> str | None:
    return node_attr(page.root, LOCATION_ATTR)


def image_with_metadata(page: Page, node: Tag) -> dict[str, Any] | None:
    """Read back what a previous pass stored for a node the user picked.

    An overlay is followed to the element it covers.
    """
    overlay_id = node_attr(node, OVERLAY_ID_ATTR)
    if node_attr(node, ELEMENT_ID_ATTR) is None and overlay_id:
        target = page.query(f'[{ELEMENT_ID_ATTR}="{overlay_id}"]')
        if target is None:
            logger.warning("overlay refers to missing element %s", overlay_id)
            return None
        info = image_with_metadata(page, target)
        if info is not None:
            info["overlay"] = True
        return info

    rdf = node_attr(node, METADATA_ATTR)
    if rdf is None:
        return None

    element_id = node_attr(node, ELEMENT_ID_ATTR)
    src = node_attr(node, "src")
    return {
        "src": page.resolve(src) if src else None,
        "metadata": rdf,
        "subject": node_attr(node, SUBJECT_ATTR),
        "element_id": element_id,
        "main": element_id is not None and element_id == node_attr(page.root, MAIN_IMAGE_ID_ATTR),
        "overlay": False,
    }
