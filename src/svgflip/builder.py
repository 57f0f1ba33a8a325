"""Parse normalized markup into a node tree and migrate resource attributes."""
from __future__ import annotations

import logging
from typing import Optional
from xml.dom import expatbuilder, minidom
from xml.parsers.expat import ExpatError

from .errors import ParseError
from .nodes import CommentLeaf, Element, Node, TextLeaf
from .preprocess import preprocess
from .styles import extract_background
from .walk import ParentInfo, walk

logger = logging.getLogger(__name__)

IMAGE_TAG = "image"
RASTER_TAG = "img"


def parse(text: str) -> Element:
    """Preprocess raw markup and build its node tree."""
    return build(preprocess(text))


def build(normalized: str) -> Element:
    """Build a tree from already-normalized markup and extract its assets."""
    try:
        # No namespace processing: prefixes such as xlink: are often undeclared.
        document = expatbuilder.parseString(normalized.encode("utf-8"), namespaces=False)
    except ExpatError as exc:
        line = getattr(exc, "lineno", None)
        column = getattr(exc, "offset", None)
        location = (
            f" at line {line}, column {column}" if line is not None and column is not None else ""
        )
        raise ParseError(f"failed to parse markup{location}: {exc}", line, column) from exc

    try:
        root = _to_node(document.documentElement)
    finally:
        document.unlink()
    if not isinstance(root, Element):
        raise ParseError("markup has no root element")
    extract_assets(root)
    return root


def _to_node(dom_node: minidom.Node) -> Optional[Node]:
    if dom_node.nodeType == dom_node.ELEMENT_NODE:
        element = Element(tag=dom_node.tagName)
        attributes = dom_node.attributes
        for index in range(attributes.length):
            attr = attributes.item(index)
            element.attributes[attr.name] = attr.value
        for child in dom_node.childNodes:
            converted = _to_node(child)
            if converted is not None:
                element.children.append(converted)
        return element
    if dom_node.nodeType in (dom_node.TEXT_NODE, dom_node.CDATA_SECTION_NODE):
        if not dom_node.data.strip():
            return None
        return TextLeaf(dom_node.data)
    if dom_node.nodeType == dom_node.COMMENT_NODE:
        return CommentLeaf(dom_node.data)
    return None


def extract_assets(tree: Element) -> Element:
    """Move href/src/background references out of the attribute mapping."""
    migrated = 0

    def _visit(node: Node, _parent: Optional[ParentInfo], _depth: int) -> bool:
        nonlocal migrated
        if not isinstance(node, Element):
            return False
        attrs = node.attributes
        if node.tag == IMAGE_TAG and "href" in attrs:
            node.assets.href = attrs.pop("href")
            migrated += 1
        if node.tag == RASTER_TAG and "src" in attrs:
            node.assets.src = attrs.pop("src")
            migrated += 1
        if "style" in attrs:
            background, cleaned = extract_background(attrs["style"])
            if background is not None:
                node.assets.background = background
                migrated += 1
                if cleaned:
                    attrs["style"] = cleaned
                else:
                    del attrs["style"]
        return False

    walk(tree, _visit)
    logger.debug("migrated %d resource references", migrated)
    return tree


__all__ = ["parse", "build", "extract_assets", "IMAGE_TAG", "RASTER_TAG"]
