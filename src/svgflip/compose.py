"""Serialize a node tree back to platform markup."""
from __future__ import annotations

import re
from typing import Dict, Optional
from xml.dom import minidom

from .nodes import Background, CommentLeaf, Element, Node, TextLeaf
from .preprocess import ROOT_ID, ROOT_TAG

BACKGROUND_DEFAULTS: Dict[str, str] = {
    "color": "transparent",
    "position": "0% 0%",
    "size": "auto auto",
    "repeat": "repeat",
    "attachment": "scroll",
    "origin": "padding-box",
    "clip": "border-box",
}

# The platform renderer rejects self-closed forms of these.
EXPLICIT_CLOSE_TAGS = (
    "section",
    "p",
    "div",
    "svg",
    "iframe",
    "video",
    "mp-common-clmusic",
    "mp-common-redpacket",
    "mp-common-profile",
    "mp-common-videosnap",
    "mp-common-mpaudio",
    "mp-common-poi",
    "mp-common-miniprogram",
    "mp-common-vote",
)

_ROOT_NAMESPACE = re.compile(r'^(<[^\s>/]+)([^>]*?)\s+xmlns="http://www\.w3\.org/1999/xhtml"')
_ROOT_WRAPPER = re.compile(
    r'^<' + ROOT_TAG + r' id="' + re.escape(ROOT_ID) + r'"(?:>(.*)</' + ROOT_TAG + r'>|\s*/>)$',
    re.DOTALL,
)
_SELF_CLOSED = re.compile(
    r"<(" + "|".join(re.escape(tag) for tag in EXPLICIT_CLOSE_TAGS) + r")(\s[^<>]*?)?\s*/>",
    re.IGNORECASE,
)


def background_shorthand(background: Background) -> str:
    """Render a migrated background as a ``background:`` declaration."""
    color = background.color or BACKGROUND_DEFAULTS["color"]
    position = background.position or BACKGROUND_DEFAULTS["position"]
    size = background.size or BACKGROUND_DEFAULTS["size"]
    repeat = background.repeat or BACKGROUND_DEFAULTS["repeat"]
    attachment = background.attachment or BACKGROUND_DEFAULTS["attachment"]
    origin = background.origin or BACKGROUND_DEFAULTS["origin"]
    clip = background.clip or BACKGROUND_DEFAULTS["clip"]

    position_size = position
    if size not in ("auto", "auto auto"):
        position_size += f" / {size}"
    return (
        f"background: {color} url({background.url}) {position_size} "
        f"{repeat} {attachment} {origin} {clip}"
    )


def native_attributes(node: Element) -> Dict[str, str]:
    """Return the attribute set with migrated resources written back natively."""
    attrs = dict(node.attributes)
    background = node.assets.background
    if background is not None and background.url:
        declaration = background_shorthand(background)
        existing = attrs.get("style", "")
        attrs["style"] = f"{existing}; {declaration}" if existing else declaration
    if node.assets.href:
        attrs["href"] = node.assets.href
    if node.assets.src:
        attrs["src"] = node.assets.src
    return attrs


def _to_dom(document: minidom.Document, node: Node) -> Optional[minidom.Node]:
    if isinstance(node, TextLeaf):
        return document.createTextNode(node.content)
    if isinstance(node, CommentLeaf):
        return document.createComment(node.content)
    element = document.createElement(node.tag)
    for name, value in native_attributes(node).items():
        element.setAttribute(name, value)
    for child in node.children:
        child_dom = _to_dom(document, child)
        if child_dom is not None:
            element.appendChild(child_dom)
    return element


def _unwrap_root(markup: str) -> str:
    match = _ROOT_WRAPPER.match(markup)
    if not match:
        return markup
    return match.group(1) or ""


def _close_explicitly(markup: str) -> str:
    return _SELF_CLOSED.sub(lambda m: f"<{m.group(1)}{(m.group(2) or '').rstrip()}></{m.group(1)}>", markup)


def compose(tree: Element) -> str:
    """Serialize ``tree`` and undo the wrapping added during preprocessing."""
    document = minidom.Document()
    try:
        markup = _to_dom(document, tree).toxml()
    finally:
        document.unlink()
    markup = _ROOT_NAMESPACE.sub(r"\1\2", markup, count=1)
    markup = _unwrap_root(markup)
    markup = markup.replace("&amp;", "&")
    return _close_explicitly(markup)


__all__ = [
    "BACKGROUND_DEFAULTS",
    "EXPLICIT_CLOSE_TAGS",
    "background_shorthand",
    "native_attributes",
    "compose",
]
