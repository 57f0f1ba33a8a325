"""Structural rewrites between the svg background, <image> and <img> encodings.

Every rule takes the tree returned by :func:`svgflip.builder.parse`, mutates it
in place and returns it. Matching always runs to completion before anything is
replaced (see :func:`svgflip.walk.collect`), and each match site is swapped in a
single assignment, so a rule never leaves a half-rewritten node behind.

Sync rules: ``foreign_svg_to_image``, ``svg_to_svg_image``, ``svg_to_img``,
``image_to_foreign_img``, ``image_to_foreign_svg``, ``foreign_img_to_image``.
Async rules (they measure images through a ratio probe): ``img_to_svg_image``,
``img_to_svg``.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .errors import UnknownRuleError
from .nodes import Background, Element, ResourceRefs, element_children
from .probe import RatioProbe, default_probe
from .styles import drop_properties
from .walk import ParentInfo, collect, replace

logger = logging.getLogger(__name__)

PRESERVED_ATTRIBUTES = ("class", "id", "name", "label", "pointer-events", "transform", "opacity")
POSITION_DEFAULTS = (("x", "0"), ("y", "0"), ("width", "100%"), ("height", "100%"))
PROBE_WIDTH = 1080
PROBE_TIMEOUT = 5.0

BRIDGE_TAG = "foreignObject"
SVG_TAG = "svg"
GROUP_TAG = "g"
IMAGE_TAG = "image"
RASTER_TAG = "img"

MEASURED_SVG_STYLE = "display: block; pointer-events: painted; width: 100%;"


@dataclass(frozen=True)
class Dimensions:
    width: str
    height: str


FULL_SIZE = Dimensions("100%", "100%")


def preserved_attributes(attrs: Mapping[str, str]) -> Dict[str, str]:
    """Keep the allow-listed attributes plus any ``data-*`` attribute."""
    return {
        key: value
        for key, value in attrs.items()
        if key in PRESERVED_ATTRIBUTES or key.startswith("data-")
    }


def positional_attributes(attrs: Mapping[str, str]) -> Dict[str, str]:
    return {key: attrs.get(key) or default for key, default in POSITION_DEFAULTS}


def _with_style(attrs: Dict[str, str], style: Optional[str]) -> Dict[str, str]:
    if style:
        attrs["style"] = style
    return attrs


def _first_child(node: Element, tag: str) -> Optional[Element]:
    for child in element_children(node):
        if child.tag == tag:
            return child
    return None


def _replace_matches(
    tree: Element,
    matcher: Callable[[Element, ParentInfo], bool],
    build: Callable[[Element], Element],
    rule_name: str,
) -> Element:
    matches = collect(tree, matcher)
    for match in matches:
        replace(match, build(match.node))
    logger.debug("%s rewrote %d node(s)", rule_name, len(matches))
    return tree


# ---------------------------------------------------------------------------
# foreignObject > svg  ->  image
# ---------------------------------------------------------------------------


def _is_foreign_svg(node: Element, _parent: ParentInfo) -> bool:
    if node.tag != BRIDGE_TAG:
        return False
    svg = _first_child(node, SVG_TAG)
    return svg is not None and bool(svg.assets.background_url) and not svg.children


def _foreign_svg_image(bridge: Element) -> Element:
    svg = _first_child(bridge, SVG_TAG)
    attrs = preserved_attributes({**bridge.attributes, **svg.attributes})
    attrs.update(positional_attributes(bridge.attributes))
    style = drop_properties([bridge.get("style"), svg.get("style")], ["width"])
    return Element(
        IMAGE_TAG,
        _with_style(attrs, style),
        assets=ResourceRefs(href=svg.assets.background_url),
    )


def foreign_svg_to_image(tree: Element) -> Element:
    return _replace_matches(tree, _is_foreign_svg, _foreign_svg_image, "fosvg2image")


# ---------------------------------------------------------------------------
# svg (background)  ->  svg > image
# ---------------------------------------------------------------------------


def _has_collapse_animation(node: Element) -> bool:
    # <animate attributeName="height" by="-1"> only renders on the svg form.
    return any(
        child.tag == "animate"
        and child.get("attributeName") == "height"
        and child.get("by") == "-1"
        for child in element_children(node)
    )


def _is_background_svg(node: Element, parent: ParentInfo) -> bool:
    return (
        node.tag == SVG_TAG
        and parent.parent.tag != BRIDGE_TAG
        and bool(node.assets.background_url)
        and not _has_collapse_animation(node)
    )


def _viewbox_size(viewbox: Optional[str]) -> Dimensions:
    parts = (viewbox or "").replace(",", " ").split()
    if len(parts) >= 4:
        return Dimensions(parts[2], parts[3])
    return FULL_SIZE


def svg_to_svg_image(tree: Element) -> Element:
    matches = collect(tree, _is_background_svg)
    for match in matches:
        svg = match.node
        size = _viewbox_size(svg.get("viewBox"))
        attrs = {"x": "0", "y": "0", "width": size.width, "height": size.height}
        style = drop_properties([svg.get("style")], ["transform", "opacity"])
        image = Element(
            IMAGE_TAG,
            _with_style(attrs, style),
            assets=ResourceRefs(href=svg.assets.background_url),
        )
        svg.children.insert(0, image)
        svg.assets.background = None
    logger.debug("svg2image rewrote %d node(s)", len(matches))
    return tree


# ---------------------------------------------------------------------------
# svg (background, empty)  ->  img
# ---------------------------------------------------------------------------


def _is_empty_background_svg(node: Element, _parent: ParentInfo) -> bool:
    return node.tag == SVG_TAG and not node.children and bool(node.assets.background_url)


def _svg_img(svg: Element) -> Element:
    attrs = preserved_attributes(svg.attributes)
    return Element(
        RASTER_TAG,
        _with_style(attrs, svg.get("style")),
        assets=ResourceRefs(src=svg.assets.background_url),
    )


def svg_to_img(tree: Element) -> Element:
    return _replace_matches(tree, _is_empty_background_svg, _svg_img, "svg2img")


# ---------------------------------------------------------------------------
# image  ->  g > foreignObject > img | svg
# ---------------------------------------------------------------------------


def _is_bare_image(node: Element, _parent: ParentInfo) -> bool:
    return node.tag == IMAGE_TAG and not node.children and bool(node.assets.href)


def _bridge_group(image: Element, content: Element) -> Element:
    bridge = Element(BRIDGE_TAG, positional_attributes(image.attributes), [content])
    return Element(GROUP_TAG, {}, [bridge])


def _image_foreign_img(image: Element) -> Element:
    attrs = preserved_attributes(image.attributes)
    raster = Element(
        RASTER_TAG,
        _with_style(attrs, image.get("style")),
        assets=ResourceRefs(src=image.assets.href),
    )
    return _bridge_group(image, raster)


def _image_foreign_svg(image: Element) -> Element:
    position = positional_attributes(image.attributes)
    attrs = preserved_attributes(image.attributes)
    attrs["viewBox"] = f"0 0 {position['width']} {position['height']}"
    svg = Element(
        SVG_TAG,
        _with_style(attrs, image.get("style")),
        assets=ResourceRefs(background=Background(url=image.assets.href)),
    )
    return _bridge_group(image, svg)


def image_to_foreign_img(tree: Element) -> Element:
    return _replace_matches(tree, _is_bare_image, _image_foreign_img, "image2img")


def image_to_foreign_svg(tree: Element) -> Element:
    return _replace_matches(tree, _is_bare_image, _image_foreign_svg, "image2svg")


# ---------------------------------------------------------------------------
# foreignObject > img  ->  image
# ---------------------------------------------------------------------------


def _is_foreign_img(node: Element, _parent: ParentInfo) -> bool:
    if node.tag != BRIDGE_TAG:
        return False
    raster = _first_child(node, RASTER_TAG)
    return raster is not None and bool(raster.assets.src) and not raster.children


def _foreign_img_image(bridge: Element) -> Element:
    raster = _first_child(bridge, RASTER_TAG)
    attrs = preserved_attributes({**bridge.attributes, **raster.attributes})
    attrs.update(positional_attributes(bridge.attributes))
    style = drop_properties([bridge.get("style"), raster.get("style")], ["width"])
    return Element(
        IMAGE_TAG,
        _with_style(attrs, style),
        assets=ResourceRefs(href=raster.assets.src),
    )


def foreign_img_to_image(tree: Element) -> Element:
    return _replace_matches(tree, _is_foreign_img, _foreign_img_image, "foimg2image")


# ---------------------------------------------------------------------------
# img  ->  svg > image | svg (async, measured through the ratio probe)
# ---------------------------------------------------------------------------


async def measure(probe: RatioProbe, url: str, timeout: float = PROBE_TIMEOUT) -> Optional[Dimensions]:
    """Probe ``url`` and scale it to the fixed layout width; ``None`` on any failure."""
    try:
        ratio = await asyncio.wait_for(probe(url), timeout)
    except asyncio.TimeoutError:
        logger.warning("ratio probe timed out after %ss for %s", timeout, url)
        return None
    except Exception as exc:
        logger.warning("ratio probe failed for %s: %s", url, exc)
        return None
    if not isinstance(ratio, (int, float)) or not math.isfinite(ratio) or ratio <= 0:
        logger.warning("ratio probe returned unusable ratio %r for %s", ratio, url)
        return None
    height = max(1, math.floor(PROBE_WIDTH / ratio + 0.5))
    return Dimensions(str(PROBE_WIDTH), str(height))


def _is_loose_img(node: Element, parent: ParentInfo) -> bool:
    return (
        node.tag == RASTER_TAG
        and bool(node.assets.src)
        and parent.parent.tag != BRIDGE_TAG
        and "width" not in node.attributes
        and "height" not in node.attributes
    )


def _is_bare_img(node: Element, _parent: ParentInfo) -> bool:
    return node.tag == RASTER_TAG and not node.children and bool(node.assets.src)


def _svg_image_shape(raster: Element, size: Optional[Dimensions]) -> Element:
    measured = size is not None
    size = size or FULL_SIZE
    attrs = preserved_attributes(raster.attributes)
    attrs.update({"x": "0", "y": "0", "width": size.width, "height": size.height})
    image = Element(
        IMAGE_TAG,
        _with_style(attrs, raster.get("style")),
        assets=ResourceRefs(href=raster.assets.src),
    )
    svg_style = MEASURED_SVG_STYLE if measured else "display: block; width: 100%;"
    return Element(
        SVG_TAG,
        {"viewBox": f"0 0 {size.width} {size.height}", "style": svg_style},
        [image],
    )


def _svg_shape(raster: Element, size: Optional[Dimensions]) -> Element:
    size = size or FULL_SIZE
    attrs = preserved_attributes(raster.attributes)
    attrs["viewBox"] = f"0 0 {size.width} {size.height}"
    return Element(
        SVG_TAG,
        _with_style(attrs, raster.get("style")),
        assets=ResourceRefs(background=Background(url=raster.assets.src)),
    )


async def _replace_measured(
    tree: Element,
    matcher: Callable[[Element, ParentInfo], bool],
    shape: Callable[[Element, Optional[Dimensions]], Element],
    probe: Optional[RatioProbe],
    timeout: float,
    rule_name: str,
) -> Element:
    matches = collect(tree, matcher)
    if not matches:
        return tree
    probe = probe or default_probe()
    # One probe in flight at a time keeps replacements in document order.
    for match in matches:
        size = await measure(probe, match.node.assets.src, timeout)
        replace(match, shape(match.node, size))
    logger.debug("%s rewrote %d node(s)", rule_name, len(matches))
    return tree


async def img_to_svg_image(
    tree: Element, probe: Optional[RatioProbe] = None, timeout: float = PROBE_TIMEOUT
) -> Element:
    return await _replace_measured(tree, _is_loose_img, _svg_image_shape, probe, timeout, "img2image")


async def img_to_svg(
    tree: Element, probe: Optional[RatioProbe] = None, timeout: float = PROBE_TIMEOUT
) -> Element:
    return await _replace_measured(tree, _is_bare_img, _svg_shape, probe, timeout, "img2svg")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

RULES: Dict[str, Callable] = {
    "fosvg2image": foreign_svg_to_image,
    "svg2image": svg_to_svg_image,
    "svg2img": svg_to_img,
    "image2img": image_to_foreign_img,
    "image2svg": image_to_foreign_svg,
    "foimg2image": foreign_img_to_image,
    "img2image": img_to_svg_image,
    "img2svg": img_to_svg,
}
ASYNC_RULES = frozenset({"img2image", "img2svg"})

RULE_DESCRIPTIONS: Dict[str, str] = {
    "fosvg2image": "foreignObject > svg background  ->  image",
    "svg2image": "svg background  ->  svg > image",
    "svg2img": "empty svg background  ->  img",
    "image2img": "image  ->  g > foreignObject > img",
    "image2svg": "image  ->  g > foreignObject > svg background",
    "foimg2image": "foreignObject > img  ->  image",
    "img2image": "img  ->  svg > image (measures the image)",
    "img2svg": "img  ->  svg background (measures the image)",
}


def resolve_rules(names: Iterable[str]) -> List[str]:
    resolved: List[str] = []
    for name in names:
        key = name.strip()
        if not key:
            continue
        if key not in RULES:
            raise UnknownRuleError(
                f"unknown rule '{key}' (expected one of: {', '.join(RULES)})"
            )
        resolved.append(key)
    return resolved


async def apply_rules(
    tree: Element,
    names: Iterable[str],
    probe: Optional[RatioProbe] = None,
    timeout: float = PROBE_TIMEOUT,
) -> Element:
    """Apply rules by registry name, in the order given."""
    for name in resolve_rules(names):
        rule = RULES[name]
        if name in ASYNC_RULES:
            await rule(tree, probe=probe, timeout=timeout)
        else:
            rule(tree)
    return tree


__all__ = [
    "PRESERVED_ATTRIBUTES",
    "PROBE_WIDTH",
    "PROBE_TIMEOUT",
    "Dimensions",
    "preserved_attributes",
    "positional_attributes",
    "measure",
    "foreign_svg_to_image",
    "svg_to_svg_image",
    "svg_to_img",
    "image_to_foreign_img",
    "image_to_foreign_svg",
    "foreign_img_to_image",
    "img_to_svg_image",
    "img_to_svg",
    "RULES",
    "ASYNC_RULES",
    "RULE_DESCRIPTIONS",
    "resolve_rules",
    "apply_rules",
]
