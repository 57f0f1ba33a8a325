"""Estimate the paint order of embedded images and build a preload fragment.

Every element carrying an image (``src``, ``href`` or background) gets a
"layer" score. Higher scores are images the renderer most likely paints on
top, and so the ones worth fetching first:

* base 20;
* bottom features, summed over the image and each of its ancestors:
  a zero ``height`` (-10), a style ``opacity`` in [0, 0.05] (-2), an
  ``opacity`` attribute in [0, 0.05] (-2);
* top features, summed the same way: a negative non-pixel ``margin-top``
  (+10), a ``transform`` (+5), ``isolation: isolate`` (+3), a positive
  ``z-index`` (+3);
* 3 x the sibling index of the nearest svg/g/foreignObject ancestor;
* ``100 - 0.05 x position`` for images inside an svg whose width animates;
* ``0.01 x (500 - document position)`` as a weak tiebreak.

Scoring only reads the tree.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple

from .nodes import Element, Node, element_children
from .resources import load_preload_fragment, load_preload_item
from .styles import style_map
from .walk import ParentInfo, walk

BASE_LAYER = 20
STACKING_CONTAINERS = ("svg", "g", "foreignObject")
MAX_TRACKED_IMAGES = 500

_ZERO_LENGTH = re.compile(r"^[+-]?0*\.?0+(\s*(px|%|rem|em|vh|vw))?$", re.IGNORECASE)
# Pixel offsets are deliberately not counted.
_NEGATIVE_MARGIN = re.compile(r"^-([1-9]\d*(\.\d+)?|0\.\d+)(%|\s*rem|\s*em|\s*vh|\s*vw)$", re.IGNORECASE)
_NUMBER_PREFIX = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")


@dataclass
class LayerDetail:
    url: str
    layer: float
    global_order: int
    bottom_score: int
    top_score: int
    container_score: int
    animate_score: float
    global_score: float


@dataclass
class LayerReport:
    details: List[LayerDetail] = field(default_factory=list)
    top_urls: List[str] = field(default_factory=list)
    preload_fragment: str = ""


@dataclass
class _Tracked:
    url: str
    node: Element
    # (element, index among its parent's children); the root has index -1.
    ancestors: List[Tuple[Element, int]]
    global_order: int


def _parse_number(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _NUMBER_PREFIX.match(value)
    if not match:
        return None
    return float(match.group(0))


def _near_transparent(value: Optional[str]) -> bool:
    number = _parse_number(value)
    return number is not None and 0 <= number <= 0.05


def bottom_score(element: Element) -> int:
    score = 0
    styles = style_map(element.get("style"))
    height = styles.get("height")
    if height is not None and _ZERO_LENGTH.match(height.strip()):
        score -= 10
    if _near_transparent(styles.get("opacity")):
        score -= 2
    if _near_transparent(element.get("opacity")):
        score -= 2
    return score


def top_score(element: Element) -> int:
    score = 0
    styles = style_map(element.get("style"))
    margin_top = styles.get("margin-top")
    if margin_top and _NEGATIVE_MARGIN.match(margin_top.strip()):
        score += 10
    transform = styles.get("transform")
    if transform and transform != "none":
        score += 5
    if styles.get("isolation") == "isolate":
        score += 3
    z_index = styles.get("z-index")
    if z_index:
        try:
            if float(z_index) > 0:
                score += 3
        except ValueError:
            pass
    return score


def _animates_width(svg: Element) -> bool:
    for child in element_children(svg):
        if child.tag.lower() == "animate" and (child.get("attributeName") or "").lower() == "width":
            return True
    return False


def _width_animation_svg(tracked: _Tracked) -> Optional[Element]:
    chain = [tracked.node] + [ancestor for ancestor, _ in reversed(tracked.ancestors)]
    for element in chain:
        if element.tag.lower() == "svg" and _animates_width(element):
            return element
    return None


def _container_score(tracked: _Tracked) -> int:
    for ancestor, index in reversed(tracked.ancestors):
        if ancestor.tag in STACKING_CONTAINERS:
            return 3 * max(index, 0)
    return 0


def _collect_images(tree: Element) -> List[_Tracked]:
    images: List[_Tracked] = []
    path: List[Tuple[Element, int]] = []

    def _visit(node: Node, parent_info: Optional[ParentInfo], depth: int) -> bool:
        del path[depth:]
        if not isinstance(node, Element):
            return False
        url = node.assets.first_url()
        if url:
            images.append(_Tracked(url, node, list(path), len(images)))
        path.append((node, parent_info.index if parent_info is not None else -1))
        return False

    walk(tree, _visit)
    return images


def _to_fixed(value: float, places: int) -> float:
    """Round half away from zero on the exact binary value, like JavaScript's toFixed."""
    return float(Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def _preload_fragment(urls: List[str]) -> str:
    item = load_preload_item()
    items = "".join(item.format(url=url.replace("'", "%27")) for url in urls)
    return load_preload_fragment().format(items=items)


def calc_layers(tree: Element, top_n: int) -> LayerReport:
    """Score every image in ``tree`` and build the preload fragment for the top ``top_n``."""
    images = _collect_images(tree)

    # Width-animated svg -> images inside it, keyed by node identity.
    groups: Dict[int, List[_Tracked]] = {}
    group_of: Dict[int, int] = {}
    for tracked in images:
        svg = _width_animation_svg(tracked)
        if svg is not None:
            groups.setdefault(id(svg), []).append(tracked)
            group_of[tracked.global_order] = id(svg)
    for members in groups.values():
        members.sort(key=lambda item: item.global_order)

    details: List[LayerDetail] = []
    for tracked in images:
        chain = [tracked.node] + [ancestor for ancestor, _ in tracked.ancestors]
        bottom = sum(bottom_score(element) for element in chain)
        top = sum(top_score(element) for element in chain)
        container = _container_score(tracked)

        animate = 0.0
        group_id = group_of.get(tracked.global_order)
        if group_id is not None:
            index = groups[group_id].index(tracked)
            animate = _to_fixed(100 - index * 0.05, 1)

        global_score = _to_fixed((MAX_TRACKED_IMAGES - tracked.global_order) * 0.01, 2)
        layer = _to_fixed(BASE_LAYER + bottom + top + container + animate + global_score, 2)
        details.append(
            LayerDetail(
                url=tracked.url,
                layer=layer,
                global_order=tracked.global_order,
                bottom_score=bottom,
                top_score=top,
                container_score=container,
                animate_score=animate,
                global_score=global_score,
            )
        )

    details.sort(key=lambda detail: (-detail.layer, detail.global_order))
    top_urls = [detail.url for detail in details[: max(top_n, 0)]]
    return LayerReport(details=details, top_urls=top_urls, preload_fragment=_preload_fragment(top_urls))


__all__ = ["LayerDetail", "LayerReport", "calc_layers", "bottom_score", "top_score"]
