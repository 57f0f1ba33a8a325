"""Public API for svgflip."""
from __future__ import annotations

from typing import Iterable, Optional

from .builder import build, extract_assets, parse
from .compose import compose
from .config import config
from .errors import ParseError, ProbeError, ProbeFailure, ProbeTimeout, SvgflipError, UnknownRuleError
from .layers import LayerDetail, LayerReport, calc_layers
from .probe import ImageRatioProbe, RatioProbe
from .rules import (
    RULES,
    apply_rules,
    foreign_img_to_image,
    foreign_svg_to_image,
    image_to_foreign_img,
    image_to_foreign_svg,
    img_to_svg,
    img_to_svg_image,
    svg_to_img,
    svg_to_svg_image,
)


async def convert(text: str, rules: Iterable[str], probe: Optional[RatioProbe] = None) -> str:
    """Parse ``text``, apply ``rules`` by name in order, and serialize the result."""
    tree = parse(text)
    await apply_rules(tree, rules, probe=probe, timeout=config.probe_timeout)
    return compose(tree)


__all__ = [
    "parse",
    "build",
    "extract_assets",
    "compose",
    "convert",
    "apply_rules",
    "RULES",
    "foreign_svg_to_image",
    "svg_to_svg_image",
    "svg_to_img",
    "image_to_foreign_img",
    "image_to_foreign_svg",
    "foreign_img_to_image",
    "img_to_svg_image",
    "img_to_svg",
    "calc_layers",
    "LayerDetail",
    "LayerReport",
    "ImageRatioProbe",
    "RatioProbe",
    "SvgflipError",
    "ParseError",
    "UnknownRuleError",
    "ProbeError",
    "ProbeTimeout",
    "ProbeFailure",
]
