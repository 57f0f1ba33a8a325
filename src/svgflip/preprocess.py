"""String-level normalization applied to raw markup before parsing."""
from __future__ import annotations

import re
import warnings
from typing import Callable, Dict, List

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from bs4.builder import HTMLParserTreeBuilder
from bs4.dammit import EntitySubstitution
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction
from bs4.formatter import HTMLFormatter

ROOT_TAG = "div"
ROOT_ID = "svgflip-root"

PLACEHOLDER_CLASS = "wx_imgbc_placeholder"
KNOWN_ENTITIES = ("amp", "lt", "gt", "quot", "nbsp", "copy", "yen", "euro", "deg", "times", "permil")
VOID_TAGS = ("img", "br", "input", "hr")
VERBATIM_TAGS = ("pre", "code", "textarea")

# Names a browser restores to camel case when it parses SVG content.
TAG_CASE_MAP: Dict[str, str] = {
    name.lower(): name
    for name in (
        "altGlyph",
        "altGlyphDef",
        "altGlyphItem",
        "animateColor",
        "animateMotion",
        "animateTransform",
        "clipPath",
        "feBlend",
        "feColorMatrix",
        "feComponentTransfer",
        "feComposite",
        "feConvolveMatrix",
        "feDiffuseLighting",
        "feDisplacementMap",
        "feDistantLight",
        "feDropShadow",
        "feFlood",
        "feFuncA",
        "feFuncB",
        "feFuncG",
        "feFuncR",
        "feGaussianBlur",
        "feImage",
        "feMerge",
        "feMergeNode",
        "feMorphology",
        "feOffset",
        "fePointLight",
        "feSpecularLighting",
        "feSpotLight",
        "feTile",
        "feTurbulence",
        "foreignObject",
        "glyphRef",
        "linearGradient",
        "radialGradient",
        "textPath",
    )
}

ATTRIBUTE_CASE_MAP: Dict[str, str] = {
    name.lower(): name
    for name in (
        "attributeName",
        "attributeType",
        "baseFrequency",
        "baseProfile",
        "calcMode",
        "clipPathUnits",
        "diffuseConstant",
        "edgeMode",
        "filterUnits",
        "glyphRef",
        "gradientTransform",
        "gradientUnits",
        "kernelMatrix",
        "kernelUnitLength",
        "keyPoints",
        "keySplines",
        "keyTimes",
        "lengthAdjust",
        "limitingConeAngle",
        "markerHeight",
        "markerUnits",
        "markerWidth",
        "maskContentUnits",
        "maskUnits",
        "numOctaves",
        "pathLength",
        "patternContentUnits",
        "patternTransform",
        "patternUnits",
        "pointsAtX",
        "pointsAtY",
        "pointsAtZ",
        "preserveAlpha",
        "preserveAspectRatio",
        "primitiveUnits",
        "refX",
        "refY",
        "repeatCount",
        "repeatDur",
        "requiredExtensions",
        "requiredFeatures",
        "specularConstant",
        "specularExponent",
        "spreadMethod",
        "startOffset",
        "stdDeviation",
        "stitchTiles",
        "surfaceScale",
        "systemLanguage",
        "tableValues",
        "targetX",
        "targetY",
        "textLength",
        "viewBox",
        "viewTarget",
        "xChannelSelector",
        "yChannelSelector",
        "zoomAndPan",
    )
}

_ATTR_VALUE = r"""(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+))?"""
_IMG_TAG = re.compile(r"<img\s[^>]*>", re.IGNORECASE)
_DATA_SRC = re.compile(r"(?:\s|^)data-src(?![\w-])" + _ATTR_VALUE, re.IGNORECASE)
_DATA_LAZY_BGIMG = re.compile(r"(?:\s|^)data-lazy-bgimg(?![\w-])" + _ATTR_VALUE, re.IGNORECASE)
_CLASS_ATTR = re.compile(r"(\s|^)class\s*=\s*([\"'])(.*?)\2", re.IGNORECASE)
_BARE_AMPERSAND = re.compile(r"&(?!(?:" + "|".join(KNOWN_ENTITIES) + r");)")
_URL_VALUE = re.compile(r"url\(\s*(?:\"|&quot;|')?(.*?)(?:\"|&quot;|')?\s*\)", re.IGNORECASE)
_VOID_TAG = re.compile(r"<(" + "|".join(VOID_TAGS) + r")(\s[^>]*?)?\s*(/?)>", re.IGNORECASE)
_VERBATIM_BLOCK = re.compile(r"<(" + "|".join(VERBATIM_TAGS) + r")\b[\s\S]*?</\1>", re.IGNORECASE)
_SPACE_ENTITY = re.compile(r"&nbsp;|&#160;|&#xA0;", re.IGNORECASE)
_TAG_NAME = re.compile(r"<(/?)(" + "|".join(TAG_CASE_MAP) + r")(?=[\s/>])", re.IGNORECASE)
_ATTRIBUTE_NAME = re.compile(r"([\s>])(" + "|".join(ATTRIBUTE_CASE_MAP) + r")=", re.IGNORECASE)


def _markup_builder() -> HTMLParserTreeBuilder:
    builder = HTMLParserTreeBuilder(multi_valued_attributes=None)
    # SVG <image> may hold <animate> children.
    builder.empty_element_tags = set(builder.empty_element_tags) - {"image"}
    return builder


class _BrowserFormatter(HTMLFormatter):
    """Serialize like innerHTML: source attribute order, values always double-quoted."""

    def __init__(self) -> None:
        super().__init__(entity_substitution=EntitySubstitution.substitute_xml)

    def attributes(self, tag):
        if tag.attrs is None:
            return []
        return list(tag.attrs.items())

    def attribute_value(self, value: str) -> str:
        return super().attribute_value(value).replace('"', "&quot;")


def repair_structure(html: str) -> str:
    """Close unterminated tags and fix nesting with a lenient HTML parser.

    Doctypes are dropped and processing instructions such as an XML
    declaration become comments, as they would in a browser's HTML parse.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html, builder=_markup_builder())
    for node in list(soup.descendants):
        if isinstance(node, (Doctype, Declaration)):
            node.extract()
        elif isinstance(node, ProcessingInstruction):
            node.replace_with(Comment(f"?{node}"))
    return soup.decode(formatter=_BrowserFormatter())



def remove_lazy_attributes(html: str) -> str:
    html = _IMG_TAG.sub(lambda match: _DATA_SRC.sub("", match.group(0)), html)
    return _DATA_LAZY_BGIMG.sub("", html)


def remove_placeholder_class(html: str) -> str:
    def _clean(match: "re.Match[str]") -> str:
        lead, quote, value = match.group(1), match.group(2), match.group(3)
        tokens = [token for token in value.split() if token != PLACEHOLDER_CLASS]
        if len(tokens) == len(value.split()):
            return match.group(0)
        if not tokens:
            return ""
        return f"{lead}class={quote}{' '.join(tokens)}{quote}"

    return _CLASS_ATTR.sub(_clean, html)


def escape_ampersands(html: str) -> str:
    return _BARE_AMPERSAND.sub("&amp;", html)


def unify_url_quotes(html: str) -> str:
    return _URL_VALUE.sub(lambda match: f"url('{match.group(1).strip()}')", html)


def close_void_tags(html: str) -> str:
    def _close(match: "re.Match[str]") -> str:
        if match.group(3):
            return match.group(0)
        attrs = (match.group(2) or "").rstrip()
        return f"<{match.group(1)}{attrs}/>"

    return _VOID_TAG.sub(_close, html)


def collapse_whitespace(html: str) -> str:
    """Collapse whitespace everywhere except inside pre/code/textarea blocks."""
    preserved: List[str] = []

    def _stash(match: "re.Match[str]") -> str:
        preserved.append(match.group(0))
        return f"__SVGFLIP_VERBATIM_{len(preserved) - 1}__"

    text = _VERBATIM_BLOCK.sub(_stash, html)
    text = re.sub(r"[\n\r]+", " ", text)
    text = re.sub(r"\t+", " ", text)
    text = _SPACE_ENTITY.sub(" ", text)
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r">\s+<", "><", text)
    text = text.strip()
    for index, block in enumerate(preserved):
        text = text.replace(f"__SVGFLIP_VERBATIM_{index}__", block, 1)
    return text


def canonicalize_case(html: str) -> str:
    html = _TAG_NAME.sub(lambda m: f"<{m.group(1)}{TAG_CASE_MAP[m.group(2).lower()]}", html)
    return _ATTRIBUTE_NAME.sub(lambda m: f"{m.group(1)}{ATTRIBUTE_CASE_MAP[m.group(2).lower()]}=", html)


def wrap_root(html: str) -> str:
    return f'<{ROOT_TAG} id="{ROOT_ID}">{html}</{ROOT_TAG}>'


PREPROCESS_STEPS: List[Callable[[str], str]] = [
    repair_structure,
    remove_lazy_attributes,
    remove_placeholder_class,
    escape_ampersands,
    unify_url_quotes,
    close_void_tags,
    collapse_whitespace,
    canonicalize_case,
    wrap_root,
]


def preprocess(text: str) -> str:
    """Run every normalization pass in order; repairs first, cleanup after."""
    for step in PREPROCESS_STEPS:
        text = step(text)
    return text


__all__ = [
    "ROOT_TAG",
    "ROOT_ID",
    "PLACEHOLDER_CLASS",
    "PREPROCESS_STEPS",
    "preprocess",
    "repair_structure",
    "remove_lazy_attributes",
    "remove_placeholder_class",
    "escape_ampersands",
    "unify_url_quotes",
    "close_void_tags",
    "collapse_whitespace",
    "canonicalize_case",
    "wrap_root",
]
