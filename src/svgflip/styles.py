"""Inline CSS helpers: declaration lists and the background shorthand."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .nodes import Background


@dataclass
class Declaration:
    name: str
    value: str
    text: str


_BACKGROUND_PROPERTY = re.compile(
    r"^background(-image|-position|-size|-repeat|-attachment|-origin|-clip|-color)?$"
)
_URL = re.compile(r"url\(\s*['\"]?(.*?)['\"]?\s*\)", re.IGNORECASE)
_LENGTH = re.compile(r"^[-+]?(\d+(\.\d+)?|\.\d+)([a-z%]+)?$", re.IGNORECASE)

_REPEAT_KEYWORDS = {"repeat", "repeat-x", "repeat-y", "no-repeat", "space", "round"}
_ATTACHMENT_KEYWORDS = {"scroll", "fixed", "local"}
_BOX_KEYWORDS = {"border-box", "padding-box", "content-box"}
_POSITION_KEYWORDS = {"left", "right", "top", "bottom", "center"}
_SIZE_KEYWORDS = {"auto", "cover", "contain"}

_LONGHANDS = {
    "background-color": "color",
    "background-position": "position",
    "background-size": "size",
    "background-repeat": "repeat",
    "background-attachment": "attachment",
    "background-origin": "origin",
    "background-clip": "clip",
}


def _split_top_level(text: str, separators: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    quote: Optional[str] = None
    current: List[str] = []
    for ch in text:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "'\"":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif ch in separators and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def parse_declarations(style: Optional[str]) -> List[Declaration]:
    """Split a style attribute into declarations, ignoring ``;`` inside ``url(...)``."""
    declarations: List[Declaration] = []
    if not style:
        return declarations
    for chunk in _split_top_level(style, ";"):
        text = chunk.strip()
        if not text or ":" not in text:
            continue
        name, value = text.split(":", 1)
        name = name.strip().lower()
        if not name:
            continue
        declarations.append(Declaration(name=name, value=value.strip(), text=text))
    return declarations


def style_map(style: Optional[str]) -> Dict[str, str]:
    return {decl.name: decl.value for decl in parse_declarations(style)}


def join_declarations(declarations: Iterable[Declaration]) -> str:
    return "; ".join(decl.text for decl in declarations)


def drop_properties(styles: Iterable[Optional[str]], names: Iterable[str]) -> str:
    """Merge style strings and remove every declaration of the named properties."""
    blocked = {name.lower() for name in names}
    kept: List[Declaration] = []
    for style in styles:
        kept.extend(decl for decl in parse_declarations(style) if decl.name not in blocked)
    return join_declarations(kept)


def extract_url(value: str) -> str:
    match = _URL.search(value or "")
    if not match:
        return ""
    return match.group(1).strip()


def _classify_layer(layer: str) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    position: List[str] = []
    size: List[str] = []
    repeat: List[str] = []
    boxes: List[str] = []
    after_slash = False
    tokens: List[str] = []
    for chunk in _split_top_level(layer, " \t\n"):
        if not chunk:
            continue
        pieces = _split_top_level(chunk, "/")
        for idx, piece in enumerate(pieces):
            if idx:
                tokens.append("/")
            if piece:
                tokens.append(piece)

    for token in tokens:
        lowered = token.lower()
        if token == "/":
            after_slash = True
        elif lowered.startswith("url("):
            fields["image"] = token
        elif lowered == "none" or "gradient(" in lowered:
            fields.setdefault("image", token)
        elif lowered in _REPEAT_KEYWORDS:
            repeat.append(token)
        elif lowered in _ATTACHMENT_KEYWORDS:
            fields["attachment"] = token
        elif lowered in _BOX_KEYWORDS:
            boxes.append(token)
        elif (lowered in _SIZE_KEYWORDS or (after_slash and _LENGTH.match(lowered))) and len(size) < 2:
            size.append(token)
        elif lowered in _POSITION_KEYWORDS or _LENGTH.match(lowered):
            after_slash = False
            position.append(token)
        else:
            fields["color"] = token

    if position:
        fields["position"] = " ".join(position)
    if size:
        fields["size"] = " ".join(size)
    if repeat:
        fields["repeat"] = " ".join(repeat)
    if boxes:
        fields["origin"] = boxes[0]
        fields["clip"] = boxes[1] if len(boxes) > 1 else boxes[0]
    return fields


def parse_background_shorthand(value: str) -> Dict[str, str]:
    """Expand a ``background`` shorthand, keeping the first layer with an image."""
    layers = [layer.strip() for layer in _split_top_level(value, ",") if layer.strip()]
    if not layers:
        return {}
    chosen = layers[-1]
    for layer in layers:
        if _URL.search(layer):
            chosen = layer
            break
    fields = _classify_layer(chosen)
    # Only the final layer may carry a color.
    final_color = _classify_layer(layers[-1]).get("color")
    if final_color:
        fields["color"] = final_color
    else:
        fields.pop("color", None)
    return fields


def extract_background(style: Optional[str]) -> Tuple[Optional[Background], Optional[str]]:
    """Pull a background image out of a style attribute.

    Returns ``(background, cleaned_style)``. When the style declares no
    background image the background is ``None`` and the style is returned
    untouched. Otherwise every ``background*`` declaration is removed and the
    cleaned style is ``None`` when nothing is left.
    """
    declarations = parse_declarations(style)
    image: Optional[str] = None
    props: Dict[str, str] = {}
    for decl in declarations:
        if decl.name == "background":
            shorthand = parse_background_shorthand(decl.value)
            image = shorthand.get("image", "none")
            props = {key: shorthand.get(key, "") for key in _LONGHANDS.values()}
        elif decl.name == "background-image":
            image = decl.value
        elif decl.name in _LONGHANDS:
            props[_LONGHANDS[decl.name]] = decl.value

    if image is None or "url(" not in image.lower():
        return None, style

    background = Background(url=extract_url(image), **{key: props.get(key, "") for key in _LONGHANDS.values()})
    kept = [decl for decl in declarations if not _BACKGROUND_PROPERTY.match(decl.name)]
    cleaned = join_declarations(kept)
    return background, cleaned or None


__all__ = [
    "Declaration",
    "parse_declarations",
    "style_map",
    "join_declarations",
    "drop_properties",
    "extract_url",
    "parse_background_shorthand",
    "extract_background",
]
