"""Node types for the markup tree."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Union

TEXT_LEAF = "text-leaf"
COMMENT_LEAF = "comment-leaf"


@dataclass
class Background:
    """A migrated background image plus its longhand sub-properties.

    Sub-properties hold the declared value, or "" when the style did not set
    them; the serializer fills in CSS initial values for the empty ones.
    """

    url: str
    color: str = ""
    position: str = ""
    size: str = ""
    repeat: str = ""
    attachment: str = ""
    origin: str = ""
    clip: str = ""


@dataclass
class ResourceRefs:
    href: str = ""
    src: str = ""
    background: Optional[Background] = None

    @property
    def background_url(self) -> str:
        return self.background.url if self.background is not None else ""

    def first_url(self) -> str:
        return self.src or self.href or self.background_url


@dataclass
class Element:
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list)
    assets: ResourceRefs = field(default_factory=ResourceRefs)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)


@dataclass
class TextLeaf:
    content: str
    tag: ClassVar[str] = TEXT_LEAF


@dataclass
class CommentLeaf:
    content: str
    tag: ClassVar[str] = COMMENT_LEAF


Node = Union[Element, TextLeaf, CommentLeaf]


def is_element(node: Node, tag: Optional[str] = None) -> bool:
    if not isinstance(node, Element):
        return False
    return tag is None or node.tag == tag


def element_children(node: Node) -> List[Element]:
    if not isinstance(node, Element):
        return []
    return [child for child in node.children if isinstance(child, Element)]


__all__ = [
    "TEXT_LEAF",
    "COMMENT_LEAF",
    "Background",
    "ResourceRefs",
    "Element",
    "TextLeaf",
    "CommentLeaf",
    "Node",
    "is_element",
    "element_children",
]
