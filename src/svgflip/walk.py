"""Depth-first traversal shared by asset extraction, rewrite rules and scoring."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from .nodes import Element, Node


@dataclass
class ParentInfo:
    parent: Element
    index: int


@dataclass
class Match:
    node: Element
    parent: Element
    index: int


Visitor = Callable[[Node, Optional[ParentInfo], int], Optional[bool]]
Matcher = Callable[[Element, ParentInfo], bool]


def walk(
    node: Node,
    visit: Visitor,
    parent_info: Optional[ParentInfo] = None,
    depth: int = 0,
) -> None:
    """Pre-order walk; a truthy return from ``visit`` skips the node's children."""
    if visit(node, parent_info, depth):
        return
    if not isinstance(node, Element):
        return
    index = 0
    # Live indexing: a visitor may have replaced node.children[index] in place.
    while index < len(node.children):
        walk(node.children[index], visit, ParentInfo(node, index), depth + 1)
        index += 1


def collect(tree: Node, matcher: Matcher) -> List[Match]:
    """Read-only pass returning the first match on every branch, in document order."""
    matches: List[Match] = []

    def _visit(node: Node, parent_info: Optional[ParentInfo], _depth: int) -> bool:
        if parent_info is None or not isinstance(node, Element):
            return False
        if matcher(node, parent_info):
            matches.append(Match(node, parent_info.parent, parent_info.index))
            return True
        return False

    walk(tree, _visit)
    return matches


def replace(match: Match, new_node: Node) -> None:
    match.parent.children[match.index] = new_node


__all__ = ["ParentInfo", "Match", "walk", "collect", "replace"]
