from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from svgflip.nodes import Element, TextLeaf
from svgflip.walk import collect, replace, walk


def _tree() -> Element:
    # root > [a > [b, "t"], c > [a > [d]]]
    return Element(
        "root",
        children=[
            Element("a", {"id": "1"}, [Element("b"), TextLeaf("t")]),
            Element("c", children=[Element("a", {"id": "2"}, [Element("d")])]),
        ],
    )


class WalkTests(unittest.TestCase):
    def test_pre_order_with_depth(self) -> None:
        seen = []
        walk(_tree(), lambda node, parent, depth: seen.append((node.tag, depth)))
        self.assertEqual(
            seen,
            [("root", 0), ("a", 1), ("b", 2), ("text-leaf", 2), ("c", 1), ("a", 2), ("d", 3)],
        )

    def test_parent_info(self) -> None:
        indexes = {}

        def _visit(node, parent, _depth):
            if parent is not None:
                indexes[node.tag] = (parent.parent.tag, parent.index)

        walk(_tree(), _visit)
        self.assertEqual(indexes["text-leaf"], ("a", 1))
        self.assertEqual(indexes["c"], ("root", 1))

    def test_truthy_visit_stops_descent(self) -> None:
        seen = []

        def _visit(node, _parent, _depth):
            seen.append(node.tag)
            return node.tag == "a"

        walk(_tree(), _visit)
        self.assertEqual(seen, ["root", "a", "c", "a"])


class CollectReplaceTests(unittest.TestCase):
    def test_collect_in_document_order(self) -> None:
        matches = collect(_tree(), lambda node, _parent: node.tag == "a")
        self.assertEqual([m.node.attributes["id"] for m in matches], ["1", "2"])
        self.assertEqual([(m.parent.tag, m.index) for m in matches], [("root", 0), ("c", 0)])

    def test_collect_never_matches_root(self) -> None:
        self.assertEqual(collect(_tree(), lambda node, _parent: node.tag == "root"), [])

    def test_collect_keeps_first_match_per_branch(self) -> None:
        tree = Element("root", children=[Element("x", children=[Element("x")])])
        matches = collect(tree, lambda node, _parent: node.tag == "x")
        self.assertEqual(len(matches), 1)
        self.assertIs(matches[0].node, tree.children[0])

    def test_collect_does_not_mutate(self) -> None:
        tree = _tree()
        collect(tree, lambda node, _parent: True)
        self.assertEqual(tree, _tree())

    def test_replace_assigns_by_index(self) -> None:
        tree = _tree()
        for match in collect(tree, lambda node, _parent: node.tag == "a"):
            replace(match, Element("z"))
        self.assertEqual([child.tag for child in tree.children], ["z", "c"])
        self.assertEqual(tree.children[1].children[0].tag, "z")


if __name__ == "__main__":
    unittest.main()
