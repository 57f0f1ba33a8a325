from __future__ import annotations

import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from svgflip.builder import build, parse
from svgflip.errors import ParseError
from svgflip.nodes import Background, CommentLeaf, Element, TextLeaf


class BuilderTests(unittest.TestCase):
    def test_root_is_synthetic_wrapper(self) -> None:
        tree = parse("<p>x</p>")
        self.assertEqual(tree.tag, "div")
        self.assertEqual(tree.attributes, {"id": "svgflip-root"})
        self.assertEqual([child.tag for child in tree.children], ["p"])

    def test_text_and_comment_leaves(self) -> None:
        tree = parse("<section><p>hello <!-- note --> world</p></section>")
        paragraph = tree.children[0].children[0]
        self.assertEqual(
            paragraph.children,
            [TextLeaf("hello "), CommentLeaf(" note "), TextLeaf(" world")],
        )

    def test_whitespace_only_text_is_dropped(self) -> None:
        tree = build('<div id="svgflip-root"><p> </p><p>a</p></div>')
        self.assertEqual(tree.children[0].children, [])
        self.assertEqual(tree.children[1].children, [TextLeaf("a")])

    def test_cdata_becomes_text(self) -> None:
        tree = build("<div><p><![CDATA[a < b]]></p></div>")
        self.assertEqual(tree.children[0].children, [TextLeaf("a < b")])

    def test_image_href_is_migrated(self) -> None:
        tree = parse('<svg viewBox="0 0 10 10"><image href="a.png" width="10"></image></svg>')
        image = tree.children[0].children[0]
        self.assertEqual(image.assets.href, "a.png")
        self.assertEqual(image.attributes, {"width": "10"})

    def test_href_on_other_tags_is_untouched(self) -> None:
        tree = parse('<a href="https://example.com/">x</a>')
        link = tree.children[0]
        self.assertEqual(link.attributes["href"], "https://example.com/")
        self.assertEqual(link.assets.href, "")

    def test_img_src_is_migrated(self) -> None:
        tree = parse('<img src="b.png" style="width: 100%">')
        img = tree.children[0]
        self.assertEqual(img.assets.src, "b.png")
        self.assertEqual(img.attributes, {"style": "width: 100%"})

    def test_background_shorthand_is_migrated(self) -> None:
        tree = parse(
            '<section style="margin: 0; background: #fff url(&quot;c.png&quot;) center / cover no-repeat;"></section>'
        )
        section = tree.children[0]
        self.assertEqual(
            section.assets.background,
            Background(url="c.png", color="#fff", position="center", size="cover", repeat="no-repeat"),
        )
        self.assertEqual(section.attributes["style"], "margin: 0")

    def test_style_is_dropped_when_only_background(self) -> None:
        tree = parse("<svg style=\"background-image: url('d.png'); background-size: contain;\"></svg>")
        svg = tree.children[0]
        self.assertEqual(svg.assets.background_url, "d.png")
        self.assertEqual(svg.assets.background.size, "contain")
        self.assertNotIn("style", svg.attributes)

    def test_style_without_background_image_is_kept(self) -> None:
        tree = parse('<section style="background-color: red; color: blue"></section>')
        section = tree.children[0]
        self.assertIsNone(section.assets.background)
        self.assertEqual(section.attributes["style"], "background-color: red; color: blue")

    def test_prefixed_attributes_parse(self) -> None:
        tree = parse('<svg><use xlink:href="#a"></use></svg>')
        self.assertEqual(tree.children[0].children[0].attributes, {"xlink:href": "#a"})

    def test_malformed_markup_raises_parse_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            build("<div><p></div>")
        self.assertEqual(ctx.exception.code, "E_PARSE_XML")
        self.assertIsNotNone(ctx.exception.line)

    def test_empty_input(self) -> None:
        tree = parse("")
        self.assertIsInstance(tree, Element)
        self.assertEqual(tree.children, [])


if __name__ == "__main__":
    unittest.main()
