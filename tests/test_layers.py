from __future__ import annotations

import copy
import sys
import unittest
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from svgflip.builder import parse
from svgflip.layers import bottom_score, calc_layers, top_score
from svgflip.nodes import Background, Element, ResourceRefs


def _image(url: str, style: str = "", **attrs) -> Element:
    if style:
        attrs["style"] = style
    return Element("image", attrs, assets=ResourceRefs(href=url))


class FeatureScoreTests(unittest.TestCase):
    def test_zero_heights(self) -> None:
        for value in ("0", "0px", "0%", "0rem", "0em", "0vh", "0vw", "0.0px"):
            with self.subTest(value=value):
                self.assertEqual(bottom_score(Element("g", {"style": f"height: {value}"})), -10)
        self.assertEqual(bottom_score(Element("g", {"style": "height: 1px"})), 0)

    def test_opacity_style_and_attribute_count_separately(self) -> None:
        node = Element("g", {"style": "opacity: 0.02", "opacity": "0"})
        self.assertEqual(bottom_score(node), -4)
        self.assertEqual(bottom_score(Element("g", {"opacity": "0.5"})), 0)

    def test_negative_margin_units(self) -> None:
        for value in ("-10%", "-1rem", "-0.5em", "-2vh", "-3vw"):
            with self.subTest(value=value):
                self.assertEqual(top_score(Element("g", {"style": f"margin-top: {value}"})), 10)
        for value in ("-10px", "-0%", "10%", "-1"):
            with self.subTest(value=value):
                self.assertEqual(top_score(Element("g", {"style": f"margin-top: {value}"})), 0)

    def test_stacking_features(self) -> None:
        node = Element("g", {"style": "transform: scale(1); isolation: isolate; z-index: 2"})
        self.assertEqual(top_score(node), 11)
        self.assertEqual(top_score(Element("g", {"style": "transform: none; z-index: auto"})), 0)
        self.assertEqual(top_score(Element("g", {"style": "z-index: -1"})), 0)


class CalcLayersTests(unittest.TestCase):
    def test_worked_example_bottom_and_top(self) -> None:
        image = _image("a.png", "height:0px; opacity:0.02")
        tree = Element("div", children=[Element("g", {"style": "margin-top:-10%"}, [image])])
        detail = calc_layers(tree, 1).details[0]
        self.assertEqual(detail.bottom_score, -12)
        self.assertEqual(detail.top_score, 10)
        self.assertEqual(detail.container_score, 0)
        self.assertAlmostEqual(detail.layer, 23.0)

    def test_plain_nesting_orders_by_position(self) -> None:
        tree = parse(
            '<section><svg viewBox="0 0 1 1"><g><image href="a.png"></image><image href="b.png"></image></g></svg>'
            "</section>"
        )
        report = calc_layers(tree, 5)
        self.assertEqual([d.url for d in report.details], ["a.png", "b.png"])
        self.assertAlmostEqual(report.details[0].layer, 25.0)
        self.assertAlmostEqual(report.details[1].layer, 24.99)

    def test_container_index(self) -> None:
        tree = Element("div", children=[Element("p"), Element("svg", children=[_image("a.png")])])
        detail = calc_layers(tree, 1).details[0]
        self.assertEqual(detail.container_score, 3)

    def test_animated_width_group(self) -> None:
        tree = parse(
            '<svg viewBox="0 0 1 1"><animate attributeName="width" values="0;1"></animate>'
            '<image href="a.png"></image><g><image href="b.png"></image></g><image href="d.png"></image></svg>'
            '<image href="c.png"></image>'
        )
        by_url = {d.url: d for d in calc_layers(tree, 4).details}
        self.assertEqual(by_url["a.png"].animate_score, 100.0)
        self.assertEqual(by_url["d.png"].animate_score, 99.9)
        self.assertEqual(by_url["c.png"].animate_score, 0.0)

    def test_animated_width_rounds_halves_up(self) -> None:
        svg = Element(
            "svg",
            children=[Element("animate", {"attributeName": "width"})] + [_image(f"{i}.png") for i in range(16)],
        )
        by_url = {d.url: d for d in calc_layers(Element("div", children=[svg]), 0).details}
        # 100 - 15 * 0.05 == 99.25
        self.assertEqual(by_url["15.png"].animate_score, 99.3)
        self.assertEqual(by_url["14.png"].animate_score, 99.3)

    def test_sources_and_backgrounds_are_tracked(self) -> None:
        tree = parse(
            '<section style="background-image: url(bg.png)"><img src="i.png"></section>'
            '<svg><image href="h.png"></image></svg>'
        )
        report = calc_layers(tree, 0)
        self.assertEqual(sorted(d.global_order for d in report.details), [0, 1, 2])
        self.assertEqual({d.url for d in report.details}, {"bg.png", "i.png", "h.png"})
        self.assertEqual(report.top_urls, [])

    def test_preload_fragment_holds_top_urls_by_score(self) -> None:
        tree = Element(
            "div",
            children=[_image("low.png"), Element("g", {"style": "z-index: 5"}, [_image("high.png")])],
        )
        report = calc_layers(tree, 5)
        self.assertEqual(report.top_urls, ["high.png", "low.png"])
        fragment = report.preload_fragment
        self.assertTrue(fragment.startswith('<section class="svgflip-preload"'))
        self.assertIn("height: 0px !important", fragment)
        self.assertLess(fragment.index("url('high.png')"), fragment.index("url('low.png')"))
        self.assertEqual(fragment.count("<foreignObject"), 2)

    def test_top_n_limits_preload(self) -> None:
        tree = Element("div", children=[_image("a.png"), _image("b.png"), _image("c.png")])
        report = calc_layers(tree, 2)
        self.assertEqual(report.top_urls, ["a.png", "b.png"])
        self.assertNotIn("c.png", report.preload_fragment)

    def test_scoring_is_deterministic_and_read_only(self) -> None:
        tree = parse(
            '<svg><animate attributeName="WIDTH"></animate><image href="a.png" style="transform: rotate(1deg)"></image>'
            '</svg><section style="background: url(b.png)"></section>'
        )
        before = copy.deepcopy(tree)
        first = calc_layers(tree, 2)
        second = calc_layers(tree, 2)
        self.assertEqual(first, second)
        self.assertEqual(tree, before)

    def test_background_asset_counts_as_image(self) -> None:
        node = Element("svg", assets=ResourceRefs(background=Background(url="bg.png")))
        report = calc_layers(Element("div", children=[node]), 1)
        self.assertEqual(report.top_urls, ["bg.png"])


if __name__ == "__main__":
    unittest.main()
