"""Tests for the shape-tree adapter and transform attribute parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from pathr.geometry import AffineMatrix, Point
from pathr.svg.tree import ElementNode, load_svg, parse_transform

SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg">'
    '<!-- a comment -->'
    '<g id="layer" transform="translate(5)">'
    '<RECT width="1" height="2"/>'
    '</g>'
    '<path d="M 0 0"/>'
    '</svg>'
)


# ---------------------------------------------------------------------------
# parse_transform
# ---------------------------------------------------------------------------


class TestParseTransform:
    def test_empty(self) -> None:
        assert parse_transform(None) == []
        assert parse_transform("") == []

    def test_translate_single_argument(self) -> None:
        assert parse_transform("translate(10)") == [AffineMatrix.translation(10.0, 0.0)]

    def test_matrix(self) -> None:
        [m] = parse_transform("matrix(1, 0, 0, 1, 5, 6)")
        assert m == AffineMatrix(1.0, 0.0, 0.0, 1.0, 5.0, 6.0)

    def test_order_is_preserved(self) -> None:
        ms = parse_transform("translate(10 0) scale(2)")
        assert ms == [AffineMatrix.translation(10.0, 0.0), AffineMatrix.scaling(2.0)]

    def test_rotate_about_center(self) -> None:
        [m] = parse_transform("rotate(90 1 1)")
        p = m.transform_point(Point(2.0, 1.0))
        assert p.x == pytest.approx(1.0)
        assert p.y == pytest.approx(2.0)

    def test_skew(self) -> None:
        assert len(parse_transform("skewX(10) skewY(20)")) == 2

    def test_invalid_functions_skipped(self) -> None:
        ms = parse_transform("scale(2) foo(1) rotate(x) translate(1 2 3)")
        assert ms == [AffineMatrix.scaling(2.0)]


# ---------------------------------------------------------------------------
# ElementNode / load_svg
# ---------------------------------------------------------------------------


class TestElementNode:
    def test_tag_strips_namespace_and_case(self) -> None:
        root = load_svg(SVG)
        assert root.tag == "svg"
        group = next(root.children())
        assert group.tag == "g"
        assert next(group.children()).tag == "rect"

    def test_children_skip_comments(self) -> None:
        root = load_svg(SVG)
        assert [c.tag for c in root.children()] == ["g", "path"]

    def test_attributes_and_transforms(self) -> None:
        group = next(load_svg(SVG).children())
        assert group.get("id") == "layer"
        assert group.get("missing") is None
        assert group.get("missing", "0") == "0"
        assert group.transforms == [AffineMatrix.translation(5.0)]

    def test_wraps_element(self) -> None:
        node = load_svg(SVG)
        assert isinstance(node, ElementNode)
        assert node.element.get("xmlns") is None  # namespaces are not attributes

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "drawing.svg"
        path.write_text(SVG)
        assert [c.tag for c in load_svg(path).children()] == ["g", "path"]
        assert load_svg(str(path)).tag == "svg"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_svg(tmp_path / "nope.svg")
