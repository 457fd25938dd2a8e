"""Tests for the SVG front end.

Validates shape lowering (rect, polygon, polyline, path), transactional
rollback of malformed / unsupported elements, transform nesting and the
path-data grammar.
"""

from __future__ import annotations

import pytest

from pathr.configs.loader import EmitterConfig, PathrConfig
from pathr.diagnostics import ConversionResult, Outcome
from pathr.emitter import PathEmitter
from pathr.svg import ShapeWalker, SvgPathGrammar, load_svg, svg_to_path
from pathr.svg.path_data import tokenize
from pathr.vm import PathVM, VMResult

HEADER = "# SVG to Path\n"
QUIET = PathrConfig(emitter=EmitterConfig(comment_curves=False))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _svg(body: str) -> str:
    return f'<svg xmlns="http://www.w3.org/2000/svg">{body}</svg>'


def _convert(body: str, **kwargs) -> ConversionResult:
    return svg_to_path(load_svg(_svg(body)), QUIET, **kwargs)


def _replay(code: str) -> tuple[VMResult, list[tuple[float, float]]]:
    vm = PathVM()
    vm.load_string(code)
    result = vm.run()
    return result, vm.trajectory()


# ---------------------------------------------------------------------------
# rect
# ---------------------------------------------------------------------------


class TestRect:
    def test_rect_lowering(self) -> None:
        result = _convert('<rect x="0" y="0" width="10" height="5"/>')
        assert result.ok
        assert result.code == HEADER + (
            "# rect 0 0 1000 500\n"
            "m 1000 0, e 500 10\nw 500\n"
            "m 0 500, e 250 10\nw 500\n"
            "m -1000 0, e 500 10\nw 500\n"
            "m 0 -500, e 250 10\nw 500\n"
        )

    def test_rect_closes(self) -> None:
        result = _convert('<rect x="1" y="2" width="10" height="5"/>')
        vm, path = _replay(result.code)
        assert path == [
            (0.0, 0.0), (100.0, 200.0), (1100.0, 200.0),
            (1100.0, 700.0), (100.0, 700.0), (100.0, 200.0),
        ]
        assert vm.violations == []

    def test_position_defaults_to_zero(self) -> None:
        result = _convert('<rect width="1" height="1"/>')
        assert "# rect 0 0 100 100\n" in result.code

    def test_missing_size_is_malformed(self) -> None:
        result = _convert('<rect x="1" width="10"/>')
        assert result.code == HEADER
        [diag] = result.diagnostics
        assert diag.kind is Outcome.MALFORMED
        assert "height" in diag.message

    def test_non_numeric_is_malformed(self) -> None:
        result = _convert('<rect id="r1" x="abc" width="10" height="5"/>')
        assert result.code == HEADER
        assert result.diagnostics[0].where == '<rect id="r1">'

    def test_scale_override(self) -> None:
        result = _convert('<rect width="10" height="5"/>', scale=1)
        assert "m 10 0, e 5 10\n" in result.code

    def test_bad_scale_rejected(self) -> None:
        with pytest.raises(ValueError):
            _convert('<rect width="10" height="5"/>', scale=0)


# ---------------------------------------------------------------------------
# polygon / polyline
# ---------------------------------------------------------------------------


class TestPolyline:
    def test_polygon_closes(self) -> None:
        result = _convert('<polygon points="0,0 10,0 10,10"/>')
        vm, path = _replay(result.code)
        assert result.ok
        assert "# polygon\n" in result.code
        assert path == [(0.0, 0.0), (1000.0, 0.0), (1000.0, 1000.0), (0.0, 0.0)]

    def test_polyline_stays_open(self) -> None:
        result = _convert('<polyline points="0 0, 10 0, 10 10"/>')
        vm, _ = _replay(result.code)
        assert vm.position == (1000.0, 1000.0)
        assert vm.move_count == 2

    def test_odd_points_rolled_back(self) -> None:
        result = _convert(
            '<polyline points="0,0 10,0 10"/>'
            '<rect width="1" height="1"/>'
        )
        assert "# polyline" not in result.code
        assert "# rect 0 0 100 100\n" in result.code
        assert [d.kind for d in result.diagnostics] == [Outcome.MALFORMED]

    def test_empty_points_malformed(self) -> None:
        result = _convert('<polygon points=""/>')
        assert result.code == HEADER
        assert result.diagnostics[0].kind is Outcome.MALFORMED

    def test_bad_coordinate_malformed(self) -> None:
        result = _convert('<polygon points="0,0 1,x"/>')
        assert result.code == HEADER
        assert result.diagnostics[0].kind is Outcome.MALFORMED


# ---------------------------------------------------------------------------
# Unsupported elements
# ---------------------------------------------------------------------------


class TestUnsupported:
    def test_circle_keeps_comment(self) -> None:
        result = _convert('<circle cx="5" cy="5" r="2"/>')
        assert result.code == HEADER + "# circle\n"
        assert result.diagnostics[0].kind is Outcome.UNSUPPORTED

    def test_unknown_tag(self) -> None:
        result = _convert('<ellipse rx="1" ry="2"/><rect width="1" height="1"/>')
        assert "# ellipse not supported.\n" in result.code
        assert "# rect" in result.code
        [diag] = result.diagnostics
        assert diag.kind is Outcome.UNSUPPORTED
        assert diag.where == "<ellipse>"


# ---------------------------------------------------------------------------
# Groups and transforms
# ---------------------------------------------------------------------------


class TestTransforms:
    def test_group_translation_is_scaled(self) -> None:
        result = _convert(
            '<g transform="translate(10, 0)"><rect width="1" height="1"/></g>'
        )
        _, path = _replay(result.code)
        assert "# g\n" in result.code
        assert path[1] == (1000.0, 0.0)
        assert path[-1] == (1000.0, 0.0)

    def test_nested_transforms_compose(self) -> None:
        result = _convert(
            '<g transform="translate(10 0)">'
            '<g transform="scale(2)"><rect x="1" width="1" height="1"/></g>'
            '</g>'
        )
        _, path = _replay(result.code)
        # rect corner (1, 0) → scale → (2, 0) → translate → (12, 0)
        assert path[1] == (1200.0, 0.0)
        assert path[2] == (1400.0, 0.0)

    def test_element_transform(self) -> None:
        result = _convert('<rect width="1" height="1" transform="scale(3)"/>')
        _, path = _replay(result.code)
        assert path[1] == (300.0, 0.0)

    def test_overflowing_shape_rolled_back_alone(self) -> None:
        result = _convert(
            '<g transform="scale(1e300)"><rect width="1e10" height="1"/></g>'
            '<rect width="1" height="1"/>'
        )
        [diag] = result.diagnostics
        assert diag.kind is Outcome.MALFORMED
        assert diag.where == "<rect>"
        assert "Non-finite" in diag.message
        assert result.code == HEADER + (
            "# g\n"
            "# rect 0 0 100 100\n"
            "m 100 0, e 50 10\nw 500\n"
            "m 0 100, e 50 10\nw 500\n"
            "m -100 0, e 50 10\nw 500\n"
            "m 0 -100, e 50 10\nw 500\n"
        )

    def test_stacks_balanced_after_walk(self) -> None:
        root = load_svg(_svg(
            '<g transform="scale(2)"><path d="M 0 0 A 1 1 0 0 1 2 2"/>'
            '<rect x="q" width="1" height="1"/></g><circle r="1"/>'
        ))
        emitter = PathEmitter()
        result = ConversionResult()
        ShapeWalker(emitter, result, 100.0).walk(root)
        assert emitter.context_depth == 0
        assert emitter.code_depth == 0
        assert len(result.diagnostics) == 3


# ---------------------------------------------------------------------------
# path
# ---------------------------------------------------------------------------


class TestPath:
    def test_arc_is_unsupported_and_rolled_back(self) -> None:
        result = _convert('<path d="M 0 0 L 10 0 A 5 5 0 0 1 10 10"/>')
        assert result.code == HEADER
        [diag] = result.diagnostics
        assert diag.kind is Outcome.UNSUPPORTED
        assert "'A'" in diag.message

    def test_close_returns_to_subpath_start(self) -> None:
        result = _convert('<path d="M 1 1 L 2 1 L 2 2 z"/>')
        vm, path = _replay(result.code)
        assert path[-1] == (100.0, 100.0)
        assert vm.move_count == 4

    def test_implicit_line_after_every_move(self) -> None:
        result = _convert('<path d="M 0 0 1 0 M 2 0 3 0 Z"/>')
        _, path = _replay(result.code)
        assert path == [
            (0.0, 0.0), (100.0, 0.0), (200.0, 0.0), (300.0, 0.0), (200.0, 0.0),
        ]

    def test_relative_commands(self) -> None:
        result = _convert('<path d="m 1 1 l 1 0 h 1 v 1"/>')
        vm, _ = _replay(result.code)
        assert vm.position == (300.0, 200.0)

    def test_horizontal_vertical(self) -> None:
        result = _convert('<path d="M 0 0 H 5 V 5 h -5 v -5"/>')
        vm, _ = _replay(result.code)
        assert vm.position == (0.0, 0.0)
        assert vm.move_count == 4

    def test_compact_numbers(self) -> None:
        result = _convert('<path d="M0,0L10-5"/>')
        vm, _ = _replay(result.code)
        assert vm.position == (1000.0, -500.0)

    def test_cubic_reaches_endpoint(self) -> None:
        result = _convert('<path d="M 0 0 C 0 10 10 10 10 0 S 20 -10 20 0"/>')
        vm, _ = _replay(result.code)
        assert result.ok
        assert vm.position == (2000.0, 0.0)
        assert vm.violations == []

    def test_quadratic_reaches_endpoint(self) -> None:
        result = _convert('<path d="M 0 0 Q 5 10 10 0 T 20 0"/>')
        vm, _ = _replay(result.code)
        assert vm.position == (2000.0, 0.0)

    def test_junk_token_malformed(self) -> None:
        result = _convert('<path d="M 0 0 L x 5"/>')
        assert result.code == HEADER
        assert result.diagnostics[0].kind is Outcome.MALFORMED

    def test_missing_operand_malformed(self) -> None:
        result = _convert('<path d="M 0 0 C 1 1 2 2"/>')
        assert result.code == HEADER
        assert result.diagnostics[0].kind is Outcome.MALFORMED

    def test_coordinates_before_command(self) -> None:
        result = _convert('<path d="1 2 L 3 4"/>')
        assert result.diagnostics[0].kind is Outcome.MALFORMED

    def test_missing_d(self) -> None:
        result = _convert('<path/>')
        assert result.diagnostics[0].kind is Outcome.MALFORMED

    def test_huge_control_handle_is_bounded(self) -> None:
        result = _convert('<path d="M0 0 C 0 0 1e10 0 0 0"/>')
        vm, _ = _replay(result.code)
        assert result.ok
        assert vm.position == (0.0, 0.0)
        assert vm.move_count <= 1024

    def test_failed_path_leaves_sibling_untouched(self) -> None:
        good = _convert('<rect width="1" height="1"/>')
        mixed = _convert('<path d="M 5 5 L 9 9 A 1"/><rect width="1" height="1"/>')
        assert mixed.code == good.code


class TestPathGrammar:
    def test_tokenize(self) -> None:
        assert tokenize("M10-5.5.5z") == [
            ("cmd", "M"), ("num", "10"), ("num", "-5.5"), ("num", ".5"), ("cmd", "z"),
        ]

    def test_tokenize_junk(self) -> None:
        assert ("junk", "#") in tokenize("M 0 0 # 1")

    def test_data_comment(self) -> None:
        emitter = PathEmitter()
        grammar = SvgPathGrammar(emitter, scale=1.0)
        assert grammar.parse("M0,0 L1,1") is Outcome.OK
        assert "# Data: M 0 0 L 1 1\n" in emitter.code

    def test_message_on_failure(self) -> None:
        grammar = SvgPathGrammar(PathEmitter(), scale=1.0)
        assert grammar.parse("Z") is Outcome.MALFORMED
        assert "Close" in grammar.message
