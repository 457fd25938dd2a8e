"""ShapeWalker -- SVG shape tree → instruction stream.

Walks the ``ShapeNode`` tree depth-first.  Every supported node gets its
own context scope holding its transforms; every drawable node
(rect, polygon, polyline, path, circle) is one code transaction that is
rolled back when the node turns out malformed or unsupported, including
when a transformed coordinate overflows.

Coordinates are multiplied by ``scale`` and rounded *before* they reach
the emitter, so the translation part of every transform is scaled the
same way to stay consistent with them.
"""

from __future__ import annotations

import logging
import math
import re

from pathr.configs.loader import PathrConfig
from pathr.diagnostics import ConversionResult, Outcome
from pathr.emitter.path import NonFiniteError, PathEmitter, format_number
from pathr.geometry.curves import CurveError
from pathr.geometry.primitives import AffineMatrix, round_half_up
from pathr.svg.path_data import SvgPathGrammar
from pathr.svg.tree import ShapeNode
from pathr.utils.logging_config import pop_context, push_context

logger = logging.getLogger(__name__)

_POINTS_SPLIT_RE = re.compile(r"[\s,]+")

_SHAPES = ("rect", "polygon", "polyline", "path", "circle")


class _Malformed(ValueError):
    """Bad attribute value inside a shape handler."""


def _where(node: ShapeNode) -> str:
    ident = node.get("id")
    return f'<{node.tag} id="{ident}">' if ident else f"<{node.tag}>"


class ShapeWalker:
    """Depth-first converter from a shape tree to emitter calls.

    Parameters
    ----------
    emitter : PathEmitter
        Receives all drawing calls.
    result : ConversionResult
        Collects diagnostics.
    scale : float
        User units → device units.
    """

    def __init__(self, emitter: PathEmitter, result: ConversionResult, scale: float = 100.0) -> None:
        self.emitter = emitter
        self.result = result
        self.scale = scale

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def walk(self, root: ShapeNode) -> None:
        """Visit the children of *root* (the root itself draws nothing)."""
        for child in root.children():
            self.visit(child)

    def visit(self, node: ShapeNode) -> None:
        tag = node.tag
        if tag != "g" and tag not in _SHAPES:
            self.emitter.comment(f"{tag} not supported.")
            self.result.report(Outcome.UNSUPPORTED, _where(node), f"Element <{tag}> not supported")
            return

        logger.debug("Entering %s", _where(node))
        with self.emitter.context_scope(*(self._scaled(m) for m in node.transforms)):
            if tag == "g":
                self.emitter.comment("g")
                for child in node.children():
                    self.visit(child)
            else:
                self._shape(node)

    def _scaled(self, m: AffineMatrix) -> AffineMatrix:
        """Conjugate *m* by the coordinate scale."""
        return AffineMatrix(m.a, m.b, m.c, m.d, m.e * self.scale, m.f * self.scale)

    def _shape(self, node: ShapeNode) -> None:
        with self.emitter.transaction() as tx:
            outcome, message = self._draw(node)
            # the circle annotation is kept even though nothing is drawn
            if not outcome.ok and node.tag != "circle":
                tx.rollback()
        if not outcome.ok:
            self.result.report(outcome, _where(node), message)

    def _draw(self, node: ShapeNode) -> tuple[Outcome, str]:
        tag = node.tag
        try:
            if tag == "rect":
                return self._rect(node)
            elif tag in ("polygon", "polyline"):
                return self._polyline(node, closed=tag == "polygon")
            elif tag == "path":
                return self._path(node)
            elif tag == "circle":
                self.emitter.comment("circle")
                return Outcome.UNSUPPORTED, "Element <circle> not supported"
        except (_Malformed, NonFiniteError, CurveError) as exc:
            return Outcome.MALFORMED, str(exc)
        return Outcome.UNSUPPORTED, f"Element <{tag}> not supported"

    # ------------------------------------------------------------------
    # Attribute helpers
    # ------------------------------------------------------------------

    def _coord(self, text: str, what: str) -> float:
        try:
            value = round_half_up(float(text) * self.scale)
        except ValueError:
            raise _Malformed(f"Invalid {what} {text!r}") from None
        if not math.isfinite(value):
            raise _Malformed(f"Non-finite {what} {text!r}")
        return value

    def _attr(self, node: ShapeNode, name: str, default: str | None = None) -> float:
        text = node.get(name, default)
        if text is None:
            raise _Malformed(f"Missing attribute '{name}'")
        return self._coord(text, f"attribute '{name}'")

    # ------------------------------------------------------------------
    # Shapes
    # ------------------------------------------------------------------

    def _rect(self, node: ShapeNode) -> tuple[Outcome, str]:
        x = self._attr(node, "x", "0")
        y = self._attr(node, "y", "0")
        w = self._attr(node, "width")
        h = self._attr(node, "height")

        em = self.emitter
        em.comment("rect " + " ".join(format_number(v) for v in (x, y, w, h)))
        em.move_to(x, y)
        em.then()
        em.line_by(w, 0)
        em.then()
        em.line_by(0, h)
        em.then()
        em.line_by(-w, 0)
        em.then()
        em.line_by(0, -h)
        em.end()
        return Outcome.OK, ""

    def _polyline(self, node: ShapeNode, closed: bool) -> tuple[Outcome, str]:
        self.emitter.comment("polygon" if closed else "polyline")

        raw = (node.get("points") or "").strip()
        tokens = [t for t in _POINTS_SPLIT_RE.split(raw) if t]
        if not tokens:
            raise _Malformed("Empty 'points' attribute")
        if len(tokens) % 2:
            raise _Malformed(f"Odd number of coordinates in 'points' ({len(tokens)})")
        coords = [self._coord(t, "point coordinate") for t in tokens]

        em = self.emitter
        em.move_to(coords[0], coords[1])
        em.end()
        for x, y in zip(coords[2::2], coords[3::2]):
            em.line_to(x, y)
        if closed:
            em.line_to(coords[0], coords[1])
        return Outcome.OK, ""

    def _path(self, node: ShapeNode) -> tuple[Outcome, str]:
        self.emitter.comment("path")
        data = node.get("d")
        if data is None:
            raise _Malformed("Missing attribute 'd'")
        grammar = SvgPathGrammar(self.emitter, self.scale)
        outcome = grammar.parse(data)
        return outcome, grammar.message


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def svg_to_path(
    root: ShapeNode,
    config: PathrConfig | None = None,
    *,
    scale: float | None = None,
) -> ConversionResult:
    """Convert an SVG shape tree into an instruction stream.

    Parameters
    ----------
    root : ShapeNode
        Root of the tree, e.g. from ``pathr.svg.tree.load_svg``.
    config : PathrConfig | None
        ``None`` uses the built-in defaults.
    scale : float | None
        Overrides ``config.svg.scale``.

    Returns
    -------
    ConversionResult
        Code plus one diagnostic per rolled-back or skipped element.

    Raises
    ------
    ValueError
        If *scale* is zero or not finite.
    """
    cfg = config or PathrConfig()
    scale = cfg.svg.scale if scale is None else float(scale)
    if not math.isfinite(scale) or scale == 0:
        raise ValueError(f"scale must be finite and non-zero, got {scale}")

    push_context(job="svg")
    try:
        emitter = PathEmitter(cfg.emitter, welcome="SVG to Path")
        result = ConversionResult()
        ShapeWalker(emitter, result, scale).walk(root)
        emitter.end()
        result.code = emitter.code
        logger.info(
            "SVG converted: %d line(s), %d diagnostic(s)",
            result.code.count("\n"), len(result.diagnostics),
        )
    finally:
        pop_context(["job"])
    return result
