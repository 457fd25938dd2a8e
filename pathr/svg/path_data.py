"""SVG path-data grammar (the ``d`` attribute).

Supported commands, absolute (upper case) and relative (lower case):

    M m   move, 2 numbers; further pairs are implicit L / l
    L l   line, 2 numbers
    H h   horizontal line, 1 number
    V v   vertical line, 1 number
    C c   cubic Bézier, 6 numbers
    S s   smooth cubic Bézier, 4 numbers
    Q q   quadratic Bézier, 4 numbers
    T t   smooth quadratic Bézier, 2 numbers
    Z z   close subpath (line back to the last move target)

Elliptical arcs (``A``/``a``) are recognised and reported as
``Outcome.UNSUPPORTED``.  Every coordinate is scaled and rounded to
device units before it reaches the emitter.

The grammar stops at the first failing step and reports it; rolling back
the partial output is the caller's job (one transaction per element).
"""

from __future__ import annotations

import logging
import math
import re

from pathr.diagnostics import Outcome
from pathr.emitter.path import PathEmitter
from pathr.geometry.primitives import Point, round_half_up

logger = logging.getLogger(__name__)

# command letter | number (compact forms: "10-5", ".5.5", "1e3") | anything else
_TOKEN_RE = re.compile(
    r"(?P<cmd>[MmLlHhVvCcSsQqTtAaZz])"
    r"|(?P<num>[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
    r"|(?P<junk>[^\s,])"
)

_ARITY = {
    "M": 2, "L": 2, "H": 1, "V": 1,
    "C": 6, "S": 4, "Q": 4, "T": 2,
}


def tokenize(data: str) -> list[tuple[str, str]]:
    """Split path data into ``(kind, text)`` tokens.

    ``kind`` is ``"cmd"``, ``"num"`` or ``"junk"``; separators (white
    space and commas) are dropped.
    """
    return [(m.lastgroup, m.group()) for m in _TOKEN_RE.finditer(data)]


class SvgPathGrammar:
    """Drive a ``PathEmitter`` from one path-data string.

    Parameters
    ----------
    emitter : PathEmitter
        Target emitter; its context must already hold the element's
        transforms.
    scale : float
        User units → device units.

    Attributes
    ----------
    message : str
        Reason for the last non-OK outcome of ``parse``.
    """

    def __init__(self, emitter: PathEmitter, scale: float = 100.0) -> None:
        self.emitter = emitter
        self.scale = scale
        self.message = ""

    def _fail(self, outcome: Outcome, message: str) -> Outcome:
        self.message = message
        logger.debug("Path data rejected: %s", message)
        return outcome

    def parse(self, data: str) -> Outcome:
        """Emit the drawing described by *data*.

        Returns
        -------
        Outcome
            ``OK``, or the first ``MALFORMED`` / ``UNSUPPORTED`` step.
        """
        self.message = ""
        tokens = tokenize(data)
        self.emitter.comment("Data: " + " ".join(text for _, text in tokens))

        mode: str | None = None
        first: Point | None = None
        i = 0
        while i < len(tokens):
            kind, text = tokens[i]
            if kind == "junk":
                return self._fail(Outcome.MALFORMED, f"Invalid token {text!r} in path data")

            if kind == "cmd":
                i += 1
                if text in "Aa":
                    return self._fail(Outcome.UNSUPPORTED, f"Path command '{text}' not supported")
                if text in "Zz":
                    if first is None:
                        return self._fail(Outcome.MALFORMED, "Close command before any move")
                    self.emitter.line_to(first.x, first.y)
                    self.emitter.end()
                    mode = None
                else:
                    mode = text
                continue

            if mode is None:
                return self._fail(Outcome.MALFORMED, f"Coordinate {text!r} without a command")

            arity = _ARITY[mode.upper()]
            operands = tokens[i:i + arity]
            if len(operands) < arity or any(k != "num" for k, _ in operands):
                found = " ".join(t for _, t in operands)
                return self._fail(
                    Outcome.MALFORMED,
                    f"Command '{mode}' expects {arity} numbers, got {found!r}",
                )
            values = [round_half_up(float(t) * self.scale) for _, t in operands]
            if not all(math.isfinite(v) for v in values):
                return self._fail(Outcome.MALFORMED, f"Non-finite coordinate in '{mode}'")
            i += arity

            self._dispatch(mode, values)
            self.emitter.end()

            if mode in "Mm":
                # a move starts a subpath; following pairs are lines
                first = self.emitter.position
                mode = "L" if mode == "M" else "l"

        return Outcome.OK

    def _dispatch(self, mode: str, v: list[float]) -> None:
        em = self.emitter
        pos = em.position
        if mode == "M":
            em.move_to(v[0], v[1])
        elif mode == "m":
            em.move_by(v[0], v[1])
        elif mode == "L":
            em.line_to(v[0], v[1])
        elif mode == "l":
            em.line_by(v[0], v[1])
        elif mode == "H":
            em.line_to(v[0], pos.y)
        elif mode == "h":
            em.line_by(v[0], 0)
        elif mode == "V":
            em.line_to(pos.x, v[0])
        elif mode == "v":
            em.line_by(0, v[0])
        elif mode == "C":
            em.curve_to(*v)
        elif mode == "c":
            em.curve_by(*v)
        elif mode == "S":
            em.smooth_curve_to(*v)
        elif mode == "s":
            em.smooth_curve_by(*v)
        elif mode == "Q":
            em.quad_to(*v)
        elif mode == "q":
            em.quad_by(*v)
        elif mode == "T":
            em.smooth_quad_to(*v)
        elif mode == "t":
            em.smooth_quad_by(*v)
