"""PathEmitter -- the shared code-emission backend.

Both front ends (SVG walker, GCode grammar) drive one ``PathEmitter`` per
conversion job.  It owns:

    - the affine context (plus a push/pop stack) mapping *local*
      coordinates to absolute device coordinates,
    - the local position / elevation and the last Bézier control point,
    - the last emitted absolute device position (the anti-drift
      accumulator),
    - the instruction buffer with a transactional snapshot stack.

Anti-drift:
    After every position change the emitter transforms the local
    position, rounds it to device units and emits the difference to the
    *rounded* position it emitted last.  Emitted deltas therefore always
    sum to the rounded cumulative displacement::

        sum(m deltas) == round(T(p_last)) - round(T(p_first))

Output grammar (one statement per line, ``, `` joins statements that
belong to one logical operation)::

    m dx dy        relative XY move
    z dz           relative elevation change
    sxp/syp/szp v  absolute axis reset
    e v [rate]     extrusion
    w ms / W s     short / long wait
    # text         comment
"""

from __future__ import annotations

import contextlib
import logging
import math
from dataclasses import dataclass
from typing import Iterator

from pathr.configs.loader import EmitterConfig
from pathr.geometry.curves import CurveFlattener, Flattening
from pathr.geometry.primitives import ORIGIN, AffineMatrix, Point, round_half_up

logger = logging.getLogger(__name__)

_CONTINUE = ", "
_NEWLINE = "\n"


class EmitterStateError(RuntimeError):
    """Raised when context/code stack pushes and pops are unbalanced.

    This is a programming-contract violation, never an input error.
    """

    pass


class NonFiniteError(ValueError):
    """Raised when a position maps to a non-finite device coordinate.

    An input error: the caller drops the offending shape or line.
    """

    pass


def format_number(value: float) -> str:
    """Integers without a decimal point, others with at most 4 decimals."""
    if isinstance(value, int):
        return str(value)
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


@dataclass(frozen=True, slots=True)
class _CodeSnapshot:
    """Buffer length and motion state captured by ``store_code``."""

    size: int
    rel_pos: Point
    rel_z: float
    last_loc: Point
    last_z: float
    last_ctrl: Point | None
    last_ctrl_kind: str | None


class Transaction:
    """Handle yielded by ``PathEmitter.transaction()``."""

    def __init__(self) -> None:
        self.rolled_back = False

    def rollback(self) -> None:
        """Discard everything emitted inside the transaction on exit."""
        self.rolled_back = True


class PathEmitter:
    """Builder for the device instruction stream.

    Parameters
    ----------
    config : EmitterConfig | None
        Wait defaults, extrusion rate and flattening parameters.
        ``None`` uses ``EmitterConfig()``.
    welcome : str | None
        Header comment, default ``"Personalized path"``.
    """

    def __init__(self, config: EmitterConfig | None = None, welcome: str | None = None) -> None:
        self._cfg = config or EmitterConfig()
        self._flattener = CurveFlattener(
            tolerance=self._cfg.curve_tolerance,
            segment_length=self._cfg.curve_segment_length,
            min_samples=self._cfg.curve_min_samples,
            max_samples=self._cfg.curve_max_samples,
        )
        self._fragments: list[str] = []

        # geometry context
        self._context = AffineMatrix()
        self._rel_pos = ORIGIN
        self._rel_z = 0.0
        self._last_loc = ORIGIN
        self._last_z = 0.0
        self._last_ctrl: Point | None = None
        self._last_ctrl_kind: str | None = None

        # stacks
        self._context_stack: list[AffineMatrix] = []
        self._code_stack: list[_CodeSnapshot] = []

        self.comment(welcome or "Personalized path")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def position(self) -> Point:
        """Local (pre-transform) position."""
        return self._rel_pos

    @property
    def elevation(self) -> float:
        return self._rel_z

    @property
    def device_position(self) -> Point:
        """Last emitted absolute device position (rounded)."""
        return self._last_loc

    @property
    def device_elevation(self) -> float:
        return self._last_z

    @property
    def context(self) -> AffineMatrix:
        return self._context

    @property
    def context_depth(self) -> int:
        return len(self._context_stack)

    @property
    def code_depth(self) -> int:
        return len(self._code_stack)

    @property
    def code(self) -> str:
        """The instruction stream.

        Raises
        ------
        EmitterStateError
            If a ``store_code`` is still waiting for its release/restore.
        """
        if self._code_stack:
            raise EmitterStateError(
                f"Reading code with {len(self._code_stack)} open code snapshot(s)"
            )
        return "".join(self._fragments)

    # ------------------------------------------------------------------
    # Context stack
    # ------------------------------------------------------------------

    def store_context(self) -> None:
        self._context_stack.append(self._context.clone())
        # local coordinates mean nothing across a transform boundary
        self._rel_pos = ORIGIN
        self._clear_ctrl()

    def release_context(self) -> None:
        if not self._context_stack:
            raise EmitterStateError("release_context() without matching store_context()")
        self._context = self._context_stack.pop()
        self._rel_pos = ORIGIN
        self._clear_ctrl()

    def apply_transform(self, matrix: AffineMatrix) -> None:
        """Compose *matrix* onto the active context (applied to points first)."""
        self._context = self._context.concat(matrix)

    @contextlib.contextmanager
    def context_scope(self, *matrices: AffineMatrix) -> Iterator[None]:
        """Store the context, apply *matrices* in order, release on exit."""
        self.store_context()
        try:
            for matrix in matrices:
                self.apply_transform(matrix)
            yield
        finally:
            self.release_context()

    # ------------------------------------------------------------------
    # Code stack
    # ------------------------------------------------------------------

    def store_code(self) -> None:
        self._code_stack.append(_CodeSnapshot(
            size=len(self._fragments),
            rel_pos=self._rel_pos,
            rel_z=self._rel_z,
            last_loc=self._last_loc,
            last_z=self._last_z,
            last_ctrl=self._last_ctrl,
            last_ctrl_kind=self._last_ctrl_kind,
        ))

    def release_code(self) -> None:
        """Commit: forget the most recent snapshot, keep the buffer."""
        if not self._code_stack:
            raise EmitterStateError("release_code() without matching store_code()")
        self._code_stack.pop()

    def restore_code(self) -> None:
        """Rollback: drop everything emitted since the most recent snapshot."""
        if not self._code_stack:
            raise EmitterStateError("restore_code() without matching store_code()")
        snap = self._code_stack.pop()
        del self._fragments[snap.size:]
        self._rel_pos = snap.rel_pos
        self._rel_z = snap.rel_z
        self._last_loc = snap.last_loc
        self._last_z = snap.last_z
        self._last_ctrl = snap.last_ctrl
        self._last_ctrl_kind = snap.last_ctrl_kind

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Snapshot the buffer; commit on exit unless rolled back or raised."""
        self.store_code()
        tx = Transaction()
        try:
            yield tx
        except BaseException:
            self.restore_code()
            raise
        if tx.rolled_back:
            self.restore_code()
        else:
            self.release_code()

    # ------------------------------------------------------------------
    # Text primitives
    # ------------------------------------------------------------------

    def _line_open(self) -> bool:
        return bool(self._fragments) and self._fragments[-1] != _NEWLINE

    def _command(self, opcode: str, *operands: float) -> None:
        if self._line_open() and self._fragments[-1] != _CONTINUE:
            self._fragments.append(_CONTINUE)
        self._fragments.append(" ".join([opcode, *(format_number(v) for v in operands)]))

    def and_(self) -> None:
        """Continue the current statement on the same line."""
        if self._line_open() and self._fragments[-1] != _CONTINUE:
            self._fragments.append(_CONTINUE)

    def end(self) -> None:
        """Terminate the current line (no-op on an empty line)."""
        if self._fragments and self._fragments[-1] == _CONTINUE:
            self._fragments.pop()
        if self._line_open():
            self._fragments.append(_NEWLINE)

    def then(self) -> None:
        """Alias of ``end()`` for readability between operations."""
        self.end()

    def comment(self, text: str) -> None:
        self.end()
        self._fragments.append(f"# {text}")
        self._fragments.append(_NEWLINE)

    # ------------------------------------------------------------------
    # Position tracking
    # ------------------------------------------------------------------

    def _clear_ctrl(self) -> None:
        self._last_ctrl = None
        self._last_ctrl_kind = None

    def _shift(self) -> bool:
        """Emit the rounded move from the last device position.

        Returns ``True`` when anything was emitted.

        Raises
        ------
        NonFiniteError
            If the transformed position overflows or is NaN.
        """
        new_loc = self._context.transform_point(self._rel_pos).round()
        new_z = round_half_up(self._rel_z)
        if not new_loc.is_finite() or not math.isfinite(new_z):
            raise NonFiniteError(
                f"Non-finite device position {new_loc} / z={new_z} "
                f"from local {self._rel_pos}"
            )

        moved = False
        delta = new_loc - self._last_loc
        if delta.x != 0 or delta.y != 0:
            self._command("m", delta.x, delta.y)
            self._last_loc = new_loc
            moved = True

        dz = new_z - self._last_z
        if dz != 0:
            self._command("z", dz)
            self._last_z = new_z
            moved = True
        return moved

    def reset_position(self, x: float = 0.0, y: float = 0.0, z: float = 0.0) -> None:
        """Declare the current device position to be (x, y, z) in local units.

        Emits ``sxp, syp, szp`` with the device values and re-syncs the
        tracked position without emitting any motion.
        """
        loc = self._context.transform_point(Point(x, y)).round()
        z_dev = round_half_up(z)
        if not loc.is_finite() or not math.isfinite(z_dev):
            raise NonFiniteError(f"Non-finite axis reset {loc} / z={z_dev}")
        self.end()
        self._command("sxp", loc.x)
        self._command("syp", loc.y)
        self._command("szp", z_dev)
        self.end()
        self._rel_pos = Point(x, y)
        self._rel_z = z
        self._last_loc = loc
        self._last_z = z_dev
        self._clear_ctrl()

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def move_to(self, x: float, y: float) -> None:
        self._rel_pos = Point(x, y)
        self._clear_ctrl()
        self._shift()

    def move_by(self, dx: float, dy: float) -> None:
        self.move_to(self._rel_pos.x + dx, self._rel_pos.y + dy)

    def elevate_to(self, z: float) -> None:
        self._rel_z = z
        self._clear_ctrl()
        self._shift()

    def elevate_by(self, dz: float) -> None:
        self.elevate_to(self._rel_z + dz)

    def extrude(self, amount: float, rate: float | None = None) -> None:
        if rate is None:
            self._command("e", amount)
        else:
            self._command("e", amount, rate)

    def wait(self, ms: float | None = None) -> None:
        self._command("w", self._cfg.wait_ms if ms is None else ms)

    def long_wait(self, s: float | None = None) -> None:
        self._command("W", self._cfg.long_wait_s if s is None else s)

    def _segment_to(self, x: float, y: float) -> None:
        """Move and extrude proportionally to the emitted distance."""
        start = self._last_loc
        self.move_to(x, y)
        delta = (self._last_loc - start).abs()
        speed = math.ceil(max(delta.x, delta.y) / 2)
        self.extrude(speed, self._cfg.extrusion_rate)
        self.end()

    def line_to(self, x: float, y: float) -> None:
        self._segment_to(x, y)
        self.wait()
        self.end()

    def line_by(self, dx: float, dy: float) -> None:
        self.line_to(self._rel_pos.x + dx, self._rel_pos.y + dy)

    # ------------------------------------------------------------------
    # Curves
    # ------------------------------------------------------------------

    def _draw_flattened(self, label: str, flat: Flattening) -> None:
        if self._cfg.comment_curves:
            self.comment(f"{label}: len={flat.length:.1f}, N={len(flat.points)}")
        for p in flat.points[1:]:
            self._segment_to(p.x, p.y)

    def curve_to(
        self, c1x: float, c1y: float, c2x: float, c2y: float, x: float, y: float,
    ) -> None:
        """Cubic Bézier from the current position.

        Raises
        ------
        CurveError
            If any control point is not finite.
        """
        flat = self._flattener.flatten(
            [self._rel_pos, Point(c1x, c1y), Point(c2x, c2y), Point(x, y)]
        )
        self._draw_flattened("curveTo", flat)
        # the exact endpoint, not the last sample
        self._rel_pos = Point(x, y)
        self._last_ctrl = Point(c2x, c2y)
        self._last_ctrl_kind = "cubic"

    def curve_by(
        self, c1x: float, c1y: float, c2x: float, c2y: float, x: float, y: float,
    ) -> None:
        ox, oy = self._rel_pos.x, self._rel_pos.y
        self.curve_to(c1x + ox, c1y + oy, c2x + ox, c2y + oy, x + ox, y + oy)

    def smooth_curve_to(self, c2x: float, c2y: float, x: float, y: float) -> None:
        """Cubic whose first control point mirrors the previous cubic one.

        A quadratic control point is not mirrored; after ``quad_to`` (or
        any non-curve operation) the first control point is the current
        position, as for SVG ``S`` after ``Q``.
        """
        c1 = self._mirrored_ctrl("cubic")
        self.curve_to(c1.x, c1.y, c2x, c2y, x, y)

    def smooth_curve_by(self, c2x: float, c2y: float, x: float, y: float) -> None:
        ox, oy = self._rel_pos.x, self._rel_pos.y
        self.smooth_curve_to(c2x + ox, c2y + oy, x + ox, y + oy)

    def quad_to(self, cx: float, cy: float, x: float, y: float) -> None:
        """Quadratic Bézier from the current position."""
        flat = self._flattener.flatten([self._rel_pos, Point(cx, cy), Point(x, y)])
        self._draw_flattened("quadTo", flat)
        self._rel_pos = Point(x, y)
        self._last_ctrl = Point(cx, cy)
        self._last_ctrl_kind = "quad"

    def quad_by(self, cx: float, cy: float, x: float, y: float) -> None:
        ox, oy = self._rel_pos.x, self._rel_pos.y
        self.quad_to(cx + ox, cy + oy, x + ox, y + oy)

    def smooth_quad_to(self, x: float, y: float) -> None:
        """Quadratic mirroring the previous quadratic control point only."""
        c = self._mirrored_ctrl("quad")
        self.quad_to(c.x, c.y, x, y)

    def smooth_quad_by(self, dx: float, dy: float) -> None:
        self.smooth_quad_to(self._rel_pos.x + dx, self._rel_pos.y + dy)

    def _mirrored_ctrl(self, kind: str) -> Point:
        """Reflection of the previous control point of the same curve kind.

        *kind* is ``"cubic"`` or ``"quad"``.  Control points of the other
        kind are ignored and the current position (zero-length handle)
        is returned, matching SVG ``S``/``T`` smoothing.
        """
        if self._last_ctrl is not None and self._last_ctrl_kind == kind:
            return self._last_ctrl.reflect(self._rel_pos)
        return self._rel_pos
