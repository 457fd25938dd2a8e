"""GCode front end -- motion program text → instruction stream.

Each input line is cleaned (``;`` comments, ``(...)`` remarks and a
trailing ``*nn`` checksum removed), split into letter/number fields and
dispatched command by command:

    G0 / G1    linear move (rate change, elevation, XY)
    G2 / G3    arc move, reported as unsupported
    G4         dwell: ``w`` with the ``P`` value, else with the ``S`` value
    G28        home the given axes, or all of them
    G90 / G91  absolute / relative positioning
    G92        position reset

An axis-only line repeats the last motion command (G0-G3).  Fields are
carried forward to later lines once a line has been applied.

Coordinates (X, Y, Z) are multiplied by ``scale``; the emitter rounds
them to device units.  Extrusion values (E, A) are not scaled.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Iterable

from pathr.configs.loader import PathrConfig
from pathr.diagnostics import ConversionResult, Outcome
from pathr.emitter.path import NonFiniteError, PathEmitter
from pathr.utils.logging_config import pop_context, push_context

logger = logging.getLogger(__name__)

_COMMENT_RE = re.compile(r";.*$|\([^)]*\)|\*\d*\s*$")
_FIELD_RE = re.compile(
    r"(?P<letter>[A-Za-z])\s*(?P<value>[-+]?(?:\d+\.?\d*|\.\d+))?"
    r"|(?P<junk>\S)"
)

_COMMAND_LETTERS = ("G", "M", "T")
_AXES = ("X", "Y", "Z")
_CARRIED = ("X", "Y", "Z", "F", "E", "A")


class Command(enum.Enum):
    """Closed set of GCode commands with a handler."""

    G0 = "G0"
    G1 = "G1"
    G2 = "G2"
    G3 = "G3"
    G4 = "G4"
    G28 = "G28"
    G90 = "G90"
    G91 = "G91"
    G92 = "G92"

    @classmethod
    def lookup(cls, code: str) -> Command | None:
        try:
            return cls(code)
        except ValueError:
            return None

    @property
    def is_motion(self) -> bool:
        return self in (Command.G0, Command.G1, Command.G2, Command.G3)


@dataclass(slots=True)
class GCodeState:
    """Parser state threaded from line to line.

    Attributes
    ----------
    fields : dict[str, float]
        Last value seen per carried field (X, Y, Z, F, E, A), unscaled.
    relative : bool
        ``True`` after G91, ``False`` after G90 (default).
    motion : Command | None
        Last motion command, repeated by axis-only lines.
    rate : float
        Last extrusion rate emitted.
    """

    fields: dict[str, float] = field(default_factory=lambda: dict.fromkeys(_CARRIED, 0.0))
    relative: bool = False
    motion: Command | None = None
    rate: float = 0.0


# ---------------------------------------------------------------------------
# Line scanning
# ---------------------------------------------------------------------------


def strip_comments(line: str) -> str:
    return _COMMENT_RE.sub(" ", line).strip()


def scan_fields(text: str) -> list[tuple[str, float | None]]:
    """Split a cleaned line into ``(LETTER, value)`` pairs in order.

    A letter without a number yields ``None`` (a flag, as in ``G28 X``).

    Raises
    ------
    ValueError
        On characters that belong to no field.
    """
    fields: list[tuple[str, float | None]] = []
    for m in _FIELD_RE.finditer(text):
        if m.group("junk") is not None:
            raise ValueError(f"Unexpected character {m.group('junk')!r}")
        value = m.group("value")
        fields.append((m.group("letter").upper(), None if value is None else float(value)))
    return fields


def _command_code(letter: str, value: float | None) -> str:
    if value is None:
        return letter
    if value.is_integer():
        return f"{letter}{int(value)}"
    return f"{letter}{value:g}"


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


class GCodeGrammar:
    """Line-by-line GCode interpreter driving a ``PathEmitter``.

    Parameters
    ----------
    emitter : PathEmitter
        Target emitter.
    result : ConversionResult
        Collects per-line diagnostics.
    scale : float
        Input units → device units for X, Y and Z.
    extrusion_proximity : float
        Rate changes up to this magnitude are ignored.
    """

    def __init__(
        self,
        emitter: PathEmitter,
        result: ConversionResult,
        scale: float = 1.0,
        extrusion_proximity: float = 0.0,
    ) -> None:
        self.emitter = emitter
        self.result = result
        self.scale = scale
        self.extrusion_proximity = extrusion_proximity
        self.state = GCodeState()

    def parse(self, lines: Iterable[str]) -> None:
        for lineno, line in enumerate(lines, start=1):
            self.feed_line(line, lineno)

    def feed_line(self, line: str, lineno: int = 0) -> None:
        """Interpret one line; problems become diagnostics."""
        where = f"line {lineno}"
        text = strip_comments(line)
        if not text:
            logger.debug("%s: nothing to do", where)
            return

        try:
            fields = scan_fields(text)
        except ValueError as exc:
            self.result.report(Outcome.MALFORMED, where, f"{exc}: {line.strip()!r}")
            return

        values: dict[str, float | None] = {}
        commands: list[str] = []
        for letter, value in fields:
            if letter in _COMMAND_LETTERS:
                commands.append(_command_code(letter, value))
            else:
                values[letter] = value

        bad = self._non_finite(values)
        if bad is not None:
            self.result.report(
                Outcome.MALFORMED, where, f"Non-finite {bad} value in {line.strip()!r}"
            )
            return

        if not commands:
            # only the motion group (G0-G3) is modal
            has_axis = any(values.get(a) is not None for a in _AXES)
            if has_axis and self.state.motion is not None:
                commands.append(self.state.motion.value)
            else:
                self.result.report(Outcome.MALFORMED, where, f"No command in {line.strip()!r}")
                return

        applied = False
        for code in commands:
            outcome, message = self._apply(code, values)
            if outcome.ok:
                applied = True
            else:
                self.result.report(outcome, where, message)

        if applied:
            for key in _CARRIED:
                if values.get(key) is not None:
                    self.state.fields[key] = values[key]

    def _non_finite(self, values: dict[str, float | None]) -> str | None:
        """First field whose value, or scaled axis target, is not finite."""
        for key, value in values.items():
            if value is None:
                continue
            if not math.isfinite(value):
                return key
            if key in _AXES and not math.isfinite(value * self.scale):
                return key
        return None

    def _apply(self, code: str, values: dict[str, float | None]) -> tuple[Outcome, str]:
        """Run one command; an overflowing target drops its output."""
        rate = self.state.rate
        try:
            with self.emitter.transaction():
                return self._dispatch(code, values)
        except NonFiniteError as exc:
            self.state.rate = rate
            return Outcome.MALFORMED, str(exc)

    def _dispatch(self, code: str, values: dict[str, float | None]) -> tuple[Outcome, str]:
        command = Command.lookup(code)
        if command is None:
            return Outcome.UNSUPPORTED, f"Unsupported command {code}"
        if command.is_motion:
            self.state.motion = command

        if command in (Command.G0, Command.G1):
            self._linear_move(values)
        elif command in (Command.G2, Command.G3):
            return Outcome.UNSUPPORTED, f"Arc move {code} not supported"
        elif command is Command.G4:
            self._dwell(values)
        elif command is Command.G28:
            self._home(values)
        elif command is Command.G90:
            self.state.relative = False
        elif command is Command.G91:
            self.state.relative = True
        elif command is Command.G92:
            self._reset(values)
        return Outcome.OK, ""

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _linear_move(self, values: dict[str, float | None]) -> None:
        em = self.emitter
        state = self.state

        rate = values.get("E")
        if rate is None:
            rate = values.get("A")
        if rate is None:
            rate = state.fields["E"]
        if abs(rate - state.rate) > self.extrusion_proximity:
            em.extrude(rate)
            em.and_()
            state.rate = rate

        x, y, z = (values.get(a) for a in _AXES)
        if state.relative:
            if z:
                em.elevate_by(z * self.scale)
            if x or y:
                em.move_by((x or 0.0) * self.scale, (y or 0.0) * self.scale)
        else:
            if z is not None:
                em.elevate_to(z * self.scale)
            if x is not None or y is not None:
                pos = em.position
                em.move_to(
                    pos.x if x is None else x * self.scale,
                    pos.y if y is None else y * self.scale,
                )
        em.end()

    def _dwell(self, values: dict[str, float | None]) -> None:
        value = values.get("P")
        if value is None:
            value = values.get("S")
        if value is None:
            logger.debug("G4 without P or S, ignored")
            return
        self.emitter.wait(value)
        self.emitter.end()

    def _home(self, values: dict[str, float | None]) -> None:
        em = self.emitter
        hx, hy, hz = (a in values for a in _AXES)
        if not (hx or hy or hz):
            em.move_to(0.0, 0.0)
            em.then()
            em.elevate_to(0.0)
            em.end()
            values.update(X=0.0, Y=0.0, Z=0.0)
            return

        if hx or hy:
            pos = em.position
            em.move_to(0.0 if hx else pos.x, 0.0 if hy else pos.y)
            em.end()
        if hz:
            em.elevate_to(0.0)
            em.end()
        for axis, homed in zip(_AXES, (hx, hy, hz)):
            if homed:
                values[axis] = 0.0

    def _reset(self, values: dict[str, float | None]) -> None:
        em = self.emitter
        rx, ry, rz = (a in values for a in _AXES)
        has_e = "E" in values
        if not (rx or ry or rz or has_e):
            em.reset_position(0.0, 0.0, 0.0)
            values.update(X=0.0, Y=0.0, Z=0.0, E=0.0)
            self.state.rate = 0.0
            return

        pos = em.position
        em.reset_position(
            0.0 if rx else pos.x,
            0.0 if ry else pos.y,
            0.0 if rz else em.elevation,
        )
        for axis, reset in zip(_AXES, (rx, ry, rz)):
            if reset:
                values[axis] = 0.0
        if has_e:
            values["E"] = 0.0
            self.state.rate = 0.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def gcode_to_path(
    text: str,
    config: PathrConfig | None = None,
    *,
    scale: float | None = None,
) -> ConversionResult:
    """Convert GCode program text into an instruction stream.

    Parameters
    ----------
    text : str
        Whole program, one block per line.
    config : PathrConfig | None
        ``None`` uses the built-in defaults.
    scale : float | None
        Overrides ``config.gcode.scale``.

    Returns
    -------
    ConversionResult
        Code plus one diagnostic per skipped command or line.

    Raises
    ------
    ValueError
        If *scale* is zero or not finite.
    """
    cfg = config or PathrConfig()
    scale = cfg.gcode.scale if scale is None else float(scale)
    if not math.isfinite(scale) or scale == 0:
        raise ValueError(f"scale must be finite and non-zero, got {scale}")

    push_context(job="gcode")
    try:
        emitter = PathEmitter(cfg.emitter, welcome="GCode to Path")
        result = ConversionResult()
        grammar = GCodeGrammar(emitter, result, scale, cfg.gcode.extrusion_proximity)
        grammar.parse(text.splitlines())
        emitter.end()
        result.code = emitter.code
        logger.info(
            "GCode converted: %d line(s) in, %d diagnostic(s)",
            len(text.splitlines()), len(result.diagnostics),
        )
    finally:
        pop_context(["job"])
    return result
