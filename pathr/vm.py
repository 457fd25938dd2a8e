"""Offline replay of an instruction stream for dry-run validation.

Provides:
    - Dry-run execution: apply every statement without a device
    - Totals: extruded amount, short / long wait time, move count
    - Well-formedness: unknown opcodes, wrong operand counts and
      non-integer motion operands are collected as violations

Used by:
    - Tests: check that converters land where the input says
    - Debugging: inspect the visited XY positions of a stream

Public API:
    vm = PathVM()
    vm.load_string(result.code)
    res = vm.run()           # → VMResult
    pts = vm.trajectory()    # → visited XY device positions

Statements are separated by line breaks and ``,`` continuations; lines
starting with ``#`` are comments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# opcode -> allowed operand counts
_OPERANDS = {
    "m": (2,),
    "z": (1,),
    "sxp": (1,),
    "syp": (1,),
    "szp": (1,),
    "e": (1, 2),
    "w": (1,),
    "W": (1,),
}
_INTEGER_OPS = ("m", "z", "sxp", "syp", "szp")


@dataclass(frozen=True)
class VMResult:
    """Final state and totals after a replay.

    Parameters
    ----------
    position : Tuple[float, float]
        Final XY device position.
    elevation : float
        Final Z device position.
    extruded : float
        Sum of all ``e`` amounts.
    wait_ms : float
        Sum of all ``w`` operands.
    long_wait_s : float
        Sum of all ``W`` operands.
    move_count : int
        Number of ``m`` statements.
    violations : List[str]
        One message per malformed statement.
    """

    position: Tuple[float, float]
    elevation: float
    extruded: float
    wait_ms: float
    long_wait_s: float
    move_count: int
    violations: List[str]


class PathVM:
    """Instruction-stream virtual machine.

    Attributes
    ----------
    pos : Tuple[float, float]
        Current XY device position.
    z : float
        Current elevation.
    lines : List[str]
        Loaded stream lines.
    violations : List[str]
        Accumulated problems.
    """

    def __init__(self) -> None:
        self.lines: List[str] = []
        self.reset()

    def load_file(self, path: Union[str, Path]) -> None:
        """Load a stream from disk.

        Raises
        ------
        FileNotFoundError
            If file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Path file not found: {path}")
        self.lines = path.read_text().splitlines()
        logger.info(f"Loaded {len(self.lines)} stream lines from {path}")

    def load_string(self, code: str) -> None:
        self.lines = code.splitlines()
        logger.debug(f"Loaded {len(self.lines)} stream lines from string")

    def reset(self) -> None:
        """Reset VM state to the origin."""
        self.pos: Tuple[float, float] = (0.0, 0.0)
        self.z: float = 0.0
        self.extruded: float = 0.0
        self.wait_ms: float = 0.0
        self.long_wait_s: float = 0.0
        self.move_count: int = 0
        self.violations: List[str] = []
        self._trajectory: List[Tuple[float, float]] = [self.pos]
        self._ran = False

    def _violation(self, where: str, msg: str) -> None:
        msg = f"{msg} at {where}"
        self.violations.append(msg)
        logger.warning(msg)

    def execute_line(self, line: str, line_idx: Optional[int] = None) -> None:
        """Execute every statement of one line.

        Parameters
        ----------
        line : str
            One stream line.
        line_idx : Optional[int]
            Source line index (0-based) for violation messages.
        """
        line = line.strip()
        if not line or line.startswith("#"):
            return

        where = f"line {line_idx + 1}" if line_idx is not None else "input"
        for statement in line.split(","):
            parts = statement.split()
            if not parts:
                self._violation(where, "Empty statement")
                continue
            self.execute_statement(parts[0], parts[1:], where)

    def execute_statement(self, opcode: str, operands: List[str], where: str = "input") -> None:
        if opcode not in _OPERANDS:
            self._violation(where, f"Unknown opcode {opcode!r}")
            return
        if len(operands) not in _OPERANDS[opcode]:
            self._violation(where, f"'{opcode}' takes {_OPERANDS[opcode]} operand(s), got {len(operands)}")
            return
        try:
            values = [float(v) for v in operands]
        except ValueError:
            self._violation(where, f"Non-numeric operand in '{opcode} {' '.join(operands)}'")
            return
        if opcode in _INTEGER_OPS and not all(v.is_integer() for v in values):
            self._violation(where, f"Non-integer motion operand in '{opcode} {' '.join(operands)}'")
            return

        x, y = self.pos
        if opcode == "m":
            self.pos = (x + values[0], y + values[1])
            self.move_count += 1
            self._trajectory.append(self.pos)
        elif opcode == "z":
            self.z += values[0]
        elif opcode == "sxp":
            self.pos = (values[0], y)
        elif opcode == "syp":
            self.pos = (x, values[0])
        elif opcode == "szp":
            self.z = values[0]
        elif opcode == "e":
            self.extruded += values[0]
        elif opcode == "w":
            self.wait_ms += values[0]
        elif opcode == "W":
            self.long_wait_s += values[0]

    def run(self) -> VMResult:
        """Replay all loaded lines from a fresh state."""
        self.reset()
        for idx, line in enumerate(self.lines):
            self.execute_line(line, idx)
        self._ran = True

        logger.info(
            f"Replayed {len(self.lines)} lines: {self.move_count} moves, "
            f"{len(self.violations)} violation(s)"
        )
        return VMResult(
            position=self.pos,
            elevation=self.z,
            extruded=self.extruded,
            wait_ms=self.wait_ms,
            long_wait_s=self.long_wait_s,
            move_count=self.move_count,
            violations=list(self.violations),
        )

    def trajectory(self) -> List[Tuple[float, float]]:
        """XY positions visited by ``m`` statements, starting at the origin.

        Runs the loaded program first if it has not been run yet.
        """
        if not self._ran:
            self.run()
        return list(self._trajectory)
