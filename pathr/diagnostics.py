"""Conversion outcomes and diagnostics.

Every shape handler and every GCode command handler returns an
``Outcome``.  Anything other than ``Outcome.OK`` rolls back (SVG) or
skips (GCode) the enclosing unit of work and is recorded as a
``Diagnostic`` on the ``ConversionResult``; a single bad shape or line
never ends the conversion.

Programming-contract violations (unbalanced emitter stacks) are not
diagnostics: they raise ``EmitterStateError`` from the emitter.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    """Result of one parse step."""

    OK = "ok"
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"

    @property
    def ok(self) -> bool:
        return self is Outcome.OK


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """One non-fatal problem found during a conversion.

    Parameters
    ----------
    kind : Outcome
        ``MALFORMED`` or ``UNSUPPORTED``.
    where : str
        Source location, e.g. ``"line 12"`` or ``"<path>"``.
    message : str
        Human-readable description.
    """

    kind: Outcome
    where: str
    message: str

    def __post_init__(self) -> None:
        if self.kind is Outcome.OK:
            raise ValueError("Diagnostic kind must not be Outcome.OK")

    def __str__(self) -> str:
        return f"{self.where}: {self.message}"


@dataclass(slots=True)
class ConversionResult:
    """Instruction stream plus whatever went wrong while producing it."""

    code: str = ""
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    def report(self, kind: Outcome, where: str, message: str) -> Diagnostic:
        """Record and log a diagnostic."""
        diagnostic = Diagnostic(kind=kind, where=where, message=message)
        self.diagnostics.append(diagnostic)
        logger.warning("%s (%s)", diagnostic, kind.value)
        return diagnostic

    def of_kind(self, kind: Outcome) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]
