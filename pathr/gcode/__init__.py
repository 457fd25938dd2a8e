"""GCode front end: motion program text → PathEmitter."""

from pathr.gcode.grammar import (
    Command,
    GCodeGrammar,
    GCodeState,
    gcode_to_path,
    scan_fields,
    strip_comments,
)

__all__ = [
    "Command",
    "GCodeGrammar",
    "GCodeState",
    "gcode_to_path",
    "scan_fields",
    "strip_comments",
]
