"""Instruction-stream backend shared by the SVG and GCode front ends."""

from pathr.emitter.path import (
    EmitterStateError,
    NonFiniteError,
    PathEmitter,
    Transaction,
    format_number,
)

__all__ = ["EmitterStateError", "NonFiniteError", "PathEmitter", "Transaction", "format_number"]
