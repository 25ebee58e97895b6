"""
PipeSim - A cycle-level 5-stage pipeline simulator for a small teaching ISA.

This package models IF/ID/EX/MEM/WB with RAW hazard stalls, optional operand
forwarding and pluggable branch predictors, and reports CPI and prediction
accuracy.
"""

from .errors import PipeSimError, ParseError, TraceError, ConfigError
from .instructions import Instruction, Opcode
from .pipeline import Pipeline, CycleRecord
from .predictors import make_predictor
from .simulator import Simulator

__version__ = "1.0.0"
__all__ = [
    "Pipeline",
    "CycleRecord",
    "Instruction",
    "Opcode",
    "Simulator",
    "make_predictor",
    "PipeSimError",
    "ParseError",
    "TraceError",
    "ConfigError",
]
