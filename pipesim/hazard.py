"""
Data hazard detection for the decode stage.

Decides, once per cycle, whether the instruction in ID must stall because an
older instruction further down the pipeline has not yet made its result
available.

Only read-after-write hazards exist here. With a single-issue, in-order
pipeline every instruction reads its operands in ID before any younger
instruction can write, and each instruction writes back at most once and in
program order, so write-after-read and write-after-write never require a
stall.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from .instructions import Instruction


class HazardKind(Enum):
    """Hazard classification for the ID stage."""

    NONE = auto()
    RAW = auto()  # Read-after-write


@dataclass(frozen=True)
class HazardDecision:
    """
    Decision for the ID stage this cycle.

    Attributes:
        stall: Hold IF/ID and insert a bubble into ID/EX
        kind: Hazard classification
        producer: Instruction whose result is not yet available (if any)
    """

    stall: bool = False
    kind: HazardKind = HazardKind.NONE
    producer: Optional[Instruction] = None


NO_HAZARD = HazardDecision()


def _raw_match(consumer: Instruction, producer: Optional[Instruction]) -> bool:
    """True if producer writes a register that consumer reads."""
    if producer is None or not producer.writes_register:
        return False
    return consumer.reads(producer.rd)


def detect_hazard(
    id_instr: Optional[Instruction],
    ex_instr: Optional[Instruction],
    mem_instr: Optional[Instruction],
    wb_instr: Optional[Instruction],
    forwarding_enabled: bool,
) -> HazardDecision:
    """
    Check the instruction in ID against producers in EX, MEM and WB.

    Each stage argument is the resident instruction, or None for an empty or
    bubble latch.

    Args:
        id_instr: Instruction being decoded
        ex_instr: Instruction in EX
        mem_instr: Instruction in MEM
        wb_instr: Instruction in WB
        forwarding_enabled: EX/MEM and MEM/WB bypass paths are present

    Returns:
        HazardDecision for this cycle
    """
    if id_instr is None:
        return NO_HAZARD

    if forwarding_enabled:
        # Load-use: a LOAD in EX has no value until MEM, so one stall.
        # Everything else can be bypassed.
        if ex_instr is not None and ex_instr.is_load and _raw_match(id_instr, ex_instr):
            return HazardDecision(stall=True, kind=HazardKind.RAW, producer=ex_instr)
        return NO_HAZARD

    # Without forwarding, data is visible only after WB completes
    for producer in (ex_instr, mem_instr, wb_instr):
        if _raw_match(id_instr, producer):
            return HazardDecision(stall=True, kind=HazardKind.RAW, producer=producer)
    return NO_HAZARD
