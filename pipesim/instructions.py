"""
Instruction definitions for the teaching ISA.

This module defines the eight supported opcodes, which operand slots each
one reads and writes, and the immutable Instruction record that travels
through the pipeline latches.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from enum import Enum


# Toy ISA register file size
NUM_REGISTERS = 32


class Opcode(Enum):
    """Opcodes of the teaching ISA."""

    ADD = "ADD"      # ADD   rd rs1 rs2
    SUB = "SUB"      # SUB   rd rs1 rs2
    LOAD = "LOAD"    # LOAD  rd [rs1+imm]
    STORE = "STORE"  # STORE rs2 [rs1+imm]
    BEQ = "BEQ"      # BEQ   rs1 rs2 imm
    BNE = "BNE"      # BNE   rs1 rs2 imm
    NOP = "NOP"
    HALT = "HALT"


@dataclass(frozen=True)
class OperandUsage:
    """
    Operand slots used by an opcode.

    Attributes:
        writes_rd: Opcode writes its destination register
        reads_rs1: Opcode reads rs1 (base register for LOAD/STORE)
        reads_rs2: Opcode reads rs2 (store data for STORE)
        is_branch: Opcode is a conditional branch
        is_load: Opcode reads memory into rd
    """

    writes_rd: bool = False
    reads_rs1: bool = False
    reads_rs2: bool = False
    is_branch: bool = False
    is_load: bool = False


# =============================================================================
# Operand usage table
# =============================================================================

OPCODE_USAGE = {
    # ALU register-register
    Opcode.ADD: OperandUsage(writes_rd=True, reads_rs1=True, reads_rs2=True),
    Opcode.SUB: OperandUsage(writes_rd=True, reads_rs1=True, reads_rs2=True),
    # Memory
    Opcode.LOAD: OperandUsage(writes_rd=True, reads_rs1=True, is_load=True),
    Opcode.STORE: OperandUsage(reads_rs1=True, reads_rs2=True),
    # Branches
    Opcode.BEQ: OperandUsage(reads_rs1=True, reads_rs2=True, is_branch=True),
    Opcode.BNE: OperandUsage(reads_rs1=True, reads_rs2=True, is_branch=True),
    # HALT is never a producer or a branch
    Opcode.NOP: OperandUsage(),
    Opcode.HALT: OperandUsage(),
}


def get_opcode(mnemonic: str) -> Optional[Opcode]:
    """
    Look up an opcode by mnemonic.

    Args:
        mnemonic: Opcode mnemonic (case-insensitive)

    Returns:
        Opcode if found, None otherwise
    """
    try:
        return Opcode(mnemonic.strip().upper())
    except ValueError:
        return None


def is_valid_opcode(mnemonic: str) -> bool:
    """Check if a mnemonic names a supported opcode."""
    return get_opcode(mnemonic) is not None


@dataclass(frozen=True)
class Instruction:
    """
    One decoded instruction. Immutable; copied by value between latches.

    Attributes:
        op: Opcode
        rd: Destination register (None if no destination)
        rs1: Source register 1 (None if not used)
        rs2: Source register 2 (None if not used)
        imm: Signed immediate (memory offset, or branch displacement in
             instruction units)
        uid: Globally unique id, increasing in load order
        pc: Position in the program (0-based)
    """

    op: Opcode
    rd: Optional[int] = None
    rs1: Optional[int] = None
    rs2: Optional[int] = None
    imm: int = 0
    uid: int = -1
    pc: int = -1

    @property
    def usage(self) -> OperandUsage:
        return OPCODE_USAGE[self.op]

    @property
    def is_branch(self) -> bool:
        return self.usage.is_branch

    @property
    def is_load(self) -> bool:
        return self.usage.is_load

    @property
    def writes_register(self) -> bool:
        """True if this instruction produces a register value."""
        return self.usage.writes_rd and self.rd is not None and self.rd >= 0

    @property
    def dest_register(self) -> Optional[int]:
        return self.rd if self.writes_register else None

    def source_registers(self) -> Tuple[int, ...]:
        """Registers read by this instruction, in operand order."""
        usage = self.usage
        sources = []
        if usage.reads_rs1 and self.rs1 is not None and self.rs1 >= 0:
            sources.append(self.rs1)
        if usage.reads_rs2 and self.rs2 is not None and self.rs2 >= 0:
            sources.append(self.rs2)
        return tuple(sources)

    def reads(self, reg: int) -> bool:
        return reg in self.source_registers()

    @property
    def fall_through(self) -> int:
        return self.pc + 1

    @property
    def branch_target(self) -> int:
        """PC-relative target: pc + 1 + imm."""
        return self.pc + 1 + self.imm

    @property
    def label(self) -> str:
        """Short timeline label, e.g. LOAD#3."""
        return f"{self.op.value}#{self.uid}"

    def __str__(self) -> str:
        text = f"#{self.uid} PC={self.pc} {self.op.value}"
        if self.op in (Opcode.ADD, Opcode.SUB):
            text += f" r{self.rd} r{self.rs1} r{self.rs2}"
        elif self.op == Opcode.LOAD:
            text += f" r{self.rd} [r{self.rs1}{self.imm:+d}]"
        elif self.op == Opcode.STORE:
            text += f" r{self.rs2} [r{self.rs1}{self.imm:+d}]"
        elif self.is_branch:
            text += f" r{self.rs1} r{self.rs2} {self.imm}"
        return text
