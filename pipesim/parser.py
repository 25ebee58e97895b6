"""
Instruction trace parser.

Turns a text trace (one instruction per line) into the program list the
pipeline engine consumes. Handles comment stripping, operand tokenizing,
memory operands and immediates. Ids and program positions are assigned in
load order.
"""

import re
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import ParseError, TraceError
from .instructions import Instruction, Opcode, get_opcode
from .registers import parse_register


COMMENT_RE = re.compile(r"#|//")

# Radix prefixes accepted in immediates
IMMEDIATE_BASES = {"0x": 16, "0b": 2, "0o": 8}


def strip_comments(line: str) -> str:
    """Drop everything from the first '#' or '//' onward."""
    return COMMENT_RE.split(line, maxsplit=1)[0]


def parse_immediate(text: str) -> int:
    """
    Parse a signed immediate: decimal, or 0x / 0b / 0o prefixed.

    Raises:
        ParseError: If the text is empty or not a number
    """
    text = text.strip()
    if not text:
        raise ParseError("Empty immediate value")

    sign = -1 if text[0] == "-" else 1
    digits = text[1:].strip() if text[0] in "+-" else text
    base = IMMEDIATE_BASES.get(digits[:2].lower(), 10)
    if digits.startswith(("+", "-")):
        raise ParseError(f"Invalid immediate value: {text}")

    try:
        return sign * int(digits, base)
    except ValueError:
        raise ParseError(f"Invalid immediate value: {text}")


def parse_reg_operand(operand: str) -> int:
    """Parse a register operand, converting ValueError into ParseError."""
    try:
        return parse_register(operand)
    except ValueError as e:
        raise ParseError(str(e))


def parse_memory_operand(operand: str) -> Tuple[int, int]:
    """
    Parse a memory operand in the form [register+offset].

    Examples:
    - "[r2]"    -> (0, 2)
    - "[r2+4]"  -> (4, 2)
    - "[x3-8]"  -> (-8, 3)

    Returns:
        Tuple of (offset, base_register)
    """
    match = re.match(r"^\s*\[\s*(\w+)\s*(?:([+-])\s*(\w+))?\s*\]\s*$", operand)
    if not match:
        raise ParseError(f"Invalid memory operand syntax: {operand}")

    base = parse_reg_operand(match.group(1))

    if match.group(2) is None:
        offset = 0
    else:
        offset = parse_immediate(match.group(2) + match.group(3))

    return offset, base


def tokenize_operands(operand_str: str) -> List[str]:
    """
    Split operand string into individual operands.

    Commas and whitespace both separate operands, except inside brackets.
    """
    operands = []
    current = ""
    bracket_depth = 0

    for char in operand_str:
        if char == "[":
            bracket_depth += 1
            current += char
        elif char == "]":
            bracket_depth -= 1
            current += char
        elif (char == "," or char.isspace()) and bracket_depth == 0:
            if current.strip():
                operands.append(current.strip())
            current = ""
        else:
            current += char

    if current.strip():
        operands.append(current.strip())

    return operands


def _expect_operands(op: Opcode, operands: List[str], count: int) -> None:
    if len(operands) != count:
        raise ParseError(
            f"{op.value} expects {count} operand(s), got {len(operands)}"
        )


def parse_line(line: str, uid: int, pc: int) -> Optional[Instruction]:
    """
    Parse a single trace line.

    Args:
        line: Raw line text
        uid: Id to assign if the line holds an instruction
        pc: Program position to assign

    Returns:
        Instruction, or None for blank/comment-only lines
    """
    line = strip_comments(line).strip()
    if not line:
        return None

    parts = line.split(None, 1)
    op = get_opcode(parts[0])
    if op is None:
        raise ParseError(f"Unknown opcode: {parts[0].upper()}")
    operands = tokenize_operands(parts[1]) if len(parts) > 1 else []

    if op in (Opcode.ADD, Opcode.SUB):
        _expect_operands(op, operands, 3)
        return Instruction(
            op=op,
            rd=parse_reg_operand(operands[0]),
            rs1=parse_reg_operand(operands[1]),
            rs2=parse_reg_operand(operands[2]),
            uid=uid,
            pc=pc,
        )

    if op == Opcode.LOAD:
        _expect_operands(op, operands, 2)
        offset, base = parse_memory_operand(operands[1])
        return Instruction(
            op=op, rd=parse_reg_operand(operands[0]), rs1=base, imm=offset,
            uid=uid, pc=pc,
        )

    if op == Opcode.STORE:
        _expect_operands(op, operands, 2)
        offset, base = parse_memory_operand(operands[1])
        return Instruction(
            op=op, rs1=base, rs2=parse_reg_operand(operands[0]), imm=offset,
            uid=uid, pc=pc,
        )

    if op in (Opcode.BEQ, Opcode.BNE):
        _expect_operands(op, operands, 3)
        return Instruction(
            op=op,
            rs1=parse_reg_operand(operands[0]),
            rs2=parse_reg_operand(operands[1]),
            imm=parse_immediate(operands[2]),
            uid=uid,
            pc=pc,
        )

    # NOP / HALT
    _expect_operands(op, operands, 0)
    return Instruction(op=op, uid=uid, pc=pc)


class TraceLoader:
    """
    Trace file loader.

    Parses whole traces and keeps the resulting program.
    """

    def __init__(self):
        self.program: List[Instruction] = []

    def parse_file(self, filepath: str) -> List[Instruction]:
        """
        Parse a trace file.

        Args:
            filepath: Path to the trace file

        Returns:
            List of Instruction objects in program order

        Raises:
            TraceError: If the file cannot be read
            ParseError: If a line is malformed
        """
        path = Path(filepath)
        try:
            content = path.read_text()
        except OSError as e:
            raise TraceError(f"Could not open trace: {filepath} ({e.strerror})")
        return self.parse_string(content)

    def parse_string(self, content: str) -> List[Instruction]:
        """
        Parse a trace from a string.

        Args:
            content: Trace text

        Returns:
            List of Instruction objects in program order
        """
        self.program = []

        for i, line in enumerate(content.splitlines(), start=1):
            pc = len(self.program)
            try:
                instr = parse_line(line, uid=pc, pc=pc)
            except ParseError as e:
                raise ParseError(str(e), i, line.strip()) from None
            if instr is not None:
                self.program.append(instr)

        return self.program


def parse_trace_string(content: str) -> List[Instruction]:
    """Parse trace text into a program."""
    return TraceLoader().parse_string(content)


def load_trace(filepath: str) -> List[Instruction]:
    """Load a trace file into a program."""
    return TraceLoader().parse_file(filepath)
