"""
Tests for the trace parser and register names.
"""

import pytest

from pipesim.errors import ParseError, TraceError
from pipesim.instructions import Opcode
from pipesim.parser import (
    load_trace,
    parse_immediate,
    parse_memory_operand,
    parse_trace_string,
    strip_comments,
    tokenize_operands,
)
from pipesim.registers import get_register_name, is_valid_register, parse_register


class TestRegisters:
    """Tests for register name parsing."""

    @pytest.mark.parametrize("name,expected", [
        ("r0", 0), ("R7", 7), ("x31", 31), ("X12", 12), ("5", 5),
    ])
    def test_valid_names(self, name, expected):
        assert parse_register(name) == expected

    @pytest.mark.parametrize("name", ["r32", "x-1", "sp", "", "rr1"])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError, match="Invalid register name"):
            parse_register(name)
        assert not is_valid_register(name)

    def test_register_name(self):
        assert get_register_name(4) == "r4"
        with pytest.raises(ValueError):
            get_register_name(32)


class TestLexing:
    """Tests for comment stripping, immediates and operands."""

    def test_strip_comments(self):
        assert strip_comments("ADD r1 r2 r3 # note").strip() == "ADD r1 r2 r3"
        assert strip_comments("NOP // other").strip() == "NOP"
        assert strip_comments("# only a comment").strip() == ""
        assert strip_comments("ADD r1 // x # y") == "ADD r1 "

    @pytest.mark.parametrize("text,expected", [
        ("12", 12), ("-3", -3), ("+2", 2), ("0x10", 16), ("0b101", 5), ("0o17", 15),
        ("-0x10", -16), ("0X1F", 31), ("- 4", -4),
    ])
    def test_parse_immediate(self, text, expected):
        assert parse_immediate(text) == expected

    def test_parse_immediate_invalid(self):
        with pytest.raises(ParseError, match="Invalid immediate"):
            parse_immediate("abc")
        with pytest.raises(ParseError, match="Invalid immediate"):
            parse_immediate("+-3")
        with pytest.raises(ParseError, match="Invalid immediate"):
            parse_immediate("0x")
        with pytest.raises(ParseError, match="Empty immediate"):
            parse_immediate("  ")

    @pytest.mark.parametrize("text,expected", [
        ("[r2]", (0, 2)),
        ("[r2+4]", (4, 2)),
        ("[x3-8]", (-8, 3)),
        ("[ r1 + 0x10 ]", (16, 1)),
    ])
    def test_memory_operand(self, text, expected):
        assert parse_memory_operand(text) == expected

    def test_memory_operand_bad_syntax(self):
        with pytest.raises(ParseError, match="Invalid memory operand"):
            parse_memory_operand("4(r2)")

    def test_tokenize_commas_and_spaces(self):
        assert tokenize_operands("r1, r2 r3") == ["r1", "r2", "r3"]
        assert tokenize_operands("r1, [r2 + 4]") == ["r1", "[r2 + 4]"]


class TestParseTrace:
    """Tests for whole-trace parsing."""

    def test_all_opcodes(self):
        program = parse_trace_string("""
            # header comment
            ADD   r1 r2 r3
            sub   r4, r1, r5
            LOAD  r6 [r1+8]
            STORE r6 [r2-4]
            BEQ   r1 r2 -2
            BNE   r3 r4 3
            NOP
            HALT
        """)

        assert [i.op for i in program] == [
            Opcode.ADD, Opcode.SUB, Opcode.LOAD, Opcode.STORE,
            Opcode.BEQ, Opcode.BNE, Opcode.NOP, Opcode.HALT,
        ]
        assert [i.uid for i in program] == list(range(8))
        assert [i.pc for i in program] == list(range(8))

        load = program[2]
        assert (load.rd, load.rs1, load.rs2, load.imm) == (6, 1, None, 8)

        store = program[3]
        assert (store.rd, store.rs1, store.rs2, store.imm) == (None, 2, 6, -4)

        beq = program[4]
        assert (beq.rs1, beq.rs2, beq.imm) == (1, 2, -2)
        assert beq.branch_target == 4 + 1 - 2

    def test_blank_and_comment_lines_do_not_take_positions(self):
        program = parse_trace_string("\n# c\nNOP\n\n// c\nHALT\n")
        assert [i.pc for i in program] == [0, 1]

    def test_unknown_opcode_reports_line(self):
        with pytest.raises(ParseError) as exc:
            parse_trace_string("NOP\nJMP 4\n")
        assert exc.value.line_num == 2
        assert "Unknown opcode: JMP" in str(exc.value)

    def test_wrong_operand_count(self):
        with pytest.raises(ParseError, match="ADD expects 3 operand"):
            parse_trace_string("ADD r1 r2")

    def test_bad_register(self):
        with pytest.raises(ParseError, match="Invalid register name: r40"):
            parse_trace_string("SUB r1 r40 r2")

    def test_halt_takes_no_operands(self):
        with pytest.raises(ParseError, match="HALT expects 0 operand"):
            parse_trace_string("HALT r1")

    def test_instruction_str(self):
        program = parse_trace_string("LOAD r1 [r2+4]\nBEQ r0 r0 -2")
        assert str(program[0]) == "#0 PC=0 LOAD r1 [r2+4]"
        assert str(program[1]) == "#1 PC=1 BEQ r0 r0 -2"
        assert program[1].label == "BEQ#1"


class TestLoadTrace:
    """Tests for reading trace files."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "prog.trace"
        path.write_text("ADD r1 r2 r3\nHALT\n")
        program = load_trace(str(path))
        assert len(program) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(TraceError, match="Could not open trace"):
            load_trace(str(tmp_path / "missing.trace"))
