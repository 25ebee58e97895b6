"""
Tests for the ID-stage hazard detector.
"""

import pytest

from pipesim.hazard import HazardKind, detect_hazard
from pipesim.instructions import Instruction, Opcode


def add(rd, rs1, rs2):
    return Instruction(Opcode.ADD, rd=rd, rs1=rs1, rs2=rs2)


def load(rd, base, imm=0):
    return Instruction(Opcode.LOAD, rd=rd, rs1=base, imm=imm)


def store(data, base, imm=0):
    return Instruction(Opcode.STORE, rs1=base, rs2=data, imm=imm)


def beq(rs1, rs2, imm=1):
    return Instruction(Opcode.BEQ, rs1=rs1, rs2=rs2, imm=imm)


NOP = Instruction(Opcode.NOP)
HALT = Instruction(Opcode.HALT)


class TestForwardingOff:
    """Without forwarding every in-flight producer blocks its consumers."""

    @pytest.mark.parametrize("stage", ["ex", "mem", "wb"])
    def test_producer_in_any_stage_stalls(self, stage):
        producer = add(1, 2, 3)
        stages = {"ex": None, "mem": None, "wb": None}
        stages[stage] = producer

        d = detect_hazard(add(4, 1, 5), stages["ex"], stages["mem"], stages["wb"], False)

        assert d.stall
        assert d.kind == HazardKind.RAW
        assert d.producer is producer

    def test_rs2_dependency(self):
        d = detect_hazard(add(4, 5, 1), add(1, 2, 3), None, None, False)
        assert d.stall

    def test_independent_instruction(self):
        d = detect_hazard(add(4, 5, 6), add(1, 2, 3), load(7, 0), add(8, 0, 0), False)
        assert not d.stall
        assert d.kind == HazardKind.NONE
        assert d.producer is None

    def test_store_reads_data_and_base(self):
        assert detect_hazard(store(1, 9), add(1, 2, 3), None, None, False).stall
        assert detect_hazard(store(9, 1), add(1, 2, 3), None, None, False).stall

    def test_branch_reads_both_operands(self):
        assert detect_hazard(beq(1, 0), None, load(1, 2), None, False).stall
        assert detect_hazard(beq(0, 1), None, None, add(1, 2, 3), False).stall

    def test_load_reads_only_base(self):
        # rs2 is not an operand of LOAD even if set
        consumer = Instruction(Opcode.LOAD, rd=4, rs1=5, rs2=1)
        assert not detect_hazard(consumer, add(1, 2, 3), None, None, False).stall
        assert detect_hazard(load(4, 1), add(1, 2, 3), None, None, False).stall


class TestForwardingOn:
    """With forwarding only the load-use case stalls."""

    def test_alu_result_forwarded(self):
        d = detect_hazard(add(4, 1, 5), add(1, 2, 3), None, None, True)
        assert not d.stall

    def test_load_use_stalls(self):
        producer = load(1, 2)
        d = detect_hazard(add(4, 1, 5), producer, None, None, True)
        assert d.stall
        assert d.kind == HazardKind.RAW
        assert d.producer is producer

    @pytest.mark.parametrize("consumer", [
        add(4, 1, 5), Instruction(Opcode.SUB, rd=4, rs1=5, rs2=1), beq(1, 0),
        Instruction(Opcode.BNE, rs1=0, rs2=1, imm=2), store(1, 0), load(4, 1),
    ])
    def test_load_use_for_every_consumer(self, consumer):
        assert detect_hazard(consumer, load(1, 2), None, None, True).stall

    def test_load_in_mem_is_forwarded(self):
        assert not detect_hazard(add(4, 1, 5), None, load(1, 2), None, True).stall

    def test_load_in_ex_without_dependency(self):
        assert not detect_hazard(add(4, 6, 5), load(1, 2), None, None, True).stall


class TestNonParticipants:
    """Bubbles, NOP and HALT never create hazards."""

    @pytest.mark.parametrize("forwarding", [True, False])
    def test_empty_id_stage(self, forwarding):
        assert not detect_hazard(None, load(1, 2), add(1, 2, 3), None, forwarding).stall

    @pytest.mark.parametrize("forwarding", [True, False])
    def test_halt_and_nop_are_not_producers(self, forwarding):
        assert not detect_hazard(add(4, 0, 0), HALT, NOP, None, forwarding).stall

    def test_halt_and_nop_are_not_consumers(self):
        assert not detect_hazard(HALT, add(0, 1, 2), None, None, False).stall
        assert not detect_hazard(NOP, add(0, 1, 2), None, None, False).stall

    def test_producer_without_destination(self):
        no_dest = Instruction(Opcode.ADD, rd=None, rs1=2, rs2=3)
        assert not detect_hazard(add(4, 0, 0), no_dest, None, None, False).stall

    def test_store_is_not_a_producer(self):
        assert not detect_hazard(add(4, 1, 2), store(1, 2), None, None, False).stall
