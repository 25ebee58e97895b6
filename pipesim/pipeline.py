"""
Five-stage in-order pipeline engine (IF/ID/EX/MEM/WB).

The engine owns the four inter-stage latches, the program counter and the
run metrics. Each call to step() advances one clock cycle in a fixed order:

    1. retire whatever sits in MEM/WB
    2. hazard check against the pre-shift latches
    3. shift latches toward WB
    4. arbitrate control flush / RAW stall / normal advance (with prediction)
    5. fetch
    6. resolve the branch that was in EX, redirecting on a misprediction
    7. commit

The branch predictor is borrowed from the caller and must outlive the
engine; the engine never resets or replaces it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .hazard import HazardDecision, detect_hazard
from .instructions import Instruction, Opcode
from .metrics import Metrics
from .predictors import BranchPredictor


# Bubbles inserted into EX after a misprediction
CONTROL_FLUSH_CYCLES = 2

# Ground-truth rule for branch outcomes: instruction -> taken
BranchOracle = Callable[[Instruction], bool]


def negative_offset_taken(instr: Instruction) -> bool:
    """Default outcome rule: a branch is taken iff its displacement is negative."""
    return instr.imm < 0


class BubbleKind(Enum):
    """Why a latch holds no instruction."""

    EMPTY = "-"
    STALL_RAW = "STALL_RAW"
    STALL_CTRL = "STALL_CTRL"
    FLUSH = "FLUSH"  # wrong-path fetch squashed on a misprediction


@dataclass(frozen=True)
class StageLatch:
    """
    One pipeline register. Holds an instruction, or a bubble of some kind.

    Attributes:
        instr: Resident instruction (None for a bubble)
        bubble: Bubble cause, meaningful only when instr is None
        seq: Fetch sequence number of this dynamic instance (-1 for a bubble)
    """

    instr: Optional[Instruction] = None
    bubble: BubbleKind = BubbleKind.EMPTY
    seq: int = -1

    @property
    def valid(self) -> bool:
        return self.instr is not None

    @property
    def label(self) -> str:
        if self.instr is None:
            return self.bubble.value
        return self.instr.label

    def holds(self, *ops: Opcode) -> bool:
        return self.instr is not None and self.instr.op in ops

    @classmethod
    def of(cls, instr: Instruction, seq: int) -> "StageLatch":
        return cls(instr=instr, seq=seq)


EMPTY_LATCH = StageLatch()
RAW_BUBBLE = StageLatch(bubble=BubbleKind.STALL_RAW)
CTRL_BUBBLE = StageLatch(bubble=BubbleKind.STALL_CTRL)
FLUSH_BUBBLE = StageLatch(bubble=BubbleKind.FLUSH)


@dataclass(frozen=True)
class CycleRecord:
    """
    Snapshot of one cycle after commit.

    IF is the instruction fetched this cycle, ID the one decoded, EX the one
    executed, MEM the one accessing memory, and WB the one retired at the
    start of the cycle.
    """

    cycle: int
    if_stage: StageLatch
    id_stage: StageLatch
    ex_stage: StageLatch
    mem_stage: StageLatch
    wb_stage: StageLatch
    raw_stall: bool = False
    control_stall: bool = False
    mispredict: bool = False

    @property
    def stages(self) -> Dict[str, StageLatch]:
        return {
            'IF': self.if_stage,
            'ID': self.id_stage,
            'EX': self.ex_stage,
            'MEM': self.mem_stage,
            'WB': self.wb_stage,
        }

    def labels(self) -> List[str]:
        return [latch.label for latch in self.stages.values()]


class Pipeline:
    """
    Cycle-level model of the classic 5-stage pipeline.

    Args:
        program: Instructions in program order (owned by the caller)
        forwarding: Enable EX/MEM and MEM/WB operand bypassing
        predictor: Optional borrowed branch predictor
        oracle: Rule deciding each branch's real outcome
    """

    def __init__(
        self,
        program: Sequence[Instruction],
        forwarding: bool = True,
        predictor: Optional[BranchPredictor] = None,
        oracle: BranchOracle = negative_offset_taken,
    ):
        self.program = program
        self.forwarding = forwarding
        self.predictor = predictor
        self.oracle = oracle

        self.pc = 0
        self.cycle = 0
        self.halted = False
        self.metrics = Metrics()

        self.if_id = EMPTY_LATCH
        self.id_ex = EMPTY_LATCH
        self.ex_mem = EMPTY_LATCH
        self.mem_wb = EMPTY_LATCH

        self.control_flush_remaining = 0
        self.last_record: Optional[CycleRecord] = None
        self.last_hazard: HazardDecision = HazardDecision()

        # Load-time uids repeat when a static branch is fetched again, so
        # guesses are keyed by fetch sequence number instead
        self._fetch_seq = 0
        self._predicted: Dict[int, bool] = {}

    def _fetch_in_bounds(self, address: int) -> bool:
        return 0 <= address < len(self.program)

    def step(self) -> CycleRecord:
        """Advance the pipeline by one clock cycle."""
        m = self.metrics

        # 1. Retire
        retiring = self.mem_wb
        if retiring.valid:
            if retiring.instr.op == Opcode.HALT:
                self.halted = True
            elif retiring.instr.op != Opcode.NOP:
                m.retired += 1

        # 2. Hazard check against this cycle's latches
        hazard = detect_hazard(
            self.if_id.instr,
            self.id_ex.instr,
            self.ex_mem.instr,
            self.mem_wb.instr,
            self.forwarding,
        )
        self.last_hazard = hazard

        # 3. Shift toward WB; IF/ID holds until the fetch decision
        next_wb = self.ex_mem
        next_mem = self.id_ex
        next_ex = self.if_id
        next_if_id = self.if_id

        # 4. Fetch / stall / flush arbitration
        fetch_enabled = True
        fetch_address = self.pc
        raw_stall = False
        control_stall = False

        if self.control_flush_remaining > 0:
            next_ex = CTRL_BUBBLE
            fetch_enabled = False
            self.control_flush_remaining -= 1
            m.stalls.control += 1
            control_stall = True
        elif hazard.stall:
            next_ex = RAW_BUBBLE
            fetch_enabled = False
            m.stalls.raw += 1
            raw_stall = True
        else:
            decoded = self.if_id.instr
            if decoded is not None and decoded.is_branch and self.predictor is not None:
                guess = self.predictor.predict(decoded.pc)
                self._predicted[self.if_id.seq] = guess
                fetch_address = decoded.branch_target if guess else decoded.fall_through

        # 5. Fetch
        if fetch_enabled:
            if not self.halted and self._fetch_in_bounds(fetch_address):
                next_if_id = StageLatch.of(self.program[fetch_address], self._fetch_seq)
                self._fetch_seq += 1
                self.pc = fetch_address + 1
            else:
                # Past the end (or before the start): stay there and drain
                next_if_id = EMPTY_LATCH
                if not self.halted:
                    self.pc = fetch_address

        # 6. Resolve the branch executing in EX
        mispredict = False
        branch = self.id_ex.instr
        if branch is not None and branch.is_branch:
            taken = self.oracle(branch)
            guess = self._predicted.pop(self.id_ex.seq, False)
            m.bp_predictions += 1

            if guess != taken:
                mispredict = True
                m.bp_mispredictions += 1
                self.control_flush_remaining = CONTROL_FLUSH_CYCLES
                self.pc = branch.branch_target if taken else branch.fall_through

                # Squash what was just fetched along the wrong path
                next_if_id = FLUSH_BUBBLE

            if self.predictor is not None:
                self.predictor.update(branch.pc, taken)

        # 7. Commit
        self.mem_wb = next_wb
        self.ex_mem = next_mem
        self.id_ex = next_ex
        self.if_id = next_if_id

        self.cycle += 1
        m.cycles += 1
        m.check_invariants()

        self.last_record = CycleRecord(
            cycle=self.cycle,
            if_stage=self.if_id,
            id_stage=self.id_ex,
            ex_stage=self.ex_mem,
            mem_stage=self.mem_wb,
            wb_stage=retiring,
            raw_stall=raw_stall,
            control_stall=control_stall,
            mispredict=mispredict,
        )
        return self.last_record

    def run(
        self,
        max_cycles: int = 2000,
        on_cycle: Optional[Callable[[CycleRecord], None]] = None,
    ) -> List[CycleRecord]:
        """
        Step until halted or until the cycle ceiling is reached.

        Args:
            max_cycles: Cycle ceiling
            on_cycle: Called with each record right after its step

        Returns:
            One CycleRecord per simulated cycle
        """
        records = []
        while not self.halted and self.cycle < max_cycles:
            record = self.step()
            records.append(record)
            if on_cycle is not None:
                on_cycle(record)
        return records

    def pending_predictions(self) -> int:
        """Number of branches predicted but not yet resolved."""
        return len(self._predicted)
