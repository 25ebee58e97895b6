"""
Run metrics for the pipeline engine.
"""

from dataclasses import dataclass, field, asdict


@dataclass
class StallBreakdown:
    """
    Stall cycles by cause.

    Attributes:
        raw: Read-after-write data hazard stalls
        control: Branch misprediction flush cycles
    """

    raw: int = 0
    control: int = 0

    def total(self) -> int:
        return self.raw + self.control


@dataclass
class Metrics:
    """
    Cumulative counters for one simulation run.

    Attributes:
        cycles: Cycles simulated
        retired: Instructions that reached WB, excluding NOP and HALT
        bp_predictions: Branches resolved against a prediction
        bp_mispredictions: Resolved branches whose prediction was wrong
        stalls: Stall cycles by cause
    """

    cycles: int = 0
    retired: int = 0
    bp_predictions: int = 0
    bp_mispredictions: int = 0
    stalls: StallBreakdown = field(default_factory=StallBreakdown)

    def cpi(self) -> float:
        """Cycles per retired instruction (0.0 before anything retires)."""
        if self.retired == 0:
            return 0.0
        return self.cycles / self.retired

    def bp_accuracy_pct(self) -> float:
        """Branch prediction accuracy as a percentage."""
        if self.bp_predictions == 0:
            return 0.0
        correct = self.bp_predictions - self.bp_mispredictions
        return 100.0 * correct / self.bp_predictions

    def check_invariants(self) -> None:
        assert self.cycles >= self.retired, "retired more instructions than cycles"
        assert self.stalls.total() <= self.cycles, "more stall cycles than cycles"
        assert self.bp_mispredictions <= self.bp_predictions

    def to_dict(self) -> dict:
        data = asdict(self)
        data['stalls']['total'] = self.stalls.total()
        data['cpi'] = round(self.cpi(), 2)
        data['bp_accuracy_pct'] = round(self.bp_accuracy_pct(), 2)
        return data

    def summary(self) -> str:
        return (
            f"Cycles={self.cycles} Retired={self.retired} CPI={self.cpi():.3f}"
            f" StallsRAW={self.stalls.raw} StallsCTRL={self.stalls.control}"
            f" TotalStalls={self.stalls.total()}"
        )
