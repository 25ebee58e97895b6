"""
Simulation driver.

Loads a trace, builds the predictor, steps the pipeline until it halts or
hits the cycle ceiling, and writes the timeline.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import SimConfig
from .instructions import Instruction
from .metrics import Metrics
from .parser import TraceLoader
from .pipeline import CycleRecord, Pipeline
from .predictors import BranchPredictor, make_predictor
from .timeline import write_timeline


@dataclass
class SimulationResult:
    """Outcome of one simulation run."""

    metrics: Metrics
    predictor_name: str
    forwarding: bool
    halted: bool
    records: List[CycleRecord] = field(default_factory=list)
    output_path: Optional[str] = None

    def summary(self) -> str:
        """One-line report of the run."""
        m = self.metrics
        return (
            f"Done. {m.summary()}"
            f" Forwarding={'ON' if self.forwarding else 'OFF'}"
            f" Predictor={self.predictor_name}"
            f" BP_Acc={m.bp_accuracy_pct():.2f}%"
            f" (Pred={m.bp_predictions}, Mispred={m.bp_mispredictions})"
        )


class Simulator:
    """
    Runs one configured simulation.

    A predictor may be injected to reuse or compare predictor state across
    runs; otherwise a fresh one is built from config.predictor.
    """

    def __init__(self, config: SimConfig = None, verbose: bool = False):
        """
        Initialize the simulator.

        Args:
            config: Run settings (defaults if None)
            verbose: If True, print per-cycle events
        """
        self.config = config or SimConfig()
        self.verbose = verbose
        self.loader = TraceLoader()
        self.program: List[Instruction] = []

    def log(self, message: str, force: bool = False) -> None:
        """Print message if verbose mode is enabled or forced."""
        if self.verbose or force:
            print(message)

    def load(self) -> List[Instruction]:
        """Load the configured trace."""
        self.program = self.loader.parse_file(self.config.trace)
        self.log(f"Parsed trace: {self.config.trace}")
        return self.program

    def run(
        self,
        program: Sequence[Instruction] = None,
        predictor: BranchPredictor = None,
    ) -> SimulationResult:
        """
        Run the pipeline to completion.

        Args:
            program: Program to run; loads config.trace when None
            predictor: Borrowed predictor; built from config when None

        Returns:
            SimulationResult with metrics and the per-cycle records
        """
        cfg = self.config
        if program is None:
            program = self.program or self.load()
        if predictor is None:
            predictor = make_predictor(cfg.predictor)

        pipe = Pipeline(program, forwarding=cfg.forwarding, predictor=predictor)
        self.log(
            f"Running: forwarding={'ON' if cfg.forwarding else 'OFF'}"
            f" predictor={predictor.name} max_cycles={cfg.max_cycles}"
        )

        on_cycle = (lambda record: self._log_cycle(record, pipe)) if self.verbose else None
        records = pipe.run(cfg.max_cycles, on_cycle=on_cycle)

        if pipe.halted:
            self.log(f"  HALT retired at cycle {pipe.cycle}")
        else:
            self.log(f"  Cycle ceiling reached ({cfg.max_cycles})")

        result = SimulationResult(
            metrics=pipe.metrics,
            predictor_name=predictor.name,
            forwarding=cfg.forwarding,
            halted=pipe.halted,
            records=records,
        )

        if cfg.output:
            write_timeline(records, cfg.output, cfg.format)
            result.output_path = cfg.output
            self.log(f"Timeline written to: {cfg.output}")

        return result

    def _log_cycle(self, record: CycleRecord, pipe: Pipeline) -> None:
        if record.raw_stall:
            producer = pipe.last_hazard.producer
            self.log(f"  [{record.cycle:4d}] RAW stall on {producer.label if producer else '?'}")
        if record.mispredict:
            self.log(f"  [{record.cycle:4d}] mispredict, redirect to pc={pipe.pc}")
