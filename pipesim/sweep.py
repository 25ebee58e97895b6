#!/usr/bin/env python3
"""
PipeSim Predictor Sweep

Runs one trace under every branch predictor with operand forwarding ON and
OFF, writes one timeline CSV per combination and prints a comparison report.

Usage:
    pipesim-sweep -t traces/branch_demo.trace          # all combinations
    pipesim-sweep --pred 2bit --fwd on                 # one combination
    pipesim-sweep --list                               # list predictor keys
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .config import SimConfig
from .errors import PipeSimError
from .metrics import Metrics
from .parser import TraceLoader
from .predictors import PREDICTORS, get_predictor_names, make_predictor
from .simulator import Simulator


@dataclass
class SweepResult:
    """Result of a single predictor/forwarding combination."""
    predictor_key: str
    predictor_name: str
    forwarding: bool
    halted: bool
    metrics: Metrics
    output_path: str


def output_name(trace_path: str, predictor_key: str, forwarding: bool) -> str:
    """Build <trace>__operand_fw_<on|off>__predictor_<slug>.csv"""
    base = Path(trace_path).stem
    ftag = "operand_fw_on" if forwarding else "operand_fw_off"
    slug = PREDICTORS[predictor_key].slug
    return f"{base}__{ftag}__predictor_{slug}.csv"


class SweepRunner:
    """Runs every predictor/forwarding combination over one trace."""

    def __init__(self, trace_path: str, data_dir: Path, max_cycles: int = 2000,
                 verbose: bool = False):
        self.trace_path = trace_path
        self.data_dir = Path(data_dir)
        self.max_cycles = max_cycles
        self.verbose = verbose
        self.results: list[SweepResult] = []
        self._program = None

    def log(self, message: str, force: bool = False):
        """Print message if verbose or forced."""
        if self.verbose or force:
            print(message)

    def combinations(self, predictor: Optional[str] = None,
                     forwarding: Optional[bool] = None) -> list[tuple[str, bool]]:
        """List (predictor_key, forwarding) pairs to run."""
        keys = [predictor] if predictor else get_predictor_names()
        modes = [forwarding] if forwarding is not None else [True, False]
        return [(key, fwd) for key in keys for fwd in modes]

    def run_one(self, predictor_key: str, forwarding: bool) -> SweepResult:
        """Run a single combination with a fresh predictor."""
        if self._program is None:
            self._program = TraceLoader().parse_file(self.trace_path)

        out = self.data_dir / output_name(self.trace_path, predictor_key, forwarding)
        config = SimConfig(
            trace=self.trace_path,
            forwarding=forwarding,
            predictor=predictor_key,
            max_cycles=self.max_cycles,
            output=str(out),
            format="csv",
        )
        predictor = make_predictor(predictor_key)

        self.log(
            f"-> Running | Forwarding: {'ON' if forwarding else 'OFF'}"
            f" | Predictor: {predictor_key} | Trace: {self.trace_path}",
            force=True,
        )
        result = Simulator(config).run(self._program, predictor)
        self.log(f"   CSV: {out}", force=True)
        self.log(f"   {result.summary()}")

        return SweepResult(
            predictor_key=predictor_key,
            predictor_name=result.predictor_name,
            forwarding=forwarding,
            halted=result.halted,
            metrics=result.metrics,
            output_path=str(out),
        )

    def run_all(self, predictor: Optional[str] = None,
                forwarding: Optional[bool] = None) -> list[SweepResult]:
        """Run all combinations (or the selected subset)."""
        combos = self.combinations(predictor, forwarding)

        print(f"\nRunning {len(combos)} configurations...")
        print("=" * 60)

        self.results = []
        for key, fwd in combos:
            self.results.append(self.run_one(key, fwd))

        return self.results

    def generate_report(self) -> str:
        """Generate comparison report."""
        lines = []
        lines.append("")
        lines.append("=" * 78)
        lines.append("PipeSim Predictor Sweep Report")
        lines.append(f"Trace: {self.trace_path}")
        lines.append(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append("=" * 78)
        lines.append("")

        lines.append("-" * 78)
        lines.append(
            f"{'Predictor':<24} {'Fwd':<4} {'Cycles':>7} {'Retired':>8} {'CPI':>7}"
            f" {'RAW':>5} {'CTRL':>5} {'BP Acc':>8}"
        )
        lines.append("-" * 78)

        for r in self.results:
            m = r.metrics
            fwd = "ON" if r.forwarding else "OFF"
            acc = f"{m.bp_accuracy_pct():.1f}%" if m.bp_predictions else "n/a"
            lines.append(
                f"{r.predictor_name:<24} {fwd:<4} {m.cycles:>7} {m.retired:>8}"
                f" {m.cpi():>7.3f} {m.stalls.raw:>5} {m.stalls.control:>5} {acc:>8}"
            )

        lines.append("-" * 78)
        lines.append("")

        unhalted = [r for r in self.results if not r.halted]
        if unhalted:
            lines.append(f"NOTE: {len(unhalted)} run(s) stopped at the {self.max_cycles}-cycle ceiling")
            lines.append("")

        if self.results:
            best = min(self.results, key=lambda r: (r.metrics.cpi() or float('inf')))
            lines.append(
                f"Best CPI: {best.metrics.cpi():.3f} ({best.predictor_name},"
                f" forwarding {'ON' if best.forwarding else 'OFF'})"
            )
        lines.append("=" * 78)

        return "\n".join(lines)

    def save_report(self, report: str, report_file: Path = None) -> Path:
        """Save report to file."""
        report_file = Path(report_file or self.data_dir / "sweep_report.txt")
        report_file.parent.mkdir(parents=True, exist_ok=True)

        with open(report_file, 'w') as f:
            f.write(report)

        print(f"\nReport saved to: {report_file}")
        return report_file


def parse_forwarding(value: str) -> bool:
    value = value.strip().lower()
    if value not in ("on", "off"):
        raise argparse.ArgumentTypeError("--fwd must be on|off")
    return value == "on"


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(
        description="PipeSim predictor/forwarding sweep"
    )
    parser.add_argument(
        "-t", "--trace",
        type=str,
        default="traces/branch_demo.trace",
        help="Trace to simulate"
    )
    parser.add_argument(
        "--pred",
        type=str,
        help="Run only this predictor key"
    )
    parser.add_argument(
        "--fwd",
        type=parse_forwarding,
        help="Run only with forwarding on|off"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Directory for timeline CSVs and the report"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=2000,
        help="Cycle ceiling per run"
    )
    parser.add_argument(
        "--save-report",
        action="store_true",
        help="Also write the report to <data-dir>/sweep_report.txt"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List predictor keys and exit"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)

    if args.list:
        for key in get_predictor_names():
            print(key)
        return 0

    if args.pred and args.pred.lower() not in PREDICTORS:
        print(f"Error: Unknown predictor: {args.pred} (use --list)", file=sys.stderr)
        return 1

    runner = SweepRunner(args.trace, Path(args.data_dir), args.max_cycles, verbose=args.verbose)

    try:
        results = runner.run_all(
            predictor=args.pred.lower() if args.pred else None,
            forwarding=args.fwd,
        )
    except PipeSimError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not results:
        return 1

    report = runner.generate_report()
    print(report)

    if args.save_report:
        runner.save_report(report)

    return 0


if __name__ == "__main__":
    sys.exit(main())
