#!/usr/bin/env python3
"""
PipeSim - Command Line Interface

Usage:
    python3 -m pipesim --trace traces/sample.trace
    python3 -m pipesim -t traces/branch_demo.trace --predictor 2bit --no-forwarding
    python3 -m pipesim --config runs/demo.yaml -v
"""

import argparse
import sys
from typing import List

from . import __version__
from .config import SimConfig, load_config
from .errors import PipeSimError
from .predictors import PREDICTORS, get_predictor_names
from .simulator import Simulator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipesim",
        description="PipeSim 5-stage pipeline simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Predictors:
  static_nt | static_t | 1bit | 2bit | tournament

Examples:
  %(prog)s --trace traces/sample.trace --out data/timeline.csv
  %(prog)s -t traces/branch_demo.trace --predictor tournament
  %(prog)s -t traces/load_use.trace --no-forwarding --format jsonl --out data/lu.jsonl
        """,
    )

    parser.add_argument(
        "-t",
        "--trace",
        type=str,
        help="Input instruction trace (default: traces/sample.trace)",
    )

    parser.add_argument(
        "-o",
        "--out",
        type=str,
        help="Timeline output file (default: data/timeline.csv)",
    )

    parser.add_argument(
        "--format",
        choices=["csv", "jsonl"],
        help="Timeline format. If not specified, inferred from the output suffix.",
    )

    parser.add_argument(
        "-p",
        "--predictor",
        type=str,
        help="Branch predictor key (default: static_nt)",
    )

    parser.add_argument(
        "--no-forwarding",
        dest="forwarding",
        action="store_false",
        default=None,
        help="Disable operand forwarding",
    )

    parser.add_argument(
        "--max-cycles",
        type=int,
        help="Cycle ceiling (default: 2000)",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=str,
        help="YAML run file; command-line flags override its values",
    )

    parser.add_argument(
        "--list-predictors",
        action="store_true",
        help="List predictor keys and exit",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def main(argv: List[str] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.list_predictors:
        for key in get_predictor_names():
            print(f"  {key:<12} {PREDICTORS[key].label}")
        return 0

    if args.max_cycles is not None and args.max_cycles <= 0:
        print("Error: --max-cycles must be positive", file=sys.stderr)
        return 1

    try:
        config = load_config(args.config) if args.config else SimConfig()
        config = config.merged(
            trace=args.trace,
            output=args.out,
            format=args.format,
            predictor=args.predictor,
            forwarding=args.forwarding,
            max_cycles=args.max_cycles,
        )

        sim = Simulator(config, verbose=args.verbose)
        program = sim.load()
        print(f"Loaded {len(program)} instructions")

        result = sim.run(program)
        print(result.summary())
        if result.output_path:
            print(f"Timeline: {result.output_path}")

    except PipeSimError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
