"""
Pipeline timeline output and reading.

Writes per-cycle stage records as CSV ("cycle,IF,ID,EX,MEM,WB") or JSON
Lines, and loads either format back for cycle-by-cycle access and
label-derived statistics.
"""

import csv
import json
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import TraceError
from .pipeline import BubbleKind, CycleRecord, StageLatch


STAGE_NAMES = ['IF', 'ID', 'EX', 'MEM', 'WB']
CSV_HEADER = ['cycle'] + STAGE_NAMES
TIMELINE_FORMATS = ('csv', 'jsonl')
BUBBLE_LABELS = {kind.value for kind in BubbleKind}


def latch_to_dict(latch: StageLatch) -> dict:
    """Serialize one stage slot for JSON output."""
    instr = latch.instr
    return {
        'valid': latch.valid,
        'label': latch.label,
        'op': instr.op.value if instr else None,
        'uid': instr.uid if instr else None,
        'pc': instr.pc if instr else None,
    }


def record_to_dict(record: CycleRecord) -> dict:
    """Serialize a cycle record for JSON output."""
    data = {'cycle': record.cycle}
    for name, latch in record.stages.items():
        data[name.lower()] = latch_to_dict(latch)
    data['hazard'] = {
        'stall_raw': record.raw_stall,
        'stall_ctrl': record.control_stall,
        'mispredict': record.mispredict,
    }
    return data


def record_to_row(record: CycleRecord) -> List[str]:
    return [str(record.cycle)] + record.labels()


def resolve_format(path: str, fmt: Optional[str] = None) -> str:
    """Pick a timeline format from an explicit name or the file suffix."""
    if fmt:
        fmt = fmt.lower()
        if fmt not in TIMELINE_FORMATS:
            raise ValueError(f"Unknown timeline format: {fmt}")
        return fmt
    suffix = Path(path).suffix.lower()
    if suffix in ('.jsonl', '.json'):
        return 'jsonl'
    return 'csv'


def write_csv(records: Iterable[CycleRecord], path: str) -> None:
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for record in records:
            writer.writerow(record_to_row(record))


def write_jsonl(records: Iterable[CycleRecord], path: str) -> None:
    with open(path, 'w') as f:
        for record in records:
            f.write(json.dumps(record_to_dict(record)) + '\n')


def write_timeline(records: Iterable[CycleRecord], path: str, fmt: Optional[str] = None) -> str:
    """
    Write a timeline file, creating parent directories as needed.

    Args:
        records: Cycle records in order
        path: Output file path
        fmt: 'csv' or 'jsonl'; inferred from the suffix when None

    Returns:
        The format that was written
    """
    fmt = resolve_format(path, fmt)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    if fmt == 'jsonl':
        write_jsonl(records, path)
    else:
        write_csv(records, path)
    return fmt


class TimelineReader:
    """
    Reader for timeline files written by write_timeline.

    Each cycle is held as a flat dict: {'cycle': n, 'IF': label, ...}.
    """

    def __init__(self, filepath: str):
        """
        Load a CSV or JSONL timeline.

        Args:
            filepath: Path to the timeline file

        Raises:
            TraceError: If the file is missing or malformed
        """
        self._cycles: list[dict] = []
        self._filepath = filepath
        try:
            if resolve_format(filepath) == 'jsonl':
                self._load_jsonl(filepath)
            else:
                self._load_csv(filepath)
        except OSError as e:
            raise TraceError(f"Could not open timeline: {filepath} ({e.strerror})")

    def _load_csv(self, filepath: str) -> None:
        with open(filepath, 'r', newline='') as f:
            reader = csv.DictReader(f)
            missing = [h for h in CSV_HEADER if h not in (reader.fieldnames or [])]
            if missing:
                raise TraceError(f"Timeline header missing columns: {', '.join(missing)}")
            for line_num, row in enumerate(reader, start=2):
                try:
                    cycle = int(row['cycle'])
                except (TypeError, ValueError):
                    raise TraceError("Invalid cycle number", line_num)
                entry = {'cycle': cycle}
                for name in STAGE_NAMES:
                    entry[name] = (row.get(name) or BubbleKind.EMPTY.value).strip()
                self._cycles.append(entry)

    def _load_jsonl(self, filepath: str) -> None:
        with open(filepath, 'r') as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise TraceError(f"Invalid JSON: {e.msg}", line_num)
                entry = {'cycle': data.get('cycle', len(self._cycles) + 1)}
                for name in STAGE_NAMES:
                    stage = data.get(name.lower()) or {}
                    entry[name] = stage.get('label', BubbleKind.EMPTY.value)
                self._cycles.append(entry)

    def get_cycle(self, n: int) -> Optional[dict]:
        """
        Get the stage labels at cycle n.

        Args:
            n: Cycle number as recorded in the file

        Returns:
            Cycle dict, or None if not present
        """
        for cycle_data in self._cycles:
            if cycle_data['cycle'] == n:
                return cycle_data
        return None

    def get_range(self, start: int, end: int) -> list[dict]:
        """Get cycles numbered in [start, end)."""
        return [c for c in self._cycles if start <= c['cycle'] < end]

    @property
    def total_cycles(self) -> int:
        return len(self._cycles)

    @property
    def cycles(self) -> list[dict]:
        return list(self._cycles)

    def get_stats(self) -> dict:
        """
        Compute execution statistics from the labels alone.

        Returns:
            Dict containing total_cycles, instructions_retired, raw_stalls,
            control_stalls, total_stalls and cpi
        """
        total_cycles = len(self._cycles)
        retired = 0
        raw_stalls = 0
        control_stalls = 0

        for cycle_data in self._cycles:
            wb = cycle_data['WB']
            if wb not in BUBBLE_LABELS:
                if not wb.startswith('NOP') and not wb.startswith('HALT'):
                    retired += 1

            # A stall bubble enters EX (shown in the ID column) once per stall cycle
            id_label = cycle_data['ID']
            if id_label == BubbleKind.STALL_RAW.value:
                raw_stalls += 1
            elif id_label == BubbleKind.STALL_CTRL.value:
                control_stalls += 1

        cpi = total_cycles / retired if retired > 0 else 0.0

        return {
            'total_cycles': total_cycles,
            'instructions_retired': retired,
            'raw_stalls': raw_stalls,
            'control_stalls': control_stalls,
            'total_stalls': raw_stalls + control_stalls,
            'cpi': round(cpi, 2),
        }
