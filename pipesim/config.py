"""
Run configuration.

Parses and validates YAML run files describing one simulation: which trace
to load, forwarding, predictor, cycle ceiling and timeline output.

Example:

    trace: traces/branch_demo.trace
    forwarding: false
    predictor: tournament
    max_cycles: 500
    output: data/branch_demo.jsonl
    format: jsonl
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .timeline import TIMELINE_FORMATS


DEFAULT_MAX_CYCLES = 2000


@dataclass
class SimConfig:
    """
    Settings for one simulation run.

    Attributes:
        trace: Path to the instruction trace
        forwarding: Whether operand forwarding is enabled
        predictor: Predictor key (unknown keys fall back to static_nt)
        max_cycles: Cycle ceiling for programs that never halt
        output: Timeline output path (None to skip writing)
        format: Timeline format, 'csv' or 'jsonl' (None to infer from output)
    """

    trace: str = "traces/sample.trace"
    forwarding: bool = True
    predictor: str = "static_nt"
    max_cycles: int = DEFAULT_MAX_CYCLES
    output: Optional[str] = "data/timeline.csv"
    format: Optional[str] = None

    def merged(self, **overrides: Any) -> "SimConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


CONFIG_FIELDS = {f.name for f in fields(SimConfig)}


def parse_config(yaml_content: str, base: SimConfig = None) -> SimConfig:
    """
    Parse and validate a YAML run file.

    Args:
        yaml_content: Raw YAML string content
        base: Defaults for keys the file leaves out

    Returns:
        Validated SimConfig

    Raises:
        ConfigError: If the configuration is invalid
    """
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML mapping/dictionary")

    _validate_config(data)
    return replace(base or SimConfig(), **data)


def load_config(filepath: str, base: SimConfig = None) -> SimConfig:
    """Read and parse a YAML run file."""
    try:
        with open(filepath, 'r') as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Could not open config: {filepath} ({e.strerror})")
    return parse_config(content, base)


def _require_str(value: Any, field_path: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field_path}' must be a non-empty string")


def _validate_config(data: dict) -> None:
    """Validate key names and value types."""
    unknown = sorted(set(data) - CONFIG_FIELDS)
    if unknown:
        raise ConfigError(f"Unknown field '{unknown[0]}'")

    if 'trace' in data:
        _require_str(data['trace'], 'trace')

    if 'forwarding' in data and not isinstance(data['forwarding'], bool):
        raise ConfigError("'forwarding' must be true or false")

    if 'predictor' in data:
        _require_str(data['predictor'], 'predictor')

    if 'max_cycles' in data:
        value = data['max_cycles']
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError("'max_cycles' must be a positive integer")

    if 'output' in data and data['output'] is not None:
        _require_str(data['output'], 'output')

    if 'format' in data and data['format'] is not None:
        if data['format'] not in TIMELINE_FORMATS:
            raise ConfigError(
                f"'format' must be one of {', '.join(TIMELINE_FORMATS)}"
            )
