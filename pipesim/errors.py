"""
Custom exception types for the pipeline simulator.
"""


class PipeSimError(Exception):
    """Base exception for simulator errors."""

    def __init__(self, message: str, line_num: int = None, line_text: str = None):
        self.line_num = line_num
        self.line_text = line_text
        if line_num is not None:
            if line_text:
                message = f"Line {line_num}: {message}\n  {line_text}"
            else:
                message = f"Line {line_num}: {message}"
        super().__init__(message)


class ParseError(PipeSimError):
    """Exception raised for malformed trace lines."""

    pass


class TraceError(PipeSimError):
    """Exception raised when a trace file cannot be read."""

    pass


class ConfigError(PipeSimError):
    """Exception raised for invalid run configuration."""

    pass
