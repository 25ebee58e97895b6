"""
Register name parsing.

Accepts r-names (r0-r31), x-names (x0-x31) and bare register numbers.
"""

from .instructions import NUM_REGISTERS

# Build the name to number mapping
REGISTER_MAP = {}

for i in range(NUM_REGISTERS):
    REGISTER_MAP[f"r{i}"] = i
    REGISTER_MAP[f"x{i}"] = i
    REGISTER_MAP[str(i)] = i


def parse_register(name: str) -> int:
    """
    Parse a register name and return its number.

    Args:
        name: Register name (e.g., "r0", "X5", "12")

    Returns:
        Register number (0-31)

    Raises:
        ValueError: If the register name is invalid
    """
    name_lower = name.lower().strip()
    if name_lower in REGISTER_MAP:
        return REGISTER_MAP[name_lower]
    raise ValueError(f"Invalid register name: {name}")


def is_valid_register(name: str) -> bool:
    """Check if a string is a valid register name."""
    return name.lower().strip() in REGISTER_MAP


def get_register_name(num: int) -> str:
    """Get the canonical r-name for a register number."""
    if not 0 <= num < NUM_REGISTERS:
        raise ValueError(f"Invalid register number: {num}")
    return f"r{num}"
