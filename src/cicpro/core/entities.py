"""Core entity definitions for the projection.

This module contains the placement codes and age bounds that are used
across the codebase, placed here to avoid circular imports.
"""

from typing import Tuple


# Placement codes reported in the looked-after children returns.
PLACEMENTS: Tuple[str, ...] = (
    "Q2", "K2", "Q1", "R2", "P2", "H5", "R5", "R1", "A6", "P1", "Z1",
    "S1", "K1", "A4", "T4", "M3", "A5", "A3", "R3", "M2", "T0",
)

# Sentinel used when no historical placement can be matched
UNKNOWN_PLACEMENT = "UNKNOWN"

# Children leave care on their 18th birthday
ADULT_AGE = 18

# Admission ages modelled (0-17 inclusive)
ADMISSION_AGES: Tuple[int, ...] = tuple(range(ADULT_AGE))

# Ages reported in summaries (0-18 inclusive)
REPORT_AGES: Tuple[int, ...] = tuple(range(ADULT_AGE + 1))

DAYS_PER_YEAR = 365

# Legacy codes folded into their current equivalents
PLACEMENT_ALIASES = {
    "U1": "Q1", "U2": "Q1", "U3": "Q1",
    "U4": "Q2", "U5": "Q2", "U6": "Q2",
}


def normalise_placement(code: str) -> str:
    """Map a raw placement code onto the modelled set.

    Args:
        code: Placement code as it appears in the episode records.

    Returns:
        The canonical placement code.
    """
    code = code.strip()
    return PLACEMENT_ALIASES.get(code, code)


def clamp_age(age: int) -> int:
    """Clamp an admission age into the modelled range.

    Raises:
        ValueError: If the age is negative.
    """
    if age < 0:
        raise ValueError(f"Admission age must be non-negative, got {age}")
    return min(age, ADULT_AGE - 1)
