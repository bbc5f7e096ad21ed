"""
Numeric bounds checking for generated fields.

Generated values are strings ("86.4", "4.5", "92%"), so values are parsed
leniently before being compared. Out-of-bounds values are reported, never
rewritten: the record keeps whatever the merge produced.

Usage:
    from catalog_enricher.validators.bounds_validator import check_bounds

    check_bounds("user_rating", "4.6")   # None (ok)
    check_bounds("user_rating", "7")     # "user_rating=7 outside 0-5"

Design:
    - Bounds are inclusive on both ends
    - Entity-declared ranges override FIELD_BOUNDS
    - Fields with no bounds are passed through
    - Empty values are allowed
"""

import logging
import re
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float]

# Bounds are (min, max) inclusive
FIELD_BOUNDS: Dict[str, Bounds] = {
    # Ratings
    "user_rating": (0, 5),
    "learning_curve_rating": (1, 5),
    "community_engagement_score": (1, 10),
    # Scores
    "transparency_score": (0, 100),
    "f1_score": (0, 1),
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def parse_numeric(value: Optional[str]) -> Optional[float]:
    """
    Parse a generated numeric string.

    Accepts thousands separators, a percent sign and trailing units
    ("14 days", "4.5/5"), using the leading number. Returns None when the
    value does not start with a number (e.g. "High").
    """
    if value is None:
        return None
    text = str(value).strip().replace(",", "")
    match = _NUMBER_RE.match(text)
    if match is None:
        return None
    return float(match.group(0))


def get_bounds(field_name: str, overrides: Optional[Dict[str, Bounds]] = None) -> Optional[Bounds]:
    """
    Get bounds for a field.

    Args:
        field_name: Field name to look up
        overrides: Entity-declared ranges, checked first

    Returns:
        (min, max) tuple if the field has bounds, None otherwise
    """
    if overrides and field_name in overrides:
        low, high = overrides[field_name]
        return (float(low), float(high))
    return FIELD_BOUNDS.get(field_name)


def check_bounds(
    field_name: str,
    value: Optional[str],
    overrides: Optional[Dict[str, Bounds]] = None,
) -> Optional[str]:
    """
    Check one value against its bounds.

    Returns:
        A description of the problem, or None when the value is acceptable
    """
    if value is None or str(value).strip() == "":
        return None

    bounds = get_bounds(field_name, overrides)
    if bounds is None:
        return None

    number = parse_numeric(value)
    if number is None:
        return f"{field_name}={value!r} is not numeric"

    min_val, max_val = bounds
    if number < min_val or number > max_val:
        return f"{field_name}={value} outside {min_val:g}-{max_val:g}"
    return None
