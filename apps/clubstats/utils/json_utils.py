"""
Helpers for reading JSON array columns written by older clients.

Historical rows sometimes hold an array serialized as a string, or even a
string of a serialized string. These are decoded once at the read boundary.
"""

import json
import logging
from typing import Any, List

logger = logging.getLogger(__name__)

# Enough for "double-encoded" values plus one spare level
MAX_DECODE_DEPTH = 3


def coerce_to_array(value: Any, field_name: str = "value") -> List[Any]:
    """
    Normalize a stored value to a list.

    Args:
        value: A list, a JSON string encoding a list (possibly more than once), or None
        field_name: Used in the warning when the value cannot be decoded

    Returns:
        The decoded list, or [] when the value is missing or malformed
    """
    if value is None:
        return []

    current = value
    for _ in range(MAX_DECODE_DEPTH):
        if isinstance(current, (list, tuple)):
            return list(current)
        if not isinstance(current, (str, bytes)):
            break
        try:
            current = json.loads(current)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not decode {field_name} as JSON array: {e}")
            return []

    if isinstance(current, (list, tuple)):
        return list(current)

    logger.warning(
        f"Expected {field_name} to be an array, got {type(current).__name__}; using []"
    )
    return []
