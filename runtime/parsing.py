"""Shared parsing helpers for simple runtime/config coercions."""

import logging
import math


def parse_float(value, default, key_name, min_value=None):
    try:
        result = float(value)
        if not math.isfinite(result):
            raise ValueError("not finite")
        if min_value is not None and result < min_value:
            raise ValueError("below minimum")
        return result
    except (TypeError, ValueError):
        logging.warning("Invalid %s='%s'. Using default %s.", key_name, value, default)
        return default


def parse_int(value, default, key_name, min_value=None):
    try:
        if isinstance(value, bool):
            raise TypeError("bool is not an int setting")
        result = int(value)
        if min_value is not None and result < min_value:
            raise ValueError("below minimum")
        return result
    except (TypeError, ValueError):
        logging.warning("Invalid %s='%s'. Using default %s.", key_name, value, default)
        return default


def is_finite_number(value):
    """True for int/float values that are finite; booleans do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
