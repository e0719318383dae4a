"""Utility functions for common operations across the application."""

import re
import sys

_LEADING_INT = re.compile(r"^\s*([+-]?)(\d+)")
# int() refuses digit strings past sys.get_int_max_str_digits(); anything this long saturates
_MAX_INT_DIGITS = len(str(sys.maxsize))


def normalize_email(email: str) -> str:
    """Convert email to lowercase and strip whitespace."""
    return email.strip().lower()


def parse_int(value: str | int | None) -> int | None:
    """Parse the leading integer of a query-string value, saturating at +/-sys.maxsize.

    "3" -> 3, "12abc" -> 12, "2.9" -> 2, "abc"/""/None -> None.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(value)
    if not match:
        return None
    sign, digits = match.groups()
    digits = digits.lstrip("0") or "0"
    number = sys.maxsize if len(digits) > _MAX_INT_DIGITS else min(int(digits), sys.maxsize)
    return -number if sign == "-" else number


def escape_like(term: str) -> str:
    """Escape LIKE wildcards (%, _, \\) so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
