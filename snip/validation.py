"""Input checks shared by the command handlers."""

from __future__ import annotations

import re

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


class ValidationError(ValueError):
    """Raised when a field does not pass validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field} {message}")
        self.field = field
        self.message = message


class Validator:
    """Validates and normalises user input."""

    def validate_note(self, title: str) -> None:
        """Raise ValidationError when the title is empty or only whitespace."""
        if not title.strip():
            raise ValidationError("title", "is required")

    def check_string(self, s: str) -> str | None:
        """Return the string, or None when it is empty."""
        return s or None

    def check_int(self, s: str) -> int:
        """Parse a decimal 64-bit integer, returning 0 when it is not one."""
        if not _INT_PATTERN.fullmatch(s):
            return 0
        number = int(s)
        if not _INT_MIN <= number <= _INT_MAX:
            return 0
        return number