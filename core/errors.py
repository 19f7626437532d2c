# app/core/errors.py
"""
Exceptions raised by the configuration and marks services.
"""
from __future__ import annotations
from typing import List


class ConfigurationError(ValueError):
    """Course configuration failed save-time validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Configuration Error:\n\n" + "\n".join(self.errors))


class ConcurrentEditError(RuntimeError):
    """The stored course moved on since the draft was loaded."""

    def __init__(self, course_id: str, expected: int, actual: int):
        self.course_id = course_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Course {course_id} was modified by someone else "
            f"(loaded version {expected}, now {actual}). Reload before saving."
        )
