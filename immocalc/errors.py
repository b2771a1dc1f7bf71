"""
Engine error types.

Validation and degenerate-math errors are raised where they are detected and
propagate to the caller. IRR failures are not raised; see IRRResult.
"""

from typing import Optional


class InvalidInput(ValueError):
    """A required value is missing, non-numeric, or out of domain."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ComputationDegenerate(ArithmeticError):
    """The result is mathematically undefined for otherwise valid inputs."""
