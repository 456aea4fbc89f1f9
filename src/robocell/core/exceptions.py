"""
Custom exceptions for RoboCell.

All RoboCell exceptions inherit from RoboCellError for easy catching.
Kinematic reachability problems are reported as diagnostics on the
resolved solution and never raised.
"""

from typing import Any


class RoboCellError(Exception):
    """Base exception for all RoboCell errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(RoboCellError):
    """Raised when configuration is invalid or missing."""

    pass


class MechanismError(RoboCellError):
    """Raised when a mechanism or mechanical group definition is invalid."""

    def __init__(
        self,
        message: str,
        mechanism: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.mechanism = mechanism


class GeometryError(RoboCellError):
    """Raised when geometry is missing or cannot be posed."""

    pass


class ProgramError(RoboCellError):
    """Raised when an operation is not possible on a program."""

    pass


class SimulationError(ProgramError):
    """Raised when a program cannot be animated."""

    pass
