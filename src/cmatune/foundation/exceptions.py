"""
cmatune exception hierarchy.

Provides user-friendly exceptions with helpful error messages and suggestions.
All cmatune-specific exceptions inherit from CmaTuneError for easy catching.
Validation errors additionally derive from the matching builtin (ValueError,
RuntimeError, ArithmeticError) so callers can catch them generically.

Example:
    try:
        engine.advance()
    except CmaTuneError as e:
        print(f"Optimization failed: {e}")
        print(f"Suggestion: {e.suggestion}")
"""

from __future__ import annotations

from typing import Any


class CmaTuneError(Exception):
    """
    Base exception for all cmatune errors.

    Attributes:
        message: Human-readable error description
        suggestion: Optional suggestion for fixing the error
        details: Optional dict with additional context
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with suggestion."""
        msg = self.message
        if self.suggestion:
            msg += f"\n\nSuggestion: {self.suggestion}"
        return msg


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CmaTuneError, ValueError):
    """Raised when configuration or constructor input is invalid."""

    pass


class BoundsError(ConfigurationError):
    """Raised when bounds are invalid or inconsistent."""

    def __init__(self, message: str, index: int | None = None) -> None:
        suggestion = "Ensure lower <= upper, bounds are finite and have one entry per dimension"
        super().__init__(message, suggestion, {"index": index})


class InvalidObjectiveError(ConfigurationError):
    """Raised when an unknown objective function is requested."""

    def __init__(self, objective: str, available: list[str] | None = None) -> None:
        message = f"Unknown objective '{objective}'."
        suggestion = f"Available objectives: {', '.join(available)}" if available else None
        super().__init__(message, suggestion, {"objective": objective, "available": available or []})


class InvalidElementsError(ConfigurationError):
    """Raised when a CMA-ES state snapshot lacks data a consumer requires."""

    def __init__(self, message: str) -> None:
        suggestion = "Pass a snapshot taken from an initialized engine"
        super().__init__(message, suggestion)


# =============================================================================
# Runtime Errors
# =============================================================================


class InvalidStateError(CmaTuneError, RuntimeError):
    """Raised when an operation is called in the wrong lifecycle state."""

    def __init__(self, operation: str) -> None:
        message = f"Cannot execute {operation} before calling initialize."
        suggestion = "Call initialize() or load_checkpoint() first"
        super().__init__(message, suggestion, {"operation": operation})


class SpectralDecompositionError(CmaTuneError, ArithmeticError):
    """Raised when covariance data or its eigendecomposition is inconsistent."""

    def __init__(self, message: str) -> None:
        suggestion = "The covariance matrix must be a finite, symmetric positive semi-definite n x n matrix"
        super().__init__(message, suggestion)


class SortingError(CmaTuneError, ValueError):
    """Raised when a search point sorter does not return a permutation."""

    def __init__(self, message: str, order: Any = None) -> None:
        suggestion = "Sorters must return every population index exactly once, best first"
        super().__init__(message, suggestion, {"order": order})


# =============================================================================
# Data/IO Errors
# =============================================================================


class CheckpointError(CmaTuneError):
    """Raised when a checkpoint cannot be read or used."""

    def __init__(self, message: str, path: str | None = None) -> None:
        suggestion = "Checkpoint may be corrupted or from another version. Try restarting the run."
        super().__init__(message, suggestion, {"path": path})


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Base
    "CmaTuneError",
    # Configuration
    "ConfigurationError",
    "BoundsError",
    "InvalidObjectiveError",
    "InvalidElementsError",
    # Runtime
    "InvalidStateError",
    "SpectralDecompositionError",
    "SortingError",
    # Data/IO
    "CheckpointError",
]
