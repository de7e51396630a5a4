"""
Exceptions Module
Error taxonomy for parameter validation and cycle computation.

Author: Mohith Sai Gorla
Date:   16-10-2026
"""

from typing import Iterable, List, Optional


class EngineSimulationError(Exception):
    """Base class for every error raised by the simulator."""


class ValidationError(EngineSimulationError, ValueError):
    """One or more input parameters lie outside their physical bounds.

    The message enumerates *every* violated constraint, not just the first,
    so a caller can correct all fields before re-invoking.

    Attributes
    ----------
    errors : List[str]   human-readable message per violation
    fields : List[str]   parameter name per violation (same order as errors)
    """

    def __init__(
        self,
        errors: Iterable[str],
        fields: Optional[Iterable[str]] = None,
        prefix: str = "Parameter validation failed",
    ) -> None:
        self.errors: List[str] = list(errors)
        self.fields: List[str] = list(fields) if fields is not None else []
        super().__init__(f"{prefix}: " + "; ".join(self.errors))


class ComputationError(EngineSimulationError, ArithmeticError):
    """A cycle quantity became non-finite during generation."""

    def __init__(self, field_name: str, angle: float, value: float) -> None:
        self.field_name = field_name
        self.angle = angle
        self.value = value
        super().__init__(
            f"Non-finite {field_name} ({value!r}) at crank angle {angle:.3f}°"
        )


class SimulationCancelled(EngineSimulationError):
    """Raised inside a run when the caller signalled stop between steps."""
