"""Exception hierarchy.

Classes
-------
GeothermalError
    Root of every error raised by the package.
ConfigurationError
    Invalid options or mesh, raised before any field is allocated.
SolverDivergedError
    Non-finite or runaway iterate inside a field solver.
"""

from __future__ import annotations


class GeothermalError(Exception):
    """Base class for package errors."""


class ConfigurationError(GeothermalError, ValueError):
    """A configuration value is out of its admissible range.

    Args:
        field: Name of the offending option (e.g. ``"borehole_depth"``).
        message: Human-readable description of the problem.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class SolverDivergedError(GeothermalError, ArithmeticError):
    """A field solver produced a non-finite or unbounded iterate.

    Raised inside the groundwater and heat solvers and converted into a
    :class:`~pygeotherm.coupling.sequential.Diverged` outcome at the step
    boundary, so it never escapes a simulation run.

    Args:
        solver: Short name of the failing solver (``"heat"``, ``"flow"``).
        cause: Likely cause, e.g. an oversized time step.
    """

    def __init__(self, solver: str, cause: str) -> None:
        self.solver = solver
        self.cause = cause
        super().__init__(f"{solver} solver diverged: {cause}")
