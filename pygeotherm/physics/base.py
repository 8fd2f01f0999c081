"""Abstract base class for field solvers.

The groundwater and heat solvers inherit from :class:`FieldSolver` and
share its iteration report, radial work partition and lane arithmetic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass(frozen=True)
class SolveReport:
    """Outcome of one iterative solve.

    Attributes:
        iterations: Inner iterations performed.
        max_change: Largest absolute change in the last iteration.
        converged: Whether *max_change* fell below the tolerance.
        relaxation: Relaxation factor in effect at the end.
    """

    iterations: int
    max_change: float
    converged: bool
    relaxation: float


class FieldSolver(ABC):
    """Iterative solver for one primary field on a cylindrical mesh.

    Attributes:
        name: Short identifier (``"flow"``, ``"heat"``).
        primary_field: Name of the unknown (``"h"``, ``"T"``).
        mesh: The computational mesh.
        partition: A :class:`~pygeotherm.solvers.parallel.RadialPartition`.
        lanes: Lane arithmetic from :func:`~pygeotherm.solvers.parallel.select_lanes`.
    """

    name: str
    primary_field: str

    def __init__(
        self,
        mesh: Any,
        partition: Any = None,
        lanes: Any = None,
    ) -> None:
        from pygeotherm.solvers.parallel import RadialPartition, ScalarLanes

        self.mesh = mesh
        self.partition = partition if partition is not None else RadialPartition(mesh.nr)
        self.lanes = lanes if lanes is not None else ScalarLanes()

    @abstractmethod
    def solve(self, state: Any, *args: Any) -> SolveReport:
        """Advance the primary field of *state* in place.

        Raises:
            SolverDivergedError: If the iteration produces non-finite or
                runaway values.
        """

    @abstractmethod
    def coefficients(self) -> dict[str, np.ndarray]:
        """Return the per-cell coefficient arrays the solver uses."""

    def validate(self) -> list[str]:
        """Run basic consistency checks.

        Returns:
            List of problems (empty if all OK).
        """
        issues: list[str] = []
        if self.mesh is None:
            issues.append("No mesh assigned.")
        elif not self.mesh.frozen:
            issues.append("Mesh materials have not been validated.")
        return issues

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(primary_field={self.primary_field!r}, "
            f"shape={self.mesh.shape}, lanes={self.lanes.name})"
        )
