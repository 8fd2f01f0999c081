"""Steady groundwater flow and derived transport coefficients.

Solves

    ∇ · (K ∇h) = 0

for the hydraulic head h on the cylindrical mesh, with hydraulic
conductivity ``K = k ρ_w g / μ_w`` derived from intrinsic permeability.
The seepage velocity ``v = (−K ∇h + q_regional) / φ`` then feeds the
Péclet number and the mechanical dispersion coefficient used by the heat
solver.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np

from pygeotherm.boundaries.base import HydraulicBoundaries
from pygeotherm.errors import SolverDivergedError
from pygeotherm.physics.base import FieldSolver, SolveReport

logger = logging.getLogger(__name__)

#: Smallest relaxation factor before the solve is declared divergent.
MIN_RELAXATION = 1e-3

#: Head change (m) treated as unbounded.
MAX_HEAD_CHANGE = 1e6


def _harmonic_mean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return 2.0 * a * b / (a + b)


class GroundwaterFlow(FieldSolver):
    """Relaxed finite-volume iteration for the hydraulic head.

    Each iteration evaluates the Jacobi update of every interior cell from
    the current head (front buffer) into the back buffer over disjoint
    radial slabs, relaxes it by ω and adopts the result.  ω starts at
    *relaxation* and is halved, discarding the iterate, whenever the
    applied (relaxed) update is non-finite, unbounded or more than twice
    the previous one.  After a halving the growth check restarts, so the
    iteration resumes from the last adopted head at the smaller ω.

    Args:
        mesh: Validated :class:`~pygeotherm.geometry.mesh.CylindricalMesh`.
        boundaries: Head conditions on top and bottom.
        regional_velocity: Background Darcy flux ``(q_x, q_y, q_z)`` (m/s).
        dispersivity: Longitudinal dispersivity α_L (m).
        tolerance: Convergence threshold on the head change (m).
        max_iterations: Iteration cap; reaching it is a stall, not an error.
        relaxation: Starting relaxation factor ω.
        fluid_density: ρ_w (kg/m³).
        fluid_viscosity: μ_w (Pa·s).
        gravity: g (m/s²).
        partition: Radial work partition.
        lanes: Lane arithmetic.
    """

    name = "flow"
    primary_field = "h"

    def __init__(
        self,
        mesh: Any,
        boundaries: HydraulicBoundaries,
        regional_velocity: Sequence[float] = (0.0, 0.0, 0.0),
        dispersivity: float = 0.5,
        tolerance: float = 1e-3,
        max_iterations: int = 50,
        relaxation: float = 0.3,
        fluid_density: float = 1000.0,
        fluid_viscosity: float = 1e-3,
        gravity: float = 9.81,
        partition: Any = None,
        lanes: Any = None,
    ) -> None:
        super().__init__(mesh, partition, lanes)
        self.boundaries = boundaries
        self.regional_velocity = tuple(float(q) for q in regional_velocity)
        self.dispersivity = dispersivity
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.initial_relaxation = relaxation
        self.relaxation = relaxation

        self.conductivity = mesh.permeability * fluid_density * gravity / fluid_viscosity
        self._build_weights()
        self._regional = self._project_regional()

    def _build_weights(self) -> None:
        """Face conductances (m²/s) seen by each interior cell."""
        m = self.mesh
        K = self.conductivity
        c_r = _harmonic_mean(K[:-1], K[1:]) * m.geom_r
        c_t = _harmonic_mean(K, np.roll(K, -1, axis=1)) * m.geom_theta
        c_z = _harmonic_mean(K[:, :, :-1], K[:, :, 1:]) * m.geom_z

        ks = slice(1, m.nz - 1)
        self._weights = [
            c_r[1:, :, ks],                          # outward  i+1
            c_r[:-1, :, ks],                         # inward   i-1
            c_t[1:-1, :, ks],                        # next     j+1
            np.roll(c_t, 1, axis=1)[1:-1, :, ks],    # previous j-1
            c_z[1:-1, :, 1:],                        # below    k+1
            c_z[1:-1, :, :-1],                       # above    k-1
        ]
        total = sum(self._weights)
        self._weight_sum = np.where(total > 0.0, total, 1.0)

    def _project_regional(self) -> np.ndarray:
        """Regional Cartesian flux on the local (r, θ, z) basis."""
        qx, qy, qz = self.regional_velocity
        theta = self.mesh.theta[None, :, None]
        out = np.zeros((1, self.mesh.ntheta, 1, 3))
        out[..., 0] = qx * np.cos(theta) + qy * np.sin(theta)
        out[..., 1] = -qx * np.sin(theta) + qy * np.cos(theta)
        out[..., 2] = qz
        return out

    # ------------------------------------------------------------------
    # Head iteration
    # ------------------------------------------------------------------

    def solve(self, state: Any, *args: Any) -> SolveReport:
        """Iterate the head of *state* towards steady state.

        Returns:
            Iteration report; ``converged`` is False on a stall.

        Raises:
            SolverDivergedError: If ω drops below :data:`MIN_RELAXATION`.
        """
        buf = state.head
        omega = self.initial_relaxation
        previous: float | None = None
        change = 0.0
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iterations + 1):
            current = buf.front
            target = buf.back

            def kernel(lo: int, hi: int) -> float:
                w = slice(lo - 1, hi - 1)
                centre = current[lo:hi, :, 1:-1]
                diffs = [
                    current[lo + 1:hi + 1, :, 1:-1] - centre,
                    current[lo - 1:hi - 1, :, 1:-1] - centre,
                    np.roll(current[lo:hi], -1, axis=1)[:, :, 1:-1] - centre,
                    np.roll(current[lo:hi], 1, axis=1)[:, :, 1:-1] - centre,
                    current[lo:hi, :, 2:] - centre,
                    current[lo:hi, :, :-2] - centre,
                ]
                delta = self.lanes.weighted_sum(
                    [c[w] for c in self._weights], diffs
                ) / self._weight_sum[w]
                step = omega * delta
                target[lo:hi, :, 1:-1] = centre + step
                return float(np.max(np.abs(step)))

            change = self.partition.run(kernel)

            runaway = not np.isfinite(change) or change > MAX_HEAD_CHANGE
            growing = (
                previous is not None
                and change > 2.0 * previous
                and change > self.tolerance
            )
            if runaway or growing:
                omega *= 0.5
                logger.debug(
                    "Head iteration %d unstable (change=%g), relaxation -> %g",
                    iteration, change, omega,
                )
                if omega < MIN_RELAXATION:
                    raise SolverDivergedError(
                        self.name,
                        "head update kept growing; check permeability contrast "
                        "and head boundary values",
                    )
                previous = None
                continue

            self.boundaries.apply(target)
            buf.swap()
            previous = change
            if change < self.tolerance:
                converged = True
                break

        self.relaxation = omega
        state.update_pressure()
        if not converged:
            logger.warning(
                "Head iteration stalled after %d iterations (change=%g)",
                iteration, change,
            )
        return SolveReport(iteration, float(change), converged, omega)

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    def update_velocity(self, state: Any) -> None:
        """Compute the seepage velocity of *state* from its head."""
        m = self.mesh
        h = state.h
        grad = np.empty(m.shape + (3,))
        grad[..., 0] = np.gradient(h, m.r, axis=0)
        grad[..., 1] = (
            (np.roll(h, -1, axis=1) - np.roll(h, 1, axis=1))
            / (2.0 * m.dtheta)
            / m.r[:, None, None]
        )
        grad[..., 2] = np.gradient(h, m.z, axis=2)

        darcy = -self.conductivity[..., None] * grad + self._regional
        state.velocity[...] = darcy / m.porosity[..., None]

    def update_transport(self, state: Any) -> None:
        """Update Péclet number and dispersion coefficient of *state*.

        Both are exactly zero wherever the velocity is zero.
        """
        speed = state.speed()
        state.peclet[...] = speed * self.mesh.cell_length() / self.mesh.diffusivity
        state.dispersion[...] = self.dispersivity * speed

    def coefficients(self) -> dict[str, np.ndarray]:
        return {
            "hydraulic_conductivity": self.conductivity,
            "porosity": self.mesh.porosity,
        }
