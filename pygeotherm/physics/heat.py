"""Transient heat transport with conduction, advection and dispersion.

Governing equation (per unit bulk heat capacity)::

    ∂T/∂t = ∇·(λ∇T)/(ρ c_p) + D ∇²T − v·∇T

with D the mechanical dispersion coefficient and v the seepage velocity.
Conduction uses the harmonic-mean face transmissivities of the mesh,
dispersion the geometric face conductances, advection first-order upwind
differences.

Each time step is a fixed-point iteration towards the implicit update:
the rate is evaluated on the current iterate, the increment over the
step start is limited to ±5 K, and the candidate is blended with the
iterate by an adaptive relaxation factor.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from pygeotherm.boundaries.base import ThermalBoundaries
from pygeotherm.errors import SolverDivergedError
from pygeotherm.fields.state import T_MAX, T_MIN
from pygeotherm.physics.base import FieldSolver, SolveReport

logger = logging.getLogger(__name__)

#: Largest increment over the step start accepted per iteration (K).
MAX_INCREMENT = 5.0

#: Raw increment treated as divergence (K).
DIVERGENCE_INCREMENT = 100.0

RELAXATION_GROWTH = 1.05
RELAXATION_SHRINK = 0.7
MAX_RELAXATION = 0.9
MIN_RELAXATION = 0.05


class HeatTransfer(FieldSolver):
    """Heat transport solver on interior cells.

    Interior cells are ``1 ≤ i ≤ nr − 2`` and ``1 ≤ k ≤ nz − 2`` over all
    angular positions; boundary rings and rows are set by
    :class:`~pygeotherm.boundaries.base.ThermalBoundaries` after every
    inner iteration.

    Args:
        mesh: Validated :class:`~pygeotherm.geometry.mesh.CylindricalMesh`.
        boundaries: Thermal face conditions.
        tolerance: Convergence threshold on the temperature change (K).
        max_iterations: Inner iteration cap; reaching it is a stall.
        relaxation: Starting relaxation factor.
        partition: Radial work partition.
        lanes: Lane arithmetic.

    Example::

        heat = HeatTransfer(mesh, ThermalBoundaries.from_options(opts),
                            tolerance=1e-2)
        report = heat.solve(state, dt=600.0)
    """

    name = "heat"
    primary_field = "T"

    def __init__(
        self,
        mesh: Any,
        boundaries: ThermalBoundaries,
        tolerance: float = 1e-2,
        max_iterations: int = 50,
        relaxation: float = 0.5,
        partition: Any = None,
        lanes: Any = None,
    ) -> None:
        super().__init__(mesh, partition, lanes)
        self.boundaries = boundaries
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.relaxation = float(np.clip(relaxation, MIN_RELAXATION, MAX_RELAXATION))
        self._build_coefficients()

    def _build_coefficients(self) -> None:
        """Per-cell conduction and dispersion weights of the six neighbours.

        Conduction weights are ``trans / (ρ c_p V)`` (1/s), dispersion
        weights ``geom / V`` (1/m²).  Arrays cover interior cells only.
        """
        m = self.mesh
        ks = slice(1, m.nz - 1)
        inner = (slice(1, m.nr - 1), slice(None), ks)
        capacity = (m.heat_capacity * m.volume)[inner]
        volume = m.volume[inner]

        def neighbours(face_r, face_t, face_z):
            return [
                face_r[1:, :, ks],
                face_r[:-1, :, ks],
                face_t[1:-1, :, ks],
                np.roll(face_t, 1, axis=1)[1:-1, :, ks],
                face_z[1:-1, :, 1:],
                face_z[1:-1, :, :-1],
            ]

        self._conduction = [
            t / capacity for t in neighbours(m.trans_r, m.trans_theta, m.trans_z)
        ]
        self._dispersion = [
            g / volume for g in neighbours(m.geom_r, m.geom_theta, m.geom_z)
        ]

        r = m.r
        z = m.z
        self._dr_in = (r[1:-1] - r[:-2])[:, None, None]
        self._dr_out = (r[2:] - r[1:-1])[:, None, None]
        self._arc = (r[1:-1] * m.dtheta)[:, None, None]
        self._dz_up = (z[:-2] - z[1:-1])[None, None, :]
        self._dz_down = (z[1:-1] - z[2:])[None, None, :]

    # ------------------------------------------------------------------
    # Rate evaluation
    # ------------------------------------------------------------------

    def _rate(
        self,
        T: np.ndarray,
        state: Any,
        lo: int,
        hi: int,
        transport: bool,
    ) -> np.ndarray:
        """Temperature rate (K/s) of interior rows ``lo:hi``."""
        w = slice(lo - 1, hi - 1)
        centre = T[lo:hi, :, 1:-1]
        diffs = [
            T[lo + 1:hi + 1, :, 1:-1] - centre,
            T[lo - 1:hi - 1, :, 1:-1] - centre,
            np.roll(T[lo:hi], -1, axis=1)[:, :, 1:-1] - centre,
            np.roll(T[lo:hi], 1, axis=1)[:, :, 1:-1] - centre,
            T[lo:hi, :, 2:] - centre,
            T[lo:hi, :, :-2] - centre,
        ]
        weights = [c[w] for c in self._conduction]
        if not transport:
            return self.lanes.weighted_sum(weights, diffs)

        D = state.dispersion[lo:hi, :, 1:-1]
        weights = [c + D * g[w] for c, g in zip(weights, self._dispersion)]
        rate = self.lanes.weighted_sum(weights, diffs)

        v = state.velocity[lo:hi, :, 1:-1]
        lanes = self.lanes
        grad_r = lanes.upwind(v[..., 0], -diffs[1] / self._dr_in[w], diffs[0] / self._dr_out[w])
        grad_t = lanes.upwind(v[..., 1], -diffs[3] / self._arc[w], diffs[2] / self._arc[w])
        # z decreases with k: upstream of an upward flow is the row below
        grad_z = lanes.upwind(v[..., 2], -diffs[4] / self._dz_down, diffs[5] / self._dz_up)
        rate += lanes.weighted_sum(
            [-v[..., 0], -v[..., 1], -v[..., 2]], [grad_r, grad_t, grad_z]
        )
        return rate

    # ------------------------------------------------------------------
    # Time step
    # ------------------------------------------------------------------

    def solve(self, state: Any, *args: Any) -> SolveReport:
        """Advance the temperature of *state* by one time step.

        Args:
            state: :class:`~pygeotherm.fields.state.FieldState`.
            dt: Time step (s), passed positionally.

        Returns:
            Iteration report; ``converged`` is False on a stall.

        Raises:
            SolverDivergedError: If an iterate is non-finite or a raw
                increment exceeds 100 K.
        """
        (dt,) = args
        buf = state.temperature
        start = buf.copy_front()
        omega = self.relaxation
        transport = bool(np.any(state.velocity)) or bool(np.any(state.dispersion))
        change = 0.0
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iterations + 1):
            current = buf.front
            target = buf.back

            def kernel(lo: int, hi: int) -> float:
                raw = dt * self._rate(current, state, lo, hi, transport)
                peak = float(np.max(np.abs(raw)))
                if not np.isfinite(peak):
                    raise SolverDivergedError(
                        self.name,
                        "non-finite temperature; extreme property contrast "
                        "or time step too large",
                    )
                if peak > DIVERGENCE_INCREMENT:
                    raise SolverDivergedError(
                        self.name,
                        f"increment of {peak:.1f} K in one iteration; "
                        f"time step {dt:g} s too large",
                    )
                candidate = start[lo:hi, :, 1:-1] + np.clip(
                    raw, -MAX_INCREMENT, MAX_INCREMENT
                )
                previous = current[lo:hi, :, 1:-1]
                updated = (1.0 - omega) * previous + omega * candidate
                np.clip(updated, T_MIN, T_MAX, out=updated)
                target[lo:hi, :, 1:-1] = updated
                return float(np.max(np.abs(updated - previous)))

            change = self.partition.run(kernel)
            self.boundaries.apply(target, self.mesh, state.initial_temperature)
            np.clip(target, T_MIN, T_MAX, out=target)
            buf.swap()
            if change < self.tolerance:
                converged = True
                break

        if not converged:
            logger.warning(
                "Heat iteration stalled after %d iterations (change=%g K)",
                iteration, change,
            )
        return SolveReport(iteration, float(change), converged, omega)

    # ------------------------------------------------------------------
    # Adaptive relaxation
    # ------------------------------------------------------------------

    def grow_relaxation(self) -> float:
        """Increase ω by 5 % after an accepted step, capped at 0.9."""
        self.relaxation = min(self.relaxation * RELAXATION_GROWTH, MAX_RELAXATION)
        return self.relaxation

    def shrink_relaxation(self) -> float:
        """Reduce ω by 30 % after a divergent attempt."""
        self.relaxation = max(self.relaxation * RELAXATION_SHRINK, MIN_RELAXATION)
        return self.relaxation

    def coefficients(self) -> dict[str, np.ndarray]:
        return {
            "thermal_conductivity": self.mesh.thermal_conductivity,
            "bulk_heat_capacity": self.mesh.heat_capacity,
            "diffusivity": self.mesh.diffusivity,
        }
