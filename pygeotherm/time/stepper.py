"""Adaptive time stepping with divergence recovery.

Functions
---------
cfl_time_step
    Stability bound from grid spacing, diffusivity, dispersion and speed.

Classes
-------
ControllerState
    Phases of a run.
TimeStepController
    Drives :class:`~pygeotherm.coupling.sequential.SequentialStep` from
    start to end time, growing, shrinking and forcing steps.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

import numpy as np

from pygeotherm.coupling.sequential import Accepted, Diverged

logger = logging.getLogger(__name__)

#: Relative slack when comparing the current time with the end time.
TIME_EPSILON = 1e-9


def cfl_time_step(
    mesh: Any,
    max_velocity: float = 0.0,
    max_dispersion: float = 0.0,
    safety: float = 0.5,
) -> float:
    """Stable explicit time step for the mesh.

    ``dt = safety · h² / (6 (α_max + D_max))``, further limited to
    ``h / |v|_max`` when groundwater moves, with ``h`` the smallest
    interior node spacing.

    Args:
        mesh: :class:`~pygeotherm.geometry.mesh.CylindricalMesh`.
        max_velocity: Largest seepage speed (m/s).
        max_dispersion: Largest dispersion coefficient (m²/s).
        safety: Safety factor.

    Returns:
        Time step (s).
    """
    h = mesh.min_spacing()
    alpha = float(np.max(mesh.diffusivity)) + max_dispersion
    dt = safety * h * h / (6.0 * alpha)
    if max_velocity > 0.0:
        dt = min(dt, h / max_velocity)
    return float(dt)


class ControllerState(Enum):
    RUNNING = "running"
    RETRYING = "retrying"
    FORCED = "forced"
    CANCELLED = "cancelled"
    DONE = "done"


class TimeStepController:
    """State machine over one simulation run.

    * ``RUNNING``: attempt a step at the current ``dt``.  On success the
      step is recorded, the heat relaxation grows and ``dt`` grows by 5 %
      if no retry was needed and the recent heat error is below the heat
      solver tolerance.  ``dt`` is then clamped to the user maximum and the CFL
      bound.
    * ``RETRYING``: the attempt diverged and was rolled back; ``dt`` is
      halved and the relaxation shrunk, up to *max_retries* times.
    * ``FORCED``: retries are exhausted; a *min_dt* step is taken and
      accepted whatever happens, and the run is flagged degraded.
    * ``CANCELLED``: the cancellation token was set between steps.
    * ``DONE``: the end time was reached.

    Args:
        step: Callable ``step(dt) -> Accepted | Diverged``.
        heat: Heat solver, for its adaptive relaxation.
        tracker: :class:`~pygeotherm.postprocess.convergence.ConvergenceTracker`.
        t_end: Total simulated time (s).
        dt_initial: First attempted step (s).
        dt_max: User maximum step (s).
        dt_min: Forced minimal step (s).
        tolerance: Recent heat error below which ``dt`` may grow (K);
            defaults to the convergence tolerance of *heat*.
        max_retries: Halvings before a forced step.
        growth: Step growth factor after a clean step.
        stable_dt: Callable returning the current CFL bound (s).
        cancel: Token with ``is_set()`` (e.g. :class:`threading.Event`) or
            a callable returning ``True`` to cancel.
    """

    def __init__(
        self,
        step: Callable[[float], Accepted | Diverged],
        heat: Any,
        tracker: Any,
        t_end: float,
        dt_initial: float,
        dt_max: float,
        dt_min: float = 1.0,
        tolerance: float | None = None,
        max_retries: int = 3,
        growth: float = 1.05,
        stable_dt: Callable[[], float] | None = None,
        cancel: Any = None,
    ) -> None:
        self.step = step
        self.heat = heat
        self.tracker = tracker
        self.t_end = t_end
        self.dt = dt_initial
        self.dt_max = dt_max
        self.dt_min = dt_min
        self.tolerance = heat.tolerance if tolerance is None else tolerance
        self.max_retries = max_retries
        self.growth = growth
        self.stable_dt = stable_dt
        self.cancel = cancel

        self.time = 0.0
        self.steps_computed = 0
        self.retries = 0
        self.state = ControllerState.RUNNING

    # ------------------------------------------------------------------

    def is_cancelled(self) -> bool:
        if self.cancel is None:
            return False
        is_set = getattr(self.cancel, "is_set", None)
        if is_set is not None:
            return bool(is_set())
        return bool(self.cancel())

    def _finished(self) -> bool:
        return self.time >= self.t_end * (1.0 - TIME_EPSILON)

    def run(
        self,
        on_accept: Callable[[float, float, int, Accepted | None], None] | None = None,
        on_diverge: Callable[[float, float, Diverged], None] | None = None,
    ) -> ControllerState:
        """Step until done or cancelled.

        Args:
            on_accept: Called as ``on_accept(time, dt, step_index, outcome)``
                after every committed step; *outcome* is ``None`` for a
                forced step that diverged again.
            on_diverge: Called as ``on_diverge(time, dt, outcome)`` after
                every rolled-back attempt.

        Returns:
            The final state, ``DONE`` or ``CANCELLED``.
        """
        while True:
            if self._finished():
                self.state = ControllerState.DONE
                break
            if self.is_cancelled():
                self.state = ControllerState.CANCELLED
                self.tracker.status = "Cancelled"
                logger.info("Run cancelled at t=%.0f s after %d steps",
                            self.time, self.steps_computed)
                break

            forced = self.state is ControllerState.FORCED
            base = self.dt_min if forced else self.dt
            dt = min(base, self.t_end - self.time)
            self.tracker.record_attempt(dt)
            outcome = self.step(dt)

            if isinstance(outcome, Diverged):
                self._diverged(dt, outcome, on_diverge)
                if forced:
                    # Accepted unconditionally: time moves on with the
                    # rolled-back fields
                    self._advance(dt, None, on_accept)
                    self.dt = self.dt_min
                    self.retries = 0
                    self.state = ControllerState.RUNNING
                continue

            self._advance(dt, outcome, on_accept)
            self._adapt(dt, base)
        return self.state

    def _diverged(
        self,
        dt: float,
        outcome: Diverged,
        on_diverge: Callable[[float, float, Diverged], None] | None,
    ) -> None:
        self.tracker.record_divergence(self.time, dt, outcome.reason)
        self.heat.shrink_relaxation()
        if on_diverge is not None:
            on_diverge(self.time, dt, outcome)
        if self.state is ControllerState.FORCED:
            logger.warning("Forced step at t=%.0f s diverged; fields kept", self.time)
            return
        self.retries += 1
        if self.retries > self.max_retries:
            self.state = ControllerState.FORCED
            self.tracker.degraded = True
            self.tracker.status = "Degraded: forcing minimal time step"
            logger.warning(
                "Retries exhausted at t=%.0f s; forcing a %g s step",
                self.time, self.dt_min,
            )
        else:
            self.state = ControllerState.RETRYING
            self.dt = 0.5 * dt
            logger.info(
                "Step diverged at t=%.0f s (%s); retry %d with dt=%g s",
                self.time, outcome.reason, self.retries, self.dt,
            )

    def _advance(
        self,
        dt: float,
        outcome: Accepted | None,
        on_accept: Callable[[float, float, int, Accepted | None], None] | None,
    ) -> None:
        self.time += dt
        self.steps_computed += 1
        if outcome is not None:
            self.tracker.record_step(self.time, dt, outcome.heat, outcome.flow)
            self.heat.grow_relaxation()
        else:
            self.tracker.times.append(self.time)
            self.tracker.time_steps.append(dt)
        if on_accept is not None:
            on_accept(self.time, dt, self.steps_computed, outcome)

    def _adapt(self, dt: float, base: float) -> None:
        """Choose the next step after a committed attempt of size *dt*."""
        clean = self.retries == 0
        next_dt = base
        if clean and self.tracker.recent_error(3) < self.tolerance:
            next_dt = base * self.growth
        limit = self.dt_max
        if self.stable_dt is not None:
            limit = min(limit, self.stable_dt())
        self.dt = max(min(next_dt, limit), self.dt_min)
        self.retries = 0
        self.state = ControllerState.RUNNING
        self.tracker.status = f"Running: t={self.time:.0f} s, dt={self.dt:.3g} s"

    def __repr__(self) -> str:
        return (
            f"TimeStepController(state={self.state.value}, t={self.time:.0f}, "
            f"dt={self.dt:.3g}, steps={self.steps_computed})"
        )
