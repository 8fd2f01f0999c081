"""Convergence and time-step history of a run.

Classes
-------
DivergenceEvent
    One rolled-back attempt.
ConvergenceTracker
    Per-step solver errors, iterations, time steps and status.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class DivergenceEvent:
    time: float
    dt: float
    reason: str


@dataclass
class ConvergenceTracker:
    """History accumulated by the time-step controller.

    Attributes:
        times: Simulated time after each accepted step (s).
        time_steps: Size of each accepted step (s).
        attempted_time_steps: Size of every attempt, accepted or not (s).
        heat_errors: Final heat-iteration change per accepted step (K).
        flow_errors: Final head-iteration change per accepted step (m).
        heat_iterations: Inner heat iterations per accepted step.
        divergences: Rolled-back attempts.
        stall_count: Solves that hit the iteration cap.
        total_iterations: Inner iterations of both solvers over the run.
        degraded: A forced minimal step was needed.
        status: Latest human-readable status line.
    """

    times: list[float] = field(default_factory=list)
    time_steps: list[float] = field(default_factory=list)
    attempted_time_steps: list[float] = field(default_factory=list)
    heat_errors: list[float] = field(default_factory=list)
    flow_errors: list[float] = field(default_factory=list)
    heat_iterations: list[int] = field(default_factory=list)
    divergences: list[DivergenceEvent] = field(default_factory=list)
    stall_count: int = 0
    total_iterations: int = 0
    degraded: bool = False
    status: str = "initialised"

    def record_attempt(self, dt: float) -> None:
        self.attempted_time_steps.append(float(dt))

    def record_step(self, time: float, dt: float, heat, flow=None) -> None:
        """Record an accepted step and its solver reports."""
        self.times.append(float(time))
        self.time_steps.append(float(dt))
        self.heat_errors.append(heat.max_change)
        self.heat_iterations.append(heat.iterations)
        self.total_iterations += heat.iterations
        if not heat.converged:
            self.stall_count += 1
        if flow is not None:
            self.flow_errors.append(flow.max_change)
            self.total_iterations += flow.iterations
            if not flow.converged:
                self.stall_count += 1

    def record_divergence(self, time: float, dt: float, reason: str) -> None:
        self.divergences.append(DivergenceEvent(float(time), float(dt), reason))
        self.status = f"Diverged at t={time:.0f} s, reducing time step..."

    @property
    def divergence_count(self) -> int:
        return len(self.divergences)

    @property
    def steps(self) -> int:
        """Number of accepted steps."""
        return len(self.times)

    def recent_error(self, window: int = 3) -> float:
        """Mean heat error over the last *window* accepted steps (inf if none)."""
        if not self.heat_errors:
            return float("inf")
        return float(np.mean(self.heat_errors[-window:]))

    def __repr__(self) -> str:
        return (
            f"ConvergenceTracker(steps={self.steps}, "
            f"divergences={self.divergence_count}, stalls={self.stall_count})"
        )
