"""Simulation results and the abstract solver interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np


class SimulationResults:
    """Container for the output of one run.

    Attributes:
        fields: Final fields keyed by name (``"temperature"``, ``"head"``,
            ``"pressure"``, ``"velocity"``, ``"peclet"``, ``"dispersion"``).
        mesh: The mesh the fields live on.
        snapshots: Field copies keyed by simulated time (s).
        times: Simulated time after each accepted step (s).
        series: Per-step series keyed by name: ``"extraction_rate"`` (W),
            ``"inlet_temperature"``, ``"outlet_temperature"`` and
            ``"ground_temperature"`` (K), ``"cop"`` (-).
        tracker: :class:`~pygeotherm.postprocess.convergence.ConvergenceTracker`.
        metrics: :class:`~pygeotherm.postprocess.metrics.PerformanceMetrics`.
        fluid_profile: ``(depth, down, up)`` arrays along the pipe.
        time_steps_computed: Accepted (or forced) steps.
        cancelled: The run stopped on the cancellation token.
        degraded: A forced minimal step was needed.
        computation_time: Wall-clock duration (s).
    """

    def __init__(
        self,
        fields: dict[str, np.ndarray],
        mesh: Any,
        snapshots: dict[float, dict[str, np.ndarray]] | None = None,
        times: np.ndarray | None = None,
        series: dict[str, np.ndarray] | None = None,
        tracker: Any = None,
        metrics: Any = None,
        fluid_profile: tuple[np.ndarray, np.ndarray, np.ndarray] | None = None,
        time_steps_computed: int = 0,
        cancelled: bool = False,
        degraded: bool = False,
        computation_time: float = 0.0,
    ) -> None:
        self.fields = fields
        self.mesh = mesh
        self.snapshots = snapshots or {}
        self.times = times if times is not None else np.zeros(0)
        self.series = series or {}
        self.tracker = tracker
        self.metrics = metrics
        self.fluid_profile = fluid_profile
        self.time_steps_computed = time_steps_computed
        self.cancelled = cancelled
        self.degraded = degraded
        self.computation_time = computation_time

    def __getitem__(self, key: str) -> np.ndarray:
        return self.fields[key]

    @property
    def simulated_time(self) -> float:
        return float(self.times[-1]) if len(self.times) else 0.0

    @property
    def average_iterations_per_step(self) -> float:
        """Inner iterations of both solvers per computed step."""
        if self.tracker is None:
            return 0.0
        return self.tracker.total_iterations / max(1, self.time_steps_computed)

    @property
    def final_convergence_error(self) -> float:
        """Heat-iteration change of the last accepted step (K)."""
        if self.tracker is None or not self.tracker.heat_errors:
            return 0.0
        return float(self.tracker.heat_errors[-1])

    def field_at_time(self, field: str, time: float | None = None) -> np.ndarray:
        """Return *field* from the snapshot nearest *time* (final if None)."""
        if time is None or not self.snapshots:
            return self.fields[field]
        keys = np.array(sorted(self.snapshots))
        nearest = float(keys[int(np.argmin(np.abs(keys - time)))])
        return self.snapshots[nearest][field]

    def __repr__(self) -> str:
        return (
            f"SimulationResults(steps={self.time_steps_computed}, "
            f"t={self.simulated_time:.0f} s, snapshots={len(self.snapshots)}, "
            f"cancelled={self.cancelled}, degraded={self.degraded})"
        )


class Solver(ABC):
    """Abstract simulation driver.

    Solvers own thread pools and must be closed; they support the context
    manager protocol for that.
    """

    @abstractmethod
    def run(self) -> SimulationResults:
        """Run the simulation.

        Returns:
            A :class:`SimulationResults` object.
        """

    def close(self) -> None:
        """Release worker resources."""

    def __enter__(self) -> Solver:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
