"""Tests for the stability bound and the time-step controller."""

import threading

import numpy as np
import pytest

from pygeotherm.coupling import Accepted, Diverged
from pygeotherm.geometry import CylindricalMesh
from pygeotherm.physics import SolveReport
from pygeotherm.postprocess import ConvergenceTracker
from pygeotherm.time import ControllerState, TimeStepController, cfl_time_step


def _make_mesh():
    theta = np.linspace(0.0, 2.0 * np.pi, 4, endpoint=False)
    return CylindricalMesh(
        r=[1.0, 2.0, 3.0, 4.0],
        theta=theta,
        z=np.linspace(0.0, -3.0, 4),
        thermal_conductivity=2.0,
        specific_heat=1000.0,
        density=2000.0,
    )


class _Heat:
    """Records relaxation changes requested by the controller."""

    def __init__(self, tolerance=1e-2):
        self.tolerance = tolerance
        self.grown = 0
        self.shrunk = 0

    def grow_relaxation(self):
        self.grown += 1

    def shrink_relaxation(self):
        self.shrunk += 1


class _ScriptedStep:
    """Returns scripted outcomes, then accepts with a fixed heat error."""

    def __init__(self, script=(), error=0.0):
        self.script = list(script)
        self.error = error
        self.calls = []

    def __call__(self, dt):
        self.calls.append(dt)
        if self.script and self.script.pop(0) == "diverge":
            return Diverged("too large")
        report = SolveReport(iterations=3, max_change=self.error, converged=True, relaxation=0.5)
        return Accepted(heat=report, flow=None, injected_power=0.0)


def _controller(step, **kwargs):
    heat = _Heat()
    tracker = ConvergenceTracker()
    defaults = dict(t_end=10.0, dt_initial=1.0, dt_max=1.0, dt_min=0.1)
    defaults.update(kwargs)
    return TimeStepController(step, heat, tracker, **defaults), heat, tracker


class TestCFL:
    def test_diffusive_bound(self):
        mesh = _make_mesh()
        # h = 1, alpha = 1e-6
        assert cfl_time_step(mesh) == pytest.approx(0.5 / 6e-6)

    def test_dispersion_tightens(self):
        mesh = _make_mesh()
        assert cfl_time_step(mesh, max_dispersion=1e-6) == pytest.approx(0.5 / 12e-6)

    def test_advective_bound(self):
        mesh = _make_mesh()
        assert cfl_time_step(mesh, max_velocity=1e-3) == pytest.approx(1000.0)


class TestController:
    def test_runs_to_end(self):
        step = _ScriptedStep(error=1.0)
        ctrl, heat, tracker = _controller(step)
        assert ctrl.run() is ControllerState.DONE
        assert ctrl.steps_computed == 10
        assert ctrl.time == pytest.approx(10.0)
        assert tracker.steps == 10
        assert heat.grown == 10

    def test_last_step_trimmed(self):
        step = _ScriptedStep(error=1.0)
        ctrl, _, _ = _controller(step, t_end=2.5)
        ctrl.run()
        assert step.calls == pytest.approx([1.0, 1.0, 0.5])

    def test_growth_after_clean_steps(self):
        step = _ScriptedStep(error=0.0)
        ctrl, _, _ = _controller(step, t_end=5.0, dt_max=2.0)
        ctrl.run()
        assert step.calls[1] == pytest.approx(1.05)
        assert step.calls[2] == pytest.approx(1.05 ** 2)

    def test_growth_threshold_follows_heat_solver(self):
        step = _ScriptedStep(error=5e-3)
        ctrl, heat, _ = _controller(step, t_end=3.0, dt_max=2.0)
        assert ctrl.tolerance == heat.tolerance
        ctrl.run()
        # 5e-3 K is below the heat tolerance of 1e-2 K
        assert step.calls[1] == pytest.approx(1.05)

    def test_no_growth_above_tolerance(self):
        step = _ScriptedStep(error=1.0)
        ctrl, _, _ = _controller(step, t_end=3.0, dt_max=2.0, tolerance=1e-3)
        ctrl.run()
        assert step.calls == pytest.approx([1.0, 1.0, 1.0])

    def test_clamped_to_stable_step(self):
        step = _ScriptedStep(error=0.0)
        ctrl, _, _ = _controller(step, t_end=2.0, stable_dt=lambda: 0.25)
        ctrl.run()
        # the first attempt is not clamped
        assert step.calls[0] == pytest.approx(1.0)
        assert step.calls[1] == pytest.approx(0.25)

    def test_halving_on_divergence(self):
        step = _ScriptedStep(["diverge", "diverge"], error=0.0)
        ctrl, heat, tracker = _controller(step, t_end=2.0)
        ctrl.run()
        assert step.calls[:3] == pytest.approx([1.0, 0.5, 0.25])
        assert tracker.attempted_time_steps[:3] == pytest.approx([1.0, 0.5, 0.25])
        assert tracker.divergence_count == 2
        assert heat.shrunk == 2
        assert not tracker.degraded
        # no growth right after a retried step
        assert step.calls[3] == pytest.approx(0.25)
        assert step.calls[4] == pytest.approx(0.25 * 1.05)

    def test_forced_step_after_retries(self):
        step = _ScriptedStep(["diverge"] * 4, error=1.0)
        ctrl, _, tracker = _controller(step, t_end=2.0, max_retries=3, dt_min=0.1)
        state = ctrl.run()
        assert state is ControllerState.DONE
        assert step.calls[:5] == pytest.approx([1.0, 0.5, 0.25, 0.125, 0.1])
        assert tracker.degraded
        assert ctrl.time == pytest.approx(2.0)

    def test_forced_step_accepted_even_if_diverged(self):
        step = _ScriptedStep(["diverge"] * 100, error=1.0)
        ctrl, _, tracker = _controller(step, t_end=1.0, dt_initial=1.0, dt_max=1.0, dt_min=1.0)
        state = ctrl.run()
        assert state is ControllerState.DONE
        assert ctrl.steps_computed == 1
        assert ctrl.time == pytest.approx(1.0)
        assert tracker.degraded

    def test_cancel_event(self):
        cancel = threading.Event()
        cancel.set()
        step = _ScriptedStep()
        ctrl, _, tracker = _controller(step, cancel=cancel)
        assert ctrl.run() is ControllerState.CANCELLED
        assert ctrl.steps_computed == 0
        assert step.calls == []
        assert tracker.status == "Cancelled"

    def test_cancel_callable_mid_run(self):
        step = _ScriptedStep(error=1.0)
        ctrl, _, _ = _controller(step, cancel=lambda: len(step.calls) >= 3)
        assert ctrl.run() is ControllerState.CANCELLED
        assert ctrl.steps_computed == 3

    def test_callbacks(self):
        accepted, diverged = [], []
        step = _ScriptedStep(["diverge"], error=1.0)
        ctrl, _, _ = _controller(step, t_end=2.0)
        ctrl.run(
            on_accept=lambda t, dt, i, outcome: accepted.append(i),
            on_diverge=lambda t, dt, outcome: diverged.append(outcome.reason),
        )
        assert diverged == ["too large"]
        assert accepted == list(range(1, len(accepted) + 1))
