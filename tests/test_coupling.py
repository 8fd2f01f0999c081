"""Tests for the atomic sequential step."""

import numpy as np
import pytest

from pygeotherm.boundaries import (
    BoundaryKind,
    FaceCondition,
    HydraulicBoundaries,
    ThermalBoundaries,
)
from pygeotherm.coupling import Accepted, Diverged, SequentialStep
from pygeotherm.fields import ExchangerState, FieldState
from pygeotherm.geometry import CylindricalMesh
from pygeotherm.materials import validate_materials
from pygeotherm.options import SimulationOptions
from pygeotherm.physics import BoreholeHeatExchanger, GroundwaterFlow, HeatTransfer


def _make_step(outer_temperature=470.0, with_flow=True):
    theta = np.linspace(0.0, 2.0 * np.pi, 4, endpoint=False)
    mesh = CylindricalMesh(
        r=np.linspace(1.0, 6.0, 6),
        theta=theta,
        z=np.linspace(0.0, -5.0, 6),
        thermal_conductivity=2.5,
        specific_heat=900.0,
        density=2650.0,
        permeability=1e-12,
    )
    validate_materials(mesh)
    head = np.broadcast_to((mesh.z * 2.0)[None, None, :], mesh.shape).copy()
    state = FieldState(mesh, np.full(mesh.shape, 280.0), head)
    bcs = ThermalBoundaries(
        outer=FaceCondition(BoundaryKind.DIRICHLET, outer_temperature),
        top=FaceCondition(BoundaryKind.ADIABATIC),
        bottom=FaceCondition(BoundaryKind.ADIABATIC),
    )
    bcs.apply(state.T, mesh, state.initial_temperature)
    heat = HeatTransfer(mesh, bcs)
    flow = None
    if with_flow:
        flow = GroundwaterFlow(mesh, HydraulicBoundaries(0.0, -10.0))
    opts = SimulationOptions(inlet_temperature=275.0)
    exchanger = BoreholeHeatExchanger(mesh, opts)
    fluid = ExchangerState(opts.inlet_temperature)
    return SequentialStep(state, fluid, heat, exchanger, flow), state, fluid


class TestSequentialStep:
    def test_accepted(self):
        step, state, fluid = _make_step(outer_temperature=290.0)
        outcome = step(600.0)
        assert isinstance(outcome, Accepted)
        assert outcome.flow is not None
        assert outcome.heat.iterations >= 1
        assert np.any(state.velocity != 0.0)
        assert np.all(state.dispersion >= 0.0)
        # fluid marched against the ground
        assert np.all(fluid.down > 275.0)

    def test_without_flow(self):
        step, state, _ = _make_step(outer_temperature=290.0, with_flow=False)
        outcome = step(600.0)
        assert isinstance(outcome, Accepted)
        assert outcome.flow is None
        assert np.all(state.velocity == 0.0)

    def test_diverged_rolls_back(self):
        step, state, fluid = _make_step(outer_temperature=470.0)
        T_before = state.T.copy()
        h_before = state.h.copy()
        down_before = fluid.down.copy()
        outcome = step(1e9)
        assert isinstance(outcome, Diverged)
        assert "heat" in outcome.reason
        np.testing.assert_array_equal(state.T, T_before)
        np.testing.assert_array_equal(state.h, h_before)
        np.testing.assert_array_equal(state.velocity, 0.0)
        np.testing.assert_array_equal(fluid.down, down_before)

    def test_repr(self):
        step, _, _ = _make_step()
        assert repr(step) == "SequentialStep(modules=['flow', 'heat'])"
