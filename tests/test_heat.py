"""Tests for the heat transport solver."""

import numpy as np
import pytest

from pygeotherm.boundaries import BoundaryKind, FaceCondition, ThermalBoundaries
from pygeotherm.errors import SolverDivergedError
from pygeotherm.fields import FieldState, T_MAX
from pygeotherm.geometry import CylindricalMesh
from pygeotherm.materials import validate_materials
from pygeotherm.physics import HeatTransfer
from pygeotherm.postprocess import stored_energy
from pygeotherm.solvers import ScalarLanes, VectorLanes

ADIABATIC = FaceCondition(BoundaryKind.ADIABATIC)


def _make_mesh(ntheta=4):
    theta = np.linspace(0.0, 2.0 * np.pi, ntheta, endpoint=False)
    mesh = CylindricalMesh(
        r=np.linspace(1.0, 6.0, 6),
        theta=theta,
        z=np.linspace(0.0, -5.0, 6),
        thermal_conductivity=2.5,
        specific_heat=900.0,
        density=2650.0,
    )
    validate_materials(mesh)
    return mesh


def _make_heat(mesh, outer=ADIABATIC, top=ADIABATIC, bottom=ADIABATIC, T=280.0, **kwargs):
    bcs = ThermalBoundaries(outer=outer, top=top, bottom=bottom)
    heat = HeatTransfer(mesh, bcs, **kwargs)
    initial = T if isinstance(T, np.ndarray) else np.full(mesh.shape, T)
    state = FieldState(mesh, initial, np.zeros(mesh.shape))
    bcs.apply(state.T, mesh, state.initial_temperature)
    return heat, state


class TestHeatProperties:
    def test_name_and_field(self):
        heat, _ = _make_heat(_make_mesh())
        assert heat.name == "heat"
        assert heat.primary_field == "T"

    def test_coefficients(self):
        heat, _ = _make_heat(_make_mesh())
        coeff = heat.coefficients()
        np.testing.assert_allclose(coeff["bulk_heat_capacity"], 2650.0 * 900.0)
        np.testing.assert_allclose(coeff["diffusivity"], 2.5 / (2650.0 * 900.0))

    def test_relaxation_bounds(self):
        heat, _ = _make_heat(_make_mesh(), relaxation=0.5)
        for _ in range(100):
            heat.grow_relaxation()
        assert heat.relaxation == pytest.approx(0.9)
        for _ in range(100):
            heat.shrink_relaxation()
        assert heat.relaxation == pytest.approx(0.05)

    def test_relaxation_steps(self):
        heat, _ = _make_heat(_make_mesh(), relaxation=0.5)
        assert heat.grow_relaxation() == pytest.approx(0.525)
        assert heat.shrink_relaxation() == pytest.approx(0.3675)


class TestHeatSolve:
    def test_uniform_field_unchanged(self):
        mesh = _make_mesh()
        heat, state = _make_heat(mesh, T=285.0)
        report = heat.solve(state, 3600.0)
        assert report.converged
        assert report.iterations == 1
        np.testing.assert_allclose(state.T, 285.0)

    def test_hot_outer_boundary_warms_interior(self):
        mesh = _make_mesh()
        heat, state = _make_heat(
            mesh, outer=FaceCondition(BoundaryKind.DIRICHLET, 300.0), T=285.0
        )
        heat.solve(state, 86400.0)
        interior = state.T[1:-1, :, 1:-1]
        assert np.all(interior >= 285.0)
        assert np.all(interior <= 300.0)
        assert state.T[-2, 0, 2] > state.T[1, 0, 2]

    def test_adiabatic_conserves_energy(self):
        mesh = _make_mesh()
        T0 = 280.0 + np.random.default_rng(3).random(mesh.shape)
        heat, state = _make_heat(mesh, T=T0, tolerance=1e-11, max_iterations=500)
        start = state.T.copy()
        heat.solve(state, 3600.0)
        capacity = (mesh.heat_capacity * mesh.volume)[1:-1, :, 1:-1]
        scale = np.sum(capacity * np.abs(state.T - start)[1:-1, :, 1:-1])
        assert scale > 0
        assert abs(stored_energy(mesh, state.T, start)) < 1e-6 * scale

    def test_increment_limited(self):
        mesh = _make_mesh()
        heat, state = _make_heat(
            mesh, outer=FaceCondition(BoundaryKind.DIRICHLET, 300.0), T=280.0
        )
        heat.solve(state, 1e6)
        assert np.max(state.T[1:-1, :, 1:-1]) <= 285.0 + 1e-9

    def test_temperature_bounds(self):
        mesh = _make_mesh()
        heat, state = _make_heat(
            mesh, outer=FaceCondition(BoundaryKind.DIRICHLET, 500.0), T=472.0
        )
        heat.solve(state, 1e6)
        assert np.max(state.T) <= T_MAX

    def test_large_step_diverges(self):
        mesh = _make_mesh()
        heat, state = _make_heat(
            mesh, outer=FaceCondition(BoundaryKind.DIRICHLET, 470.0), T=280.0
        )
        with pytest.raises(SolverDivergedError) as info:
            heat.solve(state, 1e7)
        assert info.value.solver == "heat"
        assert "time step" in info.value.cause

    def test_non_finite_diverges(self):
        mesh = _make_mesh()
        T = np.full(mesh.shape, 280.0)
        T[2, 0, 2] = np.nan
        heat, state = _make_heat(mesh, T=T)
        with pytest.raises(SolverDivergedError, match="non-finite"):
            heat.solve(state, 60.0)

    def test_stall_reported(self):
        mesh = _make_mesh()
        heat, state = _make_heat(
            mesh, outer=FaceCondition(BoundaryKind.DIRICHLET, 300.0),
            T=280.0, tolerance=1e-14, max_iterations=2,
        )
        report = heat.solve(state, 3600.0)
        assert not report.converged
        assert report.iterations == 2


class TestHeatTransport:
    def _advect(self, lanes):
        mesh = _make_mesh(ntheta=10)
        T = 280.0 + np.random.default_rng(7).random(mesh.shape)
        heat, state = _make_heat(mesh, T=T, lanes=lanes)
        state.velocity[..., 0] = 2e-6
        state.velocity[..., 2] = -1e-6
        state.dispersion[...] = 1e-6
        heat.solve(state, 3600.0)
        return state.T.copy()

    def test_vector_lanes_match_scalar(self):
        np.testing.assert_allclose(
            self._advect(VectorLanes()), self._advect(ScalarLanes()), atol=1e-4
        )

    def test_advection_carries_heat_downstream(self):
        mesh = _make_mesh()
        T = np.full(mesh.shape, 280.0)
        T[:3] = 290.0
        heat, state = _make_heat(mesh, T=T)
        state.velocity[..., 0] = 1e-5
        heat.solve(state, 3600.0)
        # ring 3 sits just downstream of the warm rings
        assert np.all(state.T[3, :, 1:-1] > 280.0)
