"""Tests for thermal and hydraulic boundary conditions."""

import numpy as np
import pytest

from pygeotherm.boundaries import (
    BoundaryKind,
    FaceCondition,
    HydraulicBoundaries,
    ThermalBoundaries,
)
from pygeotherm.geometry import CylindricalMesh
from pygeotherm.options import SimulationOptions


def _make_mesh():
    theta = np.linspace(0.0, 2.0 * np.pi, 4, endpoint=False)
    return CylindricalMesh(
        r=[0.5, 1.0, 1.5, 2.0, 2.5],
        theta=theta,
        z=np.linspace(0.0, -4.0, 5),
        thermal_conductivity=2.5,
    )


def _field(mesh):
    rng = np.random.default_rng(0)
    return 280.0 + rng.random(mesh.shape)


def _bcs(outer, top, bottom):
    return ThermalBoundaries(outer=outer, top=top, bottom=bottom)


ADIABATIC = FaceCondition(BoundaryKind.ADIABATIC)


class TestThermalBoundaries:
    def test_inner_mirror(self):
        mesh = _make_mesh()
        T = _field(mesh)
        _bcs(ADIABATIC, ADIABATIC, ADIABATIC).apply(T, mesh, T.copy())
        np.testing.assert_array_equal(T[0], T[1])

    def test_dirichlet_value(self):
        mesh = _make_mesh()
        T = _field(mesh)
        bcs = _bcs(
            FaceCondition(BoundaryKind.DIRICHLET, 290.0),
            FaceCondition(BoundaryKind.DIRICHLET, 275.0),
            ADIABATIC,
        )
        bcs.apply(T, mesh, T.copy())
        assert np.all(T[-1, :, 1:-1] == 290.0)
        assert np.all(T[:, :, 0] == 275.0)

    def test_dirichlet_without_value_holds_initial(self):
        mesh = _make_mesh()
        initial = _field(mesh)
        T = np.full(mesh.shape, 300.0)
        dirichlet = FaceCondition(BoundaryKind.DIRICHLET)
        _bcs(dirichlet, dirichlet, dirichlet).apply(T, mesh, initial)
        np.testing.assert_array_equal(T[:, :, 0], initial[:, :, 0])
        np.testing.assert_array_equal(T[:, :, -1], initial[:, :, -1])
        np.testing.assert_array_equal(T[-1, :, 1:-1], initial[-1, :, 1:-1])

    def test_adiabatic_mirrors(self):
        mesh = _make_mesh()
        T = _field(mesh)
        _bcs(ADIABATIC, ADIABATIC, ADIABATIC).apply(T, mesh, T.copy())
        np.testing.assert_array_equal(T[-1, :, 1:-1], T[-2, :, 1:-1])
        np.testing.assert_array_equal(T[:, :, 0], T[:, :, 1])
        np.testing.assert_array_equal(T[:, :, -1], T[:, :, -2])

    def test_neumann_bottom_flux_exact(self):
        mesh = _make_mesh()
        T = _field(mesh)
        q = 0.065
        _bcs(ADIABATIC, ADIABATIC, FaceCondition(BoundaryKind.NEUMANN, q)).apply(
            T, mesh, T.copy()
        )
        flux = mesh.trans_z[:, :, -1] * (T[:, :, -1] - T[:, :, -2])
        np.testing.assert_allclose(flux, q * mesh.area_z[:, :, -1])
        # upward flux: the bottom row is warmer
        assert np.all(T[:, :, -1] > T[:, :, -2])

    def test_neumann_outer_flux_exact(self):
        mesh = _make_mesh()
        T = _field(mesh)
        q = 2.0
        _bcs(FaceCondition(BoundaryKind.NEUMANN, q), ADIABATIC, ADIABATIC).apply(
            T, mesh, T.copy()
        )
        flux = mesh.trans_r[-1] * (T[-1] - T[-2])
        np.testing.assert_allclose(flux[:, 1:-1], q * mesh.area_r[-1][:, 1:-1])

    def test_from_options(self):
        opts = SimulationOptions(
            outer_boundary=BoundaryKind.DIRICHLET,
            outer_temperature=285.0,
            bottom_boundary=BoundaryKind.NEUMANN,
            geothermal_heat_flux=0.08,
        )
        bcs = ThermalBoundaries.from_options(opts)
        assert bcs.outer == FaceCondition(BoundaryKind.DIRICHLET, 285.0)
        assert bcs.top == FaceCondition(BoundaryKind.ADIABATIC)
        assert bcs.bottom.value == pytest.approx(0.08)


class TestHydraulicBoundaries:
    def test_apply(self):
        h = np.random.default_rng(1).random((5, 4, 6))
        HydraulicBoundaries(2.0, -3.0).apply(h)
        assert np.all(h[:, :, 0] == 2.0)
        assert np.all(h[:, :, -1] == -3.0)
        np.testing.assert_array_equal(h[0, :, 1:-1], h[1, :, 1:-1])
        np.testing.assert_array_equal(h[-1, :, 1:-1], h[-2, :, 1:-1])
