"""Tests for materials, presets and material validation."""

import dataclasses
import logging

import numpy as np
import pytest

from pygeotherm.geometry import CylindricalMesh
from pygeotherm.materials import (
    PROPERTY_BOUNDS,
    PROPERTY_NAMES,
    Material,
    MaterialMap,
    granite,
    sandstone,
    validate_materials,
)


def _make_mesh(**props):
    theta = np.linspace(0.0, 2.0 * np.pi, 4, endpoint=False)
    return CylindricalMesh(
        r=[0.5, 1.0, 1.5, 2.0],
        theta=theta,
        z=np.linspace(0.0, -3.0, 4),
        **props,
    )


class TestMaterial:
    def test_accessors(self):
        assert granite.thermal_conductivity == 3.0
        assert granite.density == 2650.0

    def test_derived(self):
        mat = Material(
            "m",
            thermal_conductivity=2.0,
            specific_heat=1000.0,
            density=2000.0,
            porosity=0.2,
            permeability=1e-14,
        )
        assert mat.volumetric_heat_capacity == pytest.approx(2e6)
        assert mat.diffusivity == pytest.approx(1e-6)

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            sandstone.porosity = 0.5

    def test_every_property_present(self):
        for name in PROPERTY_NAMES:
            assert getattr(sandstone, name) > 0


class TestMaterialMap:
    def test_cell_property(self):
        ids = np.array([[1, 2], [2, 1]])
        mmap = MaterialMap({1: sandstone, 2: granite}, ids)
        lam = mmap.cell_property("thermal_conductivity")
        np.testing.assert_allclose(lam, [[2.8, 3.0], [3.0, 2.8]])

    def test_unknown_id(self):
        mmap = MaterialMap({1: sandstone}, np.array([1, 3]))
        with pytest.raises(KeyError):
            mmap.cell_property("density")


class TestValidateMaterials:
    def test_valid_mesh_untouched(self):
        mesh = _make_mesh()
        counts = validate_materials(mesh)
        assert all(n == 0 for n in counts.values())
        assert set(counts) == set(PROPERTY_BOUNDS)

    def test_clamps_out_of_range(self):
        lam = np.full((4, 4, 4), 2.0)
        lam[1, 0, 1] = np.nan
        lam[1, 1, 1] = 20.0
        lam[1, 2, 1] = 0.01
        lam[1, 3, 1] = np.inf
        mesh = _make_mesh(thermal_conductivity=lam)
        counts = validate_materials(mesh)
        assert counts["thermal_conductivity"] == 4
        np.testing.assert_allclose(mesh.thermal_conductivity[1, :, 1], [0.1, 10.0, 0.1, 10.0])
        assert np.all(np.isfinite(mesh.trans_r))

    def test_negative_infinity_maps_to_lower_bound(self):
        cp = np.full((4, 4, 4), 900.0)
        cp[2, 0, 2] = -np.inf
        mesh = _make_mesh(specific_heat=cp)
        validate_materials(mesh)
        assert mesh.specific_heat[2, 0, 2] == PROPERTY_BOUNDS["specific_heat"][0]

    def test_every_property_in_range(self):
        mesh = _make_mesh(
            porosity=1.5, permeability=1e-3, density=10.0, specific_heat=1e5,
        )
        validate_materials(mesh)
        for name, (lower, upper) in PROPERTY_BOUNDS.items():
            arr = getattr(mesh, name)
            assert np.all(arr >= lower) and np.all(arr <= upper)

    def test_transmissivities_recomputed(self):
        mesh = _make_mesh(thermal_conductivity=50.0)
        validate_materials(mesh)
        np.testing.assert_allclose(mesh.trans_r, 10.0 * mesh.geom_r)

    def test_mesh_frozen_afterwards(self):
        mesh = _make_mesh()
        validate_materials(mesh)
        assert mesh.frozen
        with pytest.raises(ValueError):
            mesh.density[0, 0, 0] = 1.0

    def test_warns_on_clamp(self, caplog):
        mesh = _make_mesh(porosity=2.0)
        with caplog.at_level(logging.WARNING, logger="pygeotherm"):
            validate_materials(mesh)
        assert "porosity" in caplog.text
