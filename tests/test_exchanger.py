"""Tests for pipe-flow correlations and the borehole heat exchanger."""

import math

import numpy as np
import pytest

from pygeotherm.fields import ExchangerState, FieldState
from pygeotherm.geometry import CylindricalMesh
from pygeotherm.materials import validate_materials
from pygeotherm.options import FlowConfiguration, HeatExchangerType, SimulationOptions
from pygeotherm.physics import (
    BoreholeHeatExchanger,
    internal_heat_transfer_coefficient,
    nusselt_number,
    overall_heat_transfer_coefficient,
    petukhov_friction_factor,
    prandtl_number,
    reynolds_number,
    seasonal_inlet_temperature,
)


def _make_exchanger(ground=290.0, **kwargs):
    defaults = dict(
        borehole_depth=10.0,
        domain_extension=2.0,
        domain_radius=5.0,
        radial_points=6,
        angular_points=4,
        vertical_points=7,
        inlet_temperature=280.0,
    )
    defaults.update(kwargs)
    opts = SimulationOptions(**defaults)
    mesh = CylindricalMesh.from_options(opts)
    validate_materials(mesh)
    state = FieldState(mesh, np.full(mesh.shape, ground), np.zeros(mesh.shape))
    return BoreholeHeatExchanger(mesh, opts), state, ExchangerState(opts.inlet_temperature)


def _make_coaxial(configuration=FlowConfiguration.COUNTER_FLOW, **kwargs):
    return _make_exchanger(
        heat_exchanger_type=HeatExchangerType.COAXIAL,
        flow_configuration=configuration,
        **kwargs,
    )


class TestCorrelations:
    def test_reynolds(self):
        re = reynolds_number(0.5, 0.032, 1e-3)
        assert re == pytest.approx(4 * 0.5 / (math.pi * 0.032 * 1e-3))

    def test_prandtl(self):
        assert prandtl_number(4186.0, 1e-3, 0.6) == pytest.approx(6.9767, rel=1e-4)

    @pytest.mark.parametrize("prandtl", [0.7, 7.0, 100.0])
    def test_laminar_nusselt(self, prandtl):
        assert nusselt_number(1000.0, prandtl) == 4.36
        assert nusselt_number(2299.0, prandtl) == 4.36

    def test_petukhov(self):
        f = petukhov_friction_factor(1e4)
        assert f == pytest.approx(0.03148, rel=1e-3)

    def test_gnielinski_by_hand(self):
        re, pr = 1e4, 7.0
        f = (0.79 * math.log(re) - 1.64) ** -2
        expected = (f / 8) * (re - 1000) * pr / (
            1 + 12.7 * math.sqrt(f / 8) * (pr ** (2 / 3) - 1)
        )
        assert nusselt_number(re, pr) == pytest.approx(expected, rel=1e-12)
        assert nusselt_number(re, pr) == pytest.approx(79.5, rel=1e-2)

    def test_overall_coefficient_series(self):
        h = 1000.0
        U = overall_heat_transfer_coefficient(h, 0.016, 0.020, 0.4)
        wall = 0.016 * math.log(0.020 / 0.016) / 0.4
        assert U == pytest.approx(1.0 / (1.0 / h + wall))
        assert U < h

    def test_internal_coefficient_by_hand(self):
        h = 2000.0
        resistance = (
            1.0 / (h * math.pi * 0.032)
            + math.log(0.036 / 0.032) / (2.0 * math.pi * 0.4)
            + 1.0 / (1500.0 * math.pi * 0.036)
        )
        U = internal_heat_transfer_coefficient(h, 0.032, 0.036, 0.4)
        assert U == pytest.approx(1.0 / (resistance * math.pi * 0.032))

    def test_internal_coefficient_insulated(self):
        assert internal_heat_transfer_coefficient(2000.0, 0.032, 0.036, 0.0) == 0.0


class TestExchangerSetup:
    def test_turbulent_defaults(self):
        ex, _, _ = _make_exchanger()
        assert ex.reynolds > 2300
        assert ex.nusselt > 4.36
        assert 0.0 < ex.effectiveness < 1.0
        assert ex.legs == 2

    def test_laminar_low_flow(self):
        ex, _, _ = _make_exchanger(mass_flow_rate=0.01)
        assert ex.nusselt == 4.36

    def test_segments(self):
        ex, _, _ = _make_exchanger()
        assert len(ex.segment_depths) == 20
        assert ex.segment_length == pytest.approx(0.5)
        assert ex.segment_depths[0] == pytest.approx(0.25)

    def test_source_cells(self):
        ex, _, _ = _make_exchanger()
        # ring 1 over rows 1..5
        assert ex.n_source_cells == 4 * 5


class TestFluidProfile:
    def test_u_tube_warms_towards_ground(self):
        ex, state, fluid = _make_exchanger(ground=290.0)
        ex.update_fluid(state, fluid)
        assert np.all(np.diff(fluid.down) > 0)
        assert np.all(fluid.down < 290.0)
        # up leg keeps warming on its way to the outlet
        assert fluid.up[0] > fluid.down[-1]
        assert ex.outlet_temperature(fluid) == fluid.up[0]
        assert ex.heat_extraction_rate(fluid) > 0.0

    def test_extraction_rate_formula(self):
        ex, _, fluid = _make_exchanger()
        fluid.up[0] = 285.0
        assert ex.heat_extraction_rate(fluid) == pytest.approx(0.5 * 4186.0 * 5.0)

    def test_no_exchange_at_equilibrium(self):
        ex, state, fluid = _make_exchanger(ground=280.0)
        ex.update_fluid(state, fluid)
        np.testing.assert_allclose(fluid.down, 280.0)
        assert ex.heat_extraction_rate(fluid) == pytest.approx(0.0)


class TestCoaxial:
    def test_single_leg_against_ground(self):
        ex, _, _ = _make_coaxial()
        assert ex.legs == 1
        assert ex.U_internal > 0.0
        assert ex.ntu_internal > 0.0

    def test_insulated_counter_flow(self):
        ex, state, fluid = _make_coaxial(inner_pipe_conductivity=0.0, fluid_relaxation=1.0)
        ex.update_fluid(state, fluid)
        assert ex.U_internal == 0.0
        # inner pipe carries the inlet to the bottom untouched
        np.testing.assert_allclose(fluid.down, 280.0)
        assert fluid.up[-1] == pytest.approx(280.0)
        assert np.all(np.diff(fluid.up) < 0.0)
        assert np.all(fluid.up < 290.0)
        np.testing.assert_allclose(ex.fluid_temperature(fluid), fluid.up)

    def test_insulated_reversed_flow(self):
        ex, state, fluid = _make_coaxial(
            FlowConfiguration.COUNTER_FLOW_REVERSED,
            inner_pipe_conductivity=0.0,
            fluid_relaxation=1.0,
        )
        ex.update_fluid(state, fluid)
        assert np.all(np.diff(fluid.down) > 0.0)
        # inner return pipe keeps the bottom temperature
        np.testing.assert_allclose(fluid.up, fluid.down[-1])
        np.testing.assert_allclose(ex.fluid_temperature(fluid), fluid.down)

    def test_inner_pipe_preheats_down_stream(self):
        ex, state, fluid = _make_coaxial(fluid_relaxation=1.0)
        ex.update_fluid(state, fluid)
        assert fluid.down[0] > 280.0
        assert fluid.down[-1] > fluid.down[0]
        assert fluid.down[-1] < fluid.up[0] < 290.0

    def test_configurations_give_different_outlets(self):
        outlets = {}
        for configuration in FlowConfiguration:
            ex, state, fluid = _make_coaxial(configuration, fluid_relaxation=1.0)
            ex.update_fluid(state, fluid)
            assert ex.heat_extraction_rate(fluid) > 0.0
            outlets[configuration] = ex.outlet_temperature(fluid)
        standard = outlets[FlowConfiguration.COUNTER_FLOW]
        reversed_flow = outlets[FlowConfiguration.COUNTER_FLOW_REVERSED]
        assert abs(standard - reversed_flow) > 1e-3

    def test_update_is_relaxed(self):
        full, state, settled = _make_coaxial(fluid_relaxation=1.0)
        full.update_fluid(state, settled)
        ex, _, fluid = _make_coaxial(fluid_relaxation=0.3)
        ex.update_fluid(state, fluid)
        np.testing.assert_allclose(fluid.down, 280.0 + 0.3 * (settled.down - 280.0))
        np.testing.assert_allclose(fluid.up, 280.0 + 0.3 * (settled.up - 280.0))

    def test_streams_settle(self):
        ex, state, fluid = _make_coaxial(fluid_relaxation=1.0)
        ground = ex.ground_temperature(state.T)
        down, up = ex.coaxial_profile(ground, fluid)
        fluid.down[:] = down
        fluid.up[:] = up
        again_down, again_up = ex.coaxial_profile(ground, fluid)
        np.testing.assert_allclose(again_down, down, atol=1e-3)
        np.testing.assert_allclose(again_up, up, atol=1e-3)


class TestSeasonalInlet:
    def _inlet(self, time, curve):
        return seasonal_inlet_temperature(time, curve, 0.5, 4186.0, 343.15, 278.15)

    def test_charging_discharging_and_idle(self):
        curve = [0.0] * 365
        curve[0] = 240.0
        curve[1] = -240.0
        # 240 kWh/day is 10 kW
        lift = 10000.0 / (0.5 * 4186.0)
        assert self._inlet(3600.0, curve) == pytest.approx(343.15 + lift)
        assert self._inlet(1.5 * 86400.0, curve) == pytest.approx(278.15 - lift)
        assert self._inlet(2.5 * 86400.0, curve) == pytest.approx(310.65)

    def test_year_wraps(self):
        curve = [0.0] * 365
        curve[0] = 240.0
        assert self._inlet(365 * 86400.0 + 60.0, curve) == self._inlet(60.0, curve)

    def test_clamped(self):
        curve = [1e6] * 182 + [-1e6] * 183
        assert self._inlet(0.0, curve) == 373.15
        assert self._inlet(200 * 86400.0, curve) == 273.15


class TestInjection:
    def test_extraction_cools_grout(self):
        ex, state, fluid = _make_exchanger(ground=290.0)
        power = ex.inject(state, fluid, 600.0)
        assert power < 0.0
        cells = state.T[1, :, 1:6]
        assert np.all(cells < 290.0)
        # everything else untouched
        assert np.all(state.T[2:] == 290.0)
        assert np.all(state.T[0] == 290.0)

    def test_change_limited(self):
        ex, state, fluid = _make_exchanger(ground=290.0)
        ex.inject(state, fluid, 1e9)
        np.testing.assert_allclose(state.T[1, :, 1:6], 289.0)

    def test_power_matches_energy(self):
        ex, state, fluid = _make_exchanger(ground=290.0)
        mesh = ex.mesh
        before = state.T.copy()
        power = ex.inject(state, fluid, 60.0)
        energy = np.sum(mesh.heat_capacity * mesh.volume * (state.T - before))
        assert power * 60.0 == pytest.approx(energy)
