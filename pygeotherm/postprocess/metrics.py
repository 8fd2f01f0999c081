"""Heat-pump and ground performance metrics.

Functions
---------
coefficient_of_performance
    Heat-pump COP from the mean of inlet and outlet temperature.
total_energy
    Trapezoidal integral of a power series.
borehole_thermal_resistance
    Fluid-to-ground resistance per unit length.
effective_properties
    Volume-weighted ground conductivity and diffusivity.
thermal_influence_radius
    Radius reached by a given temperature change.
layer_contributions
    Heat-flux share, temperature change and radial flow per layer.
stored_energy
    Heat stored in interior cells relative to the initial field.
pressure_drawdown
    Largest pore-pressure drop at the borehole wall.
storage_metrics
    Charge and discharge balance of a thermal-storage run.
compute_metrics
    All of the above for a finished run.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
from scipy.integrate import trapezoid

#: Heat rate below which COP and resistance fall back to defaults (W).
MIN_HEAT_RATE = 100.0

DEFAULT_COP = 4.0
MAX_COP = 10.0
DEFAULT_RESISTANCE = 0.1
RESISTANCE_BOUNDS = (0.01, 1.0)

#: Temperature change that marks the influence radius (K).
INFLUENCE_THRESHOLD = 0.5


@dataclass(frozen=True)
class LayerContribution:
    """Share of one lithology layer in the borehole heat exchange.

    Attributes:
        name: Layer name.
        depth_from: Top depth (m).
        depth_to: Bottom depth (m).
        heat_flux_share: Percentage of the total radial heat flux towards
            the borehole wall.
        heat_flux: Radial heat flow towards the wall (W).
        temperature_change: Mean change from the initial field (K).
        flow_rate: Radial groundwater flow through the wall (m³/s).
    """

    name: str
    depth_from: float
    depth_to: float
    heat_flux_share: float
    heat_flux: float
    temperature_change: float
    flow_rate: float


@dataclass(frozen=True)
class StorageMetrics:
    """Charge and discharge balance of a thermal-storage run.

    Charging means heat flowing from the fluid into the ground, i.e. a
    negative extraction rate.

    Attributes:
        energy_charged: Heat delivered to the ground (J).
        energy_discharged: Heat recovered from the ground (J).
        storage_efficiency: Discharged over charged energy (%).
        average_charging_power: Mean power over charging steps (W).
        average_discharging_power: Mean power over discharging steps (W).
        peak_charging_power: Largest charging power (W).
        peak_discharging_power: Largest discharging power (W).
        cycles: Completed switches from charging to discharging.
        initial_ground_temperature: Mean ground temperature around the
            pipe before the first step (K).
        final_ground_temperature: Same after the last step (K).
        min_ground_temperature: Lowest value of that series (K).
        max_ground_temperature: Highest value of that series (K).
    """

    energy_charged: float
    energy_discharged: float
    storage_efficiency: float
    average_charging_power: float
    average_discharging_power: float
    peak_charging_power: float
    peak_discharging_power: float
    cycles: int
    initial_ground_temperature: float
    final_ground_temperature: float
    min_ground_temperature: float
    max_ground_temperature: float

    @property
    def temperature_swing(self) -> float:
        return self.max_ground_temperature - self.min_ground_temperature

    @property
    def net_temperature_change(self) -> float:
        return self.final_ground_temperature - self.initial_ground_temperature


@dataclass
class PerformanceMetrics:
    """Aggregate metrics of a run."""

    average_extraction_rate: float = 0.0
    total_extracted_energy: float = 0.0
    average_cop: float = DEFAULT_COP
    borehole_thermal_resistance: float = DEFAULT_RESISTANCE
    effective_conductivity: float = 0.0
    effective_diffusivity: float = 0.0
    thermal_influence_radius: float = 0.0
    mean_peclet: float = 0.0
    stored_energy: float = 0.0
    pressure_drawdown: float = 0.0
    longitudinal_dispersivity: float = 0.0
    transverse_dispersivity: float = 0.0
    layers: list[LayerContribution] = field(default_factory=list)
    storage: StorageMetrics | None = None


# ---------------------------------------------------------------------------
# Heat pump
# ---------------------------------------------------------------------------

def coefficient_of_performance(
    heat_rate: float,
    inlet_temperature: float,
    outlet_temperature: float,
    supply_temperature: float = 308.15,
    efficiency: float = 0.6,
) -> float:
    """Heat-pump COP as a fraction of the Carnot value.

    ``COP = η · T_supply / ΔT``, capped at 10, with ``T_avg`` the mean of
    inlet and outlet.  When heat is extracted (``Q > 0``) the pump lifts
    from the fluid to the supply, ``ΔT = max(1, T_supply − T_avg)``;
    otherwise it rejects into the fluid, ``ΔT = max(1, T_avg − T_supply)``.
    Below 100 W of heat exchange the default 4.0 is returned.

    Args:
        heat_rate: Heat extraction rate (W).
        inlet_temperature: Fluid entering the borehole (K).
        outlet_temperature: Fluid leaving the borehole (K).
        supply_temperature: Heating supply temperature (K).
        efficiency: Fraction of the Carnot COP achieved.
    """
    if abs(heat_rate) <= MIN_HEAT_RATE:
        return DEFAULT_COP
    average = 0.5 * (inlet_temperature + outlet_temperature)
    if heat_rate > 0:
        lift = max(1.0, supply_temperature - average)
    else:
        lift = max(1.0, average - supply_temperature)
    return min(MAX_COP, supply_temperature / lift * efficiency)


def total_energy(times: Sequence[float], rates: Sequence[float]) -> float:
    """Integrate *rates* (W) over *times* (s) with the trapezoidal rule (J)."""
    if len(times) < 2:
        return 0.0
    return float(trapezoid(np.asarray(rates, dtype=float), np.asarray(times, dtype=float)))


def borehole_thermal_resistance(
    heat_rate: float,
    length: float,
    ground_temperature: float,
    fluid_temperature: float,
) -> float:
    """Borehole resistance ``|T_ground − T_fluid| / (|Q| / L)`` (m·K/W).

    Clamped to [0.01, 1]; 0.1 when the heat rate is below 100 W.
    """
    if abs(heat_rate) <= MIN_HEAT_RATE or length <= 0:
        return DEFAULT_RESISTANCE
    per_length = abs(heat_rate) / length
    resistance = abs(ground_temperature - fluid_temperature) / per_length
    return float(np.clip(resistance, *RESISTANCE_BOUNDS))


# ---------------------------------------------------------------------------
# Ground
# ---------------------------------------------------------------------------

def effective_properties(mesh: Any, mask: np.ndarray | None = None) -> tuple[float, float]:
    """Volume-weighted conductivity (W/(m·K)) and diffusivity (m²/s).

    Args:
        mesh: The cylindrical mesh.
        mask: Cells to include; defaults to all non-grout cells.
    """
    if mask is None:
        mask = ~mesh.heat_exchanger_mask
    volume = mesh.volume[mask]
    if volume.sum() <= 0:
        return 0.0, 0.0
    conductivity = np.average(mesh.thermal_conductivity[mask], weights=volume)
    diffusivity = np.average(mesh.diffusivity[mask], weights=volume)
    return float(conductivity), float(diffusivity)


def thermal_influence_radius(
    mesh: Any,
    temperature: np.ndarray,
    initial: np.ndarray,
    elapsed: float,
    diffusivity: float,
    pipe_outer_diameter: float,
    threshold: float = INFLUENCE_THRESHOLD,
) -> float:
    """Radius around the borehole reached by a *threshold* change (m).

    The observed radius is the largest ring whose angular-mean change is at
    least *threshold* at a quarter, half and three quarters of the depth.
    It is compared with the conduction estimate ``2√(α t / π)``; the
    larger value is floored at ``max(1, 20 d_o)`` and capped at 80 % of
    the domain radius.
    """
    change = np.abs(temperature - initial).mean(axis=1)
    observed = 0.0
    for k in (mesh.nz // 4, mesh.nz // 2, 3 * mesh.nz // 4):
        reached = np.nonzero(change[:, k] >= threshold)[0]
        if len(reached):
            observed = max(observed, float(mesh.r[reached.max()]))
    theoretical = 2.0 * math.sqrt(max(diffusivity, 0.0) * max(elapsed, 0.0) / math.pi)
    radius = max(observed, theoretical, max(1.0, 20.0 * pipe_outer_diameter))
    return float(min(radius, 0.8 * mesh.r[-1]))


def layer_contributions(
    mesh: Any,
    state: Any,
    layers: Sequence[Any],
) -> list[LayerContribution]:
    """Per-layer heat exchange through the face between rings 1 and 2.

    Heat flux counts positive towards the borehole; flow rates are the
    radial seepage through the ring-1 wall, ``v_r r dθ dz``.
    """
    T = state.T
    flux_rows = np.sum(mesh.trans_r[1] * (T[2] - T[1]), axis=0)
    v_r = state.velocity[1, :, :, 0]
    flow_rows = np.sum(v_r * mesh.r[1] * mesh.dtheta, axis=0) * mesh.dz
    change_rows = (T - state.initial_temperature).mean(axis=(0, 1))

    depth = mesh.depth
    raw = []
    for layer in layers:
        rows = layer.contains(depth)
        if not rows.any():
            raw.append((layer, 0.0, 0.0, 0.0))
            continue
        raw.append((
            layer,
            float(flux_rows[rows].sum()),
            float(change_rows[rows].mean()),
            float(flow_rows[rows].sum()),
        ))

    total = sum(abs(r[1]) for r in raw)
    out = []
    for layer, flux, dT, flow in raw:
        share = 100.0 * abs(flux) / total if total > 0 else 0.0
        out.append(LayerContribution(
            name=layer.name,
            depth_from=layer.depth_from,
            depth_to=layer.depth_to,
            heat_flux_share=share,
            heat_flux=flux,
            temperature_change=dT,
            flow_rate=flow,
        ))
    return out


def stored_energy(mesh: Any, temperature: np.ndarray, initial: np.ndarray) -> float:
    """Heat gained by interior cells since the initial field (J)."""
    inner = (slice(1, mesh.nr - 1), slice(None), slice(1, mesh.nz - 1))
    capacity = (mesh.heat_capacity * mesh.volume)[inner]
    return float(np.sum(capacity * (temperature[inner] - initial[inner])))


def pressure_drawdown(state: Any) -> float:
    """Largest drop of pore pressure on the borehole wall ring (Pa).

    Measured against the pressure of the initial head; zero when the
    pressure only rose.
    """
    wall = (1, slice(None), slice(1, -1))
    drop = state.initial_pressure[wall] - state.pressure[wall]
    return float(max(np.max(drop), 0.0))


def storage_metrics(
    times: Sequence[float],
    extraction_rates: Sequence[float],
    ground_temperatures: Sequence[float],
) -> StorageMetrics:
    """Charge and discharge balance from the per-step series.

    Args:
        times: Simulated time after each step (s); the first rate is
            held back to t = 0 as in :func:`compute_metrics`.
        extraction_rates: Heat taken up by the fluid per step (W).
        ground_temperatures: Mean ground temperature around the pipe,
            starting with the value before the first step (K).
    """
    rates = np.asarray(extraction_rates, dtype=float)
    series_times = [0.0] + list(times)
    held = np.concatenate([rates[:1], rates])
    charging = np.clip(-held, 0.0, None)
    discharging = np.clip(held, 0.0, None)
    charged = total_energy(series_times, charging)
    discharged = total_energy(series_times, discharging)

    into_ground = rates[rates < 0.0]
    out_of_ground = rates[rates > 0.0]
    modes = np.sign(rates[rates != 0.0])
    cycles = int(np.count_nonzero((modes[:-1] < 0) & (modes[1:] > 0)))
    ground = np.asarray(ground_temperatures, dtype=float)

    return StorageMetrics(
        energy_charged=charged,
        energy_discharged=discharged,
        storage_efficiency=100.0 * discharged / charged if charged > 0 else 0.0,
        average_charging_power=float(-into_ground.mean()) if len(into_ground) else 0.0,
        average_discharging_power=float(out_of_ground.mean()) if len(out_of_ground) else 0.0,
        peak_charging_power=float(-into_ground.min()) if len(into_ground) else 0.0,
        peak_discharging_power=float(out_of_ground.max()) if len(out_of_ground) else 0.0,
        cycles=cycles,
        initial_ground_temperature=float(ground[0]),
        final_ground_temperature=float(ground[-1]),
        min_ground_temperature=float(ground.min()),
        max_ground_temperature=float(ground.max()),
    )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def compute_metrics(
    mesh: Any,
    state: Any,
    exchanger: Any,
    exchanger_state: Any,
    options: Any,
    times: Sequence[float],
    extraction_rates: Sequence[float],
    cop_values: Sequence[float],
    ground_temperatures: Sequence[float] = (),
) -> PerformanceMetrics:
    """Aggregate metrics of a run from its final state and series.

    *ground_temperatures* feeds the storage balance of a thermal-storage
    run and is ignored otherwise.
    """
    elapsed = float(times[-1]) if len(times) else 0.0
    series_times = [0.0] + list(times)
    series_rates = ([extraction_rates[0]] if len(extraction_rates) else []) + list(
        extraction_rates
    )
    energy = total_energy(series_times, series_rates)
    average_rate = float(np.mean(extraction_rates)) if len(extraction_rates) else 0.0

    conductivity, diffusivity = effective_properties(mesh)
    ground = float(np.mean(exchanger.ground_temperature(state.T)))
    fluid = float(np.mean(exchanger.fluid_temperature(exchanger_state)))
    final_rate = float(extraction_rates[-1]) if len(extraction_rates) else 0.0
    storage = None
    if options.enable_btes_mode and len(ground_temperatures):
        storage = storage_metrics(times, extraction_rates, ground_temperatures)

    return PerformanceMetrics(
        average_extraction_rate=average_rate,
        total_extracted_energy=energy,
        average_cop=float(np.mean(cop_values)) if len(cop_values) else DEFAULT_COP,
        borehole_thermal_resistance=borehole_thermal_resistance(
            final_rate, exchanger.depth, ground, fluid
        ),
        effective_conductivity=conductivity,
        effective_diffusivity=diffusivity,
        thermal_influence_radius=thermal_influence_radius(
            mesh,
            state.T,
            state.initial_temperature,
            elapsed,
            diffusivity,
            options.pipe_outer_diameter,
        ),
        mean_peclet=float(np.mean(state.peclet)),
        stored_energy=stored_energy(mesh, state.T, state.initial_temperature),
        pressure_drawdown=pressure_drawdown(state),
        longitudinal_dispersivity=options.longitudinal_dispersivity,
        transverse_dispersivity=options.transverse_dispersivity,
        layers=layer_contributions(mesh, state, options.lithology),
        storage=storage,
    )
