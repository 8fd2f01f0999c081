"""Borehole heat exchanger: pipe-flow correlations and ground coupling.

The circulating fluid is modelled as a 1-D profile of
:data:`~pygeotherm.fields.state.N_SEGMENTS` segments per leg.  Heat
exchange per segment follows the effectiveness-NTU method; the ground
sees the exchange as a volumetric source in the grouted cells.

Functions
---------
reynolds_number, prandtl_number, petukhov_friction_factor, nusselt_number,
overall_heat_transfer_coefficient, internal_heat_transfer_coefficient
    Pipe-flow correlations.
seasonal_inlet_temperature
    Inlet temperature of a thermal-storage run on a given day.

Classes
-------
BoreholeHeatExchanger
    Couples an :class:`~pygeotherm.fields.state.ExchangerState` to the
    ground temperature field.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

import numpy as np

from pygeotherm.fields.state import N_SEGMENTS, T_MAX, T_MIN
from pygeotherm.options import FlowConfiguration, HeatExchangerType

logger = logging.getLogger(__name__)

#: Nusselt number of fully developed laminar pipe flow at constant wall flux.
LAMINAR_NUSSELT = 4.36

#: Reynolds number below which pipe flow is laminar.
CRITICAL_REYNOLDS = 2300.0

#: Largest temperature change the source may impose on a cell per step (K).
MAX_SOURCE_CHANGE = 1.0

#: Rings sampled for the ground temperature seen by the fluid.
GROUND_RINGS = 6

#: Film coefficient on the annulus side of a coaxial inner pipe (W/(m²·K)).
ANNULUS_FILM_COEFFICIENT = 1500.0

#: Sweeps and tolerance (K) of the coupled coaxial streams.
COAXIAL_SWEEPS = 20
COAXIAL_TOLERANCE = 1e-4

#: Inlet temperature limits of a thermal-storage run (K).
STORAGE_INLET_BOUNDS = (273.15, 373.15)


# ---------------------------------------------------------------------------
# Correlations
# ---------------------------------------------------------------------------

def reynolds_number(mass_flow_rate: float, diameter: float, viscosity: float) -> float:
    """Pipe Reynolds number ``Re = 4ṁ / (π D μ)``."""
    return 4.0 * mass_flow_rate / (math.pi * diameter * viscosity)


def prandtl_number(specific_heat: float, viscosity: float, conductivity: float) -> float:
    """Prandtl number ``Pr = c_p μ / k``."""
    return specific_heat * viscosity / conductivity


def petukhov_friction_factor(reynolds: float) -> float:
    """Darcy friction factor ``f = (0.79 ln Re − 1.64)⁻²`` for smooth pipes."""
    return (0.79 * math.log(reynolds) - 1.64) ** -2


def nusselt_number(reynolds: float, prandtl: float) -> float:
    """Nusselt number of internal pipe flow.

    Laminar flow (``Re < 2300``) returns the constant 4.36.  Otherwise
    the Gnielinski correlation with the Petukhov friction factor::

        Nu = (f/8)(Re − 1000) Pr / (1 + 12.7 √(f/8) (Pr^(2/3) − 1))

    Args:
        reynolds: Reynolds number.
        prandtl: Prandtl number.

    Returns:
        Nusselt number.
    """
    if reynolds < CRITICAL_REYNOLDS:
        return LAMINAR_NUSSELT
    f = petukhov_friction_factor(reynolds)
    numerator = (f / 8.0) * (reynolds - 1000.0) * prandtl
    denominator = 1.0 + 12.7 * math.sqrt(f / 8.0) * (prandtl ** (2.0 / 3.0) - 1.0)
    return numerator / denominator


def overall_heat_transfer_coefficient(
    film_coefficient: float,
    inner_radius: float,
    outer_radius: float,
    pipe_conductivity: float,
) -> float:
    """Overall coefficient U (W/(m²·K)) referred to the inner pipe wall.

    Convection and wall conduction resistances act in series::

        1/U = 1/h + r_i ln(r_o/r_i) / k_pipe
    """
    wall = inner_radius * math.log(outer_radius / inner_radius) / pipe_conductivity
    return 1.0 / (1.0 / film_coefficient + wall)


def internal_heat_transfer_coefficient(
    film_coefficient: float,
    inner_diameter: float,
    outer_diameter: float,
    pipe_conductivity: float,
    annulus_film: float = ANNULUS_FILM_COEFFICIENT,
) -> float:
    """Coefficient between the two streams of a coaxial exchanger.

    Inner film, inner pipe wall and annulus film resistances per metre
    act in series; the result is referred to the inner pipe's inner wall.

    Args:
        film_coefficient: Film coefficient inside the inner pipe (W/(m²·K)).
        inner_diameter: Inner diameter of the inner pipe (m).
        outer_diameter: Outer diameter of the inner pipe (m).
        pipe_conductivity: Inner pipe wall conductivity (W/(m·K)).
        annulus_film: Film coefficient on the annulus side (W/(m²·K)).

    Returns:
        U (W/(m²·K)), zero for an insulating wall.
    """
    if pipe_conductivity < 1e-6:
        return 0.0
    resistance = (
        1.0 / (film_coefficient * math.pi * inner_diameter)
        + math.log(outer_diameter / inner_diameter) / (2.0 * math.pi * pipe_conductivity)
        + 1.0 / (annulus_film * math.pi * outer_diameter)
    )
    return 1.0 / (resistance * math.pi * inner_diameter)


def seasonal_inlet_temperature(
    time: float,
    curve: Sequence[float],
    mass_flow_rate: float,
    specific_heat: float,
    charging_temperature: float,
    discharging_temperature: float,
) -> float:
    """Inlet temperature of a thermal-storage run at *time*.

    The daily energy ``E`` (kWh/day) of the current day of the year is
    turned into a power and a fluid temperature lift
    ``ΔT = |E| · 1000 / 24 / (ṁ c_p)``.  Charging days (``E > 0``) inject
    at the charging temperature plus ``ΔT``, discharging days at the
    discharging temperature minus ``ΔT``, idle days at the mean of the
    two.  The result is clamped to 0..100 °C.

    Args:
        time: Simulated time (s).
        curve: Daily energies; the year wraps every ``len(curve)`` days.
        mass_flow_rate: ṁ (kg/s).
        specific_heat: c_p (J/(kg·K)).
        charging_temperature: Base inlet when charging (K).
        discharging_temperature: Base inlet when discharging (K).

    Returns:
        Inlet temperature (K).
    """
    day = int(time // 86400.0) % len(curve)
    energy = curve[day]
    lift = abs(energy) * 1000.0 / 24.0 / (mass_flow_rate * specific_heat)
    if energy > 0:
        inlet = charging_temperature + lift
    elif energy < 0:
        inlet = discharging_temperature - lift
    else:
        inlet = 0.5 * (charging_temperature + discharging_temperature)
    lower, upper = STORAGE_INLET_BOUNDS
    return min(max(inlet, lower), upper)


# ---------------------------------------------------------------------------
# Coupler
# ---------------------------------------------------------------------------

class BoreholeHeatExchanger:
    """Fluid profile along the borehole and its exchange with the ground.

    Args:
        mesh: The cylindrical mesh; cells with id 255 on interior rings
            receive the source term.
        options: :class:`~pygeotherm.options.SimulationOptions`.
        n_segments: Segments per leg.
    """

    def __init__(self, mesh: Any, options: Any, n_segments: int = N_SEGMENTS) -> None:
        self.mesh = mesh
        self.exchanger_type = options.heat_exchanger_type
        self.depth = options.heat_exchanger_depth
        self.n_segments = n_segments
        self.inlet_temperature = options.inlet_temperature
        self.mass_flow_rate = options.mass_flow_rate
        self.fluid_specific_heat = options.fluid_specific_heat

        d_in = options.pipe_inner_diameter
        self.reynolds = reynolds_number(options.mass_flow_rate, d_in, options.fluid_viscosity)
        self.prandtl = prandtl_number(
            options.fluid_specific_heat, options.fluid_viscosity, options.fluid_conductivity
        )
        self.nusselt = nusselt_number(self.reynolds, self.prandtl)
        self.film_coefficient = self.nusselt * options.fluid_conductivity / d_in
        self.U = overall_heat_transfer_coefficient(
            self.film_coefficient,
            0.5 * d_in,
            0.5 * options.pipe_outer_diameter,
            options.pipe_conductivity,
        )
        self.perimeter = math.pi * d_in
        self.legs = 2 if self.exchanger_type is HeatExchangerType.U_TUBE else 1
        self.flow_configuration = options.flow_configuration
        self.fluid_relaxation = options.fluid_relaxation
        self.U_internal = internal_heat_transfer_coefficient(
            self.film_coefficient,
            d_in,
            options.inner_pipe_outer_diameter,
            options.inner_pipe_conductivity,
        )

        self.segment_length = self.depth / n_segments
        self.segment_depths = (np.arange(n_segments) + 0.5) * self.segment_length
        ntu = (
            self.U * self.perimeter * self.segment_length
            / (self.mass_flow_rate * self.fluid_specific_heat)
        )
        self.ntu = ntu
        self.effectiveness = 1.0 - math.exp(-ntu)
        self.ntu_internal = (
            self.U_internal * self.perimeter * self.segment_length
            / (self.mass_flow_rate * self.fluid_specific_heat)
        )

        self._build_sampling()
        self._build_source_cells()
        logger.info(
            "Heat exchanger: Re=%.0f Pr=%.2f Nu=%.2f U=%.1f W/(m2 K) eff=%.4f",
            self.reynolds, self.prandtl, self.nusselt, self.U, self.effectiveness,
        )

    def _build_sampling(self) -> None:
        m = self.mesh
        self._segment_rows = np.array(
            [int(np.argmin(np.abs(m.depth - d))) for d in self.segment_depths]
        )
        self._rings = np.arange(1, min(GROUND_RINGS + 1, m.nr))
        weights = 1.0 / (1.0 + 10.0 * m.r[self._rings])
        self._ring_weights = weights / weights.sum()

    def _build_source_cells(self) -> None:
        m = self.mesh
        mask = m.heat_exchanger_mask.copy()
        # Ghost ring and boundary rows are slaved by boundary conditions
        mask[0] = False
        mask[-1] = False
        mask[:, :, 0] = False
        mask[:, :, -1] = False
        mask &= (m.depth <= self.depth)[None, None, :]
        self._source_cells = np.nonzero(mask)
        _, _, k = self._source_cells
        counts = np.bincount(k, minlength=m.nz)
        self._cells_per_row = counts[k]
        segment = np.floor(m.depth[k] / self.segment_length).astype(int)
        self._cell_segment = np.clip(segment, 0, self.n_segments - 1)
        # W/K per flagged cell
        self._cell_conductance = (
            self.legs * self.U * self.perimeter * m.dz[k] / np.maximum(self._cells_per_row, 1)
        )
        self._cell_capacity = m.heat_capacity[mask] * m.volume[mask]

    @property
    def n_source_cells(self) -> int:
        return len(self._source_cells[0])

    # ------------------------------------------------------------------
    # Fluid profile
    # ------------------------------------------------------------------

    def ground_temperature(self, T: np.ndarray) -> np.ndarray:
        """Ground temperature seen by each segment (K).

        Weighted average over the first rings around the borehole with
        weights ``1/(1 + 10 r)``, at the row nearest the segment centre.
        """
        rows = T[self._rings][:, :, self._segment_rows]
        ring_means = rows.mean(axis=1)
        return self._ring_weights @ ring_means

    @property
    def annulus_flows_down(self) -> bool:
        return self.flow_configuration is FlowConfiguration.COUNTER_FLOW_REVERSED

    def fluid_temperature(self, exchanger_state: Any) -> np.ndarray:
        """Fluid temperature in contact with the ground per segment (K).

        The mean of both legs for a U-tube, the annulus for a coaxial pipe.
        """
        if self.exchanger_type is HeatExchangerType.U_TUBE:
            return 0.5 * (exchanger_state.down + exchanger_state.up)
        if self.annulus_flows_down:
            return exchanger_state.down.copy()
        return exchanger_state.up.copy()

    def update_fluid(self, state: Any, exchanger_state: Any) -> None:
        """March the fluid through the segments against the current ground.

        The down leg starts at the inlet temperature.  Both U-tube legs
        exchange with the ground, the up leg starting from the bottom of
        the down leg.  A coaxial profile is the relaxed result of
        :meth:`coaxial_profile`.
        """
        ground = self.ground_temperature(state.T)
        if self.exchanger_type is HeatExchangerType.COAXIAL:
            down, up = self.coaxial_profile(ground, exchanger_state)
            blend = self.fluid_relaxation
            exchanger_state.down[:] = blend * down + (1.0 - blend) * exchanger_state.down
            exchanger_state.up[:] = blend * up + (1.0 - blend) * exchanger_state.up
            return
        eff = self.effectiveness
        t = self.inlet_temperature
        for n in range(self.n_segments):
            t += eff * (ground[n] - t)
            exchanger_state.down[n] = t
        for n in reversed(range(self.n_segments)):
            t += eff * (ground[n] - t)
            exchanger_state.up[n] = t

    def coaxial_profile(
        self, ground: np.ndarray, exchanger_state: Any
    ) -> tuple[np.ndarray, np.ndarray]:
        """Coupled down and up streams of a coaxial pipe.

        Each segment takes the implicit update
        ``T = (T_upstream + NTU_g T_ground + NTU_i T_other) / (1 + NTU_g + NTU_i)``
        where only the annulus carries the ground term and ``T_other`` is
        the opposite stream in the same segment.  Both streams turn around
        at the bottom.  Sweeps start from *exchanger_state* and repeat
        until no segment moves by more than :data:`COAXIAL_TOLERANCE`.

        Returns:
            ``(down, up)`` before relaxation.
        """
        down = exchanger_state.down.copy()
        up = exchanger_state.up.copy()
        ntu_i = self.ntu_internal
        ntu_down = self.ntu if self.annulus_flows_down else 0.0
        ntu_up = 0.0 if self.annulus_flows_down else self.ntu
        for sweep in range(1, COAXIAL_SWEEPS + 1):
            before_down = down.copy()
            before_up = up.copy()
            t = self.inlet_temperature
            for n in range(self.n_segments):
                t = (t + ntu_down * ground[n] + ntu_i * before_up[n]) / (1.0 + ntu_down + ntu_i)
                down[n] = t
            up[-1] = down[-1]
            for n in range(self.n_segments - 2, -1, -1):
                up[n] = (up[n + 1] + ntu_up * ground[n] + ntu_i * down[n]) / (1.0 + ntu_up + ntu_i)
            moved = max(np.max(np.abs(down - before_down)), np.max(np.abs(up - before_up)))
            if moved < COAXIAL_TOLERANCE:
                break
        logger.debug("Coaxial streams settled after %d sweeps (%.2g K)", sweep, moved)
        return down, up

    def outlet_temperature(self, exchanger_state: Any) -> float:
        return float(exchanger_state.up[0])

    def heat_extraction_rate(self, exchanger_state: Any) -> float:
        """Heat taken up by the fluid, ``ṁ c_p (T_out − T_in)`` (W)."""
        return float(
            self.mass_flow_rate
            * self.fluid_specific_heat
            * (self.outlet_temperature(exchanger_state) - self.inlet_temperature)
        )

    # ------------------------------------------------------------------
    # Source term
    # ------------------------------------------------------------------

    def inject(self, state: Any, exchanger_state: Any, dt: float) -> float:
        """Apply the fluid-to-ground source to the grouted cells.

        Each flagged cell gets ``dt·G·(T_f − T)/(ρ c_p V)`` with its share
        ``G`` of the row conductance, limited to ±1 K.  The result is
        written to the back buffer and adopted.

        Returns:
            Power delivered to the ground (W, negative when extracting).
        """
        if self.n_source_cells == 0:
            return 0.0
        buf = state.temperature
        current = buf.front
        cells = self._source_cells
        fluid = self.fluid_temperature(exchanger_state)[self._cell_segment]
        change = dt * self._cell_conductance * (fluid - current[cells]) / self._cell_capacity
        np.clip(change, -MAX_SOURCE_CHANGE, MAX_SOURCE_CHANGE, out=change)

        target = buf.back
        target[...] = current
        target[cells] = np.clip(current[cells] + change, T_MIN, T_MAX)
        applied = target[cells] - current[cells]
        buf.swap()
        return float(np.sum(applied * self._cell_capacity) / dt)

    def __repr__(self) -> str:
        return (
            f"BoreholeHeatExchanger(type={self.exchanger_type.value}, depth={self.depth}, "
            f"U={self.U:.1f}, segments={self.n_segments})"
        )
