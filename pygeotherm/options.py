"""Simulation options.

Classes
-------
HeatExchangerType
    Pipe configuration inside the borehole.
FlowConfiguration
    Which coaxial stream faces the ground.
SimulationOptions
    Immutable run configuration with documented defaults.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from enum import Enum

from pygeotherm.boundaries.base import BoundaryKind
from pygeotherm.errors import ConfigurationError
from pygeotherm.geometry.layers import LithologyLayer
from pygeotherm.materials.base import PROPERTY_NAMES
from pygeotherm.materials.library import sandstone

#: Length of the seasonal energy curve.
DAYS_PER_YEAR = 365


class HeatExchangerType(Enum):
    """Pipe layout of the borehole heat exchanger."""

    U_TUBE = "u_tube"
    COAXIAL = "coaxial"


class FlowConfiguration(Enum):
    """Flow direction in a coaxial exchanger.

    ``COUNTER_FLOW`` sends the fluid down the inner pipe and back up the
    annulus, ``COUNTER_FLOW_REVERSED`` down the annulus and up the inner
    pipe.  The annulus always exchanges with the ground.
    """

    COUNTER_FLOW = "counter_flow"
    COUNTER_FLOW_REVERSED = "counter_flow_reversed"


@dataclass(frozen=True)
class SimulationOptions:
    """Physical and numerical parameters of one simulation run.

    Every field has a default.  Fields documented as derived (``None`` by
    default) are resolved in ``__post_init__``, so a constructed instance
    never carries a missing value.

    Borehole and heat exchanger:
        borehole_depth: Borehole length (m).
        borehole_diameter: Drilled diameter (m).
        heat_exchanger_type: U-tube or coaxial.
        heat_exchanger_depth: Active pipe length (m); defaults to
            *borehole_depth*.
        pipe_inner_diameter: Inner pipe diameter (m).
        pipe_outer_diameter: Outer pipe diameter (m).
        pipe_conductivity: Pipe wall conductivity (W/(m·K)).
        flow_configuration: Coaxial flow direction.
        inner_pipe_outer_diameter: Outer diameter of the coaxial inner pipe
            (m); defaults to the mean of the two pipe diameters.
        inner_pipe_conductivity: Coaxial inner pipe wall conductivity
            (W/(m·K)); zero insulates the two streams from each other.
        grout_conductivity: Borehole fill conductivity (W/(m·K)).

    Circulating fluid:
        mass_flow_rate: ṁ (kg/s).
        inlet_temperature: Fluid temperature entering the pipe (K).
        fluid_specific_heat: c_p (J/(kg·K)).
        fluid_density: ρ_w (kg/m³), also used for groundwater.
        fluid_viscosity: μ (Pa·s), also used for groundwater.
        fluid_conductivity: k_f (W/(m·K)).
        fluid_relaxation: Blend factor of a coaxial profile update.

    Heat pump:
        hvac_supply_temperature: Heating supply temperature (K).
        compressor_efficiency: Fraction of the Carnot COP achieved.

    Thermal storage:
        enable_btes_mode: Drive the inlet temperature from
            *seasonal_energy_curve*.
        seasonal_energy_curve: Daily energy (kWh/day) for each of the 365
            days of the year; positive charges the ground.
        btes_charging_temperature: Base inlet temperature when charging (K).
        btes_discharging_temperature: Base inlet temperature when
            discharging (K).

    Ground:
        lithology: Layers from the surface down; defaults to a single
            sandstone layer covering the whole domain depth.
        initial_temperature_profile: ``(depth, temperature)`` pairs; empty
            selects the gradient fallback.
        surface_temperature: Mean ground surface temperature (K).
        geothermal_gradient: K/m; values below 0.001 fall back to 0.03.

    Groundwater:
        simulate_groundwater_flow: Solve for head and advect heat.
        regional_velocity: Background Darcy flux ``(q_x, q_y, q_z)`` (m/s)
            in Cartesian axes.
        hydraulic_head_top: Head at the top face (m).
        hydraulic_head_bottom: Head at the bottom face (m).
        longitudinal_dispersivity: α_L (m).
        transverse_dispersivity: α_T (m), reported with the results.
        gravity: g (m/s²).

    Boundaries:
        outer_boundary, top_boundary, bottom_boundary: Face kinds.
        outer_temperature: Fixed far-field temperature (K); ``None`` holds
            the initial profile.
        outer_heat_flux: Inward flux for a Neumann outer face (W/m²).
        top_temperature: Fixed surface temperature (K); ``None`` holds the
            initial surface row.
        top_heat_flux: Inward flux for a Neumann top face (W/m²).
        bottom_temperature: Fixed bottom temperature (K); ``None`` holds
            the initial bottom row.
        geothermal_heat_flux: Upward flux through the bottom face (W/m²).

    Domain:
        domain_radius: Outer radius of the mesh (m).
        domain_extension: Depth of ground modelled below the borehole (m).
        radial_points, angular_points, vertical_points: Grid resolution.

    Numerics:
        simulation_time: Total simulated duration (s).
        time_step: Maximum time step (s).
        initial_time_step: First attempted step (s); defaults to
            *time_step*.
        min_time_step: Forced minimal step after exhausted retries (s).
        save_interval: Snapshot every this many accepted steps.
        convergence_tolerance: Head tolerance; heat uses ten times this.
        max_iterations: Inner iteration cap per solver call.
        use_simd: Evaluate flux kernels in 8-wide single-precision lanes.
        workers: Radial slabs evaluated in parallel; defaults to the
            number of CPUs, at most 8.
        initial_relaxation: Starting heat relaxation factor.
        flow_relaxation: Starting head relaxation factor.
        max_retries: Halvings attempted before a forced step.
    """

    # Borehole and heat exchanger
    borehole_depth: float = 100.0
    borehole_diameter: float = 0.15
    heat_exchanger_type: HeatExchangerType = HeatExchangerType.U_TUBE
    heat_exchanger_depth: float | None = None
    pipe_inner_diameter: float = 0.032
    pipe_outer_diameter: float = 0.040
    pipe_conductivity: float = 0.4
    flow_configuration: FlowConfiguration = FlowConfiguration.COUNTER_FLOW
    inner_pipe_outer_diameter: float | None = None
    inner_pipe_conductivity: float = 0.4
    grout_conductivity: float = 2.0

    # Circulating fluid
    mass_flow_rate: float = 0.5
    inlet_temperature: float = 283.15
    fluid_specific_heat: float = 4186.0
    fluid_density: float = 1000.0
    fluid_viscosity: float = 1e-3
    fluid_conductivity: float = 0.6
    fluid_relaxation: float = 0.3

    # Heat pump
    hvac_supply_temperature: float = 308.15
    compressor_efficiency: float = 0.6

    # Thermal storage
    enable_btes_mode: bool = False
    seasonal_energy_curve: tuple[float, ...] = ()
    btes_charging_temperature: float = 343.15
    btes_discharging_temperature: float = 278.15

    # Ground
    lithology: tuple[LithologyLayer, ...] | None = None
    initial_temperature_profile: tuple[tuple[float, float], ...] = ()
    surface_temperature: float = 283.15
    geothermal_gradient: float = 0.03

    # Groundwater
    simulate_groundwater_flow: bool = True
    regional_velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    hydraulic_head_top: float = 0.0
    hydraulic_head_bottom: float = -10.0
    longitudinal_dispersivity: float = 0.5
    transverse_dispersivity: float = 0.05
    gravity: float = 9.81

    # Boundaries
    outer_boundary: BoundaryKind = BoundaryKind.DIRICHLET
    outer_temperature: float | None = None
    outer_heat_flux: float = 0.0
    top_boundary: BoundaryKind = BoundaryKind.ADIABATIC
    top_temperature: float | None = None
    top_heat_flux: float = 0.0
    bottom_boundary: BoundaryKind = BoundaryKind.NEUMANN
    bottom_temperature: float | None = None
    geothermal_heat_flux: float = 0.065

    # Domain
    domain_radius: float = 50.0
    domain_extension: float = 20.0
    radial_points: int = 30
    angular_points: int = 24
    vertical_points: int = 50

    # Numerics
    simulation_time: float = 30 * 86400.0
    time_step: float = 3600.0
    initial_time_step: float | None = None
    min_time_step: float = 1.0
    save_interval: int = 24
    convergence_tolerance: float = 1e-3
    max_iterations: int = 50
    use_simd: bool = True
    workers: int | None = None
    initial_relaxation: float = 0.5
    flow_relaxation: float = 0.3
    max_retries: int = 3

    def __post_init__(self) -> None:
        # frozen: defaults are resolved through object.__setattr__
        if self.heat_exchanger_depth is None:
            object.__setattr__(self, "heat_exchanger_depth", self.borehole_depth)
        if self.inner_pipe_outer_diameter is None:
            object.__setattr__(
                self,
                "inner_pipe_outer_diameter",
                0.5 * (self.pipe_inner_diameter + self.pipe_outer_diameter),
            )
        if self.lithology is None:
            default_layer = LithologyLayer(
                name=sandstone.name,
                depth_from=0.0,
                depth_to=self.borehole_depth + self.domain_extension,
                material=sandstone,
            )
            object.__setattr__(self, "lithology", (default_layer,))
        else:
            object.__setattr__(self, "lithology", tuple(self.lithology))
        object.__setattr__(
            self,
            "initial_temperature_profile",
            tuple((float(d), float(t)) for d, t in self.initial_temperature_profile),
        )
        object.__setattr__(
            self, "seasonal_energy_curve", tuple(float(e) for e in self.seasonal_energy_curve)
        )
        object.__setattr__(
            self, "regional_velocity", tuple(float(v) for v in self.regional_velocity)
        )
        if self.geothermal_gradient < 0.001:
            object.__setattr__(self, "geothermal_gradient", 0.03)
        if self.initial_time_step is None:
            object.__setattr__(self, "initial_time_step", self.time_step)
        if self.workers is None:
            object.__setattr__(self, "workers", min(8, os.cpu_count() or 1))

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def n_steps(self) -> int:
        """Nominal number of steps at the maximum time step."""
        return int(math.ceil(self.simulation_time / self.time_step))

    @property
    def borehole_radius(self) -> float:
        return 0.5 * self.borehole_diameter

    @property
    def heat_tolerance(self) -> float:
        """Temperature-change tolerance of the heat solver (K)."""
        return 10.0 * self.convergence_tolerance

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check every option against its admissible range.

        Raises:
            ConfigurationError: On the first invalid field, naming it.
        """
        if self.borehole_depth <= 0:
            raise ConfigurationError("borehole_depth", "must be positive")
        if self.borehole_diameter <= 0:
            raise ConfigurationError("borehole_diameter", "must be positive")
        if self.heat_exchanger_depth <= 0 or self.heat_exchanger_depth > self.borehole_depth:
            raise ConfigurationError(
                "heat_exchanger_depth", "must lie in (0, borehole_depth]"
            )
        self._validate_lithology()

        if self.simulation_time <= 0:
            raise ConfigurationError("simulation_time", "must be positive")
        if self.time_step <= 0:
            raise ConfigurationError("time_step", "must be positive")
        if self.time_step > self.simulation_time:
            raise ConfigurationError(
                "time_step", "must not exceed the simulation time"
            )
        if self.initial_time_step <= 0 or self.initial_time_step > self.time_step:
            raise ConfigurationError(
                "initial_time_step", "must lie in (0, time_step]"
            )
        if self.min_time_step <= 0:
            raise ConfigurationError("min_time_step", "must be positive")
        if self.save_interval < 1:
            raise ConfigurationError("save_interval", "must be at least 1")

        if self.domain_radius <= 0:
            raise ConfigurationError("domain_radius", "must be positive")
        if self.domain_radius <= self.borehole_radius:
            raise ConfigurationError(
                "domain_radius", "must exceed the borehole radius"
            )
        if self.domain_extension < 0:
            raise ConfigurationError("domain_extension", "must not be negative")
        if self.radial_points < 3:
            raise ConfigurationError("radial_points", "need at least 3 radial points")
        if self.angular_points < 4:
            raise ConfigurationError("angular_points", "need at least 4 angular points")
        if self.vertical_points < 3:
            raise ConfigurationError(
                "vertical_points", "need at least 3 vertical points"
            )

        for name in ("pipe_inner_diameter", "pipe_outer_diameter"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(name, "must be positive")
        if self.pipe_inner_diameter >= self.pipe_outer_diameter:
            raise ConfigurationError(
                "pipe_inner_diameter", "must be smaller than pipe_outer_diameter"
            )
        if self.pipe_outer_diameter >= self.borehole_diameter:
            raise ConfigurationError(
                "pipe_outer_diameter", "must be smaller than borehole_diameter"
            )
        if not self.pipe_inner_diameter < self.inner_pipe_outer_diameter < self.pipe_outer_diameter:
            raise ConfigurationError(
                "inner_pipe_outer_diameter",
                "must lie between pipe_inner_diameter and pipe_outer_diameter",
            )
        if self.inner_pipe_conductivity < 0:
            raise ConfigurationError("inner_pipe_conductivity", "must not be negative")
        if not 0 < self.fluid_relaxation <= 1:
            raise ConfigurationError("fluid_relaxation", "must lie in (0, 1]")
        for name in (
            "pipe_conductivity",
            "grout_conductivity",
            "mass_flow_rate",
            "fluid_specific_heat",
            "fluid_density",
            "fluid_viscosity",
            "fluid_conductivity",
            "hvac_supply_temperature",
            "compressor_efficiency",
            "surface_temperature",
            "gravity",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(name, "must be positive")
        if self.inlet_temperature <= 0:
            raise ConfigurationError("inlet_temperature", "must be positive (K)")
        if self.longitudinal_dispersivity < 0:
            raise ConfigurationError(
                "longitudinal_dispersivity", "must not be negative"
            )
        if self.transverse_dispersivity < 0:
            raise ConfigurationError(
                "transverse_dispersivity", "must not be negative"
            )
        if self.enable_btes_mode:
            if len(self.seasonal_energy_curve) != DAYS_PER_YEAR:
                raise ConfigurationError(
                    "seasonal_energy_curve",
                    f"needs {DAYS_PER_YEAR} daily values, got {len(self.seasonal_energy_curve)}",
                )
            if not all(math.isfinite(e) for e in self.seasonal_energy_curve):
                raise ConfigurationError(
                    "seasonal_energy_curve", "values must be finite"
                )
            for name in ("btes_charging_temperature", "btes_discharging_temperature"):
                if getattr(self, name) <= 0:
                    raise ConfigurationError(name, "must be positive (K)")
        for name in ("outer_temperature", "top_temperature", "bottom_temperature"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(name, "must be positive (K)")
        for depth, temperature in self.initial_temperature_profile:
            if depth < 0 or temperature <= 0:
                raise ConfigurationError(
                    "initial_temperature_profile",
                    f"invalid point ({depth}, {temperature})",
                )

        if self.convergence_tolerance <= 0:
            raise ConfigurationError("convergence_tolerance", "must be positive")
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations", "must be at least 1")
        if self.workers < 1:
            raise ConfigurationError("workers", "must be at least 1")
        if not 0 < self.initial_relaxation <= 1:
            raise ConfigurationError("initial_relaxation", "must lie in (0, 1]")
        if not 0 < self.flow_relaxation <= 1:
            raise ConfigurationError("flow_relaxation", "must lie in (0, 1]")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries", "must not be negative")

    def _validate_lithology(self) -> None:
        if not self.lithology:
            raise ConfigurationError("lithology", "at least one layer is required")
        for layer in self.lithology:
            if layer.depth_from < 0:
                raise ConfigurationError(
                    "lithology", f"layer {layer.name!r} starts above the surface"
                )
            if layer.depth_to <= layer.depth_from:
                raise ConfigurationError(
                    "lithology",
                    f"layer {layer.name!r} has depth_to <= depth_from",
                )
            for key in PROPERTY_NAMES:
                if not getattr(layer.material, key) > 0:
                    raise ConfigurationError(
                        "lithology", f"layer {layer.name!r} has non-positive {key}"
                    )
