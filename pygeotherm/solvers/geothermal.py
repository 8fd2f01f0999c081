"""Coupled heat and groundwater simulation around a borehole heat exchanger.

Classes
-------
GeothermalSolver
    Validates the inputs, builds fields and solvers, and runs the
    time-step controller to produce :class:`SimulationResults`.
"""

from __future__ import annotations

import logging
import time as _time
from typing import Any, Callable

import numpy as np

from pygeotherm.boundaries.base import HydraulicBoundaries, ThermalBoundaries
from pygeotherm.coupling.sequential import Accepted, Diverged, SequentialStep
from pygeotherm.errors import ConfigurationError
from pygeotherm.fields.initial import initial_head, initial_temperature
from pygeotherm.fields.state import ExchangerState, FieldState
from pygeotherm.geometry.mesh import CylindricalMesh
from pygeotherm.materials.validation import validate_materials
from pygeotherm.options import SimulationOptions
from pygeotherm.physics.exchanger import BoreholeHeatExchanger, seasonal_inlet_temperature
from pygeotherm.physics.groundwater import GroundwaterFlow
from pygeotherm.physics.heat import HeatTransfer
from pygeotherm.postprocess.convergence import ConvergenceTracker
from pygeotherm.postprocess.metrics import coefficient_of_performance, compute_metrics
from pygeotherm.solvers.base import SimulationResults, Solver
from pygeotherm.solvers.parallel import RadialPartition, select_lanes
from pygeotherm.time.stepper import ControllerState, TimeStepController, cfl_time_step

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, str], None]


class GeothermalSolver(Solver):
    """Transient coupled solver for one borehole.

    Configuration errors are raised from the constructor, before any
    field is allocated.  Divergence inside a step is recovered by the
    controller and never escapes :meth:`run`.

    Args:
        options: Run configuration.
        mesh: Mesh to solve on; built from *options* when omitted.  Its
            material arrays are clamped and frozen.
        progress: Optional sink called as ``progress(fraction, message)``
            for the first ten steps, every tenth step, on divergence and
            at the end.
        cancel: Optional token checked once per step; anything with
            ``is_set()`` or a callable returning ``True``.

    Example::

        opts = SimulationOptions(borehole_depth=80.0, simulation_time=7 * 86400)
        with GeothermalSolver(opts) as solver:
            results = solver.run()
        print(results.metrics.average_extraction_rate)
    """

    def __init__(
        self,
        options: SimulationOptions,
        mesh: CylindricalMesh | None = None,
        progress: ProgressSink | None = None,
        cancel: Any = None,
    ) -> None:
        options.validate()
        if mesh is None:
            mesh = CylindricalMesh.from_options(options)
        elif mesh.nr < 3 or mesh.ntheta < 4 or mesh.nz < 3:
            raise ConfigurationError("mesh", f"grid {mesh.shape} is under-resolved")

        self.options = options
        self.mesh = mesh
        self.progress = progress
        self.cancel = cancel

        validate_materials(mesh)

        self.state = FieldState(
            mesh,
            initial_temperature(mesh, options),
            initial_head(mesh, options),
            fluid_density=options.fluid_density,
            gravity=options.gravity,
        )
        self.exchanger_state = ExchangerState(options.inlet_temperature)

        self.partition = RadialPartition(mesh.nr, options.workers)
        self.lanes = select_lanes(options.use_simd, mesh.ntheta)

        self.boundaries = ThermalBoundaries.from_options(options)
        self.boundaries.apply(self.state.T, mesh, self.state.initial_temperature)
        self.heat = HeatTransfer(
            mesh,
            self.boundaries,
            tolerance=options.heat_tolerance,
            max_iterations=options.max_iterations,
            relaxation=options.initial_relaxation,
            partition=self.partition,
            lanes=self.lanes,
        )
        self.flow: GroundwaterFlow | None = None
        if options.simulate_groundwater_flow:
            hydraulic = HydraulicBoundaries(
                options.hydraulic_head_top, options.hydraulic_head_bottom
            )
            hydraulic.apply(self.state.h)
            self.flow = GroundwaterFlow(
                mesh,
                hydraulic,
                regional_velocity=options.regional_velocity,
                dispersivity=options.longitudinal_dispersivity,
                tolerance=options.convergence_tolerance,
                max_iterations=options.max_iterations,
                relaxation=options.flow_relaxation,
                fluid_density=options.fluid_density,
                fluid_viscosity=options.fluid_viscosity,
                gravity=options.gravity,
                partition=self.partition,
                lanes=self.lanes,
            )
        self.exchanger = BoreholeHeatExchanger(mesh, options)
        self.step = SequentialStep(
            self.state, self.exchanger_state, self.heat, self.exchanger, self.flow
        )
        self.tracker = ConvergenceTracker()
        logger.info(
            "Solver ready: %s, flow=%s, lanes=%s, workers=%d",
            mesh, self.flow is not None, self.lanes.name, self.partition.workers,
        )

    # ------------------------------------------------------------------

    def stable_time_step(self) -> float:
        """Current CFL bound from the mesh and the velocity field."""
        return cfl_time_step(
            self.mesh,
            max_velocity=float(np.max(self.state.speed())),
            max_dispersion=float(np.max(self.state.dispersion)),
        )

    def inlet_temperature_at(self, t: float) -> float:
        """Fluid inlet temperature for a step starting at *t* (K).

        Constant unless thermal-storage mode follows the seasonal energy
        curve.
        """
        opts = self.options
        if not opts.enable_btes_mode:
            return opts.inlet_temperature
        return seasonal_inlet_temperature(
            t,
            opts.seasonal_energy_curve,
            opts.mass_flow_rate,
            opts.fluid_specific_heat,
            opts.btes_charging_temperature,
            opts.btes_discharging_temperature,
        )

    def _set_inlet(self, t: float) -> None:
        inlet = self.inlet_temperature_at(t)
        if inlet != self.exchanger.inlet_temperature:
            logger.debug("Inlet temperature %.2f K from t=%.0f s", inlet, t)
        self.exchanger.inlet_temperature = inlet

    def _report(self, fraction: float, message: str) -> None:
        if self.progress is not None:
            self.progress(min(max(fraction, 0.0), 1.0), message)

    def run(self) -> SimulationResults:
        """Run the simulation to the end time or until cancelled."""
        opts = self.options
        started = _time.perf_counter()
        self._set_inlet(0.0)
        self.exchanger_state.reset(self.exchanger.inlet_temperature)

        times: list[float] = []
        rates: list[float] = []
        inlets: list[float] = []
        outlets: list[float] = []
        cops: list[float] = []
        ground = [float(np.mean(self.exchanger.ground_temperature(self.state.T)))]
        snapshots = {0.0: self.state.snapshot()}

        def on_accept(t: float, dt: float, index: int, outcome: Accepted | None) -> None:
            rate = self.exchanger.heat_extraction_rate(self.exchanger_state)
            inlet = self.exchanger.inlet_temperature
            outlet = self.exchanger.outlet_temperature(self.exchanger_state)
            times.append(t)
            rates.append(rate)
            inlets.append(inlet)
            outlets.append(outlet)
            cops.append(coefficient_of_performance(
                rate, inlet, outlet, opts.hvac_supply_temperature, opts.compressor_efficiency
            ))
            ground.append(float(np.mean(self.exchanger.ground_temperature(self.state.T))))
            self._set_inlet(t)
            if index % opts.save_interval == 0:
                snapshots[t] = self.state.snapshot()
            if index < 10 or index % 10 == 0:
                self._report(
                    t / opts.simulation_time,
                    f"Step {index}: t={t:.0f} s, dt={dt:.3g} s, Q={rate:.0f} W",
                )

        def on_diverge(t: float, dt: float, outcome: Diverged) -> None:
            self._report(
                t / opts.simulation_time,
                f"Diverged at t={t:.0f} s, reducing time step...",
            )

        controller = TimeStepController(
            self.step,
            self.heat,
            self.tracker,
            t_end=opts.simulation_time,
            dt_initial=opts.initial_time_step,
            dt_max=opts.time_step,
            dt_min=opts.min_time_step,
            max_retries=opts.max_retries,
            stable_dt=self.stable_time_step,
            cancel=self.cancel,
        )
        logger.info(
            "Running %.0f s with dt=%g s (CFL %g s)",
            opts.simulation_time, opts.initial_time_step, self.stable_time_step(),
        )
        final = controller.run(on_accept, on_diverge)

        if times and times[-1] not in snapshots:
            snapshots[times[-1]] = self.state.snapshot()
        cancelled = final is ControllerState.CANCELLED
        if not cancelled:
            self.tracker.status = "Degraded" if self.tracker.degraded else "Completed"

        metrics = compute_metrics(
            self.mesh, self.state, self.exchanger, self.exchanger_state, opts,
            times, rates, cops, ground,
        )
        depth = self.exchanger.segment_depths.copy()
        elapsed = _time.perf_counter() - started
        results = SimulationResults(
            fields=self.state.snapshot(),
            mesh=self.mesh,
            snapshots=snapshots,
            times=np.asarray(times),
            series={
                "extraction_rate": np.asarray(rates),
                "inlet_temperature": np.asarray(inlets),
                "outlet_temperature": np.asarray(outlets),
                "ground_temperature": np.asarray(ground[1:]),
                "cop": np.asarray(cops),
            },
            tracker=self.tracker,
            metrics=metrics,
            fluid_profile=(
                depth,
                self.exchanger_state.down.copy(),
                self.exchanger_state.up.copy(),
            ),
            time_steps_computed=controller.steps_computed,
            cancelled=cancelled,
            degraded=self.tracker.degraded,
            computation_time=elapsed,
        )
        self._report(
            controller.time / opts.simulation_time,
            "Cancelled" if cancelled else self.tracker.status,
        )
        logger.info(
            "%s after %d steps (%d divergences, %d stalls) in %.2f s",
            self.tracker.status, controller.steps_computed,
            self.tracker.divergence_count, self.tracker.stall_count, elapsed,
        )
        return results

    def close(self) -> None:
        self.partition.close()

    def __repr__(self) -> str:
        return (
            f"GeothermalSolver(mesh={self.mesh.shape}, "
            f"t_end={self.options.simulation_time:g}, flow={self.flow is not None})"
        )
