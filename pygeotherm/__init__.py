"""
pygeotherm: coupled heat transport and groundwater flow around borehole
heat exchangers.

Subpackages
-----------
geometry
    Cylindrical finite-volume mesh and lithology layers.
materials
    Ground material properties and admissible-range validation.
boundaries
    Thermal and hydraulic boundary conditions.
fields
    Flat double-buffered field storage and initial conditions.
physics
    Groundwater flow, heat transport and heat-exchanger coupling.
coupling
    Atomic sequential time step and its outcomes.
solvers
    Run orchestration, results and parallel kernels.
time
    Stability bound and adaptive time-step control.
postprocess
    Convergence history and performance metrics.
"""

from pygeotherm import (
    geometry,
    materials,
    boundaries,
    fields,
    physics,
    coupling,
    solvers,
    time,
    postprocess,
)
from pygeotherm.errors import ConfigurationError, GeothermalError, SolverDivergedError
from pygeotherm.logging_config import setup_logging
from pygeotherm.options import FlowConfiguration, HeatExchangerType, SimulationOptions

__version__ = "0.1.0"

__all__ = [
    "geometry",
    "materials",
    "boundaries",
    "fields",
    "physics",
    "coupling",
    "solvers",
    "time",
    "postprocess",
    "ConfigurationError",
    "GeothermalError",
    "SolverDivergedError",
    "setup_logging",
    "FlowConfiguration",
    "HeatExchangerType",
    "SimulationOptions",
]
