"""Physics: groundwater flow, heat transport and borehole heat exchange."""

from pygeotherm.physics.base import FieldSolver, SolveReport
from pygeotherm.physics.groundwater import GroundwaterFlow
from pygeotherm.physics.heat import HeatTransfer
from pygeotherm.physics.exchanger import (
    BoreholeHeatExchanger,
    reynolds_number,
    prandtl_number,
    petukhov_friction_factor,
    nusselt_number,
    overall_heat_transfer_coefficient,
    internal_heat_transfer_coefficient,
    seasonal_inlet_temperature,
)

__all__ = [
    "FieldSolver",
    "SolveReport",
    "GroundwaterFlow",
    "HeatTransfer",
    "BoreholeHeatExchanger",
    "reynolds_number",
    "prandtl_number",
    "petukhov_friction_factor",
    "nusselt_number",
    "overall_heat_transfer_coefficient",
    "internal_heat_transfer_coefficient",
    "seasonal_inlet_temperature",
]
