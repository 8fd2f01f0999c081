"""Time: stability bound and adaptive time-step control."""

from pygeotherm.time.stepper import (
    cfl_time_step,
    ControllerState,
    TimeStepController,
)

__all__ = [
    "cfl_time_step",
    "ControllerState",
    "TimeStepController",
]
