"""Fields: flat double-buffered storage, run state and initial conditions."""

from pygeotherm.fields.buffers import FlatGrid, DoubleBuffer
from pygeotherm.fields.state import (
    FieldState,
    FieldCheckpoint,
    ExchangerState,
    N_SEGMENTS,
    T_MIN,
    T_MAX,
)
from pygeotherm.fields.initial import (
    interpolate_profile,
    initial_temperature,
    initial_head,
)

__all__ = [
    "FlatGrid",
    "DoubleBuffer",
    "FieldState",
    "FieldCheckpoint",
    "ExchangerState",
    "N_SEGMENTS",
    "T_MIN",
    "T_MAX",
    "interpolate_profile",
    "initial_temperature",
    "initial_head",
]
