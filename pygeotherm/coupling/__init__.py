"""Coupling: atomic sequential time step and its outcome variants."""

from pygeotherm.coupling.sequential import Accepted, Diverged, SequentialStep

__all__ = [
    "Accepted",
    "Diverged",
    "SequentialStep",
]
