"""Boundaries: face condition kinds and their application to fields."""

from pygeotherm.boundaries.base import (
    BoundaryKind,
    FaceCondition,
    ThermalBoundaries,
    HydraulicBoundaries,
)

__all__ = [
    "BoundaryKind",
    "FaceCondition",
    "ThermalBoundaries",
    "HydraulicBoundaries",
]
