"""Geometry: cylindrical mesh and lithology layers."""

from pygeotherm.geometry.layers import LithologyLayer, assign_layer_ids
from pygeotherm.geometry.mesh import CylindricalMesh, HEAT_EXCHANGER_ID

__all__ = [
    "LithologyLayer",
    "assign_layer_ids",
    "CylindricalMesh",
    "HEAT_EXCHANGER_ID",
]
