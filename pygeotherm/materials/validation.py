"""Admissible-range enforcement for mesh material arrays.

Functions
---------
validate_materials
    Clamp every material array of a mesh into its physical range, then
    recompute transmissivities and freeze the mesh.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

#: ``(lower, upper)`` admissible bounds per material property.
PROPERTY_BOUNDS: dict[str, tuple[float, float]] = {
    "thermal_conductivity": (0.1, 10.0),    # W/(m·K)
    "specific_heat": (100.0, 5000.0),       # J/(kg·K)
    "density": (500.0, 5000.0),             # kg/m³
    "porosity": (1e-6, 0.99),
    "permeability": (1e-20, 1e-8),          # m²
}


def validate_materials(mesh: Any) -> dict[str, int]:
    """Clamp material arrays of *mesh* in place.

    NaN and ``-inf`` are replaced by the lower bound, ``+inf`` by the
    upper bound; finite values are clipped.  Calling this on a frozen
    mesh unfreezes it for the duration of the pass.

    Args:
        mesh: A :class:`~pygeotherm.geometry.mesh.CylindricalMesh`.

    Returns:
        Number of adjusted cells per property.
    """
    mesh.unfreeze()
    adjusted: dict[str, int] = {}
    for name, (lower, upper) in PROPERTY_BOUNDS.items():
        arr = getattr(mesh, name)
        bad = ~np.isfinite(arr) | (arr < lower) | (arr > upper)
        count = int(np.count_nonzero(bad))
        adjusted[name] = count
        if count == 0:
            continue
        np.nan_to_num(arr, copy=False, nan=lower, posinf=upper, neginf=lower)
        np.clip(arr, lower, upper, out=arr)
        logger.warning(
            "Clamped %d cell(s) of %s into [%g, %g]", count, name, lower, upper
        )
    mesh.update_transmissivities()
    mesh.freeze()
    logger.debug("Material validation done: %s", adjusted)
    return adjusted
