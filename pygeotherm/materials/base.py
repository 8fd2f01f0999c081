"""Ground materials and per-cell property lookup.

Classes
-------
Material
    Thermal and hydraulic properties of one lithology.
MaterialMap
    Mapping from integer material ids on a mesh to :class:`Material` objects.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

#: Per-cell properties every material provides.
PROPERTY_NAMES = (
    "thermal_conductivity",
    "specific_heat",
    "density",
    "porosity",
    "permeability",
)


@dataclass(frozen=True)
class Material:
    """Ground material.

    Args:
        name: Human-readable material name.
        thermal_conductivity: λ (W/(m·K)).
        specific_heat: c_p (J/(kg·K)).
        density: ρ (kg/m³).
        porosity: φ (-).
        permeability: Intrinsic permeability k (m²).

    Example::

        mat = Material(
            name="sandstone",
            thermal_conductivity=2.8,
            specific_heat=850.0,
            density=2400.0,
            porosity=0.15,
            permeability=1e-13,
        )
        mat.diffusivity  # ~1.37e-6 m²/s
    """

    name: str
    thermal_conductivity: float
    specific_heat: float
    density: float
    porosity: float
    permeability: float

    @property
    def volumetric_heat_capacity(self) -> float:
        """ρ·c_p in J/(m³·K)."""
        return self.density * self.specific_heat

    @property
    def diffusivity(self) -> float:
        """Thermal diffusivity λ/(ρ·c_p) in m²/s."""
        return self.thermal_conductivity / self.volumetric_heat_capacity


class MaterialMap:
    """Mapping from mesh material ids to :class:`Material` instances.

    Args:
        materials: Dictionary ``{material_id: Material}``.
        material_ids: Integer id per cell, any shape.
    """

    def __init__(
        self,
        materials: dict[int, Material],
        material_ids: np.ndarray,
    ) -> None:
        self.materials = dict(materials)
        self.material_ids = np.asarray(material_ids, dtype=np.int64)

    def cell_property(self, key: str) -> np.ndarray:
        """Return an array of property *key* shaped like the id array.

        Raises:
            KeyError: If an id present on the mesh has no material.
        """
        out = np.empty(self.material_ids.shape, dtype=float)
        for mat_id in np.unique(self.material_ids):
            if int(mat_id) not in self.materials:
                raise KeyError(f"No material registered for id {int(mat_id)}.")
            out[self.material_ids == mat_id] = float(
                getattr(self.materials[int(mat_id)], key)
            )
        return out

    def __repr__(self) -> str:
        names = {k: m.name for k, m in self.materials.items()}
        return f"MaterialMap(materials={names}, n_cells={self.material_ids.size})"
