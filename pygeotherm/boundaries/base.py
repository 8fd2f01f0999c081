"""Boundary conditions on the cylindrical mesh faces.

Classes
-------
BoundaryKind
    Dirichlet, Neumann or adiabatic face.
FaceCondition
    Kind plus prescribed value for one face.
ThermalBoundaries
    Temperature conditions on the inner, outer, top and bottom faces.
HydraulicBoundaries
    Fixed heads on top and bottom; closed radial faces.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np


class BoundaryKind(Enum):
    """Type of a thermal boundary face."""

    DIRICHLET = "dirichlet"
    NEUMANN = "neumann"
    ADIABATIC = "adiabatic"


@dataclass(frozen=True)
class FaceCondition:
    """Condition on one face.

    Args:
        kind: Boundary kind.
        value: Temperature (K) for Dirichlet, with ``None`` holding the
            initial field; inward heat flux (W/m²) for Neumann; ignored
            for adiabatic faces.
    """

    kind: BoundaryKind
    value: float | None = None

    def __repr__(self) -> str:
        return f"FaceCondition({self.kind.value}, value={self.value})"


class ThermalBoundaries:
    """Temperature boundary conditions.

    Boundary rows and rings are not solved; they are slaved to their
    interior neighbours after every inner iteration:

    * inner radius (``i = 0``): mirror of ring 1;
    * outer radius (``i = -1``): *outer* condition;
    * top row (``k = 0``): *top* condition;
    * bottom row (``k = -1``): *bottom* condition.

    A Neumann face sets the boundary value so that the face flux
    ``trans·ΔT`` equals ``q·A`` exactly; positive ``q`` heats the domain.

    Args:
        outer: Condition at the far-field radius.
        top: Condition at the ground surface.
        bottom: Condition at the base of the domain.
    """

    def __init__(
        self,
        outer: FaceCondition,
        top: FaceCondition,
        bottom: FaceCondition,
    ) -> None:
        self.outer = outer
        self.top = top
        self.bottom = bottom

    @classmethod
    def from_options(cls, options: Any) -> ThermalBoundaries:
        """Read face kinds and values from simulation options."""

        def face(kind: BoundaryKind, temperature: float | None, flux: float) -> FaceCondition:
            if kind is BoundaryKind.DIRICHLET:
                return FaceCondition(kind, temperature)
            if kind is BoundaryKind.NEUMANN:
                return FaceCondition(kind, flux)
            return FaceCondition(kind)

        return cls(
            outer=face(options.outer_boundary, options.outer_temperature, options.outer_heat_flux),
            top=face(options.top_boundary, options.top_temperature, options.top_heat_flux),
            bottom=face(
                options.bottom_boundary,
                options.bottom_temperature,
                options.geothermal_heat_flux,
            ),
        )

    def apply(self, T: np.ndarray, mesh: Any, initial: np.ndarray) -> None:
        """Set boundary cells of *T* in place.

        Args:
            T: Temperature array ``(nr, nθ, nz)``.
            mesh: The mesh, for face areas and transmissivities.
            initial: Initial temperature, held by value-less Dirichlet faces.
        """
        T[0] = T[1]

        # Outer radius
        kind = self.outer.kind
        if kind is BoundaryKind.DIRICHLET:
            T[-1] = initial[-1] if self.outer.value is None else self.outer.value
        elif kind is BoundaryKind.NEUMANN:
            T[-1] = T[-2] + self.outer.value * mesh.area_r[-1] / mesh.trans_r[-1]
        else:
            T[-1] = T[-2]

        # Top row
        kind = self.top.kind
        if kind is BoundaryKind.DIRICHLET:
            T[:, :, 0] = initial[:, :, 0] if self.top.value is None else self.top.value
        elif kind is BoundaryKind.NEUMANN:
            T[:, :, 0] = T[:, :, 1] + self.top.value * mesh.area_z[:, :, 0] / mesh.trans_z[:, :, 0]
        else:
            T[:, :, 0] = T[:, :, 1]

        # Bottom row, deeper is warmer under an upward flux
        kind = self.bottom.kind
        if kind is BoundaryKind.DIRICHLET:
            T[:, :, -1] = initial[:, :, -1] if self.bottom.value is None else self.bottom.value
        elif kind is BoundaryKind.NEUMANN:
            T[:, :, -1] = (
                T[:, :, -2] + self.bottom.value * mesh.area_z[:, :, -1] / mesh.trans_z[:, :, -1]
            )
        else:
            T[:, :, -1] = T[:, :, -2]

    def __repr__(self) -> str:
        return (
            f"ThermalBoundaries(outer={self.outer!r}, top={self.top!r}, "
            f"bottom={self.bottom!r})"
        )


@dataclass(frozen=True)
class HydraulicBoundaries:
    """Head boundary conditions.

    Top and bottom rows hold fixed heads.  Both radial faces are closed
    (zero-gradient mirror) regardless of the thermal outer condition.

    Args:
        head_top: Head on the top row (m).
        head_bottom: Head on the bottom row (m).
    """

    head_top: float
    head_bottom: float

    def apply(self, h: np.ndarray) -> None:
        """Set boundary cells of *h* in place."""
        h[0] = h[1]
        h[-1] = h[-2]
        h[:, :, 0] = self.head_top
        h[:, :, -1] = self.head_bottom
