"""Structured cylindrical finite-volume mesh around a borehole.

Classes
-------
CylindricalMesh
    Nodes on an ``nr × nθ × nz`` grid with per-cell material arrays,
    control-volume geometry and face conductances.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pygeotherm.errors import ConfigurationError
from pygeotherm.geometry.layers import assign_layer_ids
from pygeotherm.materials.base import PROPERTY_NAMES, MaterialMap
from pygeotherm.materials.library import grout, undefined

logger = logging.getLogger(__name__)

#: Material id of grouted cells that hold the heat-exchanger pipes.
HEAT_EXCHANGER_ID = 255


def _harmonic_mean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return 2.0 * a * b / (a + b)


def _edges(nodes: np.ndarray) -> np.ndarray:
    """Control-volume edges halfway between nodes, mirrored at both ends."""
    mid = 0.5 * (nodes[1:] + nodes[:-1])
    first = nodes[0] - (mid[0] - nodes[0])
    last = nodes[-1] + (nodes[-1] - mid[-1])
    return np.concatenate(([first], mid, [last]))


class CylindricalMesh:
    """Cylindrical mesh with cell-centred material properties.

    Nodes sit at ``(r[i], theta[j], z[k])``.  Index ``i = 0`` is the ring
    closest to the axis and ``i = nr - 1`` the far field; ``k = 0`` is the
    top row and ``z`` decreases with ``k`` (positive above ground).

    Per-cell arrays have shape ``(nr, nθ, nz)``.  Face arrays are indexed
    by the lower cell of the pair: radial faces ``(nr - 1, nθ, nz)``,
    angular faces ``(nr, nθ, nz)`` (face ``j`` joins ``j`` and ``j + 1``
    with periodic wrap) and vertical faces ``(nr, nθ, nz - 1)``.

    Args:
        r: Radial node coordinates, strictly increasing and positive.
        theta: Angular node coordinates, uniformly spaced over 2π.
        z: Vertical node coordinates, strictly decreasing.
        material_ids: Integer id per cell (default 0).
        thermal_conductivity: λ per cell or scalar (W/(m·K)).
        specific_heat: c_p per cell or scalar (J/(kg·K)).
        density: ρ per cell or scalar (kg/m³).
        porosity: φ per cell or scalar.
        permeability: k per cell or scalar (m²).

    Example::

        mesh = CylindricalMesh(
            r=np.linspace(0.5, 5.0, 10),
            theta=np.linspace(0, 2 * np.pi, 8, endpoint=False),
            z=np.linspace(0.0, -20.0, 21),
            thermal_conductivity=2.5, specific_heat=900.0, density=2650.0,
            porosity=0.1, permeability=1e-14,
        )
    """

    def __init__(
        self,
        r: ArrayLike,
        theta: ArrayLike,
        z: ArrayLike,
        material_ids: ArrayLike | None = None,
        thermal_conductivity: ArrayLike = 2.0,
        specific_heat: ArrayLike = 1000.0,
        density: ArrayLike = 2000.0,
        porosity: ArrayLike = 0.2,
        permeability: ArrayLike = 1e-14,
    ) -> None:
        self.r = np.asarray(r, dtype=float).copy()
        self.theta = np.asarray(theta, dtype=float).copy()
        self.z = np.asarray(z, dtype=float).copy()
        self._check_coordinates()

        shape = self.shape
        if material_ids is None:
            material_ids = np.zeros(shape, dtype=np.int64)
        self.material_ids = self._cell_array("material_ids", material_ids, np.int64)
        self.thermal_conductivity = self._cell_array("thermal_conductivity", thermal_conductivity)
        self.specific_heat = self._cell_array("specific_heat", specific_heat)
        self.density = self._cell_array("density", density)
        self.porosity = self._cell_array("porosity", porosity)
        self.permeability = self._cell_array("permeability", permeability)

        self._compute_geometry()
        self.update_transmissivities()
        self._frozen = False

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _check_coordinates(self) -> None:
        if self.r.ndim != 1 or self.theta.ndim != 1 or self.z.ndim != 1:
            raise ConfigurationError("mesh", "coordinate vectors must be 1-D")
        if self.nr < 3:
            raise ConfigurationError("mesh", "need at least 3 radial points")
        if self.ntheta < 4:
            raise ConfigurationError("mesh", "need at least 4 angular points")
        if self.nz < 3:
            raise ConfigurationError("mesh", "need at least 3 vertical points")
        if self.r[0] <= 0 or np.any(np.diff(self.r) <= 0):
            raise ConfigurationError("mesh", "r must be positive and strictly increasing")
        if np.any(np.diff(self.z) >= 0):
            raise ConfigurationError("mesh", "z must be strictly decreasing")
        spacing = np.diff(self.theta)
        if not np.allclose(spacing, 2.0 * np.pi / self.ntheta):
            raise ConfigurationError("mesh", "theta must be uniform over 2*pi")

    def _cell_array(self, name: str, values: ArrayLike, dtype: Any = float) -> np.ndarray:
        arr = np.asarray(values, dtype=dtype)
        try:
            return np.broadcast_to(arr, self.shape).copy()
        except ValueError:
            raise ConfigurationError(
                name, f"shape {arr.shape} does not match mesh shape {self.shape}"
            ) from None

    def _compute_geometry(self) -> None:
        r_edges = _edges(self.r)
        r_edges[0] = max(r_edges[0], 0.0)
        z_edges = _edges(self.z)
        self.dtheta = 2.0 * np.pi / self.ntheta
        #: Radial and vertical cell widths (m).
        self.dr = np.diff(r_edges)
        self.dz = -np.diff(z_edges)
        annulus = 0.5 * (r_edges[1:] ** 2 - r_edges[:-1] ** 2) * self.dtheta

        shape = self.shape
        self.volume = np.broadcast_to(
            annulus[:, None, None] * self.dz[None, None, :], shape
        ).copy()

        r_face = 0.5 * (self.r[1:] + self.r[:-1])
        r_gap = np.diff(self.r)
        z_gap = -np.diff(self.z)

        # Face areas
        self.area_r = np.broadcast_to(
            (r_face * self.dtheta)[:, None, None] * self.dz[None, None, :],
            (self.nr - 1, self.ntheta, self.nz),
        ).copy()
        self.area_theta = np.broadcast_to(
            self.dr[:, None, None] * self.dz[None, None, :], shape
        ).copy()
        self.area_z = np.broadcast_to(
            annulus[:, None, None], (self.nr, self.ntheta, self.nz - 1)
        ).copy()

        # Geometric conductances: face area / node distance (m)
        self.geom_r = self.area_r / r_gap[:, None, None]
        self.geom_theta = self.area_theta / (self.r * self.dtheta)[:, None, None]
        self.geom_z = self.area_z / z_gap[None, None, :]

    def update_transmissivities(self) -> None:
        """Recompute thermal face transmissivities (W/K) from conductivity.

        The face conductivity is the harmonic mean of the two cells it
        joins.
        """
        lam = self.thermal_conductivity
        self.trans_r = _harmonic_mean(lam[:-1], lam[1:]) * self.geom_r
        self.trans_theta = (
            _harmonic_mean(lam, np.roll(lam, -1, axis=1)) * self.geom_theta
        )
        self.trans_z = _harmonic_mean(lam[:, :, :-1], lam[:, :, 1:]) * self.geom_z

    # ------------------------------------------------------------------
    # Shape and derived properties
    # ------------------------------------------------------------------

    @property
    def nr(self) -> int:
        return len(self.r)

    @property
    def ntheta(self) -> int:
        return len(self.theta)

    @property
    def nz(self) -> int:
        return len(self.z)

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.nr, self.ntheta, self.nz)

    @property
    def n_cells(self) -> int:
        return self.nr * self.ntheta * self.nz

    @property
    def depth(self) -> np.ndarray:
        """Depth below ground surface per vertical node (m, ≥ 0)."""
        return np.maximum(0.0, -self.z)

    @property
    def heat_capacity(self) -> np.ndarray:
        """Volumetric heat capacity ρ·c_p per cell (J/(m³·K))."""
        return self.density * self.specific_heat

    @property
    def diffusivity(self) -> np.ndarray:
        """Thermal diffusivity λ/(ρ·c_p) per cell (m²/s)."""
        return self.thermal_conductivity / self.heat_capacity

    @property
    def heat_exchanger_mask(self) -> np.ndarray:
        """Boolean mask of grouted heat-exchanger cells."""
        return self.material_ids == HEAT_EXCHANGER_ID

    def min_spacing(self) -> float:
        """Smallest node spacing over the interior (m).

        Considers radial gaps, arc lengths at the innermost interior ring
        and vertical gaps.
        """
        radial = float(np.min(np.diff(self.r)))
        arc = float(self.r[1] * self.dtheta)
        vertical = float(np.min(-np.diff(self.z)))
        return min(radial, arc, vertical)

    def cell_length(self) -> np.ndarray:
        """Smaller of the local radial and vertical cell widths, ``(nr, 1, nz)``."""
        return np.minimum(self.dr[:, None, None], self.dz[None, None, :])

    # ------------------------------------------------------------------
    # Read-only lifecycle
    # ------------------------------------------------------------------

    def _arrays(self) -> list[np.ndarray]:
        props = [getattr(self, name) for name in PROPERTY_NAMES]
        return props + [self.material_ids, self.trans_r, self.trans_theta, self.trans_z]

    def freeze(self) -> None:
        """Make material and transmissivity arrays read-only."""
        for arr in self._arrays():
            arr.flags.writeable = False
        self._frozen = True

    def unfreeze(self) -> None:
        for arr in self._arrays():
            arr.flags.writeable = True
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_options(cls, options: Any) -> CylindricalMesh:
        """Build a structured mesh from :class:`~pygeotherm.options.SimulationOptions`.

        ``r[0]`` is a ring inside the borehole at half its radius; the
        remaining rings are log-spaced from the borehole wall to the
        domain radius.  Rows are uniform from the ground surface to the
        borehole depth plus the domain extension.  The two inner rings
        above the heat-exchanger depth are grout (id ``255``); lithology
        layer ``n`` gets id ``n + 1``; uncovered depths get id ``0``.
        """
        rb = options.borehole_radius
        r = np.concatenate((
            [0.5 * rb],
            np.geomspace(rb, options.domain_radius, options.radial_points - 1),
        ))
        theta = np.linspace(0.0, 2.0 * np.pi, options.angular_points, endpoint=False)
        z = np.linspace(
            0.0,
            -(options.borehole_depth + options.domain_extension),
            options.vertical_points,
        )

        depth = np.maximum(0.0, -z)
        column_ids = assign_layer_ids(depth, options.lithology)
        ids = np.broadcast_to(
            column_ids[None, None, :], (len(r), len(theta), len(z))
        ).copy()
        in_borehole = depth <= options.heat_exchanger_depth
        ids[:2, :, in_borehole] = HEAT_EXCHANGER_ID

        materials = {0: undefined, HEAT_EXCHANGER_ID: grout}
        for index, layer in enumerate(options.lithology):
            materials[index + 1] = layer.material
        mmap = MaterialMap(materials, ids)
        props = {name: mmap.cell_property(name) for name in PROPERTY_NAMES}
        props["thermal_conductivity"][ids == HEAT_EXCHANGER_ID] = options.grout_conductivity

        mesh = cls(r=r, theta=theta, z=z, material_ids=ids, **props)
        logger.info(
            "Built cylindrical mesh %d x %d x %d (%d heat-exchanger cells)",
            mesh.nr, mesh.ntheta, mesh.nz, int(mesh.heat_exchanger_mask.sum()),
        )
        return mesh

    def __repr__(self) -> str:
        return (
            f"CylindricalMesh(nr={self.nr}, ntheta={self.ntheta}, nz={self.nz}, "
            f"r=[{self.r[0]:.3g}, {self.r[-1]:.3g}], "
            f"z=[{self.z[0]:.3g}, {self.z[-1]:.3g}])"
        )
