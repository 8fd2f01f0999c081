"""Mutable field state of one simulation run.

Classes
-------
FieldState
    Temperature, head, pressure, velocity, Péclet and dispersion fields.
ExchangerState
    Fluid temperatures along the down and up legs of the pipe.
FieldCheckpoint
    Copy of a :class:`FieldState` for step rollback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from pygeotherm.fields.buffers import DoubleBuffer, FlatGrid

#: Hard temperature bounds (K).
T_MIN = 273.0
T_MAX = 473.0

#: Fixed number of pipe segments along the heat exchanger.
N_SEGMENTS = 20


@dataclass(frozen=True)
class FieldCheckpoint:
    temperature: np.ndarray
    head: np.ndarray
    pressure: np.ndarray
    velocity: np.ndarray
    peclet: np.ndarray
    dispersion: np.ndarray


class FieldState:
    """Field arrays on a mesh, stored as flat contiguous buffers.

    Temperature and head are :class:`DoubleBuffer` objects; the derived
    fields are single flat buffers exposed as shaped views.

    Args:
        mesh: The :class:`~pygeotherm.geometry.mesh.CylindricalMesh`.
        initial_temperature: Initial temperature ``(nr, nθ, nz)`` (K).
        initial_head: Initial hydraulic head ``(nr, nθ, nz)`` (m).
        fluid_density: ρ_w for the pressure field (kg/m³).
        gravity: g (m/s²).
    """

    def __init__(
        self,
        mesh: Any,
        initial_temperature: ArrayLike,
        initial_head: ArrayLike,
        fluid_density: float = 1000.0,
        gravity: float = 9.81,
    ) -> None:
        self.mesh = mesh
        self.grid = FlatGrid(mesh.nr, mesh.ntheta, mesh.nz)
        self.fluid_density = fluid_density
        self.gravity = gravity

        t0 = np.clip(np.asarray(initial_temperature, dtype=float), T_MIN, T_MAX)
        self.temperature = DoubleBuffer(self.grid, t0)
        self.head = DoubleBuffer(self.grid, initial_head)

        n = self.grid.size
        self._pressure = np.zeros(n)
        self._velocity = np.zeros(3 * n)
        self._peclet = np.zeros(n)
        self._dispersion = np.zeros(n)

        self.initial_temperature = self.temperature.copy_front()
        self.initial_temperature.flags.writeable = False
        self.update_pressure()
        self.initial_pressure = self.pressure.copy()
        self.initial_pressure.flags.writeable = False

    # ------------------------------------------------------------------
    # Shaped views
    # ------------------------------------------------------------------

    @property
    def T(self) -> np.ndarray:
        """Current temperature (K)."""
        return self.temperature.front

    @property
    def h(self) -> np.ndarray:
        """Current hydraulic head (m)."""
        return self.head.front

    @property
    def pressure(self) -> np.ndarray:
        """Pore pressure ρ_w·g·(h − z) (Pa)."""
        return self.grid.view(self._pressure)

    @property
    def velocity(self) -> np.ndarray:
        """Seepage velocity ``(nr, nθ, nz, 3)``: radial, angular, vertical (m/s)."""
        return self.grid.view(self._velocity, components=3)

    @property
    def peclet(self) -> np.ndarray:
        return self.grid.view(self._peclet)

    @property
    def dispersion(self) -> np.ndarray:
        """Mechanical dispersion coefficient α_L·|v| (m²/s)."""
        return self.grid.view(self._dispersion)

    def speed(self) -> np.ndarray:
        """Velocity magnitude |v| per cell (m/s)."""
        return np.linalg.norm(self.velocity, axis=-1)

    def update_pressure(self) -> None:
        z = self.mesh.z[None, None, :]
        self.pressure[...] = self.fluid_density * self.gravity * (self.h - z)

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def checkpoint(self) -> FieldCheckpoint:
        """Copy the current values of every field."""
        return FieldCheckpoint(
            temperature=self.temperature.copy_front(),
            head=self.head.copy_front(),
            pressure=self._pressure.copy(),
            velocity=self._velocity.copy(),
            peclet=self._peclet.copy(),
            dispersion=self._dispersion.copy(),
        )

    def restore(self, checkpoint: FieldCheckpoint) -> None:
        """Reset every field to *checkpoint*."""
        self.temperature.load(checkpoint.temperature)
        self.head.load(checkpoint.head)
        self._pressure[:] = checkpoint.pressure
        self._velocity[:] = checkpoint.velocity
        self._peclet[:] = checkpoint.peclet
        self._dispersion[:] = checkpoint.dispersion

    def snapshot(self) -> dict[str, np.ndarray]:
        """Independent copies of all fields, keyed by name."""
        return {
            "temperature": self.T.copy(),
            "head": self.h.copy(),
            "pressure": self.pressure.copy(),
            "velocity": self.velocity.copy(),
            "peclet": self.peclet.copy(),
            "dispersion": self.dispersion.copy(),
        }

    def __repr__(self) -> str:
        return (
            f"FieldState(shape={self.grid.shape}, "
            f"T=[{self.T.min():.2f}, {self.T.max():.2f}] K)"
        )


class ExchangerState:
    """Fluid temperature per pipe segment, top to bottom.

    Args:
        inlet_temperature: Initial value of every segment (K).
        n_segments: Number of segments.
    """

    def __init__(self, inlet_temperature: float, n_segments: int = N_SEGMENTS) -> None:
        self.down = np.full(n_segments, float(inlet_temperature))
        self.up = np.full(n_segments, float(inlet_temperature))

    @property
    def n_segments(self) -> int:
        return len(self.down)

    def reset(self, inlet_temperature: float) -> None:
        self.down[:] = inlet_temperature
        self.up[:] = inlet_temperature

    def copy(self) -> ExchangerState:
        other = ExchangerState(0.0, self.n_segments)
        other.down[:] = self.down
        other.up[:] = self.up
        return other

    def restore(self, other: ExchangerState) -> None:
        self.down[:] = other.down
        self.up[:] = other.up

    def __repr__(self) -> str:
        return (
            f"ExchangerState(n_segments={self.n_segments}, "
            f"outlet={self.up[0]:.2f} K)"
        )
