"""Flat contiguous field storage.

Classes
-------
FlatGrid
    Explicit ``(i, j, k) -> index`` stride arithmetic for one mesh shape.
DoubleBuffer
    Two flat buffers of one field, selected by a front index.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike


class FlatGrid:
    """Row-major stride layout of an ``nr × nθ × nz`` field.

    The vertical index is contiguous, so a column ``(i, j, :)`` is one
    memory run and eight consecutive angular cells are eight runs of
    ``nz`` values.

    Args:
        nr: Radial points.
        ntheta: Angular points.
        nz: Vertical points.
    """

    def __init__(self, nr: int, ntheta: int, nz: int) -> None:
        self.nr = nr
        self.ntheta = ntheta
        self.nz = nz
        self.strides = (ntheta * nz, nz, 1)

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.nr, self.ntheta, self.nz)

    @property
    def size(self) -> int:
        return self.nr * self.ntheta * self.nz

    def index(self, i: int, j: int, k: int) -> int:
        """Flat index of cell ``(i, j, k)``; ``j`` wraps periodically."""
        j = j % self.ntheta
        return (i * self.ntheta + j) * self.nz + k

    def view(self, flat: np.ndarray, components: int = 1) -> np.ndarray:
        """Reshape a flat buffer to ``(nr, nθ, nz)`` or ``(nr, nθ, nz, c)``.

        The result is a view; writes go to *flat*.
        """
        if components == 1:
            return flat.reshape(self.shape)
        return flat.reshape(self.shape + (components,))

    def __repr__(self) -> str:
        return f"FlatGrid(nr={self.nr}, ntheta={self.ntheta}, nz={self.nz})"


class DoubleBuffer:
    """Front/back pair of flat buffers for one scalar field.

    Solvers read :attr:`front` and write :attr:`back`, then call
    :meth:`swap` to adopt the new values.  The two buffers live in one
    ``(2, size)`` block and are selected by index.

    Args:
        grid: Stride layout.
        initial: Initial values, any shape with ``grid.size`` elements.
    """

    def __init__(self, grid: FlatGrid, initial: ArrayLike) -> None:
        self.grid = grid
        self._data = np.empty((2, grid.size), dtype=float)
        self._front = 0
        self._data[0] = np.asarray(initial, dtype=float).ravel()
        self._data[1] = self._data[0]

    @property
    def front(self) -> np.ndarray:
        """Current values as a ``(nr, nθ, nz)`` view."""
        return self.grid.view(self._data[self._front])

    @property
    def back(self) -> np.ndarray:
        """Scratch buffer for the next values as a ``(nr, nθ, nz)`` view."""
        return self.grid.view(self._data[1 - self._front])

    @property
    def front_index(self) -> int:
        return self._front

    def swap(self) -> None:
        """Adopt the back buffer as the current values."""
        self._front = 1 - self._front

    def load(self, values: ArrayLike) -> None:
        """Overwrite the current values."""
        self._data[self._front] = np.asarray(values, dtype=float).ravel()

    def copy_front(self) -> np.ndarray:
        return self.front.copy()

    def __repr__(self) -> str:
        return f"DoubleBuffer(shape={self.grid.shape}, front={self._front})"
