"""Radial work partitioning and fixed-width lane arithmetic.

Classes
-------
RadialPartition
    Splits the interior radial range into disjoint slabs and evaluates a
    kernel on each slab, possibly on a thread pool.
ScalarLanes
    Double-precision evaluation over the whole angular axis.
VectorLanes
    Single-precision evaluation in blocks of eight angular cells with a
    double-precision remainder.

Functions
---------
select_lanes
    Pick the lane implementation once, at solver initialisation.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import numpy as np

logger = logging.getLogger(__name__)

#: Width of a vector lane block along the angular axis.
LANE_WIDTH = 8


class RadialPartition:
    """Disjoint slabs of interior radial indices ``1 .. nr - 2``.

    A kernel ``f(lo, hi) -> float`` receives a half-open slab and must
    write only rows ``lo:hi`` of its output buffer.  Per-slab results are
    reduced to a maximum under a lock taken once per slab.

    Args:
        nr: Number of radial points.
        workers: Requested parallelism; capped at the number of interior
            rings.  With one worker kernels run inline.
    """

    def __init__(self, nr: int, workers: int = 1) -> None:
        interior = max(nr - 2, 1)
        self.workers = max(1, min(int(workers), interior))
        bounds = np.linspace(1, nr - 1, self.workers + 1).round().astype(int)
        self.slabs: list[tuple[int, int]] = [
            (int(lo), int(hi)) for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo
        ]
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="pygeotherm"
            )

    def run(self, kernel: Callable[[int, int], float]) -> float:
        """Evaluate *kernel* on every slab and return the largest result.

        Exceptions raised by a kernel propagate to the caller.
        """
        reduced = [0.0]

        def task(slab: tuple[int, int]) -> None:
            local = float(kernel(*slab))
            with self._lock:
                # NaN wins the reduction and stays
                if np.isnan(local) or local > reduced[0]:
                    reduced[0] = local

        if self._executor is None:
            for slab in self.slabs:
                task(slab)
        else:
            for _ in self._executor.map(task, self.slabs):
                pass
        return reduced[0]

    def close(self) -> None:
        """Shut down the thread pool, if any."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __repr__(self) -> str:
        return f"RadialPartition(workers={self.workers}, slabs={self.slabs})"


class ScalarLanes:
    """Double-precision kernels over whole arrays.

    Arrays passed to the lane operations have the angular axis at
    position 1, i.e. shape ``(ni, nθ, nk)``.
    """

    width = 1
    name = "scalar"

    def weighted_sum(
        self,
        weights: Sequence[np.ndarray],
        values: Sequence[np.ndarray],
    ) -> np.ndarray:
        """Return ``Σ weights[n] * values[n]`` in float64."""
        out = np.zeros(np.shape(values[0]))
        for w, v in zip(weights, values):
            out += w * v
        return out

    def upwind(
        self,
        velocity: np.ndarray,
        backward: np.ndarray,
        forward: np.ndarray,
    ) -> np.ndarray:
        """Select *backward* where ``velocity > 0``, else *forward*."""
        return np.where(velocity > 0.0, backward, forward)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(width={self.width})"


class VectorLanes(ScalarLanes):
    """Eight-wide single-precision blocks with a scalar remainder.

    Full blocks of :data:`LANE_WIDTH` angular cells are evaluated in
    float32; the trailing ``nθ mod 8`` cells fall back to
    :class:`ScalarLanes` arithmetic.  Results are returned in float64.
    """

    width = LANE_WIDTH
    name = "vector"

    def _blocks(self, n: int) -> tuple[list[slice], slice | None]:
        full = n - n % self.width
        blocks = [slice(s, s + self.width) for s in range(0, full, self.width)]
        remainder = slice(full, n) if full < n else None
        return blocks, remainder

    def weighted_sum(
        self,
        weights: Sequence[np.ndarray],
        values: Sequence[np.ndarray],
    ) -> np.ndarray:
        shape = np.shape(values[0])
        ws = [np.broadcast_to(w, shape) for w in weights]
        out = np.empty(shape)
        blocks, remainder = self._blocks(shape[1])
        for block in blocks:
            acc = np.zeros((shape[0], self.width, shape[2]), dtype=np.float32)
            for w, v in zip(ws, values):
                acc += w[:, block].astype(np.float32) * v[:, block].astype(np.float32)
            out[:, block] = acc
        if remainder is not None:
            out[:, remainder] = super().weighted_sum(
                [w[:, remainder] for w in ws], [v[:, remainder] for v in values]
            )
        return out

    def upwind(
        self,
        velocity: np.ndarray,
        backward: np.ndarray,
        forward: np.ndarray,
    ) -> np.ndarray:
        shape = np.shape(backward)
        v = np.broadcast_to(velocity, shape)
        out = np.empty(shape)
        blocks, remainder = self._blocks(shape[1])
        for block in blocks:
            mask = v[:, block].astype(np.float32) > np.float32(0.0)
            out[:, block] = np.where(
                mask,
                backward[:, block].astype(np.float32),
                forward[:, block].astype(np.float32),
            )
        if remainder is not None:
            out[:, remainder] = super().upwind(
                v[:, remainder], backward[:, remainder], forward[:, remainder]
            )
        return out


def select_lanes(use_simd: bool, ntheta: int) -> ScalarLanes:
    """Return :class:`VectorLanes` when enabled and at least one block fits."""
    if use_simd and ntheta >= LANE_WIDTH:
        lanes: ScalarLanes = VectorLanes()
    else:
        lanes = ScalarLanes()
    logger.debug("Using %s lanes for %d angular cells", lanes.name, ntheta)
    return lanes
