"""Horizontal lithology layers along the borehole.

Classes
-------
LithologyLayer
    One depth interval of a single ground material.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike

from pygeotherm.materials.base import Material


@dataclass(frozen=True)
class LithologyLayer:
    """A single horizontal layer.

    Args:
        name: Identifier for the layer.
        depth_from: Top depth below ground surface (m, positive down).
        depth_to: Bottom depth (m), greater than *depth_from*.
        material: Ground material filling the layer.
    """

    name: str
    depth_from: float
    depth_to: float
    material: Material

    @property
    def thickness(self) -> float:
        return self.depth_to - self.depth_from

    def contains(self, depth: ArrayLike) -> np.ndarray:
        """Return a boolean mask of depths inside ``[depth_from, depth_to)``."""
        d = np.asarray(depth, dtype=float)
        return (d >= self.depth_from) & (d < self.depth_to)


def assign_layer_ids(
    depth: ArrayLike,
    layers: Sequence[LithologyLayer],
) -> np.ndarray:
    """Return the material id for each depth.

    Layer ``n`` in *layers* gets id ``n + 1``; depths no layer covers get
    ``0``.  Where layers overlap the first one listed wins.  The bottom
    edge of the deepest layer belongs to that layer, so a domain that ends
    exactly there is fully covered.
    """
    d = np.asarray(depth, dtype=float)
    ids = np.zeros(d.shape, dtype=np.int64)
    for index, layer in enumerate(layers):
        ids[layer.contains(d) & (ids == 0)] = index + 1
    if len(layers):
        deepest = max(range(len(layers)), key=lambda n: layers[n].depth_to)
        ids[(ids == 0) & (d == layers[deepest].depth_to)] = deepest + 1
    return ids
