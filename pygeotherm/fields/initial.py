"""Initial conditions.

Functions
---------
interpolate_profile
    Piecewise-linear temperature profile with linear end extrapolation.
initial_temperature
    Initial temperature field from a profile or a geothermal gradient.
initial_head
    Linear head between the top and bottom boundary values.
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np
from numpy.typing import ArrayLike


def interpolate_profile(
    profile: Sequence[tuple[float, float]],
    depth: ArrayLike,
) -> np.ndarray:
    """Evaluate a ``(depth, temperature)`` profile at *depth*.

    Points are sorted by depth.  Between points the profile is linear;
    beyond the first and last points it continues along the end
    segments.  A single point gives a constant.

    Args:
        profile: Sequence of ``(depth, temperature)`` pairs (m, K).
        depth: Depth(s) to evaluate (m, positive down).

    Returns:
        Temperatures with the shape of *depth*.

    Raises:
        ValueError: If *profile* is empty.
    """
    if len(profile) == 0:
        raise ValueError("Temperature profile is empty.")
    pts = np.array(sorted(profile), dtype=float)
    d = np.asarray(depth, dtype=float)
    if len(pts) == 1:
        return np.full(d.shape, pts[0, 1])

    xs, ts = pts[:, 0], pts[:, 1]
    out = np.interp(d, xs, ts)
    slope_top = (ts[1] - ts[0]) / (xs[1] - xs[0])
    slope_bottom = (ts[-1] - ts[-2]) / (xs[-1] - xs[-2])
    above = d < xs[0]
    below = d > xs[-1]
    out = np.where(above, ts[0] + slope_top * (d - xs[0]), out)
    out = np.where(below, ts[-1] + slope_bottom * (d - xs[-1]), out)
    return out


def initial_temperature(mesh: Any, options: Any) -> np.ndarray:
    """Initial temperature ``(nr, nθ, nz)`` (K), uniform in r and θ.

    Uses ``options.initial_temperature_profile`` when given, otherwise
    ``surface_temperature + geothermal_gradient · depth``.
    """
    depth = mesh.depth
    if options.initial_temperature_profile:
        column = interpolate_profile(options.initial_temperature_profile, depth)
    else:
        column = options.surface_temperature + options.geothermal_gradient * depth
    return np.broadcast_to(column[None, None, :], mesh.shape).copy()


def initial_head(mesh: Any, options: Any) -> np.ndarray:
    """Initial head ``(nr, nθ, nz)``, linear in z between the face values."""
    z = mesh.z
    frac = (z[0] - z) / (z[0] - z[-1])
    column = options.hydraulic_head_top + frac * (
        options.hydraulic_head_bottom - options.hydraulic_head_top
    )
    return np.broadcast_to(column[None, None, :], mesh.shape).copy()
