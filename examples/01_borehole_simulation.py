# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: percent
#       format_version: '1.3'
#   kernelspec:
#     display_name: Python 3
#     language: python
#     name: python3
# ---

# %% [markdown]
# # 01: Borehole Heat Exchanger in Layered Ground
#
# One week of heat extraction from an 80 m U-tube borehole in a sand,
# clay and sandstone sequence with a downward groundwater gradient.
#
# **Governing equations:**
#
# $$\nabla \cdot (K \nabla h) = 0, \qquad
#   \frac{\partial T}{\partial t}
#   = \frac{\nabla \cdot (\lambda \nabla T)}{\rho c_p}
#   + D \nabla^2 T - \mathbf{v} \cdot \nabla T$$
#
# where $h$ is hydraulic head, $K$ hydraulic conductivity, $\mathbf{v}$
# the seepage velocity and $D = \alpha_L |\mathbf{v}|$ the mechanical
# dispersion coefficient.
#
# **Solver**: `pygeotherm.solvers.GeothermalSolver`

# %%
import logging

import numpy as np

from pygeotherm import SimulationOptions, setup_logging
from pygeotherm.geometry import LithologyLayer
from pygeotherm.materials import clay, sand, sandstone
from pygeotherm.solvers import GeothermalSolver

setup_logging(logging.INFO)

# %% [markdown]
# ## 1. Ground model
#
# | Layer     | Depth (m) | λ (W/(m K)) |
# |-----------|-----------|-------------|
# | sand      | 0 to 15   | 2.0         |
# | clay      | 15 to 40  | 1.5         |
# | sandstone | 40 to 100 | 2.8         |

# %%
layers = (
    LithologyLayer("sand", 0.0, 15.0, sand),
    LithologyLayer("clay", 15.0, 40.0, clay),
    LithologyLayer("sandstone", 40.0, 100.0, sandstone),
)

# %% [markdown]
# ## 2. Options

# %%
opts = SimulationOptions(
    borehole_depth=80.0,
    domain_extension=20.0,
    lithology=layers,
    inlet_temperature=278.15,
    radial_points=20,
    angular_points=8,
    vertical_points=30,
    simulation_time=7 * 86400.0,
    time_step=3600.0,
    save_interval=12,
)

# %% [markdown]
# ## 3. Solve

# %%
with GeothermalSolver(opts, progress=lambda f, msg: print(f"{100 * f:5.1f}%  {msg}")) as solver:
    results = solver.run()

print(results)

# %% [markdown]
# ## 4. Results

# %%
m = results.metrics
print(f"Average extraction rate : {m.average_extraction_rate:8.1f} W")
print(f"Extracted energy        : {m.total_extracted_energy / 3.6e6:8.2f} kWh")
print(f"Average COP             : {m.average_cop:8.2f}")
print(f"Borehole resistance     : {m.borehole_thermal_resistance:8.3f} m K/W")
print(f"Influence radius        : {m.thermal_influence_radius:8.2f} m")
print(f"Mean Peclet number      : {m.mean_peclet:8.2e}")
print(f"Pressure drawdown       : {m.pressure_drawdown:8.1f} Pa")
print(f"Iterations per step     : {results.average_iterations_per_step:8.1f}")

for layer in m.layers:
    print(
        f"{layer.name:>10s}: {layer.heat_flux_share:5.1f} % of heat flux, "
        f"dT = {layer.temperature_change:+.3f} K"
    )

# %%
depth, down, up = results.fluid_profile
for d, td, tu in zip(depth[::4], down[::4], up[::4]):
    print(f"{d:6.1f} m  down {td - 273.15:6.2f} °C  up {tu - 273.15:6.2f} °C")

# %%
T = results["temperature"]
print(f"Ground temperature range: {T.min() - 273.15:.2f} to {T.max() - 273.15:.2f} °C")
print(f"Largest change: {np.max(np.abs(T - solver.state.initial_temperature)):.3f} K")
