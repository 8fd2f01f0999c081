"""Post-processing: convergence history and performance metrics."""

from pygeotherm.postprocess.convergence import ConvergenceTracker, DivergenceEvent
from pygeotherm.postprocess.metrics import (
    LayerContribution,
    PerformanceMetrics,
    StorageMetrics,
    coefficient_of_performance,
    total_energy,
    borehole_thermal_resistance,
    effective_properties,
    thermal_influence_radius,
    layer_contributions,
    stored_energy,
    pressure_drawdown,
    storage_metrics,
    compute_metrics,
)

__all__ = [
    "ConvergenceTracker",
    "DivergenceEvent",
    "LayerContribution",
    "PerformanceMetrics",
    "StorageMetrics",
    "coefficient_of_performance",
    "total_energy",
    "borehole_thermal_resistance",
    "effective_properties",
    "thermal_influence_radius",
    "layer_contributions",
    "stored_energy",
    "pressure_drawdown",
    "storage_metrics",
    "compute_metrics",
]
