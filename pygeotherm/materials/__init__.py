"""Materials: ground properties, presets and admissible-range validation."""

from pygeotherm.materials.base import Material, MaterialMap, PROPERTY_NAMES
from pygeotherm.materials.library import (
    sand,
    clay,
    gravel,
    sandstone,
    limestone,
    granite,
    grout,
    undefined,
)
from pygeotherm.materials.validation import PROPERTY_BOUNDS, validate_materials

__all__ = [
    "Material",
    "MaterialMap",
    "PROPERTY_NAMES",
    "sand",
    "clay",
    "gravel",
    "sandstone",
    "limestone",
    "granite",
    "grout",
    "undefined",
    "PROPERTY_BOUNDS",
    "validate_materials",
]
