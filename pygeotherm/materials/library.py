"""Standard ground materials.

Pre-configured :class:`~pygeotherm.materials.base.Material` instances for
common lithologies around shallow geothermal boreholes.  Values are
mid-range textbook estimates.

Usage::

    from pygeotherm.materials import granite
    print(granite.thermal_conductivity)  # 3.0 W/(m·K)
"""

from pygeotherm.materials.base import Material

# ------------------------------------------------------------------
# Unconsolidated
# ------------------------------------------------------------------

sand = Material(
    name="sand",
    thermal_conductivity=2.0,      # W/(m·K)
    specific_heat=800.0,           # J/(kg·K)
    density=1900.0,                # kg/m³
    porosity=0.35,
    permeability=1e-11,            # m²
)

clay = Material(
    name="clay",
    thermal_conductivity=1.5,
    specific_heat=900.0,
    density=1800.0,
    porosity=0.45,
    permeability=1e-17,
)

gravel = Material(
    name="gravel",
    thermal_conductivity=2.5,
    specific_heat=750.0,
    density=2000.0,
    porosity=0.30,
    permeability=1e-9,
)

# ------------------------------------------------------------------
# Rock
# ------------------------------------------------------------------

sandstone = Material(
    name="sandstone",
    thermal_conductivity=2.8,
    specific_heat=850.0,
    density=2400.0,
    porosity=0.15,
    permeability=1e-13,
)

limestone = Material(
    name="limestone",
    thermal_conductivity=2.5,
    specific_heat=880.0,
    density=2600.0,
    porosity=0.10,
    permeability=1e-14,
)

granite = Material(
    name="granite",
    thermal_conductivity=3.0,
    specific_heat=790.0,
    density=2650.0,
    porosity=0.01,
    permeability=1e-18,
)

# ------------------------------------------------------------------
# Borehole fill and unassigned cells
# ------------------------------------------------------------------

#: Thermal properties other than conductivity for grouted borehole cells;
#: the conductivity comes from the options.
grout = Material(
    name="grout",
    thermal_conductivity=2.0,
    specific_heat=1000.0,
    density=1800.0,
    porosity=0.3,
    permeability=1e-16,
)

#: Fallback for cells no lithology layer covers (material id 0).
undefined = Material(
    name="undefined",
    thermal_conductivity=2.0,
    specific_heat=1000.0,
    density=2000.0,
    porosity=0.2,
    permeability=1e-14,
)
