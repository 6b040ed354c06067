"""Diagnostics namespace."""

from .particles import (  # noqa: F401
    angular_momentum,
    center_of_mass,
    center_of_mass_velocity,
    kinetic_energy,
    linear_momentum,
    move_to_center_of_momentum,
    potential_energy_gravity,
    total_energy_gravity,
    total_mass,
)
