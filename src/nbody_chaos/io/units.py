"""Unit systems for scenarios and the gravitational constant in each."""

from __future__ import annotations

from dataclasses import dataclass


G_SI = 6.67430e-11
GAUSSIAN_K = 0.01720209895
G_GAUSSIAN = GAUSSIAN_K * GAUSSIAN_K

AU_M = 149_597_870_700.0
MSUN_KG = 1.98847e30
DAY_S = 86_400.0


@dataclass(frozen=True, slots=True)
class UnitSystem:
    """Length, mass and time units expressed in metres, kilograms and seconds."""

    name: str
    length_m: float
    mass_kg: float
    time_s: float
    exact_g: float | None = None

    @property
    def G(self) -> float:
        if self.exact_g is not None:
            return self.exact_g
        return G_SI * self.mass_kg * self.time_s**2 / self.length_m**3


# ASTRO (AU, solar mass, day) pins G to the Gaussian k^2 the ephemerides use
UNIT_SYSTEMS: dict[str, UnitSystem] = {
    "SI": UnitSystem("SI", 1.0, 1.0, 1.0),
    "KM": UnitSystem("KM", 1000.0, 1.0, 1.0),
    "ASTRO": UnitSystem("ASTRO", AU_M, MSUN_KG, DAY_S, exact_g=G_GAUSSIAN),
}


def unit_system_names() -> list[str]:
    return list(UNIT_SYSTEMS)


def get_unit_system(name: str) -> UnitSystem:
    key = str(name).upper()
    try:
        return UNIT_SYSTEMS[key]
    except KeyError:
        raise ValueError(f"unknown units preset: {name}") from None


def gravitational_constant(units: str | UnitSystem = "SI") -> float:
    system = units if isinstance(units, UnitSystem) else get_unit_system(units)
    return system.G
