"""Scenario files and unit presets."""

from .scenario import (  # noqa: F401
    load_scenario,
    save_scenario,
    scenario_to_simulation,
    validate_scenario,
)
from .units import GAUSSIAN_K, G_GAUSSIAN, gravitational_constant  # noqa: F401
