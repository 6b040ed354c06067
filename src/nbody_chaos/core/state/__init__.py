"""State namespace."""

from .box import BoxConfig  # noqa: F401
from .particles import ParticlesState  # noqa: F401
from .system import SimulationState  # noqa: F401
