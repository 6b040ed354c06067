"""Gravitational N-body integration with variational equations and MEGNO."""

from __future__ import annotations

from .core.simulation import Simulation, every, output_check  # noqa: F401
from .errors import (  # noqa: F401
    ConfigurationError,
    InvalidStateError,
    NBodyChaosError,
    SingularGeometryError,
    StepSizeCollapseError,
)

__version__ = "0.1.0"
