"""Exception taxonomy."""

from __future__ import annotations


class NBodyChaosError(Exception):
    """Base class for all errors raised by nbody_chaos."""


class InvalidStateError(NBodyChaosError, RuntimeError):
    """Lifecycle or ordering violation (e.g. variational init called twice)."""


class ConfigurationError(NBodyChaosError, ValueError):
    """Malformed setup, rejected before any step executes."""


class SingularGeometryError(NBodyChaosError, ArithmeticError):
    """Two particles share the exact same position."""


class StepSizeCollapseError(NBodyChaosError, ArithmeticError):
    """Adaptive integrator cannot meet its tolerance at any usable step size."""
