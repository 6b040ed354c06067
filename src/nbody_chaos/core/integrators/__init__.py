"""Integrator interfaces and implementations."""

from __future__ import annotations

from typing import Any

from ...errors import ConfigurationError
from .base import Integrator  # noqa: F401
from .ias15 import IAS15
from .leapfrog import Leapfrog


INTEGRATORS: dict[str, type] = {
    "leapfrog": Leapfrog,
    "symplectic": Leapfrog,
    "ias15": IAS15,
    "adaptive_high_order": IAS15,
}

_OPTIONS: dict[type, set[str]] = {
    Leapfrog: {"order"},
    IAS15: {"epsilon", "min_dt", "safety_factor"},
}


def make_integrator(name: str, **options: Any) -> Integrator:
    """Build an integrator by name, ignoring options that belong to other variants.

    Options no integrator accepts are rejected.
    """
    key = str(name).strip().lower()
    if key not in INTEGRATORS:
        raise ConfigurationError(f"unsupported integrator: {name}")
    unknown = sorted(set(options) - set().union(*_OPTIONS.values()))
    if unknown:
        raise ConfigurationError(f"unknown integrator option(s): {', '.join(unknown)}")
    cls = INTEGRATORS[key]
    kwargs = {k: v for k, v in options.items() if k in _OPTIONS[cls] and v is not None}
    return cls(**kwargs)


__all__ = ["IAS15", "INTEGRATORS", "Integrator", "Leapfrog", "make_integrator"]
