"""Simulation state threaded through integrators and the MEGNO accumulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from ...errors import ConfigurationError
from .box import BoxConfig
from .particles import ParticlesState

if TYPE_CHECKING:
    from ..megno import MegnoAccumulator


@dataclass(slots=True)
class SimulationState:
    particles: ParticlesState = field(default_factory=ParticlesState.empty)
    t: float = 0.0
    dt: float = 0.01
    G: float = 1.0
    box: BoxConfig = field(default_factory=BoxConfig)
    steps_done: int = 0
    dt_last_done: float = 0.0
    megno: "MegnoAccumulator | None" = None
    acc_valid: bool = False

    def __post_init__(self) -> None:
        self.t = float(self.t)
        self.dt = float(self.dt)
        self.G = float(self.G)
        self.validate()

    def validate(self) -> None:
        if not np.isfinite(self.t):
            raise ConfigurationError("t must be finite")
        if not np.isfinite(self.dt) or self.dt <= 0.0:
            raise ConfigurationError("dt must be finite and > 0")
        if not np.isfinite(self.G) or self.G <= 0.0:
            raise ConfigurationError("G must be finite and > 0")
        self.particles.validate()

    def invalidate_forces(self) -> None:
        """Mark cached accelerations stale after an external position change."""
        self.acc_valid = False

    def clone(self) -> "SimulationState":
        megno = self.megno.copy() if self.megno is not None else None
        return SimulationState(
            particles=self.particles.copy(),
            t=self.t,
            dt=self.dt,
            G=self.G,
            box=self.box,
            steps_done=self.steps_done,
            dt_last_done=self.dt_last_done,
            megno=megno,
            acc_valid=self.acc_valid,
        )
