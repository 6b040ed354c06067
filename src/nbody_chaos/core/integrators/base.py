"""Integrator interface and shared step bookkeeping."""

from __future__ import annotations

from typing import Protocol

from ..forces.base import Model
from ..state.system import SimulationState
from ..variational import update_megno


class Integrator(Protocol):
    def step(self, state: SimulationState, model: Model) -> float:
        """Advance real and variational particles by one step (mutating).

        Returns the time actually elapsed, which adaptive schemes may choose
        differently from ``state.dt``.
        """

    def reset(self) -> None:
        """Drop any coefficients cached from previous steps."""


def ensure_forces(state: SimulationState, model: Model) -> None:
    if not state.acc_valid:
        model.accelerate(state)


def finish_step(state: SimulationState, dt_done: float) -> None:
    """Advance the clock and fold the completed step into the MEGNO sums.

    Accelerations must be current for the end-of-step geometry.
    """
    state.t += dt_done
    state.steps_done += 1
    state.dt_last_done = dt_done
    update_megno(state, dt_done)
