"""Fixed-step symplectic kick-drift-kick integrator."""

from __future__ import annotations

from dataclasses import dataclass

from ...errors import ConfigurationError
from ..forces.base import Model
from ..state.system import SimulationState
from .base import ensure_forces, finish_step


_CBRT2 = 2.0 ** (1.0 / 3.0)
_YOSHIDA_W1 = 1.0 / (2.0 - _CBRT2)
_YOSHIDA_W0 = -_CBRT2 / (2.0 - _CBRT2)


@dataclass(slots=True)
class Leapfrog:
    """Velocity Verlet over the whole buffer, optionally Yoshida-composed.

    Real and shadow rows share every kick and drift. Both kicks of a sub-step
    use accelerations from a single force call at one geometry, so the
    variational kick always sees the Jacobian of the real kick. The closing
    accelerations are reused by the next step's opening kick, making each
    sub-step cost one force evaluation.

    ``order=4`` composes three sub-steps with Yoshida's weights.
    """

    order: int = 2

    def __post_init__(self) -> None:
        if self.order not in (2, 4):
            raise ConfigurationError(f"leapfrog order must be 2 or 4, got {self.order}")

    def step(self, state: SimulationState, model: Model) -> float:
        dt = state.dt
        if self.order == 2:
            _kick_drift_kick(state, model, dt)
        else:
            for w in (_YOSHIDA_W1, _YOSHIDA_W0, _YOSHIDA_W1):
                _kick_drift_kick(state, model, w * dt)
        finish_step(state, dt)
        return dt

    def reset(self) -> None:
        pass


def _kick_drift_kick(state: SimulationState, model: Model, h: float) -> None:
    particles = state.particles
    ensure_forces(state, model)
    particles.vel += 0.5 * h * particles.acc
    particles.pos += h * particles.vel
    state.acc_valid = False
    model.accelerate(state)
    particles.vel += 0.5 * h * particles.acc
