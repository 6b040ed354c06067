"""Seeding and measuring the tangent-space shadow particles."""

from __future__ import annotations

import logging

import numpy as np

from ..errors import ConfigurationError, InvalidStateError
from .megno import MegnoAccumulator
from .state.particles import ParticlesState
from .state.system import SimulationState


logger = logging.getLogger(__name__)

_DELTA2_FLOOR = np.finfo(np.float64).tiny


def init_variational(
    state: SimulationState,
    epsilon: float,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
    direction: np.ndarray | None = None,
) -> None:
    """Append one shadow per real particle and attach a fresh MEGNO accumulator.

    The 6N deviation vector is a unit direction scaled by ``epsilon``. The
    direction is Gaussian-random (from ``rng`` or ``seed``) unless an explicit
    ``direction`` of shape (N, 6) is given, which is normalized first.
    """
    particles = state.particles
    if particles.has_variational:
        raise InvalidStateError("variational particles are already initialized")
    if particles.n_real == 0:
        raise InvalidStateError("add real particles before initializing variational ones")
    if state.steps_done > 0:
        raise InvalidStateError("variational particles must be initialized before the first step")
    epsilon = float(epsilon)
    if not np.isfinite(epsilon) or epsilon <= 0.0:
        raise ConfigurationError(f"epsilon must be finite and > 0, got {epsilon}")

    n = particles.n_real
    if direction is None:
        if rng is None:
            rng = np.random.default_rng(seed)
        direction = rng.standard_normal((n, 6))
    else:
        direction = np.array(direction, dtype=np.float64, copy=True)
        if direction.shape != (n, 6):
            raise ConfigurationError(f"direction must have shape ({n}, 6)")
    length = np.linalg.norm(direction)
    if not np.isfinite(length) or length == 0.0:
        raise ConfigurationError("direction must be finite and non-zero")
    direction *= epsilon / length

    particles.append_variational(direction[:, :3], direction[:, 3:])
    state.megno = MegnoAccumulator()
    state.invalidate_forces()
    logger.info("initialized %d variational particles (epsilon=%g)", n, epsilon)


def deviation_norm(particles: ParticlesState) -> float:
    """Norm of the full deviation vector sqrt(Σ |δr|² + |δv|²)."""
    if not particles.has_variational:
        raise InvalidStateError("variational particles are not initialized")
    var = particles.variational
    dp = particles.pos[var]
    dv = particles.vel[var]
    return float(np.sqrt(np.sum(dp * dp) + np.sum(dv * dv)))


def delta_dot_over_delta(particles: ParticlesState) -> float | None:
    """Logarithmic derivative δ̇/δ from the current deviations and their accelerations.

    Requires ``acc`` to be current for the present geometry. Returns ``None``
    when the deviation has collapsed to (numerically) zero.
    """
    if not particles.has_variational:
        raise InvalidStateError("variational particles are not initialized")
    var = particles.variational
    dp = particles.pos[var]
    dv = particles.vel[var]
    da = particles.acc[var]
    delta2 = float(np.sum(dp * dp) + np.sum(dv * dv))
    if not np.isfinite(delta2) or delta2 <= _DELTA2_FLOOR:
        return None
    return float(np.sum(dp * dv) + np.sum(dv * da)) / delta2


def update_megno(state: SimulationState, dt: float) -> None:
    """Advance the state's MEGNO accumulator by one completed step."""
    if state.megno is None:
        return
    state.megno.update(delta_dot_over_delta(state.particles), dt)
