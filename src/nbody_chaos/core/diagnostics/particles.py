"""Particle diagnostics over the real particles of a simulation state."""

from __future__ import annotations

import numpy as np

from ..state.system import SimulationState


def _real(state: SimulationState) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    p = state.particles
    n = p.n_real
    return p.pos[:n], p.vel[:n], p.mass[:n]


def total_mass(state: SimulationState) -> float:
    _, _, m = _real(state)
    if m.size == 0:
        return 0.0
    return float(np.sum(m))


def center_of_mass(state: SimulationState) -> np.ndarray:
    pos, _, m = _real(state)
    if m.size == 0:
        raise ValueError("cannot compute center of mass for empty particle set")
    return np.sum(pos * m[:, np.newaxis], axis=0) / np.sum(m)


def center_of_mass_velocity(state: SimulationState) -> np.ndarray:
    _, vel, m = _real(state)
    if m.size == 0:
        raise ValueError("cannot compute center of mass for empty particle set")
    return np.sum(vel * m[:, np.newaxis], axis=0) / np.sum(m)


def linear_momentum(state: SimulationState) -> np.ndarray:
    _, vel, m = _real(state)
    if m.size == 0:
        return np.zeros(3, dtype=np.float64)
    return np.sum(vel * m[:, np.newaxis], axis=0)


def angular_momentum(state: SimulationState) -> np.ndarray:
    pos, vel, m = _real(state)
    if m.size == 0:
        return np.zeros(3, dtype=np.float64)
    return np.sum(np.cross(pos, vel) * m[:, np.newaxis], axis=0)


def kinetic_energy(state: SimulationState) -> float:
    _, vel, m = _real(state)
    if m.size == 0:
        return 0.0
    v2 = np.sum(vel**2, axis=1)
    return float(0.5 * np.sum(m * v2))


def potential_energy_gravity(state: SimulationState) -> float:
    pos, _, m = _real(state)
    n = pos.shape[0]
    if n < 2:
        return 0.0

    delta = state.box.minimum_image(pos[None, :, :] - pos[:, None, :])
    dist2 = np.sum(delta * delta, axis=-1)
    iu = np.triu_indices(n, k=1)
    dist = np.sqrt(dist2[iu])
    mprod = m[iu[0]] * m[iu[1]]
    return float(-state.G * np.sum(mprod / dist))


def total_energy_gravity(state: SimulationState) -> float:
    return kinetic_energy(state) + potential_energy_gravity(state)


def move_to_center_of_momentum(state: SimulationState) -> None:
    """Shift real particles so the barycenter sits at rest at the origin.

    Shadow rows are deviations and are left untouched.
    """
    p = state.particles
    if p.n_real == 0:
        return
    com = center_of_mass(state)
    com_vel = center_of_mass_velocity(state)
    p.pos[: p.n_real] -= com
    p.vel[: p.n_real] -= com_vel
    state.invalidate_forces()
