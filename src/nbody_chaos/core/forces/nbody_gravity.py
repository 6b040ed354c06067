"""Newtonian N-body gravity and its tangent (variational) linearization."""

from __future__ import annotations

import numpy as np

from ...errors import SingularGeometryError
from ..state.box import BoxConfig
from ..state.system import SimulationState


class NBodyGravity:
    """Direct O(N^2) softening-free gravity.

    G and the periodic box are read from the state on every call. With
    ``chunk_size`` set, rows are processed in blocks to bound the size of the
    (rows, N, 3) temporaries; the result does not depend on the block size.
    """

    def __init__(self, chunk_size: int | None = None) -> None:
        if chunk_size is not None and chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.chunk_size = chunk_size
        self.n_evaluations = 0

    def accelerate(self, state: SimulationState) -> None:
        particles = state.particles
        n = particles.n_real
        self.n_evaluations += 1
        if n == 0:
            state.acc_valid = True
            return

        pos = particles.pos[:n]
        mass = particles.mass[:n]
        dpos = particles.pos[n:] if particles.has_variational else None
        acc, acc_var = _nbody_accel(
            pos, mass, state.G, state.box, self.chunk_size, dpos=dpos
        )
        particles.acc[:n] = acc
        if acc_var is not None:
            particles.acc[n:] = acc_var
        state.acc_valid = True

    def acc_real(
        self,
        pos: np.ndarray,
        mass: np.ndarray,
        G: float,
        box: BoxConfig | None = None,
    ) -> np.ndarray:
        acc, _ = _nbody_accel(
            np.asarray(pos, dtype=np.float64),
            np.asarray(mass, dtype=np.float64),
            float(G),
            box or BoxConfig(),
            self.chunk_size,
        )
        return acc

    def acc_variational(
        self,
        pos: np.ndarray,
        mass: np.ndarray,
        dpos: np.ndarray,
        G: float,
        box: BoxConfig | None = None,
    ) -> np.ndarray:
        _, acc_var = _nbody_accel(
            np.asarray(pos, dtype=np.float64),
            np.asarray(mass, dtype=np.float64),
            float(G),
            box or BoxConfig(),
            self.chunk_size,
            dpos=np.asarray(dpos, dtype=np.float64),
        )
        return acc_var


def _nbody_accel(
    pos: np.ndarray,
    mass: np.ndarray,
    G: float,
    box: BoxConfig,
    chunk_size: int | None,
    dpos: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray | None]:
    n = pos.shape[0]
    acc = np.zeros((n, 3), dtype=np.float64)
    acc_var = np.zeros((n, 3), dtype=np.float64) if dpos is not None else None
    if n == 0:
        return acc, acc_var

    block = n if chunk_size is None else min(chunk_size, n)
    for i0 in range(0, n, block):
        i1 = min(i0 + block, n)
        rows = np.arange(i0, i1)
        # delta[i, j] = r_j - r_i
        delta = box.minimum_image(pos[None, :, :] - pos[i0:i1, None, :])
        dist2 = np.sum(delta * delta, axis=-1)
        dist2[rows - i0, rows] = np.inf
        _check_singular(dist2, i0)
        inv_dist3 = dist2 ** -1.5
        acc[i0:i1] = np.sum(
            delta * inv_dist3[..., np.newaxis] * mass[None, :, None],
            axis=1,
        )
        if dpos is None:
            continue

        ddelta = dpos[None, :, :] - dpos[i0:i1, None, :]
        proj = np.sum(delta * ddelta, axis=-1)
        inv_dist5 = inv_dist3 / dist2
        term = (
            ddelta * inv_dist3[..., np.newaxis]
            - 3.0 * (proj * inv_dist5)[..., np.newaxis] * delta
        )
        acc_var[i0:i1] = np.sum(term * mass[None, :, None], axis=1)

    acc *= G
    if acc_var is not None:
        acc_var *= G
    return acc, acc_var


def _check_singular(dist2: np.ndarray, row_offset: int) -> None:
    hits = np.argwhere(dist2 == 0.0)
    if hits.size == 0:
        return
    i, j = hits[0]
    raise SingularGeometryError(
        f"particles {row_offset + int(i)} and {int(j)} are at the same position"
    )
