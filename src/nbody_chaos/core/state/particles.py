"""Particle buffer holding real particles followed by their variational shadows."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from ...errors import ConfigurationError, InvalidStateError


ArrayF = NDArray[np.float64]


@dataclass(slots=True)
class ParticlesState:
    """Flat particle buffer.

    Rows ``[0, n_real)`` are real particles. Once the variational subsystem is
    initialized, rows ``[n_real, 2 * n_real)`` hold the deviation vectors, row
    ``n_real + i`` shadowing real particle ``i``. For shadow rows ``pos`` and
    ``vel`` are tangent-space deviations, not physical coordinates.
    """

    pos: ArrayF
    vel: ArrayF
    mass: ArrayF
    acc: ArrayF | None = None
    n_real: int | None = None

    def __post_init__(self) -> None:
        self.pos = np.ascontiguousarray(self.pos, dtype=np.float64)
        self.vel = np.ascontiguousarray(self.vel, dtype=np.float64)
        self.mass = np.ascontiguousarray(self.mass, dtype=np.float64)
        if self.acc is None:
            self.acc = np.zeros_like(self.pos)
        else:
            self.acc = np.ascontiguousarray(self.acc, dtype=np.float64)
        if self.n_real is None:
            self.n_real = int(self.mass.shape[0]) if self.mass.ndim == 1 else 0
        self.validate()

    @classmethod
    def empty(cls) -> "ParticlesState":
        return cls(
            pos=np.zeros((0, 3), dtype=np.float64),
            vel=np.zeros((0, 3), dtype=np.float64),
            mass=np.zeros(0, dtype=np.float64),
        )

    def validate(self) -> None:
        if self.pos.ndim != 2 or self.pos.shape[1] != 3:
            raise ConfigurationError("pos must have shape (N, 3)")
        if self.vel.shape != self.pos.shape:
            raise ConfigurationError("vel must have shape (N, 3)")
        if self.acc.shape != self.pos.shape:
            raise ConfigurationError("acc must have shape (N, 3)")
        if self.mass.ndim != 1 or self.mass.shape[0] != self.pos.shape[0]:
            raise ConfigurationError("mass must have shape (N,)")
        total = self.pos.shape[0]
        if self.n_real < 0 or total not in (self.n_real, 2 * self.n_real):
            raise ConfigurationError(
                "buffer must hold n_real particles, optionally followed by n_real shadows"
            )
        real_mass = self.mass[: self.n_real]
        if not np.all(np.isfinite(real_mass)) or np.any(real_mass <= 0.0):
            raise ConfigurationError("particle masses must be finite and > 0")
        if not (np.all(np.isfinite(self.pos)) and np.all(np.isfinite(self.vel))):
            raise ConfigurationError("pos and vel must be finite")

    @property
    def n_total(self) -> int:
        return int(self.pos.shape[0])

    @property
    def has_variational(self) -> bool:
        return self.n_total > self.n_real

    @property
    def real(self) -> slice:
        return slice(0, self.n_real)

    @property
    def variational(self) -> slice:
        return slice(self.n_real, self.n_total)

    def particle_count(self) -> int:
        """Number of real particles; shadows are not counted."""
        return self.n_real

    def add_particle(self, pos, vel, mass: float) -> int:
        """Append one real particle and return its index."""
        if self.has_variational:
            raise InvalidStateError(
                "cannot add particles after the variational subsystem is initialized"
            )
        p = np.asarray(pos, dtype=np.float64).reshape(-1)
        v = np.asarray(vel, dtype=np.float64).reshape(-1)
        m = float(mass)
        if p.shape != (3,) or v.shape != (3,):
            raise ConfigurationError("pos and vel must have 3 components")
        if not (np.all(np.isfinite(p)) and np.all(np.isfinite(v))):
            raise ConfigurationError("pos and vel must be finite")
        if not np.isfinite(m) or m <= 0.0:
            raise ConfigurationError(f"particle mass must be finite and > 0, got {m}")

        self.pos = np.concatenate([self.pos, p[np.newaxis, :]], axis=0)
        self.vel = np.concatenate([self.vel, v[np.newaxis, :]], axis=0)
        self.acc = np.concatenate([self.acc, np.zeros((1, 3))], axis=0)
        self.mass = np.append(self.mass, m)
        self.n_real += 1
        return self.n_real - 1

    def append_variational(self, dpos: ArrayF, dvel: ArrayF) -> None:
        """Append one shadow row per real particle with the given deviations."""
        if self.has_variational:
            raise InvalidStateError("variational particles already exist")
        if self.n_real == 0:
            raise InvalidStateError("no real particles to shadow")
        dpos = np.asarray(dpos, dtype=np.float64)
        dvel = np.asarray(dvel, dtype=np.float64)
        if dpos.shape != (self.n_real, 3) or dvel.shape != (self.n_real, 3):
            raise ConfigurationError("deviation arrays must have shape (N, 3)")

        self.pos = np.concatenate([self.pos, dpos], axis=0)
        self.vel = np.concatenate([self.vel, dvel], axis=0)
        self.acc = np.concatenate([self.acc, np.zeros_like(dpos)], axis=0)
        self.mass = np.concatenate([self.mass, self.mass[: self.n_real]])

    def copy(self) -> "ParticlesState":
        return ParticlesState(
            pos=self.pos.copy(),
            vel=self.vel.copy(),
            mass=self.mass.copy(),
            acc=self.acc.copy(),
            n_real=self.n_real,
        )
