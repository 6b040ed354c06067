"""Simulation domain and per-axis periodicity."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from ...errors import ConfigurationError


ArrayF = NDArray[np.float64]


@dataclass(frozen=True, slots=True)
class BoxConfig:
    """Domain lengths and periodic flags for the x, y and z axes.

    Only periodic axes matter to the dynamics: the gravity model applies the
    minimum-image convention along them. Open axes are unbounded.
    """

    size: tuple[float, float, float] = (np.inf, np.inf, np.inf)
    periodic: tuple[bool, bool, bool] = (False, False, False)
    _size_arr: ArrayF = field(init=False, repr=False, compare=False)
    _periodic_arr: NDArray[np.bool_] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        size = np.asarray(self.size, dtype=np.float64).reshape(-1)
        periodic = np.asarray(self.periodic, dtype=bool).reshape(-1)
        if size.shape != (3,):
            raise ConfigurationError("box size must have 3 components")
        if periodic.shape != (3,):
            raise ConfigurationError("box periodic flags must have 3 components")
        for axis in range(3):
            if np.isnan(size[axis]) or size[axis] <= 0.0:
                raise ConfigurationError(f"box size along axis {axis} must be > 0")
            if periodic[axis] and not np.isfinite(size[axis]):
                raise ConfigurationError(
                    f"periodic axis {axis} needs a finite box size"
                )
        object.__setattr__(self, "size", tuple(float(s) for s in size))
        object.__setattr__(self, "periodic", tuple(bool(p) for p in periodic))
        object.__setattr__(self, "_size_arr", size)
        object.__setattr__(self, "_periodic_arr", periodic)

    @classmethod
    def cube(cls, size: float, periodic: bool = False) -> "BoxConfig":
        return cls(size=(size, size, size), periodic=(periodic, periodic, periodic))

    @property
    def any_periodic(self) -> bool:
        return bool(np.any(self._periodic_arr))

    def minimum_image(self, delta: ArrayF) -> ArrayF:
        """Wrap separation vectors (..., 3) into the nearest periodic image."""
        if not self.any_periodic:
            return delta
        out = np.array(delta, dtype=np.float64, copy=True)
        for axis in np.flatnonzero(self._periodic_arr):
            length = self._size_arr[axis]
            out[..., axis] -= length * np.round(out[..., axis] / length)
        return out
