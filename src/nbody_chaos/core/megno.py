"""Running MEGNO (Mean Exponential Growth factor of Nearby Orbits) statistics.

With δ the norm of the 6N deviation vector and t the time since the shadow
particles were seeded:

    Y(t)   = (2 / t) ∫₀ᵗ (δ̇/δ) s ds      instantaneous MEGNO
    <Y>(t) = (1 / t) ∫₀ᵗ Y(s) ds         time-averaged MEGNO

For quasi-periodic orbits <Y> tends to 2; for chaotic ones Y grows like
λ t, so the least-squares slope of Y against t estimates the maximal
Lyapunov exponent λ. All quantities are updated incrementally once per
accepted step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import numpy as np


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MegnoAccumulator:
    y_integral: float = 0.0
    y_mean_integral: float = 0.0
    time_sum: float = 0.0
    n_updates: int = 0
    mean_t: float = 0.0
    mean_y: float = 0.0
    cov_yt: float = 0.0
    var_t: float = 0.0
    degenerate: bool = False
    last_valid: float = 0.0

    def update(self, dlog: float | None, dt: float) -> None:
        """Fold one step of length ``dt`` ending with ``δ̇/δ == dlog`` into the sums.

        ``dlog`` of ``None`` (or a non-finite value) marks a collapsed
        deviation vector: time still advances but the integrals are left
        untouched and ``current_value`` keeps reporting the last valid Y.
        """
        self.time_sum += dt
        t = self.time_sum
        if dlog is None or not np.isfinite(dlog) or t <= 0.0:
            if not self.degenerate:
                logger.debug("deviation vector degenerate at t=%.6g; holding Y", t)
            self.degenerate = True
            return
        if self.degenerate:
            logger.debug("deviation vector recovered at t=%.6g", t)
            self.degenerate = False

        self.y_integral += dlog * t * dt
        y = 2.0 * self.y_integral / t
        self.last_valid = y
        self.y_mean_integral += y * dt

        self.n_updates += 1
        d_t = t - self.mean_t
        self.mean_t += d_t / self.n_updates
        d_y = y - self.mean_y
        self.mean_y += d_y / self.n_updates
        self.cov_yt += d_t * (y - self.mean_y)
        self.var_t += d_t * (t - self.mean_t)

    def current_value(self) -> float:
        """Instantaneous MEGNO Y(t); 0 before any time has elapsed."""
        if self.time_sum <= 0.0:
            return 0.0
        if self.degenerate:
            return self.last_valid
        return 2.0 * self.y_integral / self.time_sum

    def mean_value(self) -> float:
        """Time-averaged MEGNO <Y>(t)."""
        if self.time_sum <= 0.0:
            return 0.0
        return self.y_mean_integral / self.time_sum

    def lyapunov(self) -> float:
        """Least-squares slope of Y(t), an estimate of the maximal Lyapunov exponent."""
        if self.var_t <= 0.0:
            return 0.0
        return self.cov_yt / self.var_t

    def reset(self) -> None:
        self.y_integral = 0.0
        self.y_mean_integral = 0.0
        self.time_sum = 0.0
        self.n_updates = 0
        self.mean_t = 0.0
        self.mean_y = 0.0
        self.cov_yt = 0.0
        self.var_t = 0.0
        self.degenerate = False
        self.last_valid = 0.0

    def copy(self) -> "MegnoAccumulator":
        return replace(self)
