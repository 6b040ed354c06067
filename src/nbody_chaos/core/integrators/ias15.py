"""Adaptive 15th-order Gauss-Radau integrator (IAS15 scheme).

Within a step of length dt the acceleration is modelled as a polynomial in
the step fraction s ∈ [0, 1]:

    F(s) = F0 + b0 s + b1 s² + ... + b6 s⁷

The b coefficients are refined by predictor-corrector sweeps over the seven
Gauss-Radau nodes; the divided differences g are their Newton-form
counterpart. b6 measures the local truncation error, which drives the step
size. The first coefficients of each step are extrapolated from the previous
one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from math import comb

import numpy as np

from ...errors import ConfigurationError, SingularGeometryError, StepSizeCollapseError
from ..forces.base import Model
from ..state.system import SimulationState
from .base import ensure_forces, finish_step


logger = logging.getLogger(__name__)


NODES = np.array(
    [
        0.0,
        0.0562625605369221464656521910318,
        0.180240691736892364987579942780,
        0.352624717113169637373907769648,
        0.547153626330555383001448554766,
        0.734210177215410531523210605558,
        0.885320946839095768090359771030,
        0.977520613561287501891174488626,
    ],
    dtype=np.float64,
)


def _inverse_node_gaps(nodes: np.ndarray) -> np.ndarray:
    n = nodes.shape[0]
    r = np.zeros((n, n), dtype=np.float64)
    for i in range(1, n):
        for j in range(i):
            r[i, j] = 1.0 / (nodes[i] - nodes[j])
    return r


def _newton_to_power(nodes: np.ndarray) -> np.ndarray:
    # column j: coefficients of prod_{i=1..j} (s - h_i), lowest power first
    c = np.zeros((7, 7), dtype=np.float64)
    poly = np.array([1.0])
    for j in range(7):
        if j > 0:
            poly = np.convolve(poly, [-nodes[j], 1.0])
        c[: j + 1, j] = poly
    return c


def _shift_matrix() -> np.ndarray:
    s = np.zeros((7, 7), dtype=np.float64)
    for k in range(7):
        for j in range(k, 7):
            s[k, j] = comb(j + 1, k + 1)
    return s


_R = _inverse_node_gaps(NODES)
_C = _newton_to_power(NODES)          # b = C @ g
_D = np.linalg.inv(_C)                # g = D @ b
_SHIFT = _shift_matrix()
_K = np.arange(7, dtype=np.float64)
_X_WEIGHTS = 1.0 / ((_K + 2.0) * (_K + 3.0))
_V_WEIGHTS = 1.0 / (_K + 2.0)

_PC_TOLERANCE = 1e-16
_PC_MAX_ITERATIONS = 12
_MAX_PREDICT_RATIO = 20.0


@dataclass(slots=True)
class IAS15:
    """Gauss-Radau predictor-corrector with error-controlled step size.

    epsilon:
        Relative tolerance on b6 / acceleration. ``0`` disables step-size
        control (fixed step).
    min_dt:
        A rejection that proposes a step at or below this magnitude raises
        ``StepSizeCollapseError``.
    safety_factor:
        A step is rejected when the proposed next step is shorter than this
        fraction of the attempted one; accepted steps grow by at most its
        inverse.
    """

    epsilon: float = 1e-9
    min_dt: float = 0.0
    safety_factor: float = 0.25
    n_rejected: int = 0
    n_pc_iterations: int = 0
    _b: np.ndarray | None = field(default=None, repr=False)
    _e: np.ndarray | None = field(default=None, repr=False)
    _br: np.ndarray | None = field(default=None, repr=False)
    _er: np.ndarray | None = field(default=None, repr=False)
    _csx: np.ndarray | None = field(default=None, repr=False)
    _csv: np.ndarray | None = field(default=None, repr=False)
    _dt_last_done: float = 0.0
    _dt_predicted: float = 0.0

    def __post_init__(self) -> None:
        try:
            self.epsilon = float(self.epsilon)
            self.min_dt = float(self.min_dt)
            self.safety_factor = float(self.safety_factor)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("epsilon, min_dt and safety_factor must be numbers") from exc
        if not np.isfinite(self.epsilon) or self.epsilon < 0.0:
            raise ConfigurationError("epsilon must be finite and >= 0")
        if not np.isfinite(self.min_dt) or self.min_dt < 0.0:
            raise ConfigurationError("min_dt must be finite and >= 0")
        if not (0.0 < self.safety_factor < 1.0):
            raise ConfigurationError("safety_factor must lie in (0, 1)")

    def reset(self) -> None:
        self._b = None
        self._e = None
        self._br = None
        self._er = None
        self._csx = None
        self._csv = None
        self._dt_last_done = 0.0
        self._dt_predicted = 0.0

    def step(self, state: SimulationState, model: Model) -> float:
        particles = state.particles
        shape = (7,) + particles.pos.shape
        if self._b is None or self._b.shape != shape:
            self.reset()
            self._b = np.zeros(shape, dtype=np.float64)
            self._e = np.zeros(shape, dtype=np.float64)
            self._csx = np.zeros(particles.pos.shape, dtype=np.float64)
            self._csv = np.zeros(particles.pos.shape, dtype=np.float64)

        ensure_forces(state, model)
        x0 = particles.pos.copy()
        v0 = particles.vel.copy()
        a0 = particles.acc.copy()
        blocks = _blocks(particles.n_real, particles.n_total)

        dt = state.dt
        if self._dt_last_done != 0.0 and dt != self._dt_predicted:
            self._repredict(dt / self._dt_last_done)

        while True:
            try:
                a_last = self._converge(state, model, x0, v0, a0, dt, blocks)
            except SingularGeometryError:
                # leave the particles where the step started
                particles.pos[...] = x0
                particles.acc[...] = a0
                state.acc_valid = True
                raise

            dt_done = dt
            dt_new = dt_done
            if self.epsilon > 0.0:
                error = _relative_max(self._b[6], a_last, blocks)
                if not np.isfinite(error):
                    dt_new = dt_done * self.safety_factor
                elif error == 0.0:
                    dt_new = dt_done / self.safety_factor
                else:
                    dt_new = dt_done * (self.epsilon / error) ** (1.0 / 7.0)

                if abs(dt_new / dt_done) < self.safety_factor:
                    particles.pos[...] = x0
                    particles.acc[...] = a0
                    state.acc_valid = True
                    self._check_collapse(state.t, dt_new)
                    self.n_rejected += 1
                    logger.debug(
                        "ias15 rejected dt=%.6g at t=%.6g (error=%.3g), retrying with %.6g",
                        dt_done, state.t, error, dt_new,
                    )
                    if self._dt_last_done != 0.0:
                        self._repredict(dt_new / self._dt_last_done)
                    else:
                        self._b[...] = 0.0
                        self._e[...] = 0.0
                    dt = dt_new
                    continue

                if dt_new / dt_done > 1.0 / self.safety_factor:
                    dt_new = dt_done / self.safety_factor
            break

        self._advance(particles, x0, v0, a0, dt_done)
        state.acc_valid = False
        model.accelerate(state)

        self._er = self._e.copy()
        self._br = self._b.copy()
        self._dt_last_done = dt_done
        self._repredict(dt_new / dt_done)
        self._dt_predicted = dt_new

        state.dt = dt_new
        finish_step(state, dt_done)
        return dt_done

    def _converge(
        self,
        state: SimulationState,
        model: Model,
        x0: np.ndarray,
        v0: np.ndarray,
        a0: np.ndarray,
        dt: float,
        blocks: list[slice],
    ) -> np.ndarray:
        """Run predictor-corrector sweeps; return accelerations at the last node."""
        particles = state.particles
        b = self._b
        g = np.einsum("kj,jmn->kmn", _D, b)
        a_node = a0
        error_last = np.inf
        for iteration in range(_PC_MAX_ITERATIONS):
            b6_old = b[6].copy()
            for n in range(1, 8):
                s = NODES[n]
                particles.pos[...] = _predict_pos(x0, v0, a0, b, dt, s)
                state.acc_valid = False
                model.accelerate(state)
                a_node = particles.acc.copy()

                tmp = (a_node - a0) * _R[n, 0]
                for j in range(1, n):
                    tmp = (tmp - g[j - 1]) * _R[n, j]
                dg = tmp - g[n - 1]
                g[n - 1] = tmp
                b[:n] += _C[:n, n - 1, None, None] * dg

            self.n_pc_iterations += 1
            error = _relative_max(b[6] - b6_old, a_node, blocks)
            if not np.isfinite(error) or error < _PC_TOLERANCE:
                break
            if iteration > 1 and error >= error_last:
                break
            error_last = error
        else:
            logger.debug(
                "ias15 predictor-corrector did not converge in %d iterations at t=%.6g",
                _PC_MAX_ITERATIONS, state.t,
            )
        return a_node

    def _advance(self, particles, x0, v0, a0, dt: float) -> None:
        b = self._b
        dx = dt * v0 + dt * dt * (0.5 * a0 + np.tensordot(_X_WEIGHTS, b, axes=1))
        dv = dt * (a0 + np.tensordot(_V_WEIGHTS, b, axes=1))
        particles.pos[...], self._csx = _compensated_add(x0, dx, self._csx)
        particles.vel[...], self._csv = _compensated_add(v0, dv, self._csv)

    def _repredict(self, ratio: float) -> None:
        """Extrapolate the last accepted coefficients to a step ``ratio`` times as long."""
        if self._br is None or self._er is None:
            return
        if ratio > _MAX_PREDICT_RATIO:
            self._e[...] = 0.0
            self._b[...] = 0.0
            return
        q = ratio ** (_K + 1.0)
        e = np.einsum("kj,jmn->kmn", _SHIFT, self._br) * q[:, None, None]
        self._b[...] = e + (self._br - self._er)
        self._e[...] = e

    def _check_collapse(self, t: float, dt_new: float) -> None:
        if (
            not np.isfinite(dt_new)
            or dt_new == 0.0
            or abs(dt_new) <= self.min_dt
            or t + dt_new == t
        ):
            raise StepSizeCollapseError(
                f"step size collapsed to {dt_new:.3g} at t={t:.6g} "
                f"without meeting epsilon={self.epsilon:g}"
            )


def _blocks(n_real: int, n_total: int) -> list[slice]:
    blocks = []
    if n_real > 0:
        blocks.append(slice(0, n_real))
    if n_total > n_real:
        blocks.append(slice(n_real, n_total))
    return blocks


def _relative_max(num: np.ndarray, den: np.ndarray, blocks: list[slice]) -> float:
    """max|num| / max|den| per block, maximised over blocks with non-zero den."""
    worst = 0.0
    for blk in blocks:
        scale = float(np.max(np.abs(den[blk])))
        if scale == 0.0:
            continue
        value = float(np.max(np.abs(num[blk]))) / scale
        if not np.isfinite(value):
            return np.inf
        worst = max(worst, value)
    return worst


def _predict_pos(
    x0: np.ndarray,
    v0: np.ndarray,
    a0: np.ndarray,
    b: np.ndarray,
    dt: float,
    s: float,
) -> np.ndarray:
    sdt = s * dt
    poly = np.tensordot(_X_WEIGHTS * s ** (_K + 1.0), b, axes=1)
    return x0 + sdt * v0 + sdt * sdt * (0.5 * a0 + poly)


def _compensated_add(
    x: np.ndarray, dx: np.ndarray, comp: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    y = dx - comp
    total = x + y
    comp = (total - x) - y
    return total, comp
