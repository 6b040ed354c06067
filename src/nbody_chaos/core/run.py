"""Simulation run loop with optional sampling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from .simulation import Simulation, output_check
from .state.system import SimulationState


@dataclass(slots=True)
class RunResult:
    final_state: SimulationState
    steps: int = 0
    time: np.ndarray | None = None
    particles_pos: np.ndarray | None = None
    particles_vel: np.ndarray | None = None
    megno: np.ndarray | None = None
    mean_megno: np.ndarray | None = None


def run(
    sim: Simulation,
    t_max: float,
    sample_every: float | None = None,
    callback: Callable[[Simulation], None] | None = None,
    exact_finish_time: bool = False,
) -> RunResult:
    """Integrate ``sim`` to ``t_max``, sampling real particles and MEGNO.

    A sample is taken at the start and after every step that crosses a
    multiple of ``sample_every`` simulation-time units. ``callback`` runs
    after every step, after the simulation's own heartbeat.
    """
    if sample_every is not None and sample_every <= 0:
        raise ValueError("sample_every must be > 0")

    times: list[float] = []
    p_pos: list[np.ndarray] = []
    p_vel: list[np.ndarray] = []
    y: list[float] = []
    y_mean: list[float] = []

    def sample() -> None:
        state = sim.state
        n = state.particles.n_real
        times.append(state.t)
        p_pos.append(state.particles.pos[:n].copy())
        p_vel.append(state.particles.vel[:n].copy())
        if state.megno is not None:
            y.append(state.megno.current_value())
            y_mean.append(state.megno.mean_value())

    outer = sim.heartbeat

    def heartbeat(s: Simulation) -> None:
        if outer is not None:
            outer(s)
        if callback is not None:
            callback(s)
        if sample_every is not None and output_check(s, sample_every):
            sample()

    if sample_every is not None:
        sample()

    sim.heartbeat = heartbeat
    try:
        steps = sim.integrate(t_max, exact_finish_time=exact_finish_time)
    finally:
        sim.heartbeat = outer

    if sample_every is None:
        return RunResult(final_state=sim.state, steps=steps)

    return RunResult(
        final_state=sim.state,
        steps=steps,
        time=np.asarray(times, dtype=np.float64),
        particles_pos=np.asarray(p_pos, dtype=np.float64),
        particles_vel=np.asarray(p_vel, dtype=np.float64),
        megno=np.asarray(y, dtype=np.float64) if y else None,
        mean_megno=np.asarray(y_mean, dtype=np.float64) if y_mean else None,
    )
