"""Simulation driver: owns the state, the force model and the active integrator."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

import numpy as np

from ..errors import ConfigurationError, InvalidStateError, NBodyChaosError
from .diagnostics.particles import move_to_center_of_momentum
from .forces.base import Model
from .forces.nbody_gravity import NBodyGravity
from .integrators import Integrator, make_integrator
from .megno import MegnoAccumulator
from .state.box import BoxConfig
from .state.particles import ParticlesState
from .state.system import SimulationState
from .variational import init_variational


logger = logging.getLogger(__name__)

Heartbeat = Callable[["Simulation"], None]


class Simulation:
    """Main loop around one :class:`SimulationState`.

    Each ``step`` runs the integrator to completion (force evaluation,
    update of real and shadow rows, clock advance and MEGNO update) and only
    then fires the heartbeat with read access to the simulation.
    """

    def __init__(
        self,
        G: float = 1.0,
        dt: float = 0.01,
        integrator: str | Integrator = "leapfrog",
        box: BoxConfig | None = None,
        heartbeat: Heartbeat | None = None,
        model: Model | None = None,
        **integrator_options: Any,
    ) -> None:
        self.state = SimulationState(G=G, dt=dt, box=box or BoxConfig())
        if isinstance(integrator, str):
            self.integrator = make_integrator(integrator, **integrator_options)
        else:
            if integrator_options:
                raise ConfigurationError(
                    "integrator options require the integrator to be given by name"
                )
            self.integrator = integrator
        self.model = model if model is not None else NBodyGravity()
        self.heartbeat = heartbeat

    @property
    def t(self) -> float:
        return self.state.t

    @property
    def dt(self) -> float:
        return self.state.dt

    @property
    def particles(self) -> ParticlesState:
        return self.state.particles

    @property
    def steps_done(self) -> int:
        return self.state.steps_done

    def add_particle(
        self,
        pos: Any = (0.0, 0.0, 0.0),
        vel: Any = (0.0, 0.0, 0.0),
        mass: float = 1.0,
    ) -> int:
        index = self.state.particles.add_particle(pos, vel, mass)
        self._state_changed()
        return index

    def add_particles(self, pos: Any, vel: Any, mass: Any) -> None:
        pos = np.asarray(pos, dtype=np.float64)
        vel = np.asarray(vel, dtype=np.float64)
        mass = np.asarray(mass, dtype=np.float64).reshape(-1)
        if pos.ndim != 2 or pos.shape[1] != 3 or vel.shape != pos.shape:
            raise ConfigurationError("pos and vel must have shape (N, 3)")
        if mass.shape[0] != pos.shape[0]:
            raise ConfigurationError("mass must have shape (N,)")
        for p, v, m in zip(pos, vel, mass):
            self.add_particle(p, v, float(m))

    def particle_count(self) -> int:
        return self.state.particles.particle_count()

    def move_to_center_of_momentum(self) -> None:
        move_to_center_of_momentum(self.state)
        self._state_changed()

    def init_megno(
        self,
        epsilon: float,
        seed: int | None = None,
        direction: np.ndarray | None = None,
    ) -> None:
        init_variational(self.state, epsilon, seed=seed, direction=direction)
        self._state_changed()

    def megno(self) -> float:
        return self._accumulator().current_value()

    def mean_megno(self) -> float:
        return self._accumulator().mean_value()

    def lyapunov(self) -> float:
        return self._accumulator().lyapunov()

    def step(self) -> float:
        dt_done = self.integrator.step(self.state, self.model)
        if self.heartbeat is not None:
            self.heartbeat(self)
        return dt_done

    def integrate(self, t_target: float, exact_finish_time: bool = False) -> int:
        """Step until ``t >= t_target`` and return the number of steps taken.

        With ``exact_finish_time`` the final step is shortened to land on
        ``t_target``; the step size in use before that is restored afterwards.
        """
        t_target = float(t_target)
        if not math.isfinite(t_target):
            raise ConfigurationError("t_target must be finite")
        state = self.state
        start_steps = state.steps_done
        logger.info(
            "integrating %d particles from t=%.6g to t=%.6g with %s",
            self.particle_count(), state.t, t_target, type(self.integrator).__name__,
        )
        dt_saved: float | None = None
        try:
            while state.t < t_target:
                if exact_finish_time and state.t + state.dt >= t_target:
                    if dt_saved is None:
                        dt_saved = state.dt
                    remaining = t_target - state.t
                    state.dt = remaining
                    # an adaptive integrator may take a shorter step than asked
                    if self.step() == remaining:
                        state.t = t_target
                        break
                    continue
                self.step()
        except NBodyChaosError as exc:
            logger.error("integration stopped at t=%.6g: %s", state.t, exc)
            raise
        if dt_saved is not None:
            state.dt = dt_saved
        n_steps = state.steps_done - start_steps
        logger.info("reached t=%.6g after %d steps", state.t, n_steps)
        return n_steps

    def _accumulator(self) -> MegnoAccumulator:
        if self.state.megno is None:
            raise InvalidStateError("MEGNO is not initialized; call init_megno first")
        return self.state.megno

    def _state_changed(self) -> None:
        self.state.invalidate_forces()
        self.integrator.reset()


def output_check(sim: Simulation, interval: float) -> bool:
    """True when the last step crossed a multiple of ``interval`` in simulation time."""
    if not interval > 0.0:
        raise ConfigurationError("interval must be > 0")
    t = sim.state.t
    dt = sim.state.dt_last_done
    if dt == 0.0:
        return False
    return math.floor(t / interval) != math.floor((t - dt) / interval)


def every(interval: float, callback: Heartbeat) -> Heartbeat:
    """Wrap ``callback`` into a heartbeat that fires once per ``interval`` of simulation time."""
    if not interval > 0.0:
        raise ConfigurationError("interval must be > 0")

    def heartbeat(sim: Simulation) -> None:
        if output_check(sim, interval):
            callback(sim)

    return heartbeat
