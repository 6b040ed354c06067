from __future__ import annotations

import logging

import numpy as np
import pytest

from nbody_chaos import Simulation, every, output_check
from nbody_chaos.core.diagnostics import linear_momentum
from nbody_chaos.core.integrators import IAS15
from nbody_chaos.core.integrators.base import finish_step
from nbody_chaos.errors import ConfigurationError, InvalidStateError, SingularGeometryError


def _make_sim(**kwargs) -> Simulation:
    sim = Simulation(**kwargs)
    sim.add_particle((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0)
    sim.add_particle((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), 1e-3)
    return sim


def test_invalid_configuration() -> None:
    with pytest.raises(ConfigurationError):
        Simulation(dt=0.0)
    with pytest.raises(ConfigurationError):
        Simulation(G=-1.0)
    with pytest.raises(ConfigurationError):
        Simulation(integrator="euler")
    with pytest.raises(ConfigurationError, match="by name"):
        Simulation(integrator=IAS15(), epsilon=1e-6)
    with pytest.raises(ConfigurationError, match="espilon"):
        Simulation(integrator="ias15", espilon=1e-3)
    with pytest.raises(ConfigurationError):
        Simulation(integrator="ias15", safety_factor="x")
    with pytest.raises(ConfigurationError):
        _make_sim().add_particle((2.0, 0.0, 0.0), (0.0, 0.0, 0.0), 0.0)


def test_add_particles_bulk() -> None:
    sim = Simulation()
    sim.add_particles(
        pos=[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        vel=np.zeros((3, 3)),
        mass=[1.0, 2.0, 3.0],
    )
    assert sim.particle_count() == 3
    assert np.array_equal(sim.particles.mass, [1.0, 2.0, 3.0])

    with pytest.raises(ConfigurationError, match="mass"):
        sim.add_particles(np.zeros((2, 3)), np.zeros((2, 3)), [1.0])


def test_integrate_reaches_target() -> None:
    sim = _make_sim(dt=0.03)
    steps = sim.integrate(1.0)
    assert sim.t >= 1.0
    assert sim.t - 0.03 < 1.0
    assert steps == sim.steps_done == 34


def test_integrate_exact_finish_time() -> None:
    sim = _make_sim(dt=0.03)
    sim.integrate(1.0, exact_finish_time=True)
    assert sim.t == 1.0
    assert sim.dt == 0.03
    assert sim.steps_done == 34


def test_integrate_exact_finish_time_adaptive() -> None:
    sim = _make_sim(dt=0.01, integrator="ias15")
    sim.integrate(7.5, exact_finish_time=True)
    assert sim.t == 7.5


class _CappedStep:
    """Takes at most ``cap`` per step, the way an adaptive scheme may refuse a long step."""

    def __init__(self, cap: float) -> None:
        self.cap = cap

    def step(self, state, model) -> float:
        dt = min(state.dt, self.cap)
        state.dt = dt
        finish_step(state, dt)
        return dt

    def reset(self) -> None:
        pass


def test_exact_finish_restores_step_size_after_shortened_steps() -> None:
    sim = _make_sim(dt=1.0, integrator=_CappedStep(0.4))
    steps = sim.integrate(1.0, exact_finish_time=True)
    assert sim.t == 1.0
    assert sim.dt == 1.0
    assert steps == 3


def test_integrate_rejects_non_finite_target() -> None:
    with pytest.raises(ConfigurationError):
        _make_sim().integrate(float("inf"))


def test_integrate_is_noop_when_target_already_reached() -> None:
    sim = _make_sim(dt=0.1)
    sim.integrate(1.0)
    t = sim.t
    assert sim.integrate(0.5) == 0
    assert sim.t == t


def test_heartbeat_runs_after_every_step() -> None:
    seen: list[tuple[float, int]] = []
    sim = _make_sim(dt=0.1, heartbeat=lambda s: seen.append((s.t, s.steps_done)))
    sim.integrate(0.55)

    assert len(seen) == 6
    assert [n for _, n in seen] == [1, 2, 3, 4, 5, 6]
    assert seen[0][0] == pytest.approx(0.1)


def test_output_check_and_every() -> None:
    fired: list[float] = []
    sim = _make_sim(dt=10.0, G=1e-6)
    sim.heartbeat = every(362.0, lambda s: fired.append(s.t))
    sim.integrate(3620.0)

    assert len(fired) == 10
    assert fired[0] == pytest.approx(370.0)
    assert not output_check(Simulation(), 1.0)

    with pytest.raises(ConfigurationError):
        output_check(sim, 0.0)
    with pytest.raises(ConfigurationError):
        every(-1.0, lambda s: None)


def test_move_to_center_of_momentum() -> None:
    sim = _make_sim()
    sim.move_to_center_of_momentum()
    assert np.allclose(linear_momentum(sim.state), 0.0, atol=1e-15)
    com = np.sum(sim.particles.pos * sim.particles.mass[:, None], axis=0)
    assert np.allclose(com, 0.0, atol=1e-15)


def test_center_of_momentum_leaves_shadows_alone() -> None:
    sim = _make_sim()
    sim.add_particle((0.0, 3.0, 0.0), (1.0, 0.0, 0.0), 1.0)
    sim.init_megno(1e-8, seed=3)
    shadows = sim.particles.vel[3:].copy()
    sim.move_to_center_of_momentum()
    assert np.array_equal(sim.particles.vel[3:], shadows)


def test_megno_accessors_need_init() -> None:
    sim = _make_sim()
    for accessor in (sim.megno, sim.mean_megno, sim.lyapunov):
        with pytest.raises(InvalidStateError, match="init_megno"):
            accessor()


def test_singular_geometry_propagates(caplog: pytest.LogCaptureFixture) -> None:
    sim = Simulation(dt=0.01)
    sim.add_particle((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0)
    sim.add_particle((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0)

    with caplog.at_level(logging.ERROR, logger="nbody_chaos"):
        with pytest.raises(SingularGeometryError):
            sim.integrate(1.0)
    assert sim.t == 0.0
    assert "integration stopped" in caplog.text


def test_integrate_logs_progress(caplog: pytest.LogCaptureFixture) -> None:
    sim = _make_sim(dt=0.1)
    with caplog.at_level(logging.INFO, logger="nbody_chaos"):
        sim.integrate(0.3)
    assert "integrating 2 particles" in caplog.text
    assert "reached t=" in caplog.text


def test_adding_particle_resets_cached_forces() -> None:
    sim = _make_sim(dt=0.01)
    sim.step()
    assert sim.state.acc_valid
    sim.add_particle((0.0, 5.0, 0.0), (0.0, 0.0, 0.0), 1e-3)
    assert not sim.state.acc_valid
    sim.step()
    assert sim.particles.acc.shape == (3, 3)
