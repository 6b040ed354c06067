from __future__ import annotations

import numpy as np
import pytest

from nbody_chaos import Simulation
from nbody_chaos.core.diagnostics import angular_momentum, total_energy_gravity
from nbody_chaos.core.integrators import IAS15, Leapfrog, make_integrator
from nbody_chaos.core.forces.nbody_gravity import NBodyGravity
from nbody_chaos.errors import ConfigurationError, SingularGeometryError, StepSizeCollapseError


def _circular_binary(integrator: str = "leapfrog", dt: float = 0.005, **options) -> Simulation:
    # separation 1, total mass 2, G=1: relative speed sqrt(2), period 2*pi*sqrt(1/2)
    sim = Simulation(G=1.0, dt=dt, integrator=integrator, **options)
    v = np.sqrt(0.5)
    sim.add_particle((-0.5, 0.0, 0.0), (0.0, -v, 0.0), 1.0)
    sim.add_particle((0.5, 0.0, 0.0), (0.0, v, 0.0), 1.0)
    return sim


def _eccentric_binary(e: float, integrator: str = "ias15", dt: float = 0.01, **options) -> Simulation:
    # star of mass 1 and a test-like companion released at pericentre, a = 1
    sim = Simulation(G=1.0, dt=dt, integrator=integrator, **options)
    mu = 1.0 + 1e-3
    r_p = 1.0 - e
    v_p = np.sqrt(mu * (1.0 + e) / r_p)
    sim.add_particle((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.0)
    sim.add_particle((r_p, 0.0, 0.0), (0.0, v_p, 0.0), 1e-3)
    sim.move_to_center_of_momentum()
    return sim


def _relative_energy_errors(sim: Simulation, n_steps: int) -> np.ndarray:
    e0 = total_energy_gravity(sim.state)
    errors = np.empty(n_steps, dtype=np.float64)
    for i in range(n_steps):
        sim.step()
        errors[i] = abs((total_energy_gravity(sim.state) - e0) / e0)
    return errors


def _separation_error_after_one_period(epsilon: float) -> float:
    sim = _eccentric_binary(0.7, epsilon=epsilon)
    start = sim.particles.pos[:2].copy()
    period = 2.0 * np.pi / np.sqrt(1.0 + 1e-3)
    sim.integrate(period, exact_finish_time=True)
    assert sim.t == period
    return float(np.max(np.abs(sim.particles.pos[:2] - start)))


def test_make_integrator_names() -> None:
    assert isinstance(make_integrator("leapfrog"), Leapfrog)
    assert isinstance(make_integrator("Symplectic"), Leapfrog)
    assert isinstance(make_integrator("ias15"), IAS15)
    assert isinstance(make_integrator("adaptive_high_order"), IAS15)

    ias = make_integrator("ias15", epsilon=1e-6, order=4, min_dt=None)
    assert ias.epsilon == 1e-6
    assert ias.min_dt == 0.0
    assert make_integrator("leapfrog", order=4, epsilon=1e-3).order == 4

    with pytest.raises(ConfigurationError, match="unsupported integrator"):
        make_integrator("rk4")


def test_integrator_options_validated() -> None:
    with pytest.raises(ConfigurationError):
        Leapfrog(order=3)
    with pytest.raises(ConfigurationError):
        IAS15(epsilon=-1.0)
    with pytest.raises(ConfigurationError):
        IAS15(safety_factor=1.5)
    with pytest.raises(ConfigurationError):
        IAS15(min_dt=float("nan"))
    with pytest.raises(ConfigurationError, match="numbers"):
        IAS15(safety_factor="x")
    with pytest.raises(ConfigurationError, match="espilon"):
        make_integrator("ias15", espilon=1e-3)
    assert IAS15(epsilon="1e-6").epsilon == 1e-6


def test_leapfrog_energy_error_stays_bounded() -> None:
    sim = _circular_binary(dt=0.005)
    errors = _relative_energy_errors(sim, 10_000)
    assert np.max(errors) < 1e-4


def test_circular_binary_keeps_its_separation() -> None:
    sim = _circular_binary(dt=0.005)
    for _ in range(1_000):
        sim.step()
        separation = np.linalg.norm(sim.particles.pos[1] - sim.particles.pos[0])
        assert abs(separation - 1.0) < 1e-4


def test_leapfrog_energy_error_does_not_drift_on_eccentric_orbit() -> None:
    sim = _eccentric_binary(0.5, integrator="leapfrog", dt=0.002)
    errors = _relative_energy_errors(sim, 15_000)
    third = errors.size // 3
    assert np.max(errors) < 1e-3
    assert np.max(errors[-third:]) < 2.0 * np.max(errors[:third])


def test_leapfrog_conserves_angular_momentum() -> None:
    sim = _eccentric_binary(0.5, integrator="leapfrog", dt=0.01)
    l0 = angular_momentum(sim.state)
    sim.integrate(20.0)
    assert np.allclose(angular_momentum(sim.state), l0, rtol=1e-10, atol=1e-14)


def test_fourth_order_leapfrog_is_more_accurate() -> None:
    second = _eccentric_binary(0.5, integrator="leapfrog", dt=0.01)
    fourth = _eccentric_binary(0.5, integrator="leapfrog", dt=0.01, order=4)
    err2 = np.max(_relative_energy_errors(second, 2_000))
    err4 = np.max(_relative_energy_errors(fourth, 2_000))
    assert err4 < err2
    assert second.t == pytest.approx(fourth.t)


def test_leapfrog_step_returns_dt_and_advances_clock() -> None:
    sim = _circular_binary(dt=0.25)
    assert sim.step() == 0.25
    assert sim.t == 0.25
    assert sim.steps_done == 1
    assert sim.state.dt_last_done == 0.25


def test_ias15_adapts_step_and_reports_elapsed_time() -> None:
    sim = _eccentric_binary(0.5, dt=1e-3)
    elapsed = sim.step()
    assert sim.t == elapsed == 1e-3
    # error is tiny for such a short step, so the next one grows
    assert sim.dt > 1e-3
    assert sim.dt <= 1e-3 / sim.integrator.safety_factor


def test_ias15_is_accurate_over_one_period() -> None:
    err = _separation_error_after_one_period(1e-9)
    assert err < 1e-7


def test_ias15_tolerance_controls_accuracy() -> None:
    loose = _separation_error_after_one_period(1e-3)
    tight = _separation_error_after_one_period(1e-9)
    assert loose >= tight


def test_ias15_conserves_energy() -> None:
    sim = _eccentric_binary(0.7, epsilon=1e-9)
    e0 = total_energy_gravity(sim.state)
    sim.integrate(10.0 * 2.0 * np.pi)
    assert abs((total_energy_gravity(sim.state) - e0) / e0) < 1e-9


def test_ias15_fixed_step_when_epsilon_is_zero() -> None:
    sim = _circular_binary(integrator="ias15", dt=0.05, epsilon=0.0)
    for _ in range(5):
        assert sim.step() == 0.05
    assert sim.dt == 0.05


def test_ias15_step_size_collapse() -> None:
    sim = _circular_binary(integrator="ias15", dt=100.0, min_dt=5.0)
    with pytest.raises(StepSizeCollapseError, match="collapsed"):
        sim.integrate(1000.0)
    assert sim.t < 1000.0


class _GravityFailingAt:
    """Raises a singular-geometry error on the ``n``-th force evaluation."""

    def __init__(self, n: int) -> None:
        self.n = n
        self.calls = 0
        self.inner = NBodyGravity()

    def accelerate(self, state) -> None:
        self.calls += 1
        if self.calls == self.n:
            raise SingularGeometryError("close encounter")
        self.inner.accelerate(state)


def test_ias15_restores_positions_when_a_node_is_singular() -> None:
    sim = _eccentric_binary(0.3, integrator="ias15", dt=0.05)
    sim.model = _GravityFailingAt(3)
    pos0 = sim.particles.pos.copy()
    vel0 = sim.particles.vel.copy()

    with pytest.raises(SingularGeometryError):
        sim.step()
    assert np.array_equal(sim.particles.pos, pos0)
    assert np.array_equal(sim.particles.vel, vel0)
    assert sim.t == 0.0
    assert sim.steps_done == 0


def test_ias15_and_leapfrog_agree_on_deviation() -> None:
    def final_deviation(integrator: str, dt: float) -> np.ndarray:
        sim = _eccentric_binary(0.3, integrator=integrator, dt=dt)
        sim.init_megno(1e-8, seed=7)
        sim.integrate(3.0, exact_finish_time=True)
        return sim.particles.pos[2:].copy()

    reference = final_deviation("ias15", 0.01)
    approx = final_deviation("leapfrog", 5e-4)
    scale = np.max(np.abs(reference))
    assert np.max(np.abs(reference - approx)) < 1e-3 * scale


def test_integration_is_deterministic() -> None:
    def trajectory(integrator: str) -> tuple[np.ndarray, float]:
        sim = _eccentric_binary(0.4, integrator=integrator, dt=0.01)
        sim.init_megno(1e-10, seed=3)
        sim.integrate(5.0)
        return sim.particles.pos.copy(), sim.megno()

    for name in ("leapfrog", "ias15"):
        pos_a, y_a = trajectory(name)
        pos_b, y_b = trajectory(name)
        assert np.array_equal(pos_a, pos_b)
        assert y_a == y_b
