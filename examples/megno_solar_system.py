"""MEGNO of the Sun-Jupiter-Saturn system (AU, solar masses, days)."""

from __future__ import annotations

import numpy as np

from nbody_chaos import Simulation, every
from nbody_chaos.io.units import G_GAUSSIAN
from nbody_chaos.telemetry import setup_logger


SS_POS = np.array(
    [
        [-4.06428567034226e-3, -6.08813756435987e-3, -1.66162304225834e-6],
        [+3.40546614227466e00, +3.62978190075864e00, +3.42386261766577e-2],
        [+6.60801554403466e00, +6.38084674585064e00, -1.36145963724542e-1],
    ],
    dtype=np.float64,
)
SS_VEL = np.array(
    [
        [+6.69048890636161e-6, -6.33922479583593e-6, -3.13202145590767e-9],
        [-5.59797969310664e-3, +5.51815399480116e-3, -2.66711392865591e-6],
        [-4.17354020307064e-3, +3.99723751748116e-3, +1.67206320571441e-5],
    ],
    dtype=np.float64,
)
SS_MASS = np.array([1.00000597682, 1.0 / 1047.355, 1.0 / 3501.6], dtype=np.float64)


def report(sim: Simulation) -> None:
    print(f"t={sim.t:14.2f}  Y={sim.megno():.12f}  <Y>={sim.mean_megno():.12f}")


if __name__ == "__main__":
    setup_logger("INFO")
    sim = Simulation(G=G_GAUSSIAN, dt=10.0, integrator="leapfrog")
    sim.add_particles(SS_POS, SS_VEL, SS_MASS)
    sim.move_to_center_of_momentum()
    sim.init_megno(1e-16, seed=1)
    sim.heartbeat = every(362.0, report)

    sim.integrate(362.0 * 100)
    print("lyapunov estimate:", sim.lyapunov())
