"""Run a scenario JSON and print sampled MEGNO values."""

from __future__ import annotations

import argparse
from pathlib import Path

from nbody_chaos.core.run import run
from nbody_chaos.io import load_scenario, scenario_to_simulation


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("scenario", type=Path)
    parser.add_argument("--samples", type=int, default=20)
    args = parser.parse_args()

    defn = load_scenario(args.scenario)
    sim = scenario_to_simulation(defn)
    t_max = float(defn["simulation"].get("t_max", 100.0 * sim.dt))
    result = run(sim, t_max, sample_every=t_max / max(args.samples, 1))

    print("steps:", sim.steps_done)
    print("sim time:", sim.t)
    if result.megno is None:
        print("scenario has no megno block")
        return 0
    for t, y in zip(result.time, result.megno):
        print(f"{t:14.4f}  {y:.10f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
