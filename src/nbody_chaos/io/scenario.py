"""Scenario file I/O and conversion to a ready-to-run Simulation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from ..core.integrators import INTEGRATORS
from ..core.simulation import Simulation
from ..core.state.box import BoxConfig
from ..errors import ConfigurationError
from .units import UNIT_SYSTEMS, gravitational_constant


ScenarioDefinition = dict[str, Any]

_INTEGRATOR_OPTIONS = ("epsilon", "min_dt", "safety_factor", "order")


def load_scenario(path: str | Path) -> ScenarioDefinition:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_scenario(data)


def save_scenario(path: str | Path, defn: ScenarioDefinition) -> None:
    Path(path).write_text(
        json.dumps(defn, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def scenario_to_simulation(defn: ScenarioDefinition) -> Simulation:
    """Build a Simulation with particles added and MEGNO seeded if requested."""
    defn = validate_scenario(defn)
    sim_cfg = defn["simulation"]

    if "G" in sim_cfg:
        G = float(sim_cfg["G"])
    else:
        G = gravitational_constant(defn.get("units", {}).get("preset", "SI"))

    box = None
    if "box" in defn:
        box_cfg = defn["box"]
        box = BoxConfig(
            size=tuple(box_cfg.get("size", (np.inf, np.inf, np.inf))),
            periodic=tuple(box_cfg.get("periodic", (False, False, False))),
        )

    options = {k: sim_cfg[k] for k in _INTEGRATOR_OPTIONS if k in sim_cfg}
    sim = Simulation(
        G=G,
        dt=float(sim_cfg["dt"]),
        integrator=sim_cfg.get("integrator", "leapfrog"),
        box=box,
        **options,
    )

    p = defn["particles"]
    sim.add_particles(p["pos"], p["vel"], p["mass"])

    if defn.get("center_of_momentum", False):
        sim.move_to_center_of_momentum()

    if "megno" in defn:
        megno = defn["megno"]
        sim.init_megno(float(megno.get("epsilon", 1e-16)), seed=megno.get("seed"))
    return sim


def _require(obj: dict[str, Any], key: str, ctx: str) -> Any:
    if key not in obj:
        raise ConfigurationError(f"missing required field: {ctx}.{key}")
    return obj[key]


def _validate_array(arr: Any, shape_suffix: tuple[int, ...], ctx: str) -> np.ndarray:
    try:
        a = np.asarray(arr, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{ctx} must be numeric") from exc
    if a.ndim != len(shape_suffix) + 1 or tuple(a.shape[1:]) != shape_suffix:
        suffix = ", ".join(map(str, shape_suffix))
        raise ConfigurationError(f"{ctx} must have shape (*, {suffix})")
    if not np.all(np.isfinite(a)):
        raise ConfigurationError(f"{ctx} must be finite")
    return a


def _positive(value: Any, ctx: str, allow_zero: bool = False) -> None:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{ctx} must be a number") from exc
    if not np.isfinite(v) or v < 0.0 or (v == 0.0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ConfigurationError(f"{ctx} must be {bound}")


def validate_scenario(data: Any) -> ScenarioDefinition:
    if not isinstance(data, dict):
        raise ConfigurationError("scenario must be a JSON object")
    if data.get("schema_version") != 1:
        raise ConfigurationError("schema_version must be 1")

    sim = _require(data, "simulation", "scenario")
    _positive(_require(sim, "dt", "simulation"), "simulation.dt")
    integrator = str(sim.get("integrator", "leapfrog")).lower()
    if integrator not in INTEGRATORS:
        raise ConfigurationError("simulation.integrator invalid")
    if "G" in sim:
        _positive(sim["G"], "simulation.G")
    for key in ("epsilon", "min_dt"):
        if key in sim:
            _positive(sim[key], f"simulation.{key}", allow_zero=True)
    if "safety_factor" in sim:
        _positive(sim["safety_factor"], "simulation.safety_factor")
        if float(sim["safety_factor"]) >= 1.0:
            raise ConfigurationError("simulation.safety_factor must be < 1")
    if "order" in sim and sim["order"] not in (2, 4):
        raise ConfigurationError("simulation.order must be 2 or 4")
    if "t_max" in sim:
        _positive(sim["t_max"], "simulation.t_max", allow_zero=True)

    if "units" in data:
        units = data["units"]
        if not isinstance(units, dict):
            raise ConfigurationError("units must be an object")
        if str(units.get("preset", "SI")).upper() not in UNIT_SYSTEMS:
            raise ConfigurationError("units.preset is not supported")

    if "box" in data:
        box = data["box"]
        if not isinstance(box, dict):
            raise ConfigurationError("box must be an object")
        if "size" in box:
            try:
                size = np.asarray(box["size"], dtype=np.float64)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError("box.size must be numeric") from exc
            if size.shape != (3,):
                raise ConfigurationError("box.size must have 3 entries")
            if np.any(np.isnan(size)) or np.any(size <= 0.0):
                raise ConfigurationError("box.size must be > 0")
        if "periodic" in box:
            periodic = box["periodic"]
            if (
                not isinstance(periodic, (list, tuple))
                or len(periodic) != 3
                or not all(isinstance(f, bool) for f in periodic)
            ):
                raise ConfigurationError("box.periodic must be 3 booleans")

    p = _require(data, "particles", "scenario")
    pos = _validate_array(_require(p, "pos", "particles"), (3,), "particles.pos")
    vel = _validate_array(_require(p, "vel", "particles"), (3,), "particles.vel")
    try:
        mass = np.asarray(_require(p, "mass", "particles"), dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("particles.mass must be numeric") from exc
    if vel.shape != pos.shape:
        raise ConfigurationError("particles.vel must match particles.pos")
    if mass.ndim != 1 or mass.shape[0] != pos.shape[0]:
        raise ConfigurationError("particles.mass must have length N")
    if not np.all(np.isfinite(mass)) or np.any(mass <= 0.0):
        raise ConfigurationError("particles.mass must be finite and > 0")

    if "megno" in data:
        megno = data["megno"]
        if not isinstance(megno, dict):
            raise ConfigurationError("megno must be an object")
        if "epsilon" in megno:
            _positive(megno["epsilon"], "megno.epsilon")
        seed = megno.get("seed")
        if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool)):
            raise ConfigurationError("megno.seed must be an integer")

    return data
