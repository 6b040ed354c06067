"""Force model interface."""

from __future__ import annotations

from typing import Protocol

from ..state.system import SimulationState


class Model(Protocol):
    def accelerate(self, state: SimulationState) -> None:
        """Write accelerations for every row of ``state.particles`` in place.

        Real rows receive the physical acceleration; variational rows receive
        the linearized acceleration evaluated at the same real geometry.
        """
