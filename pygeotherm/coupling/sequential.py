"""Sequential (operator-splitting) coupling of one time step.

Within a step the modules run in a fixed order and pass data forward:
head → velocity → Péclet/dispersion → temperature → heat-exchanger
source → fluid profile.  A step either commits as a whole or is rolled
back to the checkpoint taken before it.

Classes
-------
Accepted, Diverged
    Step outcome variants.  Cancellation is checked by the time-step
    controller between steps, never inside one.
SequentialStep
    Callable that performs one atomic coupled step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pygeotherm.errors import SolverDivergedError
from pygeotherm.physics.base import SolveReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """The step converged (or stalled) and its fields are committed.

    Attributes:
        heat: Heat solver report.
        flow: Flow solver report, or ``None`` when flow is disabled.
        injected_power: Power delivered to the ground by the exchanger (W).
    """

    heat: SolveReport
    flow: SolveReport | None
    injected_power: float


@dataclass(frozen=True)
class Diverged:
    """The step diverged and all fields were rolled back.

    Attributes:
        reason: Description of the likely cause.
    """

    reason: str


class SequentialStep:
    """One coupled time step over the field and exchanger states.

    Args:
        state: :class:`~pygeotherm.fields.state.FieldState`.
        exchanger_state: :class:`~pygeotherm.fields.state.ExchangerState`.
        heat: :class:`~pygeotherm.physics.heat.HeatTransfer`.
        exchanger: :class:`~pygeotherm.physics.exchanger.BoreholeHeatExchanger`.
        flow: :class:`~pygeotherm.physics.groundwater.GroundwaterFlow`, or
            ``None`` to keep the velocity field at zero.

    Example::

        step = SequentialStep(state, fluid, heat, exchanger, flow)
        outcome = step(600.0)
        if isinstance(outcome, Diverged):
            print(outcome.reason)
    """

    def __init__(
        self,
        state: Any,
        exchanger_state: Any,
        heat: Any,
        exchanger: Any,
        flow: Any = None,
    ) -> None:
        self.state = state
        self.exchanger_state = exchanger_state
        self.heat = heat
        self.exchanger = exchanger
        self.flow = flow

    def __call__(self, dt: float) -> Accepted | Diverged:
        """Attempt one step of size *dt*.

        Returns:
            :class:`Accepted` with the solver reports, or :class:`Diverged`
            after restoring both states.
        """
        checkpoint = self.state.checkpoint()
        fluid = self.exchanger_state.copy()
        try:
            flow_report = None
            if self.flow is not None:
                flow_report = self.flow.solve(self.state)
                self.flow.update_velocity(self.state)
                self.flow.update_transport(self.state)
            heat_report = self.heat.solve(self.state, dt)
            power = self.exchanger.inject(self.state, self.exchanger_state, dt)
            self.exchanger.update_fluid(self.state, self.exchanger_state)
        except SolverDivergedError as exc:
            self.state.restore(checkpoint)
            self.exchanger_state.restore(fluid)
            logger.debug("Step of %g s rolled back: %s", dt, exc)
            return Diverged(str(exc))
        return Accepted(heat=heat_report, flow=flow_report, injected_power=power)

    def __repr__(self) -> str:
        names = ([self.flow.name] if self.flow is not None else []) + [self.heat.name]
        return f"SequentialStep(modules={names})"
