"""Plan text parsing and serialization.

A plan is a comma-separated list of phases, each a number of seconds
followed by ``s`` (stop) or ``r`` (run)::

    2s,3r       -> stop for 2 s, then run for 3 s
    0.5s,10r    -> stop for half a second, then run for 10 s

The kind letter may also lead the number (``s2,r3`` is the same plan as
``2s,3r``). Serialization always writes the number first.

Durations are kept as Decimal so that serialization reproduces the parsed
value exactly, fractional seconds included.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from taskcontrol.core.config import MAX_STOP_PHASE_SECONDS
from taskcontrol.core.errors import InvalidPlanError

_PHASE = r"(?:\d+\.?\d*[sr]|[sr]\d+\.?\d*)"
PLAN_PATTERN = re.compile(rf"{_PHASE}(?:,{_PHASE})*", re.ASCII)

STOP = "s"
RUN = "r"


def _format_seconds(seconds: Decimal) -> str:
    # normalize() drops trailing zeros; the "f" format avoids exponents (2E+1)
    return format(seconds.normalize(), "f")


@dataclass(frozen=True)
class PlanPhase:
    """One timed interval of a plan.

    Attributes:
        seconds: Length of the phase, strictly positive.
        stopping: True for a stop phase, False for a run phase.
    """

    seconds: Decimal
    stopping: bool

    @property
    def duration(self) -> float:
        """Length in seconds as a float, for sleeping."""
        return float(self.seconds)

    def to_text(self) -> str:
        return f"{_format_seconds(self.seconds)}{STOP if self.stopping else RUN}"


@dataclass(frozen=True)
class Plan:
    """Ordered, non-empty sequence of phases, replayed once."""

    phases: tuple[PlanPhase, ...]

    def __post_init__(self) -> None:
        if not self.phases:
            raise InvalidPlanError("a plan needs at least one phase")

    @property
    def total_seconds(self) -> Decimal:
        return sum((phase.seconds for phase in self.phases), Decimal(0))

    def to_text(self) -> str:
        """Serialize back to plan text; ``parse_plan(plan.to_text()) == plan``."""
        return ",".join(phase.to_text() for phase in self.phases)

    def __str__(self) -> str:
        return self.to_text()

    def __len__(self) -> int:
        return len(self.phases)


def parse_plan(text: str, max_stop_seconds: float = MAX_STOP_PHASE_SECONDS) -> Plan:
    """Parse and validate plan text.

    Either every phase is valid and a Plan is returned, or nothing is.

    Args:
        text: Plan text such as ``"2s,3r"``.
        max_stop_seconds: Longest allowed stop phase.

    Raises:
        InvalidPlanError: If the text does not match the grammar, a phase
            has a non-positive duration, or a stop phase is too long.
    """
    if not PLAN_PATTERN.fullmatch(text):
        raise InvalidPlanError(
            f"Invalid plan {text!r}: expected comma-separated phases like '2s,3r' "
            "(seconds followed by s=stop or r=run)"
        )

    limit = Decimal(str(max_stop_seconds))
    phases: list[PlanPhase] = []
    for token in text.split(","):
        kind, number = (token[0], token[1:]) if token[0] in (STOP, RUN) else (token[-1], token[:-1])
        try:
            seconds = Decimal(number)
        except InvalidOperation:
            raise InvalidPlanError(f"Invalid duration in phase {token!r}") from None
        phase = PlanPhase(seconds=seconds, stopping=kind == STOP)
        if phase.seconds <= 0:
            raise InvalidPlanError(
                f"Invalid plan {text!r}: phase {token!r} must have a positive duration"
            )
        if phase.stopping and phase.seconds > limit:
            raise InvalidPlanError(
                f"Invalid plan {text!r}: stop phase {token!r} exceeds "
                f"the maximum of {_format_seconds(limit)} seconds"
            )
        phases.append(phase)
    return Plan(tuple(phases))
