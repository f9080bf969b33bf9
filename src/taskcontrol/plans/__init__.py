"""Timed stop/run plans applied to tasks and task groups."""

from taskcontrol.plans.parser import Plan, PlanPhase, parse_plan
from taskcontrol.plans.registry import PlanInfo, PlanRegistry
from taskcontrol.plans.runner import PlanRunner

__all__ = [
    "Plan",
    "PlanInfo",
    "PlanPhase",
    "PlanRegistry",
    "PlanRunner",
    "parse_plan",
]
