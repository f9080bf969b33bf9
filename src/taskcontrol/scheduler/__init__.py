"""Dispatch policies and the settings state they consult."""

from __future__ import annotations

import random

from taskcontrol.core.config import BASE_SLICE_NS
from taskcontrol.scheduler.base import DispatchPolicy
from taskcontrol.scheduler.fifo import FifoPolicy
from taskcontrol.scheduler.host import Dispatch, DispatchQueue, SchedulerHost, TaskUnit
from taskcontrol.scheduler.lottery import LotteryPolicy
from taskcontrol.scheduler.settings import EntityKind, SchedulerState, Setting, SettingsStore

POLICIES: dict[str, type[DispatchPolicy]] = {
    FifoPolicy.name: FifoPolicy,
    LotteryPolicy.name: LotteryPolicy,
}


def create_policy(
    name: str,
    state: SchedulerState,
    base_slice_ns: int = BASE_SLICE_NS,
    rng: random.Random | None = None,
) -> DispatchPolicy:
    """Build the policy registered under ``name`` ("fifo" or "lottery")."""
    try:
        policy_cls = POLICIES[name]
    except KeyError:
        raise ValueError(
            f"unknown scheduler {name!r}, available: {', '.join(sorted(POLICIES))}"
        ) from None
    if policy_cls is LotteryPolicy:
        return LotteryPolicy(state, base_slice_ns, rng=rng)
    return policy_cls(state, base_slice_ns)


__all__ = [
    "POLICIES",
    "Dispatch",
    "DispatchPolicy",
    "DispatchQueue",
    "EntityKind",
    "FifoPolicy",
    "LotteryPolicy",
    "SchedulerHost",
    "SchedulerState",
    "Setting",
    "SettingsStore",
    "TaskUnit",
    "create_policy",
]
