"""
cloudsched/shared/config.py
───────────────────────────
SchedulerConfig: every tunable the scheduling core reads, supplied once at
construction.

There is no module-level mutable state. Two Scheduler instances built with
different configs in the same process behave independently, which is what
the test-suite relies on.

Defaults are module-level constants so tests can import and assert against
them directly.
"""

from __future__ import annotations

import os
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

# ── Defaults ──────────────────────────────────────────────────────────────────

ACTIVE_MACHINE_BUDGET: int = 64
"""Total number of machines powered on at startup, split evenly across
CPU architecture groups (each group capped at its own size)."""

VM_MEMORY_OVERHEAD: int = 8
"""Memory (MB) charged for every VM on top of the memory its tasks require.

Every memory-headroom check adds this to the task's requirement, so a
machine is never filled to the last MB by task memory alone.
"""

DEADLINE_RISK_FRACTION: float = 0.5
"""A task is at risk when its projected finish time exceeds this fraction of
the time left before its deadline. 0.5 = "needs more than half the slack"."""

GPU_PERF_FACTOR: float = 0.5
"""Score multiplier applied when a GPU-capable task is placed on a GPU
machine. Lower scores win, so 0.5 halves the effective cost."""

LOAD_THRESHOLDS: Tuple[float, float, float] = (0.8, 0.5, 0.2)
"""Load cut-offs for P0, P1 and P2 respectively. Load at or below the last
threshold maps to P3."""


# ── Environment variable names ────────────────────────────────────────────────

ENV_ACTIVE_MACHINES = "CLOUDSCHED_ACTIVE_MACHINES"
ENV_VM_MEMORY_OVERHEAD = "CLOUDSCHED_VM_MEMORY_OVERHEAD"
ENV_DEADLINE_RISK_FRACTION = "CLOUDSCHED_DEADLINE_RISK_FRACTION"


class SchedulerConfig(BaseModel):
    """
    Immutable-by-convention configuration for one Scheduler instance.

    Fields:
        active_machine_budget  → Machines to power on at startup (all groups).
        vm_memory_overhead     → Per-VM memory overhead in MB.
        deadline_risk_fraction → Boost trigger: projected > fraction × remaining.
        gpu_perf_factor        → Score multiplier for GPU-affine placement.
        load_thresholds        → Strictly decreasing (P0, P1, P2) load cut-offs.
    """
    active_machine_budget: int = Field(ACTIVE_MACHINE_BUDGET, ge=0)
    vm_memory_overhead: int = Field(VM_MEMORY_OVERHEAD, ge=0)
    deadline_risk_fraction: float = Field(DEADLINE_RISK_FRACTION, gt=0.0, le=1.0)
    gpu_perf_factor: float = Field(GPU_PERF_FACTOR, gt=0.0, le=1.0)
    load_thresholds: Tuple[float, float, float] = LOAD_THRESHOLDS

    @field_validator("load_thresholds")
    @classmethod
    def _thresholds_strictly_decreasing(
        cls, value: Tuple[float, float, float]
    ) -> Tuple[float, float, float]:
        if not (value[0] > value[1] > value[2] >= 0.0):
            raise ValueError(
                f"load_thresholds must be strictly decreasing and non-negative, got {value}"
            )
        return value

    @classmethod
    def from_env(cls, **overrides) -> "SchedulerConfig":
        """
        Build a config from CLOUDSCHED_* environment variables.

        Unset variables fall back to the module defaults. Explicit keyword
        overrides win over both.
        """
        values = {}
        budget = _env(ENV_ACTIVE_MACHINES)
        if budget is not None:
            values["active_machine_budget"] = int(budget)
        overhead = _env(ENV_VM_MEMORY_OVERHEAD)
        if overhead is not None:
            values["vm_memory_overhead"] = int(overhead)
        fraction = _env(ENV_DEADLINE_RISK_FRACTION)
        if fraction is not None:
            values["deadline_risk_fraction"] = float(fraction)
        values.update(overrides)
        return cls(**values)


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()
