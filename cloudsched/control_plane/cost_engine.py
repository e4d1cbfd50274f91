"""
cloudsched/control_plane/cost_engine.py
────────────────────────────────────────
CostEngine: eligibility filters and composite placement cost for (task, VM).

What this is
─────────────
The cost engine turns a candidate VM's host machine into a single scalar
cost. The assignment engine filters VMs with is_eligible(), costs the
survivors with score(), and picks the lowest.

Eligibility filters (applied in this order; first failure excludes)
─────────────────────────────────────────────────────────────────────
  1. The VM's machine is fully on (S0).
  2. VM CPU == task.required_cpu.
  3. VM type == task.required_vm.
  4. machine.memory_free >= task.required_memory + vm_memory_overhead.

The composite cost (lower is better)
─────────────────────────────────────
  cost(task, machine) = load × speed_ratio × perf_factor

  load         = machine.active_tasks / machine.num_cpus
                 Approximates queueing delay on the machine.
  speed_ratio  = mips(P0) / mips(current p_state)
                 1.0 at full speed; grows as the machine is throttled.
  perf_factor  = gpu_perf_factor (0.5) if task.gpu_capable and machine.gpus
                 else 1.0. Rewards GPU-affine placement.

No learning, no history: the same inputs always give the same cost.

Standalone use:
    from cloudsched.control_plane.cost_engine import CostEngine
    engine = CostEngine(SchedulerConfig())
    cost = engine.score(task, machine)
"""

from __future__ import annotations

from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.models import (
    MachineInfo,
    PerformanceLevel,
    TaskInfo,
    VMRecord,
)


class CostEngine:
    """
    Placement filter and scorer.

    Stateless apart from its config: one engine can be shared by every
    assignment on a scheduler.
    """

    def __init__(self, config: SchedulerConfig) -> None:
        self._config = config

    # ── Filters ────────────────────────────────────────────────────────────────

    def is_eligible(self, task: TaskInfo, vm: VMRecord, machine: MachineInfo) -> bool:
        """True if the task may be placed on `vm`, which is bound to `machine`."""
        if not machine.is_fully_on:
            return False
        if vm.cpu != task.required_cpu:
            return False
        if vm.vm_type != task.required_vm:
            return False
        needed = task.required_memory + self._config.vm_memory_overhead
        if machine.memory_free < needed:
            return False
        return True

    # ── Main scoring entrypoint ────────────────────────────────────────────────

    def score(self, task: TaskInfo, machine: MachineInfo) -> float:
        """Composite placement cost. Lower is better."""
        return (
            self.load_factor(machine)
            * self.speed_ratio(machine)
            * self.perf_factor(task, machine)
        )

    # ── Sub-score methods (public for direct testing) ──────────────────────────

    @staticmethod
    def load_factor(machine: MachineInfo) -> float:
        """Resident tasks per core."""
        return machine.active_tasks / machine.num_cpus

    @staticmethod
    def speed_ratio(machine: MachineInfo) -> float:
        """
        How much slower the machine currently runs than at full speed.

        Returns 1.0 at P0. A machine at P3 with a P3/P0 throughput ratio of
        1/2 returns 2.0, doubling its cost.
        """
        p0_mips = machine.throughput_mips(PerformanceLevel.highest())
        current_mips = machine.throughput_mips()
        return p0_mips / current_mips

    def perf_factor(self, task: TaskInfo, machine: MachineInfo) -> float:
        if task.gpu_capable and machine.gpus:
            return self._config.gpu_perf_factor
        return 1.0

    # ── Detailed breakdown (for observability / debugging) ─────────────────────

    def score_breakdown(self, task: TaskInfo, machine: MachineInfo) -> dict:
        """
        Return each factor and the composite cost.

        Returns:
            {"load": float, "speed_ratio": float, "perf_factor": float,
             "composite": float}
        """
        load = self.load_factor(machine)
        ratio = self.speed_ratio(machine)
        perf = self.perf_factor(task, machine)
        return {
            "load": load,
            "speed_ratio": ratio,
            "perf_factor": perf,
            "composite": load * ratio * perf,
        }

    def __repr__(self) -> str:
        return (
            f"CostEngine("
            f"vm_memory_overhead={self._config.vm_memory_overhead}, "
            f"gpu_perf_factor={self._config.gpu_perf_factor})"
        )
