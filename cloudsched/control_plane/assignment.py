"""
cloudsched/control_plane/assignment.py
───────────────────────────────────────
The assignment layer: decides WHICH VM a new task goes to.

The two entry points
──────────────────────
1. assign_best_vm(task)
     Scan every registered VM in registry order. Drop the ones that fail
     CostEngine.is_eligible(); cost the rest with CostEngine.score(); pick
     the strictly lowest cost. Ties go to the first VM encountered, which
     is what np.argmin returns. Commits the task with vm_add_task().

2. assign(task_id)
     The full admission path used on every NewTask event:
       a. assign_best_vm(task)
       b. on miss → MachinePoolManager.activate_for_task(task), then commit
       c. on miss → raise SchedulingFailedError

Complexity
───────────
O(registered VMs) host queries per admission. For the cluster sizes this
core targets that is fine; an architecture-bucketed candidate index would
remove it without changing which VM is chosen.

Error handling contract
────────────────────────
  SchedulingFailedError: raised by assign() when neither an existing VM nor
                         an active machine can take the task. The Scheduler
                         catches it, logs it, and drops the task for this
                         cycle. No retry is scheduled.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import TaskInfo
from cloudsched.control_plane.cost_engine import CostEngine
from cloudsched.control_plane.machine_pool import MachinePoolManager
from cloudsched.control_plane.vm_registry import VMRegistry

logger = logging.getLogger(__name__)


class SchedulingFailedError(Exception):
    """
    Raised when no VM and no active machine can host the task.

    Attributes:
        task_id: The task that could not be placed.
    """

    def __init__(self, task_id: int, reason: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} could not be placed. {reason}")


class AssignmentEngine:
    """Filters, scores and commits new tasks to VMs."""

    def __init__(
        self,
        host: HostInterface,
        registry: VMRegistry,
        pool: MachinePoolManager,
        cost_engine: CostEngine,
    ) -> None:
        self._host = host
        self._registry = registry
        self._pool = pool
        self._cost_engine = cost_engine

    def assign(self, task_id: int) -> int:
        """
        Place a task, creating an exact-match VM if no existing VM fits.

        Returns:
            vm_id: the VM the task was committed to.

        Raises:
            SchedulingFailedError: if no VM and no active machine can take it.
        """
        task = self._host.task_info(task_id)

        vm_id = self.assign_best_vm(task)
        if vm_id is not None:
            return vm_id

        vm_id = self._pool.activate_for_task(task)
        if vm_id is None:
            raise SchedulingFailedError(
                task_id,
                f"No eligible VM or active machine "
                f"(CPU={task.required_cpu.value}, VM={task.required_vm.value}, "
                f"MEM={task.required_memory}MB).",
            )

        self._host.vm_add_task(vm_id, task.task_id, task.priority)
        return vm_id

    def assign_best_vm(self, task: TaskInfo) -> Optional[int]:
        """
        Commit the task to the lowest-cost eligible existing VM.

        Returns:
            The chosen vm_id, or None if every VM was filtered out.
        """
        candidates: List[int] = []
        costs: List[float] = []

        for vm in self._registry:
            machine = self._host.machine_info(vm.machine_id)
            if not self._cost_engine.is_eligible(task, vm, machine):
                continue
            candidates.append(vm.vm_id)
            costs.append(self._cost_engine.score(task, machine))

        if not candidates:
            logger.debug("assign_best_vm: no eligible VM for task %d", task.task_id)
            return None

        best = int(np.argmin(np.asarray(costs, dtype=np.float64)))
        best_vm = candidates[best]

        self._host.vm_add_task(best_vm, task.task_id, task.priority)
        logger.debug(
            "assign_best_vm: task %d → VM %d (cost %.4f, %d candidates)",
            task.task_id, best_vm, costs[best], len(candidates),
        )
        return best_vm
