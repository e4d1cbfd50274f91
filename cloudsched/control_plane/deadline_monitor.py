"""
cloudsched/control_plane/deadline_monitor.py
─────────────────────────────────────────────
DeadlineMonitor: spots in-flight tasks at risk of missing their deadline and
boosts the machine they run on.

Risk estimate
──────────────
For each active-task record on a periodic tick:

    remaining_time = deadline − now                              (µs)
    projected      = remaining_instructions / (mips × 1e6) s → whole µs

    at risk  ⇔  projected > int(deadline_risk_fraction × remaining_time)

`mips` is the hosting machine's throughput at its *current* performance
level, so a throttled machine makes the same task look riskier.

Records are skipped when:
  • the host reports the task completed
  • the deadline has already passed (now > deadline); a late task has no
    remedy here and is only logged
  • no instructions remain

Remediation is a P0 boost of the hosting machine. Migrating the VM to a
faster machine is future work and deliberately not attempted.

SLA warnings from the host bypass the scan and boost immediately.

Complexity: O(active tasks) host queries per tick.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import ActiveTaskTable, MachineInfo, TaskInfo
from cloudsched.control_plane.power_controller import PowerController
from cloudsched.control_plane.vm_registry import VMRegistry

logger = logging.getLogger(__name__)

INSTRUCTIONS_PER_MIPS: float = 1e6
"""One MIPS executes a million instructions per second."""

TIME_UNITS_PER_SECOND: float = 1e6
"""Simulated time is counted in microseconds."""


class DeadlineMonitor:
    """Periodic deadline-risk scan plus out-of-band SLA warnings."""

    def __init__(
        self,
        host: HostInterface,
        registry: VMRegistry,
        power: PowerController,
        active_tasks: ActiveTaskTable,
        config: SchedulerConfig,
    ) -> None:
        self._host = host
        self._registry = registry
        self._power = power
        self._active_tasks = active_tasks
        self._config = config

    @staticmethod
    def projected_finish(task: TaskInfo, machine: MachineInfo) -> int:
        """Time to run the task's remaining instructions at current speed, in whole µs."""
        seconds = task.remaining_instructions / (
            machine.throughput_mips() * INSTRUCTIONS_PER_MIPS
        )
        return int(seconds * TIME_UNITS_PER_SECOND)

    def needs_boost(self, projected: int, remaining_time: int) -> bool:
        # Both sides in whole µs, matching the host's integer clock.
        threshold = int(remaining_time * self._config.deadline_risk_fraction)
        return projected > threshold

    def check(self, now: int) -> List[int]:
        """
        Scan every active record and boost the machines hosting at-risk tasks.

        Returns:
            Machine ids a boost was requested for, in record order. A machine
            hosting several at-risk tasks appears once per task.
        """
        boosted: List[int] = []
        for record in list(self._active_tasks.values()):
            if self._host.is_task_completed(record.task_id):
                continue

            task = self._host.task_info(record.task_id)
            if now > task.target_completion:
                logger.debug(
                    "Task %d already past its deadline (%d < %d); no action",
                    record.task_id, task.target_completion, now,
                )
                continue
            if task.remaining_instructions <= 0:
                continue

            machine_id = self._registry.machine_of(record.vm_id)
            if machine_id is None:
                continue
            machine = self._host.machine_info(machine_id)

            remaining_time = task.target_completion - now
            projected = self.projected_finish(task, machine)
            if self.needs_boost(projected, remaining_time):
                logger.debug(
                    "Task %d at risk: projected %dµs vs %dµs remaining",
                    record.task_id, projected, remaining_time,
                )
                self._power.boost(machine_id)
                boosted.append(machine_id)
        return boosted

    def handle_sla_warning(self, now: int, task_id: int) -> Optional[int]:
        """
        Boost the machine hosting `task_id` immediately.

        Returns:
            The machine id boosted, or None if the task has no active record.
        """
        record = self._active_tasks.get(task_id)
        if record is None:
            logger.debug("SLA warning for task %d with no active record", task_id)
            return None

        machine_id = self._registry.machine_of(record.vm_id)
        if machine_id is None:
            return None
        logger.info("SLA warning for task %d at %d: boosting machine %d",
                    task_id, now, machine_id)
        self._power.boost(machine_id)
        return machine_id
