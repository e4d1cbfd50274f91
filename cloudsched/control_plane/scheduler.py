"""
cloudsched/control_plane/scheduler.py
──────────────────────────────────────
Scheduler: the central scheduling state machine.

One Scheduler instance owns all of the core's bookkeeping:

  - VMRegistry           — the VMs this scheduler created
  - MachinePoolManager   — active/sleeping machine partition
  - active_tasks         — Dict[task_id, ActiveTask], assignment order
  - counters             — dropped tasks, boosts (via PowerController)

and wires the decision components around that state:

  AssignmentEngine ← CostEngine, MachinePoolManager
  DeadlineMonitor  ← PowerController
  PowerController

There is no process-wide instance. Construct one per simulation (or per
test) and hand it to an EventGateway.

Handlers
─────────
  init()                              → startup activation
  new_task(now, task_id)              → assign or drop
  task_complete(now, task_id)         → drop the active record (idempotent)
  periodic_check(now)                 → deadline scan, then power scaling
  sla_warning(now, task_id)           → immediate boost
  memory_warning(now, machine_id)     → log only
  migration_complete(now, vm_id)      → hook, log only
  state_change_complete(now, mid)     → hook, log only
  shutdown(now)                       → shut down every VM we created

Thread safety
──────────────
Not thread-safe, and does not need to be: the host delivers one event at a
time and each handler runs to completion before the next.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional

from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import ActiveTask, ActiveTaskTable
from cloudsched.control_plane.assignment import AssignmentEngine, SchedulingFailedError
from cloudsched.control_plane.cost_engine import CostEngine
from cloudsched.control_plane.deadline_monitor import DeadlineMonitor
from cloudsched.control_plane.machine_pool import MachinePoolManager
from cloudsched.control_plane.power_controller import PowerController
from cloudsched.control_plane.vm_registry import VMRegistry

logger = logging.getLogger(__name__)


class Scheduler:
    """
    SLA-aware scheduler state plus the handlers that mutate it.

    Attributes:
        host          : HostInterface       — query/command surface
        config        : SchedulerConfig
        registry      : VMRegistry
        pool          : MachinePoolManager
        active_tasks  : ActiveTaskTable     — in-flight tasks
        dropped_tasks : List[int]           — tasks no VM or machine could take
    """

    def __init__(
        self,
        host: HostInterface,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.host = host
        self.config = config or SchedulerConfig()

        # ── Core state ────────────────────────────────────────────────────────
        self.registry = VMRegistry(host)
        self.pool = MachinePoolManager(host, self.registry, self.config)
        self.active_tasks: ActiveTaskTable = {}
        self.dropped_tasks: List[int] = []

        # ── Decision components ───────────────────────────────────────────────
        self.cost_engine = CostEngine(self.config)
        self.assignment = AssignmentEngine(host, self.registry, self.pool, self.cost_engine)
        self.power = PowerController(host, self.config)
        self.monitor = DeadlineMonitor(
            host, self.registry, self.power, self.active_tasks, self.config,
        )

    # ── Lifecycle handlers ─────────────────────────────────────────────────────

    def init(self) -> None:
        logger.info("Scheduler.init: initializing with SLA-aware placement")
        activated = self.pool.initialize()
        logger.info(
            "Scheduler.init: %d machines active, %d VMs created",
            len(activated), len(self.registry),
        )

    def new_task(self, now: int, task_id: int) -> Optional[int]:
        """
        Assign an arriving task and record it as active.

        Returns:
            The VM the task was committed to, or None if it was dropped.
        """
        if task_id in self.active_tasks:
            logger.warning(
                "new_task: task %d is already active on VM %d; ignoring duplicate",
                task_id, self.active_tasks[task_id].vm_id,
            )
            return self.active_tasks[task_id].vm_id

        try:
            vm_id = self.assignment.assign(task_id)
        except SchedulingFailedError as e:
            self.dropped_tasks.append(task_id)
            logger.warning("new_task at %d: %s Task left unassigned.", now, e)
            return None

        task = self.host.task_info(task_id)
        self.active_tasks[task_id] = ActiveTask(
            task_id=task_id,
            sla=task.required_sla,
            deadline=task.target_completion,
            vm_id=vm_id,
        )
        logger.debug("new_task: task %d assigned to VM %d", task_id, vm_id)
        return vm_id

    def task_complete(self, now: int, task_id: int) -> None:
        """Remove the task's active record. Unknown or repeated ids are a no-op."""
        record = self.active_tasks.pop(task_id, None)
        if record is None:
            logger.debug("task_complete: task %d has no active record", task_id)
            return
        logger.debug("task_complete: task %d finished at %d", task_id, now)

    def periodic_check(self, now: int) -> None:
        """Deadline scan first, then load-based performance scaling."""
        logger.debug("periodic_check at %d: %d active tasks", now, len(self.active_tasks))
        self.monitor.check(now)
        self.power.adjust(self.pool.managed_machines)

    def sla_warning(self, now: int, task_id: int) -> Optional[int]:
        return self.monitor.handle_sla_warning(now, task_id)

    def memory_warning(self, now: int, machine_id: int) -> None:
        # Observational only: no eviction, no migration.
        logger.warning("Memory overflow on machine %d detected at %d", machine_id, now)

    def migration_complete(self, now: int, vm_id: int) -> None:
        logger.debug("migration_complete: VM %d at %d (no bookkeeping)", vm_id, now)

    def state_change_complete(self, now: int, machine_id: int) -> None:
        logger.debug(
            "state_change_complete: machine %d at %d (no bookkeeping)", machine_id, now,
        )

    def shutdown(self, now: int) -> List[int]:
        """Shut down every VM this scheduler created. Returns their ids."""
        shut_down = self.registry.shutdown_all()
        logger.info("Scheduler.shutdown: finished at %d", now)
        return shut_down

    # ── Read-only queries ──────────────────────────────────────────────────────

    def get_active_task(self, task_id: int) -> Optional[ActiveTask]:
        return self.active_tasks.get(task_id)

    def get_metrics(self) -> Dict[str, object]:
        """
        Return current scheduler metrics.

        Metrics:
            active_tasks:      Count of in-flight tasks.
            registered_vms:    VMs currently registered.
            managed_machines:  Machines activated at startup.
            dropped_tasks:     Tasks left unassigned so far.
            boosts:            P0 boosts issued by the deadline monitor / SLA warnings.
            performance_levels: Managed machine count per current level.
        """
        levels = Counter(
            self.host.machine_info(machine_id).p_state.value
            for machine_id in self.pool.managed_machines
        )
        return {
            "active_tasks": len(self.active_tasks),
            "registered_vms": len(self.registry),
            "managed_machines": len(self.pool.managed_machines),
            "dropped_tasks": len(self.dropped_tasks),
            "boosts": self.power.boost_count,
            "performance_levels": dict(levels),
        }
