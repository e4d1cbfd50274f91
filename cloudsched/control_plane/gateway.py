"""
cloudsched/control_plane/gateway.py
────────────────────────────────────
EventGateway: the fixed set of entry points the host drives the core through.

    init()
    new_task(time, task_id)
    task_complete(time, task_id)
    migration_complete(time, vm_id)
    periodic_check(time)
    sla_warning(time, task_id)
    memory_warning(time, machine_id)
    state_change_complete(time, machine_id)
    shutdown(time)                → SimulationReport

Hosts that prefer to deliver typed events can call dispatch(SchedulerEvent)
instead; it routes to the same handlers.

Host contract
──────────────
Events arrive one at a time in non-decreasing time order, and a task's
completion never precedes its arrival. An event that goes back in time is
logged as a warning and still processed; the gateway does not reorder.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from cloudsched.control_plane.scheduler import Scheduler
from cloudsched.telemetry.report import SimulationReport

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    NEW_TASK = "new-task"
    TASK_COMPLETE = "task-complete"
    MIGRATION_COMPLETE = "migration-complete"
    PERIODIC_CHECK = "periodic-check"
    SLA_WARNING = "sla-warning"
    MEMORY_WARNING = "memory-warning"
    STATE_CHANGE_COMPLETE = "state-change-complete"
    SHUTDOWN = "shutdown"


class SchedulerEvent(BaseModel):
    """
    One timed event from the host.

    Exactly one of task_id / vm_id / machine_id is expected, depending on
    event_type; PERIODIC_CHECK and SHUTDOWN carry none.
    """
    event_type: EventType
    time: int = Field(..., ge=0, description="Simulated time (µs)")
    task_id: Optional[int] = None
    vm_id: Optional[int] = None
    machine_id: Optional[int] = None


class EventGateway:
    """Entry points from the host into one Scheduler instance."""

    def __init__(self, scheduler: Scheduler) -> None:
        self.scheduler = scheduler
        self.last_event_time: Optional[int] = None

    # ── Entry points ───────────────────────────────────────────────────────────

    def init(self) -> None:
        logger.info("EventGateway.init: initializing scheduler")
        self.scheduler.init()

    def new_task(self, time: int, task_id: int) -> Optional[int]:
        self._observe(time)
        logger.debug("Received new task %d at time %d", task_id, time)
        return self.scheduler.new_task(time, task_id)

    def task_complete(self, time: int, task_id: int) -> None:
        self._observe(time)
        logger.debug("Task %d completed at time %d", task_id, time)
        self.scheduler.task_complete(time, task_id)

    def migration_complete(self, time: int, vm_id: int) -> None:
        self._observe(time)
        logger.debug("Migration of VM %d completed at time %d", vm_id, time)
        self.scheduler.migration_complete(time, vm_id)

    def periodic_check(self, time: int) -> None:
        self._observe(time)
        self.scheduler.periodic_check(time)

    def sla_warning(self, time: int, task_id: int) -> Optional[int]:
        self._observe(time)
        return self.scheduler.sla_warning(time, task_id)

    def memory_warning(self, time: int, machine_id: int) -> None:
        self._observe(time)
        self.scheduler.memory_warning(time, machine_id)

    def state_change_complete(self, time: int, machine_id: int) -> None:
        self._observe(time)
        logger.debug("State change for machine %d completed at time %d", machine_id, time)
        self.scheduler.state_change_complete(time, machine_id)

    def shutdown(self, time: int) -> SimulationReport:
        """Collect the end-of-run report, then shut down every VM."""
        self._observe(time)
        report = SimulationReport.collect(self.scheduler.host, time)
        for line in report.format_lines():
            logger.info(line)
        self.scheduler.shutdown(time)
        return report

    # ── Typed dispatch ─────────────────────────────────────────────────────────

    def dispatch(self, event: SchedulerEvent):
        """Route a SchedulerEvent to its handler and return the handler's result."""
        kind = event.event_type
        if kind == EventType.NEW_TASK:
            return self.new_task(event.time, _require(event, "task_id"))
        if kind == EventType.TASK_COMPLETE:
            return self.task_complete(event.time, _require(event, "task_id"))
        if kind == EventType.MIGRATION_COMPLETE:
            return self.migration_complete(event.time, _require(event, "vm_id"))
        if kind == EventType.PERIODIC_CHECK:
            return self.periodic_check(event.time)
        if kind == EventType.SLA_WARNING:
            return self.sla_warning(event.time, _require(event, "task_id"))
        if kind == EventType.MEMORY_WARNING:
            return self.memory_warning(event.time, _require(event, "machine_id"))
        if kind == EventType.STATE_CHANGE_COMPLETE:
            return self.state_change_complete(event.time, _require(event, "machine_id"))
        return self.shutdown(event.time)

    # ── Private helpers ───────────────────────────────────────────────────────

    def _observe(self, time: int) -> None:
        if self.last_event_time is not None and time < self.last_event_time:
            logger.warning(
                "Event at time %d arrived after an event at time %d", time, self.last_event_time,
            )
            return
        self.last_event_time = time


def _require(event: SchedulerEvent, field: str) -> int:
    value = getattr(event, field)
    if value is None:
        raise ValueError(f"{event.event_type.value} event requires {field}")
    return value
