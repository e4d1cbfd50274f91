"""
cloudsched/control_plane — the scheduling brain.

Public API:
    Scheduler              — state object owning all core bookkeeping
    EventGateway           — host-facing entry points (+ typed dispatch)
    SchedulerEvent         — typed event for EventGateway.dispatch()
    EventType
    AssignmentEngine       — filter/score/commit on task arrival
    SchedulingFailedError  — raised when no VM or active machine fits a task
    CostEngine             — eligibility filters + composite placement cost
    DeadlineMonitor        — periodic deadline-risk scan, SLA-warning boost
    PowerController        — load → performance level, P0 boost
    MachinePoolManager     — startup activation, fallback capacity
    VMRegistry             — VMs created by the scheduler
    default_vm_for_cpu()   — CPU architecture → default OS
"""

from cloudsched.control_plane.vm_registry import VMRegistry
from cloudsched.control_plane.machine_pool import MachinePoolManager, default_vm_for_cpu
from cloudsched.control_plane.cost_engine import CostEngine
from cloudsched.control_plane.assignment import AssignmentEngine, SchedulingFailedError
from cloudsched.control_plane.power_controller import PowerController
from cloudsched.control_plane.deadline_monitor import DeadlineMonitor
from cloudsched.control_plane.scheduler import Scheduler
from cloudsched.control_plane.gateway import EventGateway, EventType, SchedulerEvent

__all__ = [
    "VMRegistry",
    "MachinePoolManager",
    "default_vm_for_cpu",
    "CostEngine",
    "AssignmentEngine",
    "SchedulingFailedError",
    "PowerController",
    "DeadlineMonitor",
    "Scheduler",
    "EventGateway",
    "EventType",
    "SchedulerEvent",
]
