"""
cloudsched/shared/host.py
─────────────────────────
HostInterface: the query/command surface the scheduling core calls back into.

The host simulation owns machines, VMs, tasks, time, energy accounting and
SLA accounting. The core never touches any of that directly; everything goes
through the methods below. All calls are synchronous. The only asynchronous
completions are the MigrationComplete and StateChangeComplete events the
host later delivers through the EventGateway.

Error handling contract
────────────────────────
  HostCommandError: raised by an implementation when a command would break
                    a data-model invariant (unknown id, architecture
                    mismatch, memory overflow, attaching to a machine that
                    is not fully on). The core does not catch it: it means
                    the core or the host has a bug, not that a scheduling
                    condition occurred.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from cloudsched.shared.models import (
    CPUType,
    MachineInfo,
    PerformanceLevel,
    PowerState,
    Priority,
    SLAClass,
    TaskInfo,
    VMInfo,
    VMType,
)


class HostCommandError(Exception):
    """
    Raised when the host refuses a query or command.

    Attributes:
        reason: Human-readable explanation of why the host refused.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class HostInterface(ABC):
    """Abstract query/command surface of the host simulation."""

    # ── Queries ────────────────────────────────────────────────────────────────

    @abstractmethod
    def machine_count(self) -> int:
        """Total number of machines known to the host. Ids are 0..count-1."""

    @abstractmethod
    def machine_info(self, machine_id: int) -> MachineInfo:
        """Current snapshot of one machine."""

    @abstractmethod
    def vm_info(self, vm_id: int) -> VMInfo:
        """Current snapshot of one VM."""

    @abstractmethod
    def task_info(self, task_id: int) -> TaskInfo:
        """Current snapshot of one task."""

    @abstractmethod
    def is_task_completed(self, task_id: int) -> bool:
        """True once the host has finished executing the task."""

    @abstractmethod
    def cluster_energy(self) -> float:
        """Cluster-wide energy consumed so far, in kWh."""

    @abstractmethod
    def sla_report(self, sla: SLAClass) -> float:
        """Percentage (0-100) of tasks in `sla` that violated their deadline."""

    # ── Commands ───────────────────────────────────────────────────────────────

    @abstractmethod
    def set_machine_state(self, machine_id: int, state: PowerState) -> None:
        """Request a power-state transition."""

    @abstractmethod
    def set_machine_performance(
        self, machine_id: int, level: PerformanceLevel
    ) -> None:
        """Set every core of the machine to `level`."""

    @abstractmethod
    def set_core_performance(
        self, machine_id: int, core_id: int, level: PerformanceLevel
    ) -> None:
        """Set a single core of the machine to `level`."""

    @abstractmethod
    def vm_create(self, vm_type: VMType, cpu: CPUType) -> int:
        """Create an unattached VM and return its id."""

    @abstractmethod
    def vm_attach(self, vm_id: int, machine_id: int) -> None:
        """Bind a VM to a machine of the same architecture."""

    @abstractmethod
    def vm_add_task(self, vm_id: int, task_id: int, priority: Priority) -> None:
        """Queue a task on a VM with the given priority."""

    @abstractmethod
    def vm_shutdown(self, vm_id: int) -> None:
        """Destroy a VM."""
