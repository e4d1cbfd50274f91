"""
cloudsched/control_plane/machine_pool.py
─────────────────────────────────────────
MachinePoolManager: which machines are powered and schedulable.

Two jobs
─────────
1. Startup activation (initialize)
     Enumerate every host machine and group it by CPU architecture, keeping
     machine-list order inside each group. Each group gets
         min(len(group), active_machine_budget // n_groups)
     machines switched to S0, each with one VM of the architecture's default
     OS attached. Every other machine is switched to S5.

2. Fallback capacity on assignment failure (activate_for_task)
     When no existing VM can take a task, find the first managed machine
     (managed-list order) that is fully on, matches the task's architecture,
     and has memory_free >= required_memory + vm_memory_overhead. Create a VM
     of exactly the task's (vm_type, cpu) there.

     Sleeping machines are NOT woken here. If no active machine qualifies
     the task is left unassigned for this cycle; there is no retry queue.

Default OS per architecture
────────────────────────────
    X86   → LINUX
    POWER → AIX
    ARM   → WIN
    other → None (logged; the group is not activated)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import (
    CPUType,
    MachineGroups,
    MachineInfo,
    PowerState,
    TaskInfo,
    VMType,
)
from cloudsched.control_plane.vm_registry import VMRegistry

logger = logging.getLogger(__name__)

DEFAULT_VM_FOR_CPU: Dict[CPUType, VMType] = {
    CPUType.X86: VMType.LINUX,
    CPUType.POWER: VMType.AIX,
    CPUType.ARM: VMType.WIN,
}


def default_vm_for_cpu(cpu: CPUType) -> Optional[VMType]:
    """
    The OS a freshly activated machine of this architecture runs.

    Returns None for an architecture with no mapping. Callers must treat
    None as "do not activate this group".
    """
    vm_type = DEFAULT_VM_FOR_CPU.get(cpu)
    if vm_type is None:
        logger.warning("default_vm_for_cpu: unknown CPU type %s", cpu.value)
    return vm_type


class MachinePoolManager:
    """
    Owns the active/sleeping partition of the host's machines.

    Attributes:
        managed_machines : List[int]   — activated machines, activation order
        groups           : MachineGroups — CPU → all machine ids of that CPU
    """

    def __init__(
        self,
        host: HostInterface,
        registry: VMRegistry,
        config: SchedulerConfig,
    ) -> None:
        self._host = host
        self._registry = registry
        self._config = config
        self.managed_machines: List[int] = []
        self.groups: MachineGroups = {}

    # ── Startup ────────────────────────────────────────────────────────────────

    def initialize(self) -> List[int]:
        """
        Partition the host's machines into active and sleeping sets.

        Returns:
            The ids of the machines activated, in activation order.
        """
        self.groups = self._group_by_cpu()
        if not self.groups:
            logger.warning("MachinePoolManager.initialize: host reports no machines")
            return []

        per_group = self._config.active_machine_budget // len(self.groups)

        for cpu, machine_ids in self.groups.items():
            vm_type = default_vm_for_cpu(cpu)
            n_active = min(len(machine_ids), per_group) if vm_type is not None else 0

            for machine_id in machine_ids[:n_active]:
                self._host.set_machine_state(machine_id, PowerState.S0)
                self._registry.create(vm_type, cpu, machine_id)
                self.managed_machines.append(machine_id)

            for machine_id in machine_ids[n_active:]:
                self._host.set_machine_state(machine_id, PowerState.S5)

            logger.info(
                "CPU group %s: %d/%d machines active (default VM %s)",
                cpu.value, n_active, len(machine_ids),
                vm_type.value if vm_type else "none",
            )

        return list(self.managed_machines)

    def _group_by_cpu(self) -> MachineGroups:
        groups: MachineGroups = {}
        for machine_id in range(self._host.machine_count()):
            info = self._host.machine_info(machine_id)
            groups.setdefault(info.cpu, []).append(machine_id)
        return groups

    # ── Fallback on assignment failure ─────────────────────────────────────────

    def has_headroom(self, machine: MachineInfo, task: TaskInfo) -> bool:
        """True if the machine can take the task's memory plus one VM overhead."""
        needed = task.required_memory + self._config.vm_memory_overhead
        return machine.memory_free >= needed

    def find_fallback_machine(self, task: TaskInfo) -> Optional[int]:
        """First managed machine that is S0, CPU-matching, and has headroom."""
        for machine_id in self.managed_machines:
            machine = self._host.machine_info(machine_id)
            if (
                machine.is_fully_on
                and machine.cpu == task.required_cpu
                and self.has_headroom(machine, task)
            ):
                return machine_id
        return None

    def activate_for_task(self, task: TaskInfo) -> Optional[int]:
        """
        Create a VM of the task's exact (vm_type, cpu) on a fallback machine.

        Returns:
            The new VM's id, or None when no active machine qualifies.
        """
        machine_id = self.find_fallback_machine(task)
        if machine_id is None:
            return None

        record = self._registry.create(task.required_vm, task.required_cpu, machine_id)
        logger.info(
            "Created exact-match VM %d (%s/%s) on machine %d for task %d",
            record.vm_id, task.required_vm.value, task.required_cpu.value,
            machine_id, task.task_id,
        )
        return record.vm_id

    def is_managed(self, machine_id: int) -> bool:
        return machine_id in self.managed_machines
