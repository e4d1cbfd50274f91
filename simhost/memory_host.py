"""
simhost/memory_host.py
──────────────────────
InMemoryHost: a deterministic, in-process implementation of HostInterface.

What this is
─────────────
The scheduling core only talks to the datacenter through HostInterface. In
production that surface is backed by the discrete-event simulator. For
tests and local experiments this module backs it with plain dictionaries:

  - machines are MachineInfo models, mutated in place
  - VMs are VMInfo models
  - tasks are TaskInfo models
  - every command is appended to `commands` so tests can assert on exactly
    what the core asked for

No time advances on its own. The test (or a driver loop) decides when a
task makes progress (advance_task) or finishes (complete_task), and
delivers the matching events to the EventGateway itself.

Accounting
───────────
  vm_attach    → machine.memory_used += vm_memory_overhead, active_vms += 1
  vm_add_task  → machine.memory_used += task.required_memory, active_tasks += 1
  complete_task→ releases the task's memory and active_tasks slot, records
                 whether target_completion was met for sla_report()
  vm_shutdown  → releases the VM's overhead and any tasks still on it

Invariant enforcement
──────────────────────
Commands that would break the data model raise HostCommandError:
  - unknown machine / VM / task ids
  - attaching a VM to a machine of another architecture
  - attaching a VM to a machine that is not fully on (S0)
  - attaching a VM that is already attached
  - any commit that would push memory_used above memory_size
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from cloudsched.shared.config import VM_MEMORY_OVERHEAD
from cloudsched.shared.host import HostCommandError, HostInterface
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

logger = logging.getLogger(__name__)

# ── Defaults for synthetic machines and tasks ─────────────────────────────────

DEFAULT_PERFORMANCE_MIPS: Tuple[int, int, int, int] = (3000, 2400, 1800, 1200)
"""Throughput table (P0..P3) for machines added without an explicit one."""

SLA_SLACK_US: Dict[SLAClass, int] = {
    SLAClass.SLA0: 2_000_000,
    SLAClass.SLA1: 5_000_000,
    SLAClass.SLA2: 20_000_000,
    SLAClass.SLA3: 3_600_000_000,
}
"""Slack (µs) added to a task's arrival to derive target_completion when the
caller does not pass one explicitly."""


class InMemoryHost(HostInterface):
    """
    Dictionary-backed host simulation.

    Attributes:
        machines        : Dict[int, MachineInfo]
        vms             : Dict[int, VMInfo]
        tasks           : Dict[int, TaskInfo]
        commands        : List[tuple]  — every command issued, in order
        energy_kwh      : float        — returned by cluster_energy()
    """

    def __init__(self, vm_memory_overhead: int = VM_MEMORY_OVERHEAD) -> None:
        self.vm_memory_overhead = vm_memory_overhead
        self.machines: Dict[int, MachineInfo] = {}
        self.vms: Dict[int, VMInfo] = {}
        self.tasks: Dict[int, TaskInfo] = {}
        self.commands: List[tuple] = []
        self.energy_kwh: float = 0.0

        self._core_levels: Dict[int, List[PerformanceLevel]] = {}
        self._task_vm: Dict[int, int] = {}
        self._next_vm_id: int = 0
        # SLA class → [completed, violated]
        self._sla_outcomes: Dict[SLAClass, List[int]] = defaultdict(lambda: [0, 0])

    # ── Cluster construction ───────────────────────────────────────────────────

    def add_machine(
        self,
        cpu: CPUType,
        num_cpus: int = 8,
        memory_size: int = 16384,
        gpus: bool = False,
        performance: Optional[Sequence[int]] = None,
        s_state: PowerState = PowerState.S0,
        p_state: PerformanceLevel = PerformanceLevel.P0,
    ) -> int:
        """Add a machine and return its id (ids are dense, starting at 0)."""
        machine_id = len(self.machines)
        self.machines[machine_id] = MachineInfo(
            machine_id=machine_id,
            cpu=cpu,
            num_cpus=num_cpus,
            s_state=s_state,
            p_state=p_state,
            performance=list(performance or DEFAULT_PERFORMANCE_MIPS),
            memory_size=memory_size,
            gpus=gpus,
        )
        self._core_levels[machine_id] = [p_state] * num_cpus
        return machine_id

    def add_task(
        self,
        required_cpu: CPUType,
        required_vm: VMType,
        required_memory: int = 256,
        instructions: int = 1_000_000_000,
        sla: SLAClass = SLAClass.SLA3,
        arrival: int = 0,
        target_completion: Optional[int] = None,
        gpu_capable: bool = False,
        priority: Priority = Priority.MID,
    ) -> int:
        """Register a task the host will later announce via NewTask."""
        task_id = len(self.tasks)
        if target_completion is None:
            target_completion = arrival + SLA_SLACK_US[sla]
        self.tasks[task_id] = TaskInfo(
            task_id=task_id,
            required_cpu=required_cpu,
            required_vm=required_vm,
            required_memory=required_memory,
            gpu_capable=gpu_capable,
            required_sla=sla,
            priority=priority,
            arrival=arrival,
            target_completion=target_completion,
            total_instructions=instructions,
            remaining_instructions=instructions,
        )
        return task_id

    # ── Simulation progress (driven by tests) ──────────────────────────────────

    def advance_task(self, task_id: int, instructions: int) -> None:
        """Retire up to `instructions` of the task's remaining work."""
        task = self._task(task_id)
        task.remaining_instructions = max(0, task.remaining_instructions - instructions)

    def complete_task(self, task_id: int, time: int) -> None:
        """Finish a task: release its resources and record its SLA outcome."""
        task = self._task(task_id)
        if task.completed:
            return
        task.completed = True
        task.remaining_instructions = 0

        vm_id = self._task_vm.pop(task_id, None)
        if vm_id is not None:
            self._release_task(self.vms[vm_id], task)

        outcome = self._sla_outcomes[task.required_sla]
        outcome[0] += 1
        if time > task.target_completion:
            outcome[1] += 1

    def vm_of_task(self, task_id: int) -> Optional[int]:
        return self._task_vm.get(task_id)

    # ── Queries ────────────────────────────────────────────────────────────────

    def machine_count(self) -> int:
        return len(self.machines)

    def machine_info(self, machine_id: int) -> MachineInfo:
        return self._machine(machine_id).model_copy(deep=True)

    def vm_info(self, vm_id: int) -> VMInfo:
        return self._vm(vm_id).model_copy(deep=True)

    def task_info(self, task_id: int) -> TaskInfo:
        return self._task(task_id).model_copy(deep=True)

    def is_task_completed(self, task_id: int) -> bool:
        return self._task(task_id).completed

    def cluster_energy(self) -> float:
        return self.energy_kwh

    def sla_report(self, sla: SLAClass) -> float:
        completed, violated = self._sla_outcomes[sla]
        if completed == 0:
            return 0.0
        return 100.0 * violated / completed

    def core_levels(self, machine_id: int) -> List[PerformanceLevel]:
        return list(self._core_levels[machine_id])

    # ── Commands ───────────────────────────────────────────────────────────────

    def set_machine_state(self, machine_id: int, state: PowerState) -> None:
        self._machine(machine_id).s_state = state
        self.commands.append(("set_machine_state", machine_id, state))

    def set_machine_performance(
        self, machine_id: int, level: PerformanceLevel
    ) -> None:
        machine = self._machine(machine_id)
        self._core_levels[machine_id] = [level] * machine.num_cpus
        machine.p_state = level
        self.commands.append(("set_machine_performance", machine_id, level))

    def set_core_performance(
        self, machine_id: int, core_id: int, level: PerformanceLevel
    ) -> None:
        """Set one core. The machine's reported p_state follows core 0."""
        machine = self._machine(machine_id)
        cores = self._core_levels[machine_id]
        if not 0 <= core_id < len(cores):
            raise HostCommandError(f"Machine {machine_id} has no core {core_id}")
        cores[core_id] = level
        machine.p_state = cores[0]
        self.commands.append(("set_core_performance", machine_id, core_id, level))

    def vm_create(self, vm_type: VMType, cpu: CPUType) -> int:
        vm_id = self._next_vm_id
        self._next_vm_id += 1
        self.vms[vm_id] = VMInfo(vm_id=vm_id, vm_type=vm_type, cpu=cpu)
        self.commands.append(("vm_create", vm_id, vm_type, cpu))
        return vm_id

    def vm_attach(self, vm_id: int, machine_id: int) -> None:
        vm = self._vm(vm_id)
        machine = self._machine(machine_id)
        if vm.machine_id is not None:
            raise HostCommandError(f"VM {vm_id} is already attached to machine {vm.machine_id}")
        if vm.cpu != machine.cpu:
            raise HostCommandError(
                f"VM {vm_id} is {vm.cpu.value} but machine {machine_id} is {machine.cpu.value}"
            )
        if not machine.is_fully_on:
            raise HostCommandError(
                f"Machine {machine_id} is in {machine.s_state.value}, not S0"
            )
        self._commit_memory(machine, self.vm_memory_overhead)
        vm.machine_id = machine_id
        machine.active_vms += 1
        self.commands.append(("vm_attach", vm_id, machine_id))

    def vm_add_task(self, vm_id: int, task_id: int, priority: Priority) -> None:
        vm = self._vm(vm_id)
        task = self._task(task_id)
        if vm.machine_id is None:
            raise HostCommandError(f"VM {vm_id} is not attached to a machine")
        if task_id in self._task_vm:
            raise HostCommandError(
                f"Task {task_id} is already on VM {self._task_vm[task_id]}"
            )
        if vm.cpu != task.required_cpu or vm.vm_type != task.required_vm:
            raise HostCommandError(
                f"Task {task_id} needs {task.required_vm.value}/{task.required_cpu.value}, "
                f"VM {vm_id} is {vm.vm_type.value}/{vm.cpu.value}"
            )
        machine = self._machine(vm.machine_id)
        self._commit_memory(machine, task.required_memory)
        machine.active_tasks += 1
        vm.active_tasks.append(task_id)
        self._task_vm[task_id] = vm_id
        self.commands.append(("vm_add_task", vm_id, task_id, priority))

    def vm_shutdown(self, vm_id: int) -> None:
        vm = self._vm(vm_id)
        for task_id in list(vm.active_tasks):
            self._task_vm.pop(task_id, None)
            self._release_task(vm, self.tasks[task_id])
        if vm.machine_id is not None:
            machine = self._machine(vm.machine_id)
            machine.memory_used = max(0, machine.memory_used - self.vm_memory_overhead)
            machine.active_vms = max(0, machine.active_vms - 1)
        del self.vms[vm_id]
        self.commands.append(("vm_shutdown", vm_id))

    # ── Private helpers ───────────────────────────────────────────────────────

    def _commit_memory(self, machine: MachineInfo, amount: int) -> None:
        if machine.memory_used + amount > machine.memory_size:
            raise HostCommandError(
                f"Machine {machine.machine_id} memory overflow: "
                f"{machine.memory_used} + {amount} > {machine.memory_size} MB"
            )
        machine.memory_used += amount

    def _release_task(self, vm: VMInfo, task: TaskInfo) -> None:
        if task.task_id in vm.active_tasks:
            vm.active_tasks.remove(task.task_id)
        machine = self._machine(vm.machine_id)
        machine.memory_used = max(0, machine.memory_used - task.required_memory)
        machine.active_tasks = max(0, machine.active_tasks - 1)

    def _machine(self, machine_id: int) -> MachineInfo:
        try:
            return self.machines[machine_id]
        except KeyError:
            raise HostCommandError(f"Unknown machine {machine_id}") from None

    def _vm(self, vm_id: int) -> VMInfo:
        try:
            return self.vms[vm_id]
        except KeyError:
            raise HostCommandError(f"Unknown VM {vm_id}") from None

    def _task(self, task_id: int) -> TaskInfo:
        try:
            return self.tasks[task_id]
        except KeyError:
            raise HostCommandError(f"Unknown task {task_id}") from None
