"""
tests/test_machine_pool.py
───────────────────────────
Test suite for cloudsched/control_plane/machine_pool.py

Test groups
────────────
Group 1: default_vm_for_cpu()   — architecture → OS mapping, unknown CPU
Group 2: initialize()           — per-group activation, budget split, S5 for the rest
Group 3: fallback capacity      — find_fallback_machine / activate_for_task
"""

from __future__ import annotations

import logging
from typing import List, Tuple

import pytest

from cloudsched.control_plane.machine_pool import MachinePoolManager, default_vm_for_cpu
from cloudsched.control_plane.vm_registry import VMRegistry
from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.models import CPUType, PowerState, VMType
from simhost import InMemoryHost


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _host_with(cpus: List[CPUType], memory_size: int = 4096) -> InMemoryHost:
    host = InMemoryHost()
    for cpu in cpus:
        host.add_machine(cpu, num_cpus=8, memory_size=memory_size)
    return host


def _pool(host: InMemoryHost, budget: int = 64) -> Tuple[MachinePoolManager, VMRegistry]:
    registry = VMRegistry(host)
    config = SchedulerConfig(active_machine_budget=budget)
    return MachinePoolManager(host, registry, config), registry


# ─────────────────────────────────────────────────────────────────────────────
# Group 1: default_vm_for_cpu()
# ─────────────────────────────────────────────────────────────────────────────

class TestDefaultVmForCpu:

    @pytest.mark.parametrize(
        "cpu, expected",
        [
            (CPUType.X86, VMType.LINUX),
            (CPUType.POWER, VMType.AIX),
            (CPUType.ARM, VMType.WIN),
        ],
    )
    def test_known_architectures(self, cpu: CPUType, expected: VMType) -> None:
        """Each supported architecture maps to its fixed default OS."""
        assert default_vm_for_cpu(cpu) == expected

    def test_unknown_architecture_returns_none_and_logs(self, caplog) -> None:
        """An unmapped architecture yields the None sentinel plus a warning."""
        with caplog.at_level(logging.WARNING):
            assert default_vm_for_cpu(CPUType.RISCV) is None
        assert "RISCV" in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# Group 2: initialize()
# ─────────────────────────────────────────────────────────────────────────────

class TestInitialize:

    def test_four_identical_machines_budget_two(self) -> None:
        """Budget 2 over one group of 4: two machines S0, the other two S5."""
        host = _host_with([CPUType.X86] * 4)
        pool, registry = _pool(host, budget=2)

        activated = pool.initialize()

        assert activated == [0, 1]
        assert host.machines[0].s_state == PowerState.S0
        assert host.machines[1].s_state == PowerState.S0
        assert host.machines[2].s_state == PowerState.S5
        assert host.machines[3].s_state == PowerState.S5
        assert len(registry) == 2

    def test_budget_split_evenly_across_groups(self) -> None:
        """Budget 4 over two groups of 3 activates the first 2 of each group."""
        host = _host_with([CPUType.X86] * 3 + [CPUType.ARM] * 3)
        pool, _ = _pool(host, budget=4)

        activated = pool.initialize()

        assert activated == [0, 1, 3, 4]
        assert host.machines[2].s_state == PowerState.S5
        assert host.machines[5].s_state == PowerState.S5

    def test_group_share_capped_at_group_size(self) -> None:
        """A group smaller than its share activates every machine it has."""
        host = _host_with([CPUType.X86] + [CPUType.POWER] * 5)
        pool, _ = _pool(host, budget=8)

        activated = pool.initialize()

        assert activated == [0, 1, 2, 3, 4]
        assert host.machines[5].s_state == PowerState.S5

    def test_groups_record_machine_list_order(self) -> None:
        """groups maps each CPU to its machines in machine-list order."""
        host = _host_with([CPUType.ARM, CPUType.X86, CPUType.ARM])
        pool, _ = _pool(host)

        pool.initialize()

        assert pool.groups == {CPUType.ARM: [0, 2], CPUType.X86: [1]}

    def test_each_active_machine_gets_one_default_vm(self) -> None:
        """Every activated machine hosts exactly one VM of its CPU's default OS."""
        host = _host_with([CPUType.X86, CPUType.POWER, CPUType.ARM])
        pool, registry = _pool(host)

        pool.initialize()

        by_machine = {vm.machine_id: vm for vm in registry}
        assert by_machine[0].vm_type == VMType.LINUX
        assert by_machine[1].vm_type == VMType.AIX
        assert by_machine[2].vm_type == VMType.WIN
        for vm in registry:
            assert host.vms[vm.vm_id].machine_id == vm.machine_id
            assert host.machines[vm.machine_id].cpu == vm.cpu

    def test_unknown_architecture_group_not_activated(self) -> None:
        """A RISCV group gets no VMs and all of its machines go to S5."""
        host = _host_with([CPUType.RISCV, CPUType.RISCV, CPUType.X86, CPUType.X86])
        pool, registry = _pool(host, budget=4)

        activated = pool.initialize()

        assert activated == [2, 3]
        assert host.machines[0].s_state == PowerState.S5
        assert host.machines[1].s_state == PowerState.S5
        assert all(vm.cpu == CPUType.X86 for vm in registry)

    def test_zero_budget_powers_everything_down(self) -> None:
        """With no budget nothing is activated and every machine is S5."""
        host = _host_with([CPUType.X86] * 3)
        pool, registry = _pool(host, budget=0)

        assert pool.initialize() == []
        assert len(registry) == 0
        assert all(m.s_state == PowerState.S5 for m in host.machines.values())

    def test_empty_host(self) -> None:
        """A host with no machines initializes to an empty pool without error."""
        pool, registry = _pool(InMemoryHost())
        assert pool.initialize() == []
        assert len(registry) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Group 3: fallback capacity
# ─────────────────────────────────────────────────────────────────────────────

class TestFallback:

    def test_first_matching_machine_selected(self) -> None:
        """The first managed S0 machine with the task's CPU and headroom wins."""
        host = _host_with([CPUType.ARM, CPUType.X86, CPUType.X86])
        pool, _ = _pool(host)
        pool.initialize()
        task = host.task_info(host.add_task(CPUType.X86, VMType.LINUX_RT, required_memory=512))

        assert pool.find_fallback_machine(task) == 1

    def test_headroom_includes_vm_overhead(self) -> None:
        """free memory must cover required_memory + overhead (8 MB)."""
        # After initialize each machine has 8 MB committed to its default VM.
        host = _host_with([CPUType.X86], memory_size=528)   # 520 free
        pool, _ = _pool(host)
        pool.initialize()
        fits = host.task_info(host.add_task(CPUType.X86, VMType.LINUX, required_memory=512))
        too_big = host.task_info(host.add_task(CPUType.X86, VMType.LINUX, required_memory=513))

        assert pool.find_fallback_machine(fits) == 0
        assert pool.find_fallback_machine(too_big) is None

    def test_machine_not_fully_on_skipped(self) -> None:
        """A managed machine that has left S0 is not a fallback candidate."""
        host = _host_with([CPUType.X86, CPUType.X86])
        pool, _ = _pool(host)
        pool.initialize()
        host.machines[0].s_state = PowerState.S3
        task = host.task_info(host.add_task(CPUType.X86, VMType.LINUX))

        assert pool.find_fallback_machine(task) == 1

    def test_cpu_mismatch_returns_none(self) -> None:
        """No machine of the task's architecture → no fallback."""
        host = _host_with([CPUType.X86])
        pool, _ = _pool(host)
        pool.initialize()
        task = host.task_info(host.add_task(CPUType.POWER, VMType.AIX))

        assert pool.find_fallback_machine(task) is None

    def test_sleeping_machines_are_not_woken(self) -> None:
        """Machines left in S5 at startup are never used as fallback capacity."""
        host = _host_with([CPUType.X86, CPUType.X86], memory_size=256)
        pool, _ = _pool(host, budget=1)
        pool.initialize()
        task = host.task_info(host.add_task(CPUType.X86, VMType.LINUX, required_memory=512))

        assert pool.activate_for_task(task) is None
        assert host.machines[1].s_state == PowerState.S5

    def test_activate_for_task_creates_exact_match_vm(self) -> None:
        """The fallback VM has exactly the task's (vm_type, cpu) and is registered."""
        host = _host_with([CPUType.X86])
        pool, registry = _pool(host)
        pool.initialize()
        task = host.task_info(host.add_task(CPUType.X86, VMType.LINUX_RT))

        vm_id = pool.activate_for_task(task)

        assert vm_id is not None
        record = registry.get(vm_id)
        assert record.vm_type == VMType.LINUX_RT
        assert record.cpu == CPUType.X86
        assert record.machine_id == 0
        assert host.vms[vm_id].machine_id == 0
        assert len(registry) == 2

    def test_only_startup_machines_are_managed(self) -> None:
        """is_managed is true for activated machines and false for sleeping ones."""
        host = _host_with([CPUType.X86] * 3)
        pool, _ = _pool(host, budget=2)
        pool.initialize()

        assert pool.is_managed(0)
        assert pool.is_managed(1)
        assert not pool.is_managed(2)
