"""
tests/test_deadline_monitor.py
───────────────────────────────
Test suite for cloudsched/control_plane/deadline_monitor.py

Every scenario runs on a single X86 machine with throughput table
(1000, 800, 600, 500) MIPS. At P3 (500 MIPS):

    30_000 instructions → ~60 µs projected
    20_000 instructions → ~40 µs projected

With target_completion = 100 µs and now = 0, the default risk fraction (0.5)
puts the boost threshold at 50 µs.

Test groups
────────────
Group 1: risk estimate    — projected_finish, needs_boost boundary
Group 2: check()          — boost, no boost, skipped records
Group 3: SLA warnings     — immediate boost, unknown task
Group 4: tick ordering    — deadline boost then power scaling in one tick
"""

from __future__ import annotations

from typing import List, Tuple

from cloudsched.control_plane.deadline_monitor import DeadlineMonitor
from cloudsched.control_plane.scheduler import Scheduler
from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.models import CPUType, MachineInfo, PerformanceLevel, TaskInfo, VMType
from simhost import InMemoryHost


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _throttled_scheduler(
    p_state: PerformanceLevel = PerformanceLevel.P3,
    config: SchedulerConfig = None,
) -> Scheduler:
    host = InMemoryHost()
    host.add_machine(
        CPUType.X86, num_cpus=10, performance=(1000, 800, 600, 500), p_state=p_state,
    )
    scheduler = Scheduler(host, config)
    scheduler.init()
    return scheduler


def _place(scheduler: Scheduler, instructions: int, target_completion: int = 100) -> int:
    task_id = scheduler.host.add_task(
        CPUType.X86, VMType.LINUX,
        instructions=instructions,
        target_completion=target_completion,
    )
    assert scheduler.new_task(0, task_id) is not None
    return task_id


def _perf_commands(host: InMemoryHost) -> List[Tuple]:
    return [c for c in host.commands if c[0] == "set_machine_performance"]


# ─────────────────────────────────────────────────────────────────────────────
# Group 1: risk estimate
# ─────────────────────────────────────────────────────────────────────────────

class TestRiskEstimate:

    def test_projected_finish_in_microseconds(self) -> None:
        """3e9 instructions at 3000 MIPS take one second = 1e6 µs."""
        task = TaskInfo(
            task_id=0, required_cpu=CPUType.X86, required_vm=VMType.LINUX,
            required_memory=0, target_completion=0,
            total_instructions=3_000_000_000, remaining_instructions=3_000_000_000,
        )
        machine = MachineInfo(
            machine_id=0, cpu=CPUType.X86, num_cpus=4,
            performance=[3000, 2400, 1800, 1200], memory_size=1024,
        )
        assert DeadlineMonitor.projected_finish(task, machine) == 1_000_000

    def test_projected_finish_uses_current_level(self) -> None:
        """The same work projects longer on a throttled machine."""
        task = TaskInfo(
            task_id=0, required_cpu=CPUType.X86, required_vm=VMType.LINUX,
            required_memory=0, target_completion=0,
            total_instructions=1_200_000_000, remaining_instructions=1_200_000_000,
        )
        machine = MachineInfo(
            machine_id=0, cpu=CPUType.X86, num_cpus=4, p_state=PerformanceLevel.P3,
            performance=[3000, 2400, 1800, 1200], memory_size=1024,
        )
        assert DeadlineMonitor.projected_finish(task, machine) == 1_000_000

    def test_boundary_is_strict(self) -> None:
        """Exactly half the remaining time is not yet at risk."""
        monitor = _throttled_scheduler().monitor
        assert not monitor.needs_boost(50, 100)
        assert monitor.needs_boost(51, 100)

    def test_threshold_truncated_to_whole_microseconds(self) -> None:
        """Half of an odd remaining time rounds down: 101 µs left → threshold 50."""
        monitor = _throttled_scheduler().monitor
        assert not monitor.needs_boost(50, 101)
        assert monitor.needs_boost(51, 101)

    def test_projection_truncated_to_whole_microseconds(self) -> None:
        """25_350 instructions at 500 MIPS is 50.7 µs, counted as 50."""
        s = _throttled_scheduler()
        task_id = _place(s, instructions=25_350, target_completion=101)
        task = s.host.task_info(task_id)

        assert DeadlineMonitor.projected_finish(task, s.host.machine_info(0)) == 50
        assert s.monitor.check(0) == []

    def test_custom_fraction(self) -> None:
        """A lower risk fraction boosts earlier."""
        monitor = _throttled_scheduler(config=SchedulerConfig(deadline_risk_fraction=0.25)).monitor
        assert monitor.needs_boost(30, 100)
        assert not monitor.needs_boost(25, 100)


# ─────────────────────────────────────────────────────────────────────────────
# Group 2: check()
# ─────────────────────────────────────────────────────────────────────────────

class TestCheck:

    def test_at_risk_task_boosts_machine(self) -> None:
        """Deadline 100, projected 60 → boost to P0."""
        s = _throttled_scheduler()
        _place(s, instructions=30_000)

        boosted = s.monitor.check(0)

        assert boosted == [0]
        assert s.host.machines[0].p_state == PerformanceLevel.P0
        assert s.power.boost_count == 1

    def test_comfortable_task_not_boosted(self) -> None:
        """Deadline 100, projected 40 → no command."""
        s = _throttled_scheduler()
        _place(s, instructions=20_000)

        assert s.monitor.check(0) == []
        assert _perf_commands(s.host) == []

    def test_late_task_skipped(self) -> None:
        """A task already past its deadline gets no boost."""
        s = _throttled_scheduler()
        _place(s, instructions=30_000)

        assert s.monitor.check(101) == []
        assert s.host.machines[0].p_state == PerformanceLevel.P3

    def test_completed_task_skipped(self) -> None:
        """The host's completion flag wins even if the record is still present."""
        s = _throttled_scheduler()
        task_id = _place(s, instructions=30_000)
        s.host.complete_task(task_id, 10)

        assert s.monitor.check(0) == []

    def test_no_remaining_instructions_skipped(self) -> None:
        """A task with nothing left to run is never at risk."""
        s = _throttled_scheduler()
        task_id = _place(s, instructions=30_000)
        s.host.advance_task(task_id, 30_000)

        assert s.monitor.check(0) == []

    def test_progress_reduces_risk(self) -> None:
        """Retiring instructions between ticks moves the task out of risk."""
        s = _throttled_scheduler()
        task_id = _place(s, instructions=30_000)
        s.host.advance_task(task_id, 15_000)   # 30 µs left of work

        assert s.monitor.check(0) == []

    def test_already_fast_machine_reported_without_command(self) -> None:
        """At P0 the at-risk machine is reported but no command is issued."""
        s = _throttled_scheduler(p_state=PerformanceLevel.P0)
        _place(s, instructions=60_000)   # 60 µs at 1000 MIPS

        assert s.monitor.check(0) == [0]
        assert _perf_commands(s.host) == []
        assert s.power.boost_count == 0


# ─────────────────────────────────────────────────────────────────────────────
# Group 3: SLA warnings
# ─────────────────────────────────────────────────────────────────────────────

class TestSlaWarning:

    def test_warning_boosts_hosting_machine(self) -> None:
        """An SLA warning boosts even a task that check() would leave alone."""
        s = _throttled_scheduler()
        task_id = _place(s, instructions=1_000)

        assert s.sla_warning(5, task_id) == 0
        assert s.host.machines[0].p_state == PerformanceLevel.P0

    def test_warning_for_unknown_task_ignored(self) -> None:
        """An SLA warning for a task with no active record does nothing."""
        s = _throttled_scheduler()
        assert s.sla_warning(5, 999) is None
        assert _perf_commands(s.host) == []


# ─────────────────────────────────────────────────────────────────────────────
# Group 4: tick ordering
# ─────────────────────────────────────────────────────────────────────────────

class TestTickOrdering:

    def test_power_scaling_overrides_boost_in_same_tick(self) -> None:
        """
        The monitor boosts to P0, then load scaling (load 0.1) drops the
        machine back to P3 within the same periodic_check.
        """
        s = _throttled_scheduler()
        _place(s, instructions=30_000)

        s.periodic_check(0)

        levels = [c[2] for c in _perf_commands(s.host)]
        assert levels == [PerformanceLevel.P0, PerformanceLevel.P3]
        assert s.host.machines[0].p_state == PerformanceLevel.P3

    def test_boost_reapplied_on_next_tick(self) -> None:
        """While the task stays at risk, each tick boosts again."""
        s = _throttled_scheduler()
        _place(s, instructions=30_000)

        s.periodic_check(0)
        s.periodic_check(50)   # 50 µs left, 60 µs of work

        assert s.power.boost_count == 2
