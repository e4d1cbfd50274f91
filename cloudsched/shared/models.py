"""
cloudsched/shared/models.py
───────────────────────────
The single source of truth for every data structure the scheduling core
reads or writes.

Design philosophy
-----------------
Every model answers one question: "What does the scheduler *need to know*
about this thing in order to make a placement or power decision?"

Machines, VMs and tasks are owned by the host simulation. The core only ever
holds *snapshots* of them (MachineInfo, VMInfo, TaskInfo) returned by the
host's query surface. The two models the core owns outright are ActiveTask
(its shadow bookkeeping of in-flight work) and VMRecord (its registry of the
VMs it created).

Units
-----
  time        → integer microseconds of simulated time
  throughput  → MIPS (millions of instructions per second)
  memory      → MB

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, PositiveInt


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# Small named constants that make the code self-documenting.
# ─────────────────────────────────────────────────────────────────────────────

class CPUType(str, Enum):
    """
    Instruction-set architecture of a physical machine.

    A VM can only be attached to a machine of its own architecture, and a
    task can only run on a VM of the architecture it was compiled for.
    """
    ARM = "ARM"
    POWER = "POWER"
    RISCV = "RISCV"
    X86 = "X86"


class VMType(str, Enum):
    """The operating environment a virtual machine presents to its tasks."""
    LINUX = "LINUX"
    LINUX_RT = "LINUX_RT"
    WIN = "WIN"
    AIX = "AIX"


class PowerState(str, Enum):
    """
    Machine power states, ordered from fully operational to fully off.

    S0    → Fully on. The only state in which a machine accepts work.
    S0i1  → Idle, cores parked, instant wake.
    S1–S4 → Progressively deeper sleep; longer wake latency.
    S5    → Soft off. Minimum power draw, longest wake.
    """
    S0 = "S0"
    S0i1 = "S0i1"
    S1 = "S1"
    S2 = "S2"
    S3 = "S3"
    S4 = "S4"
    S5 = "S5"


class PerformanceLevel(str, Enum):
    """
    Per-core DVFS performance levels, ordered from highest to lowest
    throughput. P0 is full speed; P3 is the most power-saving level.

    A machine's throughput table is indexed by `PerformanceLevel.rank`.
    """
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def rank(self) -> int:
        """Position in the ordering: 0 = fastest."""
        return _PERF_ORDER.index(self)

    @classmethod
    def highest(cls) -> "PerformanceLevel":
        return cls.P0

    @classmethod
    def lowest(cls) -> "PerformanceLevel":
        return cls.P3


_PERF_ORDER: List[PerformanceLevel] = list(PerformanceLevel)


class SLAClass(str, Enum):
    """
    Service-level tiers. SLA0 is the strictest: the host gives it the least
    slack between arrival and target completion. SLA3 is best effort.
    """
    SLA0 = "SLA0"
    SLA1 = "SLA1"
    SLA2 = "SLA2"
    SLA3 = "SLA3"


class Priority(str, Enum):
    """Priority a task is queued with inside its VM."""
    HIGH = "HIGH"
    MID = "MID"
    LOW = "LOW"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: MACHINE
# Read-only snapshot of a physical machine as reported by the host.
# ─────────────────────────────────────────────────────────────────────────────

class MachineInfo(BaseModel):
    """
    Snapshot of a physical machine.

    Fields:
        machine_id      → Host-assigned identifier (index into the machine list).
        cpu             → Architecture. Fixed for the lifetime of the machine.
        num_cpus        → Core count. Denominator of the load metric.
        s_state         → Current power state. Only S0 is schedulable.
        p_state         → Current performance level of the machine's cores.
        performance     → Throughput table in MIPS, one entry per
                          PerformanceLevel (index 0 = P0). Every entry
                          is positive; a zero-MIPS level is rejected here.
        memory_size     → Installed memory in MB.
        memory_used     → Memory committed to VMs and their tasks in MB.
        gpus            → True if the machine carries a GPU.
        active_tasks    → Number of tasks currently resident on the machine.
        active_vms      → Number of VMs attached to the machine.
        energy_consumed → Energy drawn so far (host accounting, kWh).
    """
    machine_id: int = Field(..., ge=0)
    cpu: CPUType
    num_cpus: int = Field(..., gt=0, description="Core count")
    s_state: PowerState = PowerState.S0
    p_state: PerformanceLevel = PerformanceLevel.P0
    performance: List[PositiveInt] = Field(
        ..., min_length=len(PerformanceLevel),
        description="MIPS at each performance level, P0 first",
    )
    memory_size: int = Field(..., ge=0, description="Installed memory in MB")
    memory_used: int = Field(0, ge=0, description="Committed memory in MB")
    gpus: bool = False
    active_tasks: int = Field(0, ge=0)
    active_vms: int = Field(0, ge=0)
    energy_consumed: float = Field(0.0, ge=0.0)

    @property
    def memory_free(self) -> int:
        """Memory not yet committed to any VM or task."""
        return self.memory_size - self.memory_used

    @property
    def is_fully_on(self) -> bool:
        return self.s_state == PowerState.S0

    def throughput_mips(self, level: Optional[PerformanceLevel] = None) -> int:
        """MIPS at `level`, or at the machine's current level if omitted."""
        level = self.p_state if level is None else level
        return self.performance[level.rank]


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: VIRTUAL MACHINE
# ─────────────────────────────────────────────────────────────────────────────

class VMInfo(BaseModel):
    """
    Snapshot of a virtual machine as reported by the host.

    machine_id is None until the VM is first attached.
    """
    vm_id: int = Field(..., ge=0)
    vm_type: VMType
    cpu: CPUType
    machine_id: Optional[int] = None
    active_tasks: List[int] = Field(default_factory=list)


class VMRecord(BaseModel):
    """
    The scheduler's own registry entry for a VM it created.

    Kept separate from VMInfo because the registry must not depend on a
    host round-trip to know which (type, cpu) pairing a VM was created with
    or where it was attached.
    """
    vm_id: int
    vm_type: VMType
    cpu: CPUType
    machine_id: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: TASKS
# What the host tells us about a workload, and what we track ourselves.
# ─────────────────────────────────────────────────────────────────────────────

class TaskInfo(BaseModel):
    """
    Snapshot of a task from the host's task registry.

    Every field is immutable once the task arrives except
    `remaining_instructions` (monotonically decreasing as the task runs) and
    `completed`.

    target_completion is derived by the host from `arrival` plus the slack
    granted to `required_sla`.
    """
    task_id: int = Field(..., ge=0)
    required_cpu: CPUType
    required_vm: VMType
    required_memory: int = Field(..., ge=0, description="MB")
    gpu_capable: bool = False
    required_sla: SLAClass = SLAClass.SLA3
    priority: Priority = Priority.MID
    arrival: int = Field(0, ge=0, description="Arrival time (µs)")
    target_completion: int = Field(..., ge=0, description="Deadline (µs)")
    total_instructions: int = Field(..., ge=0)
    remaining_instructions: int = Field(..., ge=0)
    completed: bool = False


class ActiveTask(BaseModel):
    """
    The scheduler's shadow record of an in-flight task.

    Invariant: exactly one record per task that has been assigned and has
    not yet completed. Created on task arrival (successful assignment only)
    and removed on the task's completion event; no other event creates or
    removes one.
    """
    task_id: int
    sla: SLAClass
    deadline: int
    vm_id: int


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 5: CONVENIENCE TYPE ALIASES
# ─────────────────────────────────────────────────────────────────────────────

# CPU architecture → machine ids in machine-list order
MachineGroups = Dict[CPUType, List[int]]

# task_id → active record, in assignment order
ActiveTaskTable = Dict[int, ActiveTask]
