"""
cloudsched/telemetry/report.py
──────────────────────────────
SimulationReport: the end-of-run summary pulled from the host.

The core never computes SLA violations or energy itself. At shutdown it asks
the host for:
  - the violation percentage of every SLA class
  - the cluster-wide energy total (kWh)
and pairs them with the final simulated time.

format_lines() renders the familiar block:

    SLA violation report
    SLA0: 0.0%
    SLA1: 12.5%
    SLA2: 0.0%
    Total Energy 3.2 KW-Hour
    Simulation run finished in 42.0 seconds
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import SLAClass

REPORTED_SLA_CLASSES: Sequence[SLAClass] = (SLAClass.SLA0, SLAClass.SLA1, SLAClass.SLA2)
"""SLA3 is best effort and has no deadline to violate, so it is not reported."""


class SimulationReport(BaseModel):
    """
    Fields:
        finished_at_us      → Final simulated time (µs).
        sla_violation_pct   → SLA class value → % of its tasks that missed.
        total_energy_kwh    → Cluster energy reported by the host.
    """
    finished_at_us: int = Field(..., ge=0)
    sla_violation_pct: Dict[str, float] = Field(default_factory=dict)
    total_energy_kwh: float = Field(0.0, ge=0.0)

    @property
    def runtime_seconds(self) -> float:
        return self.finished_at_us / 1_000_000

    @classmethod
    def collect(
        cls,
        host: HostInterface,
        time: int,
        sla_classes: Optional[Sequence[SLAClass]] = None,
    ) -> "SimulationReport":
        classes = REPORTED_SLA_CLASSES if sla_classes is None else sla_classes
        return cls(
            finished_at_us=time,
            sla_violation_pct={sla.value: host.sla_report(sla) for sla in classes},
            total_energy_kwh=host.cluster_energy(),
        )

    def format_lines(self) -> List[str]:
        lines = ["SLA violation report"]
        lines.extend(f"{sla}: {pct}%" for sla, pct in self.sla_violation_pct.items())
        lines.append(f"Total Energy {self.total_energy_kwh} KW-Hour")
        lines.append(f"Simulation run finished in {self.runtime_seconds} seconds")
        return lines
