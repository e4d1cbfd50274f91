"""
cloudsched/control_plane/power_controller.py
─────────────────────────────────────────────
PowerController: maps machine load to a DVFS performance level.

Mapping (thresholds from SchedulerConfig.load_thresholds)
──────────────────────────────────────────────────────────
    load > 0.8 → P0
    load > 0.5 → P1
    load > 0.2 → P2
    otherwise  → P3

The mapping is monotonic: a higher load never gets a slower level.

On every periodic tick adjust() recomputes the level for each managed
machine and issues a whole-machine change only where it differs from the
machine's current level.

Ordering hazard
────────────────
adjust() runs after the deadline monitor in the same tick. A boost to P0
issued by the monitor is overridden here when the machine's load maps to a
slower level. The monitor re-applies the boost on the next tick while the
task is still at risk.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from cloudsched.shared.config import SchedulerConfig
from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import MachineInfo, PerformanceLevel
from cloudsched.control_plane.cost_engine import CostEngine

logger = logging.getLogger(__name__)


class PowerController:
    """Load-driven performance scaling and on-demand boosts."""

    def __init__(self, host: HostInterface, config: SchedulerConfig) -> None:
        self._host = host
        self._config = config
        self.boost_count: int = 0

    @staticmethod
    def machine_load(machine: MachineInfo) -> float:
        """Resident tasks per core; the same load the cost engine uses."""
        return CostEngine.load_factor(machine)

    def level_for_load(self, load: float) -> PerformanceLevel:
        p0_above, p1_above, p2_above = self._config.load_thresholds
        if load > p0_above:
            return PerformanceLevel.P0
        if load > p1_above:
            return PerformanceLevel.P1
        if load > p2_above:
            return PerformanceLevel.P2
        return PerformanceLevel.lowest()

    def adjust(self, machine_ids: Iterable[int]) -> Dict[int, PerformanceLevel]:
        """
        Bring every listed machine to the level its load calls for.

        Returns:
            machine_id → new level, for the machines that were changed.
        """
        changed: Dict[int, PerformanceLevel] = {}
        for machine_id in machine_ids:
            machine = self._host.machine_info(machine_id)
            desired = self.level_for_load(self.machine_load(machine))
            if self._apply(machine, desired):
                changed[machine_id] = desired
        if changed:
            logger.debug("PowerController.adjust: %d machines rescaled", len(changed))
        return changed

    def boost(self, machine_id: int) -> bool:
        """
        Force the machine to its highest performance level.

        Returns:
            True if a change was issued, False if it was already at P0.
        """
        machine = self._host.machine_info(machine_id)
        issued = self._apply(machine, PerformanceLevel.highest())
        if issued:
            self.boost_count += 1
            logger.info("Boosted machine %d to %s", machine_id, PerformanceLevel.P0.value)
        return issued

    def _apply(self, machine: MachineInfo, level: PerformanceLevel) -> bool:
        if machine.p_state == level:
            return False
        self._host.set_machine_performance(machine.machine_id, level)
        return True
