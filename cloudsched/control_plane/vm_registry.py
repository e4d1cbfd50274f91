"""
cloudsched/control_plane/vm_registry.py
────────────────────────────────────────
VMRegistry: the VMs this scheduler created, in creation order.

Creation order matters: the assignment engine scans VMs in registry order
and breaks score ties in favour of the first one encountered.

The host never creates VMs on our behalf, so every VM the host knows about
that we care about is in here. A VM leaves the registry only when the
scheduler shuts it down.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from cloudsched.shared.host import HostInterface
from cloudsched.shared.models import CPUType, VMRecord, VMType

logger = logging.getLogger(__name__)


class VMRegistry:
    """Ordered registry of (vm_type, cpu) pairings and their machine binding."""

    def __init__(self, host: HostInterface) -> None:
        self._host = host
        self._vms: Dict[int, VMRecord] = {}

    def create(
        self,
        vm_type: VMType,
        cpu: CPUType,
        machine_id: int,
    ) -> VMRecord:
        """
        Create a VM on the host, attach it to `machine_id`, and register it.

        The caller is responsible for having checked that the machine's
        architecture equals `cpu` and that it is fully on; the host rejects
        the attach otherwise.
        """
        vm_id = self._host.vm_create(vm_type, cpu)
        self._host.vm_attach(vm_id, machine_id)
        record = VMRecord(vm_id=vm_id, vm_type=vm_type, cpu=cpu, machine_id=machine_id)
        self._vms[vm_id] = record
        logger.debug(
            "VM %d created: type=%s cpu=%s machine=%d",
            vm_id, vm_type.value, cpu.value, machine_id,
        )
        return record

    def get(self, vm_id: int) -> Optional[VMRecord]:
        return self._vms.get(vm_id)

    def machine_of(self, vm_id: int) -> Optional[int]:
        """Machine the VM is bound to, or None for an unknown VM."""
        record = self._vms.get(vm_id)
        return record.machine_id if record else None

    def shutdown_all(self) -> List[int]:
        """Request shutdown of every registered VM and empty the registry."""
        shut_down = list(self._vms)
        for vm_id in shut_down:
            self._host.vm_shutdown(vm_id)
        self._vms.clear()
        logger.info("Shut down %d VMs", len(shut_down))
        return shut_down

    def __iter__(self) -> Iterator[VMRecord]:
        return iter(list(self._vms.values()))

    def __len__(self) -> int:
        return len(self._vms)

    def __contains__(self, vm_id: object) -> bool:
        return vm_id in self._vms
