"""
simhost — in-process host simulation for the cloudsched core.

Public API:
    InMemoryHost  — dictionary-backed HostInterface implementation

Usage:
    from simhost import InMemoryHost

    host = InMemoryHost()
    host.add_machine(CPUType.X86, num_cpus=8, memory_size=16384)
    task_id = host.add_task(CPUType.X86, VMType.LINUX, required_memory=512)
"""

from simhost.memory_host import InMemoryHost

__all__ = ["InMemoryHost"]
