"""
cloudsched — SLA-aware assignment, deadline-monitoring and power-scaling
core for a simulated datacenter.

Usage:
    from cloudsched import EventGateway, Scheduler, SchedulerConfig
    from simhost import InMemoryHost

    host = InMemoryHost()
    ...                                   # add machines
    gateway = EventGateway(Scheduler(host, SchedulerConfig()))
    gateway.init()
    gateway.new_task(time, task_id)       # driven by the host's event loop
"""

from cloudsched.shared.config import SchedulerConfig
from cloudsched.control_plane.scheduler import Scheduler
from cloudsched.control_plane.gateway import EventGateway

__all__ = ["SchedulerConfig", "Scheduler", "EventGateway"]
