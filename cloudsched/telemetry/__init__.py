"""
cloudsched/telemetry — end-of-run reporting.

Public API:
    SimulationReport  — SLA violation %, energy and runtime pulled from the host
"""

from cloudsched.telemetry.report import SimulationReport

__all__ = ["SimulationReport"]
