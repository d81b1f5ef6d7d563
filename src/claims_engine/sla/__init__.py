"""SLA table and monitoring."""

from claims_engine.sla.monitor import SLAMonitor
from claims_engine.sla.table import SLAEvaluation, SLAState, SLATable

__all__ = ["SLAEvaluation", "SLAMonitor", "SLAState", "SLATable"]
