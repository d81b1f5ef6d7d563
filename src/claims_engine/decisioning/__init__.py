"""Automated and manual claim decisioning."""

from claims_engine.decisioning.orchestrator import DecisionOrchestrator, DecisionOutcome

__all__ = ["DecisionOrchestrator", "DecisionOutcome"]
