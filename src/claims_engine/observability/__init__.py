"""Observability for the claims engine.

This module provides:
- Structured logging with claim context
- Decisioning counters and classifier latency metrics
"""

from claims_engine.observability.logger import (
    ClaimLogger,
    claim_context,
    get_logger,
)
from claims_engine.observability.metrics import (
    EngineMetrics,
    get_metrics,
    reset_metrics,
)

__all__ = [
    # Logger
    "ClaimLogger",
    "get_logger",
    "claim_context",
    # Metrics
    "EngineMetrics",
    "get_metrics",
    "reset_metrics",
]
