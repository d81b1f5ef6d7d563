"""Claim status transition table and the transition() entry point."""

from claims_engine.lifecycle.state_machine import (
    ALLOWED_TRANSITIONS,
    allowed_targets,
    can_transition,
    transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "allowed_targets",
    "can_transition",
    "transition",
]
