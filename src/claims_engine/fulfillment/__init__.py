"""Fulfillment sub-machine, service and the claim cost rule."""

from claims_engine.fulfillment.costs import cost_summary, settlement_value, total_cost
from claims_engine.fulfillment.machine import ALLOWED_FULFILLMENT_TRANSITIONS, can_move
from claims_engine.fulfillment.service import FulfillmentService, format_ber_reason

__all__ = [
    "ALLOWED_FULFILLMENT_TRANSITIONS",
    "FulfillmentService",
    "can_move",
    "cost_summary",
    "format_ber_reason",
    "settlement_value",
    "total_cost",
]
