"""Claim cost rule. Every cost report goes through total_cost()."""

import re
from typing import Iterable

from claims_engine.models.fulfillment import (
    CostSummary,
    Fulfillment,
    FulfillmentType,
    QuoteStatus,
    RepairCost,
)

_SETTLEMENT_RE = re.compile(r"€\s*([\d.]+)")

_BER_TYPES = frozenset({FulfillmentType.BER_CASH, FulfillmentType.BER_VOUCHER})


def is_ber(fulfillment: Fulfillment) -> bool:
    return fulfillment.fulfillment_type in _BER_TYPES


def settlement_value(fulfillment: Fulfillment) -> float | None:
    """Dedicated settlement_value, else the amount parsed from ber_reason."""
    if fulfillment.settlement_value is not None:
        return fulfillment.settlement_value
    if not fulfillment.ber_reason:
        return None
    match = _SETTLEMENT_RE.search(fulfillment.ber_reason)
    if match is None:
        return None
    try:
        return float(match.group(1).rstrip("."))
    except ValueError:
        return None


def repairer_total(repair_costs: Iterable[RepairCost]) -> float:
    return round(sum(c.amount for c in repair_costs), 2)


def total_cost(fulfillment: Fulfillment, repair_costs: Iterable[RepairCost]) -> float:
    """BER settlement value, else the approved quote, else the sum of repair costs."""
    if is_ber(fulfillment):
        return settlement_value(fulfillment) or 0.0
    if fulfillment.quote_status is QuoteStatus.APPROVED and fulfillment.quote_amount is not None:
        return fulfillment.quote_amount
    return repairer_total(repair_costs)


def cost_summary(fulfillment: Fulfillment, repair_costs: Iterable[RepairCost]) -> CostSummary:
    costs = list(repair_costs)
    settlement = settlement_value(fulfillment) if is_ber(fulfillment) else None
    pct = None
    if settlement is not None and fulfillment.device_value:
        pct = round(settlement / fulfillment.device_value * 100, 1)
    return CostSummary(
        claim_id=fulfillment.claim_id,
        repairer_total=repairer_total(costs),
        approved_quote=(
            fulfillment.quote_amount if fulfillment.quote_status is QuoteStatus.APPROVED else None
        ),
        settlement_value=settlement,
        settlement_type=fulfillment.fulfillment_type if settlement is not None else None,
        settlement_pct_of_device_value=pct,
        device_value=fulfillment.device_value,
        excess_amount=fulfillment.excess_amount,
        excess_paid=fulfillment.excess_paid,
        total_cost=total_cost(fulfillment, costs),
    )
