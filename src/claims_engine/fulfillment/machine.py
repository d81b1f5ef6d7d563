"""Fulfillment sub-machine transition table."""

from claims_engine.exceptions import InvalidFulfillmentTransitionError
from claims_engine.models.fulfillment import Fulfillment, FulfillmentStatus, FulfillmentType

F = FulfillmentStatus

BER_STATUSES = frozenset({F.BER_CASH, F.BER_VOUCHER})

ALLOWED_FULFILLMENT_TRANSITIONS: dict[FulfillmentStatus, frozenset[FulfillmentStatus]] = {
    # excess_paid directly only when excess_amount is 0, see check_move
    F.PENDING_EXCESS: frozenset({F.AWAITING_EXCESS_PAYMENT, F.EXCESS_PAID}),
    F.AWAITING_EXCESS_PAYMENT: frozenset({F.EXCESS_PAID}),
    F.EXCESS_PAID: frozenset({F.INSPECTION, F.REPAIR_IN_PROGRESS}),
    F.INSPECTION: frozenset({F.REPAIR_IN_PROGRESS, F.QUOTE_PENDING}) | BER_STATUSES,
    F.REPAIR_IN_PROGRESS: frozenset({F.QUOTE_PENDING, F.COMPLETED}) | BER_STATUSES,
    F.QUOTE_PENDING: frozenset({F.QUOTE_APPROVED}) | BER_STATUSES,
    F.QUOTE_APPROVED: frozenset({F.COMPLETED}) | BER_STATUSES,
    F.BER_CASH: frozenset({F.COMPLETED}),
    F.BER_VOUCHER: frozenset({F.COMPLETED}),
    F.COMPLETED: frozenset(),
}

BER_TYPE_FOR_STATUS = {
    F.BER_CASH: FulfillmentType.BER_CASH,
    F.BER_VOUCHER: FulfillmentType.BER_VOUCHER,
}


def can_move(from_status: FulfillmentStatus, to_status: FulfillmentStatus) -> bool:
    return to_status in ALLOWED_FULFILLMENT_TRANSITIONS.get(from_status, frozenset())


def check_move(fulfillment: Fulfillment, to_status: FulfillmentStatus) -> None:
    """Raise InvalidFulfillmentTransitionError unless fulfillment may move to to_status."""
    if not can_move(fulfillment.status, to_status):
        raise InvalidFulfillmentTransitionError(
            fulfillment.claim_id, fulfillment.status.value, to_status.value
        )
    if (
        fulfillment.status is F.PENDING_EXCESS
        and to_status is F.EXCESS_PAID
        and fulfillment.excess_amount > 0
    ):
        raise InvalidFulfillmentTransitionError(
            fulfillment.claim_id,
            fulfillment.status.value,
            to_status.value,
            f"Claim {fulfillment.claim_id} owes an excess of {fulfillment.excess_amount:.2f}; "
            "request payment before recording it",
        )
