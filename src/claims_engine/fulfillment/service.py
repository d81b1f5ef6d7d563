"""Fulfillment operations for accepted claims: excess, inspection, quotes, BER, costs."""

from datetime import datetime
from typing import Any

from claims_engine.db.database import utcnow
from claims_engine.db.fulfillment_repository import FulfillmentRepository
from claims_engine.exceptions import ClaimNotFoundError, InvalidFulfillmentTransitionError
from claims_engine.fulfillment import costs
from claims_engine.fulfillment.machine import BER_STATUSES, BER_TYPE_FOR_STATUS, check_move
from claims_engine.models.fulfillment import (
    CostSummary,
    Fulfillment,
    FulfillmentStatus,
    FulfillmentType,
    QuoteStatus,
    RepairCost,
)
from claims_engine.observability import get_logger

logger = get_logger(__name__)

F = FulfillmentStatus

_BER_LABEL = {
    FulfillmentType.BER_CASH: "Cash",
    FulfillmentType.BER_VOUCHER: "Voucher",
}


def format_ber_reason(settlement: float, fulfillment_type: FulfillmentType) -> str:
    return f"Quote rejected - Settlement: €{settlement:.2f} via {_BER_LABEL[fulfillment_type]}"


class FulfillmentService:
    """Moves a claim's fulfillment through its sub-machine.

    Each move is a conditional update on the status read just before it, so two
    handlers acting on the same fulfillment cannot both apply a move.
    """

    def __init__(self, repo: FulfillmentRepository | None = None):
        self._repo = repo or FulfillmentRepository()

    def get(self, claim_id: str) -> Fulfillment:
        fulfillment = self._repo.get_fulfillment(claim_id)
        if fulfillment is None:
            raise ClaimNotFoundError(claim_id, f"No fulfillment for claim {claim_id}")
        return fulfillment

    def _move(self, claim_id: str, to_status: FulfillmentStatus, **fields: Any) -> Fulfillment:
        current = self.get(claim_id)
        check_move(current, to_status)
        updated = self._repo.update_fulfillment(
            claim_id, expected_status=current.status, new_status=to_status, **fields
        )
        logger.log_event(
            "fulfillment_transitioned",
            claim_id=claim_id,
            from_status=current.status.value,
            to_status=to_status.value,
        )
        return updated

    def start(self, claim_id: str) -> Fulfillment:
        """Leave pending_excess: wait for payment, or go straight to excess_paid if none is due."""
        current = self.get(claim_id)
        if current.excess_amount > 0:
            return self._move(claim_id, F.AWAITING_EXCESS_PAYMENT)
        return self._move(claim_id, F.EXCESS_PAID, excess_paid=True)

    def record_excess_payment(
        self,
        claim_id: str,
        method: str,
        paid_at: datetime | None = None,
    ) -> Fulfillment:
        return self._move(
            claim_id,
            F.EXCESS_PAID,
            excess_paid=True,
            excess_payment_method=method,
            excess_payment_date=paid_at or utcnow(),
        )

    def book_inspection(self, claim_id: str, notes: str | None = None) -> Fulfillment:
        fields = {"notes": notes} if notes else {}
        return self._move(claim_id, F.INSPECTION, **fields)

    def start_repair(self, claim_id: str) -> Fulfillment:
        return self._move(claim_id, F.REPAIR_IN_PROGRESS, fulfillment_type=FulfillmentType.REPAIR)

    def submit_quote(self, claim_id: str, amount: float) -> Fulfillment:
        if amount <= 0:
            raise ValueError("Quote amount must be positive")
        return self._move(
            claim_id,
            F.QUOTE_PENDING,
            quote_amount=amount,
            quote_status=QuoteStatus.PENDING,
        )

    def approve_quote(self, claim_id: str) -> Fulfillment:
        return self._move(
            claim_id,
            F.QUOTE_APPROVED,
            quote_status=QuoteStatus.APPROVED,
            fulfillment_type=FulfillmentType.REPAIR,
        )

    def settle_ber(
        self,
        claim_id: str,
        fulfillment_type: FulfillmentType | str,
        settlement_value: float,
        device_value: float | None = None,
        reason: str | None = None,
    ) -> Fulfillment:
        """Close out a beyond-economic-repair claim with a cash or voucher settlement.

        A pending quote is marked rejected with reason. ber_reason records the
        settlement narrative; settlement_value holds the amount itself.
        """
        fulfillment_type = FulfillmentType(fulfillment_type)
        target = next(
            (s for s in BER_STATUSES if BER_TYPE_FOR_STATUS[s] is fulfillment_type), None
        )
        if target is None:
            raise ValueError(f"Not a BER settlement type: {fulfillment_type.value}")
        if settlement_value <= 0:
            raise ValueError("Settlement value must be positive")
        current = self.get(claim_id)
        fields: dict[str, Any] = {
            "fulfillment_type": fulfillment_type,
            "settlement_value": settlement_value,
            "ber_reason": format_ber_reason(settlement_value, fulfillment_type),
        }
        if device_value is not None:
            fields["device_value"] = device_value
        if current.quote_status is QuoteStatus.PENDING:
            fields["quote_status"] = QuoteStatus.REJECTED
            fields["quote_rejection_reason"] = reason or "Beyond economic repair"
        return self._move(claim_id, target, **fields)

    def complete(self, claim_id: str) -> Fulfillment:
        return self._move(claim_id, F.COMPLETED)

    def add_repair_cost(
        self,
        claim_id: str,
        cost_type: str,
        amount: float,
        description: str = "",
        units: float | None = None,
    ) -> RepairCost:
        fulfillment = self.get(claim_id)
        if fulfillment.status is F.COMPLETED:
            raise InvalidFulfillmentTransitionError(
                claim_id,
                fulfillment.status.value,
                fulfillment.status.value,
                f"Fulfillment for claim {claim_id} is completed; no further costs can be added",
            )
        if amount < 0:
            raise ValueError("Repair cost amount cannot be negative")
        return self._repo.add_repair_cost(
            fulfillment.id, cost_type, amount, description=description, units=units
        )

    def total_cost(self, claim_id: str) -> float:
        fulfillment = self.get(claim_id)
        return costs.total_cost(fulfillment, self._repo.list_repair_costs(fulfillment.id))

    def cost_summary(self, claim_id: str) -> CostSummary:
        fulfillment = self.get(claim_id)
        return costs.cost_summary(fulfillment, self._repo.list_repair_costs(fulfillment.id))
