"""Pydantic models for the fulfillment sub-workflow and SLA configuration."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from claims_engine.models.claim import ClaimStatus


class FulfillmentStatus(str, Enum):
    """States of the fulfillment sub-machine."""

    PENDING_EXCESS = "pending_excess"
    AWAITING_EXCESS_PAYMENT = "awaiting_excess_payment"
    EXCESS_PAID = "excess_paid"
    INSPECTION = "inspection"
    REPAIR_IN_PROGRESS = "repair_in_progress"
    QUOTE_PENDING = "quote_pending"
    QUOTE_APPROVED = "quote_approved"
    BER_CASH = "ber_cash"
    BER_VOUCHER = "ber_voucher"
    COMPLETED = "completed"


class FulfillmentType(str, Enum):
    """How an accepted claim is resolved."""

    REPAIR = "repair"
    BER_CASH = "ber_cash"
    BER_VOUCHER = "ber_voucher"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Fulfillment(BaseModel):
    """One per approved claim."""

    id: int
    claim_id: str
    status: FulfillmentStatus = FulfillmentStatus.PENDING_EXCESS
    excess_amount: float = 0.0
    excess_paid: bool = False
    excess_payment_date: Optional[datetime] = None
    excess_payment_method: Optional[str] = None
    quote_amount: Optional[float] = None
    quote_status: Optional[QuoteStatus] = None
    quote_rejection_reason: Optional[str] = None
    fulfillment_type: Optional[FulfillmentType] = None
    device_value: Optional[float] = None
    settlement_value: Optional[float] = None
    ber_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class RepairCost(BaseModel):
    """Append-only repairer line item."""

    id: int
    fulfillment_id: int
    cost_type: str
    description: str = ""
    amount: float
    units: Optional[float] = None
    created_at: datetime


class CostSummary(BaseModel):
    """Cost report for a fulfillment. total_cost comes from fulfillment.costs.total_cost."""

    claim_id: str
    repairer_total: float = 0.0
    approved_quote: Optional[float] = None
    settlement_value: Optional[float] = None
    settlement_type: Optional[FulfillmentType] = None
    settlement_pct_of_device_value: Optional[float] = None
    device_value: Optional[float] = None
    excess_amount: float = 0.0
    excess_paid: bool = False
    total_cost: float = 0.0


class SLAEntry(BaseModel):
    """Allowed hours for a claim status; program_id None means the global default."""

    id: Optional[int] = None
    program_id: Optional[str] = None
    claim_status: ClaimStatus
    sla_hours: int = Field(..., gt=0)
    description: str = ""
    is_active: bool = True
