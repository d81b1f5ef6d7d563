"""Pydantic models for claims, evidence, status history and the lifecycle enums."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ClaimStatus(str, Enum):
    """Claim lifecycle status. Values are wire-stable."""

    NOTIFIED = "notified"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REFERRED = "referred"
    REFERRED_PENDING_INFO = "referred_pending_info"
    REFERRED_INFO_RECEIVED = "referred_info_received"
    INBOUND_LOGISTICS = "inbound_logistics"
    REPAIR = "repair"
    OUTBOUND_LOGISTICS = "outbound_logistics"
    CLOSED = "closed"
    EXCESS_DUE = "excess_due"
    EXCESS_PAID_FULFILLMENT_PENDING = "excess_paid_fulfillment_pending"
    FULFILLMENT_INSPECTION_BOOKED = "fulfillment_inspection_booked"
    ESTIMATE_RECEIVED = "estimate_received"
    FULFILLMENT_OUTCOME = "fulfillment_outcome"


class ClaimType(str, Enum):
    """What happened to the covered item."""

    BREAKDOWN = "breakdown"
    DAMAGE = "damage"
    THEFT = "theft"


class Decision(str, Enum):
    """Triage outcome stamped on the claim when it leaves notified."""

    APPROVED = "approved"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"


class Verdict(str, Enum):
    """Categorical answer of the automated classifier. Never 'rejected'."""

    ACCEPTED = "accepted"
    REFERRED = "referred"


class Actor(str, Enum):
    """Who is driving a transition."""

    SYSTEM = "system"
    HUMAN = "human"


class DocumentType(str, Enum):
    """Evidence document kinds."""

    PHOTO = "photo"
    RECEIPT = "receipt"
    OTHER = "other"


class ClaimInput(BaseModel):
    """Input payload for claim submission."""

    policy_id: str = Field(..., description="Owning policy ID")
    claim_type: ClaimType = Field(..., description="breakdown, damage or theft")
    description: str = Field(default="", description="Customer's account of the fault or incident")
    required_evidence: Optional[list[DocumentType]] = Field(
        default=None,
        description="Evidence types required before automated triage; defaults per claim type",
    )


class Claim(BaseModel):
    """A claim row. Status only ever changes through lifecycle.transition()."""

    id: str
    claim_number: str
    policy_id: str
    claim_type: ClaimType
    status: ClaimStatus = ClaimStatus.NOTIFIED
    decision: Optional[Decision] = None
    decision_reason: Optional[str] = None
    description: str = ""
    required_evidence: list[DocumentType] = Field(default_factory=list)
    processing_started_at: Optional[datetime] = None
    submitted_at: datetime
    updated_at: Optional[datetime] = None


class StatusHistoryEntry(BaseModel):
    """One append-only audit row, written in the same transaction as the status change."""

    id: int
    claim_id: str
    status: ClaimStatus
    note: str = ""
    actor: Actor = Actor.SYSTEM
    created_at: datetime


class Product(BaseModel):
    """Insurance product: what is covered and what excess the customer pays."""

    id: str
    name: str
    excess_1: float = 0.0
    coverage: list[str] = Field(default_factory=list)


class Policy(BaseModel):
    """Customer policy linking a claim to its product and program."""

    id: str
    policy_number: str
    product_id: str
    program_id: Optional[str] = None
    customer_name: str = ""
    customer_email: str = ""


class EvidenceDocument(BaseModel):
    """Stored evidence metadata. The gate only ever reads document_type."""

    id: int
    claim_id: str
    document_type: DocumentType
    file_name: str
    file_path: str
    file_size: int = 0
    content_type: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: datetime


class EvidenceComplete(BaseModel):
    """Emitted exactly once per claim when its required evidence set is first complete."""

    claim_id: str
    present_types: list[DocumentType] = Field(default_factory=list)
    emitted_at: datetime
