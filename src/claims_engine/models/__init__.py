"""Pydantic models for claims, fulfillment and SLA configuration."""

from claims_engine.models.claim import (
    Actor,
    Claim,
    ClaimInput,
    ClaimStatus,
    ClaimType,
    Decision,
    DocumentType,
    EvidenceComplete,
    EvidenceDocument,
    Policy,
    Product,
    StatusHistoryEntry,
    Verdict,
)
from claims_engine.models.fulfillment import (
    CostSummary,
    Fulfillment,
    FulfillmentStatus,
    FulfillmentType,
    QuoteStatus,
    RepairCost,
    SLAEntry,
)

__all__ = [
    "Actor",
    "Claim",
    "ClaimInput",
    "ClaimStatus",
    "ClaimType",
    "CostSummary",
    "Decision",
    "DocumentType",
    "EvidenceComplete",
    "EvidenceDocument",
    "Fulfillment",
    "FulfillmentStatus",
    "FulfillmentType",
    "Policy",
    "Product",
    "QuoteStatus",
    "RepairCost",
    "SLAEntry",
    "StatusHistoryEntry",
    "Verdict",
]
