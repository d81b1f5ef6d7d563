"""Lifecycle constants shared by the repositories and the engine components.

The full status list lives in claims_engine.models.claim.ClaimStatus; these are the
subsets with special meaning.
"""

from claims_engine.models.claim import ClaimStatus

INITIAL_STATUS = ClaimStatus.NOTIFIED

# Claims in these statuses are never overdue
TERMINAL_STATUSES = frozenset({ClaimStatus.CLOSED, ClaimStatus.REJECTED})

CLAIM_NUMBER_PREFIX = "CLM"

SUBMITTED_NOTE = "Claim submitted"
