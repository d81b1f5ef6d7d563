"""Exception hierarchy for the claims lifecycle and decisioning engine."""


class ClaimsEngineError(Exception):
    """Base class for all engine errors."""


class ClaimNotFoundError(ClaimsEngineError):
    """Raised when a claim (or its policy/product) cannot be loaded."""

    def __init__(self, claim_id: str, message: str | None = None):
        self.claim_id = claim_id
        super().__init__(message or f"Claim not found: {claim_id}")


class InvalidTransitionError(ClaimsEngineError):
    """Raised when a status change is not an edge of the transition table.

    Also raised when the automated actor tries to reject a claim, or when the claim's
    status changed underneath the caller between validation and commit.
    """

    def __init__(self, claim_id: str, from_status: str, to_status: str, message: str | None = None):
        self.claim_id = claim_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Invalid transition for claim {claim_id}: {from_status} -> {to_status}"
        )


class InvalidFulfillmentTransitionError(ClaimsEngineError):
    """Raised when the fulfillment sub-machine is asked to make an illegal move."""

    def __init__(self, claim_id: str, from_status: str, to_status: str, message: str | None = None):
        self.claim_id = claim_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message
            or f"Invalid fulfillment transition for claim {claim_id}: {from_status} -> {to_status}"
        )


class ClassifierUnavailableError(ClaimsEngineError):
    """The decision classifier is rate limited, timed out or unreachable. Retry later."""

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class ClassifierContractViolationError(ClaimsEngineError):
    """The classifier answered with something outside {accepted, referred}."""

    def __init__(self, raw_decision: object, message: str | None = None):
        self.raw_decision = raw_decision
        super().__init__(message or f"Unexpected classifier decision: {raw_decision!r}")


class EvidenceRaceError(ClaimsEngineError):
    """Another worker already claimed the claim for automated decisioning."""

    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim {claim_id} is already being processed or has left notified")


class EvidenceValidationError(ClaimsEngineError):
    """Uploaded evidence was rejected before storage (size, type, unknown claim)."""


class StorageError(ClaimsEngineError):
    """Blob storage or evidence record persistence failed."""
