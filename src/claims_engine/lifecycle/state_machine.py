"""Claim state machine: status transition table and the single mutation entry point.

Every status change goes through transition(). It validates the edge against
ALLOWED_TRANSITIONS, enforces the actor rules (only a human may reject) and then
commits status, decision and the history row in one transaction via
ClaimRepository.apply_transition.
"""

from claims_engine.config.settings import get_decision_reason_max_length
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.exceptions import InvalidTransitionError
from claims_engine.models.claim import Actor, Claim, ClaimStatus, Decision
from claims_engine.observability import get_logger
from claims_engine.utils.sanitization import truncate_reason

logger = get_logger(__name__)

S = ClaimStatus

ALLOWED_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    S.NOTIFIED: frozenset({S.ACCEPTED, S.REFERRED, S.REJECTED}),
    S.REFERRED: frozenset({S.REFERRED_PENDING_INFO, S.ACCEPTED, S.REJECTED}),
    S.REFERRED_PENDING_INFO: frozenset({S.REFERRED_INFO_RECEIVED, S.REJECTED}),
    S.REFERRED_INFO_RECEIVED: frozenset({S.ACCEPTED, S.REJECTED, S.REFERRED_PENDING_INFO}),
    # Zero-excess products skip excess_due
    S.ACCEPTED: frozenset({S.EXCESS_DUE, S.EXCESS_PAID_FULFILLMENT_PENDING}),
    S.EXCESS_DUE: frozenset({S.EXCESS_PAID_FULFILLMENT_PENDING}),
    S.EXCESS_PAID_FULFILLMENT_PENDING: frozenset({
        S.INBOUND_LOGISTICS,
        S.FULFILLMENT_INSPECTION_BOOKED,
        S.FULFILLMENT_OUTCOME,
    }),
    S.FULFILLMENT_INSPECTION_BOOKED: frozenset({S.ESTIMATE_RECEIVED, S.INBOUND_LOGISTICS}),
    S.ESTIMATE_RECEIVED: frozenset({S.REPAIR, S.INBOUND_LOGISTICS, S.FULFILLMENT_OUTCOME}),
    S.INBOUND_LOGISTICS: frozenset({S.REPAIR, S.FULFILLMENT_INSPECTION_BOOKED, S.ESTIMATE_RECEIVED}),
    S.REPAIR: frozenset({S.OUTBOUND_LOGISTICS, S.FULFILLMENT_OUTCOME}),
    S.OUTBOUND_LOGISTICS: frozenset({S.CLOSED, S.FULFILLMENT_OUTCOME}),
    S.FULFILLMENT_OUTCOME: frozenset({S.CLOSED}),
    S.REJECTED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset(),
}

# Decision stamped when entering these statuses from the triage states
DECISION_FOR_STATUS: dict[ClaimStatus, Decision] = {
    S.ACCEPTED: Decision.APPROVED,
    S.REFERRED: Decision.PENDING_REVIEW,
    S.REJECTED: Decision.REJECTED,
}

# Statuses from which a decision may still be (re)stamped; pending_review is provisional
_TRIAGE_STATUSES = frozenset({
    S.NOTIFIED,
    S.REFERRED,
    S.REFERRED_PENDING_INFO,
    S.REFERRED_INFO_RECEIVED,
})


def allowed_targets(status: ClaimStatus) -> frozenset[ClaimStatus]:
    """Statuses reachable in one step from status."""
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def can_transition(from_status: ClaimStatus, to_status: ClaimStatus) -> bool:
    return to_status in allowed_targets(from_status)


def _decision_for(claim: Claim, target: ClaimStatus) -> Decision | None:
    if claim.status in _TRIAGE_STATUSES and target in DECISION_FOR_STATUS:
        return DECISION_FOR_STATUS[target]
    return None


def _product_excess(repo: ClaimRepository, claim: Claim) -> float:
    policies = PolicyRepository(repo.db_path)
    policy = policies.get_policy(claim.policy_id)
    product = policies.get_product(policy.product_id) if policy is not None else None
    if product is None:
        raise InvalidTransitionError(
            claim.id,
            claim.status.value,
            ClaimStatus.ACCEPTED.value,
            f"No product found for policy {claim.policy_id}; cannot create the fulfillment",
        )
    return product.excess_1


def transition(
    claim: Claim | str,
    target: ClaimStatus | str,
    note: str = "",
    actor: Actor = Actor.SYSTEM,
    decision_reason: str | None = None,
    repo: ClaimRepository | None = None,
    fulfillment_excess: float | None = None,
    fulfillment_notes: str | None = None,
    expected_status: ClaimStatus | None = None,
) -> Claim:
    """Move a claim to target, appending a status history row.

    Args:
        claim: The claim (or its ID). The current status is re-read from storage.
        target: Desired status.
        note: History note.
        actor: Actor.SYSTEM for the automated path, Actor.HUMAN for agents.
        decision_reason: Text stored with the decision when this transition stamps one.
        repo: ClaimRepository (defaults to CLAIMS_DB_PATH).
        fulfillment_excess: Excess for the Fulfillment created in the same transaction.
            Only allowed when the transition stamps decision = approved; an approving
            transition without it uses the excess_1 of the claim's product.
        fulfillment_notes: Notes stored on the new Fulfillment.
        expected_status: If set, fail unless the claim is still in this status.

    Returns:
        The updated Claim.

    Raises:
        InvalidTransitionError: edge not in the table, automated rejection, a
            fulfillment requested without approval, or a concurrent status change.
        ClaimNotFoundError: unknown claim.
    """
    repo = repo or ClaimRepository()
    claim_id = claim if isinstance(claim, str) else claim.id
    target = ClaimStatus(target)
    current = repo.require_claim(claim_id)

    if expected_status is not None and current.status is not ClaimStatus(expected_status):
        raise InvalidTransitionError(
            claim_id,
            current.status.value,
            target.value,
            f"Claim {claim_id} is no longer in {ClaimStatus(expected_status).value}",
        )
    if not can_transition(current.status, target):
        raise InvalidTransitionError(claim_id, current.status.value, target.value)

    decision = _decision_for(current, target)
    if decision is Decision.REJECTED and actor is not Actor.HUMAN:
        raise InvalidTransitionError(
            claim_id,
            current.status.value,
            target.value,
            "Rejection can only be applied by a human actor",
        )
    if fulfillment_excess is not None and decision is not Decision.APPROVED:
        raise InvalidTransitionError(
            claim_id,
            current.status.value,
            target.value,
            "A fulfillment can only be created by a transition that approves the claim",
        )
    if decision is Decision.APPROVED and fulfillment_excess is None:
        fulfillment_excess = _product_excess(repo, current)

    reason = None
    if decision is not None:
        reason = truncate_reason(decision_reason or note, get_decision_reason_max_length())

    updated = repo.apply_transition(
        claim_id,
        from_status=current.status,
        to_status=target,
        note=note,
        actor=actor,
        decision=decision,
        decision_reason=reason,
        fulfillment_excess=fulfillment_excess,
        fulfillment_notes=fulfillment_notes,
    )
    logger.log_event(
        "claim_transitioned",
        claim_id=claim_id,
        from_status=current.status.value,
        to_status=target.value,
        actor=actor.value,
        decision=decision.value if decision else None,
    )
    return updated
