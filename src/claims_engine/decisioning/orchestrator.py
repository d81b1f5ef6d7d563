"""Decision orchestrator: evidence complete -> classifier -> transition -> fulfillment -> notify.

The orchestrator never partially applies a decision. Either the classifier answers
and one transition commits (with the fulfillment, for an acceptance), or nothing is
written and the claim's processing flag is released so decisioning can be retried.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass

from claims_engine.classifier.adapter import ClassifierAdapter
from claims_engine.classifier.llm import LiteLLMClassifier
from claims_engine.config.settings import get_processing_lock_ttl_seconds
from claims_engine.db.constants import INITIAL_STATUS
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.evidence.gate import EvidenceGate
from claims_engine.exceptions import (
    ClaimNotFoundError,
    InvalidTransitionError,
)
from claims_engine.lifecycle.state_machine import transition
from claims_engine.models.claim import (
    Actor,
    Claim,
    ClaimStatus,
    EvidenceComplete,
    Policy,
    Product,
    Verdict,
)
from claims_engine.notifications.dispatcher import BackgroundNotifier, build_decision_notification
from claims_engine.observability import claim_context, get_logger, get_metrics

logger = get_logger(__name__)

AUTO_APPROVED_FULFILLMENT_NOTES = (
    "Claim automatically approved. Awaiting excess payment to proceed with fulfillment."
)
MANUAL_APPROVED_FULFILLMENT_NOTES = "Claim approved by claims handler."

_VERDICT_STATUS = {
    Verdict.ACCEPTED: ClaimStatus.ACCEPTED,
    Verdict.REFERRED: ClaimStatus.REFERRED,
}

_MANUAL_TARGETS = frozenset({ClaimStatus.ACCEPTED, ClaimStatus.REJECTED})


@dataclass
class DecisionOutcome:
    """Result of one automated decision."""

    claim_id: str
    verdict: Verdict
    reason: str
    claim: Claim
    coerced: bool = False
    fulfillment_created: bool = False
    notification: Future | None = None


class DecisionOrchestrator:
    """Glues the evidence gate, classifier adapter, state machine and fulfillment."""

    def __init__(
        self,
        adapter: ClassifierAdapter | None = None,
        repo: ClaimRepository | None = None,
        policy_repo: PolicyRepository | None = None,
        notifier: BackgroundNotifier | None = None,
    ):
        self._adapter = adapter or ClassifierAdapter(LiteLLMClassifier())
        self._repo = repo or ClaimRepository()
        self._policies = policy_repo or PolicyRepository(self._repo.db_path)
        self._notifier = notifier or BackgroundNotifier()

    def _load_policy_and_product(self, claim: Claim) -> tuple[Policy, Product]:
        policy = self._policies.get_policy(claim.policy_id)
        if policy is None:
            raise ClaimNotFoundError(claim.id, f"Policy {claim.policy_id} not found for claim {claim.id}")
        product = self._policies.get_product(policy.product_id)
        if product is None:
            raise ClaimNotFoundError(claim.id, f"Product {policy.product_id} not found for claim {claim.id}")
        return policy, product

    def _fail(self, claim_id: str, stage: str, error: Exception) -> None:
        self._repo.release_processing(claim_id)
        get_metrics().increment("decision_failed")
        logger.log_event(
            "decision_failed",
            level=logging.WARNING,
            claim_id=claim_id,
            stage=stage,
            error_type=type(error).__name__,
            error=str(error),
        )

    def on_evidence_complete(self, event: EvidenceComplete | str) -> DecisionOutcome:
        """Run automated triage for a claim whose processing flag the caller holds.

        Raises:
            ClassifierUnavailableError: classifier failed; the claim is unchanged.
            InvalidTransitionError: the claim left notified while the classifier ran.
            ClaimNotFoundError: claim, policy or product missing.
        """
        claim_id = event if isinstance(event, str) else event.claim_id
        claim = self._repo.require_claim(claim_id)
        with claim_context(claim.id, claim.claim_number):
            try:
                policy, product = self._load_policy_and_product(claim)
                evidence = self._repo.get_evidence_types(claim.id)
                result = self._adapter.classify(claim, policy, product, evidence)
            except Exception as e:
                self._fail(claim.id, "classify", e)
                raise

            target = _VERDICT_STATUS[result.verdict]
            accepted = result.verdict is Verdict.ACCEPTED
            try:
                updated = transition(
                    claim,
                    target,
                    note=f"Automatic decision: {result.reason}",
                    actor=Actor.SYSTEM,
                    decision_reason=result.reason,
                    repo=self._repo,
                    fulfillment_excess=product.excess_1 if accepted else None,
                    fulfillment_notes=AUTO_APPROVED_FULFILLMENT_NOTES if accepted else None,
                    expected_status=INITIAL_STATUS,
                )
            except Exception as e:
                self._fail(claim.id, "transition", e)
                raise

            get_metrics().increment(f"auto_{result.verdict.value}")
            notification = self._notify(updated, policy, product, result.verdict, result.reason)
            return DecisionOutcome(
                claim_id=claim.id,
                verdict=result.verdict,
                reason=result.reason,
                claim=updated,
                coerced=result.coerced,
                fulfillment_created=accepted,
                notification=notification,
            )

    def _notify(
        self,
        claim: Claim,
        policy: Policy,
        product: Product,
        verdict: Verdict,
        reason: str,
    ) -> Future | None:
        notification = build_decision_notification(claim, policy, product, verdict, reason)
        try:
            return self._notifier.submit(notification)
        except RuntimeError as e:
            # Executor already shut down; the committed decision stands
            get_metrics().increment("notification_failed")
            logger.log_event(
                "notification_failed",
                level=logging.ERROR,
                claim_id=claim.id,
                error=str(e),
            )
            return None

    def retry_decision(self, claim_id: str) -> DecisionOutcome:
        """Re-run automated triage for a claim left in notified by an earlier failure.

        Raises:
            EvidenceRaceError: another worker holds the claim or it already left notified.
            InvalidTransitionError: required evidence is still missing.
        """
        claim = self._repo.require_claim(claim_id)
        gate = EvidenceGate(self._repo)
        missing = gate.required_for(claim) - self._repo.get_evidence_types(claim_id)
        if claim.status is INITIAL_STATUS and missing:
            raise InvalidTransitionError(
                claim_id,
                claim.status.value,
                ClaimStatus.ACCEPTED.value,
                f"Required evidence missing: {', '.join(sorted(m.value for m in missing))}",
            )
        self._repo.try_start_processing(claim_id, get_processing_lock_ttl_seconds())
        return self.on_evidence_complete(claim_id)

    def apply_manual_decision(
        self,
        claim_id: str,
        target: ClaimStatus | str,
        reason: str,
        actor: Actor = Actor.HUMAN,
    ) -> Claim:
        """Accept or reject a claim on behalf of a claims handler.

        An acceptance creates the fulfillment in the same transaction. Rejection is
        refused for any actor other than a human by the state machine.
        """
        target = ClaimStatus(target)
        claim = self._repo.require_claim(claim_id)
        if target not in _MANUAL_TARGETS:
            raise InvalidTransitionError(
                claim_id,
                claim.status.value,
                target.value,
                "A manual decision must accept or reject the claim",
            )
        with claim_context(claim.id, claim.claim_number):
            excess = None
            notes = None
            if target is ClaimStatus.ACCEPTED:
                _, product = self._load_policy_and_product(claim)
                excess = product.excess_1
                notes = MANUAL_APPROVED_FULFILLMENT_NOTES
            label = "approved" if target is ClaimStatus.ACCEPTED else "rejected"
            updated = transition(
                claim,
                target,
                note=f"Manually {label}: {reason}" if reason else f"Manually {label}",
                actor=actor,
                decision_reason=reason,
                repo=self._repo,
                fulfillment_excess=excess,
                fulfillment_notes=notes,
            )
            get_metrics().increment(f"manual_{label}")
            return updated

    def shutdown(self, wait: bool = True) -> None:
        self._notifier.shutdown(wait=wait)
