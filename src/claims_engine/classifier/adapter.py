"""Classifier adapter: builds the decision request, calls the classifier, enforces policy.

The automated path may only ever produce accepted or referred. Anything else the
underlying classifier returns is coerced to referred so uncertainty escalates to a
human instead of denying a claim.
"""

import logging
import time
from typing import Iterable, Optional, Protocol

from pydantic import BaseModel, Field

from claims_engine.config.settings import CLASSIFIER_REASON_MAX_LENGTH, get_classifier_config
from claims_engine.exceptions import ClassifierContractViolationError, ClassifierUnavailableError
from claims_engine.models.claim import Claim, DocumentType, Policy, Product, Verdict
from claims_engine.observability import get_logger, get_metrics
from claims_engine.utils.sanitization import sanitize_classification_request, truncate_reason

logger = get_logger(__name__)

COERCED_REASON = "Classifier returned an unexpected decision; referred for manual review"


class EvidenceFlags(BaseModel):
    has_photo: bool = False
    has_receipt: bool = False


class ClassificationRequest(BaseModel):
    """Wire request sent to the decision classifier."""

    claim_number: str
    claim_type: str
    product_name: str
    coverage: list[str] = Field(default_factory=list)
    description: str = ""
    evidence_flags: EvidenceFlags = Field(default_factory=EvidenceFlags)


class RawClassification(BaseModel):
    """Untrusted classifier answer; decision may be anything."""

    decision: Optional[str] = None
    reason: str = ""
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0


class ClassificationResult(BaseModel):
    """Adapter output: verdict is always accepted or referred."""

    verdict: Verdict
    reason: str = Field(default="", max_length=CLASSIFIER_REASON_MAX_LENGTH)
    coerced: bool = False


class DecisionClassifier(Protocol):
    """Narrow capability interface so the AI provider is swappable and mockable.

    Implementations raise ClassifierUnavailableError for rate limits, timeouts and
    outages, and return whatever decision the model produced otherwise.
    """

    def classify(self, request: ClassificationRequest, timeout: float) -> RawClassification: ...


def build_request(
    claim: Claim,
    policy: Policy,
    product: Product,
    evidence_summary: Iterable[DocumentType],
) -> ClassificationRequest:
    """Assemble the sanitized classifier request for a claim."""
    present = {DocumentType(t) for t in evidence_summary}
    data = sanitize_classification_request({
        "claim_number": claim.claim_number,
        "claim_type": claim.claim_type.value,
        "product_name": product.name,
        "coverage": list(product.coverage),
        "description": claim.description,
    })
    return ClassificationRequest(
        **data,
        evidence_flags=EvidenceFlags(
            has_photo=DocumentType.PHOTO in present,
            has_receipt=DocumentType.RECEIPT in present,
        ),
    )


def coerce_verdict(raw_decision: object) -> Verdict:
    """Map a raw decision to a Verdict or raise ClassifierContractViolationError."""
    if isinstance(raw_decision, str):
        normalized = raw_decision.strip().lower()
        for verdict in Verdict:
            if normalized == verdict.value:
                return verdict
    raise ClassifierContractViolationError(raw_decision)


class ClassifierAdapter:
    """Calls a DecisionClassifier with a bounded timeout and applies the never-reject policy."""

    def __init__(self, classifier: DecisionClassifier, timeout: float | None = None):
        self._classifier = classifier
        self._timeout = timeout if timeout is not None else get_classifier_config()["timeout_seconds"]

    def classify(
        self,
        claim: Claim,
        policy: Policy,
        product: Product,
        evidence_summary: Iterable[DocumentType],
    ) -> ClassificationResult:
        """Return an accepted/referred verdict with a reason of at most 200 characters.

        Raises:
            ClassifierUnavailableError: the classifier could not answer; nothing may be
                applied to the claim.
        """
        request = build_request(claim, policy, product, evidence_summary)
        metrics = get_metrics()
        start = time.time()
        try:
            raw = self._classifier.classify(request, self._timeout)
        except ClassifierUnavailableError as e:
            metrics.record_classifier_call(
                claim.id,
                model=getattr(self._classifier, "model", "unknown"),
                latency_ms=(time.time() - start) * 1000,
                status="error",
                error=str(e),
            )
            logger.log_event(
                "classifier_unavailable",
                level=logging.WARNING,
                claim_id=claim.id,
                error=str(e),
            )
            raise
        latency_ms = (time.time() - start) * 1000
        metrics.record_classifier_call(
            claim.id,
            model=raw.model or getattr(self._classifier, "model", "unknown"),
            latency_ms=latency_ms,
            input_tokens=raw.input_tokens,
            output_tokens=raw.output_tokens,
        )

        coerced = False
        reason = truncate_reason(raw.reason, CLASSIFIER_REASON_MAX_LENGTH)
        try:
            verdict = coerce_verdict(raw.decision)
        except ClassifierContractViolationError as e:
            coerced = True
            verdict = Verdict.REFERRED
            reason = reason or COERCED_REASON
            metrics.increment("verdict_coerced")
            logger.warning(
                "Unexpected decision received, converting to referred: %r",
                e.raw_decision,
                extra={"claim_id": claim.id},
            )

        metrics.record_verdict(verdict.value)
        logger.log_event(
            "classifier_completed",
            claim_id=claim.id,
            verdict=verdict.value,
            coerced=coerced,
            latency_ms=round(latency_ms),
        )
        return ClassificationResult(verdict=verdict, reason=reason, coerced=coerced)
