"""Evidence gate: decides, atomically, when a claim's required evidence set is complete."""

from dataclasses import dataclass, field
from typing import Callable

from claims_engine.config.settings import get_processing_lock_ttl_seconds, get_required_evidence
from claims_engine.db.constants import INITIAL_STATUS
from claims_engine.db.repository import ClaimRepository
from claims_engine.exceptions import EvidenceRaceError
from claims_engine.models.claim import DocumentType, EvidenceComplete
from claims_engine.observability import get_logger, get_metrics

logger = get_logger(__name__)

EvidenceCompleteListener = Callable[[EvidenceComplete], None]


@dataclass
class GateResult:
    """Outcome of one on_evidence_uploaded call."""

    claim_id: str
    triggered: bool
    present: set[DocumentType] = field(default_factory=set)
    missing: set[DocumentType] = field(default_factory=set)
    event: EvidenceComplete | None = None


class EvidenceGate:
    """Watches evidence types per claim and emits EvidenceComplete exactly once.

    The read of present types is advisory; the decision to fire is the compare-and-set
    in ClaimRepository.try_start_processing, so two uploads racing to complete the set
    cannot both trigger decisioning.
    """

    def __init__(
        self,
        repo: ClaimRepository | None = None,
        listener: EvidenceCompleteListener | None = None,
    ):
        self._repo = repo or ClaimRepository()
        self._listener = listener

    def set_listener(self, listener: EvidenceCompleteListener | None) -> None:
        self._listener = listener

    def required_for(self, claim) -> set[DocumentType]:
        """Required evidence recorded on the claim, else the configured default for its type."""
        if claim.required_evidence:
            return set(claim.required_evidence)
        return set(get_required_evidence(claim.claim_type))

    def on_evidence_uploaded(self, claim_id: str, document_type: DocumentType | str) -> GateResult:
        """Re-check the claim's evidence set after an upload of document_type.

        Returns triggered=True only for the single call that wins the atomic
        notified-and-not-processing check once the required set is present.
        """
        document_type = DocumentType(document_type)
        claim = self._repo.require_claim(claim_id)
        present = self._repo.get_evidence_types(claim_id)
        required = self.required_for(claim)
        missing = required - present

        if missing or claim.status is not INITIAL_STATUS:
            logger.debug(
                "Evidence gate not triggered: uploaded=%s status=%s missing=%s",
                document_type.value,
                claim.status.value,
                sorted(m.value for m in missing),
                extra={"claim_id": claim_id},
            )
            return GateResult(claim_id=claim_id, triggered=False, present=present, missing=missing)

        try:
            stamp = self._repo.try_start_processing(claim_id, get_processing_lock_ttl_seconds())
        except EvidenceRaceError:
            get_metrics().increment("evidence_race_lost")
            logger.log_event("evidence_race_lost", claim_id=claim_id, uploaded=document_type.value)
            return GateResult(claim_id=claim_id, triggered=False, present=present)

        event = EvidenceComplete(
            claim_id=claim_id,
            present_types=sorted(present, key=lambda t: t.value),
            emitted_at=stamp,
        )
        get_metrics().increment("evidence_complete")
        logger.log_event(
            "evidence_complete",
            claim_id=claim_id,
            present=[t.value for t in event.present_types],
        )
        if self._listener is not None:
            self._listener(event)
        return GateResult(claim_id=claim_id, triggered=True, present=present, event=event)
