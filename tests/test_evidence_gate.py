"""Tests for the evidence gate and the processing compare-and-set."""

import threading
from datetime import timedelta

import pytest

from claims_engine.db.database import format_ts, get_connection, utcnow
from claims_engine.evidence.gate import EvidenceGate
from claims_engine.exceptions import EvidenceRaceError
from claims_engine.lifecycle import transition
from claims_engine.models.claim import ClaimInput, ClaimStatus, ClaimType, DocumentType
from claims_engine.observability import get_metrics


def _add(repo, claim_id, document_type):
    repo.add_evidence(
        claim_id,
        document_type,
        file_name=f"{document_type.value}.jpg",
        file_path=f"claim-documents/{claim_id}/{document_type.value}.jpg",
        file_size=10,
        content_type="image/jpeg",
    )


class TestEvidenceGate:

    def test_photo_only_does_not_trigger(self, claim, repo):
        """Only a photo uploaded: no trigger and no state change."""
        _add(repo, claim.id, DocumentType.PHOTO)
        result = EvidenceGate(repo).on_evidence_uploaded(claim.id, DocumentType.PHOTO)
        assert result.triggered is False
        assert result.missing == {DocumentType.RECEIPT}
        current = repo.get_claim(claim.id)
        assert current.status is ClaimStatus.NOTIFIED
        assert current.processing_started_at is None

    def test_complete_set_triggers_once(self, claim, repo):
        events = []
        gate = EvidenceGate(repo, listener=events.append)
        _add(repo, claim.id, DocumentType.PHOTO)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.PHOTO).triggered is False
        _add(repo, claim.id, DocumentType.RECEIPT)
        result = gate.on_evidence_uploaded(claim.id, DocumentType.RECEIPT)
        assert result.triggered is True
        assert result.event.claim_id == claim.id
        assert set(result.event.present_types) == {DocumentType.PHOTO, DocumentType.RECEIPT}
        assert len(events) == 1
        assert repo.get_claim(claim.id).processing_started_at is not None
        assert get_metrics().get_counter("evidence_complete") == 1

    def test_extra_document_while_processing_does_not_retrigger(self, claim, repo):
        gate = EvidenceGate(repo)
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.RECEIPT).triggered is True
        _add(repo, claim.id, DocumentType.OTHER)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.OTHER).triggered is False
        assert get_metrics().get_counter("evidence_race_lost") == 1

    def test_after_decision_does_not_retrigger(self, claim, repo):
        """Calling the gate after the claim was already decided returns triggered=False."""
        gate = EvidenceGate(repo)
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.RECEIPT).triggered is True
        transition(claim, ClaimStatus.REFERRED, note="Automatic decision: unclear", repo=repo)
        _add(repo, claim.id, DocumentType.PHOTO)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.PHOTO).triggered is False

    def test_released_claim_can_trigger_again(self, claim, repo):
        gate = EvidenceGate(repo)
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.RECEIPT).triggered is True
        repo.release_processing(claim.id)
        assert gate.on_evidence_uploaded(claim.id, DocumentType.RECEIPT).triggered is True

    def test_stale_processing_flag_is_retaken(self, claim, repo, temp_db):
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        old = format_ts(utcnow() - timedelta(hours=2))
        with get_connection(temp_db) as conn:
            conn.execute(
                "UPDATE claims SET processing_started_at = ? WHERE id = ?", (old, claim.id)
            )
        result = EvidenceGate(repo).on_evidence_uploaded(claim.id, DocumentType.RECEIPT)
        assert result.triggered is True

    def test_per_type_required_evidence(self, repo, policy, monkeypatch):
        monkeypatch.setenv("CLAIMS_REQUIRED_EVIDENCE_THEFT", "receipt")
        theft = repo.create_claim(
            ClaimInput(policy_id=policy.id, claim_type=ClaimType.THEFT, description="Stolen on train")
        )
        assert theft.required_evidence == [DocumentType.RECEIPT]
        _add(repo, theft.id, DocumentType.RECEIPT)
        assert EvidenceGate(repo).on_evidence_uploaded(theft.id, DocumentType.RECEIPT).triggered is True

    def test_explicit_required_evidence_on_claim(self, repo, policy):
        claim = repo.create_claim(
            ClaimInput(
                policy_id=policy.id,
                claim_type=ClaimType.BREAKDOWN,
                description="Will not power on",
                required_evidence=[DocumentType.PHOTO, DocumentType.RECEIPT, DocumentType.OTHER],
            )
        )
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        result = EvidenceGate(repo).on_evidence_uploaded(claim.id, DocumentType.RECEIPT)
        assert result.triggered is False
        assert result.missing == {DocumentType.OTHER}


class TestProcessingCompareAndSet:

    def test_second_start_loses(self, claim, repo):
        repo.try_start_processing(claim.id, stale_after_seconds=900)
        with pytest.raises(EvidenceRaceError):
            repo.try_start_processing(claim.id, stale_after_seconds=900)

    def test_cannot_start_once_out_of_notified(self, claim, repo):
        transition(claim, ClaimStatus.REFERRED, repo=repo)
        with pytest.raises(EvidenceRaceError):
            repo.try_start_processing(claim.id, stale_after_seconds=900)

    def test_concurrent_completion_emits_exactly_one_event(self, claim, repo):
        """Two uploads racing to complete the set: exactly one EvidenceComplete."""
        _add(repo, claim.id, DocumentType.PHOTO)
        _add(repo, claim.id, DocumentType.RECEIPT)
        events = []
        events_lock = threading.Lock()

        def listener(event):
            with events_lock:
                events.append(event)

        gate = EvidenceGate(repo, listener=listener)
        workers = 8
        barrier = threading.Barrier(workers)
        results = []
        errors = []

        def upload(document_type):
            try:
                barrier.wait(timeout=5)
                results.append(gate.on_evidence_uploaded(claim.id, document_type))
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(
                target=upload,
                args=(DocumentType.PHOTO if i % 2 else DocumentType.RECEIPT,),
            )
            for i in range(workers)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert len(results) == workers
        assert sum(1 for r in results if r.triggered) == 1
        assert len(events) == 1
        assert get_metrics().get_counter("evidence_complete") == 1
        assert get_metrics().get_counter("evidence_race_lost") == workers - 1
