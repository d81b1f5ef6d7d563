"""Tests for database and ClaimRepository / PolicyRepository."""

from datetime import datetime, timedelta, timezone

import pytest

from claims_engine.db.constants import SUBMITTED_NOTE
from claims_engine.db.database import format_ts, get_connection, get_db_path, parse_ts
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.exceptions import ClaimNotFoundError, EvidenceRaceError
from claims_engine.models.claim import Actor, ClaimInput, ClaimStatus, ClaimType, DocumentType


def test_get_db_path_default(monkeypatch):
    """Default path is data/claims.db when env unset."""
    monkeypatch.delenv("CLAIMS_DB_PATH", raising=False)
    assert get_db_path() == "data/claims.db"


def test_get_db_path_env(monkeypatch):
    """CLAIMS_DB_PATH env overrides default."""
    monkeypatch.setenv("CLAIMS_DB_PATH", "/tmp/custom.db")
    assert get_db_path() == "/tmp/custom.db"


def test_init_db_creates_tables(temp_db):
    with get_connection(temp_db) as conn:
        cur = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = [row[0] for row in cur.fetchall()]
    for name in (
        "claims",
        "claim_status_history",
        "evidence_documents",
        "claim_fulfillment",
        "repair_costs",
        "claims_sla",
        "policies",
        "products",
    ):
        assert name in tables


def test_connection_rolls_back_on_error(temp_db, policy):
    with pytest.raises(RuntimeError):
        with get_connection(temp_db) as conn:
            conn.execute("UPDATE policies SET customer_name = 'changed' WHERE id = ?", (policy.id,))
            raise RuntimeError("boom")
    assert PolicyRepository(temp_db).get_policy(policy.id).customer_name == "Alex Doe"


def test_timestamps_sort_as_text():
    early = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
    late = early + timedelta(microseconds=1)
    assert format_ts(early) < format_ts(late)
    assert parse_ts(format_ts(early)) == early
    assert parse_ts(None) is None


def test_create_claim(repo, policy):
    """create_claim returns a notified claim with a CLM- number and one history row."""
    claim = repo.create_claim(ClaimInput(policy_id=policy.id, claim_type=ClaimType.THEFT))
    assert claim.claim_number.startswith("CLM-")
    assert len(claim.claim_number) == len("CLM-") + 8
    assert claim.status is ClaimStatus.NOTIFIED
    assert claim.decision is None
    assert set(claim.required_evidence) == {DocumentType.PHOTO, DocumentType.RECEIPT}
    history = repo.get_claim_history(claim.id)
    assert len(history) == 1
    assert history[0].status is ClaimStatus.NOTIFIED
    assert history[0].note == SUBMITTED_NOTE
    assert history[0].actor is Actor.HUMAN


def test_create_claim_with_explicit_evidence(repo, policy):
    claim = repo.create_claim(
        ClaimInput(
            policy_id=policy.id,
            claim_type=ClaimType.BREAKDOWN,
            required_evidence=[DocumentType.RECEIPT],
        )
    )
    assert claim.required_evidence == [DocumentType.RECEIPT]


def test_required_evidence_per_claim_type(repo, policy, monkeypatch):
    monkeypatch.setenv("CLAIMS_REQUIRED_EVIDENCE_THEFT", "receipt")
    theft = repo.create_claim(ClaimInput(policy_id=policy.id, claim_type=ClaimType.THEFT))
    damage = repo.create_claim(ClaimInput(policy_id=policy.id, claim_type=ClaimType.DAMAGE))
    assert theft.required_evidence == [DocumentType.RECEIPT]
    assert set(damage.required_evidence) == {DocumentType.PHOTO, DocumentType.RECEIPT}


def test_get_claim_missing(repo):
    assert repo.get_claim("nope") is None
    with pytest.raises(ClaimNotFoundError):
        repo.require_claim("nope")


def test_list_claims_by_status(repo, claim, policy):
    other = repo.create_claim(ClaimInput(policy_id=policy.id, claim_type=ClaimType.DAMAGE))
    assert {c.id for c in repo.list_claims()} == {claim.id, other.id}
    assert repo.list_claims([ClaimStatus.REFERRED]) == []
    assert len(repo.list_claims([ClaimStatus.NOTIFIED])) == 2


def test_evidence_add_list_delete(repo, claim):
    doc = repo.add_evidence(
        claim.id,
        DocumentType.PHOTO,
        file_name="front.jpg",
        file_path=f"claim-documents/{claim.id}/front.jpg",
        file_size=1024,
        content_type="image/jpeg",
        metadata={"source": "app"},
    )
    assert doc.metadata == {"source": "app"}
    assert repo.get_evidence_types(claim.id) == {DocumentType.PHOTO}
    assert [d.id for d in repo.list_evidence(claim.id)] == [doc.id]

    deleted = repo.delete_evidence(doc.id)
    assert deleted.file_name == "front.jpg"
    assert repo.list_evidence(claim.id) == []
    assert repo.delete_evidence(doc.id) is None


class TestProcessingFlag:

    def test_second_start_loses(self, repo, claim):
        repo.try_start_processing(claim.id, stale_after_seconds=900)
        with pytest.raises(EvidenceRaceError):
            repo.try_start_processing(claim.id, stale_after_seconds=900)

    def test_release_allows_restart(self, repo, claim):
        repo.try_start_processing(claim.id, stale_after_seconds=900)
        repo.release_processing(claim.id)
        assert repo.get_claim(claim.id).processing_started_at is None
        repo.try_start_processing(claim.id, stale_after_seconds=900)

    def test_stale_flag_is_reclaimed(self, repo, claim, temp_db):
        stale = datetime.now(timezone.utc) - timedelta(hours=1)
        with get_connection(temp_db) as conn:
            conn.execute(
                "UPDATE claims SET processing_started_at = ? WHERE id = ?",
                (format_ts(stale), claim.id),
            )
        started = repo.try_start_processing(claim.id, stale_after_seconds=60)
        assert started > stale


class TestPolicyRepository:

    def test_product_round_trip(self, policy_repo):
        product = policy_repo.create_product("Tablet Cover", excess_1=25.0, coverage=["breakdown"])
        loaded = policy_repo.get_product(product.id)
        assert loaded == product
        assert policy_repo.get_product("missing") is None

    def test_policy_round_trip(self, policy_repo, product):
        policy = policy_repo.create_policy("POL-9", product.id, customer_email="a@b.c")
        loaded = policy_repo.get_policy(policy.id)
        assert loaded.policy_number == "POL-9"
        assert loaded.program_id is None
        assert policy_repo.get_policy("missing") is None


def test_repository_defaults_to_env_path(policy):
    """Repositories with no path use CLAIMS_DB_PATH."""
    claim = ClaimRepository().create_claim(ClaimInput(policy_id=policy.id, claim_type=ClaimType.DAMAGE))
    assert ClaimRepository().get_claim(claim.id) is not None
