"""Tests for the SLA table and SLA monitor."""

from datetime import datetime, timedelta, timezone

import pytest

from claims_engine.db.database import format_ts, get_connection
from claims_engine.db.sla_repository import SLARepository
from claims_engine.lifecycle import transition
from claims_engine.models.claim import Actor, ClaimStatus
from claims_engine.models.fulfillment import SLAEntry
from claims_engine.sla import SLAMonitor, SLAState, SLATable

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


def _entry(status, hours, program_id=None, active=True):
    return SLAEntry(program_id=program_id, claim_status=status, sla_hours=hours, is_active=active)


class TestSLATable:

    def test_overdue_after_deadline(self):
        """SLA for notified is 24h; entered 30h ago: overdue."""
        table = SLATable([_entry(ClaimStatus.NOTIFIED, 24)])
        entered = NOW - timedelta(hours=30)
        assert table.deadline(None, ClaimStatus.NOTIFIED, entered) == entered + timedelta(hours=24)
        assert table.is_overdue(None, ClaimStatus.NOTIFIED, entered, NOW) is True

    def test_not_overdue_within_window(self):
        table = SLATable([_entry(ClaimStatus.NOTIFIED, 24)])
        assert table.is_overdue(None, ClaimStatus.NOTIFIED, NOW - timedelta(hours=10), NOW) is False

    def test_program_entry_overrides_default(self):
        table = SLATable([
            _entry(ClaimStatus.REFERRED, 48),
            _entry(ClaimStatus.REFERRED, 8, program_id="PRG-RETAIL"),
        ])
        assert table.sla_hours(ClaimStatus.REFERRED, "PRG-RETAIL") == 8
        assert table.sla_hours(ClaimStatus.REFERRED, "PRG-OTHER") == 48
        assert table.sla_hours(ClaimStatus.REFERRED) == 48

    def test_missing_or_inactive_entry_means_no_sla(self):
        table = SLATable([_entry(ClaimStatus.REPAIR, 72, active=False)])
        entered = NOW - timedelta(days=30)
        assert table.sla_hours(ClaimStatus.REPAIR) is None
        assert table.deadline(None, ClaimStatus.REPAIR, entered) is None
        assert table.is_overdue(None, ClaimStatus.REPAIR, entered, NOW) is False
        assert table.is_overdue(None, ClaimStatus.ACCEPTED, entered, NOW) is False

    @pytest.mark.parametrize("status", [ClaimStatus.CLOSED, ClaimStatus.REJECTED])
    def test_terminal_statuses_never_overdue(self, status):
        table = SLATable([_entry(status, 1)])
        entered = NOW - timedelta(days=10)
        assert table.is_overdue(None, status, entered, NOW) is False
        assert table.evaluate(None, status, entered, NOW).state is SLAState.NO_SLA

    @pytest.mark.parametrize("hours_ago,state", [
        (10, SLAState.WITHIN),
        (19, SLAState.WITHIN),
        (20, SLAState.APPROACHING),
        (24, SLAState.APPROACHING),
        (24.5, SLAState.BREACHED),
    ])
    def test_evaluate_states(self, hours_ago, state):
        table = SLATable([_entry(ClaimStatus.NOTIFIED, 24)])
        evaluation = table.evaluate(None, ClaimStatus.NOTIFIED, NOW - timedelta(hours=hours_ago), NOW)
        assert evaluation.state is state
        assert evaluation.hours_in_status == pytest.approx(hours_ago)
        assert evaluation.overdue is (state is SLAState.BREACHED)


def _backdate(temp_db, claim_id, status, when):
    with get_connection(temp_db) as conn:
        conn.execute(
            "UPDATE claim_status_history SET created_at = ? WHERE claim_id = ? AND status = ?",
            (format_ts(when), claim_id, status.value),
        )
        conn.execute(
            "UPDATE claims SET submitted_at = ? WHERE id = ?", (format_ts(when), claim_id)
        )


class TestSLAMonitor:

    def test_claim_notified_30h_ago_is_overdue(self, claim, repo, temp_db):
        SLARepository(temp_db).upsert_sla(_entry(ClaimStatus.NOTIFIED, 24))
        _backdate(temp_db, claim.id, ClaimStatus.NOTIFIED, NOW - timedelta(hours=30))
        monitor = SLAMonitor(repo)
        assert monitor.is_overdue(claim.id, now=NOW) is True
        evaluation = monitor.evaluate(claim.id, now=NOW)
        assert evaluation.hours_in_status == pytest.approx(30)
        overdue = monitor.overdue_claims(now=NOW)
        assert [c.id for c, _ in overdue] == [claim.id]

    def test_entered_at_from_latest_history_row(self, claim, repo, temp_db):
        SLARepository(temp_db).upsert_sla(_entry(ClaimStatus.REFERRED, 24))
        _backdate(temp_db, claim.id, ClaimStatus.NOTIFIED, NOW - timedelta(days=5))
        transition(claim, ClaimStatus.REFERRED, repo=repo)
        monitor = SLAMonitor(repo)
        entered = monitor.entered_current_status_at(repo.get_claim(claim.id))
        assert entered > NOW - timedelta(days=5)
        assert monitor.is_overdue(claim.id, now=entered + timedelta(hours=1)) is False
        assert monitor.is_overdue(claim.id, now=entered + timedelta(hours=25)) is True

    def test_program_sla_resolved_through_policy(self, claim, repo, temp_db):
        sla_repo = SLARepository(temp_db)
        sla_repo.upsert_sla(_entry(ClaimStatus.NOTIFIED, 48))
        sla_repo.upsert_sla(_entry(ClaimStatus.NOTIFIED, 12, program_id="PRG-RETAIL"))
        _backdate(temp_db, claim.id, ClaimStatus.NOTIFIED, NOW - timedelta(hours=20))
        assert SLAMonitor(repo).is_overdue(claim.id, now=NOW) is True

    def test_closed_claims_are_not_listed(self, claim, repo, temp_db):
        SLARepository(temp_db).upsert_sla(_entry(ClaimStatus.REJECTED, 1))
        transition(claim, ClaimStatus.REJECTED, note="Not covered", actor=Actor.HUMAN, repo=repo)
        assert SLAMonitor(repo).overdue_claims(now=NOW + timedelta(days=365)) == []


class TestSLARepository:

    def test_upsert_replaces_existing_scope(self, temp_db):
        sla_repo = SLARepository(temp_db)
        first = sla_repo.upsert_sla(_entry(ClaimStatus.NOTIFIED, 24))
        second = sla_repo.upsert_sla(_entry(ClaimStatus.NOTIFIED, 36))
        assert first.id == second.id
        entries = sla_repo.list_entries()
        assert [(e.claim_status, e.sla_hours) for e in entries] == [(ClaimStatus.NOTIFIED, 36)]

    def test_inactive_entries_filtered(self, temp_db):
        sla_repo = SLARepository(temp_db)
        sla_repo.upsert_sla(_entry(ClaimStatus.REPAIR, 72, active=False))
        assert sla_repo.list_entries() == []
        assert len(sla_repo.list_entries(active_only=False)) == 1
