"""SLA monitoring of stored claims."""

from datetime import datetime

from claims_engine.db.constants import TERMINAL_STATUSES
from claims_engine.db.database import utcnow
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.db.sla_repository import SLARepository
from claims_engine.models.claim import Claim, ClaimStatus
from claims_engine.sla.table import SLAEvaluation, SLATable


class SLAMonitor:
    """Evaluates claims against the SLA table.

    Time entered the current status is the latest history row for that status,
    falling back to the claim's submitted_at. The SLA table is loaded once per
    monitor; build a new monitor to pick up configuration changes.
    """

    def __init__(
        self,
        repo: ClaimRepository | None = None,
        sla_repo: SLARepository | None = None,
        policy_repo: PolicyRepository | None = None,
        table: SLATable | None = None,
    ):
        self._repo = repo or ClaimRepository()
        self._policies = policy_repo or PolicyRepository(self._repo.db_path)
        if table is None:
            sla_repo = sla_repo or SLARepository(self._repo.db_path)
            table = SLATable(sla_repo.list_entries(active_only=True))
        self._table = table
        self._program_cache: dict[str, str | None] = {}

    @property
    def table(self) -> SLATable:
        return self._table

    def _program_id(self, claim: Claim) -> str | None:
        if claim.policy_id not in self._program_cache:
            policy = self._policies.get_policy(claim.policy_id)
            self._program_cache[claim.policy_id] = policy.program_id if policy else None
        return self._program_cache[claim.policy_id]

    def entered_current_status_at(self, claim: Claim) -> datetime:
        entered = self._repo.get_status_entered_at(claim.id, claim.status)
        return entered or claim.submitted_at

    def evaluate(self, claim_id: str, now: datetime | None = None) -> SLAEvaluation:
        claim = self._repo.require_claim(claim_id)
        return self._evaluate(claim, now or utcnow())

    def _evaluate(self, claim: Claim, now: datetime) -> SLAEvaluation:
        return self._table.evaluate(
            self._program_id(claim),
            claim.status,
            self.entered_current_status_at(claim),
            now,
        )

    def is_overdue(self, claim_id: str, now: datetime | None = None) -> bool:
        return self.evaluate(claim_id, now).overdue

    def overdue_claims(self, now: datetime | None = None) -> list[tuple[Claim, SLAEvaluation]]:
        """Open claims past their SLA deadline, most overdue first."""
        now = now or utcnow()
        open_statuses = [s for s in ClaimStatus if s not in TERMINAL_STATUSES]
        overdue = []
        for claim in self._repo.list_claims(open_statuses):
            evaluation = self._evaluate(claim, now)
            if evaluation.overdue:
                overdue.append((claim, evaluation))
        overdue.sort(key=lambda pair: pair[1].deadline)
        return overdue
