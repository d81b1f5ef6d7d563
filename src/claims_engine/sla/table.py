"""SLA table: allowed hours per claim status, optionally per program.

Pure lookups over an in-memory snapshot of SLA rows. A status without an active
entry has no SLA and is never overdue.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from claims_engine.config.settings import SLA_APPROACHING_RATIO
from claims_engine.db.constants import TERMINAL_STATUSES
from claims_engine.models.claim import ClaimStatus
from claims_engine.models.fulfillment import SLAEntry


class SLAState(str, Enum):
    NO_SLA = "no_sla"
    WITHIN = "within"
    APPROACHING = "approaching"
    BREACHED = "breached"


@dataclass(frozen=True)
class SLAEvaluation:
    status: ClaimStatus
    state: SLAState
    hours_in_status: float
    sla_hours: Optional[int] = None
    deadline: Optional[datetime] = None

    @property
    def overdue(self) -> bool:
        return self.state is SLAState.BREACHED


class SLATable:
    """Snapshot of active SLA entries keyed by (program_id or None, status)."""

    def __init__(self, entries: Iterable[SLAEntry], approaching_ratio: float = SLA_APPROACHING_RATIO):
        self._hours: dict[tuple[Optional[str], ClaimStatus], int] = {}
        for entry in entries:
            if entry.is_active:
                self._hours[(entry.program_id, entry.claim_status)] = entry.sla_hours
        self._approaching_ratio = approaching_ratio

    def sla_hours(self, status: ClaimStatus, program_id: Optional[str] = None) -> Optional[int]:
        """Program-specific hours, falling back to the global default, else None."""
        status = ClaimStatus(status)
        if program_id is not None and (program_id, status) in self._hours:
            return self._hours[(program_id, status)]
        return self._hours.get((None, status))

    def deadline(
        self,
        program_id: Optional[str],
        status: ClaimStatus,
        entered_at: datetime,
    ) -> Optional[datetime]:
        hours = self.sla_hours(status, program_id)
        if hours is None:
            return None
        return entered_at + timedelta(hours=hours)

    def is_overdue(
        self,
        program_id: Optional[str],
        status: ClaimStatus,
        entered_at: datetime,
        now: datetime,
    ) -> bool:
        status = ClaimStatus(status)
        if status in TERMINAL_STATUSES:
            return False
        deadline = self.deadline(program_id, status, entered_at)
        return deadline is not None and now > deadline

    def evaluate(
        self,
        program_id: Optional[str],
        status: ClaimStatus,
        entered_at: datetime,
        now: datetime,
    ) -> SLAEvaluation:
        """Classify time in status as within, approaching (past the ratio) or breached."""
        status = ClaimStatus(status)
        hours_in_status = max((now - entered_at).total_seconds() / 3600, 0.0)
        hours = None if status in TERMINAL_STATUSES else self.sla_hours(status, program_id)
        if hours is None:
            return SLAEvaluation(status=status, state=SLAState.NO_SLA, hours_in_status=hours_in_status)
        deadline = entered_at + timedelta(hours=hours)
        if now > deadline:
            state = SLAState.BREACHED
        elif hours_in_status > hours * self._approaching_ratio:
            state = SLAState.APPROACHING
        else:
            state = SLAState.WITHIN
        return SLAEvaluation(
            status=status,
            state=state,
            hours_in_status=hours_in_status,
            sla_hours=hours,
            deadline=deadline,
        )
