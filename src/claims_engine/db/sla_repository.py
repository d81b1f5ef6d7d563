"""SLA configuration persistence (claims_sla)."""

from claims_engine.db.database import format_ts, get_connection, utcnow
from claims_engine.models.fulfillment import SLAEntry


class SLARepository:
    """Read access for the engine, upsert for the admin tool and seeding."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def upsert_sla(self, entry: SLAEntry) -> SLAEntry:
        """Insert or replace the SLA row for (program_id, claim_status)."""
        with get_connection(self._db_path) as conn:
            if entry.program_id is None:
                existing = conn.execute(
                    "SELECT id FROM claims_sla WHERE program_id IS NULL AND claim_status = ?",
                    (entry.claim_status.value,),
                ).fetchone()
            else:
                existing = conn.execute(
                    "SELECT id FROM claims_sla WHERE program_id = ? AND claim_status = ?",
                    (entry.program_id, entry.claim_status.value),
                ).fetchone()
            now = format_ts(utcnow())
            if existing:
                conn.execute(
                    """
                    UPDATE claims_sla SET sla_hours = ?, description = ?, is_active = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (entry.sla_hours, entry.description, int(entry.is_active), now, existing["id"]),
                )
                sla_id = existing["id"]
            else:
                cur = conn.execute(
                    """
                    INSERT INTO claims_sla (program_id, claim_status, sla_hours, description, is_active, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.program_id,
                        entry.claim_status.value,
                        entry.sla_hours,
                        entry.description,
                        int(entry.is_active),
                        now,
                    ),
                )
                sla_id = cur.lastrowid
        return entry.model_copy(update={"id": sla_id})

    def list_entries(self, active_only: bool = True) -> list[SLAEntry]:
        """All SLA rows, by default only active ones."""
        query = "SELECT id, program_id, claim_status, sla_hours, description, is_active FROM claims_sla"
        if active_only:
            query += " WHERE is_active = 1"
        with get_connection(self._db_path) as conn:
            rows = conn.execute(query + " ORDER BY id").fetchall()
        return [
            SLAEntry.model_validate({**dict(r), "is_active": bool(r["is_active"])}) for r in rows
        ]
