"""Claim repository: claims, append-only status history, evidence, policies and products."""

import json
import sqlite3
import uuid
from datetime import datetime, timedelta
from typing import Any

from claims_engine.config.settings import get_required_evidence
from claims_engine.db.constants import (
    CLAIM_NUMBER_PREFIX,
    INITIAL_STATUS,
    SUBMITTED_NOTE,
)
from claims_engine.db.database import format_ts, get_connection, parse_ts, utcnow
from claims_engine.exceptions import (
    ClaimNotFoundError,
    EvidenceRaceError,
    InvalidTransitionError,
)
from claims_engine.models.claim import (
    Actor,
    Claim,
    ClaimInput,
    ClaimStatus,
    Decision,
    DocumentType,
    EvidenceDocument,
    Policy,
    Product,
    StatusHistoryEntry,
)


def _generate_claim_number(prefix: str = CLAIM_NUMBER_PREFIX) -> str:
    """Generate a human-readable claim number."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def _row_to_claim(row: sqlite3.Row) -> Claim:
    data = dict(row)
    data["required_evidence"] = json.loads(data.get("required_evidence") or "[]")
    return Claim.model_validate(data)


def _row_to_evidence(row: sqlite3.Row) -> EvidenceDocument:
    data = dict(row)
    data["metadata"] = json.loads(data["metadata"]) if data.get("metadata") else None
    return EvidenceDocument.model_validate(data)


class ClaimRepository:
    """Repository for claim persistence and the status history audit trail."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    @property
    def db_path(self) -> str | None:
        return self._db_path

    def create_claim(self, claim_input: ClaimInput) -> Claim:
        """Insert a new claim in notified and write its first history row."""
        claim_id = str(uuid.uuid4())
        claim_number = _generate_claim_number()
        required = claim_input.required_evidence or list(get_required_evidence(claim_input.claim_type))
        now = format_ts(utcnow())
        with get_connection(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO claims (
                    id, claim_number, policy_id, claim_type, status, description,
                    required_evidence, submitted_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    claim_number,
                    claim_input.policy_id,
                    claim_input.claim_type.value,
                    INITIAL_STATUS.value,
                    claim_input.description,
                    json.dumps(sorted({t.value for t in required})),
                    now,
                    now,
                ),
            )
            conn.execute(
                """
                INSERT INTO claim_status_history (claim_id, status, note, actor, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (claim_id, INITIAL_STATUS.value, SUBMITTED_NOTE, Actor.HUMAN.value, now),
            )
        return self.get_claim(claim_id)

    def get_claim(self, claim_id: str) -> Claim | None:
        """Fetch claim by ID."""
        with get_connection(self._db_path) as conn:
            row = conn.execute("SELECT * FROM claims WHERE id = ?", (claim_id,)).fetchone()
        if row is None:
            return None
        return _row_to_claim(row)

    def require_claim(self, claim_id: str) -> Claim:
        """Fetch claim by ID or raise ClaimNotFoundError."""
        claim = self.get_claim(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        return claim

    def list_claims(self, statuses: list[ClaimStatus] | None = None) -> list[Claim]:
        """List claims, optionally restricted to the given statuses."""
        with get_connection(self._db_path) as conn:
            if statuses:
                placeholders = ", ".join("?" for _ in statuses)
                rows = conn.execute(
                    f"SELECT * FROM claims WHERE status IN ({placeholders}) ORDER BY submitted_at",
                    [s.value for s in statuses],
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM claims ORDER BY submitted_at").fetchall()
        return [_row_to_claim(r) for r in rows]

    def apply_transition(
        self,
        claim_id: str,
        from_status: ClaimStatus,
        to_status: ClaimStatus,
        note: str,
        actor: Actor,
        decision: Decision | None = None,
        decision_reason: str | None = None,
        fulfillment_excess: float | None = None,
        fulfillment_notes: str | None = None,
    ) -> Claim:
        """Change status, append history and optionally create the fulfillment, atomically.

        The UPDATE is conditional on the status the caller validated against; if another
        worker moved the claim first nothing is written and InvalidTransitionError is raised.
        When fulfillment_excess is not None a claim_fulfillment row is inserted in the
        same transaction.
        """
        now = utcnow()
        with get_connection(self._db_path, immediate=True) as conn:
            last = conn.execute(
                "SELECT MAX(created_at) AS last_at FROM claim_status_history WHERE claim_id = ?",
                (claim_id,),
            ).fetchone()
            last_at = parse_ts(last["last_at"]) if last else None
            if last_at is not None and last_at > now:
                now = last_at
            stamp = format_ts(now)

            updates = ["status = ?", "updated_at = ?", "processing_started_at = NULL"]
            params: list[Any] = [to_status.value, stamp]
            if decision is not None:
                updates.append("decision = ?")
                params.append(decision.value)
                updates.append("decision_reason = ?")
                params.append(decision_reason)
            params.extend([claim_id, from_status.value])
            cur = conn.execute(
                f"UPDATE claims SET {', '.join(updates)} WHERE id = ? AND status = ?",
                params,
            )
            if cur.rowcount != 1:
                raise InvalidTransitionError(
                    claim_id,
                    from_status.value,
                    to_status.value,
                    f"Claim {claim_id} is no longer in {from_status.value}; transition to "
                    f"{to_status.value} not applied",
                )
            conn.execute(
                """
                INSERT INTO claim_status_history (claim_id, status, note, actor, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (claim_id, to_status.value, note or "", actor.value, stamp),
            )
            if fulfillment_excess is not None:
                conn.execute(
                    """
                    INSERT INTO claim_fulfillment (claim_id, status, excess_amount, notes, created_at, updated_at)
                    VALUES (?, 'pending_excess', ?, ?, ?, ?)
                    """,
                    (claim_id, fulfillment_excess, fulfillment_notes, stamp, stamp),
                )
        return self.require_claim(claim_id)

    def try_start_processing(self, claim_id: str, stale_after_seconds: int) -> datetime:
        """Atomically mark a notified claim as being decided. Returns the stamp written.

        Single compare-and-set UPDATE: only succeeds while the claim is still notified and
        no other worker holds a fresh processing flag. Raises EvidenceRaceError otherwise.
        """
        now = utcnow()
        cutoff = format_ts(now - timedelta(seconds=stale_after_seconds))
        with get_connection(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE claims SET processing_started_at = ?
                WHERE id = ? AND status = ?
                  AND (processing_started_at IS NULL OR processing_started_at < ?)
                """,
                (format_ts(now), claim_id, INITIAL_STATUS.value, cutoff),
            )
            won = cur.rowcount == 1
        if not won:
            raise EvidenceRaceError(claim_id)
        return now

    def release_processing(self, claim_id: str) -> None:
        """Clear the processing flag of a claim still in notified so it can be retried."""
        with get_connection(self._db_path) as conn:
            conn.execute(
                "UPDATE claims SET processing_started_at = NULL WHERE id = ? AND status = ?",
                (claim_id, INITIAL_STATUS.value),
            )

    def get_claim_history(self, claim_id: str) -> list[StatusHistoryEntry]:
        """Get status history entries for a claim, oldest first."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, claim_id, status, note, actor, created_at
                FROM claim_status_history
                WHERE claim_id = ?
                ORDER BY id ASC
                """,
                (claim_id,),
            ).fetchall()
        return [StatusHistoryEntry.model_validate(dict(r)) for r in rows]

    def get_status_entered_at(self, claim_id: str, status: ClaimStatus) -> datetime | None:
        """Timestamp of the most recent history row for the given status."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                """
                SELECT created_at FROM claim_status_history
                WHERE claim_id = ? AND status = ?
                ORDER BY id DESC LIMIT 1
                """,
                (claim_id, status.value),
            ).fetchone()
        return parse_ts(row["created_at"]) if row else None

    # -------------------------------------------------------------------
    # Evidence
    # -------------------------------------------------------------------

    def add_evidence(
        self,
        claim_id: str,
        document_type: DocumentType,
        file_name: str,
        file_path: str,
        file_size: int = 0,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EvidenceDocument:
        """Append an evidence document record."""
        with get_connection(self._db_path) as conn:
            cur = conn.execute(
                """
                INSERT INTO evidence_documents (
                    claim_id, document_type, file_name, file_path, file_size,
                    content_type, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    document_type.value,
                    file_name,
                    file_path,
                    file_size,
                    content_type,
                    json.dumps(metadata) if metadata is not None else None,
                    format_ts(utcnow()),
                ),
            )
            row = conn.execute(
                "SELECT * FROM evidence_documents WHERE id = ?", (cur.lastrowid,)
            ).fetchone()
        return _row_to_evidence(row)

    def list_evidence(self, claim_id: str) -> list[EvidenceDocument]:
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM evidence_documents WHERE claim_id = ? ORDER BY id",
                (claim_id,),
            ).fetchall()
        return [_row_to_evidence(r) for r in rows]

    def delete_evidence(self, document_id: int) -> EvidenceDocument | None:
        """Remove an evidence record; returns the deleted row, or None if it did not exist."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM evidence_documents WHERE id = ?", (document_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM evidence_documents WHERE id = ?", (document_id,))
        return _row_to_evidence(row)

    def get_evidence_types(self, claim_id: str) -> set[DocumentType]:
        """Set of distinct document types recorded for the claim."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                "SELECT DISTINCT document_type FROM evidence_documents WHERE claim_id = ?",
                (claim_id,),
            ).fetchall()
        return {DocumentType(r["document_type"]) for r in rows}


class PolicyRepository:
    """Products and policies. Read by the engine; written by seeding and admin tools."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def create_product(
        self,
        name: str,
        excess_1: float = 0.0,
        coverage: list[str] | None = None,
        product_id: str | None = None,
    ) -> Product:
        product = Product(
            id=product_id or str(uuid.uuid4()),
            name=name,
            excess_1=excess_1,
            coverage=coverage or [],
        )
        with get_connection(self._db_path) as conn:
            conn.execute(
                "INSERT INTO products (id, name, excess_1, coverage) VALUES (?, ?, ?, ?)",
                (product.id, product.name, product.excess_1, json.dumps(product.coverage)),
            )
        return product

    def get_product(self, product_id: str) -> Product | None:
        with get_connection(self._db_path) as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        if row is None:
            return None
        data = dict(row)
        data["coverage"] = json.loads(data.get("coverage") or "[]")
        return Product.model_validate(data)

    def create_policy(
        self,
        policy_number: str,
        product_id: str,
        program_id: str | None = None,
        customer_name: str = "",
        customer_email: str = "",
        policy_id: str | None = None,
    ) -> Policy:
        policy = Policy(
            id=policy_id or str(uuid.uuid4()),
            policy_number=policy_number,
            product_id=product_id,
            program_id=program_id,
            customer_name=customer_name,
            customer_email=customer_email,
        )
        with get_connection(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO policies (id, policy_number, product_id, program_id, customer_name, customer_email)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    policy.id,
                    policy.policy_number,
                    policy.product_id,
                    policy.program_id,
                    policy.customer_name,
                    policy.customer_email,
                ),
            )
        return policy

    def get_policy(self, policy_id: str) -> Policy | None:
        with get_connection(self._db_path) as conn:
            row = conn.execute("SELECT * FROM policies WHERE id = ?", (policy_id,)).fetchone()
        if row is None:
            return None
        return Policy.model_validate(dict(row))
