"""Fulfillment and repair-cost persistence."""

import sqlite3
from typing import Any

from claims_engine.db.database import format_ts, get_connection, utcnow
from claims_engine.exceptions import InvalidFulfillmentTransitionError
from claims_engine.models.fulfillment import Fulfillment, FulfillmentStatus, RepairCost

# Columns update_fulfillment may write; status is handled separately
_UPDATABLE_FIELDS = frozenset({
    "excess_paid",
    "excess_payment_date",
    "excess_payment_method",
    "quote_amount",
    "quote_status",
    "quote_rejection_reason",
    "fulfillment_type",
    "device_value",
    "settlement_value",
    "ber_reason",
    "notes",
})


def _row_to_fulfillment(row: sqlite3.Row) -> Fulfillment:
    data = dict(row)
    data["excess_paid"] = bool(data.get("excess_paid"))
    return Fulfillment.model_validate(data)


def _db_value(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if hasattr(value, "isoformat"):
        return format_ts(value)
    return value


class FulfillmentRepository:
    """Repository for claim_fulfillment rows and their repair-cost line items.

    Rows are created only by ClaimRepository.apply_transition together with an
    accepted transition.
    """

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path

    def get_fulfillment(self, claim_id: str) -> Fulfillment | None:
        """Fetch the fulfillment for a claim."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM claim_fulfillment WHERE claim_id = ?", (claim_id,)
            ).fetchone()
        if row is None:
            return None
        return _row_to_fulfillment(row)

    def update_fulfillment(
        self,
        claim_id: str,
        expected_status: FulfillmentStatus,
        new_status: FulfillmentStatus | None = None,
        **fields: Any,
    ) -> Fulfillment:
        """Write fields (and optionally status) only if the row is still in expected_status."""
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown fulfillment fields: {sorted(unknown)}")
        updates = ["updated_at = ?"]
        params: list[Any] = [format_ts(utcnow())]
        if new_status is not None:
            updates.append("status = ?")
            params.append(new_status.value)
        for key, value in fields.items():
            updates.append(f"{key} = ?")
            params.append(_db_value(value))
        params.extend([claim_id, expected_status.value])
        with get_connection(self._db_path) as conn:
            cur = conn.execute(
                f"UPDATE claim_fulfillment SET {', '.join(updates)} WHERE claim_id = ? AND status = ?",
                params,
            )
            if cur.rowcount != 1:
                raise InvalidFulfillmentTransitionError(
                    claim_id,
                    expected_status.value,
                    (new_status or expected_status).value,
                    f"Fulfillment for claim {claim_id} is no longer in {expected_status.value}",
                )
            row = conn.execute(
                "SELECT * FROM claim_fulfillment WHERE claim_id = ?", (claim_id,)
            ).fetchone()
        return _row_to_fulfillment(row)

    def add_repair_cost(
        self,
        fulfillment_id: int,
        cost_type: str,
        amount: float,
        description: str = "",
        units: float | None = None,
    ) -> RepairCost:
        """Append a repair-cost line item."""
        with get_connection(self._db_path) as conn:
            cur = conn.execute(
                """
                INSERT INTO repair_costs (fulfillment_id, cost_type, description, amount, units, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (fulfillment_id, cost_type, description, amount, units, format_ts(utcnow())),
            )
            row = conn.execute("SELECT * FROM repair_costs WHERE id = ?", (cur.lastrowid,)).fetchone()
        return RepairCost.model_validate(dict(row))

    def list_repair_costs(self, fulfillment_id: int) -> list[RepairCost]:
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM repair_costs WHERE fulfillment_id = ? ORDER BY id",
                (fulfillment_id,),
            ).fetchall()
        return [RepairCost.model_validate(dict(r)) for r in rows]
