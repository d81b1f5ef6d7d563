"""Load products, policies and SLA rows into SQLite so claims can be submitted and tracked.

Run from project root:
    python scripts/seed_reference_data.py [seed.json]

Uses CLAIMS_DB_PATH (default data/claims.db). Without a seed file the built-in sample
data below is loaded. Re-running the script does not duplicate products or policies
(existing ids are skipped) and SLA rows are upserted per (program_id, status).

Seed file shape:
    {"products": [{"id", "name", "excess_1", "coverage"}],
     "policies": [{"id", "policy_number", "product_id", "program_id", "customer_name", "customer_email"}],
     "sla": [{"program_id", "claim_status", "sla_hours", "description"}]}
"""

import json
import sys
from pathlib import Path

from claims_engine.db.database import get_db_path
from claims_engine.db.repository import PolicyRepository
from claims_engine.db.sla_repository import SLARepository
from claims_engine.models.fulfillment import SLAEntry

_SAMPLE_DATA = {
    "products": [
        {
            "id": "PRD-PHONE",
            "name": "Phone Protect Plus",
            "excess_1": 50.0,
            "coverage": ["accidental damage", "breakdown", "theft"],
        },
        {
            "id": "PRD-LAPTOP",
            "name": "Laptop Care",
            "excess_1": 0.0,
            "coverage": ["accidental damage", "breakdown"],
        },
    ],
    "policies": [
        {
            "id": "POL-0001",
            "policy_number": "POL-0001",
            "product_id": "PRD-PHONE",
            "program_id": "PRG-RETAIL",
            "customer_name": "Alex Doe",
            "customer_email": "alex@example.com",
        },
        {
            "id": "POL-0002",
            "policy_number": "POL-0002",
            "product_id": "PRD-LAPTOP",
            "program_id": None,
            "customer_name": "Sam Roe",
            "customer_email": "sam@example.com",
        },
    ],
    "sla": [
        {"program_id": None, "claim_status": "notified", "sla_hours": 24, "description": "Triage"},
        {"program_id": None, "claim_status": "referred", "sla_hours": 48, "description": "Manual review"},
        {"program_id": None, "claim_status": "excess_due", "sla_hours": 72, "description": "Excess collection"},
        {"program_id": None, "claim_status": "repair", "sla_hours": 120, "description": "Repair"},
        {"program_id": "PRG-RETAIL", "claim_status": "referred", "sla_hours": 24, "description": "Retail review"},
    ],
}


def _load(argv: list[str]) -> dict:
    if len(argv) < 2:
        return _SAMPLE_DATA
    path = Path(argv[1])
    if not path.exists():
        print(f"Seed file not found: {path}")
        sys.exit(1)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def main() -> None:
    data = _load(sys.argv)
    db_path = get_db_path()
    policies = PolicyRepository(db_path)
    slas = SLARepository(db_path)

    inserted = 0
    skipped = 0
    for p in data.get("products", []):
        if policies.get_product(p["id"]) is not None:
            skipped += 1
            continue
        policies.create_product(
            p["name"],
            excess_1=float(p.get("excess_1", 0.0)),
            coverage=p.get("coverage", []),
            product_id=p["id"],
        )
        inserted += 1

    for p in data.get("policies", []):
        if policies.get_policy(p["id"]) is not None:
            skipped += 1
            continue
        policies.create_policy(
            p["policy_number"],
            p["product_id"],
            program_id=p.get("program_id"),
            customer_name=p.get("customer_name", ""),
            customer_email=p.get("customer_email", ""),
            policy_id=p["id"],
        )
        inserted += 1

    sla_rows = data.get("sla", [])
    for row in sla_rows:
        slas.upsert_sla(SLAEntry.model_validate(row))

    print(
        f"Seeded {inserted} products/policies into {db_path} ({skipped} already present); "
        f"{len(sla_rows)} SLA rows upserted."
    )


if __name__ == "__main__":
    main()
