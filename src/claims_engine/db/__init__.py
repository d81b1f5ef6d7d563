"""SQLite persistence for claims, status history, evidence, fulfillment and SLA config."""

from claims_engine.db.database import get_connection, get_db_path, init_db
from claims_engine.db.fulfillment_repository import FulfillmentRepository
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.db.sla_repository import SLARepository

__all__ = [
    "ClaimRepository",
    "FulfillmentRepository",
    "PolicyRepository",
    "SLARepository",
    "get_connection",
    "get_db_path",
    "init_db",
]
