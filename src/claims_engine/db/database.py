"""SQLite connection and schema initialization."""

import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

# Tracks which database paths have had schema applied (avoid running on every connection)
_schema_initialized: set[str] = set()
_schema_lock = threading.Lock()

# Seconds a connection waits on a locked database before raising
BUSY_TIMEOUT_SECONDS = 30.0

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    excess_1 REAL NOT NULL DEFAULT 0,
    coverage TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS policies (
    id TEXT PRIMARY KEY,
    policy_number TEXT NOT NULL,
    product_id TEXT NOT NULL,
    program_id TEXT,
    customer_name TEXT DEFAULT '',
    customer_email TEXT DEFAULT '',
    FOREIGN KEY (product_id) REFERENCES products(id)
);

-- Claims (main record). status is only written by apply_transition.
CREATE TABLE IF NOT EXISTS claims (
    id TEXT PRIMARY KEY,
    claim_number TEXT NOT NULL UNIQUE,
    policy_id TEXT NOT NULL,
    claim_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'notified',
    decision TEXT,
    decision_reason TEXT,
    description TEXT DEFAULT '',
    required_evidence TEXT NOT NULL DEFAULT '[]',
    processing_started_at TEXT,
    submitted_at TEXT NOT NULL,
    updated_at TEXT,
    FOREIGN KEY (policy_id) REFERENCES policies(id)
);

-- Append-only status history; one row per successful transition
CREATE TABLE IF NOT EXISTS claim_status_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id TEXT NOT NULL,
    status TEXT NOT NULL,
    note TEXT DEFAULT '',
    actor TEXT NOT NULL DEFAULT 'system',
    created_at TEXT NOT NULL,
    FOREIGN KEY (claim_id) REFERENCES claims(id)
);

CREATE TABLE IF NOT EXISTS evidence_documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id TEXT NOT NULL,
    document_type TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_size INTEGER DEFAULT 0,
    content_type TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (claim_id) REFERENCES claims(id)
);

CREATE TABLE IF NOT EXISTS claim_fulfillment (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL DEFAULT 'pending_excess',
    excess_amount REAL NOT NULL DEFAULT 0,
    excess_paid INTEGER NOT NULL DEFAULT 0,
    excess_payment_date TEXT,
    excess_payment_method TEXT,
    quote_amount REAL,
    quote_status TEXT,
    quote_rejection_reason TEXT,
    fulfillment_type TEXT,
    device_value REAL,
    settlement_value REAL,
    ber_reason TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT,
    FOREIGN KEY (claim_id) REFERENCES claims(id)
);

CREATE TABLE IF NOT EXISTS repair_costs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fulfillment_id INTEGER NOT NULL,
    cost_type TEXT NOT NULL,
    description TEXT DEFAULT '',
    amount REAL NOT NULL,
    units REAL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (fulfillment_id) REFERENCES claim_fulfillment(id)
);

CREATE TABLE IF NOT EXISTS claims_sla (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    program_id TEXT,
    claim_status TEXT NOT NULL,
    sla_hours INTEGER NOT NULL CHECK (sla_hours > 0),
    description TEXT DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_claims_status ON claims(status);
CREATE INDEX IF NOT EXISTS idx_history_claim ON claim_status_history(claim_id, id);
CREATE INDEX IF NOT EXISTS idx_evidence_claim ON evidence_documents(claim_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_sla_scope
    ON claims_sla(COALESCE(program_id, ''), claim_status);
"""


def utcnow() -> datetime:
    """Timezone-aware current time used for every stored timestamp."""
    return datetime.now(timezone.utc)


def format_ts(value: datetime) -> str:
    """Fixed-width UTC ISO string so stored timestamps sort lexicographically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_ts(value: str | None) -> datetime | None:
    """Inverse of format_ts; tolerates None."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_db_path() -> str:
    """Return path to SQLite database from CLAIMS_DB_PATH env or default data/claims.db."""
    path = os.environ.get("CLAIMS_DB_PATH", "data/claims.db")
    return path


def init_db(path: str | None = None) -> None:
    """Create tables if they do not exist."""
    db_path = path or get_db_path()
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SECONDS) as conn:
        conn.executescript(SCHEMA_SQL)
    with _schema_lock:
        _schema_initialized.add(db_path)


def _ensure_schema(db_path: str) -> None:
    """Run schema once per path. Thread-safe."""
    with _schema_lock:
        if db_path in _schema_initialized:
            return
    # Run init outside lock to avoid holding it during I/O
    init_db(db_path)


@contextmanager
def get_connection(path: str | None = None, immediate: bool = False):
    """Context manager yielding a database connection. Ensures schema exists once per path.

    With immediate=True the write lock is taken up front (BEGIN IMMEDIATE) so a
    read-validate-write sequence runs as one serialized transaction. Commits on clean
    exit, rolls back on error.
    """
    db_path = path or get_db_path()
    p = Path(db_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    _ensure_schema(db_path)
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
