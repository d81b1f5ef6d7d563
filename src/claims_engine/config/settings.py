"""Centralized configuration from environment variables with defaults."""

import os

from claims_engine.models.claim import ClaimType, DocumentType


def _float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _document_types(raw: str | None, default: tuple[DocumentType, ...]) -> tuple[DocumentType, ...]:
    if raw is None:
        return default
    parts = [p.strip().lower() for p in raw.split(",") if p.strip()]
    try:
        types = tuple(DocumentType(p) for p in parts)
    except ValueError:
        return default
    return types or default


# ---------------------------------------------------------------------------
# Evidence gate
# ---------------------------------------------------------------------------

DEFAULT_REQUIRED_EVIDENCE = (DocumentType.PHOTO, DocumentType.RECEIPT)


def get_required_evidence(claim_type: ClaimType | str | None = None) -> tuple[DocumentType, ...]:
    """Evidence types that must all be present before automated triage.

    CLAIMS_REQUIRED_EVIDENCE sets the base list; CLAIMS_REQUIRED_EVIDENCE_<TYPE>
    (e.g. CLAIMS_REQUIRED_EVIDENCE_THEFT) overrides it for one claim type.
    """
    base = _document_types(os.environ.get("CLAIMS_REQUIRED_EVIDENCE"), DEFAULT_REQUIRED_EVIDENCE)
    if claim_type is None:
        return base
    type_value = claim_type.value if isinstance(claim_type, ClaimType) else str(claim_type)
    return _document_types(
        os.environ.get(f"CLAIMS_REQUIRED_EVIDENCE_{type_value.upper()}"), base
    )


def get_processing_lock_ttl_seconds() -> int:
    """Age after which a processing flag is considered abandoned by a crashed worker."""
    return _int("CLAIMS_PROCESSING_LOCK_TTL_SECONDS", 900)


# ---------------------------------------------------------------------------
# Evidence upload
# ---------------------------------------------------------------------------

MAX_UPLOAD_BYTES = _int("CLAIMS_MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")


def get_blob_root() -> str:
    """Root directory for LocalBlobStore."""
    return os.environ.get("CLAIMS_BLOB_ROOT", "data/blobs")


# ---------------------------------------------------------------------------
# Decisioning
# ---------------------------------------------------------------------------

CLASSIFIER_REASON_MAX_LENGTH = 200


def get_decision_reason_max_length() -> int:
    """Maximum stored length of claim.decision_reason."""
    return _int("CLAIMS_DECISION_REASON_MAX_LENGTH", 500)


def get_classifier_config() -> dict:
    """Timeout and retry settings for the external decision classifier."""
    return {
        "timeout_seconds": _float("CLAIMS_CLASSIFIER_TIMEOUT_SECONDS", 30.0),
        "max_attempts": _int("CLAIMS_CLASSIFIER_MAX_ATTEMPTS", 3),
        "min_wait": _float("CLAIMS_CLASSIFIER_RETRY_MIN_WAIT", 2.0),
        "max_wait": _float("CLAIMS_CLASSIFIER_RETRY_MAX_WAIT", 10.0),
    }


def get_notification_workers() -> int:
    """Thread pool size for background decision notifications."""
    return _int("CLAIMS_NOTIFICATION_WORKERS", 4)


def get_metrics_window() -> int:
    """Number of recent classifier calls kept for latency percentiles."""
    return max(1, _int("CLAIMS_METRICS_WINDOW", 1000))


# ---------------------------------------------------------------------------
# SLA
# ---------------------------------------------------------------------------

SLA_APPROACHING_RATIO = _float("CLAIMS_SLA_APPROACHING_RATIO", 0.8)
