"""Evidence storage, upload and the evidence-complete gate."""

from claims_engine.evidence.gate import EvidenceGate, GateResult
from claims_engine.evidence.storage import BlobStore, LocalBlobStore
from claims_engine.evidence.upload import EvidenceUploadService, UploadedFile, UploadResult

__all__ = [
    "BlobStore",
    "EvidenceGate",
    "EvidenceUploadService",
    "GateResult",
    "LocalBlobStore",
    "UploadResult",
    "UploadedFile",
]
