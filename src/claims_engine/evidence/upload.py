"""Evidence upload: validate, store blob, record document, then run the evidence gate."""

import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Callable

from claims_engine.config.settings import ALLOWED_CONTENT_TYPES, MAX_UPLOAD_BYTES
from claims_engine.db.database import utcnow
from claims_engine.db.repository import ClaimRepository
from claims_engine.evidence.gate import EvidenceGate
from claims_engine.evidence.storage import BlobStore, LocalBlobStore
from claims_engine.exceptions import EvidenceValidationError, StorageError
from claims_engine.models.claim import DocumentType, EvidenceComplete
from claims_engine.observability import get_logger

logger = get_logger(__name__)


@dataclass
class UploadedFile:
    """An incoming evidence file."""

    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    """Result of upload_evidence."""

    stored: bool
    triggered_auto_decision: bool
    document_id: int | None = None
    file_path: str | None = None
    decision_error: str | None = None


def build_blob_path(claim_id: str, claim_number: str, document_type: DocumentType, file_name: str) -> str:
    """claim-documents/<claim_id>/<claim_number>_<type>_<epoch ms>_<6 hex>.<ext>"""
    ext = PurePosixPath(file_name).suffix.lstrip(".").lower() or "bin"
    millis = int(utcnow().timestamp() * 1000)
    return f"claim-documents/{claim_id}/{claim_number}_{document_type.value}_{millis}_{uuid.uuid4().hex[:6]}.{ext}"


class EvidenceUploadService:
    """Stores evidence and hands a completed evidence set to the decision handler.

    If the document record cannot be written after the blob was stored, the blob is
    deleted so no orphaned evidence is left behind.
    """

    def __init__(
        self,
        repo: ClaimRepository | None = None,
        blob_store: BlobStore | None = None,
        gate: EvidenceGate | None = None,
        on_evidence_complete: Callable[[EvidenceComplete], Any] | None = None,
    ):
        self._repo = repo or ClaimRepository()
        self._blobs = blob_store or LocalBlobStore()
        self._gate = gate or EvidenceGate(self._repo)
        self._on_evidence_complete = on_evidence_complete

    def _validate(self, file: UploadedFile) -> None:
        if not file.file_name:
            raise EvidenceValidationError("Missing file name")
        if file.size > MAX_UPLOAD_BYTES:
            raise EvidenceValidationError(
                f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit"
            )
        if (file.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise EvidenceValidationError(
                "Invalid file format. Only JPG, PNG, and PDF are allowed"
            )

    def upload_evidence(
        self,
        claim_id: str,
        document_type: DocumentType | str,
        file: UploadedFile,
        metadata: dict[str, Any] | None = None,
    ) -> UploadResult:
        """Store one evidence file for a claim.

        Raises:
            EvidenceValidationError: unknown claim, document type, size or format.
            StorageError: blob write failed, or the record insert failed (blob removed).
        """
        try:
            document_type = DocumentType(document_type)
        except ValueError as e:
            raise EvidenceValidationError(f"Unknown document type: {document_type}") from e
        self._validate(file)
        claim = self._repo.get_claim(claim_id)
        if claim is None:
            raise EvidenceValidationError(f"Claim not found: {claim_id}")

        path = build_blob_path(claim.id, claim.claim_number, document_type, file.file_name)
        self._blobs.put(path, file.data, file.content_type)

        try:
            document = self._repo.add_evidence(
                claim_id,
                document_type,
                file_name=file.file_name,
                file_path=path,
                file_size=file.size,
                content_type=file.content_type,
                metadata=metadata,
            )
        except Exception as e:
            logger.error(
                "Evidence record insert failed, removing blob %s",
                path,
                exc_info=e,
                extra={"claim_id": claim_id},
            )
            try:
                self._blobs.delete(path)
            except StorageError as cleanup_error:
                logger.error(
                    "Compensating blob delete failed for %s",
                    path,
                    exc_info=cleanup_error,
                    extra={"claim_id": claim_id},
                )
            raise StorageError(f"Failed to create document record: {e}") from e

        logger.log_event(
            "evidence_stored",
            claim_id=claim_id,
            document_type=document_type.value,
            file_path=path,
        )

        gate_result = self._gate.on_evidence_uploaded(claim_id, document_type)
        result = UploadResult(
            stored=True,
            triggered_auto_decision=gate_result.triggered,
            document_id=document.id,
            file_path=path,
        )
        if gate_result.triggered and self._on_evidence_complete is not None:
            try:
                self._on_evidence_complete(gate_result.event)
            except Exception as e:
                # Claim stays in notified and the evidence is stored; decisioning is retryable
                result.decision_error = str(e)
        return result

    def delete_evidence(self, document_id: int) -> bool:
        """Delete an evidence record and its blob. Returns False if the record is unknown.

        Removing evidence never re-opens or reverses a decision already taken.
        """
        document = self._repo.delete_evidence(document_id)
        if document is None:
            return False
        self._blobs.delete(document.file_path)
        logger.log_event(
            "evidence_deleted",
            claim_id=document.claim_id,
            document_type=document.document_type.value,
            file_path=document.file_path,
        )
        return True
