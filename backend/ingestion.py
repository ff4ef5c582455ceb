# backend/ingestion.py

import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import IngestionError, InvalidFileType, MissingCredential
from .extraction import extract_contract_note
from .schemas import Charges, PnLSummary
from .storage import blob_path

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
CHARGES_TOLERANCE = 0.01


class UploadStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"        # archiving the raw file
    PROCESSING = "processing"    # extracting
    SAVING = "saving"            # persisting
    SUCCESS = "success"
    ERROR = "error"


_ORDER = [
    UploadStatus.IDLE,
    UploadStatus.SCANNING,
    UploadStatus.PROCESSING,
    UploadStatus.SAVING,
    UploadStatus.SUCCESS,
]

STEP_LABELS = [
    (UploadStatus.SCANNING, "Scanning & Security"),
    (UploadStatus.PROCESSING, "AI Analysis"),
    (UploadStatus.SAVING, "Saving to Database"),
]


class ContractNoteUpload(BaseModel):
    filename: str
    content_type: str
    data: bytes


class UploadAttempt(BaseModel):
    """State of one upload attempt as shown by the upload screen."""

    file_name: Optional[str] = None
    status: UploadStatus = UploadStatus.IDLE
    failed_stage: Optional[UploadStatus] = None
    error: Optional[str] = None
    contract_note_id: Optional[str] = None
    trade_count: Optional[int] = None
    summary: Optional[PnLSummary] = None
    warnings: List[str] = Field(default_factory=list)

    def advance(self, status: UploadStatus) -> None:
        logger.info("Upload %s: %s -> %s", self.file_name, self.status.value, status.value)
        self.status = status

    def fail(self, exc: Exception) -> None:
        self.failed_stage = self.status
        self.status = UploadStatus.ERROR
        self.error = str(exc) or "Failed to process contract note."

    def reset(self) -> None:
        self.file_name = None
        self.status = UploadStatus.IDLE
        self.failed_stage = None
        self.error = None
        self.contract_note_id = None
        self.trade_count = None
        self.summary = None
        self.warnings = []

    @property
    def finished(self) -> bool:
        return self.status in (UploadStatus.SUCCESS, UploadStatus.ERROR)

    def steps(self) -> List[Dict[str, str]]:
        """Per-step indicators: done, active, failed or pending."""
        failed = self.status is UploadStatus.ERROR
        current = self.failed_stage if failed else self.status
        position = _ORDER.index(current) if current in _ORDER else 0

        if failed and self.failed_stage is UploadStatus.IDLE:
            first = "failed"
        else:
            first = "done" if self.file_name else "pending"
        steps = [{"label": "File Uploaded", "state": first}]

        for stage, label in STEP_LABELS:
            index = _ORDER.index(stage)
            if index < position:
                state = "done"
            elif index == position:
                state = "failed" if failed else "active"
            else:
                state = "pending"
            steps.append({"label": label, "state": state})
        return steps


def charges_warnings(charges: Charges) -> List[str]:
    """Flag a total that disagrees with its components; never rejects."""
    components = charges.component_sum()
    if abs(components - charges.total_charges) > CHARGES_TOLERANCE:
        return [
            f"Total charges {charges.total_charges:.2f} differ from the sum of "
            f"itemised charges {components:.2f}"
        ]
    return []


class IngestionPipeline:
    """
    Archive, extract and persist one contract note.

    Steps run strictly in order and the first failure aborts the attempt.
    blob_store may be None to skip archiving.
    """

    def __init__(self, extractor, store, blob_store=None):
        self.extractor = extractor
        self.store = store
        self.blob_store = blob_store

    def ingest(
        self,
        user_id: str,
        upload: ContractNoteUpload,
        password: Optional[str] = None,
        attempt: Optional[UploadAttempt] = None,
    ) -> str:
        attempt = attempt if attempt is not None else UploadAttempt()
        attempt.reset()
        attempt.file_name = upload.filename

        try:
            return self._run(user_id, upload, password, attempt)
        except IngestionError as e:
            stage = attempt.status.value
            attempt.fail(e)
            logger.warning(
                "Upload %s failed while %s: %s: %s",
                upload.filename,
                stage,
                type(e).__name__,
                e.message,
            )
            raise

    def _run(self, user_id, upload, password, attempt) -> str:
        if not user_id:
            raise MissingCredential("Please login to process data.")
        if upload.content_type != PDF_MIME:
            raise InvalidFileType("Please upload a valid PDF contract note.")
        self.extractor.ensure_configured()

        # TODO: unlock password-protected PDFs before extraction
        logger.debug("Upload %s password supplied: %s", upload.filename, bool(password))

        attempt.advance(UploadStatus.SCANNING)
        if self.blob_store is not None:
            url = self.blob_store.put(blob_path(user_id, upload.filename), upload.data, upload.content_type)
            logger.info("Archived %s to %s", upload.filename, url)

        attempt.advance(UploadStatus.PROCESSING)
        data = extract_contract_note(self.extractor, upload.data, upload.filename)
        for warning in charges_warnings(data.charges):
            logger.warning("Upload %s: %s", upload.filename, warning)
            attempt.warnings.append(warning)

        attempt.advance(UploadStatus.SAVING)
        note_id = self.store.save_contract_note(user_id, data, upload.filename)

        attempt.contract_note_id = note_id
        attempt.trade_count = len(data.trades)
        attempt.summary = data.summary
        attempt.advance(UploadStatus.SUCCESS)
        return note_id
