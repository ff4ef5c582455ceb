# backend/errors.py


class IngestionError(Exception):
    """Base error for a contract-note ingestion attempt."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidFileType(IngestionError):
    status_code = 415


class ArchiveFailed(IngestionError):
    status_code = 502


class ExtractionFailed(IngestionError):
    status_code = 502


class ExtractionMalformed(IngestionError):
    status_code = 422


class PersistenceFailed(IngestionError):
    status_code = 500


class MissingCredential(IngestionError):
    status_code = 401
