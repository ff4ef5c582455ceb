# backend/storage.py

import io
import logging
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from .errors import ArchiveFailed

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]


def blob_path(user_id: str, filename: str) -> str:
    """Per-user archive path; user ids that could leave their own folder are rejected."""
    if not user_id or user_id in (".", "..") or any(sep in user_id for sep in ("/", "\\", "\x00")):
        raise ArchiveFailed(f"Archive failed: invalid user id {user_id!r}", status_code=400)
    return f"users/{user_id}/contract-notes/{Path(filename).name}"


class LocalBlobStore:
    """Raw uploads kept on the local filesystem under root."""

    def __init__(self, root: str):
        self.root = Path(root)

    def put(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        root = self.root.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise ArchiveFailed(f"Archive failed: {path} is outside the archive root", status_code=400)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise ArchiveFailed(f"Archive failed: {e.strerror or e}") from e
        return target.as_uri()


class DriveBlobStore:
    """Raw uploads kept in one Google Drive folder, named by their blob path."""

    def __init__(self, service, folder_id: str):
        self.service = service
        self.folder_id = folder_id

    @classmethod
    def from_service_account(cls, credentials_path: str, folder_id: str) -> "DriveBlobStore":
        creds = service_account.Credentials.from_service_account_file(
            credentials_path, scopes=DRIVE_SCOPES
        )
        return cls(build("drive", "v3", credentials=creds), folder_id)

    def _find(self, name: str):
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = f"name='{escaped}' and '{self.folder_id}' in parents and trashed=false"
        response = (
            self.service.files()
            .list(q=query, spaces="drive", fields="files(id, name)")
            .execute()
        )
        files = response.get("files", [])
        return files[0]["id"] if files else None

    def put(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=content_type, resumable=False)
        try:
            existing_id = self._find(path)
            if existing_id:
                # same-named prior upload is replaced
                result = (
                    self.service.files()
                    .update(fileId=existing_id, media_body=media, fields="id, webViewLink")
                    .execute()
                )
            else:
                result = (
                    self.service.files()
                    .create(
                        body={"name": path, "parents": [self.folder_id]},
                        media_body=media,
                        fields="id, webViewLink",
                    )
                    .execute()
                )
        except HttpError as e:
            raise ArchiveFailed(f"Archive failed: Drive returned {e.resp.status}") from e
        except GoogleAuthError as e:
            logger.error("Drive credentials rejected: %s", e)
            raise ArchiveFailed(f"Archive failed: Drive credentials rejected ({type(e).__name__})") from e
        except OSError as e:
            raise ArchiveFailed(f"Archive failed: {e}") from e
        return result.get("webViewLink", "")
