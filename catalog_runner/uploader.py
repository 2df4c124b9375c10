"""
Google Drive upload of the generated CSV files.

The service account needs Editor access to the destination folder.
Credentials come from the JSON key file at ``GOOGLE_APPLICATION_CREDENTIALS``
or, when that file is not readable, from the key contents in
``GOOGLE_CREDENTIALS_JSON``.

Usage:
    from catalog_runner.uploader import DriveUploader

    uploader = DriveUploader.from_settings(settings)
    file_id = uploader.upload_file("output/csv/brand_Milwaukee.csv", settings.DRIVE_FOLDER_ID)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from .errors import CredentialsError, UploadError
from .settings import Settings

logger = logging.getLogger(__name__)

# Only files created by this app are visible to it
SCOPES = ["https://www.googleapis.com/auth/drive.file"]

CSV_MIME_TYPE = "text/csv"


def load_service_account_info(credentials_file: Optional[str], credentials_json: Optional[str] = None) -> Dict[str, Any]:
    """Return the service account key as a dictionary."""

    if credentials_file and os.access(credentials_file, os.R_OK) and Path(credentials_file).is_file():
        try:
            info = json.loads(Path(credentials_file).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CredentialsError(f"Invalid Google credentials (malformed JSON in file): {credentials_file}") from exc
        if not isinstance(info, dict):
            raise CredentialsError(f"Invalid Google credentials (malformed JSON in file): {credentials_file}")
        return info

    if credentials_json and credentials_json.strip():
        try:
            info = json.loads(credentials_json)
        except ValueError as exc:
            raise CredentialsError("Invalid Google credentials (GOOGLE_CREDENTIALS_JSON is not valid JSON).") from exc
        if not isinstance(info, dict):
            raise CredentialsError("Invalid Google credentials (GOOGLE_CREDENTIALS_JSON is not a JSON object).")
        return info

    raise CredentialsError(
        f"Google credentials not found or not readable at '{credentials_file}' and GOOGLE_CREDENTIALS_JSON is not set."
    )


def service_account_email(settings: Settings) -> Optional[str]:
    """Best effort lookup of the service account email, for diagnostics."""

    try:
        info = load_service_account_info(settings.GOOGLE_CREDENTIALS_FILE, settings.GOOGLE_CREDENTIALS_JSON)
    except CredentialsError:
        return None
    email = info.get("client_email")
    return email if isinstance(email, str) else None


class DriveUploader:
    """Upload local files into a Google Drive folder."""

    def __init__(self, credentials: Any, *, email: Optional[str] = None, service: Any = None) -> None:
        self._credentials = credentials
        self._service = service
        self.email = email

    @classmethod
    def from_settings(cls, settings: Settings) -> "DriveUploader":
        info = load_service_account_info(settings.GOOGLE_CREDENTIALS_FILE, settings.GOOGLE_CREDENTIALS_JSON)
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError) as exc:
            raise CredentialsError(f"Invalid service account key: {exc}") from exc
        logger.info("Using service account %s for Drive uploads", info.get("client_email"))
        return cls(credentials, email=info.get("client_email"))

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = build("drive", "v3", credentials=self._credentials, cache_discovery=False)
        return self._service

    def upload_file(self, local_path: Path | str, folder_id: str, name: Optional[str] = None) -> str:
        """Upload ``local_path`` into ``folder_id`` and return the new Drive file id."""

        path = Path(local_path)
        if not path.is_file():
            raise UploadError(f"Local file not found: {path}")
        if not folder_id:
            raise UploadError("A destination folder id is required.")

        metadata = {"name": name or path.name, "parents": [folder_id]}
        media = MediaFileUpload(str(path), mimetype=CSV_MIME_TYPE, resumable=False)
        try:
            created = (
                self._get_service()
                .files()
                .create(body=metadata, media_body=media, fields="id,name,parents")
                .execute()
            )
        except GoogleAuthError as exc:
            raise CredentialsError(f"Google rejected the service account credentials: {exc}") from exc
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            if status == 401:
                raise CredentialsError(f"Drive upload unauthorized for {path.name}: {exc}") from exc
            raise UploadError(f"Drive upload failed for {path.name}: {exc}") from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise UploadError(f"Drive upload of {path.name} failed in transport: {exc}") from exc

        file_id = created.get("id") if isinstance(created, dict) else None
        if not file_id:
            raise UploadError(f"Drive did not return a file id for {path.name}")
        logger.info("Uploaded %s to Drive folder %s as %s", path.name, folder_id, file_id)
        return file_id
