from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError
from google.oauth2 import service_account
from googleapiclient.errors import HttpError

from catalog_runner.errors import CredentialsError, UploadError
from catalog_runner.exporter import ExportedFile
from catalog_runner.pipeline import upload_outputs
from catalog_runner.settings import Settings
from catalog_runner.uploader import (
    SCOPES,
    DriveUploader,
    load_service_account_info,
    service_account_email,
)

KEY = {"type": "service_account", "client_email": "runner@project.iam.gserviceaccount.com"}


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    path = tmp_path / "gcp-key.json"
    path.write_text(json.dumps(KEY), encoding="utf-8")
    return path


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    path = tmp_path / "brand_Milwaukee.csv"
    path.write_text("SKU,Title\nA1,Drill\n", encoding="utf-8")
    return path


def _service(execute_result=None, execute_error=None) -> MagicMock:
    service = MagicMock()
    execute = service.files.return_value.create.return_value.execute
    if execute_error is not None:
        execute.side_effect = execute_error
    else:
        execute.return_value = execute_result
    return service


def test_credentials_are_read_from_file_first(key_file: Path) -> None:
    info = load_service_account_info(str(key_file), json.dumps({"client_email": "other"}))

    assert info == KEY


def test_credentials_fall_back_to_environment_json(tmp_path: Path) -> None:
    info = load_service_account_info(str(tmp_path / "missing.json"), json.dumps(KEY))

    assert info["client_email"] == KEY["client_email"]


def test_missing_credentials_raise(tmp_path: Path) -> None:
    with pytest.raises(CredentialsError, match="not found or not readable"):
        load_service_account_info(str(tmp_path / "missing.json"), "")


def test_malformed_credentials_raise(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(CredentialsError, match="malformed JSON"):
        load_service_account_info(str(broken))
    with pytest.raises(CredentialsError, match="GOOGLE_CREDENTIALS_JSON"):
        load_service_account_info(None, "[1, 2")


def test_service_account_email_is_best_effort(tmp_path: Path, key_file: Path) -> None:
    assert service_account_email(Settings(OUTPUT_DIR=tmp_path, GOOGLE_CREDENTIALS_FILE=str(key_file))) == KEY["client_email"]
    assert service_account_email(Settings(OUTPUT_DIR=tmp_path, GOOGLE_CREDENTIALS_FILE=str(tmp_path / "nope"))) is None


def test_from_settings_builds_scoped_credentials(
    tmp_path: Path, key_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured = {}

    def fake_from_info(info, scopes):
        captured.update(info=info, scopes=scopes)
        return "credentials"

    monkeypatch.setattr(service_account.Credentials, "from_service_account_info", fake_from_info)

    uploader = DriveUploader.from_settings(Settings(OUTPUT_DIR=tmp_path, GOOGLE_CREDENTIALS_FILE=str(key_file)))

    assert captured == {"info": KEY, "scopes": SCOPES}
    assert uploader.email == KEY["client_email"]


def test_upload_file_creates_file_in_folder(csv_file: Path) -> None:
    service = _service({"id": "drive-1", "name": csv_file.name})
    uploader = DriveUploader(credentials=None, service=service)

    file_id = uploader.upload_file(csv_file, "folder-1")

    assert file_id == "drive-1"
    kwargs = service.files.return_value.create.call_args.kwargs
    assert kwargs["body"] == {"name": "brand_Milwaukee.csv", "parents": ["folder-1"]}
    assert kwargs["fields"] == "id,name,parents"
    assert kwargs["media_body"].mimetype() == "text/csv"


def test_upload_missing_file_raises(tmp_path: Path) -> None:
    uploader = DriveUploader(credentials=None, service=_service({"id": "x"}))

    with pytest.raises(UploadError, match="Local file not found"):
        uploader.upload_file(tmp_path / "brand_Nope.csv", "folder-1")


def test_upload_without_id_raises(csv_file: Path) -> None:
    uploader = DriveUploader(credentials=None, service=_service({}))

    with pytest.raises(UploadError, match="did not return a file id"):
        uploader.upload_file(csv_file, "folder-1")


def test_unauthorized_http_error_is_a_credentials_error(csv_file: Path) -> None:
    error = HttpError(resp=MagicMock(status=401, reason="Unauthorized"), content=b"unauthorized")
    uploader = DriveUploader(credentials=None, service=_service(execute_error=error))

    with pytest.raises(CredentialsError):
        uploader.upload_file(csv_file, "folder-1")


def test_server_http_error_is_an_upload_error(csv_file: Path) -> None:
    error = HttpError(resp=MagicMock(status=500, reason="Backend Error"), content=b"boom")
    uploader = DriveUploader(credentials=None, service=_service(execute_error=error))

    with pytest.raises(UploadError) as excinfo:
        uploader.upload_file(csv_file, "folder-1")

    assert not isinstance(excinfo.value, CredentialsError)


def test_refresh_error_is_a_credentials_error(csv_file: Path) -> None:
    uploader = DriveUploader(credentials=None, service=_service(execute_error=RefreshError("invalid_grant")))

    with pytest.raises(CredentialsError, match="invalid_grant"):
        uploader.upload_file(csv_file, "folder-1")


def test_transport_timeout_is_an_upload_error(csv_file: Path) -> None:
    uploader = DriveUploader(credentials=None, service=_service(execute_error=TimeoutError("timed out")))

    with pytest.raises(UploadError, match="timed out") as excinfo:
        uploader.upload_file(csv_file, "folder-1")

    assert not isinstance(excinfo.value, CredentialsError)


def test_timeout_on_one_file_does_not_stop_the_others(tmp_path: Path) -> None:
    first = tmp_path / "brand_Milwaukee.csv"
    second = tmp_path / "brand_Zerum.csv"
    for path in (first, second):
        path.write_text("SKU\n", encoding="utf-8")
    service = _service()
    service.files.return_value.create.return_value.execute.side_effect = [TimeoutError("timed out"), {"id": "drive-2"}]
    context = SimpleNamespace(logger=logging.getLogger("catalog_runner.tests"), settings=None)

    report = upload_outputs(
        context,
        [ExportedFile(path=first, group="Milwaukee", rows=0), ExportedFile(path=second, group="Zerum", rows=0)],
        DriveUploader(credentials=None, service=service),
        "folder-1",
    )

    assert report.uploaded == [{"file": "brand_Zerum.csv", "driveFileId": "drive-2"}]
    assert [item["file"] for item in report.failed] == ["brand_Milwaukee.csv"]
    assert not report.credentials_failed
