from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List

import pytest

from catalog_runner.client import ApiResponse
from catalog_runner.constants import (
    CATALOG_PATH,
    LOGIN_PATH,
    PRICES_PATH,
    STOCK_PATH,
    UNITS_PATH,
    WHOLESALE_CSV_PATH,
)
from catalog_runner.errors import ConfigError, CredentialsError, FetchError, UploadError
from catalog_runner.exporter import ExportedFile
from catalog_runner.models import RawDatasets
from catalog_runner.pipeline import PACKAGE_LOGGER, RunContext, build_fetcher, run_pipeline, upload_outputs
from catalog_runner.settings import Settings


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@dataclass
class StaticFetcher:
    datasets: RawDatasets
    calls: int = 0

    def fetch_all(self) -> RawDatasets:
        self.calls += 1
        return self.datasets


class FailingFetcher:
    def fetch_all(self) -> RawDatasets:
        raise FetchError("getStock", 500, "Internal Server Error")


@dataclass
class RecordingUploader:
    failures: Dict[str, Exception] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    def upload_file(self, local_path: Path, folder_id: str) -> str:
        self.calls.append(Path(local_path).name)
        error = self.failures.get(Path(local_path).name)
        if error:
            raise error
        return f"drive-{Path(local_path).stem}"


def _context(tmp_path: Path, **overrides) -> RunContext:
    values = {"API_KEY": "key", "OUTPUT_DIR": tmp_path / "output", "DRIVE_FOLDER_ID": "folder-1"}
    values.update(overrides)
    return RunContext.create(Settings(**values), now=datetime(2026, 10, 17, 9, 30, 0))


def _read_csv(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


def test_end_to_end_run_writes_brand_files_and_dashboard(tmp_path: Path) -> None:
    context = _context(tmp_path)
    fetcher = StaticFetcher(
        RawDatasets(
            catalog=[{"itemCode": "A1", "manufacturer": "Milwaukee", "productName": "Drill"}],
            stock=[{"itemCode": "A1", "stock": 10}],
            prices=[{"itemCode": "A1", "pvp": 99.90}],
            units=[{"itemCode": "A1", "uomCode": "Unidad", "weight": 1.2}],
        )
    )

    result = run_pipeline(context, fetcher=fetcher)

    csv_dir = tmp_path / "output" / "csv"
    rows = _read_csv(csv_dir / "brand_Milwaukee.csv")
    assert len(rows) == 1
    row = rows[0]
    assert row["SKU"] == "A1"
    assert row["Title"] == "Drill"
    assert row["Stock"] == "10"
    assert float(row["Price"]) == pytest.approx(99.90)
    assert row["Weight"] == "1200"
    assert row["PriceWholesale"] == ""

    for name in ("brand_Garden_HighPro.csv", "brand_Qnubu.csv", "brand_Zerum.csv"):
        assert (csv_dir / name).read_text(encoding="utf-8").strip() == "SKU,Title,Stock,PriceWholesale,Price,Weight"

    assert result.run_id == "20261017-093000"
    assert result.products == 1
    assert (tmp_path / "output" / "dashboard" / "index.html").is_file()
    assert (tmp_path / "output" / "logs" / "run-20261017-093000.log").is_file()

    payload = result.as_payload()
    assert payload["ok"] is True
    assert payload["csvCount"] == 4
    assert payload["rows"]["brand_Milwaukee.csv"] == 1
    assert payload["runLog"] == "run-20261017-093000.log"


def test_missing_api_key_fails_before_fetching(tmp_path: Path) -> None:
    context = _context(tmp_path, API_KEY="")
    fetcher = StaticFetcher(RawDatasets())

    with pytest.raises(ConfigError, match="API_KEY"):
        run_pipeline(context, fetcher=fetcher)

    assert fetcher.calls == 0


def test_fetch_failure_aborts_without_writing(tmp_path: Path) -> None:
    context = _context(tmp_path)

    with pytest.raises(FetchError):
        run_pipeline(context, fetcher=FailingFetcher())

    assert list((tmp_path / "output" / "csv").glob("*.csv")) == []
    log_text = context.run_log.read_text(encoding="utf-8")
    assert "Fetching data failed" in log_text


def test_merged_dump_is_written_when_requested(tmp_path: Path) -> None:
    context = _context(tmp_path)
    fetcher = StaticFetcher(RawDatasets(catalog=[{"itemCode": "A1", "manufacturer": "Qnubu", "color": "red"}]))

    run_pipeline(context, fetcher=fetcher, merged_dump=tmp_path / "merged.csv")

    rows = _read_csv(tmp_path / "merged.csv")
    assert rows[0]["item_code"] == "A1"
    assert rows[0]["attr_color"] == "red"


def test_upload_outputs_continues_after_failures(tmp_path: Path) -> None:
    context = _context(tmp_path)
    files = [
        ExportedFile(path=tmp_path / "brand_A.csv", group="A", rows=1),
        ExportedFile(path=tmp_path / "brand_B.csv", group="B", rows=0),
        ExportedFile(path=tmp_path / "brand_C.csv", group="C", rows=2),
    ]
    uploader = RecordingUploader(failures={"brand_B.csv": UploadError("quota exceeded")})

    report = upload_outputs(context, files, uploader)

    assert uploader.calls == ["brand_A.csv", "brand_B.csv", "brand_C.csv"]
    assert report.uploaded == [
        {"file": "brand_A.csv", "driveFileId": "drive-brand_A"},
        {"file": "brand_C.csv", "driveFileId": "drive-brand_C"},
    ]
    assert report.failed == [{"file": "brand_B.csv", "error": "quota exceeded"}]
    assert not report.ok
    assert not report.credentials_failed


def test_upload_outputs_flags_credential_failures(tmp_path: Path) -> None:
    context = _context(tmp_path)
    files = [ExportedFile(path=tmp_path / "brand_A.csv", group="A", rows=1)]
    uploader = RecordingUploader(failures={"brand_A.csv": CredentialsError("invalid_grant")})

    report = upload_outputs(context, files, uploader)

    assert report.credentials_failed
    assert report.uploaded == []


def test_build_fetcher_wires_token_cache(tmp_path: Path) -> None:
    context = _context(tmp_path, LANG=3)

    fetcher = build_fetcher(context)

    assert fetcher.lang == 3
    assert fetcher.authenticator.api_key == "key"
    assert fetcher.authenticator.cache.path == context.settings.OUTPUT_DIR / "cache" / "token.json"


class ScriptedApi:
    """Answers login and dataset requests from canned bodies."""

    def __init__(self, responses: Dict[str, ApiResponse]) -> None:
        self.responses = responses
        self.paths: List[str] = []

    def post(self, path: str, **kwargs) -> ApiResponse:
        self.paths.append(path)
        return self.responses[path]

    def get(self, path: str, **kwargs) -> ApiResponse:
        self.paths.append(path)
        assert kwargs["token"] == "tok-1"
        return self.responses[path]


def _json(payload) -> ApiResponse:
    return ApiResponse(status=200, text=json.dumps(payload), payload=payload)


def test_run_with_client_logs_in_and_caches_token(tmp_path: Path) -> None:
    context = _context(tmp_path)
    api = ScriptedApi(
        {
            LOGIN_PATH: _json({"data": {"token": "tok-1"}}),
            CATALOG_PATH: _json({"data": [{"itemCode": "Z1", "manufacturer": "Zerum", "productName": "Saw"}]}),
            STOCK_PATH: _json([{"itemCode": "Z1", "stock": 4}]),
            UNITS_PATH: _json([{"itemCode": "Z1", "uomCode": "Caja", "weight": "0,5"}]),
            PRICES_PATH: _json([{"itemCode": "Z1", "pvp": 12.5}]),
            WHOLESALE_CSV_PATH: ApiResponse(status=200, text="SKU;PVP\nZ1;9,75\n"),
        }
    )

    result = run_pipeline(context, client=api)

    assert api.paths[0] == LOGIN_PATH
    assert api.paths.count(LOGIN_PATH) == 1
    assert result.products == 1
    rows = _read_csv(tmp_path / "output" / "csv" / "brand_Zerum.csv")
    assert rows[0]["Stock"] == "4"
    assert rows[0]["PriceWholesale"] == "9.75"
    assert rows[0]["Weight"] == ""
    cache = json.loads(context.token_cache.read_text(encoding="utf-8"))
    assert cache["token"] == "tok-1"
