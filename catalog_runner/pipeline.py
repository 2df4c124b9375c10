"""End-to-end run: login, fetch, merge, export and optional upload."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .auth import Authenticator, TokenCache
from .client import ApiClient
from .constants import EXPORT_COLUMNS
from .errors import CatalogRunnerError, CredentialsError, UploadError
from .exporter import (
    Columns,
    ExportedFile,
    ensure_writable_dir,
    export_by_manufacturer,
    render_dashboard,
    write_merged_csv,
)
from .fetcher import DatasetFetcher
from .merge import merge_records
from .settings import Settings

PACKAGE_LOGGER = "catalog_runner"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_MARK = "_catalog_runner_handler"


def resolve_csv_dir(settings: Settings) -> Path:
    """Directory the CSV files go to: ``settings.csv_dir`` or its temp fallback."""

    return ensure_writable_dir(settings.csv_dir, "catalog-runner-csv")


def configure_logging(log_dir: Path, run_id: str, *, verbose: bool = False) -> logging.Logger:
    """Attach the per-run log, the shared ``app.log`` and stderr to the package logger.

    Handlers installed by an earlier run in the same process are replaced.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: List[logging.Handler] = [
        logging.FileHandler(log_dir / f"run-{run_id}.log", encoding="utf-8"),
        logging.FileHandler(log_dir / "app.log", mode="a", encoding="utf-8"),
        logging.StreamHandler(sys.stderr),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


@dataclass(frozen=True)
class RunContext:
    """Everything one invocation needs, built once and passed to each stage."""

    settings: Settings
    logger: logging.Logger
    run_id: str
    csv_dir: Path
    dashboard_dir: Path
    log_dir: Path
    token_cache: Path

    @property
    def run_log(self) -> Path:
        return self.log_dir / f"run-{self.run_id}.log"

    @classmethod
    def create(cls, settings: Settings, *, verbose: bool = False, now: Optional[datetime] = None) -> "RunContext":
        run_id = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
        log_dir = ensure_writable_dir(settings.log_dir, "catalog-runner-logs")
        logger = configure_logging(log_dir, run_id, verbose=verbose)
        return cls(
            settings=settings,
            logger=logger,
            run_id=run_id,
            csv_dir=resolve_csv_dir(settings),
            dashboard_dir=ensure_writable_dir(settings.dashboard_dir, "catalog-runner-dashboard"),
            log_dir=log_dir,
            token_cache=Path(settings.TOKEN_CACHE_FILE),
        )


@dataclass(slots=True)
class RunResult:
    run_id: str
    products: int
    files: List[ExportedFile] = field(default_factory=list)
    dashboard: Optional[Path] = None
    run_log: Optional[Path] = None

    def as_payload(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "runId": self.run_id,
            "products": self.products,
            "csvCount": len(self.files),
            "csvFiles": [exported.name for exported in self.files],
            "rows": {exported.name: exported.rows for exported in self.files},
            "dashboard": self.dashboard.name if self.dashboard else None,
            "runLog": self.run_log.name if self.run_log else None,
        }


@dataclass(slots=True)
class UploadReport:
    uploaded: List[Dict[str, str]] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    credentials_failed: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


def build_fetcher(context: RunContext, client: Optional[ApiClient] = None) -> DatasetFetcher:
    settings = context.settings
    client = client or ApiClient(base_url=settings.BASE_URL)
    authenticator = Authenticator(client=client, api_key=settings.API_KEY, cache=TokenCache(context.token_cache))
    return DatasetFetcher(client=client, authenticator=authenticator, lang=settings.LANG)


def run_pipeline(
    context: RunContext,
    *,
    client: Optional[ApiClient] = None,
    fetcher: Optional[DatasetFetcher] = None,
    columns: Columns = EXPORT_COLUMNS,
    merged_dump: Optional[Path] = None,
) -> RunResult:
    """Run one snapshot.

    Login and fetch failures propagate and abort the run.  Export failures
    only skip the affected file.
    """

    log = context.logger
    context.settings.require("API_KEY")
    fetcher = fetcher or build_fetcher(context, client)

    log.info("Run %s started", context.run_id)
    try:
        datasets = fetcher.fetch_all()
    except CatalogRunnerError as exc:
        log.error("Fetching data failed: %s", exc)
        raise

    records = merge_records(
        datasets.catalog,
        stock=datasets.stock,
        units=datasets.units,
        prices=datasets.prices,
        wholesale=datasets.wholesale,
    )

    files = export_by_manufacturer(records, context.settings.MANUFACTURERS, context.csv_dir, columns=columns)
    if merged_dump is not None:
        try:
            count = write_merged_csv(merged_dump, records)
            log.info("Merged dump: %s (%d rows)", merged_dump, count)
        except CatalogRunnerError as exc:
            log.error("%s", exc)

    dashboard = render_dashboard(files, context.dashboard_dir, context.run_id)
    log.info("Run %s finished: %d products, %d CSV files", context.run_id, len(records), len(files))
    return RunResult(
        run_id=context.run_id,
        products=len(records),
        files=files,
        dashboard=dashboard,
        run_log=context.run_log,
    )


def upload_outputs(
    context: RunContext,
    files: Sequence[ExportedFile],
    uploader: Any,
    folder_id: Optional[str] = None,
) -> UploadReport:
    """Upload every file, recording failures without stopping at the first one."""

    log = context.logger
    folder_id = folder_id or context.settings.DRIVE_FOLDER_ID
    report = UploadReport()
    for exported in files:
        try:
            file_id = uploader.upload_file(exported.path, folder_id)
        except UploadError as exc:
            log.error("Upload of %s failed: %s", exported.name, exc)
            if isinstance(exc, CredentialsError):
                report.credentials_failed = True
            report.failed.append({"file": exported.name, "error": str(exc)})
            continue
        report.uploaded.append({"file": exported.name, "driveFileId": file_id})
    log.info("Uploaded %d of %d files", len(report.uploaded), len(files))
    return report
