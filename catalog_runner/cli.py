"""Command line entry point for the catalog runner."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Iterable

from .constants import EXPORT_COLUMNS, FULL_EXPORT_COLUMNS
from .errors import AuthError, CatalogRunnerError, ConfigError, NetworkError, UploadError
from .pipeline import RunContext, run_pipeline, upload_outputs
from .settings import Settings
from .uploader import DriveUploader

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UPLOAD_INCOMPLETE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export the Natural Systems catalog to one CSV file per manufacturer"
    )
    parser.add_argument("--api-key", help="API key. Defaults to NATURALSYSTEMS_API_KEY env var")
    parser.add_argument("--base-url", help="Override the API base URL")
    parser.add_argument("--lang", type=int, help="Catalog language id sent to getCatalogo")
    parser.add_argument("--output-dir", help="Output directory. Defaults to CATALOG_OUTPUT_DIR or ./output")
    parser.add_argument(
        "--manufacturer",
        action="append",
        help="Manufacturer to export (repeatable). Defaults to CATALOG_MANUFACTURERS",
    )
    parser.add_argument(
        "--full-columns",
        action="store_true",
        help="Write the descriptive column set instead of SKU/Title/Stock/Prices/Weight",
    )
    parser.add_argument("--dump-merged", help="Also write every merged product to this CSV path")
    parser.add_argument("--upload", action="store_true", help="Upload the CSV files to Google Drive")
    parser.add_argument("--folder-id", help="Drive folder id. Defaults to DRIVE_FOLDER_ID env var")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def _environment(args: argparse.Namespace) -> dict[str, str]:
    env = dict(os.environ)
    overrides = {
        "NATURALSYSTEMS_API_KEY": args.api_key,
        "NATURALSYSTEMS_BASE_URL": args.base_url,
        "NATURALSYSTEMS_LANG": str(args.lang) if args.lang is not None else None,
        "CATALOG_OUTPUT_DIR": args.output_dir,
        "CATALOG_MANUFACTURERS": ",".join(args.manufacturer) if args.manufacturer else None,
        "DRIVE_FOLDER_ID": args.folder_id,
    }
    env.update({key: value for key, value in overrides.items() if value})
    return env


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = Settings.from_env(_environment(args))
        settings.require("API_KEY")
        if args.upload:
            settings.require("DRIVE_FOLDER_ID")
    except ConfigError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return EXIT_FAILED

    columns = FULL_EXPORT_COLUMNS if args.full_columns else EXPORT_COLUMNS

    try:
        context = RunContext.create(settings, verbose=args.verbose)
        result = run_pipeline(
            context,
            columns=columns,
            merged_dump=Path(args.dump_merged) if args.dump_merged else None,
        )
    except AuthError as exc:
        print(f"[error] Login failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except NetworkError as exc:
        print(f"[error] Request failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except CatalogRunnerError as exc:
        print(f"[error] Fetching data failed: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except OSError as exc:
        print(f"[error] Cannot write output: {exc}", file=sys.stderr)
        return EXIT_FAILED

    print(
        f"[ok] run {result.run_id}: {result.products} products, "
        f"{len(result.files)} CSV files in {context.csv_dir}",
        file=sys.stderr,
    )

    if not args.upload:
        return EXIT_OK

    try:
        uploader = DriveUploader.from_settings(settings)
    except UploadError as exc:
        print(f"[error] Drive credentials: {exc}", file=sys.stderr)
        return EXIT_UPLOAD_INCOMPLETE

    report = upload_outputs(context, result.files, uploader)
    if not report.ok:
        print(
            f"[warn] uploaded {len(report.uploaded)} of {len(result.files)} files; "
            f"failed: {', '.join(item['file'] for item in report.failed)}",
            file=sys.stderr,
        )
        return EXIT_UPLOAD_INCOMPLETE

    print(f"[ok] uploaded {len(report.uploaded)} files to Drive folder {settings.DRIVE_FOLDER_ID}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
