"""HTTP endpoints that trigger a run, serve the CSV files and upload them to Drive.

Every endpoint except ``/health`` requires ``?key=<RUN_SECRET>`` and answers with
a JSON envelope ``{"ok": bool, ...}``.
"""

from __future__ import annotations

import argparse
import hmac
import logging
import re
from typing import Any, Callable, Optional

from flask import Flask, Response, jsonify, request, send_from_directory, url_for

from .errors import AuthError, CatalogRunnerError, ConfigError, UploadError
from .pipeline import RunContext, RunResult, resolve_csv_dir, run_pipeline, upload_outputs
from .settings import Settings
from .uploader import DriveUploader, service_account_email

logger = logging.getLogger(__name__)

Runner = Callable[[RunContext], RunResult]
UploaderFactory = Callable[[Settings], Any]

_CSV_NAME = re.compile(r"^brand_[A-Za-z0-9_]+\.csv$")


def _error(message: str, status: int, **extra: Any):
    payload = {"ok": False, "error": message}
    payload.update(extra)
    return jsonify(payload), status


def _upload_hint(folder_id: str, email: Optional[str]) -> str:
    hint = (
        "Check: 1) the service account JSON key exists at GOOGLE_APPLICATION_CREDENTIALS; "
        "2) or GOOGLE_CREDENTIALS_JSON holds the key contents; "
        f"3) the Drive folder {folder_id} is shared with the service account as Editor."
    )
    if email:
        hint += f" Service account email: {email}"
    return hint


def create_app(
    settings: Settings | None = None,
    *,
    runner: Runner | None = None,
    uploader_factory: UploaderFactory | None = None,
) -> Flask:
    settings = settings or Settings.from_env()
    runner = runner or run_pipeline
    uploader_factory = uploader_factory or DriveUploader.from_settings

    app = Flask(__name__, static_folder=None)

    def _check_secret():
        if not settings.RUN_SECRET:
            return _error("Missing RUN_SECRET", 500)
        supplied = request.args.get("key", "")
        if not hmac.compare_digest(supplied.encode("utf-8"), settings.RUN_SECRET.encode("utf-8")):
            return _error("unauthorized", 401)
        return None

    def _run() -> tuple[RunContext, RunResult]:
        context = RunContext.create(settings)
        return context, runner(context)

    def _run_failure(exc: CatalogRunnerError):
        if isinstance(exc, ConfigError):
            return _error(str(exc), 500)
        if isinstance(exc, AuthError):
            return _error(f"Login failed: {exc}", 500)
        return _error(f"Failed to generate CSV files: {exc}", 500)

    @app.get("/health")
    def health() -> Response:
        return jsonify({"ok": True})

    @app.get("/run")
    def run():
        denied = _check_secret()
        if denied:
            return denied
        try:
            _, result = _run()
        except CatalogRunnerError as exc:
            return _run_failure(exc)
        except Exception as exc:
            logger.exception("Run failed unexpectedly")
            return _error(f"Failed to generate CSV files: {exc}", 500)

        key = request.args.get("key", "")
        payload = result.as_payload()
        payload["fileUrls"] = [
            url_for("files", name=exported.name, key=key, _external=True) for exported in result.files
        ]
        return jsonify(payload)

    @app.get("/files")
    def files():
        denied = _check_secret()
        if denied:
            return denied

        name = request.args.get("name", "")
        if not _CSV_NAME.match(name):
            return _error("invalid file name", 400)
        try:
            csv_dir = resolve_csv_dir(settings)
        except OSError as exc:
            logger.error("CSV directory unavailable: %s", exc)
            return _error(f"CSV directory unavailable: {exc}", 500)
        if not (csv_dir / name).is_file():
            return _error("file not found", 404)
        return send_from_directory(csv_dir, name, mimetype="text/csv", as_attachment=False)

    @app.get("/upload")
    def upload():
        denied = _check_secret()
        if denied:
            return denied

        folder_id = settings.DRIVE_FOLDER_ID
        if not folder_id:
            return _error("Missing DRIVE_FOLDER_ID", 500)

        try:
            context, result = _run()
        except CatalogRunnerError as exc:
            return _run_failure(exc)
        except Exception as exc:
            logger.exception("Run failed unexpectedly")
            return _error(f"Failed to generate CSV files: {exc}", 500)

        email = service_account_email(settings)
        diag = {
            "credsFilePath": settings.GOOGLE_CREDENTIALS_FILE,
            "credsFromEnv": bool(settings.GOOGLE_CREDENTIALS_JSON.strip()),
            "driveFolderId": folder_id,
            "serviceAccountEmail": email,
        }

        try:
            uploader = uploader_factory(settings)
        except UploadError as exc:
            context.logger.error("Drive credentials unavailable: %s", exc)
            return _error(str(exc), 500, diag=diag, hint=_upload_hint(folder_id, email))

        report = upload_outputs(context, result.files, uploader, folder_id)
        if not report.ok:
            extra: dict[str, Any] = {"uploaded": report.uploaded, "failed": report.failed, "diag": diag}
            if report.credentials_failed:
                extra["hint"] = _upload_hint(folder_id, email)
            return _error(f"{len(report.failed)} file(s) failed to upload", 500, **extra)

        return jsonify({"ok": True, "uploaded": report.uploaded, "diag": diag})

    return app


def serve(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Catalog runner - HTTP endpoints")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Port")
    parser.add_argument("--debug", action="store_true", help="Flask debug mode")
    args = parser.parse_args(argv)

    app = create_app(Settings.from_env())
    print(f"Serving on http://{args.host}:{args.port}/ (health: /health)")
    app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


if __name__ == "__main__":
    raise SystemExit(serve())
