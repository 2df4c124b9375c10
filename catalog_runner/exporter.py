"""CSV export per manufacturer and the HTML run dashboard."""

from __future__ import annotations

import csv
import html
import json
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import EXPORT_COLUMNS
from .errors import WriteError
from .models import MergedRecord
from .utils import collapse_whitespace, sanitize_filename_part, union_fieldnames

logger = logging.getLogger(__name__)

Columns = Sequence[Tuple[str, str]]
GroupKey = Callable[[MergedRecord], Any]

DASHBOARD_FILENAME = "index.html"


@dataclass(slots=True)
class ExportedFile:
    """A CSV written for one group."""

    path: Path
    group: str
    rows: int

    @property
    def name(self) -> str:
        return self.path.name


def group_filename(group: str) -> str:
    return f"brand_{sanitize_filename_part(group)}.csv"


def format_cell(value: Any) -> Any:
    """Prepare a value for a CSV cell."""

    if value is None:
        return ""
    if isinstance(value, str):
        return collapse_whitespace(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return value


def ensure_writable_dir(path: Path, fallback_name: str) -> Path:
    """Create ``path``; fall back to ``<tmp>/<fallback_name>`` when that fails."""

    try:
        path.mkdir(parents=True, exist_ok=True)
        probe = tempfile.NamedTemporaryFile(dir=path, prefix=".probe-", delete=True)
        probe.close()
        return path
    except OSError as exc:
        fallback = Path(tempfile.gettempdir()) / fallback_name
        logger.warning("No write access to %s (%s); using %s", path, exc, fallback)
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def write_group_csv(path: Path, records: Sequence[MergedRecord], columns: Columns = EXPORT_COLUMNS) -> None:
    """Write ``records`` to ``path`` using the ``(attribute, header)`` pairs in ``columns``."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow([header for _, header in columns])
            for record in records:
                writer.writerow([format_cell(getattr(record, attribute, None)) for attribute, _ in columns])
    except OSError as exc:
        raise WriteError(f"Cannot write {path}: {exc}") from exc


def export_by_group(
    records: Iterable[MergedRecord],
    group_key: GroupKey,
    groups: Sequence[str],
    output_dir: Path,
    *,
    columns: Columns = EXPORT_COLUMNS,
) -> List[ExportedFile]:
    """Write one CSV per entry of ``groups``.

    ``group_key(record)`` is compared to each group name case-insensitively,
    ignoring surrounding whitespace.  A group with no matching records still
    gets a header-only file.  A group whose file cannot be written is logged
    and left out of the result.
    """

    output_dir = Path(output_dir)
    buckets: Dict[str, List[MergedRecord]] = {group.strip().casefold(): [] for group in groups}
    for record in records:
        value = group_key(record)
        if value is None:
            continue
        bucket = buckets.get(str(value).strip().casefold())
        if bucket is not None:
            bucket.append(record)

    written: List[ExportedFile] = []
    for group in groups:
        rows = buckets[group.strip().casefold()]
        path = output_dir / group_filename(group)
        try:
            write_group_csv(path, rows, columns)
        except WriteError as exc:
            logger.error("Skipping %s: %s", group, exc)
            continue
        written.append(ExportedFile(path=path, group=group, rows=len(rows)))
        logger.info("CSV: %s (%d rows)", path, len(rows))
    return written


def export_by_manufacturer(
    records: Iterable[MergedRecord],
    manufacturers: Sequence[str],
    output_dir: Path,
    *,
    columns: Columns = EXPORT_COLUMNS,
) -> List[ExportedFile]:
    return export_by_group(records, lambda record: record.manufacturer, manufacturers, output_dir, columns=columns)


def write_merged_csv(path: Path, records: Sequence[MergedRecord]) -> int:
    """Dump every merged record, every catalog attribute included, to one CSV."""

    rows = [record.as_flat_dict() for record in records]
    fieldnames = union_fieldnames(rows)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames, restval="")
            writer.writeheader()
            for row in rows:
                writer.writerow({key: format_cell(value) for key, value in row.items()})
    except OSError as exc:
        raise WriteError(f"Cannot write {path}: {exc}") from exc
    return len(rows)


def render_dashboard(
    files: Sequence[ExportedFile],
    dashboard_dir: Path,
    run_id: str,
    *,
    generated_at: Optional[datetime] = None,
) -> Optional[Path]:
    """Write a static ``index.html`` listing the generated CSV files."""

    generated_at = generated_at or datetime.now(timezone.utc)
    items = "".join(
        "<tr><td><code>{name}</code></td><td>{group}</td><td>{rows}</td></tr>".format(
            name=html.escape(exported.name),
            group=html.escape(exported.group),
            rows=exported.rows,
        )
        for exported in files
    )
    document = (
        "<!doctype html><html><head><meta charset='utf-8'><title>Catalog Runner</title></head><body>"
        "<h1>Generated CSV files</h1>"
        "<table><thead><tr><th>File</th><th>Manufacturer</th><th>Rows</th></tr></thead>"
        f"<tbody>{items}</tbody></table>"
        f"<p>Run: <span class='run-id'>{html.escape(run_id)}</span></p>"
        f"<p>Generated: <time>{html.escape(generated_at.isoformat(timespec='seconds'))}</time></p>"
        "</body></html>"
    )

    path = Path(dashboard_dir) / DASHBOARD_FILENAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document, encoding="utf-8")
    except OSError as exc:
        logger.error("%s", WriteError(f"Cannot write dashboard {path}: {exc}"))
        return None
    logger.info("Dashboard: %s", path)
    return path
