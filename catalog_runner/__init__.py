"""High level package exports for the catalog runner."""

from .auth import Authenticator, TokenCache, extract_token
from .client import ApiClient, ApiResponse
from .constants import DEFAULT_BASE_URL, DEFAULT_MANUFACTURERS, EXPORT_COLUMNS
from .errors import (
    AuthError,
    CatalogRunnerError,
    ConfigError,
    CredentialsError,
    DataFormatError,
    FetchError,
    NetworkError,
    UnauthorizedError,
    UploadError,
    WriteError,
)
from .exporter import ExportedFile, export_by_group, export_by_manufacturer, render_dashboard
from .fetcher import DatasetFetcher
from .merge import kg_to_grams, merge_records, select_unit_row
from .models import AuthToken, MergedRecord, RawDatasets, UnitRow
from .parser import normalize_decimal, parse_csv_rows, unwrap_records
from .retry import RetryPolicy

__all__ = [
    "ApiClient",
    "ApiResponse",
    "Authenticator",
    "TokenCache",
    "extract_token",
    "DatasetFetcher",
    "RetryPolicy",
    "merge_records",
    "select_unit_row",
    "kg_to_grams",
    "normalize_decimal",
    "parse_csv_rows",
    "unwrap_records",
    "export_by_group",
    "export_by_manufacturer",
    "render_dashboard",
    "ExportedFile",
    "AuthToken",
    "MergedRecord",
    "RawDatasets",
    "UnitRow",
    "DEFAULT_BASE_URL",
    "DEFAULT_MANUFACTURERS",
    "EXPORT_COLUMNS",
    "CatalogRunnerError",
    "ConfigError",
    "AuthError",
    "NetworkError",
    "FetchError",
    "DataFormatError",
    "UnauthorizedError",
    "WriteError",
    "UploadError",
    "CredentialsError",
]
