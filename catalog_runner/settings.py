from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .constants import DEFAULT_BASE_URL, DEFAULT_LANG, DEFAULT_MANUFACTURERS
from .errors import ConfigError

load_dotenv()

DEFAULT_CREDENTIALS_PATH = "/etc/secrets/gcp-key.json"


def _split_list(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not raw or not raw.strip():
        return default
    items = tuple(item.strip() for item in raw.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    # Supplier API
    API_KEY: str = ""
    BASE_URL: str = DEFAULT_BASE_URL
    LANG: int = DEFAULT_LANG

    # Shared secret for the HTTP endpoints
    RUN_SECRET: str = ""

    # Google Drive upload (optional)
    DRIVE_FOLDER_ID: str = ""
    GOOGLE_CREDENTIALS_FILE: str = DEFAULT_CREDENTIALS_PATH
    GOOGLE_CREDENTIALS_JSON: str = ""

    # Output
    OUTPUT_DIR: Path = Path("output")
    TOKEN_CACHE_FILE: Optional[Path] = None
    MANUFACTURERS: Tuple[str, ...] = field(default=DEFAULT_MANUFACTURERS)

    def __post_init__(self) -> None:
        object.__setattr__(self, "OUTPUT_DIR", Path(self.OUTPUT_DIR).expanduser().resolve())
        object.__setattr__(self, "API_KEY", (self.API_KEY or "").strip())
        if self.TOKEN_CACHE_FILE is None:
            object.__setattr__(self, "TOKEN_CACHE_FILE", self.OUTPUT_DIR / "cache" / "token.json")
        else:
            object.__setattr__(self, "TOKEN_CACHE_FILE", Path(self.TOKEN_CACHE_FILE).expanduser())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        lang_raw = env.get("NATURALSYSTEMS_LANG", "").strip()
        try:
            lang = int(lang_raw) if lang_raw else DEFAULT_LANG
        except ValueError as exc:
            raise ConfigError(f"NATURALSYSTEMS_LANG must be an integer, got {lang_raw!r}") from exc
        token_cache = env.get("CATALOG_TOKEN_CACHE", "").strip()
        return cls(
            API_KEY=env.get("NATURALSYSTEMS_API_KEY", ""),
            BASE_URL=env.get("NATURALSYSTEMS_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            LANG=lang,
            RUN_SECRET=env.get("RUN_SECRET", ""),
            DRIVE_FOLDER_ID=env.get("DRIVE_FOLDER_ID", "").strip(),
            GOOGLE_CREDENTIALS_FILE=env.get("GOOGLE_APPLICATION_CREDENTIALS", "").strip() or DEFAULT_CREDENTIALS_PATH,
            GOOGLE_CREDENTIALS_JSON=env.get("GOOGLE_CREDENTIALS_JSON", ""),
            OUTPUT_DIR=Path(env.get("CATALOG_OUTPUT_DIR", "").strip() or "output"),
            TOKEN_CACHE_FILE=Path(token_cache) if token_cache else None,
            MANUFACTURERS=_split_list(env.get("CATALOG_MANUFACTURERS"), DEFAULT_MANUFACTURERS),
        )

    def require(self, *names: str) -> None:
        """Raise :class:`ConfigError` naming every empty setting in ``names``."""

        missing = [name for name in names if not str(getattr(self, name, "") or "").strip()]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    @property
    def csv_dir(self) -> Path:
        return self.OUTPUT_DIR / "csv"

    @property
    def log_dir(self) -> Path:
        return self.OUTPUT_DIR / "logs"

    @property
    def dashboard_dir(self) -> Path:
        return self.OUTPUT_DIR / "dashboard"
