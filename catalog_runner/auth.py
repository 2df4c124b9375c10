"""Login and bearer token caching."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from .client import ApiClient
from .constants import LOGIN_PATH, TOKEN_SAFETY_MARGIN_HOURS, TOKEN_VALIDITY_HOURS
from .errors import AuthError, snippet
from .models import AuthToken

logger = logging.getLogger(__name__)

# Checked in order; a dotted path descends into nested objects.
TOKEN_PATHS: Tuple[str, ...] = (
    "token",
    "access_token",
    "accessToken",
    "data.token",
    "data.access_token",
    "data.accessToken",
    "result.token",
)

_API_KEY_STRIP = "\"' \t\n\r"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_token(payload: Any) -> Optional[str]:
    """Return the first non-empty token found in a login response."""

    if not isinstance(payload, dict):
        return None
    for path in TOKEN_PATHS:
        value: Any = payload
        for part in path.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@dataclass(slots=True)
class TokenCache:
    """JSON file holding the last issued token and its expiry."""

    path: Path

    def load(self) -> Optional[AuthToken]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AuthToken.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable token cache %s: %s", self.path, exc)
            return None

    def store(self, token: AuthToken) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(token.to_dict()), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write token cache %s: %s", self.path, exc)


@dataclass(slots=True)
class Authenticator:
    """Exchange the API key for a bearer token, reusing cached tokens."""

    client: ApiClient
    api_key: str
    cache: Optional[TokenCache] = None
    validity: timedelta = timedelta(hours=TOKEN_VALIDITY_HOURS)
    safety_margin: timedelta = timedelta(hours=TOKEN_SAFETY_MARGIN_HOURS)
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)
    _current: Optional[AuthToken] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.api_key = (self.api_key or "").strip(_API_KEY_STRIP)

    def get_token(self, force_refresh: bool = False) -> str:
        """Return a usable bearer token.

        A cached token is reused while ``now < expires_at``.  ``force_refresh``
        skips the cache, which is what callers do after a 401.
        """

        now = self.clock()
        if not force_refresh:
            cached = self._current or (self.cache.load() if self.cache else None)
            if cached is not None and cached.is_valid(now):
                self._current = cached
                logger.debug("Reusing cached token valid until %s", cached.expires_at.isoformat())
                return cached.token

        token = self._login(now)
        self._current = token
        if self.cache is not None:
            self.cache.store(token)
        return token.token

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _login(self, now: datetime) -> AuthToken:
        if not self.api_key:
            raise AuthError("API key must be provided for login.")

        logger.info("Login: requesting a new token")
        response = self.client.post(LOGIN_PATH, json_body={"apiKey": self.api_key})
        if response.status != 200 or not isinstance(response.payload, dict):
            raise AuthError(f"Login failed (HTTP {response.status}): {snippet(response.text)}")

        token = extract_token(response.payload)
        if token is None:
            raise AuthError("Token not found in login response.")

        expires_at = now + (self.validity - self.safety_margin)
        logger.info("Login OK, token valid until %s", expires_at.isoformat())
        return AuthToken(token=token, expires_at=expires_at)
