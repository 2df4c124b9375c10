"""HTTP client for the Natural Systems API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urljoin

import requests

from .constants import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .errors import NetworkError

logger = logging.getLogger(__name__)

_DEFAULT_USER_AGENT = "catalog-runner/1.0 (+python-requests)"


@dataclass(slots=True)
class ApiResponse:
    """Status and body of a completed request.

    ``payload`` holds the decoded JSON body, or ``None`` when the body is empty
    or is not JSON (the CSV endpoint, HTML error pages and so on).
    """

    status: int
    text: str
    url: str = ""
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.status == 200


@dataclass(slots=True)
class ApiClient:
    """Thin wrapper around a :class:`requests.Session` bound to one base URL."""

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = _DEFAULT_USER_AGENT
    timeout: Tuple[float, float] = DEFAULT_TIMEOUT
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.user_agent.strip():
            self.user_agent = _DEFAULT_USER_AGENT
        if not self.base_url.endswith("/"):
            self.base_url = f"{self.base_url}/"
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent})

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        accept: str = "application/json",
    ) -> ApiResponse:
        """Send a request and return its status and body.

        ``json_body`` is sent for every method, GET included; the catalog
        endpoint reads its language parameter from the body of a GET.
        Non-2xx responses are returned as-is, only transport failures raise.
        """

        method = method.upper()
        url = self._url(path)
        headers = {"Accept": accept}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                params=params or None,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise NetworkError(f"Network error during {method} {path}: {exc}") from exc

        text = response.text or ""
        payload = _decode_json(text)
        logger.info("%s %s -> %d (%s)", method, url, response.status_code, "json" if payload is not None else "text")
        return ApiResponse(status=response.status_code, text=text, url=url, payload=payload)

    def get(self, path: str, **kwargs: Any) -> ApiResponse:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> ApiResponse:
        return self.request("POST", path, **kwargs)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))


def _decode_json(text: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None
