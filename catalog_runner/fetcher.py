"""Retrieval of the raw datasets from the Natural Systems API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .auth import Authenticator
from .client import ApiClient, ApiResponse
from .constants import (
    CATALOG_BACKOFF_SECONDS,
    CATALOG_MAX_ATTEMPTS,
    CATALOG_PATH,
    DEFAULT_LANG,
    PRICES_PATH,
    STOCK_PATH,
    UNITS_PATH,
    WHOLESALE_CSV_PATH,
)
from .errors import DataFormatError, FetchError, UnauthorizedError
from .models import RawDatasets
from .parser import CATALOG_WRAPPER_KEYS, parse_csv_rows, unwrap_records
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

_CSV_ACCEPT = "text/csv,*/*;q=0.8"


def _endpoint_name(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


@dataclass(slots=True)
class _RefreshState:
    """Whether one dataset fetch has already forced a token refresh."""

    refreshed: bool = False


def _default_catalog_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=CATALOG_MAX_ATTEMPTS, backoff=CATALOG_BACKOFF_SECONDS)


@dataclass(slots=True)
class DatasetFetcher:
    """Fetch the catalog, stock, unit, price and wholesale datasets.

    Every request carries the bearer token from ``authenticator``.  A 401
    triggers one forced token refresh and one repeat of the request; a second
    401 raises :class:`UnauthorizedError`.  Only the catalog endpoint is
    retried on other failures, through ``catalog_retry``.
    """

    client: ApiClient
    authenticator: Authenticator
    lang: int = DEFAULT_LANG
    catalog_retry: RetryPolicy = field(default_factory=_default_catalog_retry)
    retry: RetryPolicy = field(default_factory=RetryPolicy.once)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def fetch_catalog(self) -> List[Dict[str, Any]]:
        # The upstream reads ``lang`` from the JSON body of this GET request.
        state = _RefreshState()
        return self.catalog_retry.run(
            lambda: self._fetch_records(
                CATALOG_PATH,
                json_body={"lang": self.lang},
                extra_keys=CATALOG_WRAPPER_KEYS,
                state=state,
            ),
            _endpoint_name(CATALOG_PATH),
        )

    def fetch_stock(self) -> List[Dict[str, Any]]:
        return self.retry.run(lambda: self._fetch_records(STOCK_PATH), _endpoint_name(STOCK_PATH))

    def fetch_units(self) -> List[Dict[str, Any]]:
        return self.retry.run(lambda: self._fetch_records(UNITS_PATH), _endpoint_name(UNITS_PATH))

    def fetch_prices(self) -> List[Dict[str, Any]]:
        return self.retry.run(lambda: self._fetch_records(PRICES_PATH), _endpoint_name(PRICES_PATH))

    def fetch_wholesale(self) -> List[Dict[str, Optional[str]]]:
        return self.retry.run(self._fetch_wholesale_rows, _endpoint_name(WHOLESALE_CSV_PATH))

    def fetch_all(self) -> RawDatasets:
        datasets = RawDatasets(
            catalog=self.fetch_catalog(),
            stock=self.fetch_stock(),
            units=self.fetch_units(),
            prices=self.fetch_prices(),
            wholesale=self.fetch_wholesale(),
        )
        logger.info("Fetched datasets: %s", datasets.counts())
        return datasets

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _authorized_get(self, path: str, state: Optional[_RefreshState] = None, **kwargs: Any) -> ApiResponse:
        """GET ``path`` with the bearer token.

        ``state`` spans every retry attempt of one fetch, so a 401 after an
        earlier forced refresh is fatal.
        """

        state = state if state is not None else _RefreshState()
        endpoint = _endpoint_name(path)
        response = self.client.get(path, token=self.authenticator.get_token(), **kwargs)
        if response.status != 401:
            return response
        if state.refreshed:
            raise UnauthorizedError(endpoint)

        logger.warning("%s returned 401; refreshing token and retrying once", endpoint)
        state.refreshed = True
        token = self.authenticator.get_token(force_refresh=True)
        response = self.client.get(path, token=token, **kwargs)
        if response.status == 401:
            raise UnauthorizedError(endpoint)
        return response

    def _fetch_records(
        self,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        extra_keys: Sequence[str] = (),
        state: Optional[_RefreshState] = None,
    ) -> List[Dict[str, Any]]:
        endpoint = _endpoint_name(path)
        response = self._authorized_get(path, state, json_body=json_body)
        if response.status != 200:
            raise FetchError(endpoint, response.status, response.text)
        if response.payload is None:
            raise DataFormatError(endpoint, response.text, reason="response is not JSON")

        records = unwrap_records(response.payload, endpoint, extra_keys=extra_keys, body=response.text)
        logger.info("%s: %d records", endpoint, len(records))
        return records

    def _fetch_wholesale_rows(self) -> List[Dict[str, Optional[str]]]:
        endpoint = _endpoint_name(WHOLESALE_CSV_PATH)
        response = self._authorized_get(WHOLESALE_CSV_PATH, accept=_CSV_ACCEPT)
        if response.status != 200:
            raise FetchError(endpoint, response.status, response.text)
        if not response.text.strip():
            raise DataFormatError(endpoint, response.text, reason="empty CSV body")
        if response.payload is not None or response.text.lstrip().startswith("<"):
            raise DataFormatError(endpoint, response.text, reason="expected CSV text")

        rows = parse_csv_rows(response.text)
        logger.info("%s: %d rows", endpoint, len(rows))
        return rows
