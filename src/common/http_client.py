"""Shared HTTP client used by the registry, index and preload layers.

Wraps a ``requests.Session`` bound to a base URL and exposes the two
capabilities the core needs: ``get(path) -> bytes`` and
``head_exists(path) -> bool``. Transport failures and non-success statuses
surface as ``TransportError`` so callers decide whether they are fatal.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from constants import Constants
from common.errors import TransportError
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


class HTTPClient:
    """Minimal HTTP client bound to a single base URL."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
        pool_size: Optional[int] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Scheme and host (optionally a path prefix) requests are made against.
            timeout: Request timeout in seconds; defaults to Constants.REQUEST_TIMEOUT.
            session: Optional preconfigured session (connection pooling, adapters).
            headers: Extra default headers sent with every request.
            pool_size: Connections kept per host; set it to the number of threads
                sharing this client. Defaults to the requests adapter default (10).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout if timeout is not None else Constants.REQUEST_TIMEOUT
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = Constants.USER_AGENT
        if headers:
            self._session.headers.update(headers)
        if pool_size is not None:
            adapter = HTTPAdapter(pool_maxsize=pool_size)
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)

    def url_for(self, path: str) -> str:
        """Build the absolute URL for ``path``; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def get(self, path: str) -> bytes:
        """GET ``path`` and return the raw body.

        Raises:
            TransportError: On connection failure, timeout or a non-2xx status.
        """
        response = self._request("GET", path)
        if not response.ok:
            raise TransportError(
                f"GET {safe_url(response.url or self.url_for(path))} returned {response.status_code}",
                url=self.url_for(path),
                status_code=response.status_code,
            )
        return response.content

    def head_exists(self, path: str) -> bool:
        """HEAD ``path`` and report whether the server answered with a 2xx status.

        Raises:
            TransportError: On connection failure or timeout.
        """
        response = self._request("HEAD", path)
        return response.ok

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, method: str, path: str) -> requests.Response:
        url = self.url_for(path)
        safe_target = safe_url(url)
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action=method,
                        target=safe_target,
                    ),
                )
            try:
                response = self._session.request(
                    method, url, timeout=self._timeout, allow_redirects=True
                )
            except requests.Timeout as exc:
                logger.error("%s %s timed out after %s seconds", method, safe_target, self._timeout)
                raise TransportError(
                    f"{method} {safe_target} timed out after {self._timeout} seconds", url=url
                ) from exc
            except requests.RequestException as exc:  # includes ConnectionError
                logger.error("%s %s connection error: %s", method, safe_target, exc)
                raise TransportError(f"{method} {safe_target} failed: {exc}", url=url) from exc

            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action=method,
                        outcome="success" if response.ok else "error_status",
                        status_code=response.status_code,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                    ),
                )
            return response
