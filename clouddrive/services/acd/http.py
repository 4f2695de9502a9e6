"""HTTP transport for the Cloud Drive metadata and content endpoints."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, MutableMapping
from urllib.parse import urljoin

import requests
from requests import Response
from requests.exceptions import ConnectionError, RequestException, Timeout

from clouddrive.core.logger import get_logger

from .auth import AuthClient
from .config import AcdConfig, load_content_url, load_metadata_url, load_retry_config, load_timeout
from .models import DriveAuthError, DriveDecodeError, DriveNotFound, DriveRequestError, DriveRetryableError

LOGGER = get_logger()

USER_AGENT = "clouddrive/0.1"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(slots=True)
class RequestDiagnostics:
    """Captured diagnostics for troubleshooting."""

    method: str
    url: str
    status: int | None = None
    request_id: str | None = None


class HttpClient:
    """Request helper wrapping bearer auth, status mapping and diagnostics."""

    def __init__(
        self,
        config: AcdConfig,
        *,
        session: requests.Session | None = None,
        auth_client: AuthClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.verify = config.verify_tls
        self._session.trust_env = config.trust_env
        if config.proxies:
            self._session.proxies.update(config.proxies)
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._auth = auth_client or AuthClient(config, session=self._session)
        self._logger = logger or LOGGER
        self._retry_config = load_retry_config(config)
        self._timeout = load_timeout(config)
        self._metadata_url = load_metadata_url(config)
        self._content_url = load_content_url(config)

    @property
    def session(self) -> requests.Session:
        """Expose the reusable session (needed for streaming downloads)."""

        return self._session

    @property
    def auth_client(self) -> AuthClient:
        """Return the authentication helper used by this client."""

        return self._auth

    def use_endpoints(self, *, metadata_url: str | None = None, content_url: str | None = None) -> None:
        """Point subsequent requests at customer specific endpoints."""

        if metadata_url:
            self._metadata_url = metadata_url if metadata_url.endswith("/") else f"{metadata_url}/"
        if content_url:
            self._content_url = content_url if content_url.endswith("/") else f"{content_url}/"

    def request_metadata(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, object] | None = None,
        json_body: Mapping[str, object] | None = None,
        expected_status: Iterable[int] = (200,),
    ) -> Response:
        """Perform a request against the metadata endpoint."""

        return self._request(
            method,
            urljoin(self._metadata_url, path),
            params=params,
            json_body=json_body,
            expected_status=expected_status,
        )

    def request_content(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, object] | None = None,
        data: object | None = None,
        expected_status: Iterable[int] = (200,),
        stream: bool = False,
    ) -> Response:
        """Perform a request against the content endpoint.

        Request bodies given as iterators are sent once; such requests are
        never retried.
        """

        return self._request(
            method,
            urljoin(self._content_url, path),
            headers=headers,
            params=params,
            data=data,
            stream=stream,
            expected_status=expected_status,
            allow_retry=data is None,
        )

    def get_json(self, path: str, *, params: Mapping[str, object] | None = None) -> tuple[Any, Response]:
        """GET a metadata resource and decode its JSON body."""

        response = self.request_metadata("GET", path, params=params)
        return decode_json(response), response

    # Internal helpers -------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, object] | None = None,
        json_body: Mapping[str, object] | None = None,
        data: object | None = None,
        stream: bool = False,
        expected_status: Iterable[int],
        allow_retry: bool = True,
    ) -> Response:
        attempts = self._retry_config.max_attempts if allow_retry else 1
        base_backoff = max(0.05, self._retry_config.backoff_ms / 1000.0)
        max_backoff = max(base_backoff, self._retry_config.max_backoff_ms / 1000.0)
        expected = tuple(expected_status)
        refreshed = False
        attempt = 0

        while True:
            attempt += 1
            request_headers: MutableMapping[str, str] = dict(headers or {})
            request_headers["Authorization"] = f"Bearer {self._auth.get_token()}"
            diagnostics = RequestDiagnostics(method=method, url=self._redact_url(url))

            try:
                response = self._session.request(
                    method,
                    url,
                    headers=request_headers,
                    params={k: v for k, v in (params or {}).items() if v is not None},
                    json=json_body,
                    data=data,
                    timeout=self._timeout,
                    stream=stream,
                )
            except Timeout as exc:
                self._logger.warning(
                    "acd.http timeout method=%s url=%s attempt=%d",
                    diagnostics.method,
                    diagnostics.url,
                    attempt,
                )
                error: DriveRetryableError = DriveRetryableError("Request timed out", payload={"url": diagnostics.url})
                if attempt < attempts:
                    self._sleep_with_backoff(base_backoff, max_backoff, attempt)
                    continue
                raise error from exc
            except (ConnectionError, RequestException) as exc:
                self._logger.warning(
                    "acd.http connection_error method=%s url=%s attempt=%d error=%s",
                    diagnostics.method,
                    diagnostics.url,
                    attempt,
                    type(exc).__name__,
                )
                error = DriveRetryableError("Request failed", payload={"url": diagnostics.url})
                if attempt < attempts:
                    self._sleep_with_backoff(base_backoff, max_backoff, attempt)
                    continue
                raise error from exc

            status = response.status_code
            diagnostics.status = status
            diagnostics.request_id = response.headers.get("x-amzn-RequestId")
            self._logger.debug(
                "acd.http response method=%s url=%s status=%d request_id=%s",
                diagnostics.method,
                diagnostics.url,
                status,
                diagnostics.request_id,
            )
            if status in expected:
                return response

            payload = self._safe_json(response)
            if status == 401 and not refreshed and allow_retry:
                # Bearer tokens expire server side before our cached expiry; refresh once.
                self._auth.invalidate()
                refreshed = True
                attempt -= 1
                self._logger.info(
                    "acd.http unauthorized method=%s url=%s -- refreshing token",
                    diagnostics.method,
                    diagnostics.url,
                )
                continue
            if status in (401, 403):
                raise DriveAuthError(self._message(payload, "Unauthorized"), status_code=status, payload=payload)
            if status == 404:
                raise DriveNotFound(self._message(payload, "Resource not found"), status_code=status, payload=payload)
            if status in RETRYABLE_STATUS:
                self._logger.warning(
                    "acd.http retryable_status method=%s url=%s status=%d attempt=%d",
                    diagnostics.method,
                    diagnostics.url,
                    status,
                    attempt,
                )
                if attempt < attempts:
                    self._sleep_with_backoff(base_backoff, max_backoff, attempt)
                    continue
                raise DriveRetryableError(
                    self._message(payload, "Retryable response"),
                    status_code=status,
                    payload=payload,
                )
            raise DriveRequestError(
                self._message(payload, f"Unexpected status {status}"),
                status_code=status,
                payload=payload,
            )

    def _redact_url(self, url: str) -> str:
        if "?" in url:
            return url.split("?")[0]
        return url

    def _sleep_with_backoff(self, base: float, maximum: float, attempt: int) -> None:
        delay = min(maximum, base * (2 ** (attempt - 1)))
        jitter = random.uniform(0, delay / 2)
        time.sleep(delay + jitter)

    def _safe_json(self, response: Response) -> dict[str, object]:
        try:
            payload = response.json()
        except ValueError:
            text = response.text
            if len(text) > 200:
                text = text[:200] + "..."
            return {"body": text}
        if isinstance(payload, dict):
            return payload
        return {"body": payload}

    @staticmethod
    def _message(payload: Mapping[str, object], fallback: str) -> str:
        message = payload.get("message") or payload.get("logref")
        return f"{fallback}: {message}" if message else fallback


def decode_json(response: Response) -> Any:
    """Decode a response body, mapping malformed JSON to ``DriveDecodeError``."""

    try:
        return response.json()
    except ValueError as exc:
        text = response.text
        if len(text) > 200:
            text = text[:200] + "..."
        raise DriveDecodeError("Response body is not valid JSON", payload={"body": text}) from exc


__all__ = ["HttpClient", "decode_json", "USER_AGENT"]
