"""OAuth2 refresh-token authentication for Amazon Cloud Drive."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

import requests
from requests import Response
from requests.exceptions import RequestException, Timeout

from clouddrive.core.logger import get_logger

from .config import (
    AcdConfig,
    load_client_id,
    load_client_secret,
    load_refresh_token,
    load_timeout,
)
from .models import DriveAuthError

LOGGER = get_logger()

TOKEN_REFRESH_MARGIN_SEC = 60.0


@dataclass(slots=True)
class TokenState:
    """Cached authentication token details."""

    value: str
    expires_at: float


class AuthClient:
    """Mint and cache bearer tokens from a long-lived refresh token."""

    def __init__(
        self,
        config: AcdConfig,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.verify = config.verify_tls
        self._session.trust_env = config.trust_env
        if config.proxies:
            self._session.proxies.update(config.proxies)
        self._lock = threading.RLock()
        self._token_state: TokenState | None = None
        self._refresh_token = load_refresh_token(config)
        self._timeout = load_timeout(config)

    @property
    def session(self) -> requests.Session:
        """Expose the session used for token retrieval."""

        return self._session

    def get_token(self, *, force_refresh: bool = False) -> str:
        """Return a cached access token, refreshing when necessary."""

        with self._lock:
            if (
                not force_refresh
                and self._token_state
                and self._token_state.expires_at - time.monotonic() > TOKEN_REFRESH_MARGIN_SEC
            ):
                return self._token_state.value
            return self._refresh_locked()

    def invalidate(self) -> None:
        """Invalidate the cached token forcing a refresh on next access."""

        with self._lock:
            self._token_state = None

    # Internal helpers -------------------------------------------------

    def _refresh_locked(self) -> str:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
            "client_id": load_client_id(self._config),
            "client_secret": load_client_secret(self._config),
        }
        try:
            response = self._session.request(
                "POST",
                self._config.auth_url,
                data=data,
                timeout=self._timeout,
            )
        except Timeout as exc:
            LOGGER.warning("acd.auth token_request_timeout", exc_info=exc)
            raise DriveAuthError("Timeout while requesting access token") from exc
        except RequestException as exc:
            LOGGER.warning("acd.auth token_request_error error=%s", type(exc).__name__, exc_info=exc)
            raise DriveAuthError("Failed to request access token") from exc

        token_state = self._parse_response(response)
        self._token_state = token_state
        LOGGER.info(
            "acd.auth token_refreshed expires_in=%.0fs",
            token_state.expires_at - time.monotonic(),
        )
        return token_state.value

    def _parse_response(self, response: Response) -> TokenState:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code != 200:
            error = payload.get("error_description") or payload.get("error") if isinstance(payload, dict) else None
            raise DriveAuthError(
                f"Token endpoint returned HTTP {response.status_code}: {error or 'no details'}",
                status_code=response.status_code,
                payload=payload if isinstance(payload, dict) else None,
            )
        if not isinstance(payload, dict):
            raise DriveAuthError("Token endpoint returned invalid JSON")

        token_value = payload.get("access_token")
        if not token_value:
            raise DriveAuthError("Token response missing access_token")
        rotated = payload.get("refresh_token")
        if rotated:
            self._refresh_token = str(rotated)
        expires_in = float(payload.get("expires_in", 3600))
        expires_at = time.monotonic() + max(TOKEN_REFRESH_MARGIN_SEC, expires_in)
        return TokenState(value=str(token_value), expires_at=expires_at)


__all__ = ["AuthClient", "TokenState"]
