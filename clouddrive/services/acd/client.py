"""Primary client implementation for Amazon Cloud Drive."""

from __future__ import annotations

import logging

from clouddrive.core.logger import get_logger

from .account import AccountService
from .auth import AuthClient
from .config import AcdConfig, resolve_config
from .http import HttpClient
from .nodes import NodesService

LOGGER = get_logger()


class CloudDriveClient:
    """Entry point wiring transport, authentication and the API services.

    ``nodes`` lists, navigates and transfers files and folders; ``account``
    reads account info, quota and usage.
    """

    def __init__(
        self,
        config: AcdConfig,
        *,
        http_client: HttpClient | None = None,
        auth: AuthClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._logger = logger or LOGGER
        if http_client is None:
            self._http = HttpClient(config, auth_client=auth, logger=self._logger)
        else:
            self._http = http_client
        self.nodes = NodesService(config, self._http, logger=self._logger)
        self.account = AccountService(self._http, logger=self._logger)

    @classmethod
    def from_profile(cls, profile_name: str | None = None) -> "CloudDriveClient":
        """Instantiate a client from ``profiles.yaml`` or, without a profile, the environment."""

        config = resolve_config(profile_name)
        return cls(config)

    @property
    def config(self) -> AcdConfig:
        return self._config

    def discover_endpoints(self) -> None:
        """Switch to the customer specific endpoints reported by the account API."""

        endpoint = self.account.get_endpoint()
        self._http.use_endpoints(metadata_url=endpoint.metadata_url, content_url=endpoint.content_url)
        self._logger.info(
            "acd.client endpoints_discovered metadata_url=%s content_url=%s",
            endpoint.metadata_url,
            endpoint.content_url,
        )

    def close(self) -> None:
        """Release the underlying HTTP session."""

        self._http.session.close()

    def __enter__(self) -> "CloudDriveClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["CloudDriveClient"]
