"""Account related resources of the Cloud Drive API.

See: https://developer.amazon.com/public/apis/experience/cloud-drive/content/account
"""

from __future__ import annotations

import logging

from clouddrive.core.logger import get_logger

from .http import HttpClient
from .models import AccountEndpoint, AccountInfo, AccountQuota, AccountUsage

LOGGER = get_logger()


class AccountService:
    """Fetch the singleton account resources (info, quota, usage, endpoints)."""

    def __init__(self, http_client: HttpClient, *, logger: logging.Logger | None = None) -> None:
        self._http = http_client
        self._logger = logger or LOGGER

    def get_info(self) -> AccountInfo:
        """Return the account status and the accepted terms of use."""

        payload, _ = self._http.get_json("account/info")
        return AccountInfo.from_json(payload)

    def get_quota(self) -> AccountQuota:
        """Return the account quota and storage availability."""

        payload, _ = self._http.get_json("account/quota")
        return AccountQuota.from_json(payload)

    def get_usage(self) -> AccountUsage:
        """Return account usage broken down by content category."""

        payload, _ = self._http.get_json("account/usage")
        return AccountUsage.from_json(payload)

    def get_endpoint(self) -> AccountEndpoint:
        """Return the metadata and content endpoints assigned to the customer."""

        payload, _ = self._http.get_json("account/endpoint")
        endpoint = AccountEndpoint.from_json(payload)
        self._logger.debug(
            "acd.account endpoint metadata_url=%s content_url=%s",
            endpoint.metadata_url,
            endpoint.content_url,
        )
        return endpoint


__all__ = ["AccountService"]
