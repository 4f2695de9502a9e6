from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

import pytest

from clouddrive.services.acd.auth import AuthClient
from clouddrive.services.acd.client import CloudDriveClient
from clouddrive.services.acd.config import AcdConfig, RetryConfig
from clouddrive.services.acd.http import HttpClient

METADATA_URL = "https://drive.amazonaws.com/drive/v1/"
CONTENT_URL = "https://content-na.drive.amazonaws.com/cdproxy/"
TOKEN_RESPONSE = {"access_token": "token", "refresh_token": "refresh2", "expires_in": 3600, "token_type": "bearer"}


@dataclass
class MockResponse:
    status_code: int = 200
    json_data: Any = None
    text_data: str | None = None
    body: bytes | None = None
    headers: dict[str, str] | None = None

    def json(self) -> Any:
        if self.json_data is None:
            if self.text_data is not None:
                return json.loads(self.text_data)
            raise ValueError("JSON body not set")
        return self.json_data

    @property
    def content(self) -> bytes:
        if self.body is not None:
            return self.body
        if self.json_data is not None:
            return json.dumps(self.json_data).encode("utf-8")
        if self.text_data is not None:
            return self.text_data.encode("utf-8")
        return b""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def __post_init__(self) -> None:
        if self.headers is None:
            self.headers = {}

    def __enter__(self) -> "MockResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False

    def iter_content(self, chunk_size: int = 8192):
        data = self.content
        for idx in range(0, len(data), chunk_size):
            yield data[idx : idx + chunk_size]


class FakeSession:
    def __init__(self, responses: list[MockResponse]) -> None:
        self._responses = responses
        self.headers: dict[str, str] = {}
        self.verify = True
        self.trust_env = False
        self.proxies: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.call_kwargs: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> MockResponse:
        if not self._responses:
            raise AssertionError(f"No more responses queued for {method} {url}")
        data = kwargs.get("data")
        if data is not None and not isinstance(data, (bytes, str, dict)):
            # Drain streamed bodies the way requests would while sending.
            kwargs["body"] = b"".join(data)
        self.calls.append((method, url))
        self.call_kwargs.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def api_calls(self) -> list[tuple[str, str]]:
        """Calls made to the drive endpoints, excluding token requests."""

        return [call for call in self.calls if "/auth/o2/token" not in call[1]]

    @property
    def api_kwargs(self) -> list[dict[str, Any]]:
        return [kw for call, kw in zip(self.calls, self.call_kwargs) if "/auth/o2/token" not in call[1]]

    def close(self) -> None:
        self.closed = True


def _as_response(item: Any) -> Any:
    if isinstance(item, (MockResponse, Exception)):
        return item
    if isinstance(item, tuple):
        status, payload = item
        return MockResponse(status_code=status, json_data=payload)
    return MockResponse(json_data=item)


def build_config(**overrides: Any) -> AcdConfig:
    values: dict[str, Any] = {
        "client_id": "cid",
        "client_secret": "secret",
        "refresh_token": "refresh",
        "timeout_sec": 1.0,
        "chunk_size": 4,
        "retries": RetryConfig(max_attempts=1, backoff_ms=1, max_backoff_ms=1),
    }
    values.update(overrides)
    return AcdConfig(**values)


ClientFactory = Callable[..., "tuple[CloudDriveClient, FakeSession]"]


@pytest.fixture
def mock_response() -> type[MockResponse]:
    return MockResponse


@pytest.fixture
def make_client() -> ClientFactory:
    """Build a client whose session replays the given responses in order.

    Dicts and lists become 200 JSON responses, ``(status, payload)`` tuples
    set the status. A token response is queued first unless disabled.
    """

    clients: list[CloudDriveClient] = []

    def _make(responses: list[Any], *, with_token: bool = True, **config_overrides: Any):
        queued = [_as_response(item) for item in responses]
        if with_token:
            queued.insert(0, MockResponse(json_data=TOKEN_RESPONSE))
        config = build_config(**config_overrides)
        session = FakeSession(queued)
        auth = AuthClient(config, session=session)
        http_client = HttpClient(config, session=session, auth_client=auth)
        client = CloudDriveClient(config, http_client=http_client)
        clients.append(client)
        return client, session

    yield _make

    for client in clients:
        client.close()
