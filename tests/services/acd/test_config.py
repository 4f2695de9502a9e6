from __future__ import annotations

from pathlib import Path

import pytest

from clouddrive.core.errors import ConfigError
from clouddrive.services.acd.config import (
    DEFAULT_CONTENT_URL,
    AcdConfig,
    RetryConfig,
    load_chunk_size,
    load_retry_config,
    resolve_config,
)

PROFILES_YAML = """
acd:
  default:
    client_id: amzn1.application-oa2-client.abc
    client_secret: ${ACD_TEST_SECRET}
    refresh_token: Atzr|refresh
    metadata_url: https://cdws.example.com/drive/v1
    timeout_sec: 12
    chunk_size: 1024
    retries:
      max_attempts: 3
      backoff_ms: 50
  broken: not-a-mapping
"""


@pytest.fixture
def profiles_file(tmp_path: Path) -> Path:
    path = tmp_path / "profiles.yaml"
    path.write_text(PROFILES_YAML, encoding="utf-8")
    return path


def test_from_profile_reads_acd_section(profiles_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACD_TEST_SECRET", "s3cret")

    config = AcdConfig.from_profile("default", config_path=profiles_file)

    assert config.client_secret == "s3cret"
    assert config.metadata_url == "https://cdws.example.com/drive/v1/"
    assert config.content_url == DEFAULT_CONTENT_URL
    assert config.timeout_sec == 12.0
    assert config.chunk_size == 1024
    assert config.retries == RetryConfig(max_attempts=3, backoff_ms=50, max_backoff_ms=2000)


def test_from_profile_unknown_name(profiles_file: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        AcdConfig.from_profile("missing", config_path=profiles_file)


def test_from_profile_unset_placeholder(profiles_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ACD_TEST_SECRET", raising=False)

    with pytest.raises(ConfigError, match="Environment variable not set"):
        AcdConfig.from_profile("default", config_path=profiles_file)


def test_from_profile_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        AcdConfig.from_profile("default", config_path=tmp_path / "absent.yaml")


def test_from_mapping_requires_credentials() -> None:
    with pytest.raises(ConfigError, match="refresh_token"):
        AcdConfig.from_mapping({"client_id": "cid", "client_secret": "secret", "refresh_token": "  "})


def test_from_mapping_rejects_bad_numbers() -> None:
    with pytest.raises(ConfigError):
        AcdConfig.from_mapping(
            {"client_id": "cid", "client_secret": "secret", "refresh_token": "r", "timeout_sec": "soon"}
        )


def test_resolve_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACD_CLIENT_ID", "env-id")
    monkeypatch.setenv("ACD_CLIENT_SECRET", "env-secret")
    monkeypatch.setenv("ACD_REFRESH_TOKEN", "env-refresh")
    monkeypatch.setenv("ACD_CONTENT_URL", "https://content-eu.example.com/cdproxy")
    monkeypatch.setenv("ACD_RETRY_ATTEMPTS", "4")

    config = resolve_config(None)

    assert config.client_id == "env-id"
    assert config.refresh_token == "env-refresh"
    assert config.content_url == "https://content-eu.example.com/cdproxy/"
    assert config.retries.max_attempts == 4


def test_resolve_config_without_credentials() -> None:
    with pytest.raises(ConfigError, match="client id"):
        resolve_config(None)


def test_retry_default_is_single_attempt() -> None:
    assert load_retry_config(None).max_attempts == 1


def test_env_overrides_are_validated(monkeypatch: pytest.MonkeyPatch) -> None:
    config = AcdConfig(client_id="cid", client_secret="secret", refresh_token="r", chunk_size=0)
    assert load_chunk_size(config) == 1

    monkeypatch.setenv("ACD_CHUNK_SIZE", "lots")
    with pytest.raises(ConfigError, match="ACD_CHUNK_SIZE"):
        load_chunk_size(config)
