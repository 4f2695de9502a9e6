"""Configuration loader for the Cloud Drive client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from clouddrive.core.errors import ConfigError
from clouddrive.core.logger import get_logger
from clouddrive.core.profiles import resolve_config_path

LOGGER = get_logger()

DEFAULT_METADATA_URL = "https://drive.amazonaws.com/drive/v1/"
DEFAULT_CONTENT_URL = "https://content-na.drive.amazonaws.com/cdproxy/"
DEFAULT_AUTH_URL = "https://api.amazon.com/auth/o2/token"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CHUNK_SIZE = 64 * 1024

CLIENT_ID_ENV = "ACD_CLIENT_ID"
CLIENT_SECRET_ENV = "ACD_CLIENT_SECRET"
REFRESH_TOKEN_ENV = "ACD_REFRESH_TOKEN"
METADATA_URL_ENV = "ACD_METADATA_URL"
CONTENT_URL_ENV = "ACD_CONTENT_URL"
TIMEOUT_ENV = "ACD_TIMEOUT_SEC"
CHUNK_SIZE_ENV = "ACD_CHUNK_SIZE"
RETRY_ATTEMPTS_ENV = "ACD_RETRY_ATTEMPTS"
RETRY_BACKOFF_MS_ENV = "ACD_RETRY_BACKOFF_MS"
RETRY_MAX_BACKOFF_MS_ENV = "ACD_RETRY_MAX_BACKOFF_MS"


@dataclass(slots=True)
class RetryConfig:
    """Retry parameters for transport requests.

    A single attempt is the default: failures surface to the caller as-is.
    """

    max_attempts: int = 1
    backoff_ms: int = 200
    max_backoff_ms: int = 2000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RetryConfig":
        if not data:
            return cls()
        return cls(
            max_attempts=int(data.get("max_attempts", 1)),
            backoff_ms=int(data.get("backoff_ms", 200)),
            max_backoff_ms=int(data.get("max_backoff_ms", 2000)),
        )


@dataclass(slots=True)
class AcdConfig:
    """Resolved configuration for Cloud Drive operations."""

    client_id: str
    client_secret: str
    refresh_token: str
    metadata_url: str = DEFAULT_METADATA_URL
    content_url: str = DEFAULT_CONTENT_URL
    auth_url: str = DEFAULT_AUTH_URL
    timeout_sec: float = DEFAULT_TIMEOUT
    retries: RetryConfig = field(default_factory=RetryConfig)
    verify_tls: bool = True
    trust_env: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    proxies: Mapping[str, str] | None = None

    @classmethod
    def from_profile(cls, profile_name: str, *, config_path: str | Path | None = None) -> "AcdConfig":
        """Create a configuration instance from profiles.yaml.

        Args:
            profile_name: Logical profile name under the ``acd`` section.
            config_path: Optional override for the config file path.

        Returns:
            Parsed ``AcdConfig`` instance.

        Raises:
            ConfigError: If the configuration cannot be loaded or is invalid.
        """

        raw = _load_profiles_file(path=config_path).get(profile_name)
        if raw is None:
            raise ConfigError(f"acd profile '{profile_name}' not found in profiles.yaml")
        return cls.from_mapping(raw)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AcdConfig":
        """Create a configuration instance from a mapping."""

        def _require(key: str) -> str:
            value = data.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ConfigError(f"Missing required Cloud Drive config value: {key}")
            return _expand_env(value)

        proxies_raw = data.get("proxies")
        proxies: Mapping[str, str] | None = None
        if isinstance(proxies_raw, Mapping):
            proxies = {k: _expand_env(v) for k, v in proxies_raw.items()}

        try:
            timeout_sec = float(data.get("timeout_sec", DEFAULT_TIMEOUT))
            chunk_size = int(data.get("chunk_size", DEFAULT_CHUNK_SIZE))
            retries = RetryConfig.from_mapping(_ensure_mapping(data.get("retries")))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid Cloud Drive config value: {exc}") from exc

        return cls(
            client_id=_require("client_id"),
            client_secret=_require("client_secret"),
            refresh_token=_require("refresh_token"),
            metadata_url=_ensure_trailing_slash(_expand_env(data.get("metadata_url", DEFAULT_METADATA_URL))),
            content_url=_ensure_trailing_slash(_expand_env(data.get("content_url", DEFAULT_CONTENT_URL))),
            auth_url=_expand_env(data.get("auth_url", DEFAULT_AUTH_URL)),
            timeout_sec=timeout_sec,
            retries=retries,
            verify_tls=bool(data.get("verify_tls", True)),
            trust_env=bool(data.get("trust_env", False)),
            chunk_size=chunk_size,
            proxies=proxies,
        )


def _read_env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    return value.strip()


def _read_env_int(key: str) -> int | None:
    value = _read_env(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:  # noqa: BLE001 - configuration validation
        raise ConfigError(f"Environment variable {key} must be an integer") from exc


def _read_env_float(key: str) -> float | None:
    value = _read_env(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError as exc:  # noqa: BLE001 - configuration validation
        raise ConfigError(f"Environment variable {key} must be a number") from exc


def load_client_id(config: AcdConfig | None = None) -> str:
    """Return the OAuth client identifier from env or configuration."""

    value = _read_env(CLIENT_ID_ENV) or (config.client_id if config else None)
    if not value:
        raise ConfigError("Cloud Drive client id not configured")
    return value


def load_client_secret(config: AcdConfig | None = None) -> str:
    """Return the OAuth client secret from env or configuration."""

    value = _read_env(CLIENT_SECRET_ENV) or (config.client_secret if config else None)
    if not value:
        raise ConfigError("Cloud Drive client secret not configured")
    return value


def load_refresh_token(config: AcdConfig | None = None) -> str:
    """Return the OAuth refresh token used to mint access tokens."""

    value = _read_env(REFRESH_TOKEN_ENV) or (config.refresh_token if config else None)
    if not value:
        raise ConfigError("Cloud Drive refresh token not configured")
    return value


def load_metadata_url(config: AcdConfig | None = None) -> str:
    value = _read_env(METADATA_URL_ENV) or (config.metadata_url if config else None)
    return _ensure_trailing_slash(value or DEFAULT_METADATA_URL)


def load_content_url(config: AcdConfig | None = None) -> str:
    value = _read_env(CONTENT_URL_ENV) or (config.content_url if config else None)
    return _ensure_trailing_slash(value or DEFAULT_CONTENT_URL)


def load_timeout(config: AcdConfig | None = None) -> float:
    """Return the request timeout in seconds."""

    value = _read_env_float(TIMEOUT_ENV)
    if value is not None:
        return value
    if config:
        return float(config.timeout_sec)
    return DEFAULT_TIMEOUT


def load_chunk_size(config: AcdConfig | None = None) -> int:
    """Return the streaming chunk size for uploads and downloads."""

    value = _read_env_int(CHUNK_SIZE_ENV)
    if value is not None:
        return max(1, value)
    if config:
        return max(1, int(config.chunk_size))
    return DEFAULT_CHUNK_SIZE


def load_retry_config(config: AcdConfig | None = None) -> RetryConfig:
    """Return retry configuration applying environment overrides."""

    attempts = _read_env_int(RETRY_ATTEMPTS_ENV)
    backoff = _read_env_int(RETRY_BACKOFF_MS_ENV)
    max_backoff = _read_env_int(RETRY_MAX_BACKOFF_MS_ENV)
    if config is None:
        base = RetryConfig()
    else:
        base = RetryConfig(
            max_attempts=config.retries.max_attempts,
            backoff_ms=config.retries.backoff_ms,
            max_backoff_ms=config.retries.max_backoff_ms,
        )
    return RetryConfig(
        max_attempts=max(1, attempts or base.max_attempts),
        backoff_ms=backoff or base.backoff_ms,
        max_backoff_ms=max_backoff or base.max_backoff_ms,
    )


def resolve_config(profile: str | None = None) -> AcdConfig:
    """Resolve configuration from a profile or environment variables with overrides."""

    if profile:
        base = AcdConfig.from_profile(profile)
    else:
        base = AcdConfig(
            client_id=load_client_id(None),
            client_secret=load_client_secret(None),
            refresh_token=load_refresh_token(None),
        )
    return AcdConfig(
        client_id=load_client_id(base),
        client_secret=load_client_secret(base),
        refresh_token=load_refresh_token(base),
        metadata_url=load_metadata_url(base),
        content_url=load_content_url(base),
        auth_url=base.auth_url,
        timeout_sec=load_timeout(base),
        retries=load_retry_config(base),
        verify_tls=base.verify_tls,
        trust_env=base.trust_env,
        chunk_size=load_chunk_size(base),
        proxies=base.proxies,
    )


def _ensure_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value
    return None


def _ensure_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        if "${" in value and "}" in value and expanded == value:
            raise ConfigError(f"Environment variable not set for value: {value}")
        return expanded
    return value


def _load_profiles_file(*, path: str | Path | None) -> dict[str, Mapping[str, Any]]:
    cfg_path = resolve_config_path(path or "profiles.yaml")
    if not cfg_path.exists():
        raise ConfigError(f"profiles.yaml not found at {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"profiles.yaml is not valid YAML: {exc}") from exc
    section = data.get("acd") if isinstance(data, Mapping) else None
    if not isinstance(section, Mapping):
        raise ConfigError("profiles.yaml missing 'acd' section")
    profiles: dict[str, Mapping[str, Any]] = {}
    for key, value in section.items():
        if not isinstance(value, Mapping):
            LOGGER.warning("Ignoring acd profile %s with invalid type", key)
            continue
        profiles[str(key)] = value
    if not profiles:
        raise ConfigError("No acd profiles defined in profiles.yaml")
    return profiles


__all__ = [
    "AcdConfig",
    "RetryConfig",
    "CLIENT_ID_ENV",
    "CLIENT_SECRET_ENV",
    "REFRESH_TOKEN_ENV",
    "METADATA_URL_ENV",
    "CONTENT_URL_ENV",
    "TIMEOUT_ENV",
    "CHUNK_SIZE_ENV",
    "RETRY_ATTEMPTS_ENV",
    "RETRY_BACKOFF_MS_ENV",
    "RETRY_MAX_BACKOFF_MS_ENV",
    "load_client_id",
    "load_client_secret",
    "load_refresh_token",
    "load_metadata_url",
    "load_content_url",
    "load_timeout",
    "load_chunk_size",
    "load_retry_config",
    "resolve_config",
]
