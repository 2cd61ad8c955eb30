"""Configuration parsing and validation for the GitHub metrics loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Mapping, Optional

from .errors import AuthenticationError, ConfigurationError, StoreReadError
from .models import RepoIdentity

if TYPE_CHECKING:
    from .store import SeriesStore

ENV_GITHUB_PAT = "GITHUB_PAT"
ENV_STORAGE_BUCKET = "METRICS_STORAGE_BUCKET"
ENV_STORAGE_ENDPOINT_URL = "METRICS_STORAGE_ENDPOINT_URL"
ENV_LOG_LEVEL = "METRICS_LOG_LEVEL"


@dataclass(frozen=True)
class LoaderSettings:
    """Names, paths and limits shared by the fetcher, the store and the orchestrator."""

    api_base_url: str = "https://api.github.com"
    api_version: str = "2022-11-28"
    user_agent: str = "GitHub-Metrics-Loader"
    series_filename: str = "repo_traffic.csv"
    watermark_metadata_key: str = "last-date"
    repo_config_key: str = "config/loader_config.json"
    request_timeout_seconds: int = 30


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics loader."""

    github_token: str
    storage_bucket: str
    storage_endpoint_url: Optional[str] = None
    log_level: str = "INFO"
    settings: LoaderSettings = field(default_factory=LoaderSettings)


def _read_env(environ: Mapping[str, str], name: str) -> str:
    return (environ.get(name) or "").strip()


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[LoaderSettings] = None,
) -> Config:
    """Build and validate application configuration from the environment.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.
        settings: Optional settings override, mainly for tests.

    Returns:
        A validated ``Config`` instance.

    Raises:
        AuthenticationError: If ``GITHUB_PAT`` is not configured.
        ConfigurationError: If ``METRICS_STORAGE_BUCKET`` is not configured.
    """
    env = os.environ if environ is None else environ

    token = _read_env(env, ENV_GITHUB_PAT)
    if not token:
        raise AuthenticationError(
            "Missing required GitHub access token. "
            f"Set the '{ENV_GITHUB_PAT}' environment variable before running the loader."
        )

    bucket = _read_env(env, ENV_STORAGE_BUCKET)
    if not bucket:
        raise ConfigurationError(
            "Missing metrics storage bucket. "
            f"Set the '{ENV_STORAGE_BUCKET}' environment variable before running the loader."
        )

    return Config(
        github_token=token,
        storage_bucket=bucket,
        storage_endpoint_url=_read_env(env, ENV_STORAGE_ENDPOINT_URL) or None,
        log_level=_read_env(env, ENV_LOG_LEVEL).upper() or "INFO",
        settings=settings or LoaderSettings(),
    )


def _parse_repo_entry(index: int, entry: Any) -> RepoIdentity:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Repository entry #{index} must be an object, got: {entry!r}")

    owner = entry.get("repo_owner_name")
    name = entry.get("repo_name")
    try:
        return RepoIdentity(owner_name=owner, repo_name=name)
    except ConfigurationError as exc:
        raise ConfigurationError(f"Repository entry #{index} is invalid: {exc}") from exc


def parse_repo_list(text: str) -> List[RepoIdentity]:
    """Parse the JSON repository list.

    The expected shape is
    ``[{"repo_owner_name": "octo", "repo_name": "hello"}, ...]``. Order is kept.

    Raises:
        ConfigurationError: If the text is not valid JSON, not a list, or an
            entry lacks a non-empty owner or name.
    """
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise ConfigurationError(f"Repository list is not valid JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise ConfigurationError("Repository list must be a JSON array.")

    return [_parse_repo_entry(index, entry) for index, entry in enumerate(payload)]


def load_repo_list(store: "SeriesStore", key: str) -> List[RepoIdentity]:
    """Read and parse the repository list stored at ``key``.

    Raises:
        ConfigurationError: If the object cannot be read or parsed.
    """
    try:
        text = store.read_text(key)
    except StoreReadError as exc:
        raise ConfigurationError(f"Unable to read repository list '{key}': {exc}") from exc

    return parse_repo_list(text)
