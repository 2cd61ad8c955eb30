"""Object storage adapter for persisted clone metric series."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Config, LoaderSettings
from .errors import SeriesNotFoundError, StoreReadError, StoreWriteError
from .models import RepoIdentity, StoredSeries
from .series import format_watermark, parse_watermark

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class SeriesStore(Protocol):
    """Persistence contract for one series object per repository."""

    def exists(self, repo: RepoIdentity) -> bool:
        """Return whether a series has been persisted for ``repo``."""

    def read_series(self, repo: RepoIdentity) -> StoredSeries:
        """Return content and watermark or raise SeriesNotFoundError."""

    def write_series(self, repo: RepoIdentity, content: str, watermark: date) -> None:
        """Replace content and watermark together or raise StoreWriteError."""

    def read_text(self, key: str) -> str:
        """Return an auxiliary UTF-8 object or raise StoreReadError."""


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3SeriesStore:
    """Stores each repository's series as a single S3 object.

    Content and watermark are written by one ``PutObject`` call: the watermark
    lives in the object's user metadata, so a reader never sees rows from one
    write paired with the watermark of another.

    Required permissions: ``s3:GetObject`` and ``s3:PutObject`` on the bucket's
    objects. Without ``s3:ListBucket``, S3 answers requests for a missing key
    with 403 instead of 404, so ``exists`` and ``read_series`` report a
    ``StoreReadError`` rather than an absent series.
    """

    def __init__(self, client: Any, bucket: str, settings: Optional[LoaderSettings] = None) -> None:
        self._client = client
        self._bucket = bucket
        self._settings = settings or LoaderSettings()

    @classmethod
    def from_config(cls, config: Config) -> "S3SeriesStore":
        """Create a store backed by a boto3 S3 client for the configured bucket."""
        client = boto3.client("s3", endpoint_url=config.storage_endpoint_url)
        return cls(client=client, bucket=config.storage_bucket, settings=config.settings)

    def series_key(self, repo: RepoIdentity) -> str:
        """Return the lowercase object key ``<owner>/<repo>/<series_filename>``."""
        return f"{repo.owner_name}/{repo.repo_name}/{self._settings.series_filename}".lower()

    def exists(self, repo: RepoIdentity) -> bool:
        key = self.series_key(repo)
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise StoreReadError(f"Unable to check series s3://{self._bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreReadError(f"Unable to check series s3://{self._bucket}/{key}: {exc}") from exc
        return True

    def _get_object(self, key: str) -> dict:
        try:
            return self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise SeriesNotFoundError(f"Object s3://{self._bucket}/{key} does not exist.") from exc
            raise StoreReadError(f"Unable to read s3://{self._bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreReadError(f"Unable to read s3://{self._bucket}/{key}: {exc}") from exc

    def _read_body(self, response: dict, key: str) -> str:
        try:
            return response["Body"].read().decode("utf-8")
        except (BotoCoreError, UnicodeDecodeError) as exc:
            raise StoreReadError(f"Unable to read s3://{self._bucket}/{key}: {exc}") from exc

    def read_series(self, repo: RepoIdentity) -> StoredSeries:
        key = self.series_key(repo)
        response = self._get_object(key)
        content = self._read_body(response, key)

        metadata = response.get("Metadata") or {}
        raw_watermark = metadata.get(self._settings.watermark_metadata_key)
        if raw_watermark is None:
            logger.warning(
                "Series for [%s] has no watermark metadata",
                repo,
                extra={"repo": str(repo), "key": key},
            )

        return StoredSeries(content=content, watermark=parse_watermark(raw_watermark))

    def write_series(self, repo: RepoIdentity, content: str, watermark: date) -> None:
        key = self.series_key(repo)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType="text/csv; charset=utf-8",
                Metadata={self._settings.watermark_metadata_key: format_watermark(watermark)},
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreWriteError(f"Unable to write series s3://{self._bucket}/{key}: {exc}") from exc

    def read_text(self, key: str) -> str:
        response = self._get_object(key)
        return self._read_body(response, key)
