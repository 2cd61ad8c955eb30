"""Tests for the S3 series store with a mocked boto3 client."""

import io
import sys
from datetime import date
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from metrics_loader.config import Config, LoaderSettings
from metrics_loader.errors import SeriesNotFoundError, StoreReadError, StoreWriteError
from metrics_loader.models import RepoIdentity
from metrics_loader.store import S3SeriesStore

REPO = RepoIdentity("Octo-Org", "Hello-World")


def _client_error(code: str, operation: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _get_response(body: str, metadata: dict | None = None) -> dict:
    return {"Body": io.BytesIO(body.encode("utf-8")), "Metadata": metadata or {}}


def _build_store(client: Mock) -> S3SeriesStore:
    return S3SeriesStore(client=client, bucket="metrics", settings=LoaderSettings())


def test_series_key_is_lowercase_owner_repo_filename():
    """Verify the object key is derived from owner, repo and file name in lowercase."""
    store = _build_store(Mock())

    assert store.series_key(REPO) == "octo-org/hello-world/repo_traffic.csv"


def test_exists_true_when_head_object_succeeds():
    """Verify exists returns True for an existing object."""
    client = Mock()
    store = _build_store(client)

    assert store.exists(REPO) is True
    client.head_object.assert_called_once_with(Bucket="metrics", Key="octo-org/hello-world/repo_traffic.csv")


def test_exists_false_on_404():
    """Verify exists returns False when S3 reports the object missing."""
    client = Mock()
    client.head_object.side_effect = _client_error("404", "HeadObject")

    assert _build_store(client).exists(REPO) is False


def test_exists_other_client_error_raises_store_read_error():
    """Verify access failures are not mistaken for a missing series."""
    client = Mock()
    client.head_object.side_effect = _client_error("403", "HeadObject")

    with pytest.raises(StoreReadError):
        _build_store(client).exists(REPO)


def test_read_series_returns_content_and_watermark():
    """Verify content is decoded and the watermark is read from metadata."""
    client = Mock()
    client.get_object.return_value = _get_response("header\n", {"last-date": "2024-01-02"})

    stored = _build_store(client).read_series(REPO)

    assert stored.content == "header\n"
    assert stored.watermark == date(2024, 1, 2)


def test_read_series_missing_metadata_returns_absent_watermark():
    """Verify a series without watermark metadata reports watermark None."""
    client = Mock()
    client.get_object.return_value = _get_response("header\n")

    stored = _build_store(client).read_series(REPO)

    assert stored.watermark is None


def test_read_series_missing_object_raises_not_found():
    """Verify a missing object raises SeriesNotFoundError."""
    client = Mock()
    client.get_object.side_effect = _client_error("NoSuchKey")

    with pytest.raises(SeriesNotFoundError):
        _build_store(client).read_series(REPO)


def test_read_series_access_denied_is_not_reported_as_missing():
    """Verify a 403 on a key is a read failure, not an absent series."""
    client = Mock()
    client.get_object.side_effect = _client_error("AccessDenied")

    with pytest.raises(StoreReadError) as excinfo:
        _build_store(client).read_series(REPO)

    assert not isinstance(excinfo.value, SeriesNotFoundError)


def test_read_series_connection_error_raises_store_read_error():
    """Verify botocore transport errors are translated into StoreReadError."""
    client = Mock()
    client.get_object.side_effect = EndpointConnectionError(endpoint_url="http://s3")

    with pytest.raises(StoreReadError):
        _build_store(client).read_series(REPO)


def test_write_series_puts_content_and_watermark_in_one_call():
    """Verify content and watermark metadata are written by a single PutObject."""
    client = Mock()

    _build_store(client).write_series(REPO, "rows\n", date(2024, 1, 3))

    client.put_object.assert_called_once_with(
        Bucket="metrics",
        Key="octo-org/hello-world/repo_traffic.csv",
        Body=b"rows\n",
        ContentType="text/csv; charset=utf-8",
        Metadata={"last-date": "2024-01-03"},
    )


def test_write_series_failure_raises_store_write_error():
    """Verify write failures surface as StoreWriteError."""
    client = Mock()
    client.put_object.side_effect = _client_error("InternalError", "PutObject")

    with pytest.raises(StoreWriteError):
        _build_store(client).write_series(REPO, "rows\n", date(2024, 1, 3))


def test_custom_settings_change_key_and_metadata_name():
    """Verify the file name and metadata key come from settings."""
    client = Mock()
    settings = LoaderSettings(series_filename="Clones.CSV", watermark_metadata_key="watermark")
    store = S3SeriesStore(client=client, bucket="b", settings=settings)

    store.write_series(REPO, "x\n", date(2024, 2, 1))

    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Key"] == "octo-org/hello-world/clones.csv"
    assert kwargs["Metadata"] == {"watermark": "2024-02-01"}


def test_read_text_returns_decoded_object():
    """Verify auxiliary objects are read as UTF-8 text."""
    client = Mock()
    client.get_object.return_value = _get_response("[]")

    assert _build_store(client).read_text("config/loader_config.json") == "[]"
    client.get_object.assert_called_once_with(Bucket="metrics", Key="config/loader_config.json")


def test_from_config_builds_boto3_client_with_endpoint():
    """Verify the store is built from config with the optional endpoint URL."""
    config = Config(github_token="t", storage_bucket="bucket", storage_endpoint_url="http://localhost:9000")

    with patch("metrics_loader.store.boto3.client") as client_ctor:
        store = S3SeriesStore.from_config(config)

    client_ctor.assert_called_once_with("s3", endpoint_url="http://localhost:9000")
    assert store._bucket == "bucket"
