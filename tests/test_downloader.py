"""Tests for the content-addressed downloader."""

import os
from unittest.mock import MagicMock

import pytest

from gallery_mirror.downloader import ContentAddressedDownloader, Status, compute_md5
from gallery_mirror.errors import LocalIOError, UnresolvedContent, UpstreamRejected

from .conftest import md5_hex

URL = "https://cdn.example.com/A1.jpg"


@pytest.fixture
def fetcher():
    return MagicMock()


@pytest.fixture
def downloader(fetcher):
    return ContentAddressedDownloader(fetcher)


def test_compute_md5(tmp_path):
    path = tmp_path / "f.jpg"
    path.write_bytes(b"jpeg bytes")
    assert compute_md5(str(path)) == md5_hex(b"jpeg bytes")


def test_matching_hash_is_skipped_without_fetch(tmp_path, downloader, fetcher):
    path = tmp_path / "00_A1.jpg"
    path.write_bytes(b"same")

    result = downloader.ensure(str(path), md5_hex(b"same"), URL)

    assert result.status is Status.SKIPPED
    fetcher.fetch.assert_not_called()


def test_hash_comparison_ignores_case(tmp_path, downloader, fetcher):
    path = tmp_path / "00_A1.jpg"
    path.write_bytes(b"same")

    result = downloader.ensure(str(path), md5_hex(b"same").upper(), URL)

    assert result.status is Status.SKIPPED


def test_missing_file_is_downloaded(tmp_path, downloader, fetcher):
    fetcher.fetch.return_value = b"fresh"
    path = tmp_path / "00_A1.jpg"

    result = downloader.ensure(str(path), md5_hex(b"fresh"), URL)

    assert result.status is Status.DOWNLOADED
    assert result.size == 5
    assert path.read_bytes() == b"fresh"
    fetcher.fetch.assert_called_once_with(URL)


def test_hash_mismatch_overwrites(tmp_path, downloader, fetcher):
    fetcher.fetch.return_value = b"new content"
    path = tmp_path / "00_A1.jpg"
    path.write_bytes(b"stale")

    result = downloader.ensure(str(path), md5_hex(b"new content"), URL)

    assert result.status is Status.DOWNLOADED
    assert path.read_bytes() == b"new content"
    # no temporary files left behind
    assert os.listdir(tmp_path) == ["00_A1.jpg"]


def test_fetch_failure_reported(tmp_path, downloader, fetcher):
    fetcher.fetch.side_effect = UpstreamRejected(404, URL)
    path = tmp_path / "00_A1.jpg"

    result = downloader.ensure(str(path), "abc", URL)

    assert result.status is Status.FAILED
    assert isinstance(result.reason, UpstreamRejected)
    assert not path.exists()


def test_unresolved_url(tmp_path, downloader, fetcher):
    result = downloader.ensure(str(tmp_path / "00_A1.jpg"), None, None)

    assert result.status is Status.FAILED
    assert isinstance(result.reason, UnresolvedContent)
    fetcher.fetch.assert_not_called()


def test_unreadable_local_path(tmp_path, downloader, fetcher):
    """A directory where the file should be cannot be hashed."""
    path = tmp_path / "00_A1.jpg"
    path.mkdir()

    result = downloader.ensure(str(path), "abc", URL)

    assert result.status is Status.FAILED
    assert isinstance(result.reason, LocalIOError)
    fetcher.fetch.assert_not_called()


def test_write_failure(tmp_path, downloader, fetcher):
    fetcher.fetch.return_value = b"data"
    path = tmp_path / "missing-dir" / "00_A1.jpg"

    result = downloader.ensure(str(path), "abc", URL)

    assert result.status is Status.FAILED
    assert isinstance(result.reason, LocalIOError)
