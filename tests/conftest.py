"""Shared fixtures for gallery-mirror tests."""

import hashlib
import logging
from unittest.mock import MagicMock

import pytest


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
    yield


def make_response(status=200, content=b""):
    """Create a stand-in for a requests.Response."""
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    return resp


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


@pytest.fixture
def mock_session():
    """A requests.Session whose get() is a MagicMock."""
    return MagicMock()


@pytest.fixture
def no_sleep(monkeypatch):
    """Record sleeps instead of waiting."""
    calls = []
    monkeypatch.setattr("gallery_mirror.fetcher.time.sleep", lambda s: calls.append(s))
    monkeypatch.setattr("gallery_mirror.walker.time.sleep", lambda s: calls.append(s))
    return calls
