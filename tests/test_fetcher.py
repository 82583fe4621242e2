"""Tests for the retrying HTTP fetcher."""

import pytest
import requests

from gallery_mirror.errors import DecodeError, TransportError, UpstreamRejected, UpstreamUnavailable
from gallery_mirror.fetcher import DEFAULT_USER_AGENT, RetryingFetcher

from .conftest import make_response

URL = "https://example.com/api/v2/node/abc!children"


def test_fetch_returns_body_and_sends_credentials(mock_session):
    """A 200 response returns the body; user agent and cookie are sent."""
    mock_session.get.return_value = make_response(200, b"payload")
    fetcher = RetryingFetcher("cookie-value", session=mock_session)

    assert fetcher.fetch(URL) == b"payload"

    _, kwargs = mock_session.get.call_args
    assert kwargs["headers"]["User-Agent"] == DEFAULT_USER_AGENT
    assert kwargs["headers"]["Cookie"] == "SMSESS=cookie-value"


def test_server_error_retried_until_exhausted(mock_session, no_sleep):
    """503 on every attempt: 1 + retries attempts, constant delay, last status kept."""
    mock_session.get.return_value = make_response(503)
    fetcher = RetryingFetcher("c", retries=3, retry_delay=0.5, session=mock_session)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        fetcher.fetch(URL)

    assert mock_session.get.call_count == 4
    assert exc_info.value.status == 503
    assert exc_info.value.attempts == 4
    assert no_sleep == [0.5, 0.5, 0.5]


def test_server_error_carries_last_status(mock_session, no_sleep):
    mock_session.get.side_effect = [make_response(500), make_response(502)]
    fetcher = RetryingFetcher("c", retries=1, session=mock_session)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        fetcher.fetch(URL)

    assert exc_info.value.status == 502


def test_server_error_then_success(mock_session, no_sleep):
    mock_session.get.side_effect = [make_response(500), make_response(200, b"ok")]
    fetcher = RetryingFetcher("c", session=mock_session)

    assert fetcher.fetch(URL) == b"ok"
    assert mock_session.get.call_count == 2


@pytest.mark.parametrize("status", [301, 400, 401, 403, 404, 429])
def test_client_error_not_retried(mock_session, no_sleep, status):
    mock_session.get.return_value = make_response(status)
    fetcher = RetryingFetcher("c", session=mock_session)

    with pytest.raises(UpstreamRejected) as exc_info:
        fetcher.fetch(URL)

    assert exc_info.value.status == status
    assert mock_session.get.call_count == 1
    assert no_sleep == []


def test_transport_error_not_retried(mock_session, no_sleep):
    mock_session.get.side_effect = requests.ConnectionError("name resolution failed")
    fetcher = RetryingFetcher("c", session=mock_session)

    with pytest.raises(TransportError):
        fetcher.fetch(URL)

    assert mock_session.get.call_count == 1


def test_fetch_json_decodes_body(mock_session):
    mock_session.get.return_value = make_response(200, b'{"Response": {}}')
    fetcher = RetryingFetcher("c", session=mock_session)

    assert fetcher.fetch_json(URL) == {"Response": {}}


def test_fetch_json_rejects_malformed_body(mock_session):
    mock_session.get.return_value = make_response(200, b"<html>maintenance</html>")
    fetcher = RetryingFetcher("c", session=mock_session)

    with pytest.raises(DecodeError):
        fetcher.fetch_json(URL)
