"""HTTP GET with a bounded, constant-delay retry on server errors."""
from __future__ import annotations

import json
import time
from typing import Any, Optional

import requests

from gallery_mirror.errors import DecodeError, TransportError, UpstreamRejected, UpstreamUnavailable

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:89.0) Gecko/20100101 Firefox/89.0"
SESSION_COOKIE_NAME = "SMSESS"
DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.5
DEFAULT_TIMEOUT = 60.0


class RetryingFetcher:
    """Fetch URLs with the configured user agent and session cookie.

    5xx responses are retried ``retries`` more times with a fixed
    ``retry_delay`` between attempts. Anything else that is not 2xx fails
    straight away, and so do transport errors. Outcomes are reported through
    return values and exceptions only; logging is left to the caller.
    """

    def __init__(
        self,
        session_cookie: str,
        user_agent: str = DEFAULT_USER_AGENT,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.retries = max(0, int(retries))
        self.retry_delay = float(retry_delay)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "User-Agent": user_agent,
            "Cookie": f"{SESSION_COOKIE_NAME}={session_cookie}",
        }

    def fetch(self, url: str) -> bytes:
        attempt = 0
        while True:
            attempt += 1
            try:
                r = self.session.get(url, headers=self.headers, timeout=self.timeout)
            except requests.RequestException as exc:
                raise TransportError(f"request to {url} failed: {exc}") from exc

            status = r.status_code
            if 200 <= status < 300:
                return r.content
            if 500 <= status < 600:
                if attempt > self.retries:
                    raise UpstreamUnavailable(status, attempt, url)
                time.sleep(self.retry_delay)
                continue
            raise UpstreamRejected(status, url)

    def fetch_json(self, url: str) -> Any:
        content = self.fetch(url)
        try:
            return json.loads(content)
        except ValueError as exc:
            raise DecodeError(f"invalid JSON from {url}: {exc}") from exc
