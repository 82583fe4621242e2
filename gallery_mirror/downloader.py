"""Skip, re-fetch or fail: keep one local file in sync with its remote copy."""
from __future__ import annotations

import enum
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from gallery_mirror.errors import FetchError, LocalIOError, MirrorError, UnresolvedContent
from gallery_mirror.fetcher import RetryingFetcher


class Status(enum.Enum):
    SKIPPED = "skipped"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class EnsureResult:
    status: Status
    path: str
    reason: Optional[MirrorError] = None
    size: int = 0


def compute_md5(path: str, chunk_size: int = 8192) -> str:
    """Hex MD5 of a file. Raises OSError (including FileNotFoundError)."""
    h = hashlib.md5()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def write_atomic(path: str, data: bytes) -> None:
    # readers see either the old file or the complete new one
    d = os.path.dirname(path) or "."
    fd, tmp = tempfile.mkstemp(dir=d, prefix=".", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


class ContentAddressedDownloader:
    def __init__(self, fetcher: RetryingFetcher, logger: Optional[logging.Logger] = None) -> None:
        self.fetcher = fetcher
        self.log = logger or logging.getLogger(__name__)

    def ensure(self, local_path: str, remote_hash: Optional[str], remote_url: Optional[str]) -> EnsureResult:
        """Make ``local_path`` hold the remote content.

        Failures are returned as ``Status.FAILED`` with the error as the
        reason so the caller can move on to the next image.
        """
        if not remote_url:
            return EnsureResult(Status.FAILED, local_path, UnresolvedContent(f"no download URL for {local_path}"))

        try:
            local_hash = compute_md5(local_path)
        except FileNotFoundError:
            local_hash = None
        except OSError as exc:
            return EnsureResult(Status.FAILED, local_path, LocalIOError(f"can't read {local_path}: {exc}"))

        if local_hash is not None:
            if remote_hash and local_hash == remote_hash.lower():
                return EnsureResult(Status.SKIPPED, local_path)
            self.log.info("Hash mismatch for existing file %s, downloading again", local_path)

        try:
            data = self.fetcher.fetch(remote_url)
        except FetchError as exc:
            return EnsureResult(Status.FAILED, local_path, exc)

        try:
            write_atomic(local_path, data)
        except OSError as exc:
            return EnsureResult(Status.FAILED, local_path, LocalIOError(f"can't write {local_path}: {exc}"))
        return EnsureResult(Status.DOWNLOADED, local_path, size=len(data))
