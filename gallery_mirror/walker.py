"""Depth-first walk of the remote tree, mirroring folders and albums locally."""
from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from tqdm import tqdm

from gallery_mirror.client import ALBUM, FOLDER, Page, PagedTreeClient, TreeNode
from gallery_mirror.downloader import ContentAddressedDownloader, Status
from gallery_mirror.errors import MirrorError, PageRetriesExhausted, UnexpectedNodeType
from gallery_mirror.sequencer import SessionSequencer

# placeholder until the first page reports the real total
UNKNOWN_TOTAL = 0xFFFF
FIRST_START = 1
DEFAULT_PAGE_RETRY_LIMIT = 10
DEFAULT_PAGE_RETRY_DELAY = 1.0

T = TypeVar("T")

_UNSAFE_CHARS = re.compile(r"[\\/\x00-\x1f]")


def _sanitize_filename(name: str, fallback: str = "unnamed") -> str:
    """Make a remote name safe to use as one path component.

    Separators and control characters become ``_``; empty and dot-only
    names are replaced by ``fallback``.
    """
    safe = _UNSAFE_CHARS.sub("_", name or "").strip()
    if not safe.strip("."):
        safe = _UNSAFE_CHARS.sub("_", fallback or "").strip()
        if not safe.strip("."):
            safe = "unnamed"
    return safe


@dataclass
class MirrorStats:
    folders: int = 0
    albums: int = 0
    pages_fetched: int = 0
    page_failures: int = 0
    images_downloaded: int = 0
    images_skipped: int = 0
    images_failed: int = 0
    bytes_downloaded: int = 0
    incomplete_nodes: int = 0
    unexpected_nodes: int = 0
    start_time: float = field(default_factory=time.time)

    def summary(self) -> str:
        elapsed = time.time() - self.start_time
        return (
            f"folders={self.folders} albums={self.albums} pages={self.pages_fetched} "
            f"page_failures={self.page_failures} downloaded={self.images_downloaded} "
            f"skipped={self.images_skipped} failed={self.images_failed} "
            f"bytes={self.bytes_downloaded} incomplete={self.incomplete_nodes} "
            f"unexpected={self.unexpected_nodes} elapsed={elapsed:.1f}s"
        )


class TreeWalker:
    """Mirror a folder node and everything below it into a local directory.

    Pages that fail to fetch or decode are retried from the same ``start``;
    they are never skipped. ``page_retry_limit`` bounds the attempts per page
    (0 retries forever). When the bound is hit the node is abandoned with
    :class:`PageRetriesExhausted` and its parent continues with the next child.
    """

    def __init__(
        self,
        client: PagedTreeClient,
        downloader: ContentAddressedDownloader,
        page_retry_limit: int = DEFAULT_PAGE_RETRY_LIMIT,
        page_retry_delay: float = DEFAULT_PAGE_RETRY_DELAY,
        progress: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.downloader = downloader
        self.page_retry_limit = max(0, int(page_retry_limit))
        self.page_retry_delay = float(page_retry_delay)
        self.progress = progress
        self.log = logger or logging.getLogger(__name__)
        self.stats = MirrorStats()

    def mirror(self, root_node_id: str, local_root: str) -> MirrorStats:
        os.makedirs(local_root, exist_ok=True)
        try:
            self.walk_folder(root_node_id, local_root)
        except PageRetriesExhausted as exc:
            self.stats.incomplete_nodes += 1
            self.log.error("Giving up on root folder %s: %s", root_node_id, exc)
        return self.stats

    def _fetch_page(self, what: str, fetch: Callable[[int], Page[T]], start: int) -> Page[T]:
        attempts = 0
        while True:
            attempts += 1
            try:
                page = fetch(start)
            except MirrorError as exc:
                self.stats.page_failures += 1
                self.log.error("Unable to get %s page at start=%d (attempt %d): %s", what, start, attempts, exc)
                if self.page_retry_limit and attempts >= self.page_retry_limit:
                    raise PageRetriesExhausted(start, attempts, exc) from exc
                if self.page_retry_delay > 0:
                    time.sleep(self.page_retry_delay)
                continue
            self.stats.pages_fetched += 1
            return page

    def walk_folder(self, node_id: str, path: str) -> None:
        self.stats.folders += 1
        self.log.info("Requesting folder at %r with nodeID %s", path, node_id)
        start = FIRST_START
        total = UNKNOWN_TOTAL
        known_total: Optional[int] = None
        while start < total:
            page = self._fetch_page(f"folder {node_id}", lambda s: self.client.list_folder_children(node_id, s), start)
            if known_total is None:
                known_total = total = page.total_count
            for node in page.items:
                self._visit_child(node, path)
            if page.page_count <= 0:
                if start < total:
                    self.log.warning("Folder %s returned an empty page at start=%d of %d, stopping", node_id, start, total)
                break
            start += page.page_count

    def _visit_child(self, node: TreeNode, path: str) -> None:
        if node.kind not in (FOLDER, ALBUM):
            self.stats.unexpected_nodes += 1
            self.log.error("Skipping child: %s", UnexpectedNodeType(node.kind, node.name))
            return

        sub_path = os.path.join(path, _sanitize_filename(node.name, fallback=node.remote_id))
        try:
            os.makedirs(sub_path, exist_ok=True)
        except OSError as exc:
            self.stats.incomplete_nodes += 1
            self.log.error("cannot mkdir %s: %s", sub_path, exc)
            return

        try:
            if node.kind == FOLDER:
                self.walk_folder(node.remote_id, sub_path)
            else:
                self.walk_album(node.remote_id, sub_path)
        except PageRetriesExhausted as exc:
            self.stats.incomplete_nodes += 1
            self.log.error("Giving up on %s %r at %s: %s", node.kind.lower(), node.name, sub_path, exc)

    def walk_album(self, album_id: str, path: str) -> None:
        self.stats.albums += 1
        self.log.info("Requesting album at %r with albumID %s", path, album_id)
        sequencer = SessionSequencer()
        start = FIRST_START
        total = UNKNOWN_TOTAL
        known_total: Optional[int] = None
        bar = None
        try:
            while start < total:
                page = self._fetch_page(f"album {album_id}", lambda s: self.client.list_album_images(album_id, s), start)
                if known_total is None:
                    known_total = total = page.total_count
                    bar = tqdm(total=total, desc=os.path.basename(path) or path, unit="img", disable=not self.progress, leave=False)
                for record in page.items:
                    prefix, _ = sequencer.assign(record)
                    local_name = f"{prefix}_{_sanitize_filename(record.remote_file_name)}"
                    self._ensure_image(os.path.join(path, local_name), record.content_hash, record.remote_url)
                    bar.update(1)
                if page.page_count <= 0:
                    if start < total:
                        self.log.warning("Album %s returned an empty page at start=%d of %d, stopping", album_id, start, total)
                    break
                start += page.page_count
        finally:
            if bar is not None:
                bar.close()

    def _ensure_image(self, local_path: str, remote_hash, remote_url) -> None:
        result = self.downloader.ensure(local_path, remote_hash, remote_url)
        if result.status is Status.SKIPPED:
            self.stats.images_skipped += 1
            self.log.debug("Up to date: %s", local_path)
        elif result.status is Status.DOWNLOADED:
            self.stats.images_downloaded += 1
            self.stats.bytes_downloaded += result.size
            self.log.debug("Downloaded: %s (%d bytes)", local_path, result.size)
        else:
            self.stats.images_failed += 1
            self.log.error("Failed: %s: %s", local_path, result.reason)
