"""Disambiguate filenames that the remote service reuses inside one album.

Photographers re-upload shoots of the same subject with the same numbering
(``A1.jpg``, ``A2.jpg``, ... then ``A1.jpg`` again). Upload timestamps are not
reliable, so shoot boundaries are reconstructed from index repetition: within a
session key every index may appear once per occurrence, and a repeated index
opens the next occurrence.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Set, Tuple

from gallery_mirror.client import ImageRecord

_NUMBERED_JPG = re.compile(r"^([^0-9]*)([0-9]+)\.jpg$")
_JPG_SUFFIX = ".jpg"


@dataclass
class SessionState:
    occurrence_count: int = 0
    seen_indexes: Set[int] = field(default_factory=set)


def session_key(file_name: str) -> Tuple[str, int]:
    """Return ``(key, index)`` for a remote filename.

    >>> session_key("A12.jpg")
    ('A', 12)
    >>> session_key("cover.jpg")
    ('cover', 0)
    """
    m = _NUMBERED_JPG.match(file_name)
    if m:
        return m.group(1), int(m.group(2))
    if file_name.endswith(_JPG_SUFFIX):
        return file_name[: -len(_JPG_SUFFIX)], 0
    return file_name, 0


class SessionSequencer:
    """Assigns occurrence prefixes for one album. Create a new one per album."""

    def __init__(self) -> None:
        self.sessions: Dict[str, SessionState] = {}

    def assign(self, record: ImageRecord) -> Tuple[str, str]:
        key, index = session_key(record.remote_file_name)
        state = self.sessions.setdefault(key, SessionState())
        if index in state.seen_indexes:
            state.occurrence_count += 1
            state.seen_indexes = {index}
        else:
            state.seen_indexes.add(index)
        prefix = f"{state.occurrence_count:02d}"
        return prefix, f"{prefix}_{record.remote_file_name}"
