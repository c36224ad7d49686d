"""Persisted sync cache for a theme.

The cache remembers, for every asset this project has downloaded or
uploaded, the content hash and the remote ``updated_at`` timestamp seen at
that moment. It is stored one entry per line::

    2024-03-01T15:00:00.000Z 47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU= assets/theme.css

The asset key is the rest of the line, so it may contain spaces.
"""

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import CacheCorruptError
from ..utils import STATE_DIR_NAME, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

CACHE_LINE_RE = re.compile(
    r"^(\d{4}-(?:0[1-9]|1[0-2])-[0-3]\d"
    r"T[0-2]\d:[0-6]\d:[0-6]\d(?:\.\d{1,3})?Z)"
    r" ((?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?)"
    r" (.+)$"
)

LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class CacheEntry:
    """What was last synced for one asset."""

    hash: str
    """Base64 SHA-256 digest of the asset content"""

    updated_at: int
    """Remote last-modified time, milliseconds since the epoch"""


def get_cache_path(root: Path, theme_id: int) -> Path:
    """Get the cache file path for a theme within a project directory."""
    return root / STATE_DIR_NAME / f"{theme_id}.theme"


def parse_cache(text: str) -> dict[str, CacheEntry]:
    """Parse cache file contents.

    Args:
        text: File contents (LF, CRLF or CR line endings)

    Returns:
        Mapping of asset key to entry

    Raises:
        CacheCorruptError: If any non-empty line is malformed
    """
    entries: dict[str, CacheEntry] = {}

    for line_no, line in enumerate(LINE_SPLIT_RE.split(text), start=1):
        if not line:
            continue

        match = CACHE_LINE_RE.match(line)
        updated_at = parse_timestamp(match.group(1)) if match else None
        if match is None or updated_at is None:
            raise CacheCorruptError(f"Invalid theme cache at line {line_no}: {line!r}")

        entries[match.group(3)] = CacheEntry(hash=match.group(2), updated_at=updated_at)

    return entries


def dump_cache(entries: dict[str, CacheEntry]) -> str:
    """Serialize cache entries, one line per entry, without a trailing newline."""
    return "\n".join(
        f"{format_timestamp(entry.updated_at)} {entry.hash} {key}"
        for key, entry in entries.items()
    )


class ThemeCache:
    """In-memory sync cache for one theme, backed by its cache file.

    Entries are recorded from transfer worker threads, so access to the
    mapping is serialized by a lock.
    """

    def __init__(self, path: Path, entries: Optional[dict[str, CacheEntry]] = None):
        """Initialize the cache.

        Args:
            path: Cache file location
            entries: Initial entries (default: empty)
        """
        self.path = path
        self._entries: dict[str, CacheEntry] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> "ThemeCache":
        """Load a cache file; a missing file yields an empty cache.

        Raises:
            CacheCorruptError: If the file is not UTF-8 or contains a
                malformed line
        """
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No theme cache found at {path}")
            return cls(path)
        except UnicodeDecodeError as e:
            raise CacheCorruptError(f"Invalid theme cache {path}: {e}") from e

        entries = parse_cache(text)
        logger.debug(f"Loaded theme cache with {len(entries)} entries from {path}")
        return cls(path, entries)

    @classmethod
    def for_theme(cls, root: Path, theme_id: int) -> "ThemeCache":
        """Load the cache of a theme within a project directory."""
        return cls.load(get_cache_path(root, theme_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def entries(self) -> dict[str, CacheEntry]:
        """Snapshot of all entries."""
        with self._lock:
            return dict(self._entries)

    def matches(self, key: str, updated_at: Optional[int]) -> bool:
        """Check whether the remote timestamp of an asset is the cached one.

        Args:
            key: Asset key
            updated_at: Remote last-modified time in milliseconds

        Returns:
            True if the asset has an entry with exactly that timestamp
        """
        entry = self.get(key)
        return entry is not None and updated_at is not None and (
            entry.updated_at == updated_at
        )

    def record(self, key: str, content_hash: str, updated_at: int) -> bool:
        """Replace the entry of an asset.

        Args:
            key: Asset key
            content_hash: Hash of the synced content
            updated_at: Remote last-modified time in milliseconds

        Returns:
            True if the content changed (no entry before, or a different hash)
        """
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = CacheEntry(hash=content_hash, updated_at=updated_at)
        return previous is None or previous.hash != content_hash

    def save(self) -> None:
        """Rewrite the cache file with all entries."""
        text = dump_cache(self.entries())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        logger.debug(f"Saved theme cache with {len(self)} entries to {self.path}")
