"""Cache-based change detection for sync operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .scanner import LocalFile, RemoteAsset
from .state import ThemeCache


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DOWNLOAD = "download"
    """Download remote asset to local"""

    SKIP = "skip"
    """Skip file (no action needed)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Asset key"""

    remote_asset: Optional[RemoteAsset] = None
    """Remote asset (pull direction)"""

    local_file: Optional[LocalFile] = None
    """Local file (push direction)"""

    local_hash: Optional[str] = None
    """Content hash of the local file (push direction)"""


class FileComparator:
    """Decides per asset whether a transfer is needed, using the sync cache."""

    def __init__(self, cache: ThemeCache):
        """Initialize file comparator.

        Args:
            cache: Sync cache of the theme
        """
        self.cache = cache

    def compare_remote(self, asset: RemoteAsset) -> SyncDecision:
        """Decide whether a remote asset must be downloaded.

        An asset whose listed timestamp equals the cached one is skipped
        without fetching its content. Anything else is downloaded; whether
        the content really changed is only known once it has been hashed.
        """
        entry = self.cache.get(asset.key)

        if entry is None:
            action, reason = SyncAction.DOWNLOAD, "New remote asset"
        elif self.cache.matches(asset.key, asset.updated_at):
            action, reason = SyncAction.SKIP, "Unchanged since last sync"
        else:
            action, reason = SyncAction.DOWNLOAD, "Remote timestamp changed"

        return SyncDecision(
            action=action,
            reason=reason,
            relative_path=asset.key,
            remote_asset=asset,
        )

    def compare_local(self, local_file: LocalFile, local_hash: str) -> SyncDecision:
        """Decide whether a local file must be uploaded.

        Args:
            local_file: Local file
            local_hash: Content hash of the file

        Returns:
            UPLOAD unless the cached hash equals ``local_hash``
        """
        entry = self.cache.get(local_file.relative_path)

        if entry is None:
            action, reason = SyncAction.UPLOAD, "New local file"
        elif entry.hash == local_hash:
            action, reason = SyncAction.SKIP, "Content matches last sync"
        else:
            action, reason = SyncAction.UPLOAD, "Local content changed"

        return SyncDecision(
            action=action,
            reason=reason,
            relative_path=local_file.relative_path,
            local_file=local_file,
            local_hash=local_hash,
        )
