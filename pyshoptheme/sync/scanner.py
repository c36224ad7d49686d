"""Local and remote asset enumeration for sync operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..utils import THEME_DIRECTORIES, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local theme file."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Path relative to the project root, with forward slashes; the asset key"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Project root for calculating the relative path

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        return cls(
            path=file_path,
            # Use as_posix() to ensure forward slashes on all platforms
            relative_path=file_path.relative_to(base_path).as_posix(),
            size=stat.st_size,
            mtime=stat.st_mtime,
        )

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class RemoteAsset:
    """Represents an asset as listed by the Shopify API."""

    key: str
    """Asset key, e.g. ``assets/theme.css``"""

    updated_at: Optional[int]
    """Last modification time in milliseconds since the epoch"""

    theme_id: Optional[int] = None
    """Theme the asset belongs to"""

    content_type: Optional[str] = None
    """MIME type reported by Shopify"""

    size: Optional[int] = None
    """Size in bytes reported by Shopify"""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteAsset":
        """Create RemoteAsset from an API asset object.

        Raises:
            ValueError: If the object has no key
        """
        key = data.get("key")
        if not key or not isinstance(key, str):
            raise ValueError(f"Asset without key: {data!r}")
        return cls(
            key=key,
            updated_at=parse_timestamp(data.get("updated_at")),
            theme_id=data.get("theme_id"),
            content_type=data.get("content_type"),
            size=data.get("size"),
        )


class DirectoryScanner:
    """Walks the theme subdirectories of a project.

    Only files below the known theme directories (``assets``, ``config``,
    ``layout``, ...) are assets; anything else in the project root, such as
    ``.shopify-theme`` or a ``package.json``, is never synced.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/work/my-theme"))
        >>> [f.relative_path for f in files]
        ['assets/theme.css', 'templates/index.liquid']
    """

    def __init__(
        self,
        directories: tuple[str, ...] = THEME_DIRECTORIES,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            directories: Theme subdirectories to walk
            exclude_dot_files: Whether to skip files/folders starting with a dot
        """
        self.directories = directories
        self.exclude_dot_files = exclude_dot_files

    def scan_local(self, root: Path) -> list[LocalFile]:
        """Recursively scan the theme subdirectories of a project.

        Args:
            root: Project root

        Returns:
            List of LocalFile objects sorted by relative path
        """
        files: list[LocalFile] = []

        for name in self.directories:
            directory = root / name
            if not directory.is_dir():
                logger.debug(f"Skipping missing theme directory: {directory}")
                continue
            files.extend(self._scan_directory(directory, root))

        return sorted(files, key=lambda f: f.relative_path)

    def _scan_directory(self, directory: Path, base_path: Path) -> list[LocalFile]:
        files: list[LocalFile] = []

        try:
            for item in directory.iterdir():
                if self.exclude_dot_files and item.name.startswith("."):
                    continue

                if item.is_file():
                    files.append(LocalFile.from_path(item, base_path))
                elif item.is_dir():
                    files.extend(self._scan_directory(item, base_path))
        except PermissionError as e:
            logger.warning(f"Permission denied: {e}")

        return files

    def scan_remote(self, assets: list[dict[str, Any]]) -> list[RemoteAsset]:
        """Convert API asset objects into RemoteAsset objects.

        Args:
            assets: Asset objects from the asset listing

        Returns:
            List of RemoteAsset objects
        """
        return [RemoteAsset.from_api(asset) for asset in assets]
