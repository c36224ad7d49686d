"""Per-asset transfer operations for pull and push."""

import base64
import binascii
import logging
from pathlib import Path
from typing import Any

from ..api import ShopifyClient
from ..exceptions import ShopifyInvalidResponseError
from ..utils import content_hash, parse_timestamp
from .scanner import LocalFile, RemoteAsset
from .state import ThemeCache

logger = logging.getLogger(__name__)


def decode_asset_content(asset: dict[str, Any]) -> bytes:
    """Get the raw bytes of an API asset object.

    Binary assets carry base64 ``attachment`` data, text assets a ``value``.
    An empty ``value`` is an empty file.

    Raises:
        ShopifyInvalidResponseError: If the attachment is not valid base64,
            or the asset carries neither field
    """
    attachment = asset.get("attachment")
    if attachment is not None:
        try:
            return base64.b64decode(attachment, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ShopifyInvalidResponseError(
                f"Invalid attachment for asset {asset.get('key')}"
            ) from e

    value = asset.get("value")
    if not isinstance(value, str):
        raise ShopifyInvalidResponseError(
            f"Asset without content: {asset.get('key')}"
        )
    return value.encode("utf-8")


def write_file(path: Path, data: bytes) -> None:
    """Write a file, creating missing parent directories.

    The write is retried exactly once after creating the parent
    directories; any other ``OSError`` propagates.
    """
    try:
        path.write_bytes(data)
    except FileNotFoundError:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class SyncOperations:
    """Downloads and uploads single assets and records them in the cache."""

    def __init__(
        self,
        client: ShopifyClient,
        theme_id: int,
        root: Path,
        cache: ThemeCache,
    ):
        """Initialize sync operations.

        Args:
            client: Shopify API client
            theme_id: Theme being synced
            root: Project root the asset keys are relative to
            cache: Sync cache updated after each successful transfer
        """
        self.client = client
        self.theme_id = theme_id
        self.root = root
        self.cache = cache

    def local_path(self, key: str) -> Path:
        """Map an asset key to its local path.

        Raises:
            ValueError: If the key points outside the project root
        """
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Asset key escapes the project directory: {key}")
        return path

    def download_asset(self, asset: RemoteAsset) -> bool:
        """Fetch an asset, write it to disk and record it in the cache.

        Args:
            asset: Listed remote asset

        Returns:
            True if the content differs from the cached content
        """
        data = self.client.get_asset(self.theme_id, asset.key)
        content = decode_asset_content(data)

        updated_at = parse_timestamp(data.get("updated_at"))
        if updated_at is None:
            updated_at = asset.updated_at
        if updated_at is None:
            raise ShopifyInvalidResponseError(f"Asset without updated_at: {asset.key}")

        write_file(self.local_path(asset.key), content)
        return self.cache.record(asset.key, content_hash(content), updated_at)

    def upload_file(self, local_file: LocalFile, local_hash: str) -> dict[str, Any]:
        """Upload a local file and record the acknowledged asset in the cache.

        The cached hash becomes ``local_hash``; the server's copy is not
        fetched back to verify it.

        Args:
            local_file: File to upload
            local_hash: Content hash computed while diffing

        Returns:
            Acknowledged asset object
        """
        attachment = base64.b64encode(local_file.read_bytes()).decode("ascii")
        asset = self.client.put_asset(
            self.theme_id, local_file.relative_path, attachment=attachment
        )

        updated_at = parse_timestamp(asset.get("updated_at"))
        if updated_at is None:
            raise ShopifyInvalidResponseError(
                f"Upload response without updated_at: {local_file.relative_path}"
            )

        self.cache.record(local_file.relative_path, local_hash, updated_at)
        return asset
