"""Utility functions for pyshoptheme."""

import base64
import hashlib
import re
from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Theme subdirectories that hold assets
THEME_DIRECTORIES: tuple[str, ...] = (
    "assets",
    "config",
    "dist",
    "layout",
    "locales",
    "sections",
    "snippets",
    "templates",
)

# Directory (relative to the project root) holding config and theme caches
STATE_DIR_NAME: str = ".shopify-theme"

# Maximum number of concurrent requests the Shopify API allows per shop
DEFAULT_THROTTLE_CEILING: int = 40

# Seconds between budget increments while recovering from a 429
DEFAULT_RECOVERY_INTERVAL: float = 2.0

_FRACTION_RE = re.compile(r"\.(\d+)")


# =============================================================================
# Hash calculation utilities
# =============================================================================


def content_hash(data: bytes) -> str:
    """Calculate the content hash of an asset.

    Args:
        data: Raw asset bytes

    Returns:
        Base64-encoded SHA-256 digest (44 characters)

    Examples:
        >>> content_hash(b"")
        '47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU='
    """
    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


# =============================================================================
# Timestamp utilities
# =============================================================================


def parse_timestamp(timestamp_str: Optional[str]) -> Optional[int]:
    """Parse an ISO 8601 timestamp to milliseconds since the epoch.

    Naive timestamps are treated as UTC. Sub-millisecond precision is
    truncated.

    Args:
        timestamp_str: Timestamp such as "2024-03-01T10:00:00-05:00"
            or "2024-03-01T15:00:00.123Z"

    Returns:
        Milliseconds since the Unix epoch, or None if parsing fails

    Examples:
        >>> parse_timestamp("1970-01-01T00:00:01.500Z")
        1500
    """
    if not timestamp_str:
        return None

    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    # fromisoformat only accepts 3 or 6 fractional digits before 3.11
    timestamp_str = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), timestamp_str
    )

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except (ValueError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds // 1000


def format_timestamp(millis: int) -> str:
    """Format milliseconds since the epoch as an ISO 8601 UTC string.

    Args:
        millis: Milliseconds since the Unix epoch

    Returns:
        Timestamp with millisecond precision and a "Z" suffix

    Examples:
        >>> format_timestamp(1500)
        '1970-01-01T00:00:01.500Z'
    """
    dt = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis % 1000:03d}Z"
