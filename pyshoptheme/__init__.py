"""pyshoptheme - Download and upload Shopify themes, keeping track of changes."""

from .api import ShopifyClient
from .exceptions import (
    CacheCorruptError,
    ShopifyAPIError,
    ShopifyAuthenticationError,
    ShopifyConfigError,
    ShopifyInvalidResponseError,
    ShopifyNetworkError,
    ShopifyNotFoundError,
    ShopifyPermissionError,
    ShopifyRateLimitError,
    ShopifyThemeError,
    SyncError,
)
from .scheduler import RequestScheduler
from .utils import content_hash, format_timestamp, parse_timestamp

__all__ = [
    "ShopifyClient",
    "RequestScheduler",
    "CacheCorruptError",
    "ShopifyAPIError",
    "ShopifyAuthenticationError",
    "ShopifyConfigError",
    "ShopifyInvalidResponseError",
    "ShopifyNetworkError",
    "ShopifyNotFoundError",
    "ShopifyPermissionError",
    "ShopifyRateLimitError",
    "ShopifyThemeError",
    "SyncError",
    "content_hash",
    "format_timestamp",
    "parse_timestamp",
]
