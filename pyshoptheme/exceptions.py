"""Exceptions for pyshoptheme."""

from typing import Optional


class ShopifyThemeError(Exception):
    """Base exception for all pyshoptheme errors."""


class ShopifyConfigError(ShopifyThemeError):
    """Raised when credentials or configuration are missing or invalid."""


class ShopifyAPIError(ShopifyThemeError):
    """Raised when the Shopify API rejects a request.

    Attributes:
        status_code: HTTP status code of the response, if one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ShopifyAuthenticationError(ShopifyAPIError):
    """Raised on 401 responses."""


class ShopifyPermissionError(ShopifyAPIError):
    """Raised on 403 responses."""


class ShopifyNotFoundError(ShopifyAPIError):
    """Raised on 404 responses."""


class ShopifyRateLimitError(ShopifyAPIError):
    """Raised on 429 responses.

    The scheduler absorbs rate limiting, so this only surfaces when a
    response is decoded outside of it.
    """


class ShopifyInvalidResponseError(ShopifyAPIError):
    """Raised when a response body cannot be decoded or lacks expected fields."""


class ShopifyNetworkError(ShopifyAPIError):
    """Raised when the HTTP transport fails before a response is received."""


class CacheCorruptError(ShopifyThemeError):
    """Raised when a persisted theme cache file contains a malformed line."""


class SyncError(ShopifyThemeError):
    """Raised when one or more asset transfers in a sync pass failed.

    Attributes:
        errors: Mapping of asset key to the exception raised for it
    """

    def __init__(self, errors: dict[str, Exception]):
        self.errors = errors
        super().__init__(f"{len(errors)} asset transfer(s) failed")
