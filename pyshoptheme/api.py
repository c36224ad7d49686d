"""API client for the Shopify Admin REST API."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any

import httpx

from .config import config
from .exceptions import ShopifyConfigError, ShopifyInvalidResponseError
from .scheduler import RequestScheduler, ScheduledRequest
from .utils import DEFAULT_RECOVERY_INTERVAL, DEFAULT_THROTTLE_CEILING


class ShopifyClient:
    """Client for the theme endpoints of a single shop.

    Every call is queued on a :class:`RequestScheduler`, so any number of
    calls may be issued concurrently without tripping the shop's rate limit.
    """

    def __init__(
        self,
        shop: str | None = None,
        api_key: str | None = None,
        password: str | None = None,
        initial_throttle: int = DEFAULT_THROTTLE_CEILING,
        recovery_interval: float = DEFAULT_RECOVERY_INTERVAL,
        timeout: float = 30.0,
    ):
        """Initialize Shopify API client.

        Args:
            shop: Shop name, the ``<name>`` in ``<name>.myshopify.com``
                (uses config if not provided)
            api_key: Private app API key (uses config if not provided)
            password: Private app password (uses config if not provided)
            initial_throttle: Starting request budget (default: 40)
            recovery_interval: Seconds between budget increments after a
                rate limit (default: 2.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.shop = shop or config.shop
        self.api_key = api_key or config.api_key
        self.password = password or config.api_password
        self.timeout = timeout

        if not (self.shop and self.api_key and self.password):
            raise ShopifyConfigError(
                "Shopify credentials not configured. "
                "Please run `shopify-theme init`."
            )

        self.api_url = f"https://{self.shop}.myshopify.com/admin"
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()
        self.scheduler = RequestScheduler(
            self.send_request,
            initial_throttle=initial_throttle,
            recovery_interval=recovery_interval,
        )

    def __enter__(self) -> ShopifyClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client (shared by all worker threads)."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    auth=(self.api_key, self.password),
                    headers={"Accept": "application/json"},
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                )
            return self._client

    def close(self) -> None:
        """Stop the scheduler and release connections."""
        self.scheduler.close()
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def url_for(self, path: str) -> str:
        """Build the endpoint URL for an API path such as ``themes/1/assets``."""
        return f"{self.api_url}/{path.strip('/')}.json"

    def send_request(self, request: ScheduledRequest) -> httpx.Response:
        """Transport used by the scheduler; performs one HTTP call."""
        kwargs: dict[str, Any] = {}
        if request.params:
            kwargs["params"] = request.params
        if request.json is not None:
            kwargs["json"] = request.json
        return self._get_client().request(request.method, request.url, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> Future:
        """Queue an API call.

        Args:
            method: HTTP method
            path: API path without the ``/admin/`` prefix or ``.json`` suffix
            params: Optional query parameters
            json: Optional JSON body

        Returns:
            Future resolving with the decoded response body
        """
        return self.scheduler.enqueue(method, self.url_for(path), params, json)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a GET request and wait for its result."""
        return self.request("GET", path, params=params).result()

    # =========================
    # Theme Operations
    # =========================

    def get_themes(self) -> list[dict[str, Any]]:
        """List the shop's themes.

        Returns:
            List of theme objects (``id``, ``name``, ``role``, ...)
        """
        data = self.get("themes")
        themes = data.get("themes") if isinstance(data, dict) else None
        if not isinstance(themes, list):
            raise ShopifyInvalidResponseError("Could not parse Shopify themes response.")
        return themes

    # =========================
    # Asset Operations
    # =========================

    def get_assets(self, theme_id: int) -> list[dict[str, Any]]:
        """List the assets of a theme (metadata only, no content).

        Args:
            theme_id: Theme id

        Returns:
            List of asset objects (``key``, ``updated_at``, ...)
        """
        data = self.get(f"themes/{theme_id}/assets")
        assets = data.get("assets") if isinstance(data, dict) else None
        if not isinstance(assets, list):
            raise ShopifyInvalidResponseError("Could not parse Shopify assets response.")
        return assets

    def get_asset(self, theme_id: int, key: str) -> dict[str, Any]:
        """Fetch one asset including its content.

        Args:
            theme_id: Theme id
            key: Asset key, e.g. ``assets/theme.css``

        Returns:
            Asset object with ``value`` (text) or ``attachment`` (base64)
        """
        data = self.get(
            f"themes/{theme_id}/assets",
            params={"asset[key]": key, "theme_id": theme_id},
        )
        asset = data.get("asset") if isinstance(data, dict) else None
        if not isinstance(asset, dict):
            raise ShopifyInvalidResponseError(f"Could not parse asset: {key}")
        return asset

    def put_asset(
        self,
        theme_id: int,
        key: str,
        attachment: str | None = None,
        value: str | None = None,
    ) -> dict[str, Any]:
        """Create or update one asset.

        Args:
            theme_id: Theme id
            key: Asset key
            attachment: Base64-encoded content
            value: Text content (used when no attachment is given)

        Returns:
            Acknowledged asset object including the new ``updated_at``
        """
        asset: dict[str, Any] = {"key": key}
        if attachment is not None:
            asset["attachment"] = attachment
        else:
            asset["value"] = value or ""

        data = self.request(
            "PUT", f"themes/{theme_id}/assets", json={"asset": asset}
        ).result()
        acknowledged = data.get("asset") if isinstance(data, dict) else None
        if not isinstance(acknowledged, dict):
            raise ShopifyInvalidResponseError(f"Could not parse upload response: {key}")
        return acknowledged
