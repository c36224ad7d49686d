"""Unit tests for the Shopify API client."""

import base64
import json
from unittest.mock import patch

import httpx
import pytest

from pyshoptheme.api import ShopifyClient
from pyshoptheme.exceptions import (
    ShopifyConfigError,
    ShopifyInvalidResponseError,
    ShopifyNotFoundError,
)


def make_client(handler, **kwargs) -> ShopifyClient:
    """Create a client whose HTTP traffic is answered by ``handler``."""
    kwargs.setdefault("recovery_interval", 0.01)
    client = ShopifyClient("test-shop", "key123", "pass456", **kwargs)
    client._client = httpx.Client(
        transport=httpx.MockTransport(handler),
        auth=(client.api_key, client.password),
    )
    return client


class TestShopifyClient:
    """Tests for ShopifyClient initialization and basic functionality."""

    def test_init_with_credentials(self):
        """Test client initialization with explicit credentials."""
        with ShopifyClient("test-shop", "key123", "pass456") as client:
            assert client.shop == "test-shop"
            assert client.api_url == "https://test-shop.myshopify.com/admin"

    def test_init_without_credentials_raises_error(self):
        """Test that initializing without credentials raises error."""
        with patch("pyshoptheme.api.config") as mock_config:
            mock_config.shop = None
            mock_config.api_key = None
            mock_config.api_password = None
            with pytest.raises(ShopifyConfigError, match="not configured"):
                ShopifyClient()

    def test_init_uses_config(self):
        """Test that missing arguments are taken from config."""
        with patch("pyshoptheme.api.config") as mock_config:
            mock_config.shop = "from-config"
            mock_config.api_key = "abc"
            mock_config.api_password = "def"
            with ShopifyClient() as client:
                assert client.api_url == "https://from-config.myshopify.com/admin"
                assert client.api_key == "abc"

    def test_url_for(self):
        """Test endpoint URL building."""
        with ShopifyClient("test-shop", "key123", "pass456") as client:
            assert (
                client.url_for("themes/1/assets")
                == "https://test-shop.myshopify.com/admin/themes/1/assets.json"
            )
            assert (
                client.url_for("/themes/")
                == "https://test-shop.myshopify.com/admin/themes.json"
            )


class TestThemeEndpoints:
    """Tests for the theme and asset operations."""

    def test_get_themes_uses_basic_auth(self):
        """Test listing themes sends the credentials."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"themes": [{"id": 1, "role": "main"}]})

        with make_client(handler) as client:
            themes = client.get_themes()

        expected = base64.b64encode(b"key123:pass456").decode()
        assert themes == [{"id": 1, "role": "main"}]
        assert seen["auth"] == f"Basic {expected}"
        assert seen["url"] == "https://test-shop.myshopify.com/admin/themes.json"

    def test_get_assets(self):
        """Test listing assets of a theme."""
        assets = [{"key": "assets/a.css", "updated_at": "2024-01-01T00:00:00Z"}]

        with make_client(lambda r: httpx.Response(200, json={"assets": assets})) as client:
            assert client.get_assets(7) == assets

    def test_get_assets_invalid_response(self):
        """Test that a listing without an assets array raises."""
        with make_client(lambda r: httpx.Response(200, json={"nope": 1})) as client:
            with pytest.raises(ShopifyInvalidResponseError, match="assets response"):
                client.get_assets(7)

    def test_get_asset_sends_key(self):
        """Test fetching a single asset passes its key as a query parameter."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200, json={"asset": {"key": "assets/a b.css", "value": "body{}"}}
            )

        with make_client(handler) as client:
            asset = client.get_asset(7, "assets/a b.css")

        assert asset["value"] == "body{}"
        assert seen["params"] == {"asset[key]": "assets/a b.css", "theme_id": "7"}

    def test_get_asset_not_found(self):
        """Test that a 404 surfaces as ShopifyNotFoundError."""
        with make_client(
            lambda r: httpx.Response(404, json={"errors": "Not Found"})
        ) as client:
            with pytest.raises(ShopifyNotFoundError) as exc_info:
                client.get_asset(7, "assets/missing.css")
        assert exc_info.value.status_code == 404

    def test_put_asset_sends_attachment(self):
        """Test uploading sends the asset as JSON."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "asset": {
                        "key": "assets/a.css",
                        "updated_at": "2024-01-02T00:00:00Z",
                    }
                },
            )

        with make_client(handler) as client:
            asset = client.put_asset(7, "assets/a.css", attachment="Ym9keXt9")

        assert seen["method"] == "PUT"
        assert seen["body"] == {
            "asset": {"key": "assets/a.css", "attachment": "Ym9keXt9"}
        }
        assert asset["updated_at"] == "2024-01-02T00:00:00Z"

    def test_put_asset_with_value(self):
        """Test uploading text content."""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"asset": {"key": "layout/theme.liquid"}})

        with make_client(handler) as client:
            client.put_asset(7, "layout/theme.liquid", value="<html></html>")

        assert seen["body"] == {
            "asset": {"key": "layout/theme.liquid", "value": "<html></html>"}
        }

    def test_rate_limit_is_invisible_to_caller(self):
        """Test that a 429 is retried without surfacing."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "1.0"})
            return httpx.Response(200, json={"themes": []})

        with make_client(handler) as client:
            assert client.get_themes() == []

        assert len(calls) == 2
