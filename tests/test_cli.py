"""Unit tests for the shopify-theme CLI commands."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from pyshoptheme.cli import main
from pyshoptheme.exceptions import (
    ShopifyAuthenticationError,
    ShopifyConfigError,
    ShopifyNetworkError,
    SyncError,
)


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_config():
    """Mock a configured project."""
    with patch("pyshoptheme.cli.config") as mock:
        mock.is_configured.return_value = True
        mock.theme_for_branch.return_value = None
        yield mock


@pytest.fixture
def mock_client_class():
    with patch("pyshoptheme.cli.ShopifyClient") as mock:
        mock.return_value = MagicMock()
        mock.return_value.__enter__.return_value = mock.return_value
        mock.return_value.__exit__.return_value = False
        yield mock


@pytest.fixture
def mock_engine_class():
    with patch("pyshoptheme.cli.SyncEngine") as mock:
        yield mock


@pytest.fixture
def mock_branch():
    with patch("pyshoptheme.cli.get_git_branch") as mock:
        mock.return_value = "main"
        yield mock


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "init" in result.output
        assert "themes" in result.output
        assert "pull" in result.output
        assert "push" in result.output

    def test_pull_help(self, runner):
        result = runner.invoke(main, ["pull", "--help"])
        assert result.exit_code == 0
        assert "--workers" in result.output


class TestInitCommand:
    """Tests for the init command."""

    def test_init_saves_valid_credentials(self, runner, mock_config, mock_client_class):
        """Test init validates and stores the credentials."""
        mock_client_class.return_value.get_themes.return_value = []

        result = runner.invoke(
            main, ["init"], input="my-shop.myshopify.com\nkey1\npass1\n"
        )

        assert result.exit_code == 0
        assert "Config saved." in result.output
        mock_client_class.assert_called_once_with(
            "my-shop", "key1", "pass1", initial_throttle=1
        )
        mock_config.save_credentials.assert_called_once_with("my-shop", "key1", "pass1")

    def test_init_reprompts_invalid_shop_url(
        self, runner, mock_config, mock_client_class
    ):
        """Test that a url outside myshopify.com is rejected."""
        mock_client_class.return_value.get_themes.return_value = []

        result = runner.invoke(
            main,
            ["init"],
            input="example.com\nmy-shop.myshopify.com\nkey1\npass1\n",
        )

        assert result.exit_code == 0
        assert ".myshopify.com" in result.output
        mock_config.save_credentials.assert_called_once_with("my-shop", "key1", "pass1")

    def test_init_invalid_credentials_cancel(
        self, runner, mock_config, mock_client_class
    ):
        """Test init with rejected credentials where the user gives up."""
        mock_client_class.return_value.get_themes.side_effect = (
            ShopifyAuthenticationError("Invalid API key or access token", 401)
        )

        result = runner.invoke(
            main, ["init"], input="my-shop.myshopify.com\nkey1\npass1\nn\n"
        )

        assert result.exit_code == 1
        assert "To create API credentials" in result.output
        assert "Configuration cancelled." in result.output
        mock_config.save_credentials.assert_not_called()

    def test_init_invalid_credentials_retry(
        self, runner, mock_config, mock_client_class
    ):
        """Test init asks for new credentials after a failed validation."""
        mock_client_class.return_value.get_themes.side_effect = [
            ShopifyAuthenticationError("Invalid API key or access token", 401),
            [],
        ]

        result = runner.invoke(
            main,
            ["init"],
            input="my-shop.myshopify.com\nbad\nbad\ny\nkey2\npass2\n",
        )

        assert result.exit_code == 0
        mock_config.save_credentials.assert_called_once_with("my-shop", "key2", "pass2")


class TestThemesCommand:
    """Tests for the themes command."""

    def test_themes_not_initialized(self, runner, mock_config):
        mock_config.is_configured.return_value = False

        result = runner.invoke(main, ["themes"])

        assert result.exit_code == 1
        assert "Please run `shopify-theme init`" in result.output

    def test_themes_json(self, runner, mock_config, mock_client_class):
        themes = [{"id": 1, "role": "main", "name": "Debut"}]
        mock_client_class.return_value.get_themes.return_value = themes

        result = runner.invoke(main, ["--json", "themes"])

        assert result.exit_code == 0
        assert json.loads(result.output) == themes


class TestPullCommand:
    """Tests for the pull command."""

    def test_pull_not_initialized(self, runner, mock_config, mock_engine_class):
        """Test pull refuses to run without configuration."""
        mock_config.is_configured.return_value = False

        result = runner.invoke(main, ["pull", "5"])

        assert result.exit_code == 1
        assert "Could not load Shopify theme config" in result.output
        mock_engine_class.assert_not_called()

    def test_pull_lists_changed_files(
        self, runner, mock_config, mock_client_class, mock_engine_class
    ):
        mock_engine_class.return_value.pull.return_value = [
            "assets/a.css",
            "templates/index.liquid",
        ]

        result = runner.invoke(main, ["pull", "5"])

        assert result.exit_code == 0
        assert "Files changed:" in result.output
        assert "- assets/a.css" in result.output
        assert "- templates/index.liquid" in result.output
        args, kwargs = mock_engine_class.call_args
        assert args == (mock_client_class.return_value, 5)
        assert kwargs["max_workers"] == 40

    def test_pull_no_changes(self, runner, mock_config, mock_client_class, mock_engine_class):
        mock_engine_class.return_value.pull.return_value = []

        result = runner.invoke(main, ["pull", "5"])

        assert result.exit_code == 0
        assert "No files have changed since last sync/download." in result.output

    def test_pull_failure(self, runner, mock_config, mock_client_class, mock_engine_class):
        """Test that failed downloads are listed and exit non-zero."""
        mock_engine_class.return_value.pull.side_effect = SyncError(
            {"assets/b.css": ShopifyNetworkError("Network error: timed out")}
        )

        result = runner.invoke(main, ["pull", "5"])

        assert result.exit_code == 1
        assert "Download failed:" in result.output
        assert "- assets/b.css: Network error: timed out" in result.output

    def test_pull_uses_branch_theme(
        self, runner, mock_config, mock_client_class, mock_engine_class, mock_branch
    ):
        """Test the theme associated with the git branch is used."""
        mock_config.theme_for_branch.return_value = 9
        mock_engine_class.return_value.pull.return_value = []

        result = runner.invoke(main, ["pull"])

        assert result.exit_code == 0
        mock_config.theme_for_branch.assert_called_once_with("main")
        assert mock_engine_class.call_args[0][1] == 9

    def test_pull_prompts_and_associates_branch(
        self, runner, mock_config, mock_client_class, mock_engine_class, mock_branch
    ):
        """Test the theme id is asked for and saved for the branch."""
        mock_engine_class.return_value.pull.return_value = []

        result = runner.invoke(main, ["pull"], input="7\ny\n")

        assert result.exit_code == 0
        assert "What theme would you like to sync?" in result.output
        mock_config.save_branch_theme.assert_called_once_with("main", 7)
        assert mock_engine_class.call_args[0][1] == 7

    def test_pull_invalid_branch_config(
        self, runner, mock_config, mock_client_class, mock_engine_class, mock_branch
    ):
        """Test a malformed branch association is reported, not raised."""
        mock_config.theme_for_branch.side_effect = ShopifyConfigError(
            "Invalid branch theme id in config: abc"
        )

        result = runner.invoke(main, ["pull"])

        assert result.exit_code == 1
        assert "Error: Invalid branch theme id" in result.output
        mock_engine_class.assert_not_called()

    def test_pull_prompt_without_git(
        self, runner, mock_config, mock_client_class, mock_engine_class, mock_branch
    ):
        """Test that no association is offered outside a git repository."""
        mock_branch.return_value = None
        mock_engine_class.return_value.pull.return_value = []

        result = runner.invoke(main, ["pull"], input="7\n")

        assert result.exit_code == 0
        assert "Associate" not in result.output
        mock_config.save_branch_theme.assert_not_called()


class TestPushCommand:
    """Tests for the push command."""

    def test_push_lists_uploaded_files(
        self, runner, mock_config, mock_client_class, mock_engine_class
    ):
        mock_engine_class.return_value.push.return_value = ["assets/a.css"]

        result = runner.invoke(main, ["push", "5", "--workers", "4"])

        assert result.exit_code == 0
        assert "Files uploaded:" in result.output
        assert "- assets/a.css" in result.output
        assert mock_engine_class.call_args[1]["max_workers"] == 4

    def test_push_no_changes(self, runner, mock_config, mock_client_class, mock_engine_class):
        mock_engine_class.return_value.push.return_value = []

        result = runner.invoke(main, ["push", "5"])

        assert result.exit_code == 0
        assert "No files have changed since last sync/upload." in result.output

    def test_push_failure(self, runner, mock_config, mock_client_class, mock_engine_class):
        mock_engine_class.return_value.push.side_effect = SyncError(
            {"assets/a.css": ValueError("boom")}
        )

        result = runner.invoke(main, ["push", "5"])

        assert result.exit_code == 1
        assert "Upload failed:" in result.output
        assert "- assets/a.css: boom" in result.output

    def test_push_json(self, runner, mock_config, mock_client_class, mock_engine_class):
        mock_engine_class.return_value.push.return_value = ["assets/a.css"]

        result = runner.invoke(main, ["--json", "push", "5"])

        assert result.exit_code == 0
        assert json.loads(result.output) == ["assets/a.css"]
