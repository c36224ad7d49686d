"""CLI interface for pyshoptheme."""

import logging
import re
import subprocess
from typing import Any, Optional

import click

from .api import ShopifyClient
from .config import config
from .exceptions import ShopifyAPIError, ShopifyThemeError, SyncError
from .output import OutputFormatter
from .sync import SyncEngine
from .utils import DEFAULT_THROTTLE_CEILING

logger = logging.getLogger(__name__)

SHOP_URL_RE = re.compile(r"^([a-zA-Z0-9\-_]+)\.myshopify\.com")
CREDENTIAL_RE = re.compile(r"^[a-z0-9]+")

NOT_INITIALIZED_MESSAGE = (
    "Could not load Shopify theme config. Please run `shopify-theme init`."
)


def print_api_instructions(out: OutputFormatter) -> None:
    """Explain how to create private app credentials."""
    out.print("To create API credentials:")
    out.print("  1) Log into your store.")
    out.print("  2) Go to Apps > View Private Apps > Generate API credentials.")
    out.print("  3) Enter a name for the credentials (ex: Theme sync).")
    out.print(
        '  4) For permissions, set "theme templates and theme assets" '
        'to "read and write".'
    )
    out.print("  5) Hit the save button.")
    out.print(
        "Shopify should then generate API credentials for you and display "
        "your key, password, and secret."
    )


def get_git_branch(out: OutputFormatter) -> Optional[str]:
    """Get the current git branch of the working directory.

    Missing git, a directory outside a repository, or a repository without
    commits only produce a warning.

    Returns:
        Branch name, or None if it could not be determined

    Raises:
        ShopifyThemeError: If git failed for any other reason
    """
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        out.warning("git not found.")
        return None

    if result.returncode != 0:
        stderr = result.stderr.lower()
        if "not a git repository" in stderr:
            out.warning("directory not a git repository.")
            return None
        if "unknown revision or path" in stderr:
            out.warning("could not determine git branch.")
            return None
        raise ShopifyThemeError(f"git failed: {result.stderr.strip()}")

    return result.stdout.strip() or None


def resolve_theme_id(theme_id: Optional[int], out: OutputFormatter) -> int:
    """Determine the theme to sync.

    Uses, in order: the explicit argument, the theme associated with the
    current git branch, and finally an interactive prompt which offers to
    associate the answer with the branch.
    """
    if theme_id is not None:
        return theme_id

    branch = get_git_branch(out)
    branch_theme = config.theme_for_branch(branch)
    if branch_theme is not None:
        logger.debug(f"Using theme {branch_theme} for git branch {branch}")
        return branch_theme

    theme_id = click.prompt("What theme would you like to sync?", type=int)

    if branch and click.confirm(
        f"Associate this theme id with the git branch [{branch}]?", default=True
    ):
        config.save_branch_theme(branch, theme_id)

    return theme_id


def require_initialized(ctx: Any) -> None:
    """Exit with an error if shop and credentials are not configured."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        configured = config.is_configured()
    except ShopifyThemeError as e:
        out.error(str(e))
        configured = False

    if not configured:
        out.error(NOT_INITIALIZED_MESSAGE)
        ctx.exit(1)


def _prompt_matching(label: str, pattern: re.Pattern, invalid: str) -> re.Match:
    """Prompt until the answer matches ``pattern``."""
    while True:
        answer = click.prompt(label).strip()
        match = pattern.match(answer)
        if match:
            return match
        click.echo(invalid, err=True)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyshoptheme")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pyshoptheme - Download and upload Shopify themes and keep track of changes."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyshoptheme").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.pass_context
def init(ctx: Any) -> None:
    """Initialize the Shopify theme settings.

    Stores the shop and private app credentials in
    .shopify-theme/config.json in the current directory.
    """
    out: OutputFormatter = ctx.obj["out"]

    shop = _prompt_matching(
        "What is your myshopify shop url?",
        SHOP_URL_RE,
        'URL must be valid and must end with ".myshopify.com"',
    ).group(1)

    while True:
        api_key = _prompt_matching(
            "What API key do you want to use?", CREDENTIAL_RE, "Invalid API key."
        ).string
        api_password = _prompt_matching(
            "What API password do you want to use?",
            CREDENTIAL_RE,
            "Invalid API password.",
        ).string

        out.info("Validating API credentials...")
        try:
            with ShopifyClient(shop, api_key, api_password, initial_throttle=1) as client:
                client.get_themes()
            break
        except ShopifyAPIError as e:
            out.error(f"API credential validation failed: {e}")
            print_api_instructions(out)
            if not click.confirm("Try again?", default=True):
                out.warning("Configuration cancelled.")
                ctx.exit(1)

    config.save_credentials(shop, api_key, api_password)
    out.success("Config saved.")


@main.command()
@click.pass_context
def themes(ctx: Any) -> None:
    """List the themes of the shop."""
    out: OutputFormatter = ctx.obj["out"]
    require_initialized(ctx)

    try:
        with ShopifyClient() as client:
            theme_list = client.get_themes()
    except ShopifyThemeError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)

    out.themes_table(theme_list)


@main.command()
@click.argument("theme_id", type=int, required=False)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(1, None),
    default=DEFAULT_THROTTLE_CEILING,
    show_default=True,
    help="Number of concurrent transfers",
)
@click.pass_context
def pull(ctx: Any, theme_id: Optional[int], workers: int) -> None:
    """Download a theme, fetching only files changed since the last sync."""
    out: OutputFormatter = ctx.obj["out"]
    require_initialized(ctx)

    try:
        theme_id = resolve_theme_id(theme_id, out)
        with ShopifyClient() as client:
            engine = SyncEngine(client, theme_id, output=out, max_workers=workers)
            changed = engine.pull()
    except SyncError as e:
        out.error_map("Download failed:", e.errors)
        ctx.exit(1)
    except ShopifyThemeError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json(changed)
    elif changed:
        out.file_list("Files changed:", changed)
    else:
        out.info("No files have changed since last sync/download.")


@main.command()
@click.argument("theme_id", type=int, required=False)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(1, None),
    default=DEFAULT_THROTTLE_CEILING,
    show_default=True,
    help="Number of concurrent transfers",
)
@click.pass_context
def push(ctx: Any, theme_id: Optional[int], workers: int) -> None:
    """Upload a theme, sending only files changed since the last sync."""
    out: OutputFormatter = ctx.obj["out"]
    require_initialized(ctx)

    try:
        theme_id = resolve_theme_id(theme_id, out)
        with ShopifyClient() as client:
            engine = SyncEngine(client, theme_id, output=out, max_workers=workers)
            uploaded = engine.push()
    except SyncError as e:
        out.error_map("Upload failed:", e.errors)
        ctx.exit(1)
    except ShopifyThemeError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json(uploaded)
    elif uploaded:
        out.file_list("Files uploaded:", uploaded)
    else:
        out.info("No files have changed since last sync/upload.")


if __name__ == "__main__":
    main()
