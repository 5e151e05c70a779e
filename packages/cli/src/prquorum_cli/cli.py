"""CLI entry point for prquorum.

Commands:
  review   run the multi-model review on a pull request
  history  display comments posted by earlier reviews
"""

from __future__ import annotations

import importlib.metadata
import logging
import os
import subprocess

import click
from rich.console import Console
from rich.logging import RichHandler

from prquorum_cli.commands.history import history_cmd
from prquorum_cli.commands.review import review_cmd

console = Console()
logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return GITHUB_TOKEN, else the GitHub CLI session token, else None."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token
    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None


def _build_store(config: dict):
    """Instantiate the configured store from .prquorum.yml settings.

      store: sqlite → SQLiteStore (store_path, default .prquorum.db)
      (default)     → NoOpStore
    """
    from prquorum_store.noop import NoOpStore

    if config.get("store") == "sqlite":
        from prquorum_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".prquorum.db"))

    return NoOpStore()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prquorum"),
    prog_name="prquorum",
)
@click.option(
    "--config",
    "config_path",
    default=".prquorum.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRQUORUM_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Multi-model AI pull request reviewer."""
    from prquorum_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(history_cmd)
