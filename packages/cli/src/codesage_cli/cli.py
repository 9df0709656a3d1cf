"""CLI entry point for codesage.

Commands:
  analyze  run queued pull request events through the analysis pipeline
  history  list stored reviews, newest first
  show     display one review and the comment it produced
  stats    aggregate dashboard statistics

This module is also the composition root: it builds the store, the GitHub
client, the provider gateway and the orchestrator by hand.
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console

from codesage_cli.commands.analyze import analyze_cmd
from codesage_cli.commands.history import history_cmd
from codesage_cli.commands.show import show_cmd
from codesage_cli.commands.stats import stats_cmd

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _build_store(config: dict):
    """Instantiate the configured store from .codesage.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .codesage.db)
      store: memory → MemoryStore (nothing survives the process)
    """
    store_type = config.get("store", "sqlite")

    if store_type == "memory":
        from codesage_store.memory import MemoryStore

        return MemoryStore()

    if store_type == "sqlite":
        from codesage_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".codesage.db"))

    raise click.UsageError(f"Unknown store: {store_type!r}. Choose 'sqlite' or 'memory'.")


def _build_orchestrator(config: dict, store):
    """Wire the pipeline components for one process."""
    from codesage_core.config import is_platform_configured
    from codesage_core.gh.auth import TokenCache
    from codesage_core.gh.client import SourceControlClient
    from codesage_core.orchestrator import AnalysisOrchestrator
    from codesage_core.providers.gateway import AIProviderGateway

    token_cache = None
    if is_platform_configured(config):
        token_cache = TokenCache(
            app_id=config["github_app_id"],
            private_key_path=config["github_private_key_path"],
            installation_id=config["github_installation_id"],
            api_url=config["github_api_url"],
            timeout=config["token_exchange_timeout"],
            safety_margin=config["token_safety_margin"],
        )

    scm = SourceControlClient(
        token_cache=token_cache,
        api_url=config["github_api_url"],
        timeout=config["github_timeout"],
        attempts=config["max_attempts"],
        base_delay=config["backoff_base"],
    )
    gateway = AIProviderGateway.from_config(config)
    return AnalysisOrchestrator(store=store, scm=scm, gateway=gateway)


@click.group()
@click.version_option(
    version=importlib.metadata.version("codesage"),
    prog_name="codesage",
)
@click.option(
    "--config",
    "config_path",
    default=".codesage.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="CODESAGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """Automated AI review of GitHub pull requests."""
    from codesage_core.config import load_config

    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)
    ctx.ensure_object(dict)

    config = load_config(config_path)
    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(analyze_cmd)
main.add_command(history_cmd)
main.add_command(show_cmd)
main.add_command(stats_cmd)
