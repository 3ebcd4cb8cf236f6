"""Click CLI group for Paywarden."""

import logging

import click


@click.group()
@click.version_option(package_name="paywarden")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: from config.yaml)",
)
def cli(log_level: str | None) -> None:
    """Paywarden: guard-checked payments for AI agents."""
    if log_level is None:
        from paywarden.config import load_config

        log_level = load_config().log_level
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
