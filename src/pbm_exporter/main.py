"""pbm-exporter: Prometheus metrics for Percona Backup for MongoDB."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import uvicorn

from pbm_exporter.api import create_app
from pbm_exporter.config import load_config
from pbm_exporter.logging import configure_logging
from pbm_exporter.version import __version__

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(
    __version__, "--version", "-v", prog_name="pbm-exporter", message="%(prog)s version %(version)s"
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="PBM_EXPORTER_CONFIG",
    default=None,
    help="Optional YAML config file",
)
def cli(config_path: Path | None) -> None:
    """Serve PBM backup, agent and PITR status on /metrics."""
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    configure_logging(
        config.logging.level,
        json_format=config.logging.json_format,
        redact=config.logging.redact,
    )

    app = create_app(config)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=config.server.graceful_shutdown_seconds,
        log_config=None,
    )
    logger.info("main.exited")


if __name__ == "__main__":
    cli()
