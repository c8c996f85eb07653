"""Main CLI entry point for sessionmux."""
import logging
import os

import click

from ..config import get_config
from ..exceptions import ConfigError
from .config import config
from .install import install, uninstall
from .session import check, run


def setup_logging():
    """Configure logging for the command line."""
    # Explicit --log-level wins over the settings file
    log_level = os.getenv('SESSIONMUX_LOG_LEVEL')
    if not log_level:
        try:
            log_level = get_config().logging.level
        except ConfigError:
            # Reported by the command that needs the settings
            log_level = "INFO"
    log_level = log_level.upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )
    logging.getLogger('sessionmux').setLevel(getattr(logging, log_level, logging.INFO))


@click.group()
@click.option('--log-level', default=None, type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level')
@click.version_option(package_name='sessionmux')
def cli(log_level):
    """Declarative tmux workspaces."""
    if log_level:
        os.environ['SESSIONMUX_LOG_LEVEL'] = log_level
    setup_logging()


cli.add_command(run)
cli.add_command(check)
cli.add_command(install)
cli.add_command(uninstall)
cli.add_command(config)


if __name__ == "__main__":
    cli()
