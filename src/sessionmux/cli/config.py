"""Settings commands."""
import click

from ..config import Config, dump_config_env, dump_config_toml, get_config

FORMATS = click.Choice(['toml', 'env'])


def _render(settings: Config, fmt: str) -> str:
    if fmt == 'env':
        return dump_config_env(settings)
    return dump_config_toml(settings)


@click.group()
def config():
    """Configuration management commands."""
    pass


@config.command("show")
@click.option('--format', 'fmt', default='toml', type=FORMATS, help='Output format')
def show(fmt):
    """Show current effective configuration."""
    click.echo(_render(get_config(), fmt))


@config.command("defaults")
@click.option('--format', 'fmt', default='toml', type=FORMATS, help='Output format')
def defaults(fmt):
    """Show default configuration values."""
    click.echo(_render(Config(), fmt))
