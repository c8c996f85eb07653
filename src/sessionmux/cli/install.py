"""Wrapper install commands."""
import click

from ..config import get_config
from ..exceptions import SessionmuxError
from ..install import install_wrapper, uninstall_wrapper


@click.command()
@click.argument('config_file', metavar='CONFIG', type=click.Path(exists=True, dir_okay=False))
@click.option('--bin-dir', default=None, help='Directory for the wrapper (default: paths.bin_dir)')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def install(config_file, bin_dir, force):
    """Install a command named after the session that runs CONFIG."""
    try:
        target = install_wrapper(config_file, bin_dir or get_config().paths.bin_dir, force=force)
    except SessionmuxError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()
    click.echo(f"Installed {target}")


@click.command()
@click.argument('name')
@click.option('--bin-dir', default=None, help='Directory holding the wrapper (default: paths.bin_dir)')
def uninstall(name, bin_dir):
    """Remove a wrapper written by install."""
    try:
        removed = uninstall_wrapper(name, bin_dir or get_config().paths.bin_dir)
    except SessionmuxError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()
    if removed:
        click.echo(f"Removed {removed}")
    else:
        click.echo(f"No wrapper named '{name}'")
