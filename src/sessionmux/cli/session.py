"""Session commands: run and check."""
import sys

import click

from ..config import get_config
from ..exceptions import SessionmuxError, UnknownTargetError
from ..orchestrator import Orchestrator
from ..parser import parse_file
from ..tmux import Tmux
from ..workspace import find_config, load_workspace, validate
from ..writer import dump_document

ACTIONS = ('start', 'status', 'stop', 'kill', 'restart', 'refresh')
TARGETED = ('restart', 'refresh')


def _stdin_is_tty() -> bool:
    return sys.stdin.isatty()


def _confirm_kill(yes: bool):
    def confirm(live):
        if yes:
            return True
        if not _stdin_is_tty():
            click.echo("Not killing without confirmation in a non-interactive run; pass --yes",
                       err=True)
            return False
        return click.confirm(f"Kill {', '.join(live)}?", default=False)
    return confirm


def _report_start(report):
    for discrepancy in report.discrepancies:
        click.echo(f"Warning: {discrepancy}", err=True)
    if report.created:
        click.echo(f"Started session '{report.session}'")
    else:
        click.echo(f"Session '{report.session}' already running")


def _status(orchestrator):
    status = orchestrator.status()
    state = "running" if status.running else "not running"
    click.echo(f"Session '{status.session}': {state}")
    for window in status.windows:
        click.echo(f"  window {window}")
    for name, alive in status.subsessions.items():
        click.echo(f"  subsession {name}: {'running' if alive else 'not running'}")


@click.command()
@click.argument('config_file', metavar='CONFIG')
@click.argument('action', required=False, default='start')
@click.argument('target', required=False)
@click.option('--headless', is_flag=True, help='Do not attach after starting')
@click.option('--yes', '-y', is_flag=True, help='Do not ask before killing sessions')
@click.option('--lenient', is_flag=True, help='Skip unknown keys and malformed lines')
def run(config_file, action, target, headless, yes, lenient):
    """Build or manage the workspace described by CONFIG.

    ACTION is one of start (default), status, stop, kill, restart [TARGET],
    refresh [TARGET], or the name of a subsession to attach to.
    """
    if target and action not in TARGETED:
        raise click.UsageError(f"'{action}' does not take a target")

    try:
        settings = get_config()
        attach = settings.tmux.attach and not headless
        workspace = load_workspace(find_config(config_file), strict=not lenient)

        tmux = Tmux(settings.tmux.binary)
        tmux.ensure_available(settings.tmux.min_version)
        orchestrator = Orchestrator(tmux, workspace, settings=settings)

        if action == 'start':
            _report_start(orchestrator.start())
            if attach:
                orchestrator.attach()
        elif action == 'status':
            _status(orchestrator)
        elif action == 'stop':
            if orchestrator.stop():
                click.echo(f"Stopped session '{workspace.name}'")
            else:
                click.echo(f"Session '{workspace.name}' is not running")
        elif action == 'kill':
            if orchestrator.kill(_confirm_kill(yes)):
                click.echo(f"Killed session '{workspace.name}'")
        elif action == 'restart':
            report = orchestrator.restart(target)
            if report is None:
                click.echo(f"Restarted subsession '{target}'")
            else:
                _report_start(report)
                if attach:
                    orchestrator.attach()
        elif action == 'refresh':
            failures = orchestrator.refresh(target)
            click.echo(f"Refreshed '{target or workspace.name}'")
            if failures:
                click.echo(f"Warning: {failures} option(s) could not be set", err=True)
        else:
            if action not in workspace.subsessions:
                raise UnknownTargetError(
                    f"'{action}' is neither an action ({', '.join(ACTIONS)}) "
                    f"nor a subsession of '{workspace.name}'")
            if attach:
                orchestrator.attach(action)
            else:
                orchestrator.subsessions.ensure(action)
                click.echo(f"Subsession '{action}' running")
    except SessionmuxError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()


@click.command()
@click.argument('config_file', metavar='CONFIG')
@click.option('--lenient', is_flag=True, help='Skip unknown keys and malformed lines')
def check(config_file, lenient):
    """Validate CONFIG and print it in normalized form."""
    try:
        path = find_config(config_file)
        document = parse_file(path, strict=not lenient)
        workspace = validate(document, strict=not lenient)
    except SessionmuxError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()

    click.echo(dump_document(document), nl=False)
    click.echo(f"OK: session '{workspace.name}' with {len(workspace.windows)} window(s) "
               f"and {len(workspace.subsessions)} subsession(s)", err=True)
