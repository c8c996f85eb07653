"""Process utilities."""
import logging
import subprocess
from typing import List

logger = logging.getLogger(__name__)


def run(cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a subprocess synchronously with automatic logging.

    A missing executable is reported as exit code 127 rather than raised, so
    callers can treat it like any other failed command.

    Args:
        cmd: Command to run as list of strings
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result
    """
    logger.debug(f"Running: {' '.join(cmd)}")

    kwargs.setdefault('capture_output', True)
    kwargs.setdefault('text', True)

    try:
        result = subprocess.run(cmd, **kwargs)
    except FileNotFoundError as e:
        logger.debug(f"Executable not found: {cmd[0]}")
        return subprocess.CompletedProcess(cmd, 127, "", str(e))

    if result.stdout:
        logger.debug(f"stdout: {result.stdout.strip()}")
    if result.stderr:
        logger.debug(f"stderr: {result.stderr.strip()}")

    if result.returncode != 0:
        logger.debug(f"Command failed with exit code {result.returncode}: {' '.join(cmd)}")

    return result


def spawn_detached(cmd: List[str]) -> subprocess.Popen:
    """Start a process that outlives this one, detached from its terminal."""
    logger.debug(f"Spawning detached: {' '.join(cmd)}")
    return subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
