"""Per-project launcher wrappers.

``install`` writes a small bash script named after the session into a bin
directory, so that ``demo status`` behaves like
``sessionmux run /path/to/demo.yaml status``.
"""
import logging
import shlex
import stat
from pathlib import Path
from typing import Optional, Union

from .exceptions import ConfigError, InstallError
from .parser import parse_file

logger = logging.getLogger(__name__)

WRAPPER_MARKER = "# sessionmux-wrapper"


def wrapper_content(config_path: Path) -> str:
    return "\n".join([
        "#!/usr/bin/env bash",
        WRAPPER_MARKER,
        f'exec sessionmux run {shlex.quote(str(config_path))} "$@"',
        "",
    ])


def is_wrapper(path: Path) -> bool:
    try:
        return WRAPPER_MARKER in path.read_text().splitlines()[:3]
    except (OSError, UnicodeDecodeError):
        return False


def install_wrapper(config_path: Union[str, Path], bin_dir: Union[str, Path],
                    force: bool = False) -> Path:
    """Write ``<bin_dir>/<name>`` for the session file at ``config_path``.

    Only the ``name`` key is read, with a lenient parse, so a file that does
    not fully validate can still be installed.

    Raises:
        ConfigError: the file has no name, or a different file is in the way
            and ``force`` is not set.
        InstallError: the wrapper could not be written.
    """
    config_path = Path(config_path).expanduser().resolve()
    document = parse_file(config_path, strict=False)
    name = document.scalars.get("name", "").strip()
    if not name:
        raise ConfigError(f"Session name not defined in {config_path}")
    if "/" in name:
        raise ConfigError(f"Session name '{name}' cannot be used as a command name")

    directory = Path(bin_dir).expanduser()
    target = directory / name
    if target.exists() and not force and not is_wrapper(target):
        raise ConfigError(f"{target} already exists; use --force to overwrite")

    try:
        directory.mkdir(parents=True, exist_ok=True)
        target.write_text(wrapper_content(config_path))
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise InstallError(f"Cannot write {target}: {e}") from e
    logger.info(f"Installed {target} -> {config_path}")
    return target


def uninstall_wrapper(name: str, bin_dir: Union[str, Path]) -> Optional[Path]:
    """Remove a wrapper written by :func:`install_wrapper`.

    Returns the removed path, or None if there was nothing to remove.
    """
    target = Path(bin_dir).expanduser() / name
    if not target.exists():
        logger.info(f"No wrapper at {target}")
        return None
    if not is_wrapper(target):
        raise ConfigError(f"{target} was not installed by sessionmux; refusing to remove it")
    try:
        target.unlink()
    except OSError as e:
        raise InstallError(f"Cannot remove {target}: {e}") from e
    logger.info(f"Removed {target}")
    return target
