"""Validation and loading of session configurations."""
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from .exceptions import ConfigError, ConfigNotFoundError
from .models import PANE_TYPES, SessionConfig, Subsession, Window
from .options import REGISTRY, Scope
from .parser import Document, parse_file

logger = logging.getLogger(__name__)

TOP_LEVEL_KEYS = ("name", "timezone", "show_utc", "color")
SUBSESSION_KEYS = ("dir", "command", "delay", "execute", "history", "color")
WINDOW_KEYS = ("dir", "color")

# tmux rewrites these to "_" in session names, so "=name" would never match.
SESSION_NAME_FORBIDDEN = ".:"


def _describe(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(p) for p in detail["loc"])
        parts.append(f"{location}: {detail['msg']}" if location else detail["msg"])
    return "; ".join(parts)


def _known(props: Dict[str, str], allowed: Iterable[str], label: str, strict: bool) -> Dict[str, str]:
    unknown = [key for key in props if key not in allowed]
    if unknown:
        if strict:
            raise ConfigError(f"Unknown {'keys' if len(unknown) > 1 else 'key'} "
                              f"{', '.join(repr(k) for k in unknown)} in {label}")
        logger.debug(f"Ignoring unknown keys {unknown} in {label}")
    return {key: value for key, value in props.items() if key in allowed}


def _check_structure(document: Document):
    """The checks that must pass before anything else is looked at."""
    if not document.scalars.get("name", "").strip():
        raise ConfigError("Session name not defined in configuration")

    if not document.windows:
        raise ConfigError("No windows defined in configuration")

    for window in document.windows:
        if not window.panes:
            raise ConfigError(f"Window '{window.name}' has no panes defined")

    for window in document.windows:
        for index, pane in enumerate(window.panes):
            if pane.type != "subsession":
                continue
            ref = pane.props.get("subsession", "")
            if not ref:
                raise ConfigError(f"Window '{window.name}' pane {index}: "
                                  f"subsession type but no subsession name specified")
            block = document.subsessions.get(ref)
            if block is None or not block.props.get("dir"):
                raise ConfigError(f"Subsession '{ref}' referenced in window '{window.name}' "
                                  f"pane {index} is not defined in subsessions section")


def _check_session_name(name: str, label: str):
    bad = sorted({char for char in name if char in SESSION_NAME_FORBIDDEN})
    if bad:
        raise ConfigError(f"{label} name '{name}' cannot contain "
                          f"{' or '.join(repr(char) for char in bad)} (tmux renames such sessions)")


def _build_window(block, strict: bool) -> Window:
    label = f"window '{block.name}'"
    panes = []
    for index, pane in enumerate(block.panes):
        model = PANE_TYPES.get(pane.type)
        if model is None:
            raise ConfigError(f"Window '{block.name}' pane {index}: unknown pane type '{pane.type}' "
                              f"(expected one of: {', '.join(PANE_TYPES)})")
        props = _known(pane.props, model.model_fields, f"{label} pane {index}", strict)
        try:
            panes.append(model(**props))
        except ValidationError as e:
            raise ConfigError(f"Window '{block.name}' pane {index}: {_describe(e)}") from None

    props = _known(block.props, WINDOW_KEYS, label, strict)
    try:
        return Window(name=block.name, options=block.options, panes=panes, **props)
    except ValidationError as e:
        raise ConfigError(f"Window '{block.name}': {_describe(e)}") from None


def _build_subsession(block, strict: bool) -> Subsession:
    label = f"subsession '{block.name}'"
    props = _known(block.props, SUBSESSION_KEYS, label, strict)
    try:
        return Subsession(name=block.name, env=block.env, options=block.options, **props)
    except ValidationError as e:
        raise ConfigError(f"Subsession '{block.name}': {_describe(e)}") from None


def _check_options(config: SessionConfig):
    REGISTRY.check(config.global_options, Scope.GLOBAL)
    REGISTRY.check(config.session_options, Scope.SESSION)
    for window in config.windows:
        REGISTRY.check(window.options, Scope.WINDOW, window.name)
    for subsession in config.subsessions.values():
        REGISTRY.check(subsession.options, Scope.SUBSESSION, subsession.name)


def validate(document: Document, base_dir: Optional[Path] = None, strict: bool = True) -> SessionConfig:
    """Turn a parsed document into a :class:`SessionConfig`.

    Raises:
        ConfigError: naming the offending window, pane or subsession.
    """
    _check_structure(document)
    _check_session_name(document.scalars["name"].strip(), "Session")
    for name in document.subsessions:
        _check_session_name(name, "Subsession")

    names: List[str] = [window.name for window in document.windows]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate window names: {', '.join(duplicates)}")

    if base_dir is None:
        base_dir = document.source.resolve().parent if document.source else Path.cwd()

    scalars = _known(document.scalars, TOP_LEVEL_KEYS, "top level", strict)
    subsessions = {name: _build_subsession(block, strict)
                   for name, block in document.subsessions.items()}
    windows = [_build_window(block, strict) for block in document.windows]

    try:
        config = SessionConfig(
            global_options=document.global_options,
            session_options=document.session_options,
            subsessions=subsessions,
            windows=windows,
            base_dir=base_dir,
            source=document.source,
            **scalars,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_describe(e)}") from None

    if strict:
        _check_options(config)

    logger.debug(f"Validated session '{config.name}': {len(config.windows)} windows, "
                 f"{len(config.subsessions)} subsessions")
    return config


def load_workspace(path: Union[str, Path], strict: bool = True) -> SessionConfig:
    """Parse and validate a session file."""
    return validate(parse_file(path, strict=strict), strict=strict)


def config_candidates(name: str, search_dir: Path, sessions_dir: Path) -> List[Path]:
    return [
        search_dir / f"{name}.session.yaml",
        search_dir / ".session.yaml",
        search_dir / ".session" / "config.yaml",
        sessions_dir / f"{name}.yaml",
    ]


def find_config(name_or_path: str, search_dir: Optional[Path] = None,
                sessions_dir: Optional[Path] = None) -> Path:
    """Locate a session file from an explicit path or a session name."""
    path = Path(name_or_path).expanduser()
    if path.is_file():
        return path.resolve()

    if sessions_dir is None:
        from .config import get_config
        sessions_dir = Path(get_config().paths.sessions_dir).expanduser()

    candidates = config_candidates(name_or_path, search_dir or Path.cwd(), sessions_dir)
    for candidate in candidates:
        if candidate.is_file():
            return candidate.resolve()

    searched = "\n  ".join(str(c) for c in candidates)
    raise ConfigNotFoundError(f"No configuration found for '{name_or_path}'. Searched:\n  {searched}")
