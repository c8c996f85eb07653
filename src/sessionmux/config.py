"""Settings for sessionmux itself.

Settings come from a TOML file (``SESSIONMUX_CONFIG_FILE`` or
``~/.config/sessionmux/config.toml``) and are overridden by environment
variables named ``SESSIONMUX_<SECTION>_<FIELD>``.
"""
import json
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

ENV_PREFIX = "SESSIONMUX"
DEFAULT_CONFIG_FILE = "~/.config/sessionmux/config.toml"


class TmuxSettings(BaseModel):
    binary: str = Field("tmux", description="tmux executable")
    min_version: str = Field("2.6", description="Oldest supported tmux version")
    attach: bool = Field(True, description="Attach after starting unless --headless")


class ReadinessSettings(BaseModel):
    attempts: int = Field(20, ge=1, description="Polls before giving up on a target")
    interval: float = Field(0.05, ge=0, description="Seconds between polls")


class SubsessionSettings(BaseModel):
    restart_grace: float = Field(1.0, ge=0, description="Seconds to wait between stop and start")
    history_file: str = Field("~/.bash_history", description="File commands are appended to when history is on")


class PathSettings(BaseModel):
    runtime_dir: str = Field("", description="Generated files; empty means $XDG_RUNTIME_DIR/sessionmux")
    bin_dir: str = Field("~/.local/bin", description="Where install puts project wrappers")
    sessions_dir: str = Field("~/.config/sessionmux/sessions", description="Fallback location of <name>.yaml")


class LoggingSettings(BaseModel):
    level: str = Field("INFO", description="Default log level")


class Config(BaseModel):
    """sessionmux settings."""
    tmux: TmuxSettings = Field(default_factory=TmuxSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)
    subsession: SubsessionSettings = Field(default_factory=SubsessionSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_config: Optional[Config] = None


def generate_env_var_name(section: str, field: str) -> str:
    return f"{ENV_PREFIX}_{section}_{field}".upper()


def get_all_env_mappings() -> Dict[str, Tuple[str, str]]:
    """Map every settings field to its environment variable."""
    mappings = {}
    for section, info in Config.model_fields.items():
        for field in info.annotation.model_fields:
            mappings[generate_env_var_name(section, field)] = (section, field)
    return mappings


def _convert_env_value(value: str) -> Any:
    lowered = value.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def load_all_env_overrides() -> Dict[str, Dict[str, Any]]:
    overrides: Dict[str, Dict[str, Any]] = {}
    for env_var, (section, field) in get_all_env_mappings().items():
        if env_var not in os.environ:
            continue
        raw = os.environ[env_var]
        section_model = Config.model_fields[section].annotation
        if section_model.model_fields[field].annotation is str:
            value = raw
        else:
            value = _convert_env_value(raw)
        overrides.setdefault(section, {})[field] = value
    return overrides


def load_config(config_file: Optional[str] = None) -> Config:
    """Load settings from file and environment. Missing files mean defaults."""
    path = Path(config_file or os.environ.get(f"{ENV_PREFIX}_CONFIG_FILE") or DEFAULT_CONFIG_FILE).expanduser()

    data: Dict[str, Dict[str, Any]] = {}
    if path.is_file():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid settings file {path}: {e}") from None

    for section, values in load_all_env_overrides().items():
        data.setdefault(section, {}).update(values)

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]):
    global _config
    _config = config


def _format_value(value: Any, toml: bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str) and toml:
        return json.dumps(value)
    return str(value)


def dump_config_toml(config: Config) -> str:
    lines = []
    for section, values in config.model_dump().items():
        if lines:
            lines.append("")
        lines.append(f"[{section}]")
        for field, value in values.items():
            lines.append(f"{field} = {_format_value(value, toml=True)}")
    return "\n".join(lines)


def dump_config_env(config: Config) -> str:
    lines = []
    for section, values in config.model_dump().items():
        for field, value in values.items():
            lines.append(f"{generate_env_var_name(section, field)}={_format_value(value, toml=False)}")
    return "\n".join(lines)
