"""Parser for session configuration files.

Session files use a small, indentation-significant subset of YAML::

    name: demo
    timezone: Europe/Berlin
    tmux:
      global:
        mouse: "on"
    subsessions:
      api:
        dir: ./api
        command: npm run dev
        env:
          PORT: 3000
    windows:
      - name: main
        color: blue
        panes:
          - type: command
            cmd: git status
          - type: subsession
            subsession: api

Indentation steps are fixed at two spaces. The parser does a single forward
scan and builds a :class:`Document`; it performs no semantic validation
beyond the shape of each line (see :mod:`sessionmux.workspace` for that).
"""
import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .exceptions import ConfigNotFoundError, ParseError

logger = logging.getLogger(__name__)

SECTIONS = ("subsessions", "windows", "tmux")
OPTION_SCOPES = ("global", "session")

_PAIR = re.compile(r"^([^:]+):\s*(.*)$")
_WINDOW_ENTRY = re.compile(r"^-\s*name:\s*(.*)$")
_PANE_ENTRY = re.compile(r"^-\s*type:\s*(.*)$")


@dataclass
class PaneBlock:
    """A ``- type: ...`` entry of a window's ``panes:`` list."""
    line_number: int
    props: Dict[str, str] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.props.get("type", "")


@dataclass
class SubsessionBlock:
    """A named block under ``subsessions:``."""
    name: str
    line_number: int
    props: Dict[str, str] = field(default_factory=dict)
    env: List[Tuple[str, str]] = field(default_factory=list)
    options: Dict[str, str] = field(default_factory=dict)


@dataclass
class WindowBlock:
    """A ``- name: ...`` entry under ``windows:``."""
    name: str
    line_number: int
    props: Dict[str, str] = field(default_factory=dict)
    options: Dict[str, str] = field(default_factory=dict)
    panes: List[PaneBlock] = field(default_factory=list)


@dataclass
class Document:
    """Parsed, unvalidated contents of a session file. All values are strings."""
    source: Optional[Path] = None
    scalars: Dict[str, str] = field(default_factory=dict)
    global_options: Dict[str, str] = field(default_factory=dict)
    session_options: Dict[str, str] = field(default_factory=dict)
    subsessions: Dict[str, SubsessionBlock] = field(default_factory=dict)
    windows: List[WindowBlock] = field(default_factory=list)

    def window(self, name: str) -> Optional[WindowBlock]:
        for window in self.windows:
            if window.name == name:
                return window
        return None


def strip_comment(raw: str) -> str:
    """Remove a trailing comment, keeping ``#`` inside quoted text.

    A ``#`` only starts a comment at the beginning of the line or when it is
    preceded by whitespace, so ``color: #ff0000`` is a comment but
    ``url: a#b`` is not.
    """
    in_single = in_double = False
    for i, ch in enumerate(raw):
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "#" and not in_single and not in_double:
            if i == 0 or raw[i - 1] in " \t":
                return raw[:i]
    return raw


def unquote(value: str) -> str:
    """Strip one layer of matching surrounding quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def split_pair(body: str) -> Optional[Tuple[str, str]]:
    """Split ``key: value`` into its parts, or return None."""
    match = _PAIR.match(body)
    if not match:
        return None
    key = match.group(1).strip()
    if not key or key.startswith("-"):
        return None
    return key, unquote(match.group(2).strip())


def parse_env(value: str) -> List[Tuple[str, str]]:
    """Parse an inline ``KEY=VALUE KEY2="two words"`` environment list."""
    pairs = []
    for token in shlex.split(value):
        key, sep, val = token.partition("=")
        if not sep or not key:
            raise ValueError(f"expected KEY=VALUE, got {token!r}")
        pairs.append((key, val))
    return pairs


class DocumentParser:
    """Single-use line scanner that builds a :class:`Document`.

    In strict mode any line that does not fit the expected structure raises
    :class:`ParseError`. In lenient mode such lines are logged and skipped.
    """

    def __init__(self, strict: bool = True, source: Optional[Path] = None):
        self.strict = strict
        self.document = Document(source=source)

        self._section: Optional[str] = None
        self._option_scope: Optional[str] = None
        self._subsession: Optional[SubsessionBlock] = None
        self._window: Optional[WindowBlock] = None
        self._pane: Optional[PaneBlock] = None
        # Nested block opened at indent 4: "tmux", "env" or "panes"
        self._block: Optional[str] = None

    def parse(self, text: str) -> Document:
        for number, raw in enumerate(text.splitlines(), start=1):
            self._feed(number, raw)
        return self.document

    def _feed(self, number: int, raw: str):
        line = strip_comment(raw).rstrip()
        if not line.strip():
            return

        body = line.lstrip(" ")
        indent = len(line) - len(body)
        if body[0] == "\t":
            self._reject(number, raw, "tabs are not allowed in indentation")
            return

        handler = {
            0: self._top_level,
            2: self._section_entry,
            4: self._entry_property,
            6: self._nested_item,
            8: self._pane_property,
        }.get(indent)

        if handler is None:
            self._reject(number, raw, f"unexpected indentation of {indent} spaces")
        elif not handler(body, number):
            self._reject(number, raw, "line does not fit here")

    def _reject(self, number: int, raw: str, reason: str):
        if self.strict:
            raise ParseError(reason, self.document.source, number, raw)
        logger.debug(f"Ignoring line {number} ({reason}): {raw.strip()!r}")

    # indent 0
    def _top_level(self, body: str, number: int) -> bool:
        self._subsession = None
        self._window = None
        self._pane = None
        self._block = None
        self._option_scope = None

        pair = split_pair(body)
        if pair is None:
            return False
        key, value = pair

        if key in SECTIONS:
            if value:
                return False
            self._section = key
            return True

        self._section = None
        self.document.scalars[key] = value
        return True

    # indent 2
    def _section_entry(self, body: str, number: int) -> bool:
        self._pane = None
        self._block = None

        if self._section == "tmux":
            if body.rstrip(":") in OPTION_SCOPES and body.endswith(":"):
                self._option_scope = body[:-1]
                return True
            return False

        if self._section == "subsessions":
            pair = split_pair(body)
            if pair is None or pair[1]:
                return False
            name = pair[0]
            if name in self.document.subsessions and self.strict:
                raise ParseError(f"duplicate subsession '{name}'",
                                 self.document.source, number, body)
            self._subsession = SubsessionBlock(name=name, line_number=number)
            self.document.subsessions[name] = self._subsession
            return True

        if self._section == "windows":
            match = _WINDOW_ENTRY.match(body)
            if not match:
                return False
            name = unquote(match.group(1).strip())
            if not name:
                return False
            self._window = WindowBlock(name=name, line_number=number)
            self.document.windows.append(self._window)
            return True

        return False

    # indent 4
    def _entry_property(self, body: str, number: int) -> bool:
        pair = split_pair(body)
        if pair is None:
            return False
        key, value = pair

        if self._section == "tmux":
            if self._option_scope is None:
                return False
            if self._option_scope == "global":
                self.document.global_options[key] = value
            else:
                self.document.session_options[key] = value
            return True

        if self._section == "subsessions" and self._subsession is not None:
            self._block = None
            if key in ("tmux", "env") and not value:
                self._block = key
            elif key == "env":
                try:
                    self._subsession.env.extend(parse_env(value))
                except ValueError as e:
                    if self.strict:
                        raise ParseError(f"invalid env: {e}",
                                         self.document.source, number, body)
                    logger.debug(f"Ignoring invalid env on line {number}: {e}")
            else:
                self._subsession.props[key] = value
            return True

        if self._section == "windows" and self._window is not None:
            self._block = None
            self._pane = None
            if key in ("tmux", "panes") and not value:
                self._block = key
            else:
                self._window.props[key] = value
            return True

        return False

    # indent 6
    def _nested_item(self, body: str, number: int) -> bool:
        owner = self._subsession if self._section == "subsessions" else self._window
        if owner is None or self._block is None:
            return False

        if self._block == "panes":
            match = _PANE_ENTRY.match(body)
            if match:
                self._pane = PaneBlock(line_number=number,
                                       props={"type": unquote(match.group(1).strip())})
                self._window.panes.append(self._pane)
                return True
            if self._pane is None:
                return False
            return self._pane_property(body, number)

        pair = split_pair(body)
        if pair is None:
            return False
        key, value = pair
        if self._block == "tmux":
            owner.options[key] = value
        else:
            owner.env.append((key, value))
        return True

    # indent 8
    def _pane_property(self, body: str, number: int) -> bool:
        if self._block != "panes" or self._pane is None:
            return False
        pair = split_pair(body)
        if pair is None:
            return False
        key, value = pair
        self._pane.props[key] = value
        return True


def parse_text(text: str, strict: bool = True,
               source: Optional[Union[str, Path]] = None) -> Document:
    """Parse session file contents."""
    parser = DocumentParser(strict=strict, source=Path(source) if source else None)
    return parser.parse(text)


def parse_file(path: Union[str, Path], strict: bool = True) -> Document:
    """Parse a session file from disk."""
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(f"Configuration file not found: {path}")

    logger.debug(f"Parsing {path} (strict={strict})")
    return parse_text(path.read_text(), strict=strict, source=path)
