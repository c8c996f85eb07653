"""Serialize a parsed :class:`~sessionmux.parser.Document` back to text."""
from typing import Iterable, List, Tuple

from .parser import Document

INDENT = "  "


def quote(value: str) -> str:
    """Quote a scalar when the parser would otherwise change it."""
    needs_quotes = (
        value == ""
        or value != value.strip()
        or value[0] in "'\"#"
        or " #" in value
        or "\t#" in value
    )
    if not needs_quotes:
        return value
    if '"' not in value:
        return f'"{value}"'
    return f"'{value}'"


def _pairs(pairs: Iterable[Tuple[str, str]], depth: int) -> List[str]:
    prefix = INDENT * depth
    return [f"{prefix}{key}: {quote(value)}" for key, value in pairs]


def dump_document(document: Document) -> str:
    """Render a document in the session file format.

    Parsing the result yields a document with the same values.
    """
    lines = _pairs(document.scalars.items(), 0)

    if document.global_options or document.session_options:
        lines.append("tmux:")
        if document.global_options:
            lines.append(f"{INDENT}global:")
            lines.extend(_pairs(document.global_options.items(), 2))
        if document.session_options:
            lines.append(f"{INDENT}session:")
            lines.extend(_pairs(document.session_options.items(), 2))

    if document.subsessions:
        lines.append("subsessions:")
        for sub in document.subsessions.values():
            lines.append(f"{INDENT}{sub.name}:")
            lines.extend(_pairs(sub.props.items(), 2))
            if sub.env:
                lines.append(f"{INDENT * 2}env:")
                lines.extend(_pairs(sub.env, 3))
            if sub.options:
                lines.append(f"{INDENT * 2}tmux:")
                lines.extend(_pairs(sub.options.items(), 3))

    if document.windows:
        lines.append("windows:")
        for window in document.windows:
            lines.append(f"{INDENT}- name: {quote(window.name)}")
            lines.extend(_pairs(window.props.items(), 2))
            if window.options:
                lines.append(f"{INDENT * 2}tmux:")
                lines.extend(_pairs(window.options.items(), 3))
            if window.panes:
                lines.append(f"{INDENT * 2}panes:")
                for pane in window.panes:
                    props = dict(pane.props)
                    lines.append(f"{INDENT * 3}- type: {quote(props.pop('type', ''))}")
                    lines.extend(_pairs(props.items(), 4))

    return "\n".join(lines) + "\n"
