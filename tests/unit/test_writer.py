"""Tests for writing documents back to text."""
from sessionmux.parser import parse_text
from sessionmux.writer import dump_document, quote

FULL = """\
name: demo
timezone: Europe/Berlin
color: "#123456"
tmux:
  global:
    mouse: "on"
  session:
    status-position: top
subsessions:
  api:
    dir: ./api
    command: npm run dev
    env:
      PORT: 3000
      GREETING: hello world
    tmux:
      status-justify: right
windows:
  - name: main
    color: green
    tmux:
      @label: x
    panes:
      - type: command
        cmd: echo "a"  # trailing comment
        execute: true
      - type: subsession
        subsession: api
"""


def test_dump_then_parse_recovers_document():
    """Test that a written document parses back to the same values."""
    original = parse_text(FULL)

    reparsed = parse_text(dump_document(original))

    assert reparsed.scalars == original.scalars
    assert reparsed.global_options == original.global_options
    assert reparsed.session_options == original.session_options
    assert reparsed.subsessions.keys() == original.subsessions.keys()
    for name, block in original.subsessions.items():
        assert reparsed.subsessions[name].props == block.props
        assert reparsed.subsessions[name].env == block.env
        assert reparsed.subsessions[name].options == block.options
    assert [w.name for w in reparsed.windows] == [w.name for w in original.windows]
    for before, after in zip(original.windows, reparsed.windows):
        assert after.props == before.props
        assert after.options == before.options
        assert [p.props for p in after.panes] == [p.props for p in before.panes]


def test_dump_is_stable():
    """Test that writing twice gives the same text."""
    once = dump_document(parse_text(FULL))
    assert dump_document(parse_text(once)) == once


def test_dump_layout():
    doc = parse_text("name: demo\nwindows:\n  - name: main\n    panes:\n      - type: command\n        cmd: ls\n")

    assert dump_document(doc) == (
        "name: demo\n"
        "windows:\n"
        "  - name: main\n"
        "    panes:\n"
        "      - type: command\n"
        "        cmd: ls\n"
    )


def test_quote():
    assert quote("plain") == "plain"
    assert quote("") == '""'
    assert quote("#ff0000") == '"#ff0000"'
    assert quote(" padded") == '" padded"'
    assert quote("echo 'a' # b") == "\"echo 'a' # b\""
    assert quote('say "hi" #now') == "'say \"hi\" #now'"


def test_values_with_hash_survive():
    doc = parse_text('name: demo\ncolor: "#00ff00"\n')
    assert parse_text(dump_document(doc)).scalars["color"] == "#00ff00"


def test_repeated_env_keys_survive():
    doc = parse_text("subsessions:\n  api:\n    dir: .\n    env: A=1 A=2\n")

    reparsed = parse_text(dump_document(doc))

    assert reparsed.subsessions["api"].env == [("A", "1"), ("A", "2")]
