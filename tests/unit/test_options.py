"""Tests for the option registry and display option cascade."""
import pytest

from sessionmux.exceptions import UnknownOptionError
from sessionmux.options import (
    REGISTRY, OptionKind, OptionRegistry, Scope, color_options, resolve, subsession_color,
)
from sessionmux.parser import parse_text
from sessionmux.workspace import validate

CASCADE = """\
name: demo
color: blue
subsessions:
  api:
    dir: .
  db:
    dir: .
    color: red
  cache:
    dir: .
windows:
  - name: editor
    panes:
      - type: command
  - name: services
    color: green
    panes:
      - type: subsession
        subsession: api
      - type: subsession
        subsession: db
  - name: more
    color: yellow
    panes:
      - type: subsession
        subsession: api
"""


@pytest.fixture
def cascade_config(tmp_path):
    return validate(parse_text(CASCADE), base_dir=tmp_path)


def test_registry_kinds():
    assert REGISTRY.kind_for("escape-time", Scope.GLOBAL) is OptionKind.SERVER
    assert REGISTRY.kind_for("status-style", Scope.SESSION) is OptionKind.SESSION
    assert REGISTRY.kind_for("mode-keys", Scope.WINDOW) is OptionKind.WINDOW
    assert REGISTRY.kind_for("no-such-option", Scope.SESSION) is None
    assert "mouse" in REGISTRY
    assert "@anything" in REGISTRY


def test_user_option_kind_follows_scope():
    assert REGISTRY.kind_for("@label", Scope.WINDOW) is OptionKind.WINDOW
    assert REGISTRY.kind_for("@label", Scope.SUBSESSION) is OptionKind.SESSION


def test_register_validation():
    """Test that the registry only accepts typed, well-formed entries."""
    registry = OptionRegistry()
    registry.register("my-option", OptionKind.SESSION)
    registry.register("my-option", OptionKind.SESSION)

    with pytest.raises(TypeError):
        registry.register("other", "session")
    with pytest.raises(ValueError, match="already registered"):
        registry.register("my-option", OptionKind.WINDOW)
    with pytest.raises(ValueError):
        registry.register("@user", OptionKind.SESSION)
    with pytest.raises(ValueError):
        registry.register("has space", OptionKind.SESSION)


def test_check_rejects_unknown():
    with pytest.raises(UnknownOptionError) as exc:
        REGISTRY.check({"stauts": "on"}, Scope.SUBSESSION, "api")
    assert exc.value.option == "stauts"
    assert "subsession 'api'" in str(exc.value)


def test_color_options_per_scope():
    session = color_options(Scope.SESSION, "blue", "/run/demo-time.sh")
    assert session["status-style"] == "fg=white,bg=blue"
    assert "#(/run/demo-time.sh)" in session["status-right"]
    assert session["status-justify"] == "centre"

    subsession = color_options(Scope.SUBSESSION, "red")
    assert "status-justify" not in subsession
    assert "%H:%M" in subsession["status-right"]

    window = color_options(Scope.WINDOW, "green")
    assert window == {
        "window-status-current-style": "fg=black,bg=green,bold",
        "window-status-style": "fg=green,bg=default",
    }
    assert color_options(Scope.GLOBAL, "blue") == {}


def test_resolve_precedence():
    """Test overlay over color over defaults."""
    effective = resolve(Scope.SUBSESSION, {"status-style": "bg=magenta"}, inherited_color="red")

    assert effective.values["status-style"] == "bg=magenta"
    assert effective.values["status-left"].startswith("#[fg=white,bg=red")
    assert effective.values["status-justify"] == "left"

    overridden = resolve(Scope.SUBSESSION, {"status-justify": "right"})
    assert overridden.values == {"status-justify": "right"}


def test_resolve_without_color_keeps_defaults_only():
    assert resolve(Scope.SESSION).values == {}
    assert resolve(Scope.SUBSESSION).values == {"status-justify": "left"}


def test_subsession_inherits_first_referencing_window(cascade_config):
    assert subsession_color(cascade_config, "api") == "green"


def test_explicit_subsession_color_never_inherits(cascade_config):
    assert subsession_color(cascade_config, "db") == "red"


def test_unreferenced_subsession_has_no_color(cascade_config):
    assert subsession_color(cascade_config, "cache") is None


def test_apply_routes_setters(fake_tmux):
    """Test each option goes through the setter of its kind."""
    tmux = fake_tmux
    tmux.run("new-session", "-d", "-s", "demo", "-c", ".", "-P", "-F", "#{window_id}")
    tmux.new_window("demo", "second", ".")

    effective = resolve(Scope.SESSION, {"mode-keys": "vi", "@label": "x"}, inherited_color="blue")
    failures = effective.apply(tmux, "=demo")

    assert failures == 0
    session = tmux.session("demo")
    assert session.options["status-style"] == "fg=white,bg=blue"
    assert session.options["@label"] == "x"
    assert all(window.options["mode-keys"] == "vi" for window in session.windows)


def test_apply_global_and_server(fake_tmux):
    tmux = fake_tmux
    failures = resolve(Scope.GLOBAL, {"escape-time": "0", "mouse": "on"}).apply(tmux)

    assert failures == 0
    assert tmux.server_options == {"escape-time": "0"}
    assert tmux.global_options == {"mouse": "on"}


def test_apply_counts_failures(fake_tmux):
    tmux = fake_tmux
    tmux.run("new-session", "-d", "-s", "demo", "-c", ".")
    tmux.fail_on.add("set-option")

    failures = resolve(Scope.SESSION, inherited_color="blue").apply(tmux, "=demo")

    assert failures == 4


def test_apply_passes_through_unregistered(fake_tmux):
    tmux = fake_tmux
    tmux.run("new-session", "-d", "-s", "demo", "-c", ".")

    failures = resolve(Scope.SESSION, {"future-option": "1"}).apply(tmux, "=demo")

    assert failures == 0
    assert tmux.session("demo").options["future-option"] == "1"
