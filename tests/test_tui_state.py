"""Unit tests for UIState class."""
from __future__ import annotations

from dug.tui.state import UIState
from dug.tui.terminal import TerminalSize


def test_uistate_initial_state():
    """Test UIState starts with default values."""
    state = UIState()

    assert state.connected_url == ""
    assert state.username is None
    assert state.terminal == TerminalSize(80, 24)
    assert state.session_history == []
    assert state.flash is None
    assert state.data == {}


def test_uistate_remember():
    """Test remember() updates state attributes."""
    state = UIState()

    state.remember(connected_url="http://localhost:9925", username="HDB_ADMIN")
    assert state.connected_url == "http://localhost:9925"
    assert state.username == "HDB_ADMIN"


def test_uistate_remember_ignores_unknown():
    """Test remember() ignores unknown attributes."""
    state = UIState()

    # Should not raise an error
    state.remember(unknown_attr="value", username="admin")
    assert state.username == "admin"
    assert not hasattr(state, "unknown_attr")


def test_uistate_add_to_history():
    """Test adding screens to session history."""
    state = UIState()

    state.add_to_history("connect")
    state.add_to_history("dashboard")
    state.add_to_history("table")

    assert state.session_history == ["connect", "dashboard", "table"]


def test_uistate_flash_is_shown_once():
    state = UIState(flash="Copied!")

    assert state.take_flash() == "Copied!"
    assert state.take_flash() is None


def test_uistate_forget_connection():
    state = UIState()
    state.remember(connected_url="http://h:9925", username="admin")
    state.data["keep"] = 1

    state.forget_connection()

    assert state.connected_url == ""
    assert state.username is None
    assert state.data == {"keep": 1}
