"""Tests for namespace-filtered debug logging."""
from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from dug.logging import NamespaceFilter, namespace_of, setup_debug_logging


@pytest.fixture(autouse=True)
def restore_dug_logger():
    root = logging.getLogger("dug")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    root.propagate = propagate


def test_namespace_of():
    assert namespace_of("dug.api") == "dug:api"
    assert namespace_of("dug") == "dug"


def test_filter_includes_and_excludes():
    f = NamespaceFilter("dug:*,-dug:nav")
    assert f.matches("dug:api")
    assert not f.matches("dug:nav")
    assert not f.matches("other:api")

    only = NamespaceFilter("dug:api dug:connect")
    assert only.matches("dug:connect")
    assert not only.matches("dug:app")


def test_disabled_without_pattern():
    assert setup_debug_logging(SimpleNamespace(debug_pattern=None)) is None
    handlers = logging.getLogger("dug").handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.NullHandler)


def test_file_handler_appends_matching_records(tmp_path):
    log_file = tmp_path / "logs" / "debug.log"
    settings = SimpleNamespace(debug_pattern="dug:api", debug_log_path=log_file, DUG_LOG_LEVEL="debug")

    assert setup_debug_logging(settings) == log_file

    logging.getLogger("dug.api").debug("POST describe_all")
    logging.getLogger("dug.nav").debug("push table")
    for handler in logging.getLogger("dug").handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "POST describe_all" in text
    assert "push table" not in text
    assert "| DEBUG | dug.api |" in text


def test_setup_is_repeatable(tmp_path):
    settings = SimpleNamespace(debug_pattern="dug:*", debug_log_path=tmp_path / "debug.log")
    setup_debug_logging(settings)
    setup_debug_logging(settings)
    assert len(logging.getLogger("dug").handlers) == 1
