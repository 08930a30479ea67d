"""
Tests for CLI commands that read local state.
"""

import argparse

import pytest

from deepsite import cli
from deepsite import config as cfg_mod
from deepsite.storage.models import ChatTurn
from deepsite.storage.sqlite_store import SQLiteStore


@pytest.fixture
def store(tmp_path):
    path = tmp_path / "chat.db"
    orig = cfg_mod._config
    cfg_mod._config = {"storage": {"sqlite_path": str(path)}}
    s = SQLiteStore(str(path))
    s.append_many([
        ChatTurn(session_id="alpha", role="user", content="a bakery site"),
        ChatTurn(session_id="alpha", role="assistant", content="<html></html>",
                 provider="groq", model="llama-3.3-70b-versatile"),
    ])
    s.append(ChatTurn(session_id="beta", role="user", content="portfolio"))
    yield s
    cfg_mod._config = orig


def _args(session_id=None, last=20, delete=False):
    return argparse.Namespace(session_id=session_id, last=last, delete=delete)


def test_history_lists_sessions(store, capsys):
    cli.cmd_history(_args())
    out = capsys.readouterr().out
    assert out.index("beta") < out.index("alpha")


def test_history_shows_one_session(store, capsys):
    cli.cmd_history(_args("alpha"))
    out = capsys.readouterr().out
    assert "Session alpha: 2 turns" in out
    assert "assistant (groq/llama-3.3-70b-versatile)" in out


def test_history_delete(store, capsys):
    cli.cmd_history(_args("alpha", delete=True))
    assert "Deleted 2 turns of session alpha" in capsys.readouterr().out
    assert store.count("alpha") == 0
    assert store.count("beta") == 1


def test_history_without_store(capsys):
    orig = cfg_mod._config
    cfg_mod._config = {"storage": {"sqlite_path": ""}}
    try:
        cli.cmd_history(_args())
    finally:
        cfg_mod._config = orig
    assert "not configured" in capsys.readouterr().out
