"""Tests for the terminal front end."""

from typing import (
    Iterator,
    List,
)

import pytest
from conftest import answer

from wayfarer.client import cli


def _feed(monkeypatch: pytest.MonkeyPatch, lines: List[str]) -> None:
    it: Iterator[str] = iter(lines)

    def fake_input(prompt: str = "") -> str:
        try:
            return next(it)
        except StopIteration as exc:
            raise EOFError from exc

    monkeypatch.setattr("builtins.input", fake_input)


def test_exit_sentinel_leaves_history_untouched(monkeypatch, capsys, make_session) -> None:
    """``exit`` ends the session without a planner call or history change."""
    session = make_session([])
    _feed(monkeypatch, ["EXIT"])

    cli.run_cli(session)

    assert session.history == ()
    assert "Goodbye!" in capsys.readouterr().out


def test_answer_is_printed(monkeypatch, capsys, make_session) -> None:
    session = make_session([answer("Take the train.")])
    _feed(monkeypatch, ["", "how to get downtown?", "quit"])

    cli.run_cli(session)

    out = capsys.readouterr().out
    assert "=== ANSWER ===" in out
    assert "Take the train." in out
    assert len(session.history) == 2


def test_failure_notice_and_rollback(monkeypatch, capsys, make_session) -> None:
    session = make_session(["{}"])
    _feed(monkeypatch, ["hello"])  # EOF afterwards ends the loop

    cli.run_cli(session)

    out = capsys.readouterr().out
    assert "removed from memory" in out
    assert session.history == ()


def test_get_user_message_handles_ctrl_c(monkeypatch) -> None:
    def interrupted(prompt: str = "") -> str:
        raise KeyboardInterrupt

    monkeypatch.setattr("builtins.input", interrupted)

    assert cli.get_user_message() == ("", False)
