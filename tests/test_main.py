"""Tests for the command line entry point."""

from __future__ import annotations

from unittest.mock import patch

from stream_chat import __main__ as cli
from stream_chat.app import app
from stream_chat.config import Settings


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.port == 8000
    assert args.host == "127.0.0.1"
    assert args.model is None
    assert args.no_open is False


def test_main_applies_model_and_runs_server():
    saved = app.state.settings
    app.state.settings = Settings()
    try:
        with patch.object(cli.uvicorn, "run") as run, patch.object(cli.threading, "Thread") as thread:
            cli.main(["--model", "phi3", "--port", "9001", "--no-open"])
        assert app.state.settings.model == "phi3"
        run.assert_called_once_with(app, host="127.0.0.1", port=9001)
        thread.assert_not_called()
    finally:
        app.state.settings = saved
