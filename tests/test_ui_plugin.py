"""Tests for the websocket presenter and log forwarding."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import AsyncMock

import pytest

from stream_chat.chunker import ChunkReveal
from stream_chat.errors import BusyError
from stream_chat.ingestor import StreamState
from stream_chat.plugins.ui_plugin import BaseUIPlugin, UILogHandler, UIPlugin
from stream_chat.turns import Transcript, Turn


class RecordingUIPlugin(BaseUIPlugin):
    def __init__(self):
        super().__init__()
        self.sent = []

    async def _send_to_ui(self, message_data: dict):
        self.sent.append(message_data)


def _sent(websocket):
    return [json.loads(call.args[0]) for call in websocket.send_text.await_args_list]


class TestUIPlugin:
    @pytest.mark.asyncio
    async def test_set_websocket_sends_state(self):
        websocket = AsyncMock()
        ui = UIPlugin()
        await ui.set_websocket(websocket)
        assert _sent(websocket) == [{"type": "state", "status": "Idle"}]

    @pytest.mark.asyncio
    async def test_events(self):
        websocket = AsyncMock()
        ui = UIPlugin()
        await ui.set_websocket(websocket)
        transcript = Transcript()
        transcript.append(Turn.user("héllo"))

        await ui.send_transcript(transcript)
        await ui.send_state(StreamState.STREAMING)
        await ui.send_chunks([ChunkReveal(0, "a b ", 0.75)])
        await ui.send_error(BusyError("wait"))

        assert _sent(websocket)[1:] == [
            {"type": "transcript", "turns": [{"role": "user", "content": "héllo"}]},
            {"type": "state", "status": "Streaming"},
            {"type": "chunks", "chunks": [{"index": 0, "text": "a b ", "fade": 0.75}]},
            {"type": "error", "error": "BusyError", "content": "wait"},
        ]
        assert ui.status == "Streaming"
        assert "héllo" in websocket.send_text.await_args_list[1].args[0]

    @pytest.mark.asyncio
    async def test_no_websocket_is_silent(self):
        ui = UIPlugin()
        await ui.send_state(StreamState.IDLE)


class TestStructuredLogFormat:
    def test_known_types(self):
        ui = RecordingUIPlugin()
        assert ui._format_structured_log({"log_type": "user_input", "content": "hi"}) == "USER_INPUT: hi"
        assert (
            ui._format_structured_log({"log_type": "stream_start", "handle_id": 3, "model": "m"})
            == "[stream 3] STREAM_START: model m"
        )
        assert (
            ui._format_structured_log(
                {"log_type": "stream_error", "handle_id": 1, "error": "ModelError", "discarded_chars": 13}
            )
            == "[stream 1] STREAM_ERROR: ModelError - discarded 13 characters"
        )

    def test_fallback(self):
        ui = RecordingUIPlugin()
        assert ui._format_structured_log({"content": "raw"}) == "raw"


class TestUILogHandler:
    @pytest.mark.asyncio
    async def test_forwards_matching_session(self):
        ui = RecordingUIPlugin()
        logger = logging.getLogger("stream_chat.test_ui")
        logger.setLevel(logging.INFO)
        handler = UILogHandler(ui, session_id="s1")
        logger.addHandler(handler)
        try:
            logger.info("ok", extra={"structured": {"log_type": "stream_cancel", "handle_id": 2, "session_id": "s1"}})
            logger.info("other", extra={"structured": {"log_type": "user_input", "content": "x", "session_id": "s2"}})
            logger.info("plain text")
            logger.debug("debug", extra={"structured": {"log_type": "user_input", "session_id": "s1"}})
            await asyncio.sleep(0)
        finally:
            logger.removeHandler(handler)

        assert len(ui.sent) == 1
        assert ui.sent[0]["type"] == "log"
        assert ui.sent[0]["content"] == "[stream 2] STREAM_CANCEL: cancelled by user"

    @pytest.mark.asyncio
    async def test_pending_log_sends_are_kept_until_done(self):
        ui = RecordingUIPlugin()
        ui.log_structured({"log_type": "user_input", "content": "hi"}, 0.0)

        pending = set(ui._log_tasks)
        assert len(pending) == 1

        await asyncio.wait(pending)
        assert ui._log_tasks == set()
        assert ui.sent[0]["content"] == "USER_INPUT: hi"
