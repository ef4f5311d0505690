import asyncio
import json
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import WebSocket

from ..chunker import ChunkReveal
from ..errors import StreamChatError
from ..ingestor import StreamState
from ..session import Presenter
from ..turns import Transcript


class UILogHandler(logging.Handler):
    """Logging handler that forwards one session's structured records to the UI."""

    def __init__(self, ui: "BaseUIPlugin", session_id: Optional[str] = None):
        super().__init__()
        self.ui = ui
        self.session_id = session_id

    def emit(self, record: logging.LogRecord) -> None:
        # Filter out debug level logs from being sent to client
        if record.levelno <= logging.DEBUG:
            return
        structured = getattr(record, "structured", None)
        if structured is None:
            return
        if self.session_id and structured.get("session_id") != self.session_id:
            return
        self.ui.log_structured(structured, record.created)


class BaseUIPlugin(Presenter):
    def __init__(self):
        self.status = StreamState.IDLE.value
        self._log_tasks = set()

    def log_structured(self, structured_data: dict, timestamp: float) -> None:
        """Send structured log to UI (formatted as string for now)."""
        formatted_content = self._format_structured_log(structured_data)
        task = asyncio.create_task(
            self._send_to_ui(
                {
                    "type": "log",
                    "content": formatted_content,
                    "timestamp": datetime.fromtimestamp(timestamp).isoformat(),
                }
            )
        )
        # The loop only keeps weak references to tasks.
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    def _format_structured_log(self, data: dict) -> str:
        """Format structured log data back to the expected string format."""
        log_type = data.get("log_type", "")
        handle = data.get("handle_id")
        prefix = f"[stream {handle}] " if handle is not None else ""

        formatters = {
            "user_input": lambda: data.get("content", ""),
            "stream_start": lambda: f"model {data.get('model', 'unknown')}",
            "stream_complete": lambda: data.get("content", ""),
            "stream_error": lambda: (
                f"{data.get('error', 'error')} - discarded "
                f"{data.get('discarded_chars', 0)} characters"
            ),
            "stream_cancel": lambda: "cancelled by user",
        }

        if log_type in formatters:
            return f"{prefix}{log_type.upper()}: {formatters[log_type]()}"

        # Fallback to content field
        return data.get("content", str(data))

    async def send_state(self, state: StreamState):
        self.status = state.value
        await self._send_to_ui({"type": "state", "status": self.status})

    async def send_transcript(self, transcript: Transcript):
        await self._send_to_ui({"type": "transcript", "turns": transcript.to_list()})

    async def send_chunks(self, reveals: List[ChunkReveal]):
        await self._send_to_ui(
            {"type": "chunks", "chunks": [reveal._asdict() for reveal in reveals]}
        )

    async def send_error(self, error: StreamChatError):
        await self._send_to_ui(
            {"type": "error", "error": type(error).__name__, "content": str(error)}
        )

    async def send_notice(self, content: str):
        """Send a free-form notice that is not tied to a stream event."""
        await self._send_to_ui({"type": "error", "error": "Error", "content": content})

    async def _send_to_ui(self, message_data: dict):
        raise NotImplementedError


class UIPlugin(BaseUIPlugin):
    """Presenter bound to a single websocket."""

    def __init__(self):
        super().__init__()
        self.websocket = None

    async def set_websocket(self, websocket: WebSocket):
        self.websocket = websocket
        await self._send_to_ui({"type": "state", "status": self.status})

    async def _send_to_ui(self, message_data: dict):
        """Send message to single websocket."""
        if self.websocket:
            await self.websocket.send_text(json.dumps(message_data, ensure_ascii=False))
