import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .chunker import ChunkRenderer, ChunkReveal
from .client import ChatBackend
from .errors import BusyError, ModelError, StreamChatError, TransportError
from .turns import Turn, Transcript

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    IDLE = "Idle"
    STREAMING = "Streaming"


class StreamHandle:
    """One in-flight streamed response."""

    def __init__(self, handle_id: int, turn: Turn, stream):
        self.handle_id = handle_id
        self.turn = turn
        self.stream = stream
        self.task: Optional[asyncio.Task] = None
        self.closed = False

    async def aclose(self):
        if self.closed:
            return
        self.closed = True
        aclose = getattr(self.stream, "aclose", None)
        if aclose is not None:
            await aclose()


class StreamIngestor:
    """Accumulates streamed fragments into the buffer of a single response.

    Only one stream may be active at a time. A completed stream becomes an
    assistant turn in the transcript; a failed or cancelled one leaves no
    trace in it.
    """

    def __init__(
        self,
        backend: ChatBackend,
        transcript: Transcript,
        renderer: Optional[ChunkRenderer] = None,
        model: str = "llama3.1",
        stream: bool = True,
        on_chunks: Optional[Callable[[List[ChunkReveal]], Awaitable[None]]] = None,
        logger: logging.Logger = logger,
    ):
        self.backend = backend
        self.transcript = transcript
        self.renderer = renderer or ChunkRenderer()
        self.model = model
        self.stream = stream
        self.on_chunks = on_chunks
        self.logger = logger

        self.state = StreamState.IDLE
        self.buffer = ""
        self.active: Optional[StreamHandle] = None
        self._next_handle_id = 1

    @property
    def is_streaming(self) -> bool:
        return self.state is StreamState.STREAMING

    def ensure_idle(self):
        if self.is_streaming:
            raise BusyError("A response is still streaming; cancel it first")

    def _reset(self):
        self.state = StreamState.IDLE
        self.buffer = ""
        self.active = None
        self.renderer.reset()

    async def start(self, turn: Turn) -> StreamHandle:
        """Open a stream for ``turn``.

        The busy state is taken before the call is made, so a second
        submission during connection setup fails with ``BusyError``.
        """
        self.ensure_idle()
        self.state = StreamState.STREAMING
        self.buffer = ""
        self.renderer.reset()

        handle = None
        try:
            stream = await self.backend.chat(
                model=self.model, messages=[turn], stream=self.stream
            )
            handle = StreamHandle(self._next_handle_id, turn, stream)
        finally:
            if handle is None:
                self._reset()

        self._next_handle_id += 1
        self.active = handle
        self.logger.info(
            "Stream started",
            extra={
                "structured": {
                    "log_type": "stream_start",
                    "handle_id": handle.handle_id,
                    "model": self.model,
                }
            },
        )
        return handle

    def on_fragment(self, handle: StreamHandle, fragment: str) -> str:
        """Append ``fragment`` to the buffer and return the new snapshot."""
        if handle is not self.active:
            self.logger.warning(
                f"Ignoring fragment for inactive stream {handle.handle_id}"
            )
            return self.buffer
        self.buffer += fragment
        return self.buffer

    async def on_complete(self, handle: StreamHandle) -> Optional[Turn]:
        if handle is not self.active:
            self.logger.warning(f"Stream {handle.handle_id} already finished")
            return None

        turn = Turn.assistant(self.buffer)
        self.transcript.append(turn)
        self._reset()
        await handle.aclose()
        self.logger.info(
            "Stream completed",
            extra={
                "structured": {
                    "log_type": "stream_complete",
                    "handle_id": handle.handle_id,
                    "content": turn.content,
                }
            },
        )
        return turn

    async def on_error(self, handle: StreamHandle, error: StreamChatError):
        """Discard the partial response of ``handle`` and return ``error``."""
        if handle is self.active:
            discarded = len(self.buffer)
            self._reset()
            self.logger.error(
                f"Stream failed: {error}",
                extra={
                    "structured": {
                        "log_type": "stream_error",
                        "handle_id": handle.handle_id,
                        "error": type(error).__name__,
                        "discarded_chars": discarded,
                    }
                },
            )
        await handle.aclose()
        return error

    async def cancel(self, handle: StreamHandle):
        """Close ``handle`` and drop whatever it had streamed so far."""
        if handle is self.active:
            self._reset()
            self.logger.info(
                "Stream cancelled",
                extra={
                    "structured": {
                        "log_type": "stream_cancel",
                        "handle_id": handle.handle_id,
                    }
                },
            )
        await handle.aclose()

    async def run(self, handle: StreamHandle) -> Optional[Turn]:
        """Apply every fragment of ``handle`` in order, then complete it."""
        handle.task = asyncio.current_task()
        try:
            async for fragment in handle.stream:
                if handle is not self.active:
                    return None
                snapshot = self.on_fragment(handle, fragment)
                reveals = self.renderer.render(snapshot)
                if reveals and self.on_chunks is not None:
                    await self.on_chunks(reveals)
            if handle is not self.active:
                return None
            # The stream is over, so the last word is complete.
            reveals = self.renderer.render(self.buffer, final=True)
            if reveals and self.on_chunks is not None:
                await self.on_chunks(reveals)
            return await self.on_complete(handle)
        except (TransportError, ModelError) as e:
            await self.on_error(handle, e)
            raise
        finally:
            # Cancelled, or the presenter failed mid-stream.
            if handle is self.active:
                await self.cancel(handle)
