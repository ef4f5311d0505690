import asyncio
import logging
import uuid
from typing import List, Optional

from .chunker import ChunkRenderer, ChunkReveal, DEFAULT_FADE
from .client import ChatBackend
from .errors import BusyError, StreamChatError
from .ingestor import StreamIngestor, StreamState
from .turns import Turn, Transcript

logger = logging.getLogger(__name__)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects session_id into structured logs."""

    def __init__(self, logger, session_id):
        self.session_id = session_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["session_id"] = self.session_id
        return msg, kwargs


class Presenter:
    """Receiver of everything a session wants shown. Does nothing by default."""

    async def send_transcript(self, transcript: Transcript):
        pass

    async def send_chunks(self, reveals: List[ChunkReveal]):
        pass

    async def send_state(self, state: StreamState):
        pass

    async def send_error(self, error: StreamChatError):
        pass

    async def send_notice(self, content: str):
        pass


class ChatSession:
    """One user's conversation: transcript, the active stream and its reveal."""

    def __init__(
        self,
        backend: ChatBackend,
        presenter: Optional[Presenter] = None,
        model: str = "llama3.1",
        fade: float = DEFAULT_FADE,
        stream: bool = True,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.presenter = presenter or Presenter()
        self.logger = SessionLoggerAdapter(logger, self.session_id)

        self.transcript = Transcript()
        self.renderer = ChunkRenderer(fade=fade)
        self.ingestor = StreamIngestor(
            backend,
            self.transcript,
            renderer=self.renderer,
            model=model,
            stream=stream,
            on_chunks=self.presenter.send_chunks,
            logger=self.logger,
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def is_streaming(self) -> bool:
        return self.ingestor.is_streaming

    def _submission_pending(self) -> bool:
        task = self._task
        return task is not None and not task.done() and task is not asyncio.current_task()

    async def check_idle(self):
        """Raise and report ``BusyError`` if a reply is still streaming."""
        try:
            self.ingestor.ensure_idle()
            if self._submission_pending():
                raise BusyError("A submission is already in progress; cancel it first")
        except BusyError as e:
            self.logger.warning(f"Submission rejected: {e}")
            await self.presenter.send_error(e)
            raise

    def start_submission(self, text: str) -> asyncio.Task:
        """Run ``submit`` for ``text`` in a new task and return it.

        The task is cancellable through ``cancel`` from the moment it is
        created, before it has run at all.
        """
        self._task = asyncio.create_task(self._run_submission(text))
        return self._task

    async def _run_submission(self, text: str) -> Optional[Turn]:
        try:
            return await self.submit(text)
        except StreamChatError as e:
            # Already shown to the user by submit.
            self.logger.info(f"Submission ended with {e!r}")
        except Exception as e:
            self.logger.error(f"Error processing message: {e}")
            await self.presenter.send_notice(f"Sorry, I encountered an error: {str(e)}")
        return None

    async def submit(self, text: str) -> Optional[Turn]:
        """Send ``text`` as a user turn and stream the reply into the transcript.

        Raises
        ------
        BusyError
            A reply is still streaming. Nothing is appended.
        TransportError, ModelError
            The reply failed; the user turn stays, no assistant turn is added.
        """
        await self.check_idle()

        turn = Turn.user(text)
        self.transcript.append(turn)
        self.logger.info(
            "User message received",
            extra={"structured": {"log_type": "user_input", "content": text}},
        )
        owns_task = self._task is None or self._task.done()
        if owns_task:
            self._task = asyncio.current_task()
        try:
            handle = await self.ingestor.start(turn)
            try:
                await self.presenter.send_transcript(self.transcript)
                await self.presenter.send_state(StreamState.STREAMING)
                reply = await self.ingestor.run(handle)
            finally:
                # Cancelled or failed before the stream was consumed.
                if handle is self.ingestor.active:
                    await self.ingestor.cancel(handle)
            await self.presenter.send_transcript(self.transcript)
            return reply
        except StreamChatError as e:
            await self.presenter.send_transcript(self.transcript)
            await self.presenter.send_error(e)
            raise
        finally:
            if owns_task:
                self._task = None
            await self.presenter.send_state(self.ingestor.state)

    async def cancel(self) -> bool:
        """Cancel the running submission, if any, and wait until the session is idle.

        Cancelling the caller while it waits does not stop the submission from
        winding down.
        """
        task = self._task
        if task is None or task.done() or task is asyncio.current_task():
            return False
        task.cancel()
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            # Already reported by submit.
            self.logger.debug(f"Cancelled submission ended with {task.exception()!r}")
        return True
