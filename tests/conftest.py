"""Shared fakes for the chat core tests."""

from __future__ import annotations

import asyncio

import pytest

from stream_chat.client import ChatBackend
from stream_chat.session import Presenter


class FakeStream:
    """Fragment stream fed from a list; exceptions in the list are raised.

    When ``hold_after`` is set, the stream yields that many items and then
    waits for ``release`` before continuing.
    """

    def __init__(self, items, hold_after: int | None = None):
        self.items = list(items)
        self.hold_after = hold_after
        self.release = asyncio.Event()
        self.held = asyncio.Event()
        self.closed = False

    def __aiter__(self):
        return self._items()

    async def _items(self):
        for position, item in enumerate(self.items):
            if position == self.hold_after:
                self.held.set()
                await self.release.wait()
            if isinstance(item, BaseException):
                raise item
            yield item
        if self.hold_after is not None and self.hold_after >= len(self.items):
            self.held.set()
            await self.release.wait()

    async def aclose(self):
        self.closed = True


class FakeBackend(ChatBackend):
    def __init__(self, items=(), connect_error: Exception | None = None, hold_after=None):
        self.items = list(items)
        self.connect_error = connect_error
        self.hold_after = hold_after
        self.calls = []
        self.streams = []

    async def chat(self, model, messages, stream=True):
        self.calls.append({"model": model, "messages": list(messages), "stream": stream})
        if self.connect_error is not None:
            raise self.connect_error
        fake = FakeStream(self.items, hold_after=self.hold_after)
        self.streams.append(fake)
        return fake


class RecordingPresenter(Presenter):
    def __init__(self):
        self.events = []

    async def send_transcript(self, transcript):
        self.events.append(("transcript", transcript.to_list()))

    async def send_chunks(self, reveals):
        self.events.append(("chunks", [reveal.text for reveal in reveals]))

    async def send_state(self, state):
        self.events.append(("state", state.value))

    async def send_error(self, error):
        self.events.append(("error", type(error).__name__))

    async def send_notice(self, content):
        self.events.append(("notice", content))

    def of_type(self, kind):
        return [payload for event, payload in self.events if event == kind]


class GatedPresenter(RecordingPresenter):
    """Recording presenter that stops at the first matching call until ``gate`` is set.

    ``method`` names the presenter method; for ``send_state`` a ``value`` can
    narrow it to one state.
    """

    def __init__(self, method, value=None):
        super().__init__()
        self.method = method
        self.value = value
        self.blocked = asyncio.Event()
        self.gate = asyncio.Event()

    async def _wait_at(self, method, value=None):
        if method != self.method or self.blocked.is_set():
            return
        if self.value is not None and value != self.value:
            return
        self.blocked.set()
        await self.gate.wait()

    async def send_transcript(self, transcript):
        await self._wait_at("send_transcript")
        await super().send_transcript(transcript)

    async def send_state(self, state):
        await self._wait_at("send_state", state.value)
        await super().send_state(state)


class FailingChunkPresenter(RecordingPresenter):
    """Recording presenter whose connection drops when chunks are sent."""

    async def send_chunks(self, reveals):
        raise ConnectionError("client went away")


@pytest.fixture
def presenter():
    return RecordingPresenter()
