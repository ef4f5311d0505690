"""
Streaming chat calls against a local inference service.

Ollama serves an OpenAI-compatible API under ``/v1``, so the OpenAI SDK is
used as the transport. Library exceptions are translated into the session's
error taxonomy here and nowhere else.
"""

import logging
from typing import AsyncIterator, Iterable, Optional, Union

import httpx
import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import ModelError, StreamChatError, TransportError
from .turns import Turn

logger = logging.getLogger(__name__)


def translate_error(exc: BaseException) -> Optional[StreamChatError]:
    """Map an SDK/HTTP exception to ``TransportError`` or ``ModelError``."""
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return TransportError(f"Inference service unreachable: {exc}")
    if isinstance(exc, openai.APIError):
        return ModelError(f"Inference service error: {exc}")
    return None


def _fragment_text(chunk) -> str:
    choices = getattr(chunk, "choices", None)
    if choices is None:
        raise ModelError(f"Malformed stream chunk: {chunk!r}")
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    if delta is None:
        raise ModelError(f"Malformed stream chunk: {chunk!r}")
    return delta.content or ""


class FragmentStream:
    """Async iterator of text fragments over one streamed completion."""

    def __init__(self, response):
        self._response = response
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments()

    async def _fragments(self):
        try:
            async for chunk in self._response:
                text = _fragment_text(chunk)
                if text:
                    yield text
        except (openai.APIError, httpx.TransportError) as e:
            raise translate_error(e) from e

    async def aclose(self):
        if self.closed:
            return
        self.closed = True
        await self._response.close()


class CompletedStream:
    """Single-fragment stream for a non-streamed completion."""

    def __init__(self, text: str):
        self._text = text
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments()

    async def _fragments(self):
        if self._text:
            yield self._text

    async def aclose(self):
        self.closed = True


class ChatBackend:
    """Interface of the external streaming chat capability."""

    async def chat(
        self, model: str, messages: Iterable[Turn], stream: bool = True
    ) -> Union[FragmentStream, CompletedStream]:
        raise NotImplementedError


class OpenAICompatibleBackend(ChatBackend):
    """ChatBackend that talks to an OpenAI-compatible server such as Ollama."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "ollama",
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.base_url = base_url
        # Retries are left to the user; a failed stream is never replayed.
        self.client = client or AsyncOpenAI(
            base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAICompatibleBackend":
        return cls(settings.base_url, api_key=settings.api_key, timeout=settings.timeout)

    async def chat(self, model: str, messages: Iterable[Turn], stream: bool = True):
        payload = [turn.to_message() for turn in messages]
        logger.debug(f"Requesting {model} at {self.base_url} ({len(payload)} messages)")
        try:
            response = await self.client.chat.completions.create(
                model=model, messages=payload, stream=stream
            )
        except (openai.APIError, httpx.TransportError) as e:
            raise translate_error(e) from e

        if stream:
            return FragmentStream(response)

        choices = getattr(response, "choices", None)
        if not choices:
            raise ModelError(f"Malformed completion: {response!r}")
        return CompletedStream(choices[0].message.content or "")
