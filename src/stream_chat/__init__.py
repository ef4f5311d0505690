"""
Stream Chat - A browser chat client for a local Ollama server.

This package streams replies from the inference service and reveals them in
two-word chunks, keeping an append-only transcript of the conversation.
"""

__version__ = "0.1.0"

from .chunker import ChunkRenderer, ChunkReveal, derive_new_chunks, pending_tail
from .errors import BusyError, ModelError, StreamChatError, TransportError
from .ingestor import StreamHandle, StreamIngestor, StreamState
from .session import ChatSession
from .turns import Role, Transcript, Turn

__all__ = [
    "BusyError",
    "ChatSession",
    "ChunkRenderer",
    "ChunkReveal",
    "ModelError",
    "Role",
    "StreamChatError",
    "StreamHandle",
    "StreamIngestor",
    "StreamState",
    "Transcript",
    "TransportError",
    "Turn",
    "derive_new_chunks",
    "pending_tail",
]
