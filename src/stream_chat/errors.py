"""Errors reported by a chat session."""


class StreamChatError(Exception):
    """Base class for failures that are shown to the user."""


class TransportError(StreamChatError):
    """The inference service could not be reached or the connection dropped."""


class ModelError(StreamChatError):
    """The inference service answered with an error or a malformed payload."""


class BusyError(StreamChatError):
    """A submission arrived while a response was still streaming."""
