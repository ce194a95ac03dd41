"""Error taxonomy for localchat.

Engine-boundary failures are caught by the component that issued the call
and turned into state: a ``Failed`` engine state or an apology message in
the conversation. They are never raised to the UI. Stale writes and
rejected sends are not errors at all; they are logged and dropped.
"""


class LocalChatError(Exception):
    """Base class for localchat errors."""


class EngineConstructionError(LocalChatError):
    """Loading or switching to a model failed."""

    def __init__(self, model_id: str, cause: BaseException):
        self.model_id = model_id
        self.cause = cause
        super().__init__(f"Failed to load {model_id}: {describe_error(cause)}")


class StreamError(LocalChatError):
    """A streamed generation failed before it completed."""

    def __init__(self, message_id: str, cause: BaseException):
        self.message_id = message_id
        self.cause = cause
        super().__init__(f"Generation for message {message_id} failed: {describe_error(cause)}")


def describe_error(error: BaseException) -> str:
    """Short human readable description of an exception.

    Falls back to the exception class name when the message is empty.
    """
    text = str(error).strip()
    return text or type(error).__name__
