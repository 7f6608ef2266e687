"""Exception hierarchy for chat history management."""

from __future__ import annotations


class ChatHistoryError(Exception):
    """Base class for all errors raised by this package."""


class CountingError(ChatHistoryError):
    """Raised when a token counter cannot produce a count."""


class SummarizationError(ChatHistoryError):
    """Raised when a summarizer fails to produce a digest."""


class GenerationError(ChatHistoryError):
    """Raised when the model generation call fails."""


class PairingError(ChatHistoryError):
    """Raised when strict pairing is enabled and user/model turns do not alternate."""


class SessionBusyError(ChatHistoryError):
    """Raised when a second exchange is started while one is still streaming."""


class StoreError(ChatHistoryError):
    """Raised when the conversation store cannot read or write a conversation."""
