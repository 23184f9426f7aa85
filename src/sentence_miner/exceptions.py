"""Custom exception hierarchy for sentence-miner."""

from __future__ import annotations


class SentenceMinerError(Exception):
    """Base exception for all sentence-miner errors."""


class TokenizationError(SentenceMinerError):
    """The analyzer could not process the input text."""


class AdmissionError(SentenceMinerError):
    """A sentence was refused by admission control."""


class QueueFullError(AdmissionError):
    """The user's pending sentence queue is at its configured limit."""

    def __init__(self, pending: int, limit: int) -> None:
        self.pending = pending
        self.limit = limit
        super().__init__(
            f"Pending sentences limit reached ({pending}/{limit})"
        )


class EmptyBatchError(SentenceMinerError):
    """A batch was requested but there is nothing pending to put in it."""


class NotFoundError(SentenceMinerError):
    """Entity doesn't exist (or doesn't belong to the user)."""


class ValidationError(SentenceMinerError):
    """Invalid request data."""


class WordBindingError(ValidationError):
    """The submitted sentence cannot be bound to a word it exemplifies."""


class TransactionConflictError(SentenceMinerError):
    """A mutating transaction lost a race and was rolled back."""


class DatabaseError(SentenceMinerError):
    """Schema version mismatch, connection failure."""


class ConfigError(SentenceMinerError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        super().__init__(message)
