"""Custom exception hierarchy for filesentry.

All filesentry exceptions inherit from FileSentryError, allowing callers
to catch broad or specific errors:

    try:
        matched = evaluate(event, rule.predicate)
    except EvaluationError as e:
        print(f"Bad predicate: {e}")
    except FileSentryError as e:
        print(f"filesentry error: {e}")
"""

from __future__ import annotations


class FileSentryError(Exception):
    """Base exception for all filesentry errors."""


class EvaluationError(FileSentryError):
    """Raised when a predicate cannot be evaluated (e.g. invalid regex)."""

    def __init__(self, message: str, pattern: str = "") -> None:
        super().__init__(message)
        self.pattern = pattern


class DispatchError(FileSentryError):
    """Raised when a notification channel fails to deliver."""

    def __init__(self, message: str, channel: str = "") -> None:
        super().__init__(message)
        self.channel = channel


class ConfigError(FileSentryError):
    """Raised when configuration is invalid or missing."""


class TranslationError(FileSentryError):
    """Raised when natural language cannot be turned into a predicate."""


class StorageError(FileSentryError):
    """Raised when rule or history persistence fails."""
