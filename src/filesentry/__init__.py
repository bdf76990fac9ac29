"""filesentry: rule-based file change notifications."""

__version__ = "0.3.0"

from .exceptions import (
    ConfigError,
    DispatchError,
    EvaluationError,
    FileSentryError,
    StorageError,
    TranslationError,
)

__all__ = [
    "__version__",
    "FileSentryError",
    "EvaluationError",
    "DispatchError",
    "ConfigError",
    "TranslationError",
    "StorageError",
]
