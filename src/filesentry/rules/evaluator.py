"""Rule evaluator: pure matching of one file event against one predicate.

Evaluation is a conjunction of three gates:

  1. event type (``any`` matches everything)
  2. path glob, against the path relative to the watch root
  3. content pattern, if the predicate has one

``negation`` only flips the content stage: a negated rule fires when the
content condition is *not* met. The event-type and path gates are never
inverted.
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache

from ..events import FileEvent
from ..exceptions import EvaluationError
from .glob import match_glob
from .models import Predicate, PredicateEventType


class ContentResult(str, Enum):
    """Outcome of the content stage, kept distinct for diagnostics."""

    MATCH = "match"
    MISMATCH = "mismatch"
    NO_CONTENT = "no_content"
    NOT_CONFIGURED = "not_configured"


def is_regex_pattern(pattern: str) -> bool:
    return len(pattern) >= 2 and pattern.startswith("/") and pattern.endswith("/")


@lru_cache(maxsize=256)
def _compile_content_regex(body: str) -> re.Pattern[str]:
    return re.compile(body)


def compile_content_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a ``/regex/`` content pattern. Returns None for literals.

    Raises EvaluationError if the regex body does not compile.
    """
    if not is_regex_pattern(pattern):
        return None
    body = pattern[1:-1]
    try:
        return _compile_content_regex(body)
    except re.error as e:
        raise EvaluationError(
            f"Invalid content regex {pattern!r}: {e}", pattern=pattern
        ) from e


def event_type_matches(event: FileEvent, predicate: Predicate) -> bool:
    if predicate.event_type == PredicateEventType.ANY:
        return True
    return predicate.event_type.value == event.type.value


def check_content(event: FileEvent, predicate: Predicate) -> ContentResult:
    """Run the content stage only. Raises EvaluationError on a bad regex."""
    pattern = predicate.content_pattern
    if not pattern:
        return ContentResult.NOT_CONFIGURED
    # Compile before looking at content so a broken pattern always surfaces
    regex = compile_content_pattern(pattern)
    if event.content is None:
        return ContentResult.NO_CONTENT
    if regex is not None:
        found = regex.search(event.content) is not None
    else:
        found = pattern in event.content
    return ContentResult.MATCH if found else ContentResult.MISMATCH


def evaluate(
    event: FileEvent,
    predicate: Predicate,
    relative_path: str | None = None,
) -> bool:
    """Decide whether ``event`` satisfies ``predicate``.

    Args:
        event: The file event.
        predicate: The rule predicate.
        relative_path: Event path relative to the watch root. Defaults to
            ``event.path``.

    Raises:
        EvaluationError: if the content regex is malformed.
    """
    if not event_type_matches(event, predicate):
        return False

    path = relative_path if relative_path is not None else event.path
    if not match_glob(predicate.path_pattern, path):
        return False

    result = check_content(event, predicate)
    if result == ContentResult.NOT_CONFIGURED:
        return not predicate.negation
    if result == ContentResult.MATCH:
        return not predicate.negation
    return predicate.negation
