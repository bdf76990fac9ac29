"""Rules: predicates, evaluation, working set, storage, translation."""

from .engine import RulesEngine
from .evaluator import ContentResult, evaluate
from .models import FailureRecord, MatchRecord, Predicate, PredicateEventType, Rule
from .store import RulesStore

__all__ = [
    "RulesEngine",
    "RulesStore",
    "Rule",
    "Predicate",
    "PredicateEventType",
    "MatchRecord",
    "FailureRecord",
    "ContentResult",
    "evaluate",
]
