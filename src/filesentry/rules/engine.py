"""Rule working set: the in-memory snapshot the dispatcher reads.

Every mutation builds a new tuple and swaps the reference, so a reader
holding ``snapshot()`` never observes a half-updated list.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from .models import Rule

if TYPE_CHECKING:
    from .store import RulesStore

logger = logging.getLogger("filesentry")


class RulesEngine:
    """Holds the active rules in insertion order as an immutable snapshot."""

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self._rules: tuple[Rule, ...] = ()
        self._write_lock = threading.Lock()
        if rules:
            self.load_rules(rules)

    def snapshot(self) -> tuple[Rule, ...]:
        """Current active rules. Safe to iterate while reloads happen."""
        return self._rules

    def load_rules(self, rules: list[Rule]) -> None:
        """Replace the working set. Inactive rules are dropped."""
        active = tuple(r for r in rules if r.active)
        with self._write_lock:
            self._rules = active
        logger.info(f"Rules loaded: {len(active)} active")

    def add_rule(self, rule: Rule) -> None:
        if not rule.active:
            return
        with self._write_lock:
            kept = tuple(r for r in self._rules if r.id != rule.id)
            self._rules = kept + (rule,)

    def remove_rule(self, rule_id: str) -> bool:
        with self._write_lock:
            kept = tuple(r for r in self._rules if r.id != rule_id)
            removed = len(kept) != len(self._rules)
            self._rules = kept
        return removed

    def reload(self, store: RulesStore) -> None:
        """Refresh from persistent storage."""
        self.load_rules(store.list_active())

    def list_rules(self) -> list[Rule]:
        return list(self._rules)
