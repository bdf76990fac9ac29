"""YAML persistence for rules."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..exceptions import StorageError
from .models import Rule

logger = logging.getLogger("filesentry")


def _entry_id(entry: Any) -> str | None:
    return entry.get("id") if isinstance(entry, dict) else None


class RulesStore:
    """Load and save rules to a YAML file, preserving insertion order.

    Entries that fail validation are skipped on load but left untouched on
    disk, so one bad rule never costs the others on the next write.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> list[Any]:
        """Stored entries as parsed YAML. Raises StorageError if unreadable."""
        if not self._path.exists():
            return []
        try:
            data = yaml.safe_load(self._path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Could not read rules from {self._path}: {e}") from e
        if not data:
            return []
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise StorageError(f"Unexpected rules file layout in {self._path}")
        return list(data.get("rules") or [])

    def load(self) -> list[Rule]:
        try:
            entries = self._read_raw()
        except StorageError as e:
            logger.warning(str(e))
            return []
        rules = []
        for entry in entries:
            try:
                rules.append(Rule.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid rule {_entry_id(entry) or '?'} in {self._path}: {e}"
                )
        return rules

    def list_active(self) -> list[Rule]:
        return [r for r in self.load() if r.active]

    def get(self, rule_id: str) -> Rule | None:
        for rule in self.load():
            if rule.id == rule_id:
                return rule
        return None

    def save(self, rule: Rule) -> None:
        """Insert a rule, or replace the stored rule with the same id."""
        with self._lock:
            entries = self._read_raw()
            dumped = rule.model_dump(mode="json")
            for i, entry in enumerate(entries):
                if _entry_id(entry) == rule.id:
                    entries[i] = dumped
                    break
            else:
                entries.append(dumped)
            self._write(entries)

    def delete(self, rule_id: str) -> bool:
        with self._lock:
            entries = self._read_raw()
            kept = [e for e in entries if _entry_id(e) != rule_id]
            if len(kept) == len(entries):
                return False
            self._write(kept)
            return True

    def set_active(self, rule_id: str, active: bool) -> bool:
        with self._lock:
            entries = self._read_raw()
            for entry in entries:
                if _entry_id(entry) == rule_id:
                    entry["active"] = active
                    self._write(entries)
                    return True
            return False

    def _write(self, entries: list[Any]) -> None:
        data = {"rules": entries}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                yaml.dump(data, default_flow_style=False, sort_keys=False)
            )
        except OSError as e:
            raise StorageError(f"Could not write rules to {self._path}: {e}") from e
