"""
Persisted alert rule configuration.

Rules are kept as an ordered JSON list in a single file. The whole list is
loaded at startup and written back after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from presence_monitor.core.exceptions import MalformedInputError, NotFoundError
from presence_monitor.core.models import AlertRule, SensorState
from presence_monitor.core.rules import is_valid_clock, new_rule

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Durable medium for the rule list."""

    def load(self) -> List[AlertRule]: ...

    def save(self, rules: List[AlertRule]) -> None: ...


def validate_rule(rule: AlertRule) -> AlertRule:
    """Raise MalformedInputError unless both window bounds are valid "HH:MM"."""
    for label, value in (("startTime", rule.start_time), ("endTime", rule.end_time)):
        if not is_valid_clock(value):
            raise MalformedInputError(f"{label} must be a HH:MM time, got {value!r}")
    return rule


class RuleStore:
    """JSON-file backed rule list with mutation helpers."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._rules: Optional[List[AlertRule]] = None

    # ------------------------------------------------------------------
    # ConfigStore
    # ------------------------------------------------------------------

    def load(self) -> List[AlertRule]:
        """Load the rule list; a missing file is an empty list."""
        with self._lock:
            if not self.path.exists():
                logger.info(f"No rule file at {self.path}, starting with no rules")
                self._rules = []
                return []

            try:
                data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            except json.JSONDecodeError as e:
                raise MalformedInputError(f"Rule file {self.path} is not valid JSON: {e}") from e
            if not isinstance(data, list):
                raise MalformedInputError(f"Rule file {self.path} must contain a JSON list")

            rules = []
            for entry in data:
                try:
                    rules.append(AlertRule.from_dict(entry))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping invalid rule entry {entry!r}: {e}")

            self._rules = rules
            logger.info(f"Loaded {len(rules)} alert rule(s) from {self.path}")
            return list(rules)

    def save(self, rules: List[AlertRule]) -> None:
        """Write the rule list atomically."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps([rule.to_dict() for rule in rules], indent=2)

            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".rules-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_path, self.path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

            self._rules = list(rules)
            logger.debug(f"Saved {len(rules)} alert rule(s) to {self.path}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @property
    def rules(self) -> List[AlertRule]:
        with self._lock:
            if self._rules is None:
                self.load()
            return list(self._rules)

    def get(self, rule_id: str) -> AlertRule:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        raise NotFoundError(f"Rule {rule_id} not found", {"rule_id": rule_id})

    def add(self, **fields: Any) -> AlertRule:
        """Create a rule from defaults plus ``fields`` and append it."""
        try:
            rule = new_rule(**fields)
        except ValueError as e:
            raise MalformedInputError(str(e)) from e
        validate_rule(rule)
        with self._lock:
            rules = self.rules
            rules.append(rule)
            self.save(rules)
        logger.info(f"Alert rule {rule.id} added")
        return rule

    def upsert(self, rule: AlertRule) -> AlertRule:
        """Replace the rule with the same id, or append it."""
        validate_rule(rule)
        with self._lock:
            rules = self.rules
            for index, existing in enumerate(rules):
                if existing.id == rule.id:
                    rules[index] = rule
                    break
            else:
                rules.append(rule)
            self.save(rules)
        return rule

    def update(self, rule_id: str, changes: Dict[str, Any]) -> AlertRule:
        """Apply a partial update to an existing rule."""
        with self._lock:
            current = self.get(rule_id).to_dict()
            for key, value in changes.items():
                if value is not None:
                    current[key] = value.value if isinstance(value, SensorState) else value
            current["id"] = rule_id
            try:
                rule = AlertRule.from_dict(current)
            except ValueError as e:
                raise MalformedInputError(str(e)) from e
            return self.upsert(rule)

    def delete(self, rule_id: str) -> None:
        with self._lock:
            rules = self.rules
            remaining = [rule for rule in rules if rule.id != rule_id]
            if len(remaining) == len(rules):
                raise NotFoundError(f"Rule {rule_id} not found", {"rule_id": rule_id})
            self.save(remaining)
        logger.info(f"Alert rule {rule_id} deleted")

    def toggle(self, rule_id: str) -> AlertRule:
        """Flip a rule's enabled flag."""
        with self._lock:
            rule = self.get(rule_id)
            return self.upsert(replace(rule, enabled=not rule.enabled))
