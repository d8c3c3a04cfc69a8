"""
Alert rule evaluation.

A rule matches an incoming ``(mac, state, now)`` triple when it is enabled,
its MAC filter is empty or equal to ``mac``, its state equals ``state`` and
``start_time <= now <= end_time``. Times are zero-padded "HH:MM" strings and
are compared as strings, so a window whose start is after its end (one that
would wrap midnight) never matches.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Iterable, List, Union

from presence_monitor.core.models import AlertRule, SensorState

CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DEFAULT_RULE_NAME = "New rule"
DEFAULT_START_TIME = "00:00"
DEFAULT_END_TIME = "23:59"

_STATE_DESCRIPTIONS = {
    SensorState.MOVE: "presence with movement detected",
    SensorState.STATIC: "place empty",
    SensorState.SOMEONE: "someone present, still",
}


def format_clock(moment: datetime) -> str:
    """Format a datetime as a zero-padded "HH:MM" string."""
    return moment.strftime("%H:%M")


def is_valid_clock(value: str) -> bool:
    return bool(CLOCK_PATTERN.match(value or ""))


def rule_matches(rule: AlertRule, mac: str, state: SensorState, now: str) -> bool:
    """Check a single rule against one message."""
    if not rule.enabled:
        return False
    if not rule.is_wildcard and rule.mac != mac:
        return False
    if rule.state != state:
        return False
    return rule.start_time <= now <= rule.end_time


def evaluate(
    rules: Iterable[AlertRule],
    mac: str,
    state: Union[SensorState, str],
    now: Union[str, datetime],
) -> List[AlertRule]:
    """Return every rule matching the message, in rule order."""
    state = SensorState(state)
    if isinstance(now, datetime):
        now = format_clock(now)
    return [rule for rule in rules if rule_matches(rule, mac, state, now)]


def describe_state(state: Union[SensorState, str], mac: str) -> str:
    """Human readable message for a received state."""
    state = SensorState(state)
    return f"{mac}: {_STATE_DESCRIPTIONS[state]}"


def new_rule(**overrides) -> AlertRule:
    """Create a rule with default values; keyword arguments override them."""
    values = dict(
        id=uuid.uuid4().hex,
        name=DEFAULT_RULE_NAME,
        mac="",
        state=SensorState.MOVE,
        start_time=DEFAULT_START_TIME,
        end_time=DEFAULT_END_TIME,
        enabled=True,
    )
    values.update({key: value for key, value in overrides.items() if value is not None})
    values["state"] = SensorState(values["state"])
    return AlertRule(**values)
