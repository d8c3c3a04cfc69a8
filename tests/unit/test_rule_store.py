import json

import pytest

from presence_monitor.core.exceptions import MalformedInputError, NotFoundError
from presence_monitor.core.models import SensorState
from presence_monitor.sensing.rule_store import RuleStore


@pytest.fixture
def rules_path(tmp_path):
    return tmp_path / "config" / "alert_rules.json"


@pytest.fixture
def rule_store(rules_path):
    return RuleStore(str(rules_path))


class TestRuleStore:
    """File backed alert rule list."""

    def test_missing_file_means_no_rules(self, rule_store):
        assert rule_store.load() == []
        assert rule_store.rules == []

    def test_add_persists_in_camel_case(self, rule_store, rules_path):
        rule = rule_store.add(name="Night", mac="AA:BB", state="someone", start_time="22:00", end_time="23:30")

        saved = json.loads(rules_path.read_text())
        assert saved == [{
            "id": rule.id,
            "name": "Night",
            "mac": "AA:BB",
            "state": "someone",
            "startTime": "22:00",
            "endTime": "23:30",
            "enabled": True,
        }]

    def test_reload_from_disk(self, rule_store, rules_path):
        first = rule_store.add(name="one")
        second = rule_store.add(name="two", state=SensorState.STATIC)

        reloaded = RuleStore(str(rules_path)).load()

        assert reloaded == [first, second]

    def test_invalid_window_is_rejected(self, rule_store, rules_path):
        with pytest.raises(MalformedInputError):
            rule_store.add(start_time="25:00")
        assert not rules_path.exists()

    def test_unknown_state_is_rejected(self, rule_store):
        with pytest.raises(MalformedInputError):
            rule_store.add(state="dancing")

    def test_update_applies_partial_changes(self, rule_store):
        rule = rule_store.add(name="Day", start_time="08:00", end_time="18:00")
        updated = rule_store.update(rule.id, {"endTime": "20:00", "state": SensorState.SOMEONE, "name": None})

        assert updated.id == rule.id
        assert updated.name == "Day"
        assert updated.start_time == "08:00"
        assert updated.end_time == "20:00"
        assert updated.state is SensorState.SOMEONE
        assert rule_store.get(rule.id) == updated

    def test_update_rejects_invalid_time(self, rule_store):
        rule = rule_store.add()
        with pytest.raises(MalformedInputError):
            rule_store.update(rule.id, {"startTime": "7:00"})
        assert rule_store.get(rule.id).start_time == "00:00"

    def test_toggle_flips_enabled(self, rule_store):
        rule = rule_store.add()

        assert rule_store.toggle(rule.id).enabled is False
        assert rule_store.toggle(rule.id).enabled is True

    def test_delete(self, rule_store):
        keep = rule_store.add(name="keep")
        drop = rule_store.add(name="drop")
        rule_store.delete(drop.id)

        assert rule_store.rules == [keep]
        with pytest.raises(NotFoundError):
            rule_store.delete(drop.id)

    def test_unknown_rule(self, rule_store):
        with pytest.raises(NotFoundError):
            rule_store.toggle("missing")

    def test_corrupt_file_raises(self, rules_path):
        rules_path.parent.mkdir(parents=True)
        rules_path.write_text("{not json")

        with pytest.raises(MalformedInputError):
            RuleStore(str(rules_path)).load()

    def test_non_list_file_raises(self, rules_path):
        rules_path.parent.mkdir(parents=True)
        rules_path.write_text('{"id": "r1"}')

        with pytest.raises(MalformedInputError):
            RuleStore(str(rules_path)).load()

    def test_bad_entries_are_skipped(self, rules_path):
        rules_path.parent.mkdir(parents=True)
        rules_path.write_text(json.dumps([
            {"id": "ok", "name": "ok", "mac": "", "state": "move", "startTime": "00:00", "endTime": "23:59"},
            {"id": "bad", "state": "flying"},
            {"name": "no id"},
        ]))

        assert [rule.id for rule in RuleStore(str(rules_path)).load()] == ["ok"]
