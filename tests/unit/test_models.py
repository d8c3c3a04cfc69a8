from datetime import datetime, timedelta, timezone

import pytest

from presence_monitor.core.models import (
    Alert,
    AlertType,
    AnalyticsPeriod,
    DeviceRecord,
    Severity,
    UserRecord,
    UserSettings,
    parse_timestamp,
)


class TestTimestamps:

    def test_naive_timestamp(self):
        assert parse_timestamp("2024-06-01T12:30:00") == datetime(2024, 6, 1, 12, 30)

    def test_zulu_timestamp_becomes_local_naive(self):
        parsed = parse_timestamp("2024-06-01T12:30:00Z")
        expected = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)

        assert parsed.tzinfo is None
        assert parsed == expected

    def test_invalid_timestamp(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestAnalyticsPeriod:

    @pytest.mark.parametrize("value,delta", [
        ("1h", timedelta(hours=1)),
        ("24h", timedelta(hours=24)),
        ("7d", timedelta(days=7)),
        ("30d", timedelta(days=30)),
        ("bogus", timedelta(hours=24)),
        (None, timedelta(hours=24)),
    ])
    def test_parse(self, value, delta):
        assert AnalyticsPeriod.parse(value).delta == delta


class TestRecords:

    def test_alert_round_trip_with_transitions(self):
        alert = Alert(
            id="a1",
            user_id="u1",
            device_id="D1",
            type=AlertType.SIGNAL_LOSS,
            message="weak",
            severity=Severity.HIGH,
            timestamp=datetime(2024, 6, 1, 12, 0),
            read=True,
            read_at=datetime(2024, 6, 1, 12, 5),
        )
        assert Alert.from_dict(alert.to_dict()) == alert

    def test_user_settings_keep_unknown_keys(self):
        settings = UserSettings.from_dict({"alert_threshold": 65, "theme": "dark"})

        assert settings.alert_threshold == 65
        assert settings.notifications_enabled is True
        assert settings.to_dict() == {"theme": "dark", "notifications_enabled": True, "alert_threshold": 65}

    def test_user_secret_is_opt_in(self):
        user = UserRecord(id="u1", email="a@b.c", name="A", created_at=datetime(2024, 1, 1), password_hash="x")

        assert "password_hash" not in user.to_dict()
        assert user.to_dict(include_secret=True)["password_hash"] == "x"
        assert UserRecord.from_dict(user.to_dict(include_secret=True)) == user

    def test_device_round_trip(self):
        device = DeviceRecord(id="D1", name="Hall", location="hall", owner_id="u1", created_at=datetime(2024, 1, 1))
        assert DeviceRecord.from_dict(device.to_dict()) == device
