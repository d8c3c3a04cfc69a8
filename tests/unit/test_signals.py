import pytest

from presence_monitor.core.signals import (
    DerivedSignals,
    calculate_confidence,
    derive_signals,
    detect_movement,
    detect_presence,
    normalize_signal_strength,
)


class TestDerivedSignals:
    """Derived signal calculations over single raw samples."""

    @pytest.mark.parametrize("rssi,expected", [(-69, True), (-70, False), (-95, False), (-30, True)])
    def test_presence_threshold_is_exclusive(self, rssi, expected):
        assert detect_presence(rssi) is expected

    @pytest.mark.parametrize("rssi,expected", [(-100, 0.0), (-75, 50.0), (-50, 100.0), (-30, 100.0), (-120, 0.0)])
    def test_confidence_is_clamped_to_percentage(self, rssi, expected):
        assert calculate_confidence(rssi) == pytest.approx(expected)

    @pytest.mark.parametrize("rssi,expected", [(-100, 0.0), (-75, 50.0), (-60, 80.0), (-40, 100.0)])
    def test_signal_strength_normalization(self, rssi, expected):
        assert normalize_signal_strength(rssi) == pytest.approx(expected)

    def test_movement_uses_absolute_variation(self):
        assert detect_movement(6)
        assert detect_movement(-6)
        assert not detect_movement(5)
        assert not detect_movement(0)

    def test_derive_signals_from_raw_sample(self):
        derived = derive_signals({"rssi": -60, "rssi_variation": 8})

        assert isinstance(derived, DerivedSignals)
        assert derived.presence_detected is True
        assert derived.confidence_level == pytest.approx(80.0)
        assert derived.signal_strength == pytest.approx(80.0)
        assert derived.movement_detected is True

    def test_missing_fields_use_floor_and_no_variation(self):
        derived = derive_signals({})

        assert derived.to_dict() == {
            "presence_detected": False,
            "confidence_level": 0.0,
            "signal_strength": 0.0,
            "movement_detected": False,
        }
