"""
Derived radio signals.

Pure functions over a single raw sample. Nothing here keeps history; movement
detection needs the caller to supply the RSSI variation. The ingest path never
rewrites caller data with these values, they are used when a client wants to
re-derive presence from raw RSSI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

PRESENCE_RSSI_THRESHOLD = -70.0
MOVEMENT_VARIATION_THRESHOLD = 5.0
RSSI_FLOOR = -100.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def detect_presence(rssi: float) -> bool:
    """Presence is assumed when the signal is stronger than -70 dBm."""
    return rssi > PRESENCE_RSSI_THRESHOLD


def calculate_confidence(rssi: float) -> float:
    """Map RSSI onto 0-100, with -100 dBm at 0 and -50 dBm at 100."""
    return _clamp((rssi - RSSI_FLOOR) / 50.0 * 100.0)


def normalize_signal_strength(rssi: float) -> float:
    return _clamp((rssi - RSSI_FLOOR) * 2.0)


def detect_movement(rssi_variation: float) -> bool:
    return abs(rssi_variation) > MOVEMENT_VARIATION_THRESHOLD


@dataclass(frozen=True)
class DerivedSignals:
    """Values derived from one raw sample."""

    presence_detected: bool
    confidence_level: float
    signal_strength: float
    movement_detected: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "presence_detected": self.presence_detected,
            "confidence_level": self.confidence_level,
            "signal_strength": self.signal_strength,
            "movement_detected": self.movement_detected,
        }


def derive_signals(raw: Mapping[str, Any]) -> DerivedSignals:
    """
    Derive presence, confidence, signal strength and movement from ``raw``.

    A missing ``rssi`` is treated as the floor (-100 dBm) and a missing
    ``rssi_variation`` as no variation.
    """
    rssi = raw.get("rssi")
    rssi = RSSI_FLOOR if rssi is None else float(rssi)
    variation = raw.get("rssi_variation")
    variation = 0.0 if variation is None else float(variation)

    return DerivedSignals(
        presence_detected=detect_presence(rssi),
        confidence_level=calculate_confidence(rssi),
        signal_strength=normalize_signal_strength(rssi),
        movement_detected=detect_movement(variation),
    )
