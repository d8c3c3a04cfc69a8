"""
Device state messages, alert rule configuration and the received event log.
"""

from .event_log import EventLog, StateEvent
from .rule_store import ConfigStore, RuleStore
from .mqtt_listener import MqttSampleListener, SensingPipeline, StateMessage, parse_state_message

__all__ = [
    "EventLog",
    "StateEvent",
    "ConfigStore",
    "RuleStore",
    "MqttSampleListener",
    "SensingPipeline",
    "StateMessage",
    "parse_state_message",
]
