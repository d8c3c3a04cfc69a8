"""
End-to-end flows across ingest, triggers, alerts, analytics and the MQTT
pipeline.
"""

import json
from datetime import datetime

import pytest

from presence_monitor.core.models import AlertType
from presence_monitor.services.orchestrator import ServiceOrchestrator


class TestSampleToAlertFlow:
    """Samples posted over HTTP flow through to alerts and analytics."""

    def test_three_samples_one_signal_loss(self, client, auth, clock):
        _, headers = auth
        client.post("/devices", json={"device_id": "D1"}, headers=headers)

        created = []
        for rssi in (-95, -60, -50):
            response = client.post("/metrics", json={"device_id": "D1", "data": {"rssi": rssi}})
            assert response.status_code == 201
            created.append(response.json()["alerts_created"])
            clock.advance(seconds=30)

        alerts = client.get("/alerts", headers=headers).json()["alerts"]
        latest = client.get("/metrics/D1/latest", headers=headers).json()["metric"]
        analytics = client.get("/analytics/D1", params={"period": "24h"}, headers=headers).json()["analytics"]

        assert created == [1, 0, 0]
        assert [a["type"] for a in alerts] == ["signal_loss"]
        assert latest["rssi"] == -50
        assert analytics["data_points"] == 3

    def test_alerts_reach_every_subscriber_only(self, client, login_as):
        _, first = login_as(email="first@example.com")
        _, second = login_as(email="second@example.com")
        _, outsider = login_as(email="outsider@example.com")
        client.post("/devices", json={"device_id": "D1"}, headers=first)
        client.post("/devices", json={"device_id": "D1"}, headers=second)

        client.post("/metrics", json={"device_id": "D1", "data": {"rssi": -97}})

        assert len(client.get("/alerts", headers=first).json()["alerts"]) == 1
        assert len(client.get("/alerts", headers=second).json()["alerts"]) == 1
        assert client.get("/alerts", headers=outsider).json()["alerts"] == []

    def test_disabled_notifications(self, client, auth):
        _, headers = auth
        client.post("/devices", json={"device_id": "D1"}, headers=headers)
        client.put("/user/settings", json={"notifications_enabled": False}, headers=headers)

        created = client.post("/metrics", json={"device_id": "D1", "data": {"rssi": -97}}).json()

        assert created["alerts_created"] == 0


class TestMqttFlow:
    """State messages dispatched through the listener reach the HTTP views."""

    @pytest.mark.asyncio
    async def test_state_message_end_to_end(self, settings, store, clock):
        orchestrator = ServiceOrchestrator(settings, store=store, clock=clock)
        async with orchestrator.service_context(with_listener=False):
            user = await orchestrator.user_service.signup("owner@example.com", "secret-pass")
            await orchestrator.dashboard_service.add_user_device(user.id, "AA:BB")
            rule = orchestrator.rule_store.add(name="Night watch", state="move", start_time="02:00", end_time="05:59")
            clock.set(datetime(2024, 6, 2, 2, 30))

            event = await orchestrator.listener.dispatch(json.dumps({"mac": "AA:BB", "state": "move"}).encode())
            dropped = await orchestrator.listener.dispatch(b'{"mac": "AA:BB", "state": "levitating"}')

            alerts = await orchestrator.alert_service.list_alerts(user.id)
            latest = await orchestrator.metrics_service.latest("AA:BB")

        assert dropped is None
        assert event.matched_rules == [rule.id]
        assert [e.mac for e in orchestrator.event_log.events()] == ["AA:BB"]
        assert latest.presence_detected is True
        assert [a.type for a in alerts] == [AlertType.UNAUTHORIZED_PRESENCE]
        assert orchestrator.listener.stats["messages_dropped"] == 1
