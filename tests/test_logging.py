from datetime import datetime, timezone
from types import SimpleNamespace

from pegplug_api.core.logging import JsonLogSink


def _record(**extra):
    return {
        "time": datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc),
        "level": SimpleNamespace(name="INFO"),
        "message": "Push notification dispatched",
        "name": "pegplug_api.services.notifications.backend",
        "extra": extra,
        "exception": None,
    }


def test_sink_adds_service_metadata():
    sink = JsonLogSink({"service": "pegplug-api", "environment": "test", "version": "0.1.0"})

    payload = sink.build(_record(redemption_id="r1"))

    assert payload["level"] == "info"
    assert payload["service"] == "pegplug-api"
    assert payload["redemption_id"] == "r1"
    assert "trace_id" not in payload


def test_sink_masks_device_identifiers():
    sink = JsonLogSink({"service": "pegplug-api"})

    payload = sink.build(_record(recipient="ExponentPushToken[abcdef123456]", device_id="ios", push_token=None))

    assert payload["recipient"] == "...456]"
    assert payload["device_id"] == "***"
    assert payload["push_token"] is None
