"""Unit tests for telemetry record decoding."""

import json

import pytest
from pydantic import ValidationError

from jarvis.models.telemetry import HealthStatus, TelemetryDecodeError, TelemetryRecord

from conftest import telemetry_message, telemetry_payload


@pytest.mark.unit
class TestTelemetryRecordDecode:
    """Test cases for TelemetryRecord.decode."""

    def test_decode_json_text(self):
        record = TelemetryRecord.decode(telemetry_message())

        assert record.cpu_usage == 42.37
        assert record.memory_usage_percent == 68.9
        assert record.cpu_count == 8
        assert record.timestamp.year == 2026

    def test_decode_bytes_and_dict(self):
        assert TelemetryRecord.decode(telemetry_message().encode()).cpu_count == 8
        assert TelemetryRecord.decode(telemetry_payload()).cpu_count == 8

    def test_record_is_frozen(self):
        record = TelemetryRecord.decode(telemetry_payload())
        with pytest.raises(ValidationError):
            record.cpu_usage = 1.0

    @pytest.mark.parametrize("raw", [
        "not json",
        "{\"cpu_usage\": 10",
        "[1, 2, 3]",
        "42",
        b"\x80abc",
    ])
    def test_invalid_json(self, raw):
        with pytest.raises(TelemetryDecodeError):
            TelemetryRecord.decode(raw)

    @pytest.mark.parametrize("overrides", [
        {"cpu_usage": 101.0},
        {"cpu_usage": -0.5},
        {"memory_usage_percent": 150},
        {"cpu_count": 0},
        {"cpu_count": "many"},
        {"timestamp": "yesterday"},
        {"memory_total_gb": None},
    ])
    def test_shape_violations(self, overrides):
        with pytest.raises(TelemetryDecodeError):
            TelemetryRecord.decode(telemetry_payload(**overrides))

    def test_missing_field(self):
        payload = telemetry_payload()
        del payload["cpu_count"]

        with pytest.raises(TelemetryDecodeError):
            TelemetryRecord.decode(json.dumps(payload))


@pytest.mark.unit
class TestHealthStatus:
    def test_from_backend_response(self):
        status = HealthStatus.from_dict({"status": "ok", "message": "JARVIS backend is running!"})

        assert status.ok
        assert status.message == "JARVIS backend is running!"

    def test_unexpected_body(self):
        status = HealthStatus.from_dict(["nope"])

        assert not status.ok
        assert status.status == "unknown"
