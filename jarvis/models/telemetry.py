"""Telemetry-related data models."""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class TelemetryDecodeError(ValueError):
    """Raised when an inbound payload does not fit the telemetry record shape."""


class ConnectionState(Enum):
    """Lifecycle state of the telemetry channel."""
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class TelemetryRecord(BaseModel):
    """Snapshot of host CPU/memory usage as emitted by the metrics producer."""

    model_config = ConfigDict(frozen=True)

    memory_total_gb: float = Field(ge=0)
    memory_used_gb: float = Field(ge=0)
    memory_available_gb: float = Field(ge=0)
    memory_usage_percent: float = Field(ge=0, le=100)
    cpu_usage: float = Field(ge=0, le=100)
    cpu_count: int = Field(gt=0)
    timestamp: datetime

    @classmethod
    def decode(cls, payload: Union[str, bytes, dict]) -> "TelemetryRecord":
        """Decode a raw message into a TelemetryRecord.

        Args:
            payload: JSON text/bytes or an already parsed mapping

        Returns:
            Validated TelemetryRecord

        Raises:
            TelemetryDecodeError: If the payload is not valid JSON or does not
                match the record shape
        """
        try:
            if isinstance(payload, (str, bytes)):
                payload = json.loads(payload)
            if not isinstance(payload, dict):
                raise TelemetryDecodeError(f"Expected a JSON object, got {type(payload).__name__}")
            return cls.model_validate(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise TelemetryDecodeError(f"Invalid JSON telemetry payload: {e}") from e
        except ValidationError as e:
            raise TelemetryDecodeError(f"Telemetry payload failed validation: {e.error_count()} error(s)") from e


@dataclass(frozen=True)
class HistoryPoint:
    """A single chart point derived from a telemetry record."""
    time: str      # Display label, HH:MM:SS local time
    cpu: float     # CPU percent, 1 decimal
    memory: float  # Memory percent, 1 decimal

    @classmethod
    def from_record(cls, record: TelemetryRecord) -> "HistoryPoint":
        timestamp = record.timestamp
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone()
        return cls(
            time=timestamp.strftime("%H:%M:%S"),
            cpu=round(record.cpu_usage, 1),
            memory=round(record.memory_usage_percent, 1),
        )


@dataclass(frozen=True)
class HealthStatus:
    """Response of the metrics backend health endpoint."""
    status: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def from_dict(cls, data: Any) -> "HealthStatus":
        if not isinstance(data, dict):
            return cls(status="unknown", message=str(data))
        return cls(status=str(data.get("status", "unknown")), message=str(data.get("message", "")))
