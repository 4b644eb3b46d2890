"""Shared dataclasses for measurements."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class MeasurementResult:
    download_mbps: float
    upload_mbps: float
    ping_ms: float
    timestamp: datetime


@dataclass(frozen=True)
class MeasurementRecord(MeasurementResult):
    id: int
