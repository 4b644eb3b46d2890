"""Measurement orchestration and persistence layer."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..config import AppConfig
from ..db import SpeedTestStore
from .errors import StorageError
from .models import MeasurementRecord, MeasurementResult
from .speedtest_runner import run_speedtest_test

LOGGER = logging.getLogger(__name__)


class MeasurementManager:
    """Runs one speed test end to end and records it.

    Nothing here is shared between calls except the store, so any number of
    measurements may run at once.
    """

    def __init__(self, config: AppConfig, store: SpeedTestStore):
        self.config = config
        self.store = store

    def _persist(self, result: MeasurementResult) -> MeasurementRecord:
        try:
            record = self.store.insert_record(
                download_mbps=result.download_mbps,
                upload_mbps=result.upload_mbps,
                ping_ms=result.ping_ms,
                timestamp=result.timestamp,
            )
        except StorageError:
            LOGGER.error(
                "Measurement at %s was not recorded (down %.2f Mbps / up %.2f Mbps / ping %.2f ms)",
                result.timestamp.isoformat(),
                result.download_mbps,
                result.upload_mbps,
                result.ping_ms,
            )
            raise
        LOGGER.info(
            "Stored speedtest measurement #%s at %s (down %.2f Mbps / up %.2f Mbps / ping %.2f ms)",
            record.id,
            record.timestamp.isoformat(),
            record.download_mbps,
            record.upload_mbps,
            record.ping_ms,
        )
        return record

    def run_measurement(self) -> MeasurementRecord:
        result = run_speedtest_test(self.config)
        return self._persist(result)

    def get_history(self, limit: Optional[int] = None) -> List[MeasurementRecord]:
        return self.store.list_records(limit=limit)

    def latest_two(self) -> List[MeasurementRecord]:
        return self.store.list_records(limit=2)

    @staticmethod
    def to_dict(record: MeasurementRecord) -> dict:
        return {
            "id": record.id,
            "timestamp": record.timestamp.isoformat(),
            "download_speed": record.download_mbps,
            "upload_speed": record.upload_mbps,
            "ping": record.ping_ms,
        }
